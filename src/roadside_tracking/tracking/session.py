"""Tracking sessions: simulated and live-fed provider movement.

A session owns one order's tracking lifecycle. Every state mutation goes
through ``handle_event``; timer processes call it directly, while live
notifications are queued in a per-session mailbox and applied one at a
time by a dispatcher process. All of it runs on the SimPy environment's
single thread, so there is exactly one writer.
"""

import logging
import math
import random
import re
from abc import ABC, abstractmethod
from collections.abc import Callable, Generator
from datetime import datetime
from typing import TYPE_CHECKING, Any

import simpy

from roadside_tracking.core.exceptions import TrackingError
from roadside_tracking.geo.distance import bearing_degrees, distance_km
from roadside_tracking.geo.route import SyntheticRoute, interpolate, plan_synthetic_route
from roadside_tracking.models import (
    Coordinate,
    LocationSample,
    ProviderLocation,
    SessionConfig,
    TerminalEvent,
    TrackingStatus,
    TrackingUpdate,
)
from roadside_tracking.settings import TrackingSettings
from roadside_tracking.sim_logging import log_session_context
from roadside_tracking.store.models import Order, OrderStatus
from roadside_tracking.tracking.events import (
    CancelRequested,
    CompleteRequested,
    DispatchStarted,
    LocationReported,
    MovementTick,
    OrderStatusChanged,
    SubscriptionLost,
    TrackingEvent,
)
from roadside_tracking.tracking.state_machine import StatusMachine

if TYPE_CHECKING:
    from roadside_tracking.store.base import OrderStore

logger = logging.getLogger(__name__)

UpdateCallback = Callable[[TrackingUpdate], Any]
TerminalCallback = Callable[[TerminalEvent], Any]

# Below this a live position change is GPS jitter, not movement
_MIN_HEADING_DISTANCE_KM = 0.005


def round_minutes(value: float) -> int:
    """Round half up to whole minutes, never below zero."""
    return max(0, math.floor(value + 0.5))


def eta_from_distance(distance: float, speed_kmh: float) -> int:
    return round_minutes(distance / speed_kmh * 60)


class TrackingSession(ABC):
    """Base session: status, observers, terminal handling and resource release."""

    mode = "base"

    def __init__(
        self,
        env: simpy.Environment,
        session_id: str,
        config: SessionConfig,
        settings: TrackingSettings,
        clock: Callable[[], datetime],
    ) -> None:
        self.env = env
        self.session_id = session_id
        self.config = config
        self.settings = settings
        self._clock = clock
        self._machine = StatusMachine()

        self.provider_location: ProviderLocation | None = None
        self.distance_km: float | None = None
        self.eta_minutes: int | None = (
            round_minutes(config.estimated_minutes) if config.estimated_minutes else None
        )
        self.route: tuple[Coordinate, ...] = ()
        self.error: str | None = None
        self.terminal_event: TerminalEvent | None = None
        self.closed = False

        self._update_callbacks: list[UpdateCallback] = []
        self._terminal_callbacks: list[TerminalCallback] = []
        self._completed_callbacks: list[TerminalCallback] = []
        self._cancelled_callbacks: list[TerminalCallback] = []
        self._processes: list[simpy.Process] = []
        self._deferred_processes: list[simpy.Process] = []

    # -- observation -------------------------------------------------------

    @property
    def status(self) -> TrackingStatus:
        return self._machine.status

    @property
    def status_history(self) -> list[TrackingStatus]:
        return list(self._machine.history)

    @property
    def is_terminal(self) -> bool:
        return self._machine.is_terminal

    @property
    def customer_location(self) -> Coordinate:
        return self.config.customer_location

    def on_update(self, callback: UpdateCallback) -> None:
        self._update_callbacks.append(callback)

    def on_terminal(self, callback: TerminalCallback) -> None:
        """Register a callback fired once, immediately, on completed or cancelled."""
        if self.terminal_event is not None:
            self._invoke(callback, self.terminal_event)
            return
        self._terminal_callbacks.append(callback)

    def on_completed(self, callback: TerminalCallback) -> None:
        """Register a callback fired after the completion grace delay."""
        self._completed_callbacks.append(callback)

    def on_cancelled(self, callback: TerminalCallback) -> None:
        """Register a callback fired after the cancellation grace delay."""
        self._cancelled_callbacks.append(callback)

    def snapshot(self, step: int | None = None) -> TrackingUpdate:
        return TrackingUpdate(
            session_id=self.session_id,
            status=self.status,
            provider_location=self.provider_location,
            distance_km=self.distance_km,
            eta_minutes=self.eta_minutes,
            route=self.route,
            step=step,
            error=self.error,
        )

    def dial_uri(self) -> str | None:
        """``tel:`` URI for the provider's phone, or None when unavailable."""
        phone = self.config.provider_contact_phone
        if not phone:
            return None
        digits = re.sub(r"\D", "", phone)
        return f"tel:{digits}" if digits else None

    # -- lifecycle ---------------------------------------------------------

    @abstractmethod
    def start(self) -> None:
        """Schedule the session's timers or feeds on the environment."""

    def cancel(self, reason: str | None = None) -> None:
        """Cancel the session. No-op once terminal."""
        self.handle_event(CancelRequested(reason=reason))

    def complete(self) -> None:
        """Complete the session from an external signal. No-op once terminal."""
        self.handle_event(CompleteRequested())

    def close(self) -> None:
        """Discard the session: stop timers and feeds without a terminal event."""
        if self.closed:
            return
        self.closed = True
        self._release()
        for process in self._deferred_processes:
            self._interrupt(process)
        self._update_callbacks.clear()
        self._terminal_callbacks.clear()
        self._completed_callbacks.clear()
        self._cancelled_callbacks.clear()
        logger.debug("Tracking session %s closed in status %s", self.session_id, self.status.value)

    def handle_event(self, event: TrackingEvent) -> None:
        """Single entry point for every state mutation.

        Events arriving after a terminal status or after ``close`` are ignored.
        """
        if self.is_terminal or self.closed:
            logger.debug(
                "Ignoring %s for session %s in status %s",
                type(event).__name__,
                self.session_id,
                self.status.value,
            )
            return

        with log_session_context(self.session_id, order_id=self.config.order_id):
            if isinstance(event, CancelRequested):
                logger.info(
                    "Tracking session %s cancelled%s",
                    self.session_id,
                    f": {event.reason}" if event.reason else "",
                )
                self._finish(TrackingStatus.CANCELLED)
            elif isinstance(event, CompleteRequested):
                self._finish(TrackingStatus.COMPLETED)
            else:
                self._apply(event)

    def _apply(self, event: TrackingEvent) -> None:
        logger.warning(
            "Session %s (%s) does not handle %s", self.session_id, self.mode, type(event).__name__
        )

    # -- internals ---------------------------------------------------------

    def _transition(self, new_status: TrackingStatus) -> None:
        previous = self.status
        self._machine.transition_to(new_status)
        logger.info(
            "Tracking session %s: %s -> %s", self.session_id, previous.value, new_status.value
        )

    def _finish(self, status: TrackingStatus) -> None:
        self._transition(status)
        if status == TrackingStatus.COMPLETED:
            self.distance_km = 0.0
            self.eta_minutes = 0

        self._release()
        self._emit_update()

        event = TerminalEvent(session_id=self.session_id, status=status, occurred_at=self._clock())
        self.terminal_event = event
        callbacks, self._terminal_callbacks = self._terminal_callbacks, []
        for callback in callbacks:
            self._invoke(callback, event)

        if status == TrackingStatus.COMPLETED:
            grace, deferred = self.settings.completion_grace_seconds, self._completed_callbacks
        else:
            grace, deferred = self.settings.cancellation_grace_seconds, self._cancelled_callbacks
        if deferred:
            self._deferred_processes.append(
                self.env.process(self._run_deferred(grace, list(deferred), event))
            )

    def _run_deferred(
        self, delay: float, callbacks: list[TerminalCallback], event: TerminalEvent
    ) -> Generator[simpy.Event, Any, None]:
        try:
            yield self.env.timeout(delay)
        except simpy.Interrupt:
            return
        for callback in callbacks:
            self._invoke(callback, event)

    def _release(self) -> None:
        """Stop timers and subscriptions owned by the active phase."""
        for process in self._processes:
            self._interrupt(process)

    def _interrupt(self, process: simpy.Process) -> None:
        # A process cannot interrupt itself; it notices the terminal status instead
        if process.is_alive and process is not self.env.active_process:
            process.interrupt()

    def _emit_update(self, step: int | None = None) -> None:
        update = self.snapshot(step)
        for callback in list(self._update_callbacks):
            self._invoke(callback, update)

    def _invoke(self, callback: Callable[[Any], Any], payload: Any) -> None:
        try:
            callback(payload)
        except Exception:
            logger.exception(
                "Observer %r failed for session %s", callback, self.session_id
            )


class SimulatedTrackingSession(TrackingSession):
    """Synthesizes a route and time-stepped movement toward the customer."""

    mode = "simulated"

    def __init__(
        self,
        env: simpy.Environment,
        session_id: str,
        config: SessionConfig,
        settings: TrackingSettings,
        clock: Callable[[], datetime],
        rng: random.Random | None = None,
    ) -> None:
        super().__init__(env, session_id, config, settings, clock)
        self.rng = rng or random.Random()
        self.synthetic_route: SyntheticRoute | None = None
        self.initial_eta_minutes: int | None = None
        self.steps_applied = 0
        self._process: simpy.Process | None = None

    def start(self) -> None:
        if self._process is not None:
            return
        preparation_delay = self.rng.uniform(
            self.settings.preparation_delay_min_seconds,
            self.settings.preparation_delay_max_seconds,
        )
        logger.info(
            "Simulated tracking session %s preparing for %.1fs", self.session_id, preparation_delay
        )
        self._process = self.env.process(self._run(preparation_delay))
        self._processes.append(self._process)

    def _run(self, preparation_delay: float) -> Generator[simpy.Event, Any, None]:
        try:
            yield self.env.timeout(preparation_delay)
            self.handle_event(DispatchStarted())

            for step in range(1, self.settings.total_steps + 1):
                if self.is_terminal or self.closed:
                    return
                yield self.env.timeout(self.settings.tick_interval_seconds)
                self.handle_event(MovementTick(step=step))
        except simpy.Interrupt:
            logger.debug("Simulation for session %s interrupted", self.session_id)

    def _apply(self, event: TrackingEvent) -> None:
        if isinstance(event, DispatchStarted):
            self._dispatch()
        elif isinstance(event, MovementTick):
            self._advance(event.step)
        else:
            super()._apply(event)

    def _dispatch(self) -> None:
        if self.status != TrackingStatus.PREPARING:
            return
        self._transition(TrackingStatus.ON_THE_WAY)

        route = plan_synthetic_route(
            self.customer_location,
            self.rng,
            min_distance_km=self.settings.start_distance_min_km,
            max_distance_km=self.settings.start_distance_max_km,
        )
        self.synthetic_route = route
        self.route = route.display_path()

        self.provider_location = ProviderLocation(
            position=route.start,
            heading=bearing_degrees(route.start, self.customer_location),
            speed_kmh=self.settings.average_speed_kmh,
            observed_at=self._clock(),
        )
        self.distance_km = distance_km(route.start, self.customer_location)

        if self.config.estimated_minutes:
            self.initial_eta_minutes = round_minutes(self.config.estimated_minutes)
        else:
            self.initial_eta_minutes = eta_from_distance(
                self.distance_km, self.settings.average_speed_kmh
            )
        self.eta_minutes = self.initial_eta_minutes

        logger.info(
            "Provider %s starting %.2f km away, ETA %d min",
            self.config.provider_display_name,
            self.distance_km,
            self.eta_minutes,
        )
        self._emit_update()

    def _advance(self, step: int) -> None:
        route = self.synthetic_route
        if route is None or self.initial_eta_minutes is None:
            logger.warning("Movement tick %d before dispatch in session %s", step, self.session_id)
            return
        if step != self.steps_applied + 1:
            logger.warning(
                "Out-of-sequence tick %d (expected %d) in session %s",
                step,
                self.steps_applied + 1,
                self.session_id,
            )
            return

        total = self.settings.total_steps
        progress = step / total
        position = interpolate(route.start, route.destination, progress)
        speed_drop = self.settings.average_speed_kmh - self.settings.final_speed_kmh

        self.provider_location = ProviderLocation(
            position=position,
            heading=bearing_degrees(route.start, route.destination),
            speed_kmh=self.settings.average_speed_kmh - progress * speed_drop,
            observed_at=self._clock(),
        )
        self.distance_km = distance_km(position, self.customer_location)
        # Decays the initial estimate rather than recomputing from distance
        self.eta_minutes = round_minutes(self.initial_eta_minutes * (1 - progress))
        self.steps_applied = step

        if (
            progress > self.settings.arriving_progress_threshold
            and self.status == TrackingStatus.ON_THE_WAY
        ):
            self._transition(TrackingStatus.ARRIVING)

        self._emit_update(step=step)

        if step >= total and not self.is_terminal and not self.closed:
            logger.info(
                "%s arrived at the customer location", self.config.provider_display_name
            )
            self._finish(TrackingStatus.COMPLETED)


class LiveTrackingSession(TrackingSession):
    """Follows a real driver's reported location from the order store."""

    mode = "live"

    def __init__(
        self,
        env: simpy.Environment,
        session_id: str,
        config: SessionConfig,
        settings: TrackingSettings,
        clock: Callable[[], datetime],
        store: "OrderStore",
    ) -> None:
        if config.driver_id is None:
            raise ValueError("LiveTrackingSession requires a driver_id")
        super().__init__(env, session_id, config, settings, clock)
        self.store = store
        self.driver_id = config.driver_id
        self.last_sample: LocationSample | None = None
        self.samples_applied = 0
        self.samples_dropped = 0
        self._inbox: simpy.Store = simpy.Store(env)
        self._dispatcher: simpy.Process | None = None
        self._pending_get: simpy.Event | None = None
        self._unsubscribers: list[Callable[[], None]] = []

    def start(self) -> None:
        if self._dispatcher is not None:
            return
        self._dispatcher = self.env.process(self._drain_inbox())
        self._processes.append(self._dispatcher)

        logger.info(
            "Live tracking session %s subscribing to driver %s", self.session_id, self.driver_id
        )
        try:
            self._unsubscribers.append(
                self.store.subscribe_to_driver_location(
                    self.driver_id, self._on_location, self._on_subscription_error
                )
            )
            if self.config.order_id:
                self._unsubscribers.append(
                    self.store.subscribe_to_order(
                        self.config.order_id, self._on_order_change, self._on_subscription_error
                    )
                )
        except TrackingError as e:
            logger.error("Live feed subscription failed for driver %s: %s", self.driver_id, e)
            self.submit(SubscriptionLost(reason=e.message))

    def submit(self, event: TrackingEvent) -> None:
        """Queue an inbound event for the dispatcher."""
        if self.is_terminal or self.closed:
            return
        self._inbox.put(event)

    def _on_location(self, sample: LocationSample) -> None:
        self.submit(LocationReported(sample=sample))

    def _on_order_change(self, order: Order) -> None:
        self.submit(OrderStatusChanged(status=order.status))

    def _on_subscription_error(self, error: Exception) -> None:
        self.submit(SubscriptionLost(reason=str(error)))

    def _drain_inbox(self) -> Generator[simpy.Event, Any, None]:
        try:
            while not (self.is_terminal or self.closed):
                self._pending_get = self._inbox.get()
                event = yield self._pending_get
                self._pending_get = None
                self.handle_event(event)
        except simpy.Interrupt:
            if self._pending_get is not None:
                self._pending_get.cancel()
                self._pending_get = None

    def _apply(self, event: TrackingEvent) -> None:
        if isinstance(event, LocationReported):
            self._apply_sample(event.sample)
        elif isinstance(event, OrderStatusChanged):
            if event.status == OrderStatus.COMPLETED:
                self._finish(TrackingStatus.COMPLETED)
            elif event.status == OrderStatus.CANCELLED:
                self._finish(TrackingStatus.CANCELLED)
        elif isinstance(event, SubscriptionLost):
            self.error = event.reason
            logger.warning(
                "Live feed degraded for session %s: %s", self.session_id, event.reason
            )
            self._emit_update()
        else:
            super()._apply(event)

    def _apply_sample(self, sample: LocationSample) -> None:
        previous = self.last_sample
        if previous is not None and sample.timestamp <= previous.timestamp:
            self.samples_dropped += 1
            logger.debug(
                "Dropping stale sample for driver %s (%s <= %s)",
                self.driver_id,
                sample.timestamp.isoformat(),
                previous.timestamp.isoformat(),
            )
            return

        position = sample.coordinate
        heading, speed = 0.0, 0.0
        if previous is not None and self.provider_location is not None:
            moved_km = distance_km(previous.coordinate, position)
            elapsed_h = (sample.timestamp - previous.timestamp).total_seconds() / 3600
            if moved_km >= _MIN_HEADING_DISTANCE_KM:
                heading = bearing_degrees(previous.coordinate, position)
            else:
                heading = self.provider_location.heading
            if elapsed_h > 0:
                speed = moved_km / elapsed_h

        self.provider_location = ProviderLocation(
            position=position,
            heading=heading,
            speed_kmh=speed,
            observed_at=sample.timestamp,
        )
        self.distance_km = distance_km(position, self.customer_location)
        self.eta_minutes = eta_from_distance(self.distance_km, self.settings.average_speed_kmh)
        self.last_sample = sample
        self.samples_applied += 1
        self.error = None

        if self.status == TrackingStatus.PREPARING:
            self._transition(TrackingStatus.ON_THE_WAY)

        self._emit_update()

    def _release(self) -> None:
        super()._release()
        unsubscribers, self._unsubscribers = self._unsubscribers, []
        for unsubscribe in unsubscribers:
            unsubscribe()
