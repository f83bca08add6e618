"""Tracking service: the boundary a UI layer uses to run tracking sessions."""

import logging
import random
import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Literal

import pydantic
import simpy

from roadside_tracking.core.exceptions import (
    ConfigurationError,
    InvalidInputError,
    NotFoundError,
    StateError,
)
from roadside_tracking.models import SessionConfig, TrackingUpdate
from roadside_tracking.settings import TrackingSettings
from roadside_tracking.store.base import OrderStore
from roadside_tracking.tracking.clock import TimeManager
from roadside_tracking.tracking.session import (
    LiveTrackingSession,
    SimulatedTrackingSession,
    TerminalCallback,
    TrackingSession,
    UpdateCallback,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionHandle:
    session_id: str
    mode: Literal["simulated", "live"]


class TrackingService:
    """Creates and addresses tracking sessions by handle.

    One service per SimPy environment. Sessions stay registered (terminal or
    not) until ``discard`` so late ``cancel`` calls remain harmless no-ops.
    """

    def __init__(
        self,
        env: simpy.Environment,
        store: OrderStore | None = None,
        settings: TrackingSettings | None = None,
        rng: random.Random | None = None,
        time_manager: TimeManager | None = None,
    ) -> None:
        self.env = env
        self.store = store
        self.settings = settings or TrackingSettings()
        self._rng = rng or random.Random()
        self.time_manager = time_manager or TimeManager(env)
        self._sessions: dict[str, TrackingSession] = {}

    def start(self, config: SessionConfig | Mapping[str, Any]) -> SessionHandle:
        """Start tracking. Live-feed mode when the config carries a driver id.

        Raises:
            InvalidInputError: Malformed coordinate or missing required fields;
                no session is created.
            ConfigurationError: Live mode requested without an order store.
            StateError: A non-terminal session already tracks this order.
        """
        session_config = self._validate(config)
        session_id = session_config.order_id or str(uuid.uuid4())

        existing = self._sessions.get(session_id)
        if existing is not None and not existing.is_terminal and not existing.closed:
            raise StateError(
                f"Order {session_id} is already being tracked",
                details={"session_id": session_id},
            )

        session: TrackingSession
        if session_config.is_live:
            if self.store is None:
                raise ConfigurationError("Live tracking requires an order store")
            session = LiveTrackingSession(
                self.env,
                session_id,
                session_config,
                self.settings,
                self.time_manager.current_time,
                store=self.store,
            )
        else:
            session = SimulatedTrackingSession(
                self.env,
                session_id,
                session_config,
                self.settings,
                self.time_manager.current_time,
                rng=random.Random(self._rng.getrandbits(64)),
            )

        self._sessions[session_id] = session
        session.start()
        logger.info(
            "Started %s tracking session %s for %s",
            session.mode,
            session_id,
            session_config.provider_display_name,
        )
        return SessionHandle(session_id=session_id, mode=session.mode)

    def start_for_order(
        self,
        order_id: str,
        provider_display_name: str,
        provider_contact_phone: str | None = None,
        estimated_minutes: float | None = None,
    ) -> SessionHandle:
        """Read the order once and start tracking it with its stored driver/location."""
        if self.store is None:
            raise ConfigurationError("Order-based tracking requires an order store")

        order = self.store.get_order(order_id)
        if order.status.is_terminal:
            raise StateError(
                f"Order {order_id} is already {order.status.value}",
                details={"order_id": order_id, "status": order.status.value},
            )
        if order.customer_location is None:
            raise InvalidInputError(
                f"Order {order_id} has no customer location", details={"order_id": order_id}
            )

        return self.start(
            {
                "customer_location": order.customer_location,
                "provider_display_name": provider_display_name,
                "provider_contact_phone": provider_contact_phone,
                "estimated_minutes": estimated_minutes,
                "driver_id": order.driver_id,
                "order_id": order.id,
                "customer_id": order.customer_id,
            }
        )

    def get_session(self, handle: SessionHandle) -> TrackingSession:
        session = self._sessions.get(handle.session_id)
        if session is None:
            raise NotFoundError(
                f"No tracking session {handle.session_id}",
                details={"session_id": handle.session_id},
            )
        return session

    def cancel(self, handle: SessionHandle, reason: str | None = None) -> None:
        """Cancel a session. Idempotent: no-op when already terminal or discarded."""
        session = self._sessions.get(handle.session_id)
        if session is None:
            return
        session.cancel(reason)

    def on_update(self, handle: SessionHandle, callback: UpdateCallback) -> None:
        self.get_session(handle).on_update(callback)

    def on_terminal(self, handle: SessionHandle, callback: TerminalCallback) -> None:
        self.get_session(handle).on_terminal(callback)

    def on_completed(self, handle: SessionHandle, callback: TerminalCallback) -> None:
        self.get_session(handle).on_completed(callback)

    def on_cancelled(self, handle: SessionHandle, callback: TerminalCallback) -> None:
        self.get_session(handle).on_cancelled(callback)

    def snapshot(self, handle: SessionHandle) -> TrackingUpdate:
        return self.get_session(handle).snapshot()

    def provider_dial_uri(self, handle: SessionHandle) -> str | None:
        return self.get_session(handle).dial_uri()

    def discard(self, handle: SessionHandle) -> None:
        """Drop a session when its view goes away; stops timers and feeds."""
        session = self._sessions.pop(handle.session_id, None)
        if session is not None:
            session.close()

    def active_sessions(self) -> list[SessionHandle]:
        return [
            SessionHandle(session_id=s.session_id, mode=s.mode)
            for s in self._sessions.values()
            if not s.is_terminal and not s.closed
        ]

    @staticmethod
    def _validate(config: SessionConfig | Mapping[str, Any]) -> SessionConfig:
        if isinstance(config, SessionConfig):
            return config
        try:
            return SessionConfig.model_validate(config)
        except pydantic.ValidationError as e:
            raise InvalidInputError(
                "Invalid tracking session config",
                details={"errors": e.errors(include_url=False, include_context=False)},
            ) from e
