"""Redis-backed order store with pub/sub change notifications.

Orders live as JSON documents under ``order:{id}``; each driver's latest
reported position lives under ``driver:{id}:location``. Every write is
also published on a per-entity channel. Notifications are pulled by
``poll()``, normally from a SimPy process started with ``attach()``, so
subscriber callbacks run on the simulation thread.
"""

import json
import logging
from collections import defaultdict
from collections.abc import Callable, Generator, Mapping
from dataclasses import dataclass
from typing import Any

import pydantic
import redis
import simpy
from redis.exceptions import ConnectionError, WatchError

from roadside_tracking.core.exceptions import (
    InvalidInputError,
    NetworkError,
    NotFoundError,
    SubscriptionFailure,
    WriteConflictError,
)
from roadside_tracking.models import LocationSample
from roadside_tracking.settings import RedisSettings
from roadside_tracking.store.base import ErrorCallback, Unsubscribe
from roadside_tracking.store.models import Order, OrderStatus
from roadside_tracking.store.normalization import normalize_order

logger = logging.getLogger(__name__)

ORDER_KEY = "order:{order_id}"
DRIVER_LOCATION_KEY = "driver:{driver_id}:location"
ORDER_CHANNEL = "order-updates:{order_id}"
DRIVER_LOCATION_CHANNEL = "driver-location:{driver_id}"


@dataclass
class _Subscription:
    on_message: Callable[[str], None]
    on_error: ErrorCallback | None


class RedisOrderStore:
    """Synchronous Redis order store.

    Uses the sync Redis client so it can be called from SimPy processes
    without an asyncio loop.
    """

    def __init__(self, client: "redis.Redis[str]", poll_interval: float = 0.5):
        self._client = client
        self.poll_interval = poll_interval
        self._pubsub: Any = None
        self._subscriptions: dict[str, list[_Subscription]] = defaultdict(list)

    @classmethod
    def from_settings(cls, settings: RedisSettings) -> "RedisOrderStore":
        return cls(
            redis.Redis(
                host=settings.host,
                port=settings.port,
                db=settings.db,
                password=settings.password or None,
                ssl=settings.ssl,
                decode_responses=True,
            ),
            poll_interval=settings.poll_interval_seconds,
        )

    # -- orders ------------------------------------------------------------

    def insert_order(self, document: Mapping[str, Any], order_id: str) -> Order:
        order = normalize_order(document, order_id=order_id)
        try:
            self._client.set(ORDER_KEY.format(order_id=order_id), json.dumps(dict(document)))
        except ConnectionError as e:
            raise NetworkError(f"Failed to store order {order_id}: {e}") from e
        return order

    def get_order(self, order_id: str) -> Order:
        try:
            raw = self._client.get(ORDER_KEY.format(order_id=order_id))
        except ConnectionError as e:
            raise NetworkError(f"Failed to read order {order_id}: {e}") from e
        if raw is None:
            raise NotFoundError(f"Order {order_id} not found", details={"order_id": order_id})
        return normalize_order(json.loads(raw), order_id=order_id)

    def update_order_status(
        self,
        order_id: str,
        status: OrderStatus,
        fields: Mapping[str, Any] | None = None,
        expected_status: OrderStatus | None = None,
    ) -> Order:
        key = ORDER_KEY.format(order_id=order_id)
        try:
            with self._client.pipeline() as pipe:
                pipe.watch(key)
                raw = pipe.get(key)
                if raw is None:
                    raise NotFoundError(
                        f"Order {order_id} not found", details={"order_id": order_id}
                    )

                document = json.loads(raw)
                current = normalize_order(document, order_id=order_id)
                if expected_status is not None and current.status != expected_status:
                    raise WriteConflictError(
                        f"Order {order_id} is {current.status.value}, "
                        f"expected {expected_status.value}",
                        details={
                            "order_id": order_id,
                            "current": current.status.value,
                            "expected": expected_status.value,
                        },
                    )

                document.update(fields or {})
                document["status"] = status.value
                order = normalize_order(document, order_id=order_id)
                payload = json.dumps(document)

                pipe.multi()
                pipe.set(key, payload)
                pipe.publish(ORDER_CHANNEL.format(order_id=order_id), payload)
                pipe.execute()
        except WatchError as e:
            raise WriteConflictError(
                f"Order {order_id} was modified concurrently", details={"order_id": order_id}
            ) from e
        except ConnectionError as e:
            raise NetworkError(f"Failed to update order {order_id}: {e}") from e

        logger.info("Order %s status -> %s", order_id, status.value)
        return order

    # -- driver locations --------------------------------------------------

    def update_driver_location(self, driver_id: str, sample: LocationSample) -> None:
        payload = json.dumps(sample.to_record())
        try:
            with self._client.pipeline(transaction=False) as pipe:
                pipe.set(DRIVER_LOCATION_KEY.format(driver_id=driver_id), payload)
                pipe.publish(DRIVER_LOCATION_CHANNEL.format(driver_id=driver_id), payload)
                pipe.execute()
        except ConnectionError as e:
            raise NetworkError(f"Failed to store location for driver {driver_id}: {e}") from e

    def subscribe_to_driver_location(
        self,
        driver_id: str,
        on_change: Callable[[LocationSample], None],
        on_error: ErrorCallback | None = None,
    ) -> Unsubscribe:
        def handle(data: str) -> None:
            on_change(LocationSample.model_validate(json.loads(data)))

        unsubscribe = self._subscribe(
            DRIVER_LOCATION_CHANNEL.format(driver_id=driver_id), handle, on_error
        )

        try:
            current = self._client.get(DRIVER_LOCATION_KEY.format(driver_id=driver_id))
        except ConnectionError as e:
            unsubscribe()
            raise SubscriptionFailure(
                f"Could not read location for driver {driver_id}: {e}",
                details={"driver_id": driver_id},
            ) from e
        if current is not None:
            self._deliver(handle, current, DRIVER_LOCATION_CHANNEL.format(driver_id=driver_id))
        return unsubscribe

    def subscribe_to_order(
        self,
        order_id: str,
        on_change: Callable[[Order], None],
        on_error: ErrorCallback | None = None,
    ) -> Unsubscribe:
        def handle(data: str) -> None:
            on_change(normalize_order(json.loads(data), order_id=order_id))

        return self._subscribe(ORDER_CHANNEL.format(order_id=order_id), handle, on_error)

    # -- pub/sub plumbing --------------------------------------------------

    def _subscribe(
        self, channel: str, on_message: Callable[[str], None], on_error: ErrorCallback | None
    ) -> Unsubscribe:
        subscription = _Subscription(on_message=on_message, on_error=on_error)
        try:
            if self._pubsub is None:
                self._pubsub = self._client.pubsub(ignore_subscribe_messages=True)
            if channel not in self._subscriptions:
                self._pubsub.subscribe(channel)
        except ConnectionError as e:
            raise SubscriptionFailure(
                f"Could not subscribe to {channel}: {e}", details={"channel": channel}
            ) from e

        self._subscriptions[channel].append(subscription)
        logger.debug("Subscribed to %s", channel)

        def unsubscribe() -> None:
            subscribers = self._subscriptions.get(channel)
            if not subscribers or subscription not in subscribers:
                return
            subscribers.remove(subscription)
            if not subscribers:
                del self._subscriptions[channel]
                try:
                    self._pubsub.unsubscribe(channel)
                except ConnectionError as e:
                    logger.warning("Failed to unsubscribe from %s: %s", channel, e)

        return unsubscribe

    def poll(self) -> int:
        """Deliver pending notifications; returns how many messages were handled."""
        if self._pubsub is None or not self._subscriptions:
            return 0

        handled = 0
        try:
            while True:
                message = self._pubsub.get_message(timeout=0.0)
                if message is None:
                    break
                if message.get("type") != "message":
                    continue
                channel = message["channel"]
                if isinstance(channel, bytes):
                    channel = channel.decode("utf-8")
                for subscription in list(self._subscriptions.get(channel, ())):
                    self._deliver(subscription.on_message, message["data"], channel)
                handled += 1
        except ConnectionError as e:
            logger.error("Redis pub/sub connection lost: %s", e)
            failure = SubscriptionFailure(f"Live feed connection lost: {e}")
            for subscriptions in list(self._subscriptions.values()):
                for subscription in subscriptions:
                    if subscription.on_error is not None:
                        subscription.on_error(failure)
        return handled

    def _deliver(self, handler: Callable[[str], None], data: Any, channel: str) -> None:
        if isinstance(data, bytes):
            data = data.decode("utf-8")
        try:
            handler(data)
        except (json.JSONDecodeError, pydantic.ValidationError, InvalidInputError) as e:
            logger.warning("Invalid payload on %s: %s", channel, e)

    def attach(self, env: simpy.Environment, poll_interval: float | None = None) -> simpy.Process:
        """Start a SimPy process that polls for notifications every ``poll_interval``.

        Defaults to the interval the store was built with.
        """
        interval = self.poll_interval if poll_interval is None else poll_interval
        return env.process(self._poll_loop(env, interval))

    def _poll_loop(self, env: simpy.Environment, poll_interval: float) -> Generator[simpy.Event]:
        while True:
            self.poll()
            yield env.timeout(poll_interval)

    def close(self) -> None:
        if self._pubsub is not None:
            self._pubsub.close()
            self._pubsub = None
        self._subscriptions.clear()
        self._client.close()
