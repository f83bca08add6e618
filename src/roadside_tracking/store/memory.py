"""Dictionary-backed order store for tests, demos and single-process use."""

import logging
import uuid
from collections import defaultdict
from collections.abc import Callable, Mapping
from typing import Any

from roadside_tracking.core.exceptions import NotFoundError, WriteConflictError
from roadside_tracking.models import LocationSample
from roadside_tracking.store.base import ErrorCallback, Unsubscribe
from roadside_tracking.store.models import Order, OrderStatus
from roadside_tracking.store.normalization import normalize_order

logger = logging.getLogger(__name__)


class InMemoryOrderStore:
    """Keeps raw documents and fans changes out to subscribers synchronously.

    Subscribing delivers the current record immediately when one exists,
    mirroring document-store snapshot listeners.
    """

    def __init__(self) -> None:
        self._orders: dict[str, dict[str, Any]] = {}
        self._driver_locations: dict[str, LocationSample] = {}
        self._location_subscribers: dict[str, list[Callable[[LocationSample], None]]] = (
            defaultdict(list)
        )
        self._order_subscribers: dict[str, list[Callable[[Order], None]]] = defaultdict(list)

    def insert_order(self, document: Mapping[str, Any], order_id: str | None = None) -> Order:
        """Store a raw document (any known field variant) and return it normalized."""
        doc_id = order_id or document.get("id") or str(uuid.uuid4())
        order = normalize_order(document, order_id=str(doc_id))
        self._orders[order.id] = dict(document)
        logger.debug("Inserted order %s (%s)", order.id, order.kind.value)
        return order

    def get_order(self, order_id: str) -> Order:
        document = self._orders.get(order_id)
        if document is None:
            raise NotFoundError(f"Order {order_id} not found", details={"order_id": order_id})
        return normalize_order(document, order_id=order_id)

    def update_order_status(
        self,
        order_id: str,
        status: OrderStatus,
        fields: Mapping[str, Any] | None = None,
        expected_status: OrderStatus | None = None,
    ) -> Order:
        current = self.get_order(order_id)
        if expected_status is not None and current.status != expected_status:
            raise WriteConflictError(
                f"Order {order_id} is {current.status.value}, expected {expected_status.value}",
                details={
                    "order_id": order_id,
                    "current": current.status.value,
                    "expected": expected_status.value,
                },
            )

        document = dict(self._orders[order_id])
        document.update(fields or {})
        document["status"] = status.value
        order = normalize_order(document, order_id=order_id)
        self._orders[order_id] = document
        logger.info("Order %s status %s -> %s", order_id, current.status.value, status.value)

        for callback in list(self._order_subscribers.get(order_id, ())):
            callback(order)
        return order

    def update_driver_location(self, driver_id: str, sample: LocationSample) -> None:
        self._driver_locations[driver_id] = sample
        for callback in list(self._location_subscribers.get(driver_id, ())):
            callback(sample)

    def get_driver_location(self, driver_id: str) -> LocationSample | None:
        return self._driver_locations.get(driver_id)

    def subscribe_to_driver_location(
        self,
        driver_id: str,
        on_change: Callable[[LocationSample], None],
        on_error: ErrorCallback | None = None,
    ) -> Unsubscribe:
        self._location_subscribers[driver_id].append(on_change)
        current = self._driver_locations.get(driver_id)
        if current is not None:
            on_change(current)

        def unsubscribe() -> None:
            subscribers = self._location_subscribers.get(driver_id, [])
            if on_change in subscribers:
                subscribers.remove(on_change)

        return unsubscribe

    def subscribe_to_order(
        self,
        order_id: str,
        on_change: Callable[[Order], None],
        on_error: ErrorCallback | None = None,
    ) -> Unsubscribe:
        self._order_subscribers[order_id].append(on_change)

        def unsubscribe() -> None:
            subscribers = self._order_subscribers.get(order_id, [])
            if on_change in subscribers:
                subscribers.remove(on_change)

        return unsubscribe

    def subscriber_count(self, driver_id: str | None = None, order_id: str | None = None) -> int:
        if driver_id is not None:
            return len(self._location_subscribers.get(driver_id, ()))
        if order_id is not None:
            return len(self._order_subscribers.get(order_id, ()))
        return sum(len(v) for v in self._location_subscribers.values()) + sum(
            len(v) for v in self._order_subscribers.values()
        )
