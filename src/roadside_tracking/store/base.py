"""Order store boundary consumed by the tracking core."""

from collections.abc import Callable, Mapping
from typing import Any, Protocol

from roadside_tracking.models import LocationSample
from roadside_tracking.store.models import Order, OrderStatus

Unsubscribe = Callable[[], None]
ErrorCallback = Callable[[Exception], None]


class OrderStore(Protocol):
    """Persistence for order documents and driver location records.

    Implementations hand the core canonical ``Order`` and ``LocationSample``
    objects only; raw documents are normalized at this boundary.
    """

    def get_order(self, order_id: str) -> Order:
        """Return the order or raise NotFoundError."""
        ...

    def update_order_status(
        self,
        order_id: str,
        status: OrderStatus,
        fields: Mapping[str, Any] | None = None,
        expected_status: OrderStatus | None = None,
    ) -> Order:
        """Write a new status (and extra fields).

        Raises NotFoundError for unknown orders and WriteConflictError when
        ``expected_status`` no longer matches or a concurrent write won.
        """
        ...

    def update_driver_location(self, driver_id: str, sample: LocationSample) -> None: ...

    def subscribe_to_driver_location(
        self,
        driver_id: str,
        on_change: Callable[[LocationSample], None],
        on_error: ErrorCallback | None = None,
    ) -> Unsubscribe: ...

    def subscribe_to_order(
        self,
        order_id: str,
        on_change: Callable[[Order], None],
        on_error: ErrorCallback | None = None,
    ) -> Unsubscribe: ...
