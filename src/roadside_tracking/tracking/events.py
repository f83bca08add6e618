"""Inbound events applied by TrackingSession.handle_event."""

from dataclasses import dataclass

from roadside_tracking.models import LocationSample
from roadside_tracking.store.models import OrderStatus


@dataclass(frozen=True)
class DispatchStarted:
    """Preparation finished; the provider sets off."""


@dataclass(frozen=True)
class MovementTick:
    step: int


@dataclass(frozen=True)
class LocationReported:
    sample: LocationSample


@dataclass(frozen=True)
class OrderStatusChanged:
    status: OrderStatus


@dataclass(frozen=True)
class SubscriptionLost:
    reason: str


@dataclass(frozen=True)
class CancelRequested:
    reason: str | None = None


@dataclass(frozen=True)
class CompleteRequested:
    pass


TrackingEvent = (
    DispatchStarted
    | MovementTick
    | LocationReported
    | OrderStatusChanged
    | SubscriptionLost
    | CancelRequested
    | CompleteRequested
)
