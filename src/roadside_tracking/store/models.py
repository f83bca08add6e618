"""Canonical order/service-request model used by the tracking core."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from roadside_tracking.models import Coordinate


class OrderKind(str, Enum):
    FUEL = "fuel"
    MECHANIC = "mechanic"


class OrderStatus(str, Enum):
    """Stored order statuses, including the tracking statuses mirrored from sessions."""

    PENDING = "pending"
    PROCESSING = "processing"
    ASSIGNED = "assigned"
    PREPARING = "preparing"
    ON_THE_WAY = "on_the_way"
    ARRIVING = "arriving"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in {OrderStatus.COMPLETED, OrderStatus.CANCELLED}


class Order(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    customer_id: str | None = None
    kind: OrderKind
    status: OrderStatus
    driver_id: str | None = None
    amount: float = Field(default=0.0, ge=0.0)
    created_at: datetime | None = None
    customer_location: Coordinate | None = None
    address: str | None = None
    vehicle_type: str | None = None
    issue_description: str | None = None
    fuel_type: str | None = None
    quantity: float | None = None
