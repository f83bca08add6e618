"""Tracking domain models."""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class Coordinate(BaseModel):
    """WGS84 point. Accepts ``lat``/``lng`` as input aliases."""

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(ge=-90.0, le=90.0, validation_alias=AliasChoices("latitude", "lat"))
    longitude: float = Field(
        ge=-180.0, le=180.0, validation_alias=AliasChoices("longitude", "lng", "lon")
    )

    def as_tuple(self) -> tuple[float, float]:
        return self.latitude, self.longitude


class TrackingStatus(str, Enum):
    """Tracking lifecycle states."""

    PREPARING = "preparing"
    ON_THE_WAY = "on_the_way"
    ARRIVING = "arriving"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in {TrackingStatus.COMPLETED, TrackingStatus.CANCELLED}


class ProviderLocation(BaseModel):
    model_config = ConfigDict(frozen=True)

    position: Coordinate
    heading: float = Field(ge=0.0, lt=360.0)
    speed_kmh: float = Field(ge=0.0)
    observed_at: datetime


class TrackingUpdate(BaseModel):
    """Observable session state delivered to update callbacks."""

    model_config = ConfigDict(frozen=True)

    session_id: str
    status: TrackingStatus
    provider_location: ProviderLocation | None = None
    distance_km: float | None = None
    eta_minutes: int | None = None
    # Display-only waypoints (start, interior points, customer)
    route: tuple[Coordinate, ...] = ()
    # 1-based movement tick for simulated movement updates
    step: int | None = None
    error: str | None = None


class TerminalEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    session_id: str
    status: TrackingStatus
    occurred_at: datetime


class SessionConfig(BaseModel):
    """Inputs for starting a tracking session.

    Keys may be given in snake_case or camelCase (``customerLocation``,
    ``providerDisplayName``...). A present ``driver_id`` selects live-feed mode.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    customer_location: Coordinate
    provider_display_name: str = Field(min_length=1)
    provider_contact_phone: str | None = None
    estimated_minutes: float | None = Field(default=None, gt=0)
    driver_id: str | None = Field(default=None, min_length=1)
    order_id: str | None = Field(default=None, min_length=1)
    customer_id: str | None = None

    @field_validator("provider_display_name")
    @classmethod
    def strip_display_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("provider_display_name must not be blank")
        return v

    @property
    def is_live(self) -> bool:
        return self.driver_id is not None


class LocationSample(BaseModel):
    """Driver location record as written by the driver-side reporter.

    ``timestamp`` is epoch milliseconds on the wire; datetimes and ISO
    strings are accepted too.
    """

    model_config = ConfigDict(frozen=True)

    lat: float = Field(ge=-90.0, le=90.0)
    lng: float = Field(ge=-180.0, le=180.0)
    timestamp: datetime

    @field_validator("timestamp", mode="before")
    @classmethod
    def parse_epoch_millis(cls, v: Any) -> Any:
        if isinstance(v, bool):
            raise ValueError("timestamp must be epoch milliseconds or a datetime")
        if isinstance(v, int | float):
            return datetime.fromtimestamp(v / 1000.0, tz=UTC)
        return v

    @field_validator("timestamp")
    @classmethod
    def ensure_aware(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(latitude=self.lat, longitude=self.lng)

    def to_record(self) -> dict[str, Any]:
        """Serialize to the stored ``currentLocation`` shape."""
        return {
            "lat": self.lat,
            "lng": self.lng,
            "timestamp": round(self.timestamp.timestamp() * 1000),
        }
