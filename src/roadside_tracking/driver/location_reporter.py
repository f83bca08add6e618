"""Driver-side location reporting: the producer of the live tracking feed.

While a driver is online, a geolocation watch forwards each position fix
to the order store's driver location record. Writes are best effort: a
failed write is logged and the next fix simply tries again.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol

import pydantic

from roadside_tracking.core.exceptions import TrackingError
from roadside_tracking.models import LocationSample
from roadside_tracking.store.base import OrderStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GeoPosition:
    latitude: float
    longitude: float
    timestamp: datetime
    accuracy_m: float | None = None


@dataclass(frozen=True)
class WatchOptions:
    enable_high_accuracy: bool = True
    timeout_ms: int = 10_000
    maximum_age_ms: int = 5_000


class Geolocation(Protocol):
    def watch_position(
        self,
        on_update: Callable[[GeoPosition], None],
        on_error: Callable[[Exception], None],
        options: WatchOptions,
    ) -> Any: ...

    def clear_watch(self, watch_handle: Any) -> None: ...


class DriverLocationReporter:
    def __init__(
        self,
        store: OrderStore,
        driver_id: str,
        geolocation: Geolocation,
        options: WatchOptions | None = None,
    ) -> None:
        self.store = store
        self.driver_id = driver_id
        self.geolocation = geolocation
        self.options = options or WatchOptions()
        self.last_error: str | None = None
        self.reported = 0
        self._watch_handle: Any = None

    @property
    def is_online(self) -> bool:
        return self._watch_handle is not None

    def set_online(self, online: bool) -> None:
        if online:
            self.start()
        else:
            self.stop()

    def start(self) -> None:
        if self._watch_handle is not None:
            return
        self.last_error = None
        self._watch_handle = self.geolocation.watch_position(
            self._on_position, self._on_error, self.options
        )
        logger.info("Driver %s location tracking started", self.driver_id)

    def stop(self) -> None:
        if self._watch_handle is None:
            return
        self.geolocation.clear_watch(self._watch_handle)
        self._watch_handle = None
        logger.info("Driver %s location tracking stopped", self.driver_id)

    def _on_position(self, position: GeoPosition) -> None:
        try:
            sample = LocationSample(
                lat=position.latitude, lng=position.longitude, timestamp=position.timestamp
            )
            self.store.update_driver_location(self.driver_id, sample)
            self.reported += 1
        except TrackingError as e:
            logger.error("Error updating location for driver %s: %s", self.driver_id, e)
        except pydantic.ValidationError as e:
            logger.warning("Discarding invalid fix for driver %s: %s", self.driver_id, e)

    def _on_error(self, error: Exception) -> None:
        self.last_error = "Unable to retrieve location"
        logger.error("Location error for driver %s: %s", self.driver_id, error)
