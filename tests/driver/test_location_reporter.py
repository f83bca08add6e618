"""Tests for the driver-side location reporter."""

from datetime import UTC, datetime
from unittest.mock import MagicMock

import pytest

from roadside_tracking.core.exceptions import NetworkError
from roadside_tracking.driver.location_reporter import (
    DriverLocationReporter,
    GeoPosition,
    WatchOptions,
)
from roadside_tracking.models import LocationSample

FIX_TIME = datetime(2026, 3, 14, 9, 45, tzinfo=UTC)


class FakeGeolocation:
    """Records watches and lets tests push fixes and errors."""

    def __init__(self) -> None:
        self.watches: dict[int, tuple] = {}
        self.cleared: list[int] = []
        self._next_id = 1

    def watch_position(self, on_update, on_error, options):
        watch_id = self._next_id
        self._next_id += 1
        self.watches[watch_id] = (on_update, on_error, options)
        return watch_id

    def clear_watch(self, watch_handle):
        self.cleared.append(watch_handle)
        self.watches.pop(watch_handle, None)

    def push(self, position: GeoPosition) -> None:
        for on_update, _, _ in list(self.watches.values()):
            on_update(position)

    def fail(self, error: Exception) -> None:
        for _, on_error, _ in list(self.watches.values()):
            on_error(error)


@pytest.fixture
def geolocation() -> FakeGeolocation:
    return FakeGeolocation()


@pytest.fixture
def reporter(order_store, geolocation) -> DriverLocationReporter:
    return DriverLocationReporter(order_store, "driver-7", geolocation)


@pytest.mark.unit
class TestOnlineToggle:
    def test_starts_offline(self, reporter):
        assert not reporter.is_online

    def test_going_online_starts_watch(self, reporter, geolocation):
        reporter.set_online(True)

        assert reporter.is_online
        assert len(geolocation.watches) == 1
        _, _, options = geolocation.watches[1]
        assert options == WatchOptions(
            enable_high_accuracy=True, timeout_ms=10_000, maximum_age_ms=5_000
        )

    def test_going_online_twice_keeps_one_watch(self, reporter, geolocation):
        reporter.set_online(True)
        reporter.set_online(True)
        assert len(geolocation.watches) == 1

    def test_going_offline_clears_watch(self, reporter, geolocation):
        reporter.set_online(True)
        reporter.set_online(False)

        assert not reporter.is_online
        assert geolocation.cleared == [1]
        assert geolocation.watches == {}

    def test_stop_when_offline_is_noop(self, reporter, geolocation):
        reporter.stop()
        assert geolocation.cleared == []


@pytest.mark.unit
class TestReporting:
    def test_fix_written_to_store(self, reporter, geolocation, order_store):
        reporter.start()
        geolocation.push(GeoPosition(latitude=19.08, longitude=72.88, timestamp=FIX_TIME))

        stored = order_store.get_driver_location("driver-7")
        assert stored == LocationSample(lat=19.08, lng=72.88, timestamp=FIX_TIME)
        assert reporter.reported == 1

    def test_fix_reaches_live_subscribers(self, reporter, geolocation, order_store):
        received: list[LocationSample] = []
        order_store.subscribe_to_driver_location("driver-7", received.append)
        reporter.start()
        geolocation.push(GeoPosition(latitude=19.08, longitude=72.88, timestamp=FIX_TIME))

        assert [s.lat for s in received] == [19.08]

    def test_store_failure_is_logged_not_raised(self, geolocation, caplog):
        store = MagicMock()
        store.update_driver_location.side_effect = NetworkError("unreachable")
        reporter = DriverLocationReporter(store, "driver-7", geolocation)
        reporter.start()

        geolocation.push(GeoPosition(latitude=19.08, longitude=72.88, timestamp=FIX_TIME))

        assert reporter.reported == 0
        assert "Error updating location for driver driver-7" in caplog.text

    def test_invalid_fix_discarded(self, reporter, geolocation, order_store):
        reporter.start()
        geolocation.push(GeoPosition(latitude=123.0, longitude=72.88, timestamp=FIX_TIME))

        assert order_store.get_driver_location("driver-7") is None
        assert reporter.reported == 0

    def test_geolocation_error_recorded(self, reporter, geolocation):
        reporter.start()
        geolocation.fail(PermissionError("denied"))

        assert reporter.last_error == "Unable to retrieve location"

    def test_restart_clears_error(self, reporter, geolocation):
        reporter.start()
        geolocation.fail(TimeoutError())
        reporter.stop()
        reporter.start()

        assert reporter.last_error is None
