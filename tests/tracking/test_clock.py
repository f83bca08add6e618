from datetime import UTC, datetime, timedelta, timezone

import pytest
import simpy

from roadside_tracking.tracking.clock import TimeManager


@pytest.mark.unit
class TestTimeManager:
    def test_current_time_follows_env(self):
        env = simpy.Environment()
        start = datetime(2026, 3, 14, 9, 30, tzinfo=UTC)
        clock = TimeManager(env, start_time=start)

        env.run(until=90)

        assert clock.current_time() == start + timedelta(seconds=90)

    def test_start_time_normalized_to_utc(self):
        ist = timezone(timedelta(hours=5, minutes=30))
        clock = TimeManager(simpy.Environment(), start_time=datetime(2026, 3, 14, 15, 0, tzinfo=ist))

        assert clock.start_time == datetime(2026, 3, 14, 9, 30, tzinfo=UTC)
        assert clock.start_time.tzinfo == UTC

    def test_defaults_to_now_utc(self):
        clock = TimeManager(simpy.Environment())
        assert clock.start_time.tzinfo == UTC
        assert abs(datetime.now(UTC) - clock.start_time) < timedelta(seconds=5)
