from datetime import UTC, datetime, timedelta

import simpy


class TimeManager:
    """Maps SimPy seconds onto wall-clock timestamps."""

    def __init__(self, env: simpy.Environment, start_time: datetime | None = None):
        self._env = env
        self._start_time = (start_time or datetime.now(UTC)).astimezone(UTC)

    @property
    def start_time(self) -> datetime:
        return self._start_time

    def current_time(self) -> datetime:
        """Convert SimPy now to datetime."""
        return self._start_time + timedelta(seconds=self._env.now)

