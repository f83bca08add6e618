import pytest

from roadside_tracking.core.exceptions import InvalidInputError, NetworkError
from roadside_tracking.core.retry import RetryConfig, compute_delay, with_retry


@pytest.mark.unit
class TestComputeDelay:
    def test_exponential_growth(self):
        config = RetryConfig(base_delay=1.0, multiplier=2.0, max_delay=30.0)
        assert compute_delay(config, 0) == 1.0
        assert compute_delay(config, 1) == 2.0
        assert compute_delay(config, 2) == 4.0

    def test_capped_at_max_delay(self):
        config = RetryConfig(base_delay=1.0, multiplier=10.0, max_delay=5.0)
        assert compute_delay(config, 3) == 5.0


@pytest.mark.unit
class TestWithRetry:
    async def test_returns_first_success(self):
        calls = []

        async def operation():
            calls.append(1)
            return "ok"

        assert await with_retry(operation, RetryConfig(base_delay=0.0)) == "ok"
        assert len(calls) == 1

    async def test_retries_transient_then_succeeds(self):
        attempts = []
        retried = []

        async def operation():
            attempts.append(1)
            if len(attempts) < 3:
                raise NetworkError("connection reset")
            return 42

        result = await with_retry(
            operation,
            RetryConfig(max_attempts=3, base_delay=0.0),
            on_retry=lambda e, attempt: retried.append(attempt),
        )

        assert result == 42
        assert len(attempts) == 3
        assert retried == [0, 1]

    async def test_raises_after_max_attempts(self):
        attempts = []

        async def operation():
            attempts.append(1)
            raise NetworkError("down")

        with pytest.raises(NetworkError):
            await with_retry(operation, RetryConfig(max_attempts=2, base_delay=0.0))
        assert len(attempts) == 2

    async def test_permanent_error_not_retried(self):
        attempts = []

        async def operation():
            attempts.append(1)
            raise InvalidInputError("bad")

        with pytest.raises(InvalidInputError):
            await with_retry(operation, RetryConfig(max_attempts=5, base_delay=0.0))
        assert len(attempts) == 1
