"""Unit tests for the retry utility."""
from __future__ import annotations

import pytest

from feed_pagination.core.exceptions import NetworkError, ServerError
from feed_pagination.core.settings import HttpSourceSettings
from feed_pagination.utils.retry import RetryExhaustedError, RetryPolicy, is_retryable, retry

FAST = RetryPolicy(max_attempts=3, initial_delay=0.01, jitter=False)


@pytest.mark.unit
class TestRetryDecorator:
    """Test suite for retry decorator."""

    async def test_retry_succeeds_first_attempt(self):
        """Test that retry decorator doesn't retry on success."""
        call_count = 0

        @retry(FAST)
        async def successful_func():
            nonlocal call_count
            call_count += 1
            return "success"

        result = await successful_func()
        assert result == "success"
        assert call_count == 1

    async def test_retry_succeeds_after_retries(self):
        """Test that retryable feed errors are retried until success."""
        call_count = 0

        @retry(FAST)
        async def eventually_successful():
            nonlocal call_count
            call_count += 1
            if call_count < 3:
                raise NetworkError("Not yet")
            return "success"

        result = await eventually_successful()
        assert result == "success"
        assert call_count == 3

    async def test_last_error_reraised_by_default(self):
        """Test that the original error surfaces once attempts run out."""
        call_count = 0

        @retry(FAST)
        async def always_fails():
            nonlocal call_count
            call_count += 1
            raise NetworkError("offline")

        with pytest.raises(NetworkError, match="offline"):
            await always_fails()

        assert call_count == 3

    async def test_wrapped_error_when_reraise_off(self):
        """Test that RetryExhaustedError carries the last failure and statistics."""

        @retry(FAST, operation="fetch_page", reraise=False)
        async def always_fails():
            raise NetworkError("offline")

        with pytest.raises(RetryExhaustedError) as exc_info:
            await always_fails()

        error = exc_info.value
        assert isinstance(error.last_exception, NetworkError)
        assert error.operation == "fetch_page"
        assert error.statistics.attempts == 3
        assert error.statistics.errors == ["NetworkError"] * 3
        assert error.retryable is False
        assert "after 3 attempts" in error.detail

    async def test_non_retryable_errors_fail_immediately(self):
        """Test that client errors and plain exceptions are not retried."""
        call_count = 0

        @retry(FAST)
        async def client_error():
            nonlocal call_count
            call_count += 1
            raise ServerError("Upstream returned 404", status_code=404)

        with pytest.raises(ServerError):
            await client_error()

        assert call_count == 1

    async def test_custom_predicate(self):
        """Test that retry_if selects what gets retried."""
        call_count = 0
        policy = RetryPolicy(max_attempts=2, initial_delay=0.0, retry_if=lambda e: isinstance(e, ValueError))

        @retry(policy)
        async def flaky():
            nonlocal call_count
            call_count += 1
            raise ValueError("flaky")

        with pytest.raises(ValueError):
            await flaky()

        assert call_count == 2

    async def test_on_retry_callback(self):
        """Test that the callback sees every retried attempt."""
        seen = []

        @retry(FAST, on_retry=lambda e, n: seen.append((str(e), n)))
        async def always_fails():
            raise NetworkError("offline")

        with pytest.raises(NetworkError):
            await always_fails()

        assert seen == [("offline", 1), ("offline", 2)]

    async def test_preserves_function_name(self):
        @retry()
        async def fetch_page():
            return None

        assert fetch_page.__name__ == "fetch_page"


@pytest.mark.unit
class TestRetryPolicy:
    """Test suite for backoff calculation."""

    def test_exponential_delay_capped(self):
        policy = RetryPolicy(initial_delay=1.0, max_delay=5.0, jitter=False)

        assert [policy.delay_for(n) for n in range(4)] == [1.0, 2.0, 4.0, 5.0]

    def test_jitter_stays_in_range(self):
        policy = RetryPolicy(initial_delay=1.0, jitter=True, jitter_range=(0.5, 1.5))

        for _ in range(20):
            assert 0.5 <= policy.delay_for(0) <= 1.5

    def test_should_retry_respects_attempts(self):
        policy = RetryPolicy(max_attempts=2)

        assert policy.should_retry(NetworkError("offline"), 1) is True
        assert policy.should_retry(NetworkError("offline"), 2) is False

    @pytest.mark.parametrize("kwargs", [{"max_attempts": 0}, {"initial_delay": -1.0}])
    def test_invalid_policy(self, kwargs):
        with pytest.raises(ValueError):
            RetryPolicy(**kwargs)

    def test_from_settings(self):
        settings = HttpSourceSettings(max_retries=5, retry_initial_delay=0.25, retry_max_delay=4.0)

        policy = RetryPolicy.from_settings(settings)

        assert (policy.max_attempts, policy.initial_delay, policy.max_delay) == (5, 0.25, 4.0)

    @pytest.mark.parametrize(
        ("exception", "expected"),
        [
            (NetworkError("offline"), True),
            (ServerError("503", status_code=503, retryable=True), True),
            (ServerError("400", status_code=400), False),
            (ValueError("bad"), False),
        ],
    )
    def test_is_retryable(self, exception, expected):
        assert is_retryable(exception) is expected
