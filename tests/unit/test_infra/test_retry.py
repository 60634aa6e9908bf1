"""Unit tests for the retry decorator and backoff strategy."""
from __future__ import annotations

import pytest

from notification_service.utils.retry import RetryError, RetryStrategy, retry


@pytest.mark.unit
class TestRetryDecorator:
    """Test suite for retry decorator."""

    @pytest.mark.asyncio
    async def test_retry_succeeds_first_attempt(self):
        """Test that retry decorator doesn't retry on success."""
        call_count = 0

        @retry(max_attempts=3)
        async def successful_func():
            nonlocal call_count
            call_count += 1
            return "success"

        result = await successful_func()
        assert result == "success"
        assert call_count == 1

    @pytest.mark.asyncio
    async def test_retry_succeeds_after_retries(self):
        """Test that retry decorator retries until success."""
        call_count = 0
        retried: list[int] = []

        @retry(max_attempts=3, initial_delay=0.01, on_retry=lambda _e, attempt: retried.append(attempt))
        async def eventually_successful():
            nonlocal call_count
            call_count += 1
            if call_count < 3:
                raise ValueError("Not yet")
            return "success"

        result = await eventually_successful()
        assert result == "success"
        assert call_count == 3
        assert retried == [1, 2]

    @pytest.mark.asyncio
    async def test_retry_fails_after_max_attempts(self):
        """Test that retry raises RetryError after max attempts."""
        call_count = 0

        @retry(max_attempts=3, initial_delay=0.01)
        async def always_fails():
            nonlocal call_count
            call_count += 1
            raise ValueError("Always fails")

        with pytest.raises(RetryError) as exc_info:
            await always_fails()

        assert call_count == 3
        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.last_exception, ValueError)
        assert "after 3 attempts" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_retry_only_retries_specified_exceptions(self):
        """Test that retry only retries specified exception types."""
        call_count = 0

        @retry(max_attempts=3, initial_delay=0.01, exceptions=(ValueError,))
        async def raises_type_error():
            nonlocal call_count
            call_count += 1
            raise TypeError("Not retryable")

        with pytest.raises(TypeError):
            await raises_type_error()

        assert call_count == 1


@pytest.mark.unit
class TestRetryStrategy:
    """Test suite for backoff delay calculation."""

    def test_exponential_without_jitter(self):
        strategy = RetryStrategy(initial_delay=1.0, max_delay=100.0, jitter=False)

        assert [strategy.calculate_delay(n) for n in range(4)] == [1.0, 2.0, 4.0, 8.0]

    def test_jitter_scales_within_range(self):
        strategy = RetryStrategy(initial_delay=10.0, jitter_range=(1.0, 1.2), random_fn=lambda: 1.0)

        assert strategy.calculate_delay(0) == pytest.approx(12.0)

    def test_cap_applies_after_jitter(self):
        strategy = RetryStrategy(initial_delay=10.0, max_delay=15.0, random_fn=lambda: 0.99)

        assert strategy.calculate_delay(1) == 15.0

    def test_should_retry_filters_by_type(self):
        strategy = RetryStrategy(exceptions=(ConnectionError,))

        assert strategy.should_retry(ConnectionError()) is True
        assert strategy.should_retry(ValueError()) is False
