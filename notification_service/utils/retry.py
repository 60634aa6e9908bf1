"""Retry and backoff utilities.

``RetryStrategy`` computes capped exponential delays with multiplicative
jitter; the delivery Retry Controller and the ``retry`` decorator used by
the HTTP clients share it.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import Any

logger = logging.getLogger(__name__)


class RetryError(Exception):
    """Raised when all retry attempts are exhausted."""

    def __init__(self, last_exception: Exception, attempts: int) -> None:
        self.last_exception = last_exception
        self.attempts = attempts
        super().__init__(f"Failed after {attempts} attempts. Last error: {last_exception}")


class RetryStrategy:
    """Exponential backoff with jitter.

    ``delay(n) = min(initial_delay * exponential_base**n * jitter, max_delay)``
    where ``jitter`` is drawn uniformly from ``jitter_range``. The cap is
    applied after jitter, so no delay ever exceeds ``max_delay``.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        initial_delay: float = 1.0,
        max_delay: float = 60.0,
        exponential_base: float = 2.0,
        jitter: bool = True,
        jitter_range: tuple[float, float] = (1.0, 1.2),
        exceptions: tuple[type[Exception], ...] = (Exception,),
        random_fn: Callable[[], float] = random.random,
    ) -> None:
        """Initialize retry strategy.

        Args:
            max_attempts: Total attempts, the first one included.
            initial_delay: Delay before the first retry.
            max_delay: Ceiling for any single delay.
            exponential_base: Growth factor per retry.
            jitter: Whether to scale delays by a random factor.
            jitter_range: Lower and upper bound of the jitter factor.
            exceptions: Exception types that trigger a retry.
            random_fn: Source of uniform [0, 1) values; injectable for tests.
        """
        self.max_attempts = max_attempts
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.jitter = jitter
        self.jitter_range = jitter_range
        self.exceptions = exceptions
        self._random = random_fn

    def should_retry(self, exception: Exception) -> bool:
        return isinstance(exception, self.exceptions)

    def calculate_delay(self, attempt: int) -> float:
        """Delay before retry number ``attempt + 1`` (``attempt`` is 0-indexed)."""
        delay = self.initial_delay * (self.exponential_base**attempt)
        if self.jitter:
            low, high = self.jitter_range
            delay *= low + (high - low) * self._random()
        return min(delay, self.max_delay)


def retry(
    max_attempts: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
    exceptions: tuple[type[Exception], ...] = (Exception,),
    on_retry: Callable[[Exception, int], None] | None = None,
) -> Callable[[Callable[..., Awaitable[Any]]], Callable[..., Awaitable[Any]]]:
    """Decorator for retrying async functions with exponential backoff.

    Example:
        @retry(max_attempts=3, exceptions=(httpx.TimeoutException, httpx.NetworkError))
        async def post(self, path: str, json: dict) -> httpx.Response:
            ...
    """
    strategy = RetryStrategy(
        max_attempts=max_attempts,
        initial_delay=initial_delay,
        max_delay=max_delay,
        exponential_base=exponential_base,
        jitter=jitter,
        exceptions=exceptions,
    )

    def decorator(func: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            for attempt in range(max_attempts):
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    if not strategy.should_retry(e):
                        raise

                    if attempt >= max_attempts - 1:
                        logger.error(
                            f"All retry attempts exhausted for {func.__name__}",
                            extra={
                                "function": func.__name__,
                                "attempts": max_attempts,
                                "last_exception": str(e),
                            },
                        )
                        raise RetryError(e, max_attempts) from e

                    delay = strategy.calculate_delay(attempt)
                    logger.warning(
                        f"Retrying {func.__name__} after {delay:.2f}s (attempt {attempt + 1}/{max_attempts})",
                        extra={
                            "function": func.__name__,
                            "attempt": attempt + 1,
                            "max_attempts": max_attempts,
                            "delay": delay,
                            "exception": str(e),
                        },
                    )
                    if on_retry:
                        on_retry(e, attempt + 1)
                    await asyncio.sleep(delay)

            msg = "Retry loop exited without a result"
            raise RuntimeError(msg)

        return wrapper

    return decorator
