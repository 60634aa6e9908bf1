"""Retry Controller.

Owns a (notification, channel) pair from the moment its first attempt fails
transiently until the channel reaches a terminal outcome: success,
permanent failure, exhausted attempts or expiry. Only one task per pair
exists at a time, so two attempts on the same channel never overlap.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import TYPE_CHECKING

from notification_service.core.database import RepositoryError, as_utc, utcnow
from notification_service.core.results import ErrorKind
from notification_service.features.notifications.delivery import attempt_delivery, outcome_patch
from notification_service.features.notifications.metrics import (
    notification_retry_exhausted_total,
    notification_retry_total,
    notifications_errors_total,
)
from notification_service.features.notifications.store import ChannelPatch
from notification_service.infra.logging import get_lazy_logger
from notification_service.utils.retry import RetryStrategy

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from datetime import datetime

    from notification_service.core.settings import NotificationSettings
    from notification_service.features.notifications.channels import ChannelRegistry
    from notification_service.features.notifications.models import Channel
    from notification_service.features.notifications.store import DeliveryRecordStore
    from notification_service.features.notifications.templates import RenderedPayload

logger = logging.getLogger(__name__)
lazy_logger = get_lazy_logger(__name__)

# Upper bound of the multiplicative jitter (0 to 20 %)
JITTER_RATIO = 0.2


@dataclass(frozen=True, slots=True)
class RetryJob:
    """A channel handed over for retrying.

    Attributes:
        payload: The rendered payload of the first attempt, resent unchanged
        channel: Channel to retry
        attempts_made: Attempts already spent on this channel
        expires_at: Record expiry; reaching it cancels further attempts
        durable: Whether a stored record tracks this channel
    """

    payload: RenderedPayload
    channel: Channel
    attempts_made: int
    expires_at: datetime | None = None
    durable: bool = True

    @property
    def key(self) -> tuple[str, Channel]:
        return (self.payload.notification_id, self.channel)


class RetryController:
    """Schedule backoff retries as owned asyncio tasks.

    Example:
        retries = RetryController(store, registry, settings)
        retries.schedule(RetryJob(payload, Channel.EMAIL, attempts_made=1, expires_at=expiry))
        await retries.drain()
    """

    def __init__(
        self,
        store: DeliveryRecordStore,
        registry: ChannelRegistry,
        settings: NotificationSettings,
        *,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
        random_fn: Callable[[], float] = random.random,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._registry = registry
        self._settings = settings
        self._sleep = sleep
        self._backoff = RetryStrategy(
            max_attempts=settings.max_retry_attempts,
            initial_delay=settings.retry_delay_ms,
            max_delay=settings.retry_max_delay_ms,
            jitter_range=(1.0, 1.0 + JITTER_RATIO),
            random_fn=random_fn,
        )
        self._clock = clock
        self._inflight: dict[tuple[str, Channel], asyncio.Task[None]] = {}
        self._closed = False

    @property
    def max_attempts(self) -> int:
        return self._settings.max_retry_attempts

    @property
    def in_flight(self) -> int:
        return len(self._inflight)

    def is_scheduled(self, notification_id: str, channel: Channel) -> bool:
        return (notification_id, channel) in self._inflight

    def backoff_ms(self, attempts_made: int) -> float:
        """Delay before the next attempt: ``base * 2^(n-1)`` plus 0 to 20 % jitter, capped."""
        return self._backoff.calculate_delay(max(attempts_made, 1) - 1)

    def schedule(self, job: RetryJob, *, delay_ms: float | None = None) -> bool:
        """Take ownership of ``job``; False if the pair is already owned or shutting down.

        ``delay_ms`` overrides the backoff before the first retry (admin
        resend uses 0).
        """
        if self._closed:
            logger.warning(
                f"Retry for {job.key[0]}/{job.channel} refused: controller is shut down",
                extra={"notification_id": job.key[0], "channel": job.channel.value, "operation": "retry.schedule"},
            )
            return False
        if job.key in self._inflight:
            lazy_logger.debug(lambda: f"retry.schedule: {job.key} already owned")
            return False

        task = asyncio.create_task(self._run(job, delay_ms), name=f"retry:{job.key[0]}:{job.channel.value}")
        self._inflight[job.key] = task
        task.add_done_callback(lambda _t, key=job.key: self._inflight.pop(key, None))
        return True

    async def drain(self) -> None:
        """Wait until every owned retry reaches a terminal outcome."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight.values()), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel every owned retry; records keep their last persisted state."""
        self._closed = True
        tasks = list(self._inflight.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info(
                f"Cancelled {len(tasks)} pending retries",
                extra={"count": len(tasks), "operation": "retry.shutdown"},
            )

    def _expired(self, job: RetryJob) -> bool:
        return job.expires_at is not None and as_utc(job.expires_at) <= self._clock()

    async def _run(self, job: RetryJob, delay_ms: float | None) -> None:
        try:
            await self._retry_loop(job, delay_ms)
        except RepositoryError as e:
            logger.error(
                f"Retry of {job.key[0]}/{job.channel} stopped by a store failure: {e}",
                extra={"notification_id": job.key[0], "channel": job.channel.value, "operation": "retry.run"},
            )

    async def _retry_loop(self, job: RetryJob, delay_ms: float | None) -> None:
        notification_id = job.payload.notification_id
        channel = job.channel.value
        log_extra = {"notification_id": notification_id, "channel": channel, "operation": "retry.run"}

        driver = self._registry.get(job.channel)
        if driver is None:
            logger.error(f"No driver registered for {channel}, dropping retry", extra=log_extra)
            return

        attempts = job.attempts_made
        while attempts < self.max_attempts:
            wait_ms = delay_ms if delay_ms is not None else self.backoff_ms(attempts)
            delay_ms = None
            lazy_logger.debug(lambda w=wait_ms: f"retry.wait: {notification_id}/{channel} for {w:.0f}ms")
            await self._sleep(wait_ms / 1000)

            if self._expired(job):
                notifications_errors_total.labels(channel=channel, kind=ErrorKind.EXPIRED.value).inc()
                logger.info(f"Notification {notification_id} expired before retrying {channel}", extra=log_extra)
                if job.durable:
                    await self._store.update_channel(notification_id, job.channel, ChannelPatch.expired())
                return

            notification_retry_total.labels(channel=channel).inc()
            if job.durable:
                counted = await self._store.increment_attempt(notification_id)
                if not counted.is_ok:
                    logger.info(f"Notification {notification_id} is gone, abandoning {channel} retry", extra=log_extra)
                    return

            result = await attempt_delivery(driver, job.payload.user_id, job.payload)
            attempts += 1
            final_attempt = attempts >= self.max_attempts

            if job.durable:
                written = await self._store.update_channel(
                    notification_id,
                    job.channel,
                    outcome_patch(result, final_attempt=final_attempt),
                )
                if not written.is_ok:
                    logger.info(f"Notification {notification_id} is gone, abandoning {channel} retry", extra=log_extra)
                    return

            if result.is_ok:
                logger.info(
                    f"Retry {attempts}/{self.max_attempts} delivered {notification_id} via {channel}",
                    extra={**log_extra, "attempt": attempts},
                )
                return
            if not result.is_retryable:
                return

        notification_retry_exhausted_total.labels(channel=channel).inc()
        logger.warning(
            f"Giving up on {channel} for {notification_id} after {attempts} attempts",
            extra={**log_extra, "attempts": attempts},
        )
