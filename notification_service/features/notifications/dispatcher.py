"""Dispatcher: intake to durable record to concurrent channel sends."""

from __future__ import annotations

import asyncio
import time
import uuid
from collections.abc import Mapping
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from jinja2 import TemplateError
from pydantic import ValidationError

from notification_service.core.database import RepositoryError, utcnow
from notification_service.core.results import Err, ErrorKind, Ok, Result, permanent
from notification_service.core.services import BaseService
from notification_service.features.notifications.delivery import attempt_delivery, outcome_patch
from notification_service.features.notifications.metrics import (
    notification_creation_duration_seconds,
    notifications_created_total,
    notifications_errors_total,
)
from notification_service.features.notifications.models import Channel, NotificationStatus, NotificationType, Priority
from notification_service.features.notifications.retry import RetryJob
from notification_service.features.notifications.schemas import ChannelOutcome, DispatchResult, NotificationIntake
from notification_service.features.notifications.store import ChannelPatch, NotificationDraft
from notification_service.infra.logging import remove_from_log_context, set_log_context

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from notification_service.core.settings import NotificationSettings
    from notification_service.features.notifications.channels import ChannelRegistry, DeliveryReceipt
    from notification_service.features.notifications.preferences import PreferenceResolver
    from notification_service.features.notifications.quota import QuotaEnforcer
    from notification_service.features.notifications.retry import RetryController
    from notification_service.features.notifications.store import DeliveryRecordStore
    from notification_service.features.notifications.templates import RenderedPayload, TemplateRenderer


class NotificationDispatcher(BaseService):
    """Accept intakes and fan them out across the enabled channels.

    For a durable intake (in-app enabled) the record is created before any
    transport send, every first-attempt outcome is written to its channel
    row as it lands, and the record status is finalized once all first
    attempts are in. Transient failures are then handed to the retry
    controller, which owns the channel from that point on.

    Example:
        result = await dispatcher.dispatch({
            "userId": "u1",
            "type": "match",
            "title": "New Match",
            "message": "You matched with Alex",
            "channels": {"email": True, "inApp": True},
        })
        if result.is_ok:
            print(result.value.notification_id, result.value.status)
    """

    def __init__(
        self,
        store: DeliveryRecordStore,
        resolver: PreferenceResolver,
        quota: QuotaEnforcer,
        registry: ChannelRegistry,
        renderer: TemplateRenderer,
        retries: RetryController,
        settings: NotificationSettings,
        *,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        super().__init__()
        self._store = store
        self._resolver = resolver
        self._quota = quota
        self._registry = registry
        self._renderer = renderer
        self._retries = retries
        self._settings = settings
        self._new_id = id_factory
        self._clock = clock

        self._accepting = True
        self._intakes: set[asyncio.Task[Any]] = set()
        # (notification, channel) pairs whose first attempt has not been handed off yet
        self._first_round: set[tuple[str, Channel]] = set()

    # ──────────────────────────────────────────────────────────────
    # Lifecycle
    # ──────────────────────────────────────────────────────────────

    @property
    def accepting(self) -> bool:
        return self._accepting

    @property
    def in_flight(self) -> int:
        return len(self._intakes)

    async def close(self, grace_period: float) -> None:
        """Refuse new intakes, give running ones ``grace_period`` seconds, cancel the rest."""
        self._accepting = False
        pending = {task for task in self._intakes if task is not asyncio.current_task()}
        if not pending:
            return

        _, still_running = await asyncio.wait(pending, timeout=grace_period)
        for task in still_running:
            task.cancel()
        if still_running:
            self.logger.warning(
                f"Cancelled {len(still_running)} intakes still running after {grace_period}s",
                extra={"count": len(still_running), "operation": "dispatcher.close"},
            )

    # ──────────────────────────────────────────────────────────────
    # Dispatch
    # ──────────────────────────────────────────────────────────────

    async def dispatch(self, intake: NotificationIntake | Mapping[str, Any]) -> Result[DispatchResult]:
        """Run one intake through resolution, persistence and first attempts."""
        if not self._accepting:
            return Err(ErrorKind.UNAVAILABLE, "Dispatcher is shutting down")

        if isinstance(intake, Mapping):
            try:
                intake = NotificationIntake.model_validate(intake)
            except ValidationError as e:
                return Err(
                    ErrorKind.VALIDATION,
                    "Invalid notification intake",
                    {"errors": e.errors(include_url=False, include_context=False)},
                )

        task = asyncio.current_task()
        if task is not None:
            self._intakes.add(task)
        try:
            return await self._dispatch(intake)
        finally:
            remove_from_log_context("notification_id", "user_id")
            if task is not None:
                self._intakes.discard(task)

    async def _dispatch(self, intake: NotificationIntake) -> Result[DispatchResult]:
        start_time = time.time()
        notification_id = intake.notification_id or self._new_id()
        set_log_context(notification_id=notification_id, user_id=intake.user_id)
        log_extra = {"notification_id": notification_id, "user_id": intake.user_id, "operation": "dispatcher.dispatch"}

        resolution = await self._resolver.resolve(intake.user_id, intake)
        now = self._clock()
        expires_at = intake.expires_at or now + timedelta(seconds=self._settings.default_ttl)

        try:
            payload = self._renderer.render(
                notification_id=notification_id,
                user_id=intake.user_id,
                notification_type=intake.type,
                title=intake.title,
                message=intake.message,
                priority=intake.priority,
                metadata=intake.metadata,
                timestamp=now,
            )
        except TemplateError as e:
            self.logger.exception(f"Rendering failed for {notification_id}", extra=log_extra)
            return Err(ErrorKind.INTERNAL, f"Could not render notification: {e}", {"notification_id": notification_id})

        durable = resolution.stores_record
        if durable:
            created = await self._persist(notification_id, intake, resolution.channels, expires_at)
            if isinstance(created, Err):
                return created

        transport = resolution.transport_channels
        first_round = {(notification_id, channel) for channel in transport}
        self._first_round |= first_round
        try:
            outcomes = await asyncio.gather(
                *(self._first_attempt(channel, payload, durable=durable) for channel in transport),
            )
            results: dict[Channel, Result[DeliveryReceipt]] = dict(zip(transport, outcomes, strict=True))

            any_success = any(r.is_ok for r in results.values()) or (durable and not transport)
            status = await self._finalize(notification_id, results, any_success=any_success, durable=durable)

            retrying = self._hand_off_retries(results, payload, expires_at, durable=durable)
        finally:
            self._first_round -= first_round

        notifications_created_total.labels(type=intake.type.value, priority=intake.priority.value).inc()
        notification_creation_duration_seconds.labels(
            type=intake.type.value,
            priority=intake.priority.value,
        ).observe(time.time() - start_time)

        self.logger.info(
            f"Dispatched {intake.type} notification {notification_id} to {intake.user_id}: {status}",
            extra={
                **log_extra,
                "status": status.value,
                "saved_to_database": durable,
                "channels_sent": sorted(c.value for c, r in results.items() if r.is_ok),
                "channels_retrying": sorted(c.value for c in retrying),
                "duration_ms": int((time.time() - start_time) * 1000),
            },
        )

        return Ok(
            DispatchResult(
                notification_id=notification_id,
                status=status,
                saved_to_database=durable,
                channels=self._outcomes(resolution.channels, results, retrying, durable=durable),
            )
        )

    async def _persist(
        self,
        notification_id: str,
        intake: NotificationIntake,
        channels: dict[Channel, bool],
        expires_at: datetime,
    ) -> Result[None]:
        log_extra = {"notification_id": notification_id, "user_id": intake.user_id, "operation": "dispatcher.persist"}

        enforced = await self._quota.enforce(intake.user_id, self._settings.max_per_user)
        if isinstance(enforced, Err):
            # Eviction failure does not block the insert
            self.logger.warning(f"Quota not enforced: {enforced.message}", extra=log_extra)

        scheduling = intake.scheduling
        draft = NotificationDraft(
            notification_id=notification_id,
            user_id=intake.user_id,
            title=intake.title,
            message=intake.message,
            type=intake.type,
            priority=intake.priority,
            channels=channels,
            metadata=intake.metadata,
            expires_at=expires_at,
            scheduled_for=scheduling.scheduled_for if scheduling else None,
            timezone=scheduling.timezone if scheduling else None,
            group_id=intake.grouping.group_id,
            batch_id=intake.grouping.batch_id,
            campaign_id=intake.grouping.campaign_id,
        )

        try:
            created = await self._store.create(draft)
            if isinstance(created, Err):
                self.logger.info(f"Intake rejected: {created.message}", extra=log_extra)
                return created
            await self._store.update_channel(notification_id, Channel.IN_APP, ChannelPatch.success(notification_id))
        except RepositoryError as e:
            notifications_errors_total.labels(channel="store", kind=ErrorKind.INTERNAL.value).inc()
            self.logger.error(f"Could not store notification {notification_id}: {e}", extra=log_extra)
            return Err(ErrorKind.INTERNAL, "Failed to store notification", {"notification_id": notification_id})
        return Ok(None)

    async def _first_attempt(
        self,
        channel: Channel,
        payload: RenderedPayload,
        *,
        durable: bool,
    ) -> Result[DeliveryReceipt]:
        driver = self._registry.get(channel)
        if driver is None:
            result: Result[DeliveryReceipt] = permanent(f"No driver registered for {channel}", channel=channel.value)
        else:
            result = await attempt_delivery(driver, payload.user_id, payload)

        if durable:
            final_attempt = self._settings.max_retry_attempts <= 1
            try:
                await self._store.update_channel(
                    payload.notification_id,
                    channel,
                    outcome_patch(result, final_attempt=final_attempt),
                )
            except RepositoryError as e:
                self.logger.error(
                    f"Could not record {channel} outcome for {payload.notification_id}: {e}",
                    extra={"notification_id": payload.notification_id, "channel": channel.value},
                )
        return result

    async def _finalize(
        self,
        notification_id: str,
        results: dict[Channel, Result[DeliveryReceipt]],
        *,
        any_success: bool,
        durable: bool,
    ) -> NotificationStatus:
        fallback = NotificationStatus.SENT if any_success else NotificationStatus.FAILED
        if not durable:
            return fallback

        first_error = next((r.message for r in results.values() if isinstance(r, Err)), None)
        try:
            if results:
                await self._store.increment_attempt(notification_id, first_error)
            finalized = await self._store.finalize_status(notification_id, any_success)
        except RepositoryError as e:
            self.logger.error(
                f"Could not finalize status of {notification_id}: {e}",
                extra={"notification_id": notification_id, "operation": "dispatcher.finalize"},
            )
            return NotificationStatus.PENDING
        return finalized.value if finalized.is_ok else fallback

    def _hand_off_retries(
        self,
        results: dict[Channel, Result[DeliveryReceipt]],
        payload: RenderedPayload,
        expires_at: datetime,
        *,
        durable: bool,
    ) -> set[Channel]:
        retrying: set[Channel] = set()
        if self._settings.max_retry_attempts <= 1:
            return retrying

        for channel, result in results.items():
            if isinstance(result, Err) and result.is_retryable:
                job = RetryJob(
                    payload=payload,
                    channel=channel,
                    attempts_made=1,
                    expires_at=expires_at,
                    durable=durable,
                )
                if self._retries.schedule(job):
                    retrying.add(channel)
        return retrying

    @staticmethod
    def _outcomes(
        channels: dict[Channel, bool],
        results: dict[Channel, Result[DeliveryReceipt]],
        retrying: set[Channel],
        *,
        durable: bool,
    ) -> dict[str, ChannelOutcome]:
        outcomes: dict[str, ChannelOutcome] = {}
        for channel in Channel:
            enabled = channels.get(channel, False)
            if channel is Channel.IN_APP:
                outcomes[channel.value] = ChannelOutcome(enabled=enabled, sent=durable)
                continue
            result = results.get(channel)
            if result is None:
                outcomes[channel.value] = ChannelOutcome(enabled=enabled)
            elif isinstance(result, Err):
                outcomes[channel.value] = ChannelOutcome(
                    enabled=True,
                    error=result.message,
                    retrying=channel in retrying,
                )
            else:
                outcomes[channel.value] = ChannelOutcome(
                    enabled=True,
                    sent=True,
                    external_message_id=result.value.external_message_id,
                )
        return outcomes

    # ──────────────────────────────────────────────────────────────
    # Admin
    # ──────────────────────────────────────────────────────────────

    async def force_resend(self, notification_id: str) -> Result[list[Channel]]:
        """Re-enqueue every failed transport channel of a record.

        Channels whose first attempt is still running, or that the retry
        controller already owns, are skipped.
        """
        found = await self._store.get_by_id(notification_id)
        if isinstance(found, Err):
            return found
        record = found.value

        failed = await self._store.failed_channels(notification_id)
        if isinstance(failed, Err):
            return failed

        payload = self._renderer.render(
            notification_id=record.notification_id,
            user_id=record.user_id,
            notification_type=_known_type(record.type),
            title=record.title,
            message=record.message,
            priority=Priority(record.priority),
            metadata=record.metadata,
            timestamp=record.created_at,
        )

        scheduled: list[Channel] = []
        for channel in failed.value:
            if (notification_id, channel) in self._first_round or self._retries.is_scheduled(notification_id, channel):
                continue
            await self._store.reset_channel(notification_id, channel)
            job = RetryJob(payload=payload, channel=channel, attempts_made=0, expires_at=record.expires_at)
            if self._retries.schedule(job, delay_ms=0):
                scheduled.append(channel)

        self.logger.info(
            f"Force resend of {notification_id} scheduled {len(scheduled)} channels",
            extra={
                "notification_id": notification_id,
                "channels": [c.value for c in scheduled],
                "operation": "dispatcher.force_resend",
            },
        )
        return Ok(scheduled)


def _known_type(value: str) -> NotificationType | str:
    try:
        return NotificationType(value)
    except ValueError:
        return value
