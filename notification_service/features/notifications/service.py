"""Notification service facade.

The single inbound surface of the engine: every operation a front-end
(router, CLI, message consumer) needs, delegated to the component that
owns it.
"""

from __future__ import annotations

import time
import uuid
from typing import TYPE_CHECKING, Any

from notification_service.core.database import RepositoryError, utcnow
from notification_service.core.results import Err, ErrorKind, Result
from notification_service.core.services import BaseService
from notification_service.features.notifications.models import Channel, NotificationType, Priority
from notification_service.features.notifications.schemas import HealthSnapshot, NotificationFilter, Paging

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from datetime import datetime

    from notification_service.features.notifications.acknowledgements import AcknowledgementService
    from notification_service.features.notifications.bulk import BulkOrchestrator
    from notification_service.features.notifications.channels import ChannelRegistry, DeliveryReceipt
    from notification_service.features.notifications.dispatcher import NotificationDispatcher
    from notification_service.features.notifications.retry import RetryController
    from notification_service.features.notifications.schemas import (
        AggregateGroupBy,
        AnalyticsBucket,
        BulkResult,
        DispatchResult,
        NotificationIntake,
        NotificationPage,
        NotificationView,
        TypeGroup,
    )
    from notification_service.features.notifications.store import DeliveryRecordStore
    from notification_service.features.notifications.templates import TemplateRenderer


class NotificationService(BaseService):
    """Facade over dispatch, acknowledgement, reporting and admin operations.

    Example:
        service = container.service
        sent = await service.dispatch({...})
        page = await service.list("u1", paging=Paging(limit=20))
        await service.mark_read("u1", sent.value.notification_id)
    """

    def __init__(
        self,
        store: DeliveryRecordStore,
        dispatcher: NotificationDispatcher,
        bulk: BulkOrchestrator,
        acknowledgements: AcknowledgementService,
        registry: ChannelRegistry,
        retries: RetryController,
        renderer: TemplateRenderer,
    ) -> None:
        super().__init__()
        self._store = store
        self._dispatcher = dispatcher
        self._bulk = bulk
        self._acks = acknowledgements
        self._registry = registry
        self._retries = retries
        self._renderer = renderer

    # ──────────────────────────────────────────────────────────────
    # Intake
    # ──────────────────────────────────────────────────────────────

    async def dispatch(self, intake: NotificationIntake | Mapping[str, Any]) -> Result[DispatchResult]:
        return await self._dispatcher.dispatch(intake)

    async def dispatch_bulk(
        self,
        intakes: Sequence[NotificationIntake | Mapping[str, Any]],
        *,
        batch_id: str | None = None,
    ) -> BulkResult:
        return await self._bulk.dispatch_bulk(intakes, batch_id=batch_id)

    # ──────────────────────────────────────────────────────────────
    # Read / acknowledge
    # ──────────────────────────────────────────────────────────────

    async def mark_read(self, user_id: str, notification_id: str, read: bool = True) -> Result[NotificationView]:
        return await self._acks.mark_read(user_id, notification_id, read)

    async def mark_all_read(self, user_id: str, notification_type: NotificationType | None = None) -> int:
        return await self._acks.mark_all_read(user_id, notification_type)

    async def mark_delivered(self, user_id: str, notification_id: str) -> Result[NotificationView]:
        return await self._acks.mark_delivered(user_id, notification_id)

    async def record_click(
        self,
        user_id: str,
        notification_id: str,
        metadata: dict[str, Any] | None = None,
    ) -> Result[None]:
        return await self._acks.record_click(notification_id, metadata, user_id=user_id)

    async def get(
        self,
        user_id: str,
        notification_id: str,
        *,
        track_impression: bool = True,
    ) -> Result[NotificationView]:
        return await self._acks.get(user_id, notification_id, track_impression=track_impression)

    async def list(
        self,
        user_id: str,
        filters: NotificationFilter | None = None,
        paging: Paging | None = None,
    ) -> Result[NotificationPage]:
        return await self._store.list(user_id, filters, paging)

    async def count_unread(self, user_id: str, notification_type: NotificationType | None = None) -> int:
        return await self._store.count_unread(user_id, notification_type)

    async def group_by_type(self, user_id: str, *, include_read: bool = False, limit: int = 10) -> list[TypeGroup]:
        return await self._store.group_by_type(user_id, include_read=include_read, limit=limit)

    async def list_by_type(
        self,
        user_id: str,
        notification_type: NotificationType,
        read_status: bool | None = None,
        paging: Paging | None = None,
    ) -> Result[NotificationPage]:
        return await self._store.list_by_type(user_id, notification_type, read_status, paging)

    async def list_by_group(self, group_id: str, paging: Paging | None = None) -> Result[NotificationPage]:
        return await self._store.list_by_group(group_id, paging)

    async def delete(self, user_id: str, notification_id: str) -> Result[None]:
        result = await self._store.delete(user_id, notification_id)
        if result.is_ok:
            self.logger.info(
                f"Notification {notification_id} deleted",
                extra={"notification_id": notification_id, "user_id": user_id, "operation": "service.delete"},
            )
        return result

    async def analytics(
        self,
        user_id: str,
        *,
        start: datetime | None = None,
        end: datetime | None = None,
        group_by: AggregateGroupBy = "day",
    ) -> list[AnalyticsBucket]:
        return await self._store.aggregate(user_id, start=start, end=end, group_by=group_by)

    # ──────────────────────────────────────────────────────────────
    # Admin
    # ──────────────────────────────────────────────────────────────

    async def force_resend(self, notification_id: str) -> Result[list[Channel]]:
        return await self._dispatcher.force_resend(notification_id)

    async def broadcast_system(
        self,
        title: str,
        message: str,
        *,
        priority: Priority = Priority.NORMAL,
        metadata: dict[str, Any] | None = None,
    ) -> Result[DeliveryReceipt]:
        """Push a system notification to every connected user over the realtime channel.

        Broadcasts are not stored and not retried.
        """
        driver = self._registry.get(Channel.REALTIME)
        if driver is None or not hasattr(driver, "broadcast"):
            return Err(ErrorKind.UNAVAILABLE, "Realtime channel is not configured")

        payload = self._renderer.render(
            notification_id=f"system_{uuid.uuid4().hex}",
            user_id="*",
            notification_type=NotificationType.SYSTEM,
            title=title,
            message=message,
            priority=priority,
            metadata=metadata,
            timestamp=utcnow(),
        )
        return await driver.broadcast(payload)

    async def health(self) -> HealthSnapshot:
        """In-process health snapshot: store totals, drivers and in-flight work."""
        start_time = time.time()
        accepting = self._dispatcher.accepting
        snapshot = HealthSnapshot(
            status="healthy" if accepting else "shutting_down",
            accepting=accepting,
            intakes_in_flight=self._dispatcher.in_flight,
            retries_in_flight=self._retries.in_flight,
            channels=[c.value for c in self._registry.channels],
        )
        try:
            snapshot.store = await self._store.stats()
        except RepositoryError as e:
            snapshot.status = "degraded"
            snapshot.error = str(e)
            self.logger.warning(
                f"Health check could not read the store: {e}",
                extra={"operation": "service.health"},
            )

        self._lazy.debug(lambda: f"health: {snapshot.status} in {(time.time() - start_time) * 1000:.1f}ms")
        return snapshot
