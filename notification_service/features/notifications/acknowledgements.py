"""Read/Acknowledge path: read, unread, delivered, impression and click."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from notification_service.core.results import Err, Result
from notification_service.core.services import BaseService
from notification_service.features.notifications.models import InteractionType

if TYPE_CHECKING:
    from notification_service.features.notifications.models import NotificationType
    from notification_service.features.notifications.schemas import NotificationView
    from notification_service.features.notifications.store import DeliveryRecordStore


class AcknowledgementService(BaseService):
    """Idempotent client-driven state transitions on stored notifications.

    Marking read twice leaves the record exactly as the first call did: the
    second call matches no unread row and appends nothing.
    """

    def __init__(self, store: DeliveryRecordStore) -> None:
        super().__init__()
        self._store = store

    async def mark_read(self, user_id: str, notification_id: str, read: bool = True) -> Result[NotificationView]:
        result = await self._store.mark_read(user_id, notification_id, read)
        if result.is_ok:
            self.logger.info(
                f"Notification {notification_id} marked {'read' if read else 'unread'}",
                extra={"notification_id": notification_id, "user_id": user_id, "operation": "ack.mark_read"},
            )
        return result

    async def mark_all_read(self, user_id: str, notification_type: NotificationType | None = None) -> int:
        modified = await self._store.mark_all_read(user_id, notification_type)
        self.logger.info(
            f"Marked {modified} notifications read for {user_id}",
            extra={
                "user_id": user_id,
                "type": notification_type.value if notification_type else None,
                "modified": modified,
                "operation": "ack.mark_all_read",
            },
        )
        return modified

    async def mark_delivered(self, user_id: str, notification_id: str) -> Result[NotificationView]:
        return await self._store.mark_delivered(user_id, notification_id)

    async def record_impression(
        self,
        notification_id: str,
        metadata: dict[str, Any] | None = None,
        *,
        user_id: str | None = None,
    ) -> Result[None]:
        return await self._store.record_interaction(
            notification_id, InteractionType.IMPRESSION, metadata, user_id=user_id
        )

    async def record_click(
        self,
        notification_id: str,
        metadata: dict[str, Any] | None = None,
        *,
        user_id: str | None = None,
    ) -> Result[None]:
        return await self._store.record_interaction(notification_id, InteractionType.CLICK, metadata, user_id=user_id)

    async def get(
        self,
        user_id: str,
        notification_id: str,
        *,
        track_impression: bool = True,
    ) -> Result[NotificationView]:
        """Fetch one record, counting the fetch as an impression."""
        found = await self._store.get(user_id, notification_id)
        if isinstance(found, Err) or not track_impression:
            return found

        tracked = await self._store.record_interaction(
            notification_id,
            InteractionType.IMPRESSION,
            {"source": "fetch"},
            user_id=user_id,
        )
        if isinstance(tracked, Err):
            # Deleted between the two calls
            return tracked
        return await self._store.get(user_id, notification_id)
