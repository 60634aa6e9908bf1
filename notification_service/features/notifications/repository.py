"""Repository for notification records.

Statement builders and single-statement helpers. Every method takes the
caller's session; ``DeliveryRecordStore`` owns the transactions.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select, update
from sqlalchemy import delete as sql_delete

from notification_service.core.database import BaseRepository, utcnow
from notification_service.features.notifications.models import (
    Notification,
    NotificationChannel,
    NotificationInteraction,
)

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime

    from sqlalchemy import ColumnElement, Select
    from sqlalchemy.ext.asyncio import AsyncSession

    from notification_service.features.notifications.schemas import NotificationFilter


class NotificationRepository(BaseRepository[Notification]):
    """Queries over ``notifications`` and its child tables."""

    def __init__(self) -> None:
        super().__init__(Notification)

    # ──────────────────────────────────────────────────────────────
    # Statement builders
    # ──────────────────────────────────────────────────────────────

    def user_statement(
        self,
        user_id: str,
        filters: NotificationFilter | None = None,
    ) -> Select[tuple[Notification]]:
        """Select a user's notifications with optional filters, newest first by default."""
        stmt = select(Notification).where(Notification.user_id == user_id)
        order = "desc"

        if filters is not None:
            if filters.type is not None:
                stmt = stmt.where(Notification.notification_type == filters.type.value)
            if filters.read_status is not None:
                stmt = stmt.where(Notification.read_status == filters.read_status)
            if filters.status is not None:
                stmt = stmt.where(Notification.status == filters.status.value)
            if filters.priority is not None:
                stmt = stmt.where(Notification.priority == filters.priority.value)
            if filters.start_date is not None:
                stmt = stmt.where(Notification.created_at >= filters.start_date)
            if filters.end_date is not None:
                stmt = stmt.where(Notification.created_at <= filters.end_date)
            order = filters.order

        created = Notification.created_at.desc() if order == "desc" else Notification.created_at.asc()
        # id breaks ties between records created in the same instant
        tiebreak = Notification.id.desc() if order == "desc" else Notification.id.asc()
        return stmt.order_by(created, tiebreak)

    # ──────────────────────────────────────────────────────────────
    # Reads
    # ──────────────────────────────────────────────────────────────

    async def get_for_user(
        self,
        session: AsyncSession,
        user_id: str,
        notification_id: str,
    ) -> Notification | None:
        stmt = select(Notification).where(
            Notification.id == notification_id,
            Notification.user_id == user_id,
        )
        result = await session.execute(stmt.execution_options(populate_existing=True))
        return result.scalar_one_or_none()

    async def reload(self, session: AsyncSession, notification_id: str) -> Notification | None:
        """Fetch a record bypassing the identity map (after bulk UPDATEs)."""
        return await self.get(session, notification_id, populate_existing=True)

    async def exists(self, session: AsyncSession, notification_id: str) -> bool:
        stmt = select(Notification.id).where(Notification.id == notification_id)
        return (await session.execute(stmt)).scalar_one_or_none() is not None

    async def count_where(self, session: AsyncSession, *conditions: ColumnElement[bool]) -> int:
        stmt = select(func.count()).select_from(Notification).where(*conditions)
        return (await session.execute(stmt)).scalar_one()

    async def count_for_user(self, session: AsyncSession, user_id: str) -> int:
        return await self.count_where(session, Notification.user_id == user_id)

    async def oldest_ids(self, session: AsyncSession, user_id: str, count: int) -> list[str]:
        """Ids of a user's ``count`` oldest records, oldest first."""
        stmt = (
            select(Notification.id)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at.asc(), Notification.id.asc())
            .limit(count)
        )
        return list((await session.execute(stmt)).scalars().all())

    async def rows_for_user(
        self,
        session: AsyncSession,
        user_id: str,
        *conditions: ColumnElement[bool],
    ) -> Sequence[Notification]:
        stmt = (
            select(Notification)
            .where(Notification.user_id == user_id, *conditions)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
        )
        return (await session.execute(stmt)).scalars().all()

    async def channel_rows(
        self,
        session: AsyncSession,
        notification_id: str,
    ) -> Sequence[NotificationChannel]:
        stmt = select(NotificationChannel).where(NotificationChannel.notification_id == notification_id)
        return (await session.execute(stmt)).scalars().all()

    # ──────────────────────────────────────────────────────────────
    # Single-statement writes
    # ──────────────────────────────────────────────────────────────

    async def update_record(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        values: dict[str, Any],
    ) -> int:
        """UPDATE notifications matching ``conditions``; returns affected rows."""
        stmt = (
            update(Notification)
            .where(*conditions)
            .values(**values, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        return result.rowcount or 0

    async def update_channel_row(
        self,
        session: AsyncSession,
        notification_id: str,
        channel: str,
        values: dict[str, Any],
    ) -> int:
        stmt = (
            update(NotificationChannel)
            .where(
                NotificationChannel.notification_id == notification_id,
                NotificationChannel.channel == channel,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        return result.rowcount or 0

    async def add_interaction(
        self,
        session: AsyncSession,
        notification_id: str,
        interaction_type: str,
        details: dict[str, Any] | None = None,
        occurred_at: datetime | None = None,
    ) -> None:
        session.add(
            NotificationInteraction(
                notification_id=notification_id,
                interaction_type=interaction_type,
                details=details or None,
                occurred_at=occurred_at or utcnow(),
            )
        )
        await session.flush()

    async def delete_where(self, session: AsyncSession, *conditions: ColumnElement[bool]) -> int:
        """DELETE notifications matching ``conditions``; child rows cascade."""
        stmt = sql_delete(Notification).where(*conditions).execution_options(synchronize_session=False)
        result = await session.execute(stmt)
        count = result.rowcount or 0
        self._lazy.debug(lambda: f"db.delete_where: Notification -> {count} rows")
        return count
