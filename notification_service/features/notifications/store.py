"""Delivery Record Store.

Durable notification records behind an interface of atomic operations.
Each public method runs in exactly one database transaction; there are no
multi-call transactions. Expected outcomes (missing record, duplicate id)
come back as ``Err`` results, while unexpected database failures raise
``RepositoryError``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any, TypeVar

from sqlalchemy import case, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from notification_service.core.database import RepositoryError, as_utc, utcnow
from notification_service.core.results import Err, ErrorKind, Ok, Result
from notification_service.features.notifications.models import (
    Channel,
    InteractionType,
    Notification,
    NotificationChannel,
    NotificationStatus,
    NotificationType,
    Priority,
)
from notification_service.features.notifications.repository import NotificationRepository
from notification_service.features.notifications.schemas import (
    AggregateGroupBy,
    AnalyticsBucket,
    NotificationFilter,
    NotificationPage,
    NotificationView,
    Paging,
    StoreStats,
    TypeGroup,
)
from notification_service.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

T = TypeVar("T")

logger = logging.getLogger(__name__)
lazy_logger = get_lazy_logger(__name__)

# Interaction kinds that bump a counter column
_INTERACTION_COUNTERS: dict[InteractionType, str] = {
    InteractionType.IMPRESSION: "impressions",
    InteractionType.READ: "impressions",
    InteractionType.CLICK: "clicks",
}


@dataclass(frozen=True, slots=True)
class NotificationDraft:
    """Everything needed to insert a new record."""

    notification_id: str
    user_id: str
    title: str
    message: str
    type: NotificationType
    priority: Priority
    channels: dict[Channel, bool]
    metadata: dict[str, Any] = field(default_factory=dict)
    expires_at: datetime | None = None
    scheduled_for: datetime | None = None
    timezone: str | None = None
    group_id: str | None = None
    batch_id: str | None = None
    campaign_id: str | None = None


@dataclass(frozen=True, slots=True)
class ChannelPatch:
    """Partial update of one per-channel sub-record.

    ``attempted`` adds one to the channel's attempt counter. A patch with
    ``sent=True`` also stamps ``delivered_at`` on the parent record.
    """

    sent: bool | None = None
    sent_at: datetime | None = None
    external_message_id: str | None = None
    error: str | None = None
    clear_error: bool = False
    attempted: bool = False
    terminal: bool | None = None

    @classmethod
    def success(cls, external_message_id: str | None, at: datetime | None = None) -> ChannelPatch:
        return cls(
            sent=True,
            sent_at=at or utcnow(),
            external_message_id=external_message_id,
            clear_error=True,
            attempted=True,
            terminal=True,
        )

    @classmethod
    def failure(cls, error: str, *, terminal: bool) -> ChannelPatch:
        return cls(error=error, attempted=True, terminal=terminal)

    @classmethod
    def expired(cls) -> ChannelPatch:
        return cls(error="expired", terminal=True)

    def column_values(self) -> dict[str, Any]:
        values: dict[str, Any] = {}
        if self.sent is not None:
            values["sent"] = self.sent
        if self.sent_at is not None:
            values["sent_at"] = self.sent_at
        if self.external_message_id is not None:
            values["external_message_id"] = self.external_message_id
        if self.error is not None:
            values["error"] = self.error
        elif self.clear_error:
            values["error"] = None
        if self.attempted:
            values["attempts"] = NotificationChannel.attempts + 1
        if self.terminal is not None:
            values["terminal"] = self.terminal
        return values


def _not_found(notification_id: str, user_id: str | None = None) -> Err:
    details: dict[str, Any] = {"notification_id": notification_id}
    if user_id is not None:
        details["user_id"] = user_id
    return Err(ErrorKind.NOT_FOUND, f"Notification {notification_id} not found", details)


def _bucket_key(moment: datetime, group_by: AggregateGroupBy) -> str:
    match group_by:
        case "hour":
            return moment.strftime("%Y-%m-%d %H:00")
        case "week":
            iso = moment.isocalendar()
            return f"{iso.year}-W{iso.week:02d}"
        case "month":
            return moment.strftime("%Y-%m")
        case _:
            return moment.strftime("%Y-%m-%d")


class DeliveryRecordStore:
    """Durable store of notification records keyed by notification id.

    Example:
        store = DeliveryRecordStore(session_factory)
        created = await store.create(draft)
        if not created.is_ok and created.kind is ErrorKind.ALREADY_EXISTS:
            ...
        await store.update_channel(draft.notification_id, Channel.EMAIL, ChannelPatch.success("em-1"))
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory
        self._repo = NotificationRepository()

    async def _atomic(self, operation: str, work: Callable[[AsyncSession], Awaitable[T]]) -> T:
        """Run ``work`` inside one transaction; wrap database failures."""
        try:
            async with self._session_factory.begin() as session:
                return await work(session)
        except IntegrityError:
            raise
        except SQLAlchemyError as e:
            logger.error(
                f"Store operation {operation} failed: {e}",
                extra={"operation": f"store.{operation}"},
                exc_info=True,
            )
            raise RepositoryError(f"Store operation {operation} failed", {"error": str(e)}) from e

    # ──────────────────────────────────────────────────────────────
    # Create / read
    # ──────────────────────────────────────────────────────────────

    async def create(self, draft: NotificationDraft) -> Result[NotificationView]:
        """Insert a new record with every channel ``{enabled, sent: false}``.

        Returns ``Err(ALREADY_EXISTS)`` when the id is taken.
        """

        async def work(session: AsyncSession) -> Result[NotificationView]:
            if await self._repo.exists(session, draft.notification_id):
                return Err(
                    ErrorKind.ALREADY_EXISTS,
                    f"Notification {draft.notification_id} already exists",
                    {"notification_id": draft.notification_id},
                )

            record = Notification(
                id=draft.notification_id,
                user_id=draft.user_id,
                title=draft.title,
                message=draft.message,
                notification_type=draft.type.value,
                priority=draft.priority.value,
                status=NotificationStatus.PENDING.value,
                read_status=False,
                extra_metadata=dict(draft.metadata),
                scheduled_for=draft.scheduled_for,
                timezone=draft.timezone,
                group_id=draft.group_id,
                batch_id=draft.batch_id,
                campaign_id=draft.campaign_id,
                expires_at=draft.expires_at,
                channels=[
                    NotificationChannel(channel=channel.value, enabled=draft.channels.get(channel, False), sent=False)
                    for channel in Channel
                ],
                interactions=[],
            )
            await self._repo.create(session, record)
            return Ok(NotificationView.from_record(record))

        try:
            result = await self._atomic("create", work)
        except IntegrityError:
            # Concurrent insert of the same id won the race
            return Err(
                ErrorKind.ALREADY_EXISTS,
                f"Notification {draft.notification_id} already exists",
                {"notification_id": draft.notification_id},
            )

        if result.is_ok:
            lazy_logger.debug(lambda: f"store.create: {draft.notification_id} for {draft.user_id}")
        return result

    async def get(self, user_id: str, notification_id: str) -> Result[NotificationView]:
        async def work(session: AsyncSession) -> Result[NotificationView]:
            record = await self._repo.get_for_user(session, user_id, notification_id)
            if record is None:
                return _not_found(notification_id, user_id)
            return Ok(NotificationView.from_record(record))

        return await self._atomic("get", work)

    async def get_by_id(self, notification_id: str) -> Result[NotificationView]:
        """Fetch a record regardless of owner (admin operations)."""

        async def work(session: AsyncSession) -> Result[NotificationView]:
            record = await self._repo.reload(session, notification_id)
            if record is None:
                return _not_found(notification_id)
            return Ok(NotificationView.from_record(record))

        return await self._atomic("get_by_id", work)

    async def list(
        self,
        user_id: str,
        filters: NotificationFilter | None = None,
        paging: Paging | None = None,
    ) -> Result[NotificationPage]:
        """Page through a user's records; ``limit`` is capped at 100."""
        paging = paging or Paging()

        async def work(session: AsyncSession) -> Result[NotificationPage]:
            page = await self._repo.search(
                session,
                self._repo.user_statement(user_id, filters),
                limit=paging.limit,
                offset=paging.offset,
            )
            return Ok(
                NotificationPage(
                    items=[NotificationView.from_record(r) for r in page.items],
                    total=page.total,
                    limit=page.limit,
                    offset=page.offset,
                    has_more=page.has_more,
                )
            )

        return await self._atomic("list", work)

    async def list_by_type(
        self,
        user_id: str,
        notification_type: NotificationType,
        read_status: bool | None = None,
        paging: Paging | None = None,
    ) -> Result[NotificationPage]:
        filters = NotificationFilter(type=notification_type, read_status=read_status)
        return await self.list(user_id, filters, paging or Paging(limit=50))

    async def list_by_group(self, group_id: str, paging: Paging | None = None) -> Result[NotificationPage]:
        """Records sharing a ``grouping.groupId``, newest first."""
        paging = paging or Paging(limit=50)

        async def work(session: AsyncSession) -> Result[NotificationPage]:
            stmt = (
                select(Notification)
                .where(Notification.group_id == group_id)
                .order_by(Notification.created_at.desc(), Notification.id.desc())
            )
            page = await self._repo.search(session, stmt, limit=paging.limit, offset=paging.offset)
            return Ok(
                NotificationPage(
                    items=[NotificationView.from_record(r) for r in page.items],
                    total=page.total,
                    limit=page.limit,
                    offset=page.offset,
                    has_more=page.has_more,
                )
            )

        return await self._atomic("list_by_group", work)

    async def count_unread(self, user_id: str, notification_type: NotificationType | None = None) -> int:
        conditions = [Notification.user_id == user_id, Notification.read_status.is_(False)]
        if notification_type is not None:
            conditions.append(Notification.notification_type == notification_type.value)

        async def work(session: AsyncSession) -> int:
            return await self._repo.count_where(session, *conditions)

        return await self._atomic("count_unread", work)

    async def count_for_user(self, user_id: str) -> int:
        async def work(session: AsyncSession) -> int:
            return await self._repo.count_for_user(session, user_id)

        return await self._atomic("count_for_user", work)

    # ──────────────────────────────────────────────────────────────
    # Delivery state
    # ──────────────────────────────────────────────────────────────

    async def update_channel(
        self,
        notification_id: str,
        channel: Channel,
        patch: ChannelPatch,
    ) -> Result[None]:
        """Apply ``patch`` to one channel sub-record.

        When the patch marks the channel sent, ``delivered_at`` is stamped
        (first success wins) and a ``failed`` record is promoted to ``sent``
        in the same transaction.
        """

        async def work(session: AsyncSession) -> Result[None]:
            now = utcnow()
            updated = await self._repo.update_channel_row(
                session, notification_id, channel.value, patch.column_values()
            )
            if not updated:
                return _not_found(notification_id)

            if patch.sent:
                await self._repo.update_record(
                    session,
                    Notification.id == notification_id,
                    values={
                        "delivered_at": func.coalesce(Notification.delivered_at, now),
                        "status": case(
                            (Notification.status == NotificationStatus.FAILED.value, NotificationStatus.SENT.value),
                            else_=Notification.status,
                        ),
                    },
                )
            return Ok(None)

        result = await self._atomic("update_channel", work)
        lazy_logger.debug(
            lambda: f"store.update_channel: {notification_id}/{channel.value} -> {patch.column_values().keys()}"
        )
        return result

    async def finalize_status(self, notification_id: str, any_success: bool) -> Result[NotificationStatus]:
        """Write the first-attempt outcome: ``pending`` becomes ``sent`` or ``failed``.

        Records that already moved past ``pending`` (for example read by the
        user mid-dispatch) are left unchanged.
        """
        target = NotificationStatus.SENT if any_success else NotificationStatus.FAILED

        async def work(session: AsyncSession) -> Result[NotificationStatus]:
            values: dict[str, Any] = {"status": target.value}
            if any_success:
                values["delivered_at"] = func.coalesce(Notification.delivered_at, utcnow())
            updated = await self._repo.update_record(
                session,
                Notification.id == notification_id,
                Notification.status == NotificationStatus.PENDING.value,
                values=values,
            )
            if updated:
                return Ok(target)

            record = await self._repo.reload(session, notification_id)
            if record is None:
                return _not_found(notification_id)
            return Ok(NotificationStatus(record.status))

        return await self._atomic("finalize_status", work)

    async def increment_attempt(self, notification_id: str, error: str | None = None) -> Result[int]:
        """Add one to ``analytics.deliveryAttempts`` and stamp ``lastDeliveryAttempt``."""

        async def work(session: AsyncSession) -> Result[int]:
            values: dict[str, Any] = {
                "delivery_attempts": Notification.delivery_attempts + 1,
                "last_delivery_attempt": utcnow(),
            }
            if error is not None:
                values["last_delivery_error"] = error
            updated = await self._repo.update_record(session, Notification.id == notification_id, values=values)
            if not updated:
                return _not_found(notification_id)
            record = await self._repo.reload(session, notification_id)
            return Ok(record.delivery_attempts if record else 0)

        return await self._atomic("increment_attempt", work)

    async def reset_channel(self, notification_id: str, channel: Channel) -> Result[None]:
        """Give a failed channel a fresh attempt budget (admin resend)."""

        async def work(session: AsyncSession) -> Result[None]:
            updated = await self._repo.update_channel_row(
                session,
                notification_id,
                channel.value,
                {"attempts": 0, "terminal": False, "error": None},
            )
            return Ok(None) if updated else _not_found(notification_id)

        return await self._atomic("reset_channel", work)

    async def failed_channels(self, notification_id: str) -> Result[list[Channel]]:
        """Enabled transport channels whose last attempt failed.

        Channels still waiting for their first outcome carry no error and are
        left out, so a resend never overlaps an attempt in progress.
        """

        async def work(session: AsyncSession) -> Result[list[Channel]]:
            if not await self._repo.exists(session, notification_id):
                return _not_found(notification_id)
            rows = await self._repo.channel_rows(session, notification_id)
            return Ok(
                [
                    Channel(row.channel)
                    for row in rows
                    if row.enabled and not row.sent and row.error is not None and Channel(row.channel).is_transport
                ]
            )

        return await self._atomic("failed_channels", work)

    # ──────────────────────────────────────────────────────────────
    # Read / acknowledge
    # ──────────────────────────────────────────────────────────────

    async def mark_read(self, user_id: str, notification_id: str, read: bool = True) -> Result[NotificationView]:
        """Set or clear the read state; a no-op when already in the requested state.

        Marking read sets ``readAt``, ``status=read``, adds an impression and
        appends one ``read`` interaction. Marking unread moves the record
        back to ``delivered`` and appends an ``unread`` interaction.
        """

        async def work(session: AsyncSession) -> Result[NotificationView]:
            now = utcnow()
            owned = (Notification.id == notification_id, Notification.user_id == user_id)
            if read:
                changed = await self._repo.update_record(
                    session,
                    *owned,
                    Notification.read_status.is_(False),
                    values={
                        "read_status": True,
                        "read_at": now,
                        "status": NotificationStatus.READ.value,
                        "impressions": Notification.impressions + 1,
                    },
                )
                interaction = InteractionType.READ
            else:
                changed = await self._repo.update_record(
                    session,
                    *owned,
                    Notification.read_status.is_(True),
                    values={
                        "read_status": False,
                        "read_at": None,
                        "status": NotificationStatus.DELIVERED.value,
                    },
                )
                interaction = InteractionType.UNREAD

            if changed:
                await self._repo.add_interaction(session, notification_id, interaction.value, occurred_at=now)

            record = await self._repo.get_for_user(session, user_id, notification_id)
            if record is None:
                return _not_found(notification_id, user_id)
            return Ok(NotificationView.from_record(record))

        return await self._atomic("mark_read", work)

    async def mark_all_read(self, user_id: str, notification_type: NotificationType | None = None) -> int:
        """Mark every unread record of a user (optionally one type) read."""
        conditions = [Notification.user_id == user_id, Notification.read_status.is_(False)]
        if notification_type is not None:
            conditions.append(Notification.notification_type == notification_type.value)

        async def work(session: AsyncSession) -> int:
            return await self._repo.update_record(
                session,
                *conditions,
                values={
                    "read_status": True,
                    "read_at": utcnow(),
                    "status": NotificationStatus.READ.value,
                },
            )

        return await self._atomic("mark_all_read", work)

    async def mark_delivered(self, user_id: str, notification_id: str) -> Result[NotificationView]:
        """Client acknowledgement: ``pending|sent`` becomes ``delivered``."""

        async def work(session: AsyncSession) -> Result[NotificationView]:
            await self._repo.update_record(
                session,
                Notification.id == notification_id,
                Notification.user_id == user_id,
                Notification.status.in_([NotificationStatus.PENDING.value, NotificationStatus.SENT.value]),
                values={
                    "status": NotificationStatus.DELIVERED.value,
                    "delivered_at": func.coalesce(Notification.delivered_at, utcnow()),
                },
            )
            record = await self._repo.get_for_user(session, user_id, notification_id)
            if record is None:
                return _not_found(notification_id, user_id)
            return Ok(NotificationView.from_record(record))

        return await self._atomic("mark_delivered", work)

    async def record_interaction(
        self,
        notification_id: str,
        kind: InteractionType,
        details: dict[str, Any] | None = None,
        *,
        user_id: str | None = None,
    ) -> Result[None]:
        """Append an interaction entry and bump its counter."""

        async def work(session: AsyncSession) -> Result[None]:
            conditions = [Notification.id == notification_id]
            if user_id is not None:
                conditions.append(Notification.user_id == user_id)

            counter = _INTERACTION_COUNTERS.get(kind)
            if counter is not None:
                column = getattr(Notification, counter)
                updated = await self._repo.update_record(session, *conditions, values={counter: column + 1})
            else:
                updated = await self._repo.count_where(session, *conditions)
            if not updated:
                return _not_found(notification_id, user_id)

            await self._repo.add_interaction(session, notification_id, kind.value, details)
            return Ok(None)

        return await self._atomic("record_interaction", work)

    # ──────────────────────────────────────────────────────────────
    # Deletion
    # ──────────────────────────────────────────────────────────────

    async def delete(self, user_id: str, notification_id: str) -> Result[None]:
        async def work(session: AsyncSession) -> Result[None]:
            deleted = await self._repo.delete_where(
                session,
                Notification.id == notification_id,
                Notification.user_id == user_id,
            )
            return Ok(None) if deleted else _not_found(notification_id, user_id)

        return await self._atomic("delete", work)

    async def delete_expired(self, now: datetime | None = None) -> int:
        """Delete records whose ``expiresAt`` is before ``now``."""
        cutoff = now or utcnow()

        async def work(session: AsyncSession) -> int:
            return await self._repo.delete_where(
                session,
                Notification.expires_at.is_not(None),
                Notification.expires_at < cutoff,
            )

        return await self._atomic("delete_expired", work)

    async def evict_oldest(self, user_id: str, count: int) -> list[str]:
        """Delete a user's ``count`` oldest records; returns the deleted ids."""
        if count <= 0:
            return []

        async def work(session: AsyncSession) -> list[str]:
            ids = await self._repo.oldest_ids(session, user_id, count)
            if ids:
                await self._repo.delete_many(session, ids)
            return ids

        return await self._atomic("evict_oldest", work)

    async def cleanup(
        self,
        older_than: datetime,
        *,
        keep_read: bool = False,
        dry_run: bool = False,
    ) -> int:
        """Delete (or with ``dry_run`` just count) records created before ``older_than``.

        With ``keep_read`` only unread records are removed.
        """
        conditions = [Notification.created_at < older_than]
        if keep_read:
            conditions.append(Notification.read_status.is_(False))

        async def work(session: AsyncSession) -> int:
            if dry_run:
                return await self._repo.count_where(session, *conditions)
            return await self._repo.delete_where(session, *conditions)

        return await self._atomic("cleanup", work)

    # ──────────────────────────────────────────────────────────────
    # Reporting
    # ──────────────────────────────────────────────────────────────

    async def group_by_type(
        self,
        user_id: str,
        *,
        include_read: bool = False,
        limit: int = 10,
    ) -> list[TypeGroup]:
        """Per-type counts with the latest record, newest group first."""

        async def work(session: AsyncSession) -> list[TypeGroup]:
            conditions = [] if include_read else [Notification.read_status.is_(False)]
            rows = await self._repo.rows_for_user(session, user_id, *conditions)

            groups: dict[str, dict[str, Any]] = {}
            for record in rows:
                group = groups.get(record.notification_type)
                if group is None:
                    # rows are newest first, so the first hit is the latest record
                    group = {"count": 0, "unread": 0, "latest": record}
                    groups[record.notification_type] = group
                group["count"] += 1
                if not record.read_status:
                    group["unread"] += 1

            ordered = sorted(
                groups.items(),
                key=lambda item: as_utc(item[1]["latest"].created_at),
                reverse=True,
            )
            return [
                TypeGroup(
                    type=type_name,
                    count=data["count"],
                    unread_count=data["unread"],
                    has_unread=data["unread"] > 0,
                    latest=NotificationView.from_record(data["latest"]),
                )
                for type_name, data in ordered[:limit]
            ]

        return await self._atomic("group_by_type", work)

    async def aggregate(
        self,
        user_id: str,
        *,
        start: datetime | None = None,
        end: datetime | None = None,
        group_by: AggregateGroupBy = "day",
    ) -> list[AnalyticsBucket]:
        """Count, read, unread, impressions and clicks per (bucket, type).

        The window defaults to the last 30 days. Buckets are computed in
        Python so the query stays portable across SQLite and PostgreSQL.
        """
        end = end or utcnow()
        start = start or end - timedelta(days=30)

        async def work(session: AsyncSession) -> list[AnalyticsBucket]:
            rows = await self._repo.rows_for_user(
                session,
                user_id,
                Notification.created_at >= start,
                Notification.created_at <= end,
            )
            buckets: dict[tuple[str, str], AnalyticsBucket] = {}
            for record in rows:
                key = (_bucket_key(as_utc(record.created_at).astimezone(UTC), group_by), record.notification_type)
                bucket = buckets.get(key) or AnalyticsBucket(bucket=key[0], type=key[1])
                bucket.count += 1
                if record.read_status:
                    bucket.read += 1
                else:
                    bucket.unread += 1
                bucket.impressions += record.impressions
                bucket.clicks += record.clicks
                buckets[key] = bucket
            return [buckets[key] for key in sorted(buckets)]

        return await self._atomic("aggregate", work)

    async def stats(self) -> StoreStats:
        """Totals used by the health snapshot."""

        async def work(session: AsyncSession) -> StoreStats:
            return StoreStats(
                total=await self._repo.count_where(session),
                unread=await self._repo.count_where(session, Notification.read_status.is_(False)),
                pending=await self._repo.count_where(
                    session, Notification.status == NotificationStatus.PENDING.value
                ),
                failed=await self._repo.count_where(
                    session, Notification.status == NotificationStatus.FAILED.value
                ),
            )

        return await self._atomic("stats", work)

    async def users_over_quota(self, max_per_user: int) -> list[str]:
        """Recipients holding more than ``max_per_user`` records."""

        async def work(session: AsyncSession) -> list[str]:
            stmt = (
                select(Notification.user_id)
                .group_by(Notification.user_id)
                .having(func.count() > max_per_user)
            )
            return list((await session.execute(stmt)).scalars().all())

        return await self._atomic("users_over_quota", work)
