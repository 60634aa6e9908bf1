"""SQLAlchemy models and enumerations for notification records.

A notification is stored as one ``notifications`` row plus one
``notification_channels`` row per delivery channel and an append-only
``notification_interactions`` log. Splitting the per-channel sub-record into
its own rows lets each channel outcome be written by its own statement
without touching sibling channels.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from notification_service.core.database import Base, IntegerPKMixin, TimestampMixin, utcnow


class NotificationType(StrEnum):
    MESSAGE = "message"
    MATCH = "match"
    LIKE = "like"
    SUPERLIKE = "superlike"
    RIZZ = "rizz"
    CONNECTION = "connection"
    SYSTEM = "system"
    PROMOTIONAL = "promotional"
    REMINDER = "reminder"
    UPDATE = "update"
    ALERT = "alert"
    WARNING = "warning"
    ERROR = "error"
    SUCCESS = "success"
    INFO = "info"
    ACHIEVEMENT = "achievement"
    EVENT = "event"
    SOCIAL = "social"
    PAYMENT = "payment"
    SECURITY = "security"
    MAINTENANCE = "maintenance"
    DATE_REQUEST = "date_request"
    DATE_ACCEPTED = "date_accepted"
    DATE_DECLINED = "date_declined"
    DATE_CANCELED = "date_canceled"
    DATE_REMINDER = "date_reminder"


class Priority(StrEnum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class NotificationStatus(StrEnum):
    """Record lifecycle: pending -> sent|failed -> delivered -> read."""

    PENDING = "pending"
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"
    FAILED = "failed"


class Channel(StrEnum):
    """Delivery surfaces. ``inApp`` is the durable record itself."""

    PUSH = "push"
    EMAIL = "email"
    SMS = "sms"
    REALTIME = "realtime"
    IN_APP = "inApp"

    @property
    def is_transport(self) -> bool:
        """Whether delivery goes through an external driver."""
        return self is not Channel.IN_APP


class InteractionType(StrEnum):
    READ = "read"
    UNREAD = "unread"
    IMPRESSION = "impression"
    CLICK = "click"


class Notification(Base, TimestampMixin):
    """Durable notification record.

    ``status`` only moves forward through the first-attempt outcome
    (pending -> sent|failed) and the read path; once ``read`` it never
    regresses except through an explicit mark-unread.

    Indexes:
        - (user_id, created_at) for inbox listing
        - (user_id, notification_type, created_at) for per-type views
        - (user_id, read_status, created_at) for unread counts
        - (user_id, status, created_at) for status filters
        - expires_at for the retention sweep
    """

    __tablename__ = "notifications"

    id: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        comment="Stable notification id assigned at intake",
    )
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, comment="Recipient id")
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(String(1000), nullable=False)
    notification_type: Mapped[str] = mapped_column(String(50), nullable=False)
    priority: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=Priority.NORMAL.value,
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=NotificationStatus.PENDING.value,
    )

    # Read tracking
    read_status: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    delivered_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="Set in the same transaction that first marks a channel sent",
    )

    # Free-form template parameters; "metadata" is reserved on declarative classes
    extra_metadata: Mapped[dict[str, Any]] = mapped_column(
        "metadata",
        JSON,
        nullable=False,
        default=dict,
    )

    # Scheduling
    scheduled_for: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    timezone: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # Grouping
    group_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    batch_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    campaign_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Analytics counters
    impressions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    clicks: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    delivery_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_delivery_attempt: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    last_delivery_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    channels: Mapped[list[NotificationChannel]] = relationship(
        "NotificationChannel",
        back_populates="notification",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
        order_by="NotificationChannel.channel",
    )
    interactions: Mapped[list[NotificationInteraction]] = relationship(
        "NotificationInteraction",
        back_populates="notification",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
        order_by="NotificationInteraction.id",
    )

    __table_args__ = (
        Index("ix_notifications_user_created", "user_id", "created_at"),
        Index("ix_notifications_user_type_created", "user_id", "notification_type", "created_at"),
        Index("ix_notifications_user_read_created", "user_id", "read_status", "created_at"),
        Index("ix_notifications_user_status_created", "user_id", "status", "created_at"),
        Index("ix_notifications_expires_at", "expires_at"),
        Index("ix_notifications_group_id", "group_id"),
        Index("ix_notifications_batch_id", "batch_id"),
        Index("ix_notifications_campaign_id", "campaign_id"),
        Index("ix_notifications_priority_created", "priority", "created_at"),
    )

    def channel(self, name: Channel | str) -> NotificationChannel | None:
        """Return the sub-record for one channel, if the record has it."""
        for row in self.channels:
            if row.channel == name:
                return row
        return None

    def __repr__(self) -> str:
        return f"<Notification(id={self.id}, user_id={self.user_id}, status={self.status})>"


class NotificationChannel(Base):
    """Per-channel delivery sub-record.

    ``terminal`` is set once the channel has a final outcome (sent,
    permanent failure, retries exhausted, expired) and no retry will
    touch it again.
    """

    __tablename__ = "notification_channels"

    notification_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("notifications.id", ondelete="CASCADE"),
        primary_key=True,
    )
    channel: Mapped[str] = mapped_column(String(20), primary_key=True)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    external_message_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    terminal: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    notification: Mapped[Notification] = relationship("Notification", back_populates="channels")

    def __repr__(self) -> str:
        return (
            f"<NotificationChannel(notification_id={self.notification_id}, "
            f"channel={self.channel}, sent={self.sent})>"
        )


class NotificationInteraction(Base, IntegerPKMixin):
    """Append-only analytics entry (read, unread, impression, click)."""

    __tablename__ = "notification_interactions"

    notification_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("notifications.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    interaction_type: Mapped[str] = mapped_column(String(20), nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    details: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    notification: Mapped[Notification] = relationship("Notification", back_populates="interactions")
