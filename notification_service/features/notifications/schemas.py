"""Pydantic schemas for intake, views and operation results.

External field names are camelCase (``notificationId``, ``readStatus``,
``analytics.deliveryAttempts``); Python code uses snake_case attributes.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator
from pydantic.alias_generators import to_camel

from notification_service.core.database import as_utc
from notification_service.features.notifications.models import (
    Channel,
    NotificationStatus,
    NotificationType,
    Priority,
)

if TYPE_CHECKING:
    from notification_service.features.notifications.models import Notification

# Legacy channel keys accepted at intake
CHANNEL_ALIASES: dict[str, str] = {
    "websocket": Channel.REALTIME.value,
    "in_app": Channel.IN_APP.value,
    "inapp": Channel.IN_APP.value,
}

AggregateGroupBy = Literal["hour", "day", "week", "month"]


class CamelModel(BaseModel):
    """Base model serialising to camelCase and accepting either spelling."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_dict(self) -> dict[str, Any]:
        """JSON-compatible dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)


def _ensure_utc(value: datetime | None) -> datetime | None:
    return as_utc(value).astimezone(UTC) if value is not None else None


# ============================================================================
# Intake
# ============================================================================


class Scheduling(CamelModel):
    immediate: bool = True
    scheduled_for: datetime | None = None
    timezone: str | None = Field(default=None, max_length=64)

    @field_validator("scheduled_for")
    @classmethod
    def _scheduled_utc(cls, value: datetime | None) -> datetime | None:
        return _ensure_utc(value)


class Grouping(CamelModel):
    group_id: str | None = Field(default=None, max_length=255)
    batch_id: str | None = Field(default=None, max_length=255)
    campaign_id: str | None = Field(default=None, max_length=255)


class NotificationIntake(CamelModel):
    """One logical notification submitted for dispatch.

    ``channels`` accepts ``{"email": true}`` or ``{"email": {"enabled": true}}``
    and is normalised to ``{Channel.EMAIL: True}``. An object without an
    ``enabled`` key is not an explicit choice and is dropped.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )

    notification_id: str | None = Field(default=None, min_length=1, max_length=64)
    user_id: str = Field(..., min_length=1, max_length=255)
    title: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1, max_length=1000)
    type: NotificationType
    priority: Priority = Priority.NORMAL
    metadata: dict[str, Any] = Field(default_factory=dict)
    channels: dict[Channel, bool] = Field(default_factory=dict)
    scheduling: Scheduling | None = None
    grouping: Grouping = Field(default_factory=Grouping)
    expires_at: datetime | None = None

    @field_validator("channels", mode="before")
    @classmethod
    def _normalize_channels(cls, value: Any) -> Any:
        if value is None:
            return {}
        if not isinstance(value, Mapping):
            return value

        normalized: dict[str, Any] = {}
        for key, flag in value.items():
            name = CHANNEL_ALIASES.get(str(key).lower(), key) if isinstance(key, str) else key
            if isinstance(flag, Mapping):
                if "enabled" not in flag:
                    continue
                flag = flag["enabled"]
            normalized[name] = flag
        return normalized

    @field_validator("metadata", mode="before")
    @classmethod
    def _default_metadata(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("expires_at")
    @classmethod
    def _expires_utc(cls, value: datetime | None) -> datetime | None:
        return _ensure_utc(value)


# ============================================================================
# Record views
# ============================================================================


class ChannelState(CamelModel):
    enabled: bool
    sent: bool
    sent_at: datetime | None = None
    external_message_id: str | None = None
    error: str | None = None
    attempts: int = 0
    terminal: bool = False

    @computed_field  # type: ignore[prop-decorator]
    @property
    def message_id(self) -> str | None:
        """Provider message id under its legacy name."""
        return self.external_message_id


class InteractionView(CamelModel):
    type: str
    timestamp: datetime
    metadata: dict[str, Any] | None = None


class AnalyticsView(CamelModel):
    impressions: int = 0
    clicks: int = 0
    delivery_attempts: int = 0
    last_delivery_attempt: datetime | None = None
    interactions: list[InteractionView] = Field(default_factory=list)


class NotificationView(CamelModel):
    """Serialized notification record."""

    notification_id: str
    user_id: str
    title: str
    message: str
    type: str
    priority: str
    status: NotificationStatus
    read_status: bool
    read_at: datetime | None = None
    delivered_at: datetime | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    channels: dict[str, ChannelState] = Field(default_factory=dict)
    analytics: AnalyticsView = Field(default_factory=AnalyticsView)
    grouping: Grouping = Field(default_factory=Grouping)
    scheduling: Scheduling | None = None
    expires_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_record(cls, record: Notification) -> NotificationView:
        scheduling = None
        if record.scheduled_for is not None or record.timezone is not None:
            scheduling = Scheduling(
                immediate=record.scheduled_for is None,
                scheduled_for=as_utc(record.scheduled_for),
                timezone=record.timezone,
            )

        return cls(
            notification_id=record.id,
            user_id=record.user_id,
            title=record.title,
            message=record.message,
            type=record.notification_type,
            priority=record.priority,
            status=NotificationStatus(record.status),
            read_status=record.read_status,
            read_at=as_utc(record.read_at),
            delivered_at=as_utc(record.delivered_at),
            metadata=dict(record.extra_metadata or {}),
            channels={
                row.channel: ChannelState(
                    enabled=row.enabled,
                    sent=row.sent,
                    sent_at=as_utc(row.sent_at),
                    external_message_id=row.external_message_id,
                    error=row.error,
                    attempts=row.attempts,
                    terminal=row.terminal,
                )
                for row in record.channels
            },
            analytics=AnalyticsView(
                impressions=record.impressions,
                clicks=record.clicks,
                delivery_attempts=record.delivery_attempts,
                last_delivery_attempt=as_utc(record.last_delivery_attempt),
                interactions=[
                    InteractionView(
                        type=entry.interaction_type,
                        timestamp=as_utc(entry.occurred_at),
                        metadata=entry.details,
                    )
                    for entry in record.interactions
                ],
            ),
            grouping=Grouping(
                group_id=record.group_id,
                batch_id=record.batch_id,
                campaign_id=record.campaign_id,
            ),
            scheduling=scheduling,
            expires_at=as_utc(record.expires_at),
            created_at=as_utc(record.created_at),
            updated_at=as_utc(record.updated_at),
        )


# ============================================================================
# Queries
# ============================================================================


class NotificationFilter(CamelModel):
    """Filters for listing a user's notifications."""

    type: NotificationType | None = None
    read_status: bool | None = Field(default=None, alias="read")
    status: NotificationStatus | None = None
    priority: Priority | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    order: Literal["asc", "desc"] = "desc"


class Paging(CamelModel):
    limit: int = Field(default=20, ge=1)
    offset: int = Field(default=0, ge=0)

    @field_validator("limit")
    @classmethod
    def _cap_limit(cls, value: int) -> int:
        return min(value, 100)


class NotificationPage(CamelModel):
    items: list[NotificationView]
    total: int
    limit: int
    offset: int
    has_more: bool


class TypeGroup(CamelModel):
    type: str
    count: int
    unread_count: int
    has_unread: bool
    latest: NotificationView


class AnalyticsBucket(CamelModel):
    bucket: str
    type: str
    count: int = 0
    read: int = 0
    unread: int = 0
    impressions: int = 0
    clicks: int = 0


class StoreStats(CamelModel):
    total: int
    unread: int
    pending: int
    failed: int


# ============================================================================
# Operation results
# ============================================================================


class ChannelOutcome(CamelModel):
    enabled: bool
    sent: bool = False
    external_message_id: str | None = None
    error: str | None = None
    retrying: bool = False


class DispatchResult(CamelModel):
    notification_id: str
    status: NotificationStatus
    saved_to_database: bool
    channels: dict[str, ChannelOutcome] = Field(default_factory=dict)


class BulkItemResult(CamelModel):
    index: int
    ok: bool
    notification_id: str | None = None
    status: NotificationStatus | None = None
    saved_to_database: bool = False
    error_kind: str | None = None
    error: str | None = None


class BulkResult(CamelModel):
    batch_id: str
    total: int
    successful: int
    failed: int
    results: list[BulkItemResult] = Field(default_factory=list)


class HealthSnapshot(CamelModel):
    status: Literal["healthy", "degraded", "shutting_down"]
    accepting: bool
    intakes_in_flight: int
    retries_in_flight: int
    channels: list[str]
    store: StoreStats | None = None
    error: str | None = None
