"""Intake builders for date lifecycle notifications.

Each builder turns a date and its participants into a ``NotificationIntake``
addressed to the right side of the date: invitations and cancellations go
to the recipient, acceptances and declines back to the requester, reminders
to whoever is passed in. The metadata carries ``dateId`` so the email CTA
resolves to ``/dates/{dateId}``, plus the fields the email date card shows.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field

from notification_service.core.database import as_utc
from notification_service.features.notifications.models import Channel, NotificationType, Priority
from notification_service.features.notifications.schemas import CamelModel, NotificationIntake

logger = logging.getLogger(__name__)

TBD_LOCATION = "Location to be determined"

REMINDER_TEXTS: dict[str, str] = {
    "24_hours": "in 24 hours",
    "4_hours": "in 4 hours",
    "1_hour": "in 1 hour",
    "30_minutes": "in 30 minutes",
}

# Every date notification goes out on all user-facing channels except SMS
DATE_CHANNELS: dict[Channel, bool] = {
    Channel.EMAIL: True,
    Channel.REALTIME: True,
    Channel.IN_APP: True,
    Channel.PUSH: True,
}


class DateParticipant(CamelModel):
    user_id: str = Field(..., min_length=1, max_length=255)
    first_name: str = Field(..., min_length=1)
    last_name: str = ""
    profile_picture: str | None = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class DateDetails(CamelModel):
    """The date being notified about."""

    date_id: str = Field(..., min_length=1)
    planned_date: datetime
    location_name: str | None = None
    details: str | None = None

    @property
    def where(self) -> str:
        return self.location_name or TBD_LOCATION


def _zone(timezone: str) -> ZoneInfo:
    try:
        return ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(
            f"Unknown date timezone {timezone!r}, using UTC",
            extra={"timezone": timezone, "operation": "dates.format"},
        )
        return ZoneInfo("UTC")


def format_when(moment: datetime, timezone: str = "UTC") -> str:
    """Long English date and 12-hour time, e.g. ``Saturday, June 13, 2026 at 7:30 PM``."""
    local = as_utc(moment).astimezone(_zone(timezone))
    hour = local.hour % 12 or 12
    meridiem = "AM" if local.hour < 12 else "PM"
    return f"{local:%A, %B} {local.day}, {local.year} at {hour}:{local.minute:02d} {meridiem}"


def date_card_rows(metadata: dict[str, Any]) -> list[tuple[str, str]]:
    """Label/value rows of the email date card, from notification metadata.

    Rows appear only for the fields present. An unparseable ``plannedDate``
    is shown as given.
    """
    rows: list[tuple[str, str]] = []

    planned = metadata.get("plannedDate")
    if planned:
        try:
            when = format_when(datetime.fromisoformat(str(planned)), metadata.get("timezone") or "UTC")
        except ValueError:
            when = str(planned)
        rows.append(("📅 When", when))

    if metadata.get("locationName"):
        rows.append(("📍 Where", str(metadata["locationName"])))
    for key in ("requesterName", "recipientName"):
        if metadata.get(key):
            rows.append(("👤 With", str(metadata[key])))
    return rows


def _base_metadata(date: DateDetails, timezone: str) -> dict[str, Any]:
    return {
        "dateId": date.date_id,
        "plannedDate": as_utc(date.planned_date).isoformat(),
        "locationName": date.location_name,
        "timezone": timezone,
    }


def _intake(
    recipient: DateParticipant,
    notification_type: NotificationType,
    title: str,
    message: str,
    metadata: dict[str, Any],
) -> NotificationIntake:
    return NotificationIntake(
        user_id=recipient.user_id,
        title=title,
        message=message,
        type=notification_type,
        priority=Priority.NORMAL,
        metadata=metadata,
        channels=dict(DATE_CHANNELS),
    )


def build_date_request(
    date: DateDetails,
    requester: DateParticipant,
    recipient: DateParticipant,
    *,
    timezone: str = "UTC",
) -> NotificationIntake:
    """Invitation sent to the recipient."""
    lines = [
        f"{requester.full_name} has invited you on a date!",
        "",
        f"📅 When: {format_when(date.planned_date, timezone)}",
        f"📍 Where: {date.where}",
    ]
    if date.details:
        lines.append(f"💭 Message: {date.details}")
    lines += ["", "You can accept or decline this invitation in the app."]

    return _intake(
        recipient,
        NotificationType.DATE_REQUEST,
        f"New Date Invitation from {requester.first_name}",
        "\n".join(lines),
        {
            **_base_metadata(date, timezone),
            "requesterId": requester.user_id,
            "recipientId": recipient.user_id,
            "requesterName": requester.full_name,
            "requesterProfilePicture": requester.profile_picture,
        },
    )


def build_date_accepted(
    date: DateDetails,
    requester: DateParticipant,
    recipient: DateParticipant,
    *,
    timezone: str = "UTC",
) -> NotificationIntake:
    """Acceptance sent back to the requester."""
    message = "\n".join(
        [
            f"Great news! {recipient.full_name} has accepted your date invitation.",
            "",
            f"📅 When: {format_when(date.planned_date, timezone)}",
            f"📍 Where: {date.where}",
            "",
            "Get ready for your date! We'll send you reminders as the date approaches.",
        ]
    )
    return _intake(
        requester,
        NotificationType.DATE_ACCEPTED,
        f"{recipient.first_name} Accepted Your Date!",
        message,
        {
            **_base_metadata(date, timezone),
            "requesterId": requester.user_id,
            "recipientId": recipient.user_id,
            "recipientName": recipient.full_name,
            "recipientProfilePicture": recipient.profile_picture,
        },
    )


def build_date_declined(
    date: DateDetails,
    requester: DateParticipant,
    recipient: DateParticipant,
    reason: str = "",
) -> NotificationIntake:
    """Decline sent back to the requester, with the recipient's reason when given."""
    message = f"{recipient.full_name} has declined your date invitation."
    if reason:
        message += f"\n\nReason: {reason}"
    message += (
        "\n\nDon't worry! There are plenty of other amazing people waiting to meet you. "
        "Keep exploring and you'll find your perfect match!"
    )
    return _intake(
        requester,
        NotificationType.DATE_DECLINED,
        "Date Invitation Update",
        message,
        {
            "dateId": date.date_id,
            "requesterId": requester.user_id,
            "recipientId": recipient.user_id,
            "recipientName": recipient.full_name,
            "declineReason": reason,
        },
    )


def build_date_canceled(
    date: DateDetails,
    requester: DateParticipant,
    recipient: DateParticipant,
    reason: str = "",
    *,
    timezone: str = "UTC",
) -> NotificationIntake:
    """Cancellation by the requester, sent to the recipient."""
    message = (
        f"Unfortunately, {requester.full_name} has canceled your date scheduled for "
        f"{format_when(date.planned_date, timezone)}."
    )
    if reason:
        message += f"\n\nReason: {reason}"
    message += "\n\nWe're sorry for any inconvenience. Feel free to browse other matches and plan new dates!"
    return _intake(
        recipient,
        NotificationType.DATE_CANCELED,
        "Date Canceled",
        message,
        {
            **_base_metadata(date, timezone),
            "requesterId": requester.user_id,
            "recipientId": recipient.user_id,
            "requesterName": requester.full_name,
            "cancellationReason": reason,
        },
    )


def build_date_reminder(
    date: DateDetails,
    participant: DateParticipant,
    reminder_type: str,
    *,
    timezone: str = "UTC",
) -> NotificationIntake:
    """Reminder for either participant; unknown ``reminder_type`` values read as "soon"."""
    reminder_text = REMINDER_TEXTS.get(reminder_type, "soon")
    message = "\n".join(
        [
            f"Hi {participant.first_name}! This is a friendly reminder that you have a date {reminder_text}.",
            "",
            f"📅 When: {format_when(date.planned_date, timezone)}",
            f"📍 Where: {date.where}",
            "",
            "Make sure you're ready and on time. Have a wonderful time!",
        ]
    )
    return _intake(
        participant,
        NotificationType.DATE_REMINDER,
        f"Date Reminder - Your date is {reminder_text}",
        message,
        {**_base_metadata(date, timezone), "reminderType": reminder_type},
    )
