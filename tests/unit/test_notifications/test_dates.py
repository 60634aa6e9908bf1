"""Unit tests for the date notification builders."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from notification_service.features.notifications.dates import (
    DateDetails,
    DateParticipant,
    build_date_accepted,
    build_date_canceled,
    build_date_declined,
    build_date_reminder,
    build_date_request,
    date_card_rows,
    format_when,
)
from notification_service.features.notifications.models import Channel, NotificationType, Priority

PLANNED = datetime(2026, 6, 13, 19, 30, tzinfo=UTC)


@pytest.fixture
def date() -> DateDetails:
    return DateDetails.model_validate(
        {
            "date_id": "d-1",
            "planned_date": "2026-06-13T19:30:00Z",
            "location_name": "Cafe Luna",
            "details": "Coffee first?",
        }
    )


@pytest.fixture
def requester() -> DateParticipant:
    return DateParticipant.model_validate(
        {"user_id": "u1", "first_name": "Sam", "last_name": "Lee", "profile_picture": "https://cdn.test/sam.jpg"}
    )


@pytest.fixture
def recipient() -> DateParticipant:
    return DateParticipant(user_id="u2", first_name="Alex", last_name="Kim")


@pytest.mark.unit
class TestFormatting:
    """Test suite for date formatting and the email card rows."""

    def test_format_when(self):
        assert format_when(PLANNED) == "Saturday, June 13, 2026 at 7:30 PM"
        assert format_when(datetime(2026, 6, 14, 0, 5, tzinfo=UTC)) == "Sunday, June 14, 2026 at 12:05 AM"

    def test_format_when_in_timezone(self):
        # 19:30 UTC is 15:30 in New York during daylight saving time
        assert format_when(PLANNED, "America/New_York") == "Saturday, June 13, 2026 at 3:30 PM"

    def test_unknown_timezone_uses_utc(self):
        assert format_when(PLANNED, "Mars/Olympus") == format_when(PLANNED)

    def test_naive_datetime_is_utc(self):
        assert format_when(datetime(2026, 6, 13, 19, 30)) == format_when(PLANNED)

    def test_card_rows(self):
        rows = date_card_rows(
            {
                "plannedDate": PLANNED.isoformat(),
                "locationName": "Cafe Luna",
                "recipientName": "Alex Kim",
            }
        )

        assert rows == [
            ("📅 When", "Saturday, June 13, 2026 at 7:30 PM"),
            ("📍 Where", "Cafe Luna"),
            ("👤 With", "Alex Kim"),
        ]

    def test_card_rows_skip_missing_fields(self):
        assert date_card_rows({"dateId": "d-1"}) == []
        assert date_card_rows({"plannedDate": "next friday"}) == [("📅 When", "next friday")]


@pytest.mark.unit
class TestBuilders:
    """Test suite for each date lifecycle builder."""

    def test_request_goes_to_recipient(self, date, requester, recipient):
        intake = build_date_request(date, requester, recipient)

        assert intake.user_id == "u2"
        assert intake.type is NotificationType.DATE_REQUEST
        assert intake.priority is Priority.NORMAL
        assert intake.title == "New Date Invitation from Sam"
        assert intake.message.startswith("Sam Lee has invited you on a date!")
        assert "📅 When: Saturday, June 13, 2026 at 7:30 PM" in intake.message
        assert "📍 Where: Cafe Luna" in intake.message
        assert "💭 Message: Coffee first?" in intake.message
        assert intake.metadata["dateId"] == "d-1"
        assert intake.metadata["requesterName"] == "Sam Lee"
        assert intake.metadata["requesterProfilePicture"] == "https://cdn.test/sam.jpg"
        assert intake.metadata["plannedDate"] == "2026-06-13T19:30:00+00:00"
        assert intake.channels == {
            Channel.EMAIL: True,
            Channel.REALTIME: True,
            Channel.IN_APP: True,
            Channel.PUSH: True,
        }

    def test_request_without_location_or_details(self, requester, recipient):
        date = DateDetails(date_id="d-2", planned_date=PLANNED)

        intake = build_date_request(date, requester, recipient)

        assert "📍 Where: Location to be determined" in intake.message
        assert "💭" not in intake.message

    def test_accepted_goes_to_requester(self, date, requester, recipient):
        intake = build_date_accepted(date, requester, recipient)

        assert intake.user_id == "u1"
        assert intake.type is NotificationType.DATE_ACCEPTED
        assert intake.title == "Alex Accepted Your Date!"
        assert "Alex Kim has accepted your date invitation." in intake.message
        assert intake.metadata["recipientName"] == "Alex Kim"
        assert intake.metadata["recipientProfilePicture"] is None

    @pytest.mark.parametrize(
        ("reason", "expected"),
        [("Busy that week", True), ("", False)],
    )
    def test_declined_reason(self, date, requester, recipient, reason, expected):
        intake = build_date_declined(date, requester, recipient, reason)

        assert intake.user_id == "u1"
        assert intake.type is NotificationType.DATE_DECLINED
        assert intake.title == "Date Invitation Update"
        assert ("Reason: Busy that week" in intake.message) is expected
        assert intake.metadata == {
            "dateId": "d-1",
            "requesterId": "u1",
            "recipientId": "u2",
            "recipientName": "Alex Kim",
            "declineReason": reason,
        }

    def test_canceled_goes_to_recipient_with_reason(self, date, requester, recipient):
        intake = build_date_canceled(date, requester, recipient, "Feeling unwell")

        assert intake.user_id == "u2"
        assert intake.type is NotificationType.DATE_CANCELED
        assert intake.message.startswith(
            "Unfortunately, Sam Lee has canceled your date scheduled for Saturday, June 13, 2026 at 7:30 PM."
        )
        assert "Reason: Feeling unwell" in intake.message
        assert intake.metadata["cancellationReason"] == "Feeling unwell"

    @pytest.mark.parametrize(
        ("reminder_type", "text"),
        [("24_hours", "in 24 hours"), ("30_minutes", "in 30 minutes"), ("next_week", "soon")],
    )
    def test_reminder_text(self, date, recipient, reminder_type, text):
        intake = build_date_reminder(date, recipient, reminder_type)

        assert intake.user_id == "u2"
        assert intake.type is NotificationType.DATE_REMINDER
        assert intake.title == f"Date Reminder - Your date is {text}"
        assert intake.message.startswith(f"Hi Alex! This is a friendly reminder that you have a date {text}.")
        assert intake.metadata["reminderType"] == reminder_type

    def test_timezone_is_used_and_recorded(self, date, requester, recipient):
        intake = build_date_request(date, requester, recipient, timezone="America/New_York")

        assert "at 3:30 PM" in intake.message
        assert intake.metadata["timezone"] == "America/New_York"
        assert date_card_rows(intake.metadata)[0] == ("📅 When", "Saturday, June 13, 2026 at 3:30 PM")
