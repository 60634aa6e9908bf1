"""Per-type presentation table for email, SMS and CTA links."""

from __future__ import annotations

from dataclasses import dataclass

from notification_service.features.notifications.models import NotificationType, Priority


@dataclass(frozen=True, slots=True)
class TypeTemplate:
    """Subject prefix and call-to-action for one notification type.

    ``cta_path`` may contain ``{key}`` placeholders resolved from the
    notification metadata.
    """

    subject_prefix: str
    cta_text: str
    cta_path: str


DATE_TYPES: frozenset[NotificationType] = frozenset(
    {
        NotificationType.DATE_REQUEST,
        NotificationType.DATE_ACCEPTED,
        NotificationType.DATE_DECLINED,
        NotificationType.DATE_CANCELED,
        NotificationType.DATE_REMINDER,
    }
)

EMAIL_TEMPLATES: dict[NotificationType, TypeTemplate] = {
    NotificationType.MATCH: TypeTemplate("💕 New Match", "View Match", "/matches/{matchId}"),
    NotificationType.LIKE: TypeTemplate("❤️ Someone Likes You", "See Who Liked You", "/likes"),
    NotificationType.MESSAGE: TypeTemplate("💬 New Message", "Read Message", "/conversations/{conversationId}"),
    NotificationType.SYSTEM: TypeTemplate("📢 System Notification", "Learn More", "/notifications"),
    NotificationType.PAYMENT: TypeTemplate("💳 Payment Update", "View Payment Details", "/payment/history"),
    NotificationType.SECURITY: TypeTemplate("🔒 Security Alert", "Review Security", "/security"),
    NotificationType.DATE_REQUEST: TypeTemplate("💖 Date Invitation", "View Invitation", "/dates/{dateId}"),
    NotificationType.DATE_ACCEPTED: TypeTemplate("🎉 Date Accepted", "View Date Details", "/dates/{dateId}"),
    NotificationType.DATE_DECLINED: TypeTemplate("😔 Date Declined", "Find New Matches", "/dates/{dateId}"),
    NotificationType.DATE_CANCELED: TypeTemplate("❌ Date Canceled", "View Your Dates", "/dates/{dateId}"),
    NotificationType.DATE_REMINDER: TypeTemplate("⏰ Date Reminder", "View Date Details", "/dates/{dateId}"),
}

FALLBACK_TEMPLATE = EMAIL_TEMPLATES[NotificationType.SYSTEM]

# Email gateway priority per notification priority
EMAIL_PRIORITY: dict[Priority, str] = {
    Priority.URGENT: "high",
    Priority.HIGH: "high",
    Priority.NORMAL: "normal",
    Priority.LOW: "low",
}

PRIORITY_COLORS: dict[Priority, str] = {
    Priority.URGENT: "#dc3545",
    Priority.HIGH: "#fd7e14",
    Priority.NORMAL: "#007bff",
    Priority.LOW: "#28a745",
}

# Date card background and text color in the email body
DATE_CARD_STYLES: dict[NotificationType, tuple[str, str]] = {
    NotificationType.DATE_REQUEST: ("linear-gradient(135deg, #ff6b6b, #ff8e53)", "white"),
    NotificationType.DATE_ACCEPTED: ("linear-gradient(135deg, #51cf66, #40c057)", "white"),
    NotificationType.DATE_DECLINED: ("linear-gradient(135deg, #868e96, #6c757d)", "white"),
    NotificationType.DATE_CANCELED: ("linear-gradient(135deg, #dc3545, #c82333)", "white"),
    NotificationType.DATE_REMINDER: ("linear-gradient(135deg, #ffc107, #e0a800)", "#212529"),
}

# One-line SMS bodies; {{key}} placeholders come from metadata, title and message
SMS_TEMPLATES: dict[NotificationType, str] = {
    NotificationType.MATCH: "You have a new match! 💕 Open the app to see who it is.",
    NotificationType.MESSAGE: "New message from {{senderName}}! Open the app to reply.",
    NotificationType.SECURITY: "Security alert: {{message}}",
    NotificationType.DATE_REMINDER: "Reminder: {{title}}. Open the app for details.",
}

SMS_FALLBACK = "{{title}}: {{message}}"


def template_for(notification_type: NotificationType | str) -> TypeTemplate:
    """Template for a type; unknown types use the system template."""
    try:
        return EMAIL_TEMPLATES[NotificationType(notification_type)]
    except (KeyError, ValueError):
        return FALLBACK_TEMPLATE


def category_for(notification_type: NotificationType | str) -> str:
    """Coarse grouping used by the email gateway for analytics."""
    try:
        kind = NotificationType(notification_type)
    except ValueError:
        return NotificationType.SYSTEM.value
    if kind in DATE_TYPES:
        return "date"
    return kind.value
