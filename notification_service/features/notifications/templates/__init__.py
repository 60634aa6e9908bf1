"""Per-type rendering of notification payloads."""

from notification_service.features.notifications.templates.catalog import (
    EMAIL_TEMPLATES,
    SMS_TEMPLATES,
    TypeTemplate,
    template_for,
)
from notification_service.features.notifications.templates.renderer import RenderedPayload, TemplateRenderer

__all__ = [
    "EMAIL_TEMPLATES",
    "SMS_TEMPLATES",
    "RenderedPayload",
    "TemplateRenderer",
    "TypeTemplate",
    "template_for",
]
