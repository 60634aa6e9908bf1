"""Jinja2 rendering of notification payloads for the channel drivers."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

from jinja2 import TemplateError, Undefined, select_autoescape
from jinja2.sandbox import SandboxedEnvironment

from notification_service.core.database import utcnow
from notification_service.features.notifications.dates import date_card_rows
from notification_service.features.notifications.models import NotificationType, Priority
from notification_service.features.notifications.templates.catalog import (
    DATE_CARD_STYLES,
    EMAIL_PRIORITY,
    PRIORITY_COLORS,
    SMS_FALLBACK,
    SMS_TEMPLATES,
    category_for,
    template_for,
)
from notification_service.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from notification_service.core.settings import AppSettings

lazy_logger = get_lazy_logger(__name__)

_PLACEHOLDER = re.compile(r"\{(\w+)\}")
_UNRESOLVED = re.compile(r"/?\{\w+\}")

EMAIL_HTML_TEMPLATE = """\
<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{{ title }}</title>
    <style>
        body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Helvetica, Arial, sans-serif;
               line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;
               background-color: #f8f9fa; }
        .email-container { background: white; border-radius: 12px; padding: 32px;
                           box-shadow: 0 4px 6px rgba(0, 0, 0, 0.1); }
        .header { border-left: 4px solid {{ accent }}; padding-left: 16px; margin-bottom: 24px; }
        .date-card { background: {{ card_background }}; color: {{ card_color }}; border-radius: 12px;
                     padding: 20px; margin: 20px 0; }
        .cta-button { display: inline-block; background: {{ accent }}; color: white; padding: 12px 24px;
                      border-radius: 6px; text-decoration: none; font-weight: 600; }
        .footer { margin-top: 32px; font-size: 12px; color: #6c757d; }
        .unsubscribe a { color: #6c757d; }
    </style>
</head>
<body>
    <div class="email-container">
        <div class="header"><h2>{{ title }}</h2></div>
        <p>Hi {{ user_name }},</p>
        {% if date_card %}
        <div class="date-card">
            {% for label, value in date_card %}
            <div><strong>{{ label }}:</strong> {{ value }}</div>
            {% endfor %}
        </div>
        {% endif %}
        <p>{% for line in message.split("\\n") %}{{ line }}{% if not loop.last %}<br>{% endif %}{% endfor %}</p>
        {% if cta_text and cta_url %}
        <p><a href="{{ cta_url }}" class="cta-button">{{ cta_text }}</a></p>
        {% endif %}
        <div class="footer">
            <p>This email was sent by {{ app_name }}.</p>
            <div class="unsubscribe">
                <p>If you no longer wish to receive these emails, you can
                <a href="{{ app_url }}/unsubscribe?token={unsubscribe_token}">unsubscribe here</a>.</p>
            </div>
        </div>
    </div>
</body>
</html>
"""


class _KeepPlaceholder(Undefined):
    """Render a missing SMS variable as its original ``{{name}}`` placeholder."""

    __slots__ = ()

    def __str__(self) -> str:
        return "{{" + (self._undefined_name or "") + "}}"


@dataclass(frozen=True, slots=True)
class RenderedPayload:
    """Everything a channel driver needs to deliver one notification."""

    notification_id: str
    user_id: str
    type: str
    title: str
    message: str
    subject: str
    html: str
    text: str
    priority: Priority
    email_priority: str
    category: str
    timestamp: datetime
    cta_text: str | None = None
    cta_url: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    cc: list[str] = field(default_factory=list)
    bcc: list[str] = field(default_factory=list)
    sms_body: str = ""


def _date_card_style(notification_type: NotificationType | str) -> tuple[str, str] | None:
    try:
        return DATE_CARD_STYLES.get(NotificationType(notification_type))
    except ValueError:
        return None


def _address_list(value: Any) -> list[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return [str(item) for item in value]


class TemplateRenderer:
    """Render subject, HTML, text and SMS bodies from the per-type table.

    Uses SandboxedEnvironment so metadata values can never execute code.
    """

    def __init__(self, app_settings: AppSettings) -> None:
        self._app_name = app_settings.name
        self._app_url = app_settings.base_url

        self._html_env = SandboxedEnvironment(
            autoescape=select_autoescape(default_for_string=True),
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self._html = self._html_env.from_string(EMAIL_HTML_TEMPLATE)

        self._sms_env = SandboxedEnvironment(autoescape=False, undefined=_KeepPlaceholder)

    def render(
        self,
        *,
        notification_id: str,
        user_id: str,
        notification_type: NotificationType | str,
        title: str,
        message: str,
        priority: Priority,
        metadata: dict[str, Any] | None = None,
        timestamp: datetime | None = None,
    ) -> RenderedPayload:
        """Produce the payload shared by every driver for one notification.

        Raises:
            jinja2.TemplateError: If a template fails to render.
        """
        metadata = dict(metadata or {})
        template = template_for(notification_type)
        cta_url = self.build_cta_url(template.cta_path, metadata)
        subject = self.build_subject(template.subject_prefix, priority)
        card_style = _date_card_style(notification_type)

        html = self._html.render(
            title=title,
            message=message,
            user_name=metadata.get("userName") or "there",
            cta_text=template.cta_text,
            cta_url=cta_url,
            accent=PRIORITY_COLORS.get(priority, PRIORITY_COLORS[Priority.NORMAL]),
            date_card=date_card_rows(metadata) if card_style else [],
            card_background=card_style[0] if card_style else "",
            card_color=card_style[1] if card_style else "",
            app_name=self._app_name,
            app_url=self._app_url,
        )
        text = f"{title}\n\n{message}\n\n{template.cta_text}: {cta_url}"

        payload = RenderedPayload(
            notification_id=notification_id,
            user_id=user_id,
            type=str(notification_type),
            title=title,
            message=message,
            subject=subject,
            html=html,
            text=text,
            priority=priority,
            email_priority=EMAIL_PRIORITY.get(priority, "normal"),
            category=category_for(notification_type),
            timestamp=timestamp or utcnow(),
            cta_text=template.cta_text,
            cta_url=cta_url,
            metadata=metadata,
            cc=_address_list(metadata.get("cc")),
            bcc=_address_list(metadata.get("bcc")),
            sms_body=self.render_sms(notification_type, title=title, message=message, metadata=metadata),
        )
        lazy_logger.debug(lambda: f"Rendered {notification_type} payload for {notification_id}: {subject}")
        return payload

    def build_subject(self, prefix: str, priority: Priority) -> str:
        urgent = " [URGENT]" if priority in (Priority.URGENT, Priority.HIGH) else ""
        return f"{prefix} - {self._app_name}{urgent}"

    def build_cta_url(self, path: str, metadata: dict[str, Any]) -> str:
        """Resolve ``{key}`` placeholders from metadata and make the URL absolute.

        Values are URL-quoted. Placeholders with no metadata value are removed
        together with their leading slash, so ``/dates/{dateId}`` without a
        ``dateId`` becomes ``/dates``.
        """

        def substitute(match: re.Match[str]) -> str:
            value = metadata.get(match.group(1))
            if value is None or value == "":
                return match.group(0)
            return quote(str(value), safe="")

        url = _UNRESOLVED.sub("", _PLACEHOLDER.sub(substitute, path))
        if not url:
            return self._app_url
        if url.startswith("/"):
            return f"{self._app_url}{url}"
        return url

    def render_sms(
        self,
        notification_type: NotificationType | str,
        *,
        title: str,
        message: str,
        metadata: dict[str, Any],
    ) -> str:
        try:
            source = SMS_TEMPLATES.get(NotificationType(notification_type), SMS_FALLBACK)
        except ValueError:
            source = SMS_FALLBACK
        context = {**metadata, "title": title, "message": message}
        try:
            body = self._sms_env.from_string(source).render(**context)
        except TemplateError as e:
            lazy_logger.warning(lambda: f"SMS template for {notification_type} failed, using plain text: {e}")
            body = f"{title}: {message}"
        return " ".join(body.split())
