"""Unified settings composition handed to the composition root.

Usage:
    from notification_service.core.settings import get_settings

    settings = get_settings()
    print(settings.notifications.max_per_user)
    print(settings.websocket.notify_url)

Each nested settings class still loads from its own environment prefix.
Tests build a ``Settings`` directly with the domains they want to override.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from .app import AppSettings
from .database import DatabaseSettings
from .email import EmailSettings
from .loader import (
    get_app_settings,
    get_db_settings,
    get_email_settings,
    get_logging_settings,
    get_notification_settings,
    get_push_settings,
    get_sms_settings,
    get_user_service_settings,
    get_websocket_settings,
)
from .logs import LoggingSettings
from .notifications import NotificationSettings
from .push import PushSettings
from .sms import SmsSettings
from .users import UserServiceSettings
from .websocket import WebSocketSettings


class Settings(BaseModel):
    """All settings domains in one object.

    Example:
        settings = Settings(notifications=NotificationSettings(max_per_user=100))
        assert settings.app.name == "Your Dating App"
    """

    model_config = ConfigDict(frozen=True)

    app: AppSettings = Field(default_factory=get_app_settings)
    db: DatabaseSettings = Field(default_factory=get_db_settings)
    logging: LoggingSettings = Field(default_factory=get_logging_settings)
    notifications: NotificationSettings = Field(default_factory=get_notification_settings)
    websocket: WebSocketSettings = Field(default_factory=get_websocket_settings)
    email: EmailSettings = Field(default_factory=get_email_settings)
    push: PushSettings = Field(default_factory=get_push_settings)
    sms: SmsSettings = Field(default_factory=get_sms_settings)
    users: UserServiceSettings = Field(default_factory=get_user_service_settings)


def get_settings() -> Settings:
    """Compose the cached domain settings into one object."""
    return Settings()
