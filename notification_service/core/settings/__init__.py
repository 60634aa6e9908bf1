"""Modular Pydantic Settings v2 configuration.

One settings class per domain, each with its own environment prefix
(APP_, DB_, LOG_, NOTIFICATIONS_, WS_, EMAIL_, PUSH_, SMS_, USER_SERVICE_),
frozen after validation and cached by the loaders.

Import settings via cached loaders:
    from notification_service.core.settings import get_notification_settings

Or the composed view used by the composition root:
    from notification_service.core.settings import get_settings

Configuration precedence (highest to lowest):
    1. init kwargs (testing/overrides)
    2. Environment variables
    3. .env file
"""

from __future__ import annotations

from .app import AppSettings
from .database import DatabaseSettings
from .email import EmailSettings
from .loader import (
    clear_all_caches,
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
from .unified import Settings, get_settings
from .users import UserServiceSettings
from .websocket import WebSocketSettings

__all__ = [
    "AppSettings",
    "DatabaseSettings",
    "EmailSettings",
    "LoggingSettings",
    "NotificationSettings",
    "PushSettings",
    "Settings",
    "SmsSettings",
    "UserServiceSettings",
    "WebSocketSettings",
    "clear_all_caches",
    "get_app_settings",
    "get_db_settings",
    "get_email_settings",
    "get_logging_settings",
    "get_notification_settings",
    "get_push_settings",
    "get_settings",
    "get_sms_settings",
    "get_user_service_settings",
    "get_websocket_settings",
]
