"""LRU-cached settings loaders.

Settings are loaded and validated once, then cached for the lifetime of the
process.

Usage:
    from notification_service.core.settings.loader import get_notification_settings

    settings = get_notification_settings()  # First call: loads and validates
    settings = get_notification_settings()  # Subsequent calls: cached instance

Testing:
    Clear the caches to force a reload after changing the environment:
    clear_all_caches()

    Or construct instances directly:
    settings = NotificationSettings(max_per_user=100)
"""

from __future__ import annotations

from functools import lru_cache

from .app import AppSettings
from .database import DatabaseSettings
from .email import EmailSettings
from .logs import LoggingSettings
from .notifications import NotificationSettings
from .push import PushSettings
from .sms import SmsSettings
from .users import UserServiceSettings
from .websocket import WebSocketSettings


@lru_cache(maxsize=1)
def get_app_settings() -> AppSettings:
    """Get cached application settings.

    Returns:
        Validated and frozen AppSettings instance.
    """
    return AppSettings()


@lru_cache(maxsize=1)
def get_db_settings() -> DatabaseSettings:
    """Get cached database settings.

    Returns:
        Validated and frozen DatabaseSettings instance.
    """
    return DatabaseSettings()


@lru_cache(maxsize=1)
def get_logging_settings() -> LoggingSettings:
    """Get cached logging settings.

    Returns:
        Validated and frozen LoggingSettings instance.
    """
    return LoggingSettings()


@lru_cache(maxsize=1)
def get_notification_settings() -> NotificationSettings:
    """Get cached notification engine defaults.

    Returns:
        Validated and frozen NotificationSettings instance.
    """
    return NotificationSettings()


@lru_cache(maxsize=1)
def get_websocket_settings() -> WebSocketSettings:
    """Get cached realtime transport settings."""
    return WebSocketSettings()


@lru_cache(maxsize=1)
def get_email_settings() -> EmailSettings:
    """Get cached email gateway settings."""
    return EmailSettings()


@lru_cache(maxsize=1)
def get_push_settings() -> PushSettings:
    """Get cached push settings."""
    return PushSettings()


@lru_cache(maxsize=1)
def get_sms_settings() -> SmsSettings:
    """Get cached SMS gateway settings."""
    return SmsSettings()


@lru_cache(maxsize=1)
def get_user_service_settings() -> UserServiceSettings:
    """Get cached user service settings."""
    return UserServiceSettings()


def clear_all_caches() -> None:
    """Clear all settings caches.

    Useful for testing or when you need to force reload settings.
    In production, prefer process restarts over cache clearing.
    """
    get_app_settings.cache_clear()
    get_db_settings.cache_clear()
    get_logging_settings.cache_clear()
    get_notification_settings.cache_clear()
    get_websocket_settings.cache_clear()
    get_email_settings.cache_clear()
    get_push_settings.cache_clear()
    get_sms_settings.cache_clear()
    get_user_service_settings.cache_clear()
