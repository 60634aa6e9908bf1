"""Notification engine defaults: retention, quotas, channel toggles, retries."""

from __future__ import annotations

from typing import Self

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

TIME_OF_DAY_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class NotificationSettings(BaseSettings):
    """Global defaults consumed by the dispatch engine.

    This is the single canonical defaults table; deployments override
    individual values through the environment rather than shipping an
    alternate table.

    Environment variables use NOTIFICATIONS_ prefix.
    Example: NOTIFICATIONS_MAX_PER_USER=500, NOTIFICATIONS_ENABLE_SMS=true
    """

    # ──────────────────────────────────────────────────────────────
    # Retention and quotas
    # ──────────────────────────────────────────────────────────────

    default_ttl: int = Field(
        default=2_592_000,  # 30 days
        ge=3600,
        le=31_536_000,
        description="Seconds until a notification expires when the intake sets no expiry",
    )

    max_per_user: int = Field(
        default=1000,
        ge=100,
        le=10_000,
        description="Maximum stored notifications per user; oldest are evicted beyond this",
    )

    batch_size: int = Field(
        default=100,
        ge=10,
        le=1000,
        description="Bulk dispatch chunk size",
    )

    # ──────────────────────────────────────────────────────────────
    # Channel toggles
    # ──────────────────────────────────────────────────────────────

    enable_push: bool = Field(default=True, description="Send push notifications by default")
    enable_email: bool = Field(default=True, description="Send email notifications by default")
    enable_sms: bool = Field(default=False, description="Send SMS notifications by default")
    enable_websocket: bool = Field(
        default=True,
        description="Send realtime notifications over the socket transport by default",
    )
    enable_in_app: bool = Field(
        default=True,
        description="Store notifications in the in-app inbox by default",
    )

    # ──────────────────────────────────────────────────────────────
    # Retry policy
    # ──────────────────────────────────────────────────────────────

    max_retry_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Maximum delivery attempts per channel, first attempt included",
    )

    retry_delay_ms: int = Field(
        default=1000,
        ge=1,
        le=60_000,
        description="Base backoff delay in milliseconds",
    )

    retry_max_delay_ms: int = Field(
        default=300_000,
        ge=1,
        le=3_600_000,
        description="Backoff ceiling in milliseconds",
    )

    # ──────────────────────────────────────────────────────────────
    # Preferences
    # ──────────────────────────────────────────────────────────────

    preference_cache_ttl: int = Field(
        default=3600,
        ge=0,
        le=86_400,
        description="Seconds a user's preferences stay cached (0 disables caching)",
    )

    global_quiet_hours_enabled: bool = Field(
        default=False,
        description="Apply the global quiet-hours window to users without their own",
    )
    global_quiet_hours_start: str = Field(default="22:00", pattern=TIME_OF_DAY_PATTERN)
    global_quiet_hours_end: str = Field(default="08:00", pattern=TIME_OF_DAY_PATTERN)
    global_quiet_hours_timezone: str = Field(default="UTC", min_length=1)

    # ──────────────────────────────────────────────────────────────
    # Lifecycle
    # ──────────────────────────────────────────────────────────────

    shutdown_grace_period: float = Field(
        default=10.0,
        ge=0,
        le=300,
        description="Seconds in-flight intakes may run after shutdown begins",
    )

    sweep_cron: str = Field(
        default="0 0 * * *",
        min_length=9,
        description="Crontab expression (UTC) for the retention sweep",
    )

    model_config = SettingsConfigDict(
        env_prefix="NOTIFICATIONS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )

    @model_validator(mode="after")
    def _check_retry_bounds(self) -> Self:
        if self.retry_delay_ms > self.retry_max_delay_ms:
            msg = "retry_delay_ms must not exceed retry_max_delay_ms"
            raise ValueError(msg)
        return self
