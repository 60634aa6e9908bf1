"""Application identity settings used by logging and template rendering."""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

Environment = Literal["development", "staging", "production", "test"]


class AppSettings(BaseSettings):
    """Service identity and the public app links embedded in notifications.

    Environment variables use APP_ prefix.
    Example: APP_NAME="Your Dating App", APP_URL=https://yourapp.com
    """

    service_name: str = Field(
        default="notification-service",
        min_length=1,
        max_length=100,
        pattern=r"^[a-z0-9]+(-[a-z0-9]+)*$",
        description="Service name for logging/tracing (lowercase, hyphens allowed)",
    )
    name: str = Field(
        default="Your Dating App",
        min_length=1,
        max_length=200,
        description="Product name shown in email subjects and footers",
    )
    url: str = Field(
        default="https://yourapp.com",
        pattern=r"^https?://.+",
        description="Base URL prefixed to relative call-to-action paths",
    )
    environment: Environment = Field(
        default="development", description="Environment: development|staging|production|test",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )

    @property
    def base_url(self) -> str:
        """App URL without a trailing slash."""
        return self.url.rstrip("/")
