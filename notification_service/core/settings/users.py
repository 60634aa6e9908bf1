"""User service settings (recipient contact lookup)."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class UserServiceSettings(BaseSettings):
    """Environment variables use USER_SERVICE_ prefix."""

    url: str | None = Field(
        default=None,
        description="Base URL of the user service; None disables directory lookups",
    )
    timeout: float = Field(default=5.0, gt=0, le=60)

    model_config = SettingsConfigDict(
        env_prefix="USER_SERVICE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )
