"""Push gateway settings."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class PushSettings(BaseSettings):
    """Push delivery settings.

    Environment variables use PUSH_ prefix.
    """

    enabled: bool = Field(default=True, description="Register the push driver")
    timeout: float = Field(default=10.0, gt=0, le=120, description="Per-send timeout in seconds")

    model_config = SettingsConfigDict(
        env_prefix="PUSH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )
