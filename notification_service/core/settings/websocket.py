"""Realtime transport settings."""

from __future__ import annotations

from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class WebSocketSettings(BaseSettings):
    """Socket gateway that fans notifications out to connected clients.

    Environment variables use WS_ prefix.
    Example: WS_HOST=socket.internal, WS_SECRET=change-me
    """

    # ──────────────────────────────────────────────────────────────
    # Endpoint
    # ──────────────────────────────────────────────────────────────

    scheme: Literal["http", "https"] = Field(default="http")
    host: str = Field(default="localhost", min_length=1, max_length=255)
    port: int = Field(default=3002, ge=1, le=65535)
    notify_endpoint: str = Field(
        default="/notify",
        pattern=r"^/.*$",
        description="Path accepting notification envelopes",
    )
    secret: SecretStr | None = Field(
        default=None,
        description="Bearer token shared with the socket gateway",
    )

    # ──────────────────────────────────────────────────────────────
    # Timeouts and retries
    # ──────────────────────────────────────────────────────────────

    timeout: float = Field(default=5.0, gt=0, le=60, description="Per-request timeout in seconds")
    broadcast_timeout: float = Field(
        default=10.0,
        gt=0,
        le=120,
        description="Timeout for system-wide broadcasts in seconds",
    )
    max_retries: int = Field(
        default=3,
        ge=1,
        le=10,
        description="In-driver attempts before reporting a failure",
    )
    retry_delay_ms: int = Field(
        default=2000,
        ge=0,
        le=60_000,
        description="Linear in-driver backoff step in milliseconds",
    )

    model_config = SettingsConfigDict(
        env_prefix="WS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )

    @property
    def notify_url(self) -> str:
        return f"{self.scheme}://{self.host}:{self.port}{self.notify_endpoint}"
