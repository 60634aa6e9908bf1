"""Email gateway settings.

Environment variables use EMAIL_ prefix.
Example: EMAIL_SERVICE_URL=http://email-service:3005, EMAIL_API_KEY=secret
"""

from __future__ import annotations

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class EmailSettings(BaseSettings):
    """Configuration for the external email gateway (send-email, send-bulk-email)."""

    service_url: str = Field(
        default="http://localhost:3005",
        pattern=r"^https?://.+",
        description="Base URL of the email gateway",
    )
    api_key: SecretStr | None = Field(
        default=None,
        description="Value sent in the x-api-key header",
    )
    timeout: float = Field(default=10.0, gt=0, le=120, description="Request timeout in seconds")
    retries: int = Field(
        default=0,
        ge=0,
        le=5,
        description="Transport-level retries inside the HTTP client (the retry controller owns delivery retries)",
    )
    retry_delay: float = Field(default=1.0, ge=0, le=60, description="Seconds between client retries")
    bulk_limit: int = Field(
        default=100,
        ge=1,
        le=100,
        description="Maximum emails in one send-bulk-email request",
    )

    model_config = SettingsConfigDict(
        env_prefix="EMAIL_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )
