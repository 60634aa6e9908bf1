"""SMS gateway settings.

Environment variables use SMS_ prefix.
Example: SMS_ENABLED=true, SMS_ACCOUNT_SID=AC..., SMS_FROM_NUMBER=+15550100
"""

from __future__ import annotations

from typing import Self

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SmsSettings(BaseSettings):
    """Twilio-compatible SMS gateway configuration. Disabled by default."""

    enabled: bool = Field(default=False, description="Enable SMS delivery")
    api_url: str = Field(
        default="https://api.twilio.com/2010-04-01",
        pattern=r"^https?://.+",
        description="Gateway base URL; messages are posted to Accounts/{sid}/Messages.json",
    )
    account_sid: str | None = Field(default=None, max_length=64)
    auth_token: SecretStr | None = Field(default=None)
    from_number: str | None = Field(default=None, max_length=32)
    timeout: float = Field(default=3.0, gt=0, le=60, description="Per-send timeout in seconds")

    model_config = SettingsConfigDict(
        env_prefix="SMS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )

    @model_validator(mode="after")
    def _require_credentials_when_enabled(self) -> Self:
        if self.enabled and not (self.account_sid and self.auth_token and self.from_number):
            msg = "SMS_ACCOUNT_SID, SMS_AUTH_TOKEN and SMS_FROM_NUMBER are required when SMS is enabled"
            raise ValueError(msg)
        return self
