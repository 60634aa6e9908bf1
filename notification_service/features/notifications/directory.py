"""Recipient directory: resolve a user id to contact addresses."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

import httpx

from notification_service.infra.external import BaseHTTPClient
from notification_service.utils.retry import RetryError

if TYPE_CHECKING:
    from notification_service.core.settings import UserServiceSettings

logger = logging.getLogger(__name__)


class RecipientDirectory(Protocol):
    async def email_for(self, user_id: str) -> str | None:
        """Email address, or None when the user is unknown."""
        ...

    async def phone_for(self, user_id: str) -> str | None:
        """Phone number in E.164 form, or None when unknown."""
        ...

    async def close(self) -> None: ...


class StaticDirectory:
    """Directory backed by in-process dictionaries."""

    def __init__(
        self,
        emails: dict[str, str] | None = None,
        phones: dict[str, str] | None = None,
    ) -> None:
        self._emails = dict(emails or {})
        self._phones = dict(phones or {})

    async def email_for(self, user_id: str) -> str | None:
        return self._emails.get(user_id)

    async def phone_for(self, user_id: str) -> str | None:
        return self._phones.get(user_id)

    async def close(self) -> None:
        return None


class UserServiceDirectory:
    """Directory backed by the user service identity endpoint.

    ``POST /user/get-user-identity {"user_id": ...}`` answers with
    ``{"data": {"email": ..., "phone": ...}}``. Lookup failures are logged
    and reported as an unknown recipient.
    """

    IDENTITY_PATH = "/user/get-user-identity"

    def __init__(self, settings: UserServiceSettings, client: httpx.AsyncClient | None = None) -> None:
        if not settings.url:
            msg = "USER_SERVICE_URL must be set to use the user service directory"
            raise ValueError(msg)
        self._http = BaseHTTPClient(
            base_url=settings.url,
            timeout=settings.timeout,
            max_retries=1,
            retry_delay=0.5,
            headers={"Content-Type": "application/json"},
            client=client,
        )

    async def _identity(self, user_id: str) -> dict[str, str]:
        try:
            body = await self._http.post(self.IDENTITY_PATH, json={"user_id": user_id})
        except (httpx.HTTPError, RetryError, ValueError) as e:
            logger.warning(
                f"User identity lookup failed for {user_id}: {e}",
                extra={"user_id": user_id, "operation": "directory.identity"},
            )
            return {}
        data = body.get("data") if isinstance(body, dict) else None
        return data if isinstance(data, dict) else {}

    async def email_for(self, user_id: str) -> str | None:
        return (await self._identity(user_id)).get("email") or None

    async def phone_for(self, user_id: str) -> str | None:
        identity = await self._identity(user_id)
        return identity.get("phone") or identity.get("phoneNumber") or None

    async def close(self) -> None:
        await self._http.close()
