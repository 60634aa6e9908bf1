"""Email driver backed by the email gateway service."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

import httpx

from notification_service.core.results import Err, ErrorKind, Ok, Result, permanent
from notification_service.features.notifications.channels.base import DeliveryReceipt
from notification_service.features.notifications.channels.classifiers import classify_exception
from notification_service.features.notifications.models import Channel
from notification_service.infra.external import BaseHTTPClient

if TYPE_CHECKING:
    from notification_service.core.settings import EmailSettings
    from notification_service.features.notifications.directory import RecipientDirectory
    from notification_service.features.notifications.templates import RenderedPayload

logger = logging.getLogger(__name__)

USER_AGENT = "NotificationService/1.0"
SOURCE = "notification-service"


class EmailDriver:
    """Send rendered notifications through ``POST /send-email``.

    The recipient address is taken from ``metadata.email`` when present,
    otherwise from the recipient directory. An unknown recipient is a
    permanent failure.
    """

    channel = Channel.EMAIL

    def __init__(
        self,
        settings: EmailSettings,
        directory: RecipientDirectory,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings
        self._directory = directory
        self.timeout = settings.timeout

        headers = {"Content-Type": "application/json", "User-Agent": USER_AGENT}
        if settings.api_key is not None:
            headers["x-api-key"] = settings.api_key.get_secret_value()

        self._http = BaseHTTPClient(
            base_url=settings.service_url,
            timeout=settings.timeout,
            max_retries=settings.retries,
            retry_delay=settings.retry_delay,
            headers=headers,
            client=client,
        )

    async def recipient_for(self, user_id: str, payload: RenderedPayload) -> str | None:
        address = payload.metadata.get("email")
        if isinstance(address, str) and address:
            return address
        return await self._directory.email_for(user_id)

    @staticmethod
    def build_message(to: str, payload: RenderedPayload) -> dict[str, Any]:
        message: dict[str, Any] = {
            "to": to,
            "subject": payload.subject,
            "message": payload.message,
            "html": payload.html,
            "text": payload.text,
            "priority": payload.email_priority,
            "metadata": {
                "notificationId": payload.notification_id,
                "userId": payload.user_id,
                "type": payload.type,
                "source": SOURCE,
            },
        }
        if payload.cc:
            message["cc"] = payload.cc
        if payload.bcc:
            message["bcc"] = payload.bcc
        return message

    async def send(self, user_id: str, payload: RenderedPayload) -> Result[DeliveryReceipt]:
        to = await self.recipient_for(user_id, payload)
        if not to:
            logger.warning(
                f"No email address for {user_id}, notification {payload.notification_id} not emailed",
                extra={"user_id": user_id, "operation": "email.send"},
            )
            return permanent("User email not found or invalid", channel=self.channel.value, reason="unknown_recipient")

        start_time = time.time()
        try:
            body = await self._http.post("/send-email", json=self.build_message(to, payload))
        except Exception as exc:
            return classify_exception(exc, channel=self.channel.value)

        if body.get("success") is False:
            return permanent(
                f"Email gateway rejected message: {body.get('message', 'unknown error')}",
                channel=self.channel.value,
            )

        # The gateway answers either {data: {messageId, provider}} or a flat body
        data = body.get("data") or {}
        message_id = data.get("messageId") or body.get("messageId")
        provider = data.get("provider") or body.get("provider")
        elapsed_ms = int((time.time() - start_time) * 1000)
        logger.info(
            f"Email for notification {payload.notification_id} sent",
            extra={
                "notification_id": payload.notification_id,
                "user_id": user_id,
                "message_id": message_id,
                "provider": provider,
                "duration_ms": elapsed_ms,
                "operation": "email.send",
            },
        )
        return Ok(
            DeliveryReceipt(
                external_message_id=message_id,
                provider=provider,
            )
        )

    async def send_bulk(self, messages: list[dict[str, Any]]) -> Result[dict[str, Any]]:
        """Send up to ``bulk_limit`` prebuilt messages in one gateway call.

        Returns the gateway's ``summary`` and per-message ``results``.
        """
        if not messages:
            return Err(ErrorKind.VALIDATION, "At least one email is required")
        if len(messages) > self._settings.bulk_limit:
            return Err(
                ErrorKind.VALIDATION,
                f"Maximum {self._settings.bulk_limit} emails per batch",
                {"count": len(messages)},
            )

        start_time = time.time()
        try:
            body = await self._http.post("/send-bulk-email", json={"emails": messages})
        except Exception as exc:
            return classify_exception(exc, channel=self.channel.value)

        summary = body.get("summary") or {}
        logger.info(
            f"Bulk email sent: {summary.get('successful', 0)}/{summary.get('total', len(messages))}",
            extra={
                "count": len(messages),
                "duration_ms": int((time.time() - start_time) * 1000),
                "operation": "email.send_bulk",
            },
        )
        return Ok({"summary": summary, "results": body.get("results", [])})

    async def check_health(self) -> dict[str, Any]:
        """Gateway health as reported by ``GET /health``."""
        try:
            response = await self._http.request("GET", "/health")
            data = response.json() if response.content else {}
        except Exception as exc:
            logger.warning(
                f"Email gateway health check failed: {exc}",
                extra={"operation": "email.health"},
            )
            return {"healthy": False, "error": str(exc)}
        return {"healthy": bool(data.get("success", True)), "status": data.get("status", "operational")}

    async def close(self) -> None:
        await self._http.close()
