"""Realtime driver: hand notifications to the socket gateway over HTTP."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any

import httpx

from notification_service.core.database import utcnow
from notification_service.core.results import Err, Ok, Result
from notification_service.features.notifications.channels.base import DeliveryReceipt
from notification_service.features.notifications.channels.classifiers import classify_exception
from notification_service.features.notifications.models import Channel
from notification_service.infra.external import BaseHTTPClient

if TYPE_CHECKING:
    from notification_service.core.settings import WebSocketSettings
    from notification_service.features.notifications.templates import RenderedPayload

logger = logging.getLogger(__name__)

USER_AGENT = "Notification-Microservice/1.0"


class RealtimeDriver:
    """POST a notification envelope to the socket gateway's notify endpoint.

    The gateway fans the event out to the user's open sockets on channel
    ``user:<userId>``. Transient failures are retried inside the driver up to
    ``max_retries`` attempts with a linear delay of ``retry_delay_ms * attempt``.
    """

    channel = Channel.REALTIME

    def __init__(self, settings: WebSocketSettings, client: httpx.AsyncClient | None = None) -> None:
        self._settings = settings
        headers = {"Content-Type": "application/json", "User-Agent": USER_AGENT}
        if settings.secret is not None:
            headers["Authorization"] = f"Bearer {settings.secret.get_secret_value()}"

        self._http = BaseHTTPClient(
            base_url=settings.notify_url,
            timeout=settings.timeout,
            max_retries=0,
            headers=headers,
            client=client,
        )

    @property
    def timeout(self) -> float:
        """Whole-call budget: every attempt plus the delays between them."""
        attempts = self._settings.max_retries
        delays = sum(self._settings.retry_delay_ms * n for n in range(1, attempts)) / 1000
        return self._settings.timeout * attempts + delays

    @staticmethod
    def envelope(payload: RenderedPayload) -> dict[str, Any]:
        return {
            "userId": payload.user_id,
            "notification": {
                "id": payload.notification_id,
                "title": payload.title,
                "message": payload.message,
                "type": payload.type,
                "priority": payload.priority.value,
                "metadata": payload.metadata,
                "timestamp": payload.timestamp.isoformat(),
            },
            "event": "notification",
            "channel": f"user:{payload.user_id}",
        }

    async def send(self, user_id: str, payload: RenderedPayload) -> Result[DeliveryReceipt]:
        body = self.envelope(payload)
        attempts = self._settings.max_retries

        attempt = 0
        while True:
            attempt += 1
            start_time = time.time()
            try:
                response = await self._http.request("POST", self._settings.notify_url, json=body)
            except Exception as exc:
                failure = classify_exception(exc, channel=self.channel.value)
                logger.warning(
                    f"Realtime attempt {attempt}/{attempts} for {payload.notification_id} failed: {failure.message}",
                    extra={
                        "notification_id": payload.notification_id,
                        "user_id": user_id,
                        "attempt": attempt,
                        "operation": "realtime.send",
                    },
                )
                if not failure.is_retryable or attempt >= attempts:
                    return Err(failure.kind, failure.message, {**failure.details, "attempts": attempt})
                await asyncio.sleep(self._settings.retry_delay_ms * attempt / 1000)
                continue

            elapsed_ms = int((time.time() - start_time) * 1000)
            logger.info(
                f"Realtime notification {payload.notification_id} accepted for {user_id}",
                extra={
                    "notification_id": payload.notification_id,
                    "user_id": user_id,
                    "attempt": attempt,
                    "duration_ms": elapsed_ms,
                    "operation": "realtime.send",
                },
            )
            message_id = None
            if response.content:
                try:
                    message_id = response.json().get("messageId")
                except (ValueError, AttributeError):
                    message_id = None
            return Ok(DeliveryReceipt(external_message_id=message_id, details={"attempts": attempt}))


    async def broadcast(self, payload: RenderedPayload) -> Result[DeliveryReceipt]:
        """Send a system-wide notification to every connected user."""
        body = {
            "broadcast": True,
            "notification": {
                "id": payload.notification_id,
                "title": payload.title,
                "message": payload.message,
                "type": payload.type or "system",
                "priority": payload.priority.value,
                "metadata": payload.metadata,
                "timestamp": utcnow().isoformat(),
            },
            "event": "system_notification",
            "channel": "system",
        }
        try:
            await self._http.request(
                "POST",
                self._settings.notify_url,
                json=body,
                timeout=self._settings.broadcast_timeout,
            )
        except Exception as exc:
            failure = classify_exception(exc, channel=self.channel.value)
            logger.error(
                f"System broadcast {payload.notification_id} failed: {failure.message}",
                extra={"notification_id": payload.notification_id, "operation": "realtime.broadcast"},
            )
            return failure

        logger.info(
            f"System broadcast {payload.notification_id} sent",
            extra={"notification_id": payload.notification_id, "operation": "realtime.broadcast"},
        )
        return Ok(DeliveryReceipt(details={"broadcast": True}))

    async def close(self) -> None:
        await self._http.close()
