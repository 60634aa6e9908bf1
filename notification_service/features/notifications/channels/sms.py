"""SMS driver for a Twilio-compatible messaging gateway."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import httpx

from notification_service.core.results import Ok, Result, permanent
from notification_service.features.notifications.channels.base import DeliveryReceipt
from notification_service.features.notifications.channels.classifiers import classify_exception
from notification_service.features.notifications.models import Channel
from notification_service.infra.external import BaseHTTPClient

if TYPE_CHECKING:
    from notification_service.core.settings import SmsSettings
    from notification_service.features.notifications.directory import RecipientDirectory
    from notification_service.features.notifications.templates import RenderedPayload

logger = logging.getLogger(__name__)

NOT_INITIALIZED = "SMS service not initialized"


class SmsDriver:
    """Post the rendered one-line SMS body to ``Accounts/<sid>/Messages.json``.

    Disabled unless ``SMS_ENABLED`` is set; while disabled every send is a
    permanent failure so the channel is never retried.
    """

    channel = Channel.SMS

    def __init__(
        self,
        settings: SmsSettings,
        directory: RecipientDirectory,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings
        self._directory = directory
        self.timeout = settings.timeout
        self._http: BaseHTTPClient | None = None

        if settings.enabled:
            self._http = BaseHTTPClient(
                base_url=settings.api_url,
                timeout=settings.timeout,
                client=client,
            )
        else:
            logger.info("SMS driver disabled in settings", extra={"operation": "sms.init"})

    @property
    def enabled(self) -> bool:
        return self._http is not None

    async def send(self, user_id: str, payload: RenderedPayload) -> Result[DeliveryReceipt]:
        if self._http is None:
            logger.warning(
                f"{NOT_INITIALIZED}, skipping SMS for {payload.notification_id}",
                extra={"notification_id": payload.notification_id, "operation": "sms.send"},
            )
            return permanent(NOT_INITIALIZED, channel=self.channel.value)

        phone = payload.metadata.get("phoneNumber") or await self._directory.phone_for(user_id)
        if not phone:
            return permanent("User phone number not found", channel=self.channel.value, reason="unknown_recipient")

        auth_token = self._settings.auth_token.get_secret_value() if self._settings.auth_token else ""
        try:
            response = await self._http.request(
                "POST",
                f"/Accounts/{self._settings.account_sid}/Messages.json",
                data={"To": phone, "From": self._settings.from_number, "Body": payload.sms_body},
                auth=(self._settings.account_sid or "", auth_token),
            )
        except Exception as exc:
            return classify_exception(exc, channel=self.channel.value)

        sid = response.json().get("sid") if response.content else None
        logger.info(
            f"SMS for notification {payload.notification_id} sent",
            extra={"notification_id": payload.notification_id, "sid": sid, "operation": "sms.send"},
        )
        return Ok(DeliveryReceipt(external_message_id=sid, provider="twilio"))

    async def close(self) -> None:
        if self._http is not None:
            await self._http.close()
