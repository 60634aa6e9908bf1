"""In-app channel: the durable record is the delivery."""

from __future__ import annotations

from typing import TYPE_CHECKING

from notification_service.core.results import Ok, Result
from notification_service.features.notifications.channels.base import DeliveryReceipt
from notification_service.features.notifications.models import Channel

if TYPE_CHECKING:
    from notification_service.features.notifications.templates import RenderedPayload


class InAppDriver:
    """No transport call; the dispatcher marks the channel sent once the record exists."""

    channel = Channel.IN_APP
    timeout = 1.0

    async def send(self, user_id: str, payload: RenderedPayload) -> Result[DeliveryReceipt]:
        return Ok(DeliveryReceipt(external_message_id=payload.notification_id, provider="in_app"))

    async def close(self) -> None:
        return None
