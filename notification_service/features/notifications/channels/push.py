"""Push driver.

No device-token registry is wired in yet, so the driver accepts every send
and reports a synthetic message id. Swapping in a provider only has to keep
the ``send`` contract.
"""

from __future__ import annotations

import logging
import secrets
import string
import time
from typing import TYPE_CHECKING

from notification_service.core.results import Ok, Result
from notification_service.features.notifications.channels.base import DeliveryReceipt
from notification_service.features.notifications.models import Channel

if TYPE_CHECKING:
    from notification_service.core.settings import PushSettings
    from notification_service.features.notifications.templates import RenderedPayload

logger = logging.getLogger(__name__)

_ID_ALPHABET = string.ascii_lowercase + string.digits


def synthetic_message_id() -> str:
    """``push_<epoch ms>_<9 base-36 chars>``."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"push_{int(time.time() * 1000)}_{suffix}"


class PushDriver:
    channel = Channel.PUSH

    def __init__(self, settings: PushSettings) -> None:
        self.timeout = settings.timeout

    async def send(self, user_id: str, payload: RenderedPayload) -> Result[DeliveryReceipt]:
        message_id = synthetic_message_id()
        logger.info(
            f"Push notification {payload.notification_id} queued for {user_id}",
            extra={
                "notification_id": payload.notification_id,
                "user_id": user_id,
                "message_id": message_id,
                "operation": "push.send",
            },
        )
        return Ok(DeliveryReceipt(external_message_id=message_id, provider="placeholder"))

    async def close(self) -> None:
        return None
