"""Driver protocol and delivery receipt shared by every channel."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from notification_service.core.results import Result
    from notification_service.features.notifications.models import Channel
    from notification_service.features.notifications.templates import RenderedPayload


@dataclass(frozen=True, slots=True)
class DeliveryReceipt:
    """Successful hand-off to a transport.

    Attributes:
        external_message_id: Provider message id, if the provider returns one
        provider: Provider name reported by the gateway
        details: Channel-specific response data
    """

    external_message_id: str | None = None
    provider: str | None = None
    details: dict[str, Any] = field(default_factory=dict)


class ChannelDriver(Protocol):
    """Uniform send contract for every delivery channel.

    ``send`` never raises for delivery problems: failures come back as
    ``Err`` with ``TRANSIENT_DELIVERY`` (eligible for retry) or
    ``PERMANENT_DELIVERY`` (terminal for the channel).
    """

    channel: Channel
    timeout: float

    async def send(self, user_id: str, payload: RenderedPayload) -> Result[DeliveryReceipt]:
        """Deliver one rendered notification to ``user_id``."""
        ...

    async def close(self) -> None:
        """Release pooled connections."""
        ...
