"""Channel name to driver mapping iterated by the dispatcher."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from notification_service.features.notifications.models import Channel

if TYPE_CHECKING:
    from collections.abc import Iterator

    from notification_service.features.notifications.channels.base import ChannelDriver

logger = logging.getLogger(__name__)


class ChannelRegistry:
    """Registered drivers keyed by channel.

    Example:
        registry = ChannelRegistry()
        registry.register(EmailDriver(settings.email, directory))
        driver = registry.get(Channel.EMAIL)
    """

    def __init__(self, drivers: list[ChannelDriver] | None = None) -> None:
        self._drivers: dict[Channel, ChannelDriver] = {}
        for driver in drivers or []:
            self.register(driver)

    def register(self, driver: ChannelDriver) -> None:
        if driver.channel in self._drivers:
            logger.warning(
                f"Replacing driver for channel {driver.channel}",
                extra={"channel": driver.channel.value, "operation": "registry.register"},
            )
        self._drivers[driver.channel] = driver

    def get(self, channel: Channel) -> ChannelDriver | None:
        return self._drivers.get(channel)

    def __contains__(self, channel: object) -> bool:
        return channel in self._drivers

    def __iter__(self) -> Iterator[ChannelDriver]:
        return iter(self._drivers.values())

    def __len__(self) -> int:
        return len(self._drivers)

    @property
    def channels(self) -> list[Channel]:
        return list(self._drivers)

    async def close(self) -> None:
        """Close every driver, logging (not raising) individual failures."""
        for channel, driver in reversed(list(self._drivers.items())):
            try:
                await driver.close()
            except Exception as exc:
                logger.warning(
                    f"Failed to close {channel} driver: {exc}",
                    extra={"channel": channel.value, "operation": "registry.close"},
                )
