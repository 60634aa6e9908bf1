"""Preference Resolver.

Computes the effective channel set for one intake from, in order of
precedence: explicit intake flags, the recipient's stored preferences,
quiet hours, and the global ``NOTIFICATIONS_ENABLE_*`` toggles.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, time as dt_time
from typing import TYPE_CHECKING, Protocol
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field

from notification_service.core.database import utcnow
from notification_service.features.notifications.models import Channel, NotificationType, Priority
from notification_service.features.notifications.schemas import CamelModel
from notification_service.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from collections.abc import Callable

    from notification_service.core.settings import NotificationSettings
    from notification_service.features.notifications.schemas import NotificationIntake

logger = logging.getLogger(__name__)
lazy_logger = get_lazy_logger(__name__)

# Channels silenced during quiet hours unless the intake is urgent
QUIET_HOURS_CHANNELS: frozenset[Channel] = frozenset({Channel.PUSH, Channel.SMS})


# ============================================================================
# Preference documents
# ============================================================================


class ChannelPreference(CamelModel):
    enabled: bool = True
    types: list[str] | None = None

    def allows(self, notification_type: NotificationType | str) -> bool:
        """A channel without a ``types`` list accepts every type."""
        if not self.enabled:
            return False
        return self.types is None or str(notification_type) in self.types


class QuietHours(CamelModel):
    enabled: bool = False
    start_time: str = Field(default="22:00", pattern=r"^([01]\d|2[0-3]):[0-5]\d$")
    end_time: str = Field(default="08:00", pattern=r"^([01]\d|2[0-3]):[0-5]\d$")
    timezone: str = "UTC"

    def contains(self, moment: datetime) -> bool:
        """Whether ``moment`` falls in the window, evaluated in the window's timezone.

        Both ends are inclusive at minute resolution, so a 22:00 to 08:00
        window still matches at 08:00:59. Windows may wrap midnight. An empty
        window (start equal to end) never matches.
        """
        if not self.enabled:
            return False

        try:
            zone = ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning(
                f"Unknown quiet-hours timezone {self.timezone!r}, using UTC",
                extra={"timezone": self.timezone, "operation": "preferences.quiet_hours"},
            )
            zone = ZoneInfo("UTC")

        local = moment.astimezone(zone).time().replace(second=0, microsecond=0)
        start = dt_time.fromisoformat(self.start_time)
        end = dt_time.fromisoformat(self.end_time)

        if start == end:
            return False
        if start < end:
            return start <= local <= end
        # Window spans midnight
        return local >= start or local <= end


class UserPreferences(CamelModel):
    """A recipient's notification preferences as held by the settings store."""

    version: int = 1
    channels: dict[Channel, ChannelPreference] = Field(default_factory=dict)
    quiet_hours: QuietHours | None = None


def default_preferences(settings: NotificationSettings) -> UserPreferences:
    """Preferences applied to users who never saved any.

    The type allow-lists are fixed; each channel is on only while its global
    ``NOTIFICATIONS_ENABLE_*`` toggle is.
    """
    return UserPreferences(
        channels={
            Channel.PUSH: ChannelPreference(
                enabled=settings.enable_push,
                types=["match", "like", "superlike", "connection", "message", "rizz"],
            ),
            Channel.EMAIL: ChannelPreference(
                enabled=settings.enable_email,
                types=["match", "connection", "system", "promotional"],
            ),
            Channel.SMS: ChannelPreference(enabled=settings.enable_sms),
            Channel.IN_APP: ChannelPreference(enabled=settings.enable_in_app),
        },
        quiet_hours=QuietHours(enabled=False, start_time="22:00", end_time="08:00", timezone="UTC"),
    )


# ============================================================================
# Sources
# ============================================================================


class PreferenceSource(Protocol):
    """Read side of the external settings store."""

    async def get(self, user_id: str) -> UserPreferences | None:
        """Stored preferences, or None when the user has none."""
        ...


class InMemoryPreferenceSource:
    """Process-local preference store.

    ``update`` bumps the version and notifies listeners so resolvers can
    drop their cached copy.
    """

    def __init__(self, preferences: dict[str, UserPreferences] | None = None) -> None:
        self._preferences: dict[str, UserPreferences] = dict(preferences or {})
        self._listeners: list[Callable[[str], None]] = []

    async def get(self, user_id: str) -> UserPreferences | None:
        return self._preferences.get(user_id)

    async def update(self, user_id: str, preferences: UserPreferences) -> UserPreferences:
        current = self._preferences.get(user_id)
        version = (current.version + 1) if current is not None else max(preferences.version, 1)
        stored = preferences.model_copy(update={"version": version})
        self._preferences[user_id] = stored

        for listener in self._listeners:
            listener(user_id)
        return stored

    def subscribe(self, listener: Callable[[str], None]) -> None:
        """Register a callback invoked with the user id after every update."""
        self._listeners.append(listener)


# ============================================================================
# Resolver
# ============================================================================


@dataclass(slots=True)
class ChannelResolution:
    """Effective per-channel flags for one intake."""

    channels: dict[Channel, bool]
    quiet_hours_suppressed: set[Channel] = field(default_factory=set)

    @property
    def stores_record(self) -> bool:
        return self.channels.get(Channel.IN_APP, False)

    @property
    def transport_channels(self) -> list[Channel]:
        """Enabled channels that go through a driver, in declaration order."""
        return [c for c in Channel if c.is_transport and self.channels.get(c, False)]


class PreferenceResolver:
    """Merge intake flags, user preferences, quiet hours and global toggles.

    Example:
        resolver = PreferenceResolver(source, settings)
        resolution = await resolver.resolve("u1", intake)
        if resolution.stores_record:
            ...
    """

    def __init__(
        self,
        source: PreferenceSource,
        settings: NotificationSettings,
        *,
        clock: Callable[[], datetime] = utcnow,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._source = source
        self._settings = settings
        self._clock = clock
        self._monotonic = monotonic
        self._cache: dict[str, tuple[float, UserPreferences]] = {}

    def global_default(self, channel: Channel) -> bool:
        match channel:
            case Channel.PUSH:
                return self._settings.enable_push
            case Channel.EMAIL:
                return self._settings.enable_email
            case Channel.SMS:
                return self._settings.enable_sms
            case Channel.REALTIME:
                return self._settings.enable_websocket
            case Channel.IN_APP:
                return self._settings.enable_in_app

    def global_quiet_hours(self) -> QuietHours | None:
        if not self._settings.global_quiet_hours_enabled:
            return None
        return QuietHours(
            enabled=True,
            start_time=self._settings.global_quiet_hours_start,
            end_time=self._settings.global_quiet_hours_end,
            timezone=self._settings.global_quiet_hours_timezone,
        )

    async def preferences_for(self, user_id: str) -> UserPreferences:
        """Cached preferences; falls back to defaults when the source fails."""
        ttl = self._settings.preference_cache_ttl
        now = self._monotonic()

        cached = self._cache.get(user_id)
        if cached is not None and cached[0] > now:
            return cached[1]

        try:
            stored = await self._source.get(user_id)
        except Exception as e:
            logger.warning(
                f"Preference lookup failed for {user_id}, using defaults: {e}",
                extra={"user_id": user_id, "operation": "preferences.fetch"},
            )
            return default_preferences(self._settings)

        preferences = stored if stored is not None else default_preferences(self._settings)
        if ttl > 0:
            self._cache[user_id] = (now + ttl, preferences)
        return preferences

    def invalidate(self, user_id: str) -> None:
        if self._cache.pop(user_id, None) is not None:
            lazy_logger.debug(lambda: f"preferences.invalidate: {user_id}")

    def invalidate_all(self) -> None:
        self._cache.clear()

    async def resolve(self, user_id: str, intake: NotificationIntake) -> ChannelResolution:
        """Effective channel flags plus the channels quiet hours switched off."""
        preferences = await self.preferences_for(user_id)

        channels: dict[Channel, bool] = {}
        for channel in Channel:
            if channel in intake.channels:
                channels[channel] = intake.channels[channel]
                continue
            preference = preferences.channels.get(channel)
            if preference is not None:
                channels[channel] = preference.allows(intake.type)
            else:
                channels[channel] = self.global_default(channel)

        suppressed: set[Channel] = set()
        quiet_hours = preferences.quiet_hours
        if quiet_hours is None or not quiet_hours.enabled:
            quiet_hours = self.global_quiet_hours()

        if intake.priority is not Priority.URGENT and quiet_hours is not None and quiet_hours.contains(self._clock()):
            for channel in QUIET_HOURS_CHANNELS:
                # Explicit intake flags beat quiet hours
                if channels[channel] and channel not in intake.channels:
                    channels[channel] = False
                    suppressed.add(channel)

        if suppressed:
            logger.info(
                f"Quiet hours suppressed {sorted(suppressed)} for {user_id}",
                extra={"user_id": user_id, "operation": "preferences.resolve"},
            )
        lazy_logger.debug(lambda: f"preferences.resolve: {user_id} -> {channels}")
        return ChannelResolution(channels=channels, quiet_hours_suppressed=suppressed)
