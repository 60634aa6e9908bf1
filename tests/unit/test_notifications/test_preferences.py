"""Unit tests for the preference resolver."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from notification_service.core.settings import NotificationSettings
from notification_service.features.notifications.models import Channel
from notification_service.features.notifications.preferences import (
    ChannelPreference,
    InMemoryPreferenceSource,
    PreferenceResolver,
    QuietHours,
    UserPreferences,
    default_preferences,
)
from notification_service.features.notifications.schemas import NotificationIntake

NIGHT = datetime(2026, 5, 1, 23, 30, tzinfo=UTC)
NOON = datetime(2026, 5, 1, 12, 0, tzinfo=UTC)


def _intake(**overrides) -> NotificationIntake:
    values = {"userId": "u1", "type": "match", "title": "New Match", "message": "You matched"}
    values.update(overrides)
    return NotificationIntake.model_validate(values)


def _resolver(source=None, *, settings=None, clock=lambda: NOON, monotonic=None) -> PreferenceResolver:
    kwargs = {"clock": clock}
    if monotonic is not None:
        kwargs["monotonic"] = monotonic
    return PreferenceResolver(source or InMemoryPreferenceSource(), settings or NotificationSettings(), **kwargs)


class FailingSource:
    async def get(self, user_id: str) -> UserPreferences | None:
        raise ConnectionError("settings store unreachable")


class CountingSource(InMemoryPreferenceSource):
    def __init__(self, preferences=None) -> None:
        super().__init__(preferences)
        self.reads = 0

    async def get(self, user_id: str) -> UserPreferences | None:
        self.reads += 1
        return await super().get(user_id)


@pytest.mark.unit
class TestQuietHours:
    """Test suite for the quiet-hours window."""

    def test_window_wrapping_midnight(self):
        """Test a 22:00 to 08:00 window."""
        window = QuietHours(enabled=True, start_time="22:00", end_time="08:00")

        assert window.contains(NIGHT) is True
        assert window.contains(datetime(2026, 5, 1, 7, 59, tzinfo=UTC)) is True
        assert window.contains(NOON) is False

    def test_both_ends_inclusive(self):
        """Test that the start and end minutes both fall inside the window."""
        window = QuietHours(enabled=True, start_time="22:00", end_time="08:00")

        assert window.contains(datetime(2026, 5, 1, 22, 0, tzinfo=UTC)) is True
        assert window.contains(datetime(2026, 5, 1, 8, 0, 59, tzinfo=UTC)) is True
        assert window.contains(datetime(2026, 5, 1, 8, 1, tzinfo=UTC)) is False
        assert window.contains(datetime(2026, 5, 1, 21, 59, 59, tzinfo=UTC)) is False
        assert window.contains(NOON) is False

    def test_same_day_window(self):
        window = QuietHours(enabled=True, start_time="09:00", end_time="17:00")

        assert window.contains(NOON) is True
        assert window.contains(NIGHT) is False

    def test_empty_window_never_matches(self):
        window = QuietHours(enabled=True, start_time="10:00", end_time="10:00")
        assert window.contains(datetime(2026, 5, 1, 10, 0, tzinfo=UTC)) is False

    def test_disabled_window(self):
        assert QuietHours(enabled=False).contains(NIGHT) is False

    def test_evaluated_in_window_timezone(self):
        """Test that 12:00 UTC is 22:00 in Sydney (UTC+10 in May)."""
        window = QuietHours(enabled=True, start_time="22:00", end_time="08:00", timezone="Australia/Sydney")
        assert window.contains(NOON) is True

    def test_unknown_timezone_falls_back_to_utc(self):
        window = QuietHours(enabled=True, timezone="Mars/Olympus")
        assert window.contains(NIGHT) is True
        assert window.contains(NOON) is False


@pytest.mark.unit
class TestResolve:
    """Test suite for channel resolution precedence."""

    @pytest.mark.asyncio
    async def test_defaults_for_user_without_preferences(self):
        """Test the default preference document and global toggles."""
        resolution = await _resolver().resolve("u1", _intake(type="match"))

        assert resolution.channels == {
            Channel.PUSH: True,
            Channel.EMAIL: True,
            Channel.SMS: False,
            Channel.REALTIME: True,
            Channel.IN_APP: True,
        }
        assert resolution.stores_record is True
        assert resolution.transport_channels == [Channel.PUSH, Channel.EMAIL, Channel.REALTIME]

    @pytest.mark.asyncio
    async def test_global_toggles_govern_users_without_preferences(self):
        """Test that NOTIFICATIONS_ENABLE_* switch channels off for users with no stored document."""
        settings = NotificationSettings(enable_push=False, enable_email=False, enable_in_app=False)
        resolution = await _resolver(settings=settings).resolve("u9", _intake(type="match"))

        assert resolution.channels[Channel.PUSH] is False
        assert resolution.channels[Channel.EMAIL] is False
        assert resolution.channels[Channel.IN_APP] is False
        assert resolution.stores_record is False
        assert resolution.transport_channels == [Channel.REALTIME]

    @pytest.mark.asyncio
    async def test_global_toggles_apply_when_source_fails(self):
        settings = NotificationSettings(enable_in_app=False)
        resolution = await _resolver(FailingSource(), settings=settings).resolve("u1", _intake())

        assert resolution.stores_record is False

    @pytest.mark.asyncio
    async def test_stored_preferences_override_global_toggles(self):
        source = InMemoryPreferenceSource(
            {"u1": UserPreferences(channels={Channel.IN_APP: ChannelPreference(enabled=True)})}
        )
        resolution = await _resolver(source, settings=NotificationSettings(enable_in_app=False)).resolve(
            "u1", _intake()
        )

        assert resolution.stores_record is True

    @pytest.mark.asyncio
    async def test_type_lists_filter_channels(self):
        """Test that a like is not emailed under the default type lists."""
        resolution = await _resolver().resolve("u1", _intake(type="like"))

        assert resolution.channels[Channel.EMAIL] is False
        assert resolution.channels[Channel.PUSH] is True

    @pytest.mark.asyncio
    async def test_intake_flags_win(self):
        """Test that explicit intake flags override preferences and toggles."""
        resolution = await _resolver().resolve(
            "u1",
            _intake(type="like", channels={"email": True, "inApp": False, "websocket": False}),
        )

        assert resolution.channels[Channel.EMAIL] is True
        assert resolution.channels[Channel.IN_APP] is False
        assert resolution.channels[Channel.REALTIME] is False
        assert resolution.stores_record is False

    @pytest.mark.asyncio
    async def test_object_without_enabled_is_not_a_choice(self):
        intake = _intake(type="like", channels={"email": {"template": "x"}})
        assert Channel.EMAIL not in intake.channels

        resolution = await _resolver().resolve("u1", intake)
        assert resolution.channels[Channel.EMAIL] is False

    @pytest.mark.asyncio
    async def test_user_preferences_beat_global_toggles(self):
        """Test that a stored SMS opt-in overrides the global SMS default."""
        source = InMemoryPreferenceSource(
            {"u1": UserPreferences(channels={Channel.SMS: ChannelPreference(enabled=True)})}
        )

        resolution = await _resolver(source).resolve("u1", _intake())

        assert resolution.channels[Channel.SMS] is True
        # No stored entry for these: global toggles apply
        assert resolution.channels[Channel.EMAIL] is True
        assert resolution.channels[Channel.REALTIME] is True

    @pytest.mark.asyncio
    async def test_global_toggle_disables_unconfigured_channel(self):
        settings = NotificationSettings(enable_websocket=False)
        resolution = await _resolver(settings=settings).resolve("u1", _intake())
        assert resolution.channels[Channel.REALTIME] is False

    @pytest.mark.asyncio
    async def test_quiet_hours_suppress_push_and_sms(self):
        """Test that quiet hours turn off push and SMS only."""
        preferences = UserPreferences(
            channels={
                Channel.PUSH: ChannelPreference(enabled=True),
                Channel.SMS: ChannelPreference(enabled=True),
            },
            quiet_hours=QuietHours(enabled=True, start_time="22:00", end_time="08:00"),
        )
        source = InMemoryPreferenceSource({"u1": preferences})

        resolution = await _resolver(source, clock=lambda: NIGHT).resolve("u1", _intake())

        assert resolution.channels[Channel.PUSH] is False
        assert resolution.channels[Channel.SMS] is False
        assert resolution.channels[Channel.EMAIL] is True
        assert resolution.channels[Channel.IN_APP] is True
        assert resolution.quiet_hours_suppressed == {Channel.PUSH, Channel.SMS}

    @pytest.mark.asyncio
    async def test_urgent_bypasses_quiet_hours(self):
        preferences = UserPreferences(quiet_hours=QuietHours(enabled=True))
        source = InMemoryPreferenceSource({"u1": preferences})

        resolution = await _resolver(source, clock=lambda: NIGHT).resolve("u1", _intake(priority="urgent"))

        assert resolution.channels[Channel.PUSH] is True
        assert resolution.quiet_hours_suppressed == set()

    @pytest.mark.asyncio
    async def test_explicit_flag_beats_quiet_hours(self):
        preferences = UserPreferences(quiet_hours=QuietHours(enabled=True))
        source = InMemoryPreferenceSource({"u1": preferences})

        resolution = await _resolver(source, clock=lambda: NIGHT).resolve("u1", _intake(channels={"push": True}))

        assert resolution.channels[Channel.PUSH] is True

    @pytest.mark.asyncio
    async def test_global_quiet_hours_apply_without_user_window(self):
        settings = NotificationSettings(global_quiet_hours_enabled=True)

        resolution = await _resolver(settings=settings, clock=lambda: NIGHT).resolve("u1", _intake())

        assert resolution.channels[Channel.PUSH] is False
        assert Channel.PUSH in resolution.quiet_hours_suppressed


@pytest.mark.unit
class TestPreferenceCache:
    """Test suite for caching and invalidation."""

    @pytest.mark.asyncio
    async def test_cached_within_ttl(self):
        source = CountingSource()
        now = [0.0]
        resolver = _resolver(source, monotonic=lambda: now[0])

        await resolver.preferences_for("u1")
        await resolver.preferences_for("u1")
        assert source.reads == 1

        now[0] = 3601.0
        await resolver.preferences_for("u1")
        assert source.reads == 2

    @pytest.mark.asyncio
    async def test_invalidate_all_drops_every_user(self):
        source = CountingSource()
        resolver = _resolver(source)
        await resolver.preferences_for("u1")
        await resolver.preferences_for("u2")

        resolver.invalidate_all()
        await resolver.preferences_for("u1")
        await resolver.preferences_for("u2")

        assert source.reads == 4

    @pytest.mark.asyncio
    async def test_update_invalidates_through_subscription(self):
        """Test that a preference update is visible to the next resolve."""
        source = InMemoryPreferenceSource()
        resolver = _resolver(source)
        source.subscribe(resolver.invalidate)

        before = await resolver.resolve("u1", _intake())
        stored = await source.update("u1", UserPreferences(channels={Channel.PUSH: ChannelPreference(enabled=False)}))
        after = await resolver.resolve("u1", _intake())

        assert before.channels[Channel.PUSH] is True
        assert after.channels[Channel.PUSH] is False
        assert stored.version == 1

        again = await source.update("u1", stored)
        assert again.version == 2

    @pytest.mark.asyncio
    async def test_zero_ttl_disables_cache(self):
        source = CountingSource()
        resolver = _resolver(source, settings=NotificationSettings(preference_cache_ttl=0))

        await resolver.preferences_for("u1")
        await resolver.preferences_for("u1")

        assert source.reads == 2

    @pytest.mark.asyncio
    async def test_source_failure_falls_back_to_defaults(self):
        preferences = await _resolver(FailingSource()).preferences_for("u1")
        assert preferences == default_preferences(NotificationSettings())
