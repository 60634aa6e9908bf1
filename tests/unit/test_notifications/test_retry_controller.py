"""Unit tests for RetryController backoff and ownership."""

from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from notification_service.core.database import utcnow
from notification_service.core.results import permanent, transient
from notification_service.core.settings import AppSettings, NotificationSettings
from notification_service.features.notifications.channels import ChannelRegistry
from notification_service.features.notifications.models import Channel, Priority
from notification_service.features.notifications.retry import RetryController, RetryJob
from notification_service.features.notifications.templates import TemplateRenderer


class RecordingSleep:
    """Sleep replacement that returns immediately and records delays in seconds."""

    def __init__(self) -> None:
        self.delays: list[float] = []
        self.gate: asyncio.Event | None = None

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        if self.gate is not None:
            await self.gate.wait()


@pytest.fixture
def retry_settings() -> NotificationSettings:
    return NotificationSettings(max_retry_attempts=3, retry_delay_ms=1000, retry_max_delay_ms=300_000)


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def render():
    renderer = TemplateRenderer(AppSettings())

    def factory(notification_id: str = "n1"):
        return renderer.render(
            notification_id=notification_id,
            user_id="u1",
            notification_type="match",
            title="New Match",
            message="You matched with Alex",
            priority=Priority.NORMAL,
            metadata={"matchId": "m42"},
        )

    return factory


def _controller(store, driver, settings, sleep, *, clock=utcnow, random_value=0.0) -> RetryController:
    return RetryController(
        store,
        ChannelRegistry([driver]),
        settings,
        sleep=sleep,
        random_fn=lambda: random_value,
        clock=clock,
    )


@pytest.mark.unit
class TestBackoff:
    """Test suite for backoff delays."""

    def test_exponential_without_jitter(self, store, scripted, retry_settings, sleep):
        controller = _controller(store, scripted(Channel.EMAIL), retry_settings, sleep)

        assert [controller.backoff_ms(n) for n in (1, 2, 3, 4)] == [1000, 2000, 4000, 8000]

    def test_jitter_adds_up_to_twenty_percent(self, store, scripted, retry_settings, sleep):
        controller = _controller(store, scripted(Channel.EMAIL), retry_settings, sleep, random_value=0.5)
        assert controller.backoff_ms(1) == pytest.approx(1100)

        upper = _controller(store, scripted(Channel.EMAIL), retry_settings, sleep, random_value=0.999999)
        assert 1000 <= upper.backoff_ms(1) < 1200

    def test_delay_is_capped(self, store, scripted, sleep):
        settings = NotificationSettings(max_retry_attempts=10, retry_delay_ms=1000, retry_max_delay_ms=5000)
        controller = _controller(store, scripted(Channel.EMAIL), settings, sleep, random_value=0.999)

        assert controller.backoff_ms(10) == 5000


@pytest.mark.unit
class TestRetryLoop:
    """Test suite for owned retry tasks."""

    @pytest.mark.asyncio
    async def test_retry_until_success(self, store, make_draft, scripted, retry_settings, sleep, render, metric):
        """Test that a transient failure followed by success marks the channel sent."""
        await store.create(make_draft("n1"))
        email = scripted(Channel.EMAIL, transient("HTTP 503"))
        controller = _controller(store, email, retry_settings, sleep)
        retries_before = metric("notification_retry_total", channel="email")

        job = RetryJob(render(), Channel.EMAIL, attempts_made=1, expires_at=utcnow() + timedelta(days=1))
        assert controller.schedule(job)
        await controller.drain()

        view = (await store.get("u1", "n1")).value
        assert view.channels["email"].sent is True
        assert view.channels["email"].attempts == 2
        assert view.analytics.delivery_attempts == 2
        assert sleep.delays == [1.0, 2.0]
        assert len(email.calls) == 2
        assert metric("notification_retry_total", channel="email") == retries_before + 2
        assert controller.in_flight == 0

    @pytest.mark.asyncio
    async def test_exhausted_retries_are_terminal(
        self, store, make_draft, scripted, retry_settings, sleep, render, metric
    ):
        await store.create(make_draft("n1"))
        email = scripted(Channel.EMAIL, transient("HTTP 503"), transient("HTTP 503"))
        controller = _controller(store, email, retry_settings, sleep)
        exhausted_before = metric("notification_retry_exhausted_total", channel="email")

        controller.schedule(RetryJob(render(), Channel.EMAIL, attempts_made=1))
        await controller.drain()

        state = (await store.get("u1", "n1")).value.channels["email"]
        assert state.sent is False
        assert state.terminal is True
        assert state.error == "HTTP 503"
        assert len(email.calls) == 2
        assert metric("notification_retry_exhausted_total", channel="email") == exhausted_before + 1

    @pytest.mark.asyncio
    async def test_permanent_failure_stops_retrying(self, store, make_draft, scripted, retry_settings, sleep, render):
        await store.create(make_draft("n1"))
        email = scripted(Channel.EMAIL, permanent("HTTP 400"))
        controller = _controller(store, email, retry_settings, sleep)

        controller.schedule(RetryJob(render(), Channel.EMAIL, attempts_made=1))
        await controller.drain()

        state = (await store.get("u1", "n1")).value.channels["email"]
        assert state.terminal is True
        assert len(email.calls) == 1

    @pytest.mark.asyncio
    async def test_expired_record_is_not_retried(self, store, make_draft, scripted, retry_settings, sleep, render):
        """Test that reaching expiresAt cancels further attempts."""
        await store.create(make_draft("n1"))
        email = scripted(Channel.EMAIL)
        controller = _controller(store, email, retry_settings, sleep)

        expired = utcnow() - timedelta(seconds=1)
        controller.schedule(RetryJob(render(), Channel.EMAIL, attempts_made=1, expires_at=expired))
        await controller.drain()

        state = (await store.get("u1", "n1")).value.channels["email"]
        assert email.calls == []
        assert state.error == "expired"
        assert state.terminal is True

    @pytest.mark.asyncio
    async def test_delivery_only_retry_makes_no_store_writes(self, store, scripted, retry_settings, sleep, render):
        email = scripted(Channel.EMAIL, transient("HTTP 503"))
        controller = _controller(store, email, retry_settings, sleep)

        controller.schedule(RetryJob(render(), Channel.EMAIL, attempts_made=1, durable=False))
        await controller.drain()

        assert len(email.calls) == 2
        assert await store.count_for_user("u1") == 0

    @pytest.mark.asyncio
    async def test_deleted_record_abandons_retry(self, store, scripted, retry_settings, sleep, render):
        email = scripted(Channel.EMAIL)
        controller = _controller(store, email, retry_settings, sleep)

        controller.schedule(RetryJob(render(), Channel.EMAIL, attempts_made=1))
        await controller.drain()

        assert email.calls == []

    @pytest.mark.asyncio
    async def test_one_owner_per_channel(self, store, make_draft, scripted, retry_settings, sleep, render):
        """Test that a pair already being retried cannot be scheduled again."""
        await store.create(make_draft("n1"))
        sleep.gate = asyncio.Event()
        controller = _controller(store, scripted(Channel.EMAIL), retry_settings, sleep)
        job = RetryJob(render(), Channel.EMAIL, attempts_made=1)

        assert controller.schedule(job) is True
        assert controller.schedule(job) is False
        assert controller.is_scheduled("n1", Channel.EMAIL)

        sleep.gate.set()
        await controller.drain()
        assert not controller.is_scheduled("n1", Channel.EMAIL)

    @pytest.mark.asyncio
    async def test_shutdown_cancels_and_refuses(self, store, make_draft, scripted, retry_settings, sleep, render):
        await store.create(make_draft("n1"))
        sleep.gate = asyncio.Event()
        email = scripted(Channel.EMAIL)
        controller = _controller(store, email, retry_settings, sleep)
        controller.schedule(RetryJob(render(), Channel.EMAIL, attempts_made=1))
        await asyncio.sleep(0)

        await controller.shutdown()

        assert controller.in_flight == 0
        assert email.calls == []
        assert controller.schedule(RetryJob(render(), Channel.EMAIL, attempts_made=1)) is False
        # The record keeps its last persisted state
        assert (await store.get("u1", "n1")).value.channels["email"].attempts == 0

    @pytest.mark.asyncio
    async def test_override_delay_for_first_retry(self, store, make_draft, scripted, retry_settings, sleep, render):
        await store.create(make_draft("n1"))
        controller = _controller(store, scripted(Channel.EMAIL), retry_settings, sleep)

        controller.schedule(RetryJob(render(), Channel.EMAIL, attempts_made=0), delay_ms=0)
        await controller.drain()

        assert sleep.delays == [0.0]
