"""Pytest configuration and shared fixtures.

Fixtures are organized by category:
    - Settings Fixtures: per-test settings pointing at a temporary database
    - Database Fixtures: async engine, session factory and record store
    - Gateway Fixtures: an ``httpx.MockTransport`` fake for every HTTP gateway
    - Engine Fixtures: the fully wired ``NotificationContainer``
    - Utility Fixtures: metric sampling and intake factories
"""

from __future__ import annotations

import asyncio
import os
from collections import defaultdict
from collections.abc import AsyncGenerator, Callable
from datetime import timedelta
from typing import TYPE_CHECKING, Any

import httpx
import pytest
from prometheus_client import REGISTRY

from notification_service.app.container import NotificationContainer
from notification_service.core.database import utcnow
from notification_service.core.results import Ok, Result
from notification_service.core.settings import (
    AppSettings,
    DatabaseSettings,
    EmailSettings,
    LoggingSettings,
    NotificationSettings,
    PushSettings,
    Settings,
    SmsSettings,
    UserServiceSettings,
    WebSocketSettings,
    clear_all_caches,
)
from notification_service.features.notifications.channels import DeliveryReceipt
from notification_service.features.notifications.directory import StaticDirectory
from notification_service.features.notifications.models import Channel, NotificationType, Priority
from notification_service.features.notifications.store import DeliveryRecordStore, NotificationDraft
from notification_service.infra.database import create_engine, create_session_factory, init_schema

if TYPE_CHECKING:
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

    from notification_service.features.notifications.templates import RenderedPayload

# Ensure tests never reach real gateways or write log files
os.environ.setdefault("LOG_CONSOLE_ENABLED", "false")
os.environ.setdefault("LOG_FILE_PATH", "")
os.environ.setdefault("USER_SERVICE_URL", "")
os.environ.setdefault("SMS_ENABLED", "false")


@pytest.fixture(autouse=True)
def _reset_settings_cache():
    """Settings loaders are lru-cached; every test starts from a clean slate."""
    clear_all_caches()
    yield
    clear_all_caches()


# ============================================================================
# Settings Fixtures
# ============================================================================


@pytest.fixture
def db_url(tmp_path: Path) -> str:
    """File-backed SQLite database unique to the test."""
    return f"sqlite+aiosqlite:///{tmp_path / 'notifications.db'}"


@pytest.fixture
def notification_settings() -> NotificationSettings:
    """Engine settings with millisecond backoff so retries finish quickly."""
    return NotificationSettings(
        max_retry_attempts=3,
        retry_delay_ms=1,
        retry_max_delay_ms=20,
        preference_cache_ttl=3600,
        shutdown_grace_period=1.0,
    )


@pytest.fixture
def settings(db_url: str, notification_settings: NotificationSettings) -> Settings:
    """Complete settings for one test: temporary database, no real network."""
    return Settings(
        app=AppSettings(name="Your Dating App", url="https://yourapp.com"),
        db=DatabaseSettings(url=db_url),
        logging=LoggingSettings(console_enabled=False, file_path=None),
        notifications=notification_settings,
        websocket=WebSocketSettings(host="realtime.test", port=3002, max_retries=1, retry_delay_ms=0),
        email=EmailSettings(service_url="http://email.test", retries=0),
        push=PushSettings(enabled=True),
        sms=SmsSettings(enabled=False),
        users=UserServiceSettings(url=None),
    )


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
async def engine(settings: Settings) -> AsyncGenerator[AsyncEngine]:
    """Async engine with the schema created."""
    engine = create_engine(settings.db)
    await init_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(engine)


@pytest.fixture
def store(session_factory: async_sessionmaker[AsyncSession]) -> DeliveryRecordStore:
    return DeliveryRecordStore(session_factory)


@pytest.fixture
def make_draft() -> Callable[..., NotificationDraft]:
    """Factory for store drafts with sensible defaults.

    Example:
        draft = make_draft("n1", user_id="u1", type=NotificationType.LIKE)
    """

    def factory(notification_id: str, **overrides: Any) -> NotificationDraft:
        values: dict[str, Any] = {
            "notification_id": notification_id,
            "user_id": "u1",
            "title": "New Match",
            "message": "You matched with Alex",
            "type": NotificationType.MATCH,
            "priority": Priority.NORMAL,
            "channels": {
                Channel.PUSH: True,
                Channel.EMAIL: True,
                Channel.REALTIME: True,
                Channel.IN_APP: True,
            },
            "metadata": {"matchId": "m42"},
            "expires_at": utcnow() + timedelta(days=30),
        }
        values.update(overrides)
        return NotificationDraft(**values)

    return factory


# ============================================================================
# Gateway Fixtures
# ============================================================================


class FakeGateway:
    """In-process stand-in for the realtime, email, SMS and user services.

    Responses are queued per URL path and consumed in order; once a queue is
    empty every further call to that path gets ``200 {"success": true}``.

    Example:
        gateway.queue("/send-email", httpx.Response(503), httpx.Response(200, json={...}))
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._queued: dict[str, list[httpx.Response | Exception]] = defaultdict(list)

    def queue(self, path: str, *responses: httpx.Response | Exception) -> None:
        self._queued[path].extend(responses)

    def calls(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queued = self._queued.get(request.url.path)
        if queued:
            outcome = queued.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome
        return httpx.Response(200, json={"success": True})


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
async def http_client(gateway: FakeGateway) -> AsyncGenerator[httpx.AsyncClient]:
    """Shared client whose transport is the fake gateway."""
    async with httpx.AsyncClient(transport=httpx.MockTransport(gateway.handler)) as client:
        yield client


@pytest.fixture
def directory() -> StaticDirectory:
    return StaticDirectory(
        emails={"u1": "u1@example.com", "u2": "u2@example.com", "u3": "u3@example.com"},
        phones={"u1": "+15550001"},
    )


# ============================================================================
# Engine Fixtures
# ============================================================================


class ScriptedDriver:
    """Channel driver returning queued outcomes, then success.

    Queued exceptions are raised from ``send``. Every call is recorded as
    ``(user_id, notification_id)``.

    Example:
        email = ScriptedDriver(Channel.EMAIL, transient("HTTP 503"), Ok(DeliveryReceipt("em-1")))
    """

    def __init__(self, channel: Channel, *outcomes: Result[DeliveryReceipt] | Exception, timeout: float = 1.0) -> None:
        self.channel = channel
        self.timeout = timeout
        self.delay = 0.0
        self.calls: list[tuple[str, str]] = []
        self.closed = False
        self._outcomes: list[Result[DeliveryReceipt] | Exception] = list(outcomes)

    def script(self, *outcomes: Result[DeliveryReceipt] | Exception) -> None:
        self._outcomes.extend(outcomes)

    async def send(self, user_id: str, payload: RenderedPayload) -> Result[DeliveryReceipt]:
        self.calls.append((user_id, payload.notification_id))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self._outcomes:
            outcome = self._outcomes.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome
        return Ok(DeliveryReceipt(external_message_id=f"{self.channel.value}-{len(self.calls)}"))

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def scripted() -> type[ScriptedDriver]:
    return ScriptedDriver


@pytest.fixture
async def container(
    settings: Settings,
    http_client: httpx.AsyncClient,
    directory: StaticDirectory,
) -> AsyncGenerator[NotificationContainer]:
    """Fully wired engine talking to the fake gateway."""
    container = await NotificationContainer.build(settings, directory=directory, http_client=http_client)
    yield container
    await container.shutdown()


# ============================================================================
# Utility Fixtures
# ============================================================================


@pytest.fixture
def metric() -> Callable[..., float]:
    """Read a sample from the default Prometheus registry (0.0 when absent).

    Example:
        before = metric("notifications_created_total", type="match", priority="normal")
    """

    def sample(name: str, **labels: str) -> float:
        return REGISTRY.get_sample_value(name, labels) or 0.0

    return sample


@pytest.fixture
def match_intake() -> dict[str, Any]:
    """The match intake with every channel enabled."""
    return {
        "userId": "u1",
        "type": "match",
        "title": "New Match",
        "message": "You matched with Alex",
        "priority": "normal",
        "channels": {"push": True, "email": True, "realtime": True, "inApp": True},
        "metadata": {"matchId": "m42"},
    }


@pytest.fixture
async def build_container(
    settings: Settings,
    directory: StaticDirectory,
) -> AsyncGenerator[Callable[..., Any]]:
    """Factory building an engine around scripted drivers.

    Keyword arguments override ``NotificationSettings`` fields without
    re-running their bounds validation.

    Example:
        container = await build_container(email, in_app, max_retry_attempts=1)
    """
    built: list[NotificationContainer] = []

    async def factory(
        *drivers: Any,
        preference_source: Any = None,
        **notification_overrides: Any,
    ) -> NotificationContainer:
        engine_settings = settings
        if notification_overrides:
            notifications = settings.notifications.model_copy(update=notification_overrides)
            engine_settings = settings.model_copy(update={"notifications": notifications})
        container = await NotificationContainer.build(
            engine_settings,
            drivers=list(drivers),
            directory=directory,
            preference_source=preference_source,
        )
        built.append(container)
        return container

    yield factory
    for container in built:
        await container.shutdown()
