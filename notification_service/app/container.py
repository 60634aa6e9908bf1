"""Composition root: builds and owns every engine component.

Startup order:
1. Database engine and schema
2. Recipient directory and channel drivers
3. Store, resolver, quota, renderer, retry controller
4. Dispatcher, acknowledgements, sweeper, bulk orchestrator, facade

Shutdown order: reverse of startup. New intakes are refused first, running
intakes get ``shutdown_grace_period`` seconds, pending retries are
cancelled, then drivers, directory and engine are released.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from notification_service.core.settings import Settings, get_settings
from notification_service.features.notifications.acknowledgements import AcknowledgementService
from notification_service.features.notifications.bulk import BulkOrchestrator
from notification_service.features.notifications.channels import (
    ChannelRegistry,
    EmailDriver,
    InAppDriver,
    PushDriver,
    RealtimeDriver,
    SmsDriver,
)
from notification_service.features.notifications.directory import StaticDirectory, UserServiceDirectory
from notification_service.features.notifications.dispatcher import NotificationDispatcher
from notification_service.features.notifications.preferences import InMemoryPreferenceSource, PreferenceResolver
from notification_service.features.notifications.quota import QuotaEnforcer
from notification_service.features.notifications.retry import RetryController
from notification_service.features.notifications.service import NotificationService
from notification_service.features.notifications.store import DeliveryRecordStore
from notification_service.features.notifications.sweeper import RetentionSweeper
from notification_service.features.notifications.templates import TemplateRenderer
from notification_service.infra.database import create_engine, create_session_factory, init_schema

if TYPE_CHECKING:
    from collections.abc import Sequence

    import httpx
    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

    from notification_service.features.notifications.channels import ChannelDriver
    from notification_service.features.notifications.directory import RecipientDirectory
    from notification_service.features.notifications.preferences import PreferenceSource

logger = logging.getLogger(__name__)


def build_drivers(
    settings: Settings,
    directory: RecipientDirectory,
    client: httpx.AsyncClient | None = None,
) -> list[ChannelDriver]:
    """Drivers for every channel this deployment can reach."""
    drivers: list[ChannelDriver] = [
        RealtimeDriver(settings.websocket, client=client),
        EmailDriver(settings.email, directory, client=client),
        SmsDriver(settings.sms, directory, client=client),
        InAppDriver(),
    ]
    if settings.push.enabled:
        drivers.append(PushDriver(settings.push))
    return drivers


@dataclass
class NotificationContainer:
    """Every long-lived component of the engine, wired together.

    Example:
        container = await NotificationContainer.build()
        try:
            await container.service.dispatch({...})
        finally:
            await container.shutdown()
    """

    settings: Settings
    engine: AsyncEngine
    session_factory: async_sessionmaker[AsyncSession]
    directory: RecipientDirectory
    preference_source: PreferenceSource
    registry: ChannelRegistry
    store: DeliveryRecordStore
    resolver: PreferenceResolver
    quota: QuotaEnforcer
    renderer: TemplateRenderer
    retries: RetryController
    dispatcher: NotificationDispatcher
    acknowledgements: AcknowledgementService
    sweeper: RetentionSweeper
    bulk: BulkOrchestrator
    service: NotificationService
    _closed: bool = field(default=False, init=False)

    @classmethod
    async def build(
        cls,
        settings: Settings | None = None,
        *,
        drivers: Sequence[ChannelDriver] | None = None,
        directory: RecipientDirectory | None = None,
        preference_source: PreferenceSource | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> NotificationContainer:
        """Build the engine.

        Args:
            settings: Settings to use; composed from the environment when omitted.
            drivers: Replace the default drivers (tests, alternative providers).
            directory: Recipient directory; the user service when configured,
                an empty static directory otherwise.
            preference_source: Where user preferences come from.
            http_client: Shared client for every HTTP driver (tests pass one
                backed by ``httpx.MockTransport``).
        """
        start_time = time.time()
        settings = settings or get_settings()

        engine = create_engine(settings.db)
        if settings.db.create_schema:
            await init_schema(engine)
        session_factory = create_session_factory(engine)

        if directory is None:
            if settings.users.url:
                directory = UserServiceDirectory(settings.users, client=http_client)
            else:
                directory = StaticDirectory()
        preference_source = preference_source or InMemoryPreferenceSource()

        registry = ChannelRegistry(
            list(drivers) if drivers is not None else build_drivers(settings, directory, http_client)
        )

        store = DeliveryRecordStore(session_factory)
        resolver = PreferenceResolver(preference_source, settings.notifications)
        subscribe = getattr(preference_source, "subscribe", None)
        if subscribe is not None:
            subscribe(resolver.invalidate)
        quota = QuotaEnforcer(store)
        renderer = TemplateRenderer(settings.app)
        retries = RetryController(store, registry, settings.notifications)
        dispatcher = NotificationDispatcher(
            store, resolver, quota, registry, renderer, retries, settings.notifications
        )
        acknowledgements = AcknowledgementService(store)
        sweeper = RetentionSweeper(store, quota, settings.notifications)
        bulk = BulkOrchestrator(dispatcher, settings.notifications)
        service = NotificationService(store, dispatcher, bulk, acknowledgements, registry, retries, renderer)

        logger.info(
            f"Notification engine ready with {len(registry)} channel drivers",
            extra={
                "channels": [c.value for c in registry.channels],
                "duration_ms": int((time.time() - start_time) * 1000),
                "operation": "container.build",
            },
        )
        return cls(
            settings=settings,
            engine=engine,
            session_factory=session_factory,
            directory=directory,
            preference_source=preference_source,
            registry=registry,
            store=store,
            resolver=resolver,
            quota=quota,
            renderer=renderer,
            retries=retries,
            dispatcher=dispatcher,
            acknowledgements=acknowledgements,
            sweeper=sweeper,
            bulk=bulk,
            service=service,
        )

    async def shutdown(self) -> None:
        """Release everything in reverse start order; safe to call twice."""
        if self._closed:
            return
        self._closed = True

        logger.info("Notification engine shutting down", extra={"operation": "container.shutdown"})
        await self.dispatcher.close(self.settings.notifications.shutdown_grace_period)
        await self.retries.shutdown()
        await self.registry.close()
        await self.directory.close()
        await self.engine.dispose()
        logger.info("Notification engine stopped", extra={"operation": "container.shutdown"})
