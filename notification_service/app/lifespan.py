"""Engine lifespan management.

Startup Order:
1. Logging - always runs first
2. Container (database, drivers, engine components)
3. Scheduler (retention sweep) - optional

Shutdown Order: Reverse of startup (what starts first, shuts down last)
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from notification_service.app.container import NotificationContainer
from notification_service.core.settings import get_settings
from notification_service.infra.logging import setup_logging
from notification_service.workers.scheduler import setup_sweep_job, start_scheduler, stop_scheduler

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from notification_service.core.settings import Settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(
    settings: Settings | None = None,
    *,
    schedule_sweep: bool = True,
    **overrides: Any,
) -> AsyncIterator[NotificationContainer]:
    """Run the engine for the duration of the ``async with`` block.

    Example:
        async with lifespan() as container:
            await container.service.dispatch({...})

    ``overrides`` are passed to ``NotificationContainer.build``.
    """
    settings = settings or get_settings()
    setup_logging(log_settings=settings.logging)
    logger.info(
        "Notification service starting",
        extra={"service": settings.app.service_name, "environment": settings.app.environment},
    )

    container = await NotificationContainer.build(settings, **overrides)
    try:
        if schedule_sweep:
            setup_sweep_job(container.sweeper, settings.notifications.sweep_cron)
            await start_scheduler()
        yield container
    finally:
        if schedule_sweep:
            await stop_scheduler()
        await container.shutdown()
        logger.info("Notification service stopped", extra={"service": settings.app.service_name})
