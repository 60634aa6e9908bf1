"""APScheduler integration for the retention sweep.

The sweep runs in-process on the service's event loop:
    APScheduler (AsyncIOScheduler) → RetentionSweeper.sweep()

The schedule is a crontab expression (``NOTIFICATIONS_SWEEP_CRON``,
default daily at 00:00 UTC).
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from notification_service.core.database import RepositoryError

if TYPE_CHECKING:
    from notification_service.features.notifications.sweeper import RetentionSweeper

logger = logging.getLogger(__name__)

SWEEP_JOB_ID = "retention_sweep"

scheduler = AsyncIOScheduler(
    timezone="UTC",
    job_defaults={
        "coalesce": True,  # Combine multiple pending executions into one
        "max_instances": 1,  # Only one sweep at a time
        "misfire_grace_time": 300,
    },
)


# =============================================================================
# Scheduled Job Definitions
# =============================================================================


async def run_retention_sweep(sweeper: RetentionSweeper) -> int:
    """Scheduled entry point: one sweep, failures logged rather than raised.

    Scheduled: ``NOTIFICATIONS_SWEEP_CRON`` (daily at 00:00 UTC by default).
    """
    logger.info("Running retention sweep")
    start_time = time.time()
    try:
        deleted = await sweeper.sweep()
    except RepositoryError:
        logger.exception("Retention sweep failed, retrying on the next run")
        return 0

    logger.info(
        f"Retention sweep finished: {deleted} removed",
        extra={
            "deleted": deleted,
            "duration_ms": int((time.time() - start_time) * 1000),
            "operation": "scheduler.sweep",
        },
    )
    return deleted


def setup_sweep_job(sweeper: RetentionSweeper, cron: str = "0 0 * * *") -> None:
    """Register the retention sweep with APScheduler.

    Raises:
        ValueError: If ``cron`` is not a valid five-field crontab expression.
    """
    scheduler.add_job(
        func=run_retention_sweep,
        trigger=CronTrigger.from_crontab(cron, timezone="UTC"),
        args=[sweeper],
        id=SWEEP_JOB_ID,
        name="Delete expired notifications",
        replace_existing=True,
    )
    logger.info(f"Scheduled {len(scheduler.get_jobs())} jobs", extra={"cron": cron})


async def start_scheduler() -> None:
    """Start the APScheduler.

    Call during startup after setup_sweep_job().
    """
    if not scheduler.running:
        logger.info("Starting APScheduler")
        scheduler.start()
        logger.info(f"APScheduler started with {len(scheduler.get_jobs())} jobs")
    else:
        logger.warning("APScheduler is already running")


async def stop_scheduler() -> None:
    """Stop the APScheduler gracefully.

    Call during shutdown, before the sweeper's store goes away.
    """
    if scheduler.running:
        logger.info("Stopping APScheduler")
        scheduler.shutdown(wait=True)
        logger.info("APScheduler stopped")
    else:
        logger.debug("APScheduler is not running")


# =============================================================================
# Job Management Utilities
# =============================================================================


def get_job_status() -> list[dict]:
    """Get status of all scheduled jobs.

    Returns:
        List of job information dictionaries.
    """
    jobs = []
    for job in scheduler.get_jobs():
        next_run_time = getattr(job, "next_run_time", None)
        jobs.append(
            {
                "id": job.id,
                "name": job.name,
                "next_run_time": next_run_time.isoformat() if next_run_time else None,
                "trigger": str(job.trigger),
            }
        )
    return jobs
