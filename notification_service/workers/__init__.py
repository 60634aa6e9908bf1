"""Scheduled background jobs (APScheduler)."""

from notification_service.workers.scheduler import (
    get_job_status,
    scheduler,
    setup_sweep_job,
    start_scheduler,
    stop_scheduler,
)

__all__ = ["get_job_status", "scheduler", "setup_sweep_job", "start_scheduler", "stop_scheduler"]
