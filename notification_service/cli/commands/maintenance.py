"""Retention commands.

- Run the retention sweep on demand
- Remove notifications older than a number of days
"""

from __future__ import annotations

import sys

import click

from notification_service.app.lifespan import lifespan
from notification_service.cli.utils import coro, error, header, info, success, warning
from notification_service.core.database import RepositoryError


@click.command(name="sweep")
@coro
async def sweep() -> None:
    """Delete every notification whose expiresAt has passed."""
    header("Retention Sweep")

    try:
        async with lifespan(schedule_sweep=False) as container:
            deleted = await container.sweeper.sweep()
    except RepositoryError as e:
        error(f"Sweep failed: {e}")
        sys.exit(1)

    success(f"Removed {deleted} expired notifications")


@click.command(name="cleanup")
@click.option(
    "--older-than-days",
    type=click.IntRange(min=0),
    default=30,
    show_default=True,
    help="Delete notifications created more than this many days ago",
)
@click.option("--keep-read", is_flag=True, help="Keep notifications that were read")
@click.option("--dry-run", is_flag=True, help="Only count what would be deleted")
@coro
async def cleanup(older_than_days: int, keep_read: bool, dry_run: bool) -> None:
    """Delete old notifications regardless of their expiry."""
    header("Notification Cleanup")
    if dry_run:
        warning("Dry run: nothing will be deleted")

    try:
        async with lifespan(schedule_sweep=False) as container:
            affected = await container.sweeper.cleanup(older_than_days, keep_read=keep_read, dry_run=dry_run)
    except RepositoryError as e:
        error(f"Cleanup failed: {e}")
        sys.exit(1)

    if dry_run:
        info(f"{affected} notifications older than {older_than_days} days would be removed")
    else:
        success(f"Removed {affected} notifications older than {older_than_days} days")
