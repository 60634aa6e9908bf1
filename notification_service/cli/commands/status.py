"""Health and configuration commands."""

from __future__ import annotations

import sys

import click

from notification_service.app.lifespan import lifespan
from notification_service.cli.utils import coro, dump_json, error, info, section, success


@click.command(name="health")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Output format",
)
@coro
async def health(output_format: str) -> None:
    """Report store totals, registered channels and in-flight work."""
    async with lifespan(schedule_sweep=False) as container:
        snapshot = await container.service.health()

    if output_format == "json":
        dump_json(snapshot.to_dict())
    else:
        section("NOTIFICATION SERVICE HEALTH")
        info(f"Channels: {', '.join(snapshot.channels) or 'none'}")
        info(f"Intakes in flight: {snapshot.intakes_in_flight}")
        info(f"Retries in flight: {snapshot.retries_in_flight}")
        if snapshot.store is not None:
            info(
                f"Store: {snapshot.store.total} total, {snapshot.store.unread} unread, "
                f"{snapshot.store.pending} pending, {snapshot.store.failed} failed"
            )

    if snapshot.status == "degraded":
        error(f"Service degraded: {snapshot.error}")
        sys.exit(1)
    success(f"Service {snapshot.status}")
