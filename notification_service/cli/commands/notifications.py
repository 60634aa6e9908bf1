"""Notification commands.

- Dispatch one intake or a bulk batch from JSON
- Force a resend of unsent channels
- Broadcast a system notification over the realtime channel
"""

from __future__ import annotations

import json
import sys
from typing import IO, Any

import click

from notification_service.app.lifespan import lifespan
from notification_service.cli.utils import coro, dump_json, error, header, info, success, warning
from notification_service.core.results import Err
from notification_service.features.notifications.models import Priority


def _load_json(source: IO[str]) -> Any:
    try:
        return json.load(source)
    except json.JSONDecodeError as e:
        error(f"Invalid JSON: {e}")
        sys.exit(2)


@click.command(name="dispatch")
@click.argument("source", type=click.File("r"), default="-")
@click.option("--wait-retries", is_flag=True, help="Wait for scheduled retries before exiting")
@coro
async def dispatch(source: IO[str], wait_retries: bool) -> None:
    """Dispatch notifications from a JSON file (or stdin).

    \b
    A JSON object is one intake; a JSON array is sent as a bulk batch.
    """
    data = _load_json(source)

    async with lifespan(schedule_sweep=False) as container:
        if isinstance(data, list):
            header(f"Bulk dispatch of {len(data)} intakes")
            outcome = await container.service.dispatch_bulk(data)
            dump_json(outcome.to_dict())
            if wait_retries:
                await container.retries.drain()
            if outcome.failed:
                warning(f"{outcome.failed} of {outcome.total} intakes failed")
                sys.exit(1)
            success(f"Batch {outcome.batch_id}: {outcome.successful} dispatched")
            return

        result = await container.service.dispatch(data)
        if isinstance(result, Err):
            error(f"Dispatch failed ({result.kind}): {result.message}")
            sys.exit(1)
        if wait_retries:
            await container.retries.drain()

    dump_json(result.value.to_dict())
    success(f"Notification {result.value.notification_id}: {result.value.status}")


@click.command(name="resend")
@click.argument("notification_id")
@coro
async def resend(notification_id: str) -> None:
    """Retry every enabled channel of a notification that was not sent."""
    async with lifespan(schedule_sweep=False) as container:
        result = await container.service.force_resend(notification_id)
        if isinstance(result, Err):
            error(f"Resend failed ({result.kind}): {result.message}")
            sys.exit(1)
        if not result.value:
            info("No unsent channels to resend")
            return
        await container.retries.drain()

    success(f"Resent {', '.join(c.value for c in result.value)}")


@click.command(name="broadcast")
@click.option("--title", required=True, help="Notification title")
@click.option("--message", required=True, help="Notification body")
@click.option(
    "--priority",
    type=click.Choice([p.value for p in Priority]),
    default=Priority.NORMAL.value,
    show_default=True,
)
@coro
async def broadcast(title: str, message: str, priority: str) -> None:
    """Send a system notification to every connected user."""
    async with lifespan(schedule_sweep=False) as container:
        result = await container.service.broadcast_system(title, message, priority=Priority(priority))

    if isinstance(result, Err):
        error(f"Broadcast failed ({result.kind}): {result.message}")
        sys.exit(1)
    success("System notification broadcast")
