"""Main CLI entry point for notification-service management commands."""

import click

from notification_service import __version__
from notification_service.cli.commands import maintenance, notifications, status
from notification_service.infra.logging import setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="notification-service")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Notification Service CLI - operate the notification dispatch engine.

    \b
    Commands:
      dispatch   Dispatch one intake or a bulk batch from JSON
      resend     Retry the unsent channels of a notification
      broadcast  Send a system notification to every connected user
      sweep      Delete expired notifications
      cleanup    Delete notifications older than N days
      health     Show the engine health snapshot

    \b
    Quick Start:
      notification-service dispatch intake.json
      notification-service cleanup --older-than-days 90 --dry-run
      notification-service health --format json
    """
    ctx.ensure_object(dict)


cli.add_command(notifications.dispatch)
cli.add_command(notifications.resend)
cli.add_command(notifications.broadcast)
cli.add_command(maintenance.sweep)
cli.add_command(maintenance.cleanup)
cli.add_command(status.health)


def main() -> None:
    """Entry point for CLI."""
    setup_logging()
    cli(obj={})


if __name__ == "__main__":
    main()
