"""CLI command modules."""

from notification_service.cli.commands import maintenance, notifications, status

__all__ = ["maintenance", "notifications", "status"]
