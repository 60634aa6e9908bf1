"""CLI utilities for running async operations and formatting output."""

from notification_service.cli.utils.async_runner import coro
from notification_service.cli.utils.formatters import (
    dump_json,
    error,
    header,
    info,
    section,
    success,
    warning,
)

__all__ = [
    "coro",
    "dump_json",
    "error",
    "header",
    "info",
    "section",
    "success",
    "warning",
]
