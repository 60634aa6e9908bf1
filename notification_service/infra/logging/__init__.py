"""Logging infrastructure.

Structured logging with:
- JSONL output with OpenTelemetry trace correlation
- Automatic context injection (notification_id, user_id, channel, ...)
- QueueHandler + QueueListener for non-blocking I/O
- Lazy evaluation for debug lines

Basic usage:
    import logging

    from notification_service.infra.logging import get_lazy_logger, set_log_context

    logger = logging.getLogger(__name__)
    lazy_logger = get_lazy_logger(__name__)

    set_log_context(notification_id="n-1", user_id="u1")
    logger.info("Dispatching notification")  # includes notification_id and user_id
    lazy_logger.debug(lambda: f"Payload: {payload.model_dump()}")
"""

from notification_service.infra.logging.config import (
    complete,
    configure_logging,
    setup_logging,
    shutdown,
)
from notification_service.infra.logging.context import (
    ContextInjectingFilter,
    clear_log_context,
    get_log_context,
    remove_from_log_context,
    set_log_context,
)
from notification_service.infra.logging.formatters import JSONFormatter
from notification_service.infra.logging.lazy import (
    LazyLoggerAdapter,
    get_lazy_logger,
)

__all__ = [
    "ContextInjectingFilter",
    "JSONFormatter",
    "LazyLoggerAdapter",
    "clear_log_context",
    "complete",
    "configure_logging",
    "get_lazy_logger",
    "get_log_context",
    "remove_from_log_context",
    "set_log_context",
    "setup_logging",
    "shutdown",
]
