"""Logging configuration setup.

dictConfig for the root logger, a QueueHandler on the root so the event
loop never blocks on I/O, and a QueueListener thread that feeds the console
and optional rotating file handlers.
"""

from __future__ import annotations

import atexit
import logging
import logging.config
import time
from logging.handlers import QueueHandler, QueueListener, RotatingFileHandler
from pathlib import Path
from queue import Queue
from typing import TYPE_CHECKING, Any

from notification_service.infra.logging.context import ContextInjectingFilter
from notification_service.infra.logging.formatters import JSONFormatter

if TYPE_CHECKING:
    from notification_service.core.settings.logs import LoggingSettings

_log_queue: Queue[logging.LogRecord] | None = None
_listener: QueueListener | None = None
_queue_handler: QueueHandler | None = None
_LOGGING_INITIALIZED = False

TEXT_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


def complete(max_wait: float = 5.0) -> None:
    """Block until the queue has been drained (or ``max_wait`` elapses)."""
    if _log_queue is None or _listener is None:
        return

    start = time.time()
    while not _log_queue.empty() and (time.time() - start) < max_wait:
        time.sleep(0.01)


def shutdown() -> None:
    """Flush pending records and stop the QueueListener."""
    global _log_queue, _listener, _queue_handler

    if _listener is not None:
        complete()
        _listener.stop()
        _listener = None
    if _queue_handler is not None:
        logging.getLogger().removeHandler(_queue_handler)
        _queue_handler = None
    _log_queue = None


def setup_logging(
    log_settings: LoggingSettings | None = None,
    *,
    force: bool = False,
) -> None:
    """Configure logging once across entrypoints (CLI, scheduler, container).

    Args:
        log_settings: Logging settings; loaded from the environment when omitted.
        force: Reconfigure even if logging was already initialized.
    """
    global _LOGGING_INITIALIZED

    if _LOGGING_INITIALIZED and not force:
        return

    if log_settings is None:
        from notification_service.core.settings import get_logging_settings

        log_settings = get_logging_settings()

    configure_logging(
        log_level=log_settings.level,
        file_path=log_settings.file_path,
        json_logs=log_settings.json_logs,
        console_enabled=log_settings.console_enabled,
        include_context=log_settings.include_context,
        capture_warnings=log_settings.capture_warnings,
        file_max_bytes=log_settings.file_max_bytes,
        file_backup_count=log_settings.file_backup_count,
        service_name=log_settings.service_name,
    )
    _LOGGING_INITIALIZED = True


def configure_logging(
    log_level: str = "INFO",
    file_path: str | Path | None = None,
    json_logs: bool = True,
    console_enabled: bool = True,
    include_context: bool = True,
    capture_warnings: bool = True,
    file_max_bytes: int = 10 * 1024 * 1024,
    file_backup_count: int = 5,
    service_name: str = "notification-service",
) -> None:
    """Configure the root logger with dictConfig and the queue pattern.

    Args:
        log_level: Root logger level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file_path: Path to a rotating log file. None disables file logging.
        json_logs: Emit JSONL instead of human-readable text.
        console_enabled: Attach a stderr handler.
        include_context: Inject contextvar fields into every record.
        capture_warnings: Forward ``warnings`` output to logging.
        file_max_bytes: Maximum file size before rotation.
        file_backup_count: Number of rotated files to keep.
        service_name: Static ``service`` field on JSON records.
    """
    global _log_queue, _listener, _queue_handler

    shutdown()

    if capture_warnings:
        logging.captureWarnings(True)

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "root": {"level": log_level.upper(), "handlers": []},
            "loggers": {
                "httpx": {"level": "WARNING"},
                "apscheduler": {"level": "WARNING"},
                "aiosqlite": {"level": "WARNING"},
            },
        }
    )

    handlers: list[logging.Handler] = []
    if console_enabled:
        handlers.append(logging.StreamHandler())
    if file_path:
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                path,
                maxBytes=file_max_bytes,
                backupCount=file_backup_count,
                encoding="utf-8",
            )
        )

    for handler in handlers:
        if json_logs:
            handler.setFormatter(JSONFormatter(static={"service": service_name}))
        else:
            handler.setFormatter(logging.Formatter(fmt=TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))

    _log_queue = Queue()
    _queue_handler = QueueHandler(_log_queue)
    # Handler filters see propagated records; logger filters would not
    if include_context:
        _queue_handler.addFilter(ContextInjectingFilter())
    logging.getLogger().addHandler(_queue_handler)

    if handlers:
        _listener = QueueListener(_log_queue, *handlers, respect_handler_level=True)
        _listener.start()
        atexit.register(shutdown)
