"""Unit tests for structured logging helpers."""

from __future__ import annotations

import json
import logging
import sys

import pytest

from notification_service.infra.logging.context import (
    ContextInjectingFilter,
    clear_log_context,
    get_log_context,
    remove_from_log_context,
    set_log_context,
)
from notification_service.infra.logging.formatters import JSONFormatter


def _record(message: str = "Notification dispatched", **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="notification_service.features.notifications.dispatcher",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=message,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.fixture(autouse=True)
def _clean_context():
    clear_log_context()
    yield
    clear_log_context()


@pytest.mark.unit
class TestJSONFormatter:
    """Test suite for the JSON Lines formatter."""

    def test_formats_one_object_per_line(self):
        formatter = JSONFormatter(static={"service": "notification-service"})

        line = formatter.format(_record(notification_id="n1", operation="dispatcher.dispatch"))
        data = json.loads(line)

        assert "\n" not in line
        assert data["level"] == "INFO"
        assert data["message"] == "Notification dispatched"
        assert data["service"] == "notification-service"
        assert data["notification_id"] == "n1"
        assert data["timestamp"].endswith("Z")

    def test_exception_kept_on_one_line(self):
        formatter = JSONFormatter()
        try:
            raise RuntimeError("driver exploded")
        except RuntimeError:
            record = _record()
            record.exc_info = sys.exc_info()

        data = json.loads(formatter.format(record))

        assert "driver exploded" in data["exception"]
        assert "\n" not in data["exception"]


@pytest.mark.unit
class TestLogContext:
    """Test suite for contextvar-based log context."""

    def test_set_and_remove(self):
        set_log_context(notification_id="n1", user_id="u1")
        remove_from_log_context("user_id")

        assert get_log_context() == {"notification_id": "n1"}

    def test_filter_injects_without_overwriting(self):
        set_log_context(notification_id="n1", channel="email")
        record = _record(channel="push")

        assert ContextInjectingFilter().filter(record) is True
        assert record.notification_id == "n1"
        assert record.channel == "push"
