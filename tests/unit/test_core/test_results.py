"""Unit tests for result variants and their exception mapping."""

from __future__ import annotations

import pytest

from notification_service.core.exceptions import (
    AppException,
    ConflictException,
    InternalServerException,
    NotFoundException,
    ServiceUnavailableException,
    ValidationException,
)
from notification_service.core.results import Err, ErrorKind, Ok, permanent, transient


@pytest.mark.unit
class TestErrorKind:
    """Test suite for the error taxonomy."""

    def test_only_transient_delivery_is_retryable(self):
        retryable = {kind for kind in ErrorKind if kind.is_retryable}

        assert retryable == {ErrorKind.TRANSIENT_DELIVERY}

    def test_shorthands(self):
        failure = transient("gateway returned 503", status_code=503)

        assert failure.is_retryable is True
        assert failure.details == {"status_code": 503}
        assert permanent("bad address").kind is ErrorKind.PERMANENT_DELIVERY
        assert permanent("bad address").is_retryable is False


@pytest.mark.unit
class TestResultVariants:
    """Test suite for Ok and Err."""

    def test_ok_unwraps_value(self):
        result = Ok(42)

        assert result.is_ok is True
        assert result.unwrap() == 42

    @pytest.mark.parametrize(
        ("kind", "exception_type", "status_code"),
        [
            (ErrorKind.VALIDATION, ValidationException, 422),
            (ErrorKind.NOT_FOUND, NotFoundException, 404),
            (ErrorKind.ALREADY_EXISTS, ConflictException, 409),
            (ErrorKind.UNAVAILABLE, ServiceUnavailableException, 503),
            (ErrorKind.QUOTA_EXCEEDED, InternalServerException, 500),
            (ErrorKind.INTERNAL, InternalServerException, 500),
        ],
    )
    def test_unwrap_raises_mapped_exception(self, kind, exception_type, status_code):
        result = Err(kind, "something happened", {"notification_id": "n1"})

        with pytest.raises(exception_type) as exc_info:
            result.unwrap()

        assert exc_info.value.status_code == status_code
        assert exc_info.value.extra == {"kind": kind.value, "notification_id": "n1"}

    def test_problem_detail(self):
        exception = Err(ErrorKind.ALREADY_EXISTS, "Notification n1 already exists").to_exception()

        problem = exception.to_problem_detail()

        assert problem == {
            "type": "already-exists",
            "title": "Conflict",
            "status": 409,
            "detail": "Notification n1 already exists",
            "kind": "already_exists",
        }

    def test_delivery_kinds_get_hyphenated_type(self):
        exception = Err(ErrorKind.TRANSIENT_DELIVERY, "timeout").to_exception()

        assert exception.type == "transient-delivery"
        assert isinstance(exception, AppException)

    def test_default_title(self):
        exception = AppException(status_code=418, detail="teapot")

        assert exception.title == "Error"
        assert "instance" not in exception.to_problem_detail()
