"""Exception hierarchy surfaced to callers that prefer raising over results.

The dispatch engine itself reports expected failures as result variants
(see :mod:`notification_service.core.results`). Front-ends that would rather
raise can call ``Err.unwrap()`` which maps an error kind onto one of the
problem-detail exceptions defined here.
"""

from __future__ import annotations

from typing import Any


class AppException(Exception):
    """Base service exception shaped after RFC 7807 problem details.

    Attributes:
        status_code: HTTP-equivalent status code for the failure.
        detail: Human-readable error message.
        type: Problem type identifier.
        title: Short summary of the problem type.
        instance: Reference to the affected resource, when known.
        extra: Additional context (notification id, channel, ...).

    Example:
        raise AppException(
            status_code=404,
            detail="Notification n-1 not found for user u-1",
            type="notification-not-found",
            instance="notifications/n-1",
            extra={"notification_id": "n-1", "user_id": "u-1"},
        )
    """

    def __init__(
        self,
        status_code: int,
        detail: str,
        type: str = "about:blank",
        title: str | None = None,
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        self.status_code = status_code
        self.detail = detail
        self.type = type
        self.title = title or self._default_title(status_code)
        self.instance = instance
        self.extra = extra or {}
        super().__init__(detail)

    @staticmethod
    def _default_title(status_code: int) -> str:
        titles = {
            404: "Not Found",
            409: "Conflict",
            422: "Unprocessable Entity",
            500: "Internal Server Error",
            503: "Service Unavailable",
        }
        return titles.get(status_code, "Error")

    def to_problem_detail(self) -> dict[str, Any]:
        """Render the exception as a problem-details mapping."""
        problem: dict[str, Any] = {
            "type": self.type,
            "title": self.title,
            "status": self.status_code,
            "detail": self.detail,
        }
        if self.instance:
            problem["instance"] = self.instance
        if self.extra:
            problem.update(self.extra)
        return problem


class NotFoundException(AppException):
    """A notification (or other addressed resource) does not exist."""

    def __init__(
        self,
        detail: str,
        type: str = "not-found",
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            status_code=404,
            detail=detail,
            type=type,
            title="Not Found",
            instance=instance,
            extra=extra,
        )


class ValidationException(AppException):
    """An intake or query failed required, length or enumeration checks.

    Example:
        raise ValidationException(
            detail="title must be at most 200 characters",
            extra={"field": "title"},
        )
    """

    def __init__(
        self,
        detail: str,
        type: str = "validation-error",
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            status_code=422,
            detail=detail,
            type=type,
            title="Validation Error",
            instance=instance,
            extra=extra,
        )


class ConflictException(AppException):
    """A notification id was reused for a second durable record."""

    def __init__(
        self,
        detail: str,
        type: str = "conflict",
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            status_code=409,
            detail=detail,
            type=type,
            title="Conflict",
            instance=instance,
            extra=extra,
        )


class ServiceUnavailableException(AppException):
    """The engine is shutting down and refuses new work."""

    def __init__(
        self,
        detail: str,
        type: str = "service-unavailable",
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            status_code=503,
            detail=detail,
            type=type,
            title="Service Unavailable",
            instance=instance,
            extra=extra,
        )


class InternalServerException(AppException):
    """Unhandled store or driver failure."""

    def __init__(
        self,
        detail: str,
        type: str = "internal-error",
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            status_code=500,
            detail=detail,
            type=type,
            title="Internal Server Error",
            instance=instance,
            extra=extra,
        )


__all__ = [
    "AppException",
    "ConflictException",
    "InternalServerException",
    "NotFoundException",
    "ServiceUnavailableException",
    "ValidationException",
]
