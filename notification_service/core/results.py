"""Result variants returned by engine operations.

Expected outcomes (a duplicate id, a missing record, a transient gateway
error) travel as values rather than exceptions. Callers branch on
``result.is_ok`` or on ``result.kind`` and decide retry eligibility from
``ErrorKind.is_retryable``.

Usage:
    result = await dispatcher.dispatch(intake)
    if result.is_ok:
        print(result.value.notification_id)
    elif result.kind is ErrorKind.ALREADY_EXISTS:
        ...

    # Or raise a problem-details exception instead
    dispatched = result.unwrap()
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Generic, NoReturn, TypeVar

from notification_service.core.exceptions import (
    ConflictException,
    InternalServerException,
    NotFoundException,
    ServiceUnavailableException,
    ValidationException,
)

if TYPE_CHECKING:
    from notification_service.core.exceptions import AppException

T = TypeVar("T")


class ErrorKind(StrEnum):
    """Error taxonomy shared by the store, the drivers and the dispatcher."""

    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    ALREADY_EXISTS = "already_exists"
    QUOTA_EXCEEDED = "quota_exceeded"
    TRANSIENT_DELIVERY = "transient_delivery"
    PERMANENT_DELIVERY = "permanent_delivery"
    EXPIRED = "expired"
    UNAVAILABLE = "unavailable"
    INTERNAL = "internal"

    @property
    def is_retryable(self) -> bool:
        """Whether a failure of this kind may succeed on a later attempt."""
        return self is ErrorKind.TRANSIENT_DELIVERY


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """Successful outcome carrying a value."""

    value: T

    @property
    def is_ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True, slots=True)
class Err:
    """Failed outcome.

    Attributes:
        kind: Error classification.
        message: Human-readable description for logs and callers.
        details: Machine-readable context (status code, channel, ids).
    """

    kind: ErrorKind
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def is_ok(self) -> bool:
        return False

    @property
    def is_retryable(self) -> bool:
        return self.kind.is_retryable

    def unwrap(self) -> NoReturn:
        raise self.to_exception()

    def to_exception(self) -> AppException:
        """Map the error onto the problem-details exception hierarchy."""
        extra = {"kind": self.kind.value, **self.details}
        match self.kind:
            case ErrorKind.VALIDATION:
                return ValidationException(self.message, extra=extra)
            case ErrorKind.NOT_FOUND:
                return NotFoundException(self.message, extra=extra)
            case ErrorKind.ALREADY_EXISTS:
                return ConflictException(self.message, type="already-exists", extra=extra)
            case ErrorKind.UNAVAILABLE:
                return ServiceUnavailableException(self.message, extra=extra)
            case _:
                return InternalServerException(self.message, type=f"{self.kind.value.replace('_', '-')}", extra=extra)


Result = Ok[T] | Err


def transient(message: str, **details: Any) -> Err:
    """Shorthand for a retryable delivery failure."""
    return Err(ErrorKind.TRANSIENT_DELIVERY, message, details)


def permanent(message: str, **details: Any) -> Err:
    """Shorthand for a terminal delivery failure."""
    return Err(ErrorKind.PERMANENT_DELIVERY, message, details)


__all__ = ["Err", "ErrorKind", "Ok", "Result", "permanent", "transient"]
