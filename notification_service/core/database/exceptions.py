"""Database repository exceptions.

Wrap raw SQLAlchemy failures so the engine can tell an unexpected storage
problem apart from the expected outcomes it reports as result variants.
"""
from __future__ import annotations

from typing import Any


class RepositoryError(Exception):
    """Base exception for repository and store operations.

    Raised when a statement fails for reasons the caller cannot act on
    (connection loss, constraint violations other than a duplicate id,
    schema drift).
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


__all__ = ["RepositoryError"]
