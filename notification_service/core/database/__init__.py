"""Database building blocks: declarative base, mixins, repository, errors."""

from notification_service.core.database.base import (
    NAMING_CONVENTION,
    Base,
    IntegerPKMixin,
    TimestampMixin,
    as_utc,
    utcnow,
)
from notification_service.core.database.exceptions import RepositoryError
from notification_service.core.database.repository import BaseRepository, SearchResult

__all__ = [
    "NAMING_CONVENTION",
    "Base",
    "BaseRepository",
    "IntegerPKMixin",
    "RepositoryError",
    "SearchResult",
    "TimestampMixin",
    "as_utc",
    "utcnow",
]
