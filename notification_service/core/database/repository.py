"""Minimal generic repository for SQLAlchemy models.

Basic operations with explicit session passing. Transactions belong to the
caller; repositories only flush.

Example:
    class NotificationRepository(BaseRepository[Notification]):
        async def count_for_user(self, session: AsyncSession, user_id: str) -> int:
            ...

    repo = NotificationRepository(Notification)
    async with session_factory.begin() as session:
        record = await repo.get(session, "n-1")
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy import delete as sql_delete

from notification_service.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlalchemy.orm import InstrumentedAttribute

T = TypeVar("T")


@dataclass(slots=True, frozen=True)
class SearchResult(Generic[T]):
    """Page of items with the total count across all pages."""

    items: Sequence[T]
    total: int
    limit: int
    offset: int

    @property
    def has_more(self) -> bool:
        """Whether items remain after this page."""
        return self.offset + len(self.items) < self.total


class BaseRepository(Generic[T]):
    """Generic repository with the operations every model needs.

    Provides:
        - get(session, id) -> T | None
        - search(session, statement, limit, offset) -> SearchResult[T]
        - create(session, instance) -> T
        - delete_many(session, ids) -> int
    """

    __slots__ = ("model", "_logger", "_lazy")

    def __init__(self, model: type[T]) -> None:
        self.model = model
        self._logger = logging.getLogger(f"repository.{model.__name__}")
        # DEBUG lines are lambdas, evaluated only when enabled
        self._lazy = get_lazy_logger(f"repository.{model.__name__}")

    async def get(
        self,
        session: AsyncSession,
        id: Any,  # noqa: A002
        *,
        options: Iterable[Any] | None = None,
        populate_existing: bool = False,
    ) -> T | None:
        """Get entity by primary key, optionally with loader options.

        ``populate_existing`` overwrites identity-map state with fresh column
        values (needed after bulk UPDATE statements).
        """
        if options:
            stmt = select(self.model).where(self._pk_attr() == id).options(*options)
            if populate_existing:
                stmt = stmt.execution_options(populate_existing=True)
            result = await session.execute(stmt)
            instance = result.scalar_one_or_none()
        else:
            instance = await session.get(self.model, id, populate_existing=populate_existing)

        self._lazy.debug(
            lambda: f"db.get: {self.model.__name__}({id}) -> {'found' if instance else 'not found'}"
        )
        return instance

    async def search(
        self,
        session: AsyncSession,
        statement: Select[tuple[T]],
        *,
        limit: int = 50,
        offset: int = 0,
    ) -> SearchResult[T]:
        """Execute a pre-filtered statement with pagination and a total count.

        Args:
            session: Database session
            statement: Select with filters and ordering already applied
            limit: Page size
            offset: Results to skip

        Returns:
            SearchResult with items and total count
        """
        count_stmt = select(func.count()).select_from(statement.order_by(None).subquery())
        total = (await session.execute(count_stmt)).scalar_one()

        result = await session.execute(statement.limit(limit).offset(offset))
        items = result.scalars().unique().all()

        self._lazy.debug(
            lambda: f"db.search: {self.model.__name__}(limit={limit}, offset={offset}) -> {len(items)}/{total} items"
        )
        return SearchResult(items=items, total=total, limit=limit, offset=offset)

    async def create(self, session: AsyncSession, instance: T) -> T:
        """Add and flush a new entity so generated values are populated."""
        session.add(instance)
        await session.flush()

        entity_id = getattr(instance, "id", None)
        self._lazy.debug(lambda: f"db.create: {self.model.__name__}(id={entity_id})")
        return instance

    async def delete_many(self, session: AsyncSession, ids: Iterable[Any]) -> int:
        """Delete entities by primary key with a single DELETE statement."""
        id_list = list(ids)
        if not id_list:
            return 0

        stmt = sql_delete(self.model).where(self._pk_attr().in_(id_list))
        result = await session.execute(stmt)
        count = result.rowcount or 0

        self._logger.info(
            "Entities deleted",
            extra={"entity": self.model.__name__, "count": count, "operation": "db.delete_many"},
        )
        return count

    def _pk_attr(self) -> InstrumentedAttribute[Any]:
        return getattr(self.model, "id")
