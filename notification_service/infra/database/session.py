"""Async engine and session factory construction.

Nothing here is created at import time: the composition root builds the
engine from ``DatabaseSettings`` and disposes it on shutdown.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from notification_service.core.database import Base

if TYPE_CHECKING:
    from notification_service.core.settings import DatabaseSettings

logger = logging.getLogger(__name__)


def create_engine(settings: DatabaseSettings) -> AsyncEngine:
    """Create the async engine.

    SQLite connections get ``PRAGMA foreign_keys=ON`` so channel and
    interaction rows cascade with their notification.
    """
    engine = create_async_engine(
        settings.url,
        echo=settings.echo,
        pool_pre_ping=settings.pool_pre_ping,
    )

    if settings.is_sqlite:

        @event.listens_for(engine.sync_engine, "connect")
        def _enable_sqlite_foreign_keys(dbapi_conn: Any, connection_record: Any) -> None:
            _ = connection_record
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    logger.info(
        "Database engine created",
        extra={"dialect": engine.dialect.name, "operation": "db.create_engine"},
    )
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory used by the store; one session per atomic operation."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def init_schema(engine: AsyncEngine) -> None:
    """Create missing tables and indexes (idempotent)."""
    # Registers the notification tables on Base.metadata
    import notification_service.features.notifications.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema ensured", extra={"operation": "db.init_schema"})


async def drop_schema(engine: AsyncEngine) -> None:
    """Drop every table known to the metadata."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    logger.warning("Database schema dropped", extra={"operation": "db.drop_schema"})
