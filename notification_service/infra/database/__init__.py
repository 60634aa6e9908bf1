"""Database session management."""

from notification_service.infra.database.session import (
    create_engine,
    create_session_factory,
    drop_schema,
    init_schema,
)

__all__ = ["create_engine", "create_session_factory", "drop_schema", "init_schema"]
