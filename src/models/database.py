"""
Database connection and session management.

The engine is built from an explicit ``DatabaseSettings`` value; callers own
its lifetime and dispose it on shutdown.
"""

from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
)

from src.core.config import DatabaseSettings


def create_engine(settings: DatabaseSettings) -> AsyncEngine:
    """Create the async engine and its bounded connection pool."""
    url = settings.url
    kwargs: dict[str, Any] = {"echo": settings.echo}

    if url.get_backend_name() == "sqlite":
        engine = create_async_engine(url, **kwargs)
        enable_sqlite_foreign_keys(engine)
        return engine

    kwargs.update(
        pool_size=settings.pool_size,
        max_overflow=settings.pool_overflow,
        pool_timeout=settings.pool_timeout,
        pool_pre_ping=True,
    )
    if url.get_driver_name() == "asyncpg":
        kwargs["connect_args"] = {"command_timeout": settings.statement_timeout}

    return create_async_engine(url, **kwargs)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to ``engine``."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


def enable_sqlite_foreign_keys(engine: AsyncEngine) -> None:
    """SQLite ignores foreign keys (and cascades) unless enabled per connection."""

    @event.listens_for(engine.sync_engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

