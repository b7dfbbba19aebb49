"""Database configuration and setup for Helixio.

Handles SQLite async database setup:
- WAL mode for concurrent reads while a similarity job writes
- Session factory shared by request handlers and background jobs
- Retry logic for database locks
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, TypeVar

import structlog
from sqlalchemy import event
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    async_sessionmaker,
    create_async_engine,
)
from sqlmodel.ext.asyncio.session import AsyncSession as SQLModelAsyncSession

from helixio.core.metrics import (
    db_connections_active,
    db_lock_errors_total,
    db_pool_size,
    db_retries_failed_total,
    db_retry_attempts_total,
)

logger = structlog.get_logger("helixio.database")

T = TypeVar("T")

SessionFactory = async_sessionmaker[SQLModelAsyncSession]

# Global storage for session factory (used by the scheduler and background jobs)
_global_session_factory: SessionFactory | None = None


def set_global_session_factory(session_factory: SessionFactory | None) -> None:
    """Set the global session factory."""
    global _global_session_factory
    _global_session_factory = session_factory
    logger.debug("Global session factory set")


def get_global_session_factory() -> SessionFactory | None:
    """Get the global session factory, or None if the app has not created one."""
    return _global_session_factory


def create_database_engine(
    database_file: Path | str,
    echo: bool = False,
) -> AsyncEngine:
    """Create and configure the database engine for async SQLite.

    Args:
        database_file: Path to the SQLite database file.
        echo: If True, log all SQL statements (useful for debugging).

    Returns:
        Configured AsyncEngine instance.
    """
    database_url = f"sqlite+aiosqlite:///{database_file}"

    pool_size = 5
    engine = create_async_engine(
        database_url,
        echo=echo,
        connect_args={"timeout": 30.0},  # Wait up to 30 seconds for locks to be released
        pool_pre_ping=True,
        pool_size=pool_size,
        max_overflow=10,
    )
    db_pool_size.set(pool_size)

    @event.listens_for(engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_conn: Any, connection_record: Any) -> None:
        """Enable WAL mode and foreign keys."""
        cursor = dbapi_conn.cursor()
        try:
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.execute("PRAGMA foreign_keys=ON")
        finally:
            cursor.close()

    @event.listens_for(engine.sync_engine, "checkout")
    def on_connection_checkout(
        dbapi_conn: Any, connection_record: Any, connection_proxy: Any
    ) -> None:
        db_connections_active.set(engine.sync_engine.pool.checkedout())  # type: ignore[attr-defined]

    @event.listens_for(engine.sync_engine, "checkin")
    def on_connection_checkin(dbapi_conn: Any, connection_record: Any) -> None:
        db_connections_active.set(engine.sync_engine.pool.checkedout())  # type: ignore[attr-defined]

    logger.info(
        "Database engine created",
        database_file=str(database_file),
        echo=echo,
        pool_size=pool_size,
    )

    return engine


def create_session_factory(engine: AsyncEngine) -> SessionFactory:
    """Create a session factory for database sessions.

    expire_on_commit=False keeps loaded rows usable after commit in async code.
    """
    return async_sessionmaker(
        engine,
        class_=SQLModelAsyncSession,
        expire_on_commit=False,
    )


async def init_database(engine: AsyncEngine) -> None:
    """Create all tables registered on the SQLModel metadata."""
    from helixio.db.models import metadata

    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)

    logger.info("Database tables ensured", tables=sorted(metadata.tables.keys()))


async def retry_db_operation(
    operation: Callable[[], Awaitable[T]],
    session: SQLModelAsyncSession | None = None,
    max_retries: int = 5,
    retry_delay: float = 0.1,
    operation_type: str = "unknown",
) -> T:
    """Retry a database operation on SQLite lock errors with exponential backoff.

    Args:
        operation: Callable returning an awaitable (not already awaited).
        session: Optional session to roll back before retrying.
        max_retries: Maximum number of attempts.
        retry_delay: Initial delay in seconds; doubles with each retry.
        operation_type: Label for metrics ("query", "insert", "delete", "commit", ...).

    Returns:
        Result of the operation.

    Raises:
        OperationalError: If the operation is not a lock error or retries are exhausted.
    """
    for attempt in range(max_retries):
        try:
            return await operation()
        except OperationalError as exc:
            is_lock = "locked" in str(exc).lower()
            if not is_lock or attempt >= max_retries - 1:
                if is_lock:
                    db_retries_failed_total.labels(operation_type=operation_type).inc()
                logger.error(
                    "Database operation failed",
                    attempt=attempt + 1,
                    max_retries=max_retries,
                    operation_type=operation_type,
                    error=str(exc)[:200],
                )
                raise

            db_lock_errors_total.inc()
            db_retry_attempts_total.labels(operation_type=operation_type).inc()
            logger.debug(
                "Database lock detected, retrying",
                attempt=attempt + 1,
                max_retries=max_retries,
                operation_type=operation_type,
            )

            if session is not None:
                await session.rollback()

            await asyncio.sleep(retry_delay * (2**attempt))

    raise RuntimeError(f"Operation failed after {max_retries} retries")
