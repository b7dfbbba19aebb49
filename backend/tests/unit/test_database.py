"""Tests for database engine helpers and lock retries."""

from __future__ import annotations

from pathlib import Path

import pytest
from sqlalchemy import inspect
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine

from helixio.core.database import (
    create_database_engine,
    get_global_session_factory,
    init_database,
    retry_db_operation,
)


@pytest.fixture
async def temp_db_engine(tmp_path: Path) -> AsyncEngine:
    """Create a temporary database engine for testing."""
    engine = create_database_engine(tmp_path / "test.db", echo=False)
    yield engine
    await engine.dispose()


async def test_init_database_creates_tables(temp_db_engine: AsyncEngine) -> None:
    await init_database(temp_db_engine)

    async with temp_db_engine.connect() as conn:
        tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())

    assert {"series", "cross_source_mappings", "series_similarities", "similarity_jobs"} <= set(tables)


async def test_init_database_is_idempotent(temp_db_engine: AsyncEngine) -> None:
    await init_database(temp_db_engine)
    await init_database(temp_db_engine)


async def test_global_session_factory(session_factory) -> None:
    assert get_global_session_factory() is session_factory


async def test_retry_operation_success_first_try() -> None:
    """Test that a successful operation runs once."""
    call_count = 0

    async def successful_operation() -> str:
        nonlocal call_count
        call_count += 1
        return "success"

    result = await retry_db_operation(successful_operation, operation_type="test")

    assert result == "success"
    assert call_count == 1


async def test_retry_operation_retries_lock_errors() -> None:
    """Test that lock errors are retried until the operation succeeds."""
    call_count = 0

    async def failing_operation() -> str:
        nonlocal call_count
        call_count += 1
        if call_count < 2:
            raise OperationalError("statement", "parameters", "database is locked")
        return "success"

    result = await retry_db_operation(
        failing_operation,
        max_retries=3,
        retry_delay=0.01,
        operation_type="test_lock",
    )

    assert result == "success"
    assert call_count == 2


async def test_retry_operation_gives_up() -> None:
    """Test that lock errors are raised once retries are exhausted."""
    call_count = 0

    async def always_failing_operation() -> str:
        nonlocal call_count
        call_count += 1
        raise OperationalError("statement", "parameters", "database is locked")

    with pytest.raises(OperationalError):
        await retry_db_operation(
            always_failing_operation,
            max_retries=2,
            retry_delay=0.01,
            operation_type="test_failed",
        )

    assert call_count == 2


async def test_retry_operation_does_not_retry_other_errors() -> None:
    call_count = 0

    async def broken_operation() -> str:
        nonlocal call_count
        call_count += 1
        raise OperationalError("statement", "parameters", "no such table: series")

    with pytest.raises(OperationalError):
        await retry_db_operation(broken_operation, retry_delay=0.01)

    assert call_count == 1
