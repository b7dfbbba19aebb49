"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import shutil
import tempfile
from collections.abc import AsyncIterator, Iterator
from pathlib import Path

import pytest
from prometheus_client import REGISTRY
from sqlmodel.ext.asyncio.session import AsyncSession as SQLModelAsyncSession

from helixio.core.config import reload_settings
from helixio.core.database import (
    create_database_engine,
    create_session_factory,
    init_database,
    set_global_session_factory,
)


@pytest.fixture(autouse=True)
def isolated_data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    """Point HELIXIO_DATA_DIR at a temp directory so settings.json starts empty."""
    data_dir = tmp_path / "data"
    monkeypatch.setenv("HELIXIO_DATA_DIR", str(data_dir))
    monkeypatch.setenv("HELIXIO_ENV", "testing")
    reload_settings()

    yield data_dir

    monkeypatch.undo()
    reload_settings()


@pytest.fixture(autouse=True)
def reset_prometheus_registry():
    """Reset Prometheus registry before each test to avoid duplicate metric registration.

    setup_metrics() registers the instrumentator's metrics in the global
    registry, so each test that creates an app would otherwise fail with
    "Duplicated timeseries".
    """
    for collector in list(REGISTRY._collector_to_names.keys()):
        REGISTRY.unregister(collector)

    yield

    for collector in list(REGISTRY._collector_to_names.keys()):
        REGISTRY.unregister(collector)


@pytest.fixture
async def session_factory():
    """Session factory over a fresh SQLite database with all tables created."""
    temp_dir = Path(tempfile.mkdtemp())
    db_path = temp_dir / "test.db"

    try:
        engine = create_database_engine(db_path, echo=False)
        factory = create_session_factory(engine)
        set_global_session_factory(factory)
        await init_database(engine)

        yield factory

        await engine.dispose()
    finally:
        set_global_session_factory(None)
        shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
async def session(session_factory) -> AsyncIterator[SQLModelAsyncSession]:
    """Create a database session for testing."""
    async with session_factory() as session:
        yield session
