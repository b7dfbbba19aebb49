"""Application entry point for Helixio."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from sqlmodel.ext.asyncio.session import AsyncSession as SQLModelAsyncSession

from helixio.core.config import get_settings
from helixio.core.database import (
    create_database_engine,
    create_session_factory,
    init_database,
    set_global_session_factory,
)
from helixio.core.logging import setup_logging
from helixio.core.metrics import setup_metrics
from helixio.core.providers import ComicVineProvider, ProviderRegistry, RateLimiter
from helixio.core.routes import create_app_router
from helixio.core.settings_persistence import get_external_api_settings, get_similarity_settings
from helixio.core.similarity import SimilarityScheduler, cancel_running_jobs

logger = structlog.get_logger("helixio.app")

APP_VERSION = "0.1.0"


def register_default_providers(registry: ProviderRegistry) -> None:
    """Register the providers that are configured in settings.json."""
    comicvine = get_external_api_settings("comicvine")
    api_key = comicvine.get("api_key")
    if not api_key:
        logger.info("ComicVine API key not configured, provider not registered")
        return

    registry.register(
        ComicVineProvider(
            api_key=api_key,
            base_url=comicvine.get("base_url", "https://comicvine.gamespot.com/api"),
            rate_limiter=RateLimiter(
                max_requests=comicvine.get("rate_limit", 40),
                period=comicvine.get("rate_limit_period", 60),
                min_gap=comicvine.get("min_gap_seconds", 1.0),
            ),
            max_retries=comicvine.get("max_retries", 3),
        )
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan manager."""
    settings = get_settings()
    logger.info(
        "Starting Helixio application",
        version=APP_VERSION,
        env=settings.env,
        host=settings.host_bind_address,
        port=settings.host_port,
    )

    await init_database(app.state.engine)

    scheduler = SimilarityScheduler(app.state.async_session_factory, get_similarity_settings())
    app.state.similarity_scheduler = scheduler
    scheduler.start()

    yield

    logger.info("Shutting down Helixio application")
    scheduler.stop()
    await cancel_running_jobs()

    if getattr(app.state, "engine", None) is not None:
        await app.state.engine.dispose()
        logger.info("Database engine disposed")


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    settings = get_settings()

    setup_logging(debug=settings.is_debug, logs_dir=settings.logs_dir)

    app = FastAPI(
        title="Helixio",
        description="Cross-source metadata matching and series similarity",
        version=APP_VERSION,
        lifespan=lifespan,
    )

    engine = create_database_engine(settings.database_file, echo=False)
    async_session_factory = create_session_factory(engine)

    app.state.engine = engine
    app.state.async_session_factory = async_session_factory
    set_global_session_factory(async_session_factory)
    logger.info("Database engine and session factory created")

    registry = ProviderRegistry()
    register_default_providers(registry)
    app.state.provider_registry = registry

    async def get_db_session() -> AsyncIterator[SQLModelAsyncSession]:
        """FastAPI dependency for database sessions."""
        async with async_session_factory() as session:
            yield session

    setup_metrics(app, APP_VERSION)

    app.include_router(create_app_router(get_db_session))

    return app


def main() -> None:
    """Main entry point."""
    from helixio.core.config import reload_settings

    current_settings = reload_settings()
    app = create_app()

    import uvicorn

    logger.info(
        "Starting uvicorn server",
        host=current_settings.host_bind_address,
        port=current_settings.host_port,
    )

    uvicorn.run(
        app,
        host=current_settings.host_bind_address,
        port=current_settings.host_port,
        log_config=None,  # We use structlog
    )


if __name__ == "__main__":
    main()
