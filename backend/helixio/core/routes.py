"""Application routes."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable

import structlog
from fastapi import APIRouter
from sqlmodel.ext.asyncio.session import AsyncSession as SQLModelAsyncSession

from helixio.routes import general
from helixio.routes.cross_source import create_cross_source_router
from helixio.routes.similarity import create_similarity_router

logger = structlog.get_logger("helixio.routes")


def create_app_router(
    get_db_session: Callable[[], AsyncIterator[SQLModelAsyncSession]],
) -> APIRouter:
    """Create and configure main application router.

    Args:
        get_db_session: Dependency function for database sessions

    Returns:
        Configured APIRouter instance
    """
    router = APIRouter()

    router.include_router(general.router, tags=["general"])

    router.include_router(create_cross_source_router(get_db_session))
    logger.debug("Included cross-source router in app_router")

    router.include_router(create_similarity_router(get_db_session))
    logger.debug("Included similarity router in app_router")

    return router
