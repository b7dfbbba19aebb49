"""General API routes."""

from __future__ import annotations

import structlog
from fastapi import APIRouter
from fastapi.responses import JSONResponse

router = APIRouter(prefix="/api")
logger = structlog.get_logger("helixio.routes.general")

APP_VERSION = "0.1.0"


@router.get("/health")
async def health() -> JSONResponse:
    """Health check endpoint."""
    logger.debug("Health check")
    return JSONResponse({"status": "healthy", "version": APP_VERSION})
