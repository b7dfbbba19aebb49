"""Cross-source matching routes."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable

import structlog
from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field
from sqlmodel.ext.asyncio.session import AsyncSession as SQLModelAsyncSession

from helixio.core.matching import (
    CachedMapping,
    CrossMatchFactors,
    CrossMatchOptions,
    CrossSourceResult,
    find_cross_source_matches,
    get_cached_mappings,
    invalidate_cross_source_mappings,
    save_cross_source_mapping,
)
from helixio.core.matching.cross_source import MatchMethod
from helixio.core.providers import MetadataSource, ProviderRegistry, SeriesMetadata
from helixio.core.settings_persistence import get_metadata_settings

logger = structlog.get_logger("helixio.routes.cross_source")


class CrossSourceMatchRequest(BaseModel):
    """Request model for a cross-source search."""

    series: SeriesMetadata
    options: CrossMatchOptions = Field(default_factory=CrossMatchOptions)


class SaveMappingRequest(BaseModel):
    """Request model for storing an accepted mapping."""

    primary_source: MetadataSource
    primary_source_id: str
    matched_source: MetadataSource
    matched_source_id: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    match_method: MatchMethod = "user"
    match_factors: CrossMatchFactors | None = None


class MappingResponse(BaseModel):
    id: str
    primary_source: str
    primary_source_id: str
    matched_source: str
    matched_source_id: str
    confidence: float
    match_method: str
    verified: bool


class MappingListResponse(BaseModel):
    source: MetadataSource
    source_id: str
    mappings: list[CachedMapping]


class InvalidateResponse(BaseModel):
    deleted: int


def create_cross_source_router(
    get_db_session: Callable[[], AsyncIterator[SQLModelAsyncSession]],
) -> APIRouter:
    """Create cross-source matching router.

    Args:
        get_db_session: Dependency function for database sessions

    Returns:
        Configured APIRouter instance
    """
    router = APIRouter(prefix="/api/metadata/cross-source", tags=["cross-source"])

    def _registry(request: Request) -> ProviderRegistry | None:
        return getattr(request.app.state, "provider_registry", None)

    @router.post("/match", response_model=CrossSourceResult)
    async def match_series(
        payload: CrossSourceMatchRequest,
        request: Request,
        session: SQLModelAsyncSession = Depends(get_db_session),
    ) -> CrossSourceResult:
        """Search other metadata sources for the given series.

        Auto-match candidates are saved as mappings unless
        auto_apply_high_confidence is turned off.
        """
        result = await find_cross_source_matches(
            payload.series,
            payload.options,
            registry=_registry(request),
        )

        if get_metadata_settings().auto_apply_high_confidence:
            for match in result.matches:
                if not match.is_auto_match_candidate:
                    continue
                await save_cross_source_mapping(
                    session,
                    primary_source=result.primary_source,
                    primary_source_id=result.primary_source_id,
                    matched_source=match.source,
                    matched_source_id=match.source_id,
                    confidence=match.confidence,
                    match_method="auto",
                    match_factors=match.match_factors,
                )
                logger.info(
                    "Auto-applied cross-source match",
                    source=match.source,
                    source_id=match.source_id,
                    confidence=match.confidence,
                )

        return result

    @router.get("/mappings/{source}/{source_id}", response_model=MappingListResponse)
    async def list_mappings(
        source: MetadataSource,
        source_id: str,
        session: SQLModelAsyncSession = Depends(get_db_session),
    ) -> MappingListResponse:
        mappings = await get_cached_mappings(session, source, source_id)
        return MappingListResponse(source=source, source_id=source_id, mappings=mappings)

    @router.post("/mappings", response_model=MappingResponse)
    async def save_mapping(
        payload: SaveMappingRequest,
        session: SQLModelAsyncSession = Depends(get_db_session),
    ) -> MappingResponse:
        mapping = await save_cross_source_mapping(
            session,
            primary_source=payload.primary_source,
            primary_source_id=payload.primary_source_id,
            matched_source=payload.matched_source,
            matched_source_id=payload.matched_source_id,
            confidence=payload.confidence,
            match_method=payload.match_method,
            match_factors=payload.match_factors,
        )
        return MappingResponse.model_validate(mapping, from_attributes=True)

    @router.delete("/mappings/{source}/{source_id}", response_model=InvalidateResponse)
    async def invalidate_mappings(
        source: MetadataSource,
        source_id: str,
        session: SQLModelAsyncSession = Depends(get_db_session),
    ) -> InvalidateResponse:
        deleted = await invalidate_cross_source_mappings(session, source, source_id)
        return InvalidateResponse(deleted=deleted)

    return router
