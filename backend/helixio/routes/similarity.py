"""Series similarity routes."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel
from sqlmodel.ext.asyncio.session import AsyncSession as SQLModelAsyncSession

from helixio.core.exceptions import SeriesNotFoundError, SimilarityJobBusyError
from helixio.core.similarity import (
    JobProgress,
    MatchReason,
    SimilarityScores,
    SimilarityStats,
    get_active_series,
    get_job_progress,
    get_match_reasons,
    get_recent_jobs,
    get_similar_series,
    get_similarity_stats,
    start_similarity_job,
)
from helixio.core.similarity.jobs import JobType
from helixio.db.models import Series

logger = structlog.get_logger("helixio.routes.similarity")


class SimilarSeriesResponse(BaseModel):
    series_id: str
    name: str | None
    publisher: str | None
    similarity_score: float
    reasons: list[MatchReason]


class SimilarSeriesListResponse(BaseModel):
    series_id: str
    similar: list[SimilarSeriesResponse]


class StartJobRequest(BaseModel):
    type: JobType = "incremental"


class StartJobResponse(BaseModel):
    job_id: str
    type: JobType


def create_similarity_router(
    get_db_session: Callable[[], AsyncIterator[SQLModelAsyncSession]],
) -> APIRouter:
    """Create similarity router.

    Args:
        get_db_session: Dependency function for database sessions

    Returns:
        Configured APIRouter instance
    """
    router = APIRouter(prefix="/api", tags=["similarity"])

    @router.get("/series/{series_id}/similar", response_model=SimilarSeriesListResponse)
    async def similar_series(
        series_id: str,
        limit: int = Query(10, ge=1, le=100),
        session: SQLModelAsyncSession = Depends(get_db_session),
    ) -> SimilarSeriesListResponse:
        """List stored similar series with the reasons they match."""
        try:
            await get_active_series(session, series_id)
        except SeriesNotFoundError as e:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e

        similar: list[SimilarSeriesResponse] = []
        for item in await get_similar_series(session, series_id, limit=limit):
            other = await session.get(Series, item.series_id)
            scores = SimilarityScores.model_validate(item.model_dump())
            similar.append(
                SimilarSeriesResponse(
                    series_id=item.series_id,
                    name=other.name if other else None,
                    publisher=other.publisher if other else None,
                    similarity_score=item.similarity_score,
                    reasons=get_match_reasons(scores),
                )
            )

        return SimilarSeriesListResponse(series_id=series_id, similar=similar)

    @router.post(
        "/similarity/jobs",
        response_model=StartJobResponse,
        status_code=status.HTTP_202_ACCEPTED,
    )
    async def start_job(payload: StartJobRequest, request: Request) -> StartJobResponse:
        """Start a similarity job in the background."""
        try:
            job_id = await start_similarity_job(request.app.state.async_session_factory, payload.type)
        except SimilarityJobBusyError as e:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail={"message": str(e), "running_job_id": e.running_job_id},
            ) from e

        logger.info("Similarity job started from API", job_id=job_id, job_type=payload.type)
        return StartJobResponse(job_id=job_id, type=payload.type)

    @router.get("/similarity/jobs", response_model=list[JobProgress])
    async def list_jobs(
        limit: int = Query(10, ge=1, le=100),
        session: SQLModelAsyncSession = Depends(get_db_session),
    ) -> list[JobProgress]:
        return await get_recent_jobs(session, limit=limit)

    @router.get("/similarity/jobs/{job_id}", response_model=JobProgress)
    async def job_progress(
        job_id: str,
        session: SQLModelAsyncSession = Depends(get_db_session),
    ) -> JobProgress:
        progress = await get_job_progress(session, job_id)
        if progress is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")
        return progress

    @router.get("/similarity/stats", response_model=SimilarityStats)
    async def stats(session: SQLModelAsyncSession = Depends(get_db_session)) -> SimilarityStats:
        return await get_similarity_stats(session)

    @router.get("/similarity/scheduler")
    async def scheduler_status(request: Request) -> dict[str, Any]:
        scheduler = getattr(request.app.state, "similarity_scheduler", None)
        if scheduler is None:
            return {"is_running": False, "is_processing": False}
        return scheduler.status()

    return router
