"""Background jobs that compute and store series similarity.

Supports a full rebuild over every unordered pair of series and an
incremental update for series changed since the last completed job.
Only one job runs at a time per process.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Sequence
from typing import Any, Literal

import structlog
from pydantic import BaseModel
from sqlalchemy import delete
from sqlmodel import col, func, or_, select
from sqlmodel.ext.asyncio.session import AsyncSession as SQLModelAsyncSession

from helixio.core.database import SessionFactory, retry_db_operation
from helixio.core.exceptions import SeriesNotFoundError, SimilarityJobBusyError
from helixio.core.metrics import (
    similarity_job_duration_seconds,
    similarity_jobs_total,
    similarity_pairs_stored_total,
)
from helixio.db.models import Series, SeriesSimilarity, SimilarityJob

from .scoring import SeriesData, SimilarityScores, compute_and_filter_similarity

logger = structlog.get_logger("helixio.similarity.jobs")

JobType = Literal["full", "incremental"]
JobStatus = Literal["pending", "running", "completed", "failed"]

BATCH_SIZE = 1000  # Similarity rows inserted per commit
PROGRESS_UPDATE_INTERVAL = 500  # Job progress written every N pairs

_job_lock = asyncio.Lock()
_running_job_id: str | None = None
_running_task: asyncio.Task[Any] | None = None
_background_tasks: set[asyncio.Task[None]] = set()


class JobProgress(BaseModel):
    job_id: str
    status: JobStatus
    type: JobType
    total_pairs: int
    processed_pairs: int
    stored_pairs: int = 0
    percent_complete: int
    error: str | None = None
    started_at: int | None = None
    completed_at: int | None = None


class JobResult(BaseModel):
    job_id: str
    status: Literal["completed", "failed"]
    pairs_processed: int
    pairs_stored: int
    duration_ms: int
    error: str | None = None


class PairCounts(BaseModel):
    pairs_processed: int = 0
    pairs_stored: int = 0


class SimilarSeries(BaseModel):
    """A stored similarity seen from one series' side."""

    series_id: str
    similarity_score: float
    genre_score: float
    tag_score: float
    character_score: float
    team_score: float
    creator_score: float
    publisher_score: float
    keyword_score: float


class SimilarityStats(BaseModel):
    total_pairs: int
    avg_score: float
    last_computed_at: int | None = None


def is_job_running() -> bool:
    return _job_lock.locked()


def get_running_job_id() -> str | None:
    return _running_job_id


def _now() -> int:
    return int(time.time())


def _build_row(id_a: str, id_b: str, scores: SimilarityScores) -> SeriesSimilarity:
    """Similarity row with the smaller id as source."""
    source_id, target_id = (id_a, id_b) if id_a < id_b else (id_b, id_a)
    return SeriesSimilarity(
        source_series_id=source_id,
        target_series_id=target_id,
        similarity_score=scores.similarity_score,
        genre_score=scores.genre_score,
        tag_score=scores.tag_score,
        character_score=scores.character_score,
        team_score=scores.team_score,
        creator_score=scores.creator_score,
        publisher_score=scores.publisher_score,
        keyword_score=scores.keyword_score,
    )


async def _load_active_series(session: SQLModelAsyncSession) -> list[SeriesData]:
    async def _query() -> Sequence[Series]:
        result = await session.exec(
            select(Series).where(col(Series.deleted_at).is_(None)).order_by(col(Series.id))
        )
        return result.all()

    rows = await retry_db_operation(_query, operation_type="query")
    return [SeriesData.model_validate(row) for row in rows]


async def _insert_rows(session: SQLModelAsyncSession, rows: list[SeriesSimilarity]) -> None:
    async def _insert() -> None:
        session.add_all(rows)
        await session.commit()

    await retry_db_operation(_insert, session=session, operation_type="insert")


async def _delete_for_series(session: SQLModelAsyncSession, series_id: str) -> int:
    async def _delete() -> int:
        result = await session.exec(
            delete(SeriesSimilarity).where(  # type: ignore[call-overload]
                or_(
                    SeriesSimilarity.source_series_id == series_id,
                    SeriesSimilarity.target_series_id == series_id,
                )
            )
        )
        await session.commit()
        return result.rowcount or 0

    return await retry_db_operation(_delete, session=session, operation_type="delete")


async def _update_job(session: SQLModelAsyncSession, job: SimilarityJob, **fields: object) -> None:
    for name, value in fields.items():
        setattr(job, name, value)

    async def _commit() -> None:
        session.add(job)
        await session.commit()

    await retry_db_operation(_commit, session=session, operation_type="commit")


async def _mark_failed(session: SQLModelAsyncSession, job_id: str, error: str) -> None:
    await session.rollback()
    failed = await session.get(SimilarityJob, job_id)
    if failed is not None:
        await _update_job(session, failed, status="failed", error=error, completed_at=_now())


async def run_similarity_job(
    session: SQLModelAsyncSession,
    job_type: JobType = "incremental",
    on_started: Callable[[str], None] | None = None,
) -> JobResult:
    """Run a similarity computation job.

    Creates a SimilarityJob row, runs a full rebuild or incremental update,
    and records the outcome on the row. Errors during computation are
    recorded and returned as a failed result, not raised. A cancelled job
    is recorded as failed before the cancellation propagates.

    Args:
        session: Database session
        job_type: "full" for a complete rebuild, "incremental" for changed series only
        on_started: Called with the job id once the job row exists

    Returns:
        JobResult with pair counts and duration

    Raises:
        SimilarityJobBusyError: If another similarity job is running in this process
    """
    global _running_job_id, _running_task

    if _job_lock.locked():
        raise SimilarityJobBusyError(_running_job_id)

    async with _job_lock:
        start = time.monotonic()
        job = SimilarityJob(type=job_type, status="running", started_at=_now())
        session.add(job)
        await session.commit()
        await session.refresh(job)
        job_id = job.id
        _running_job_id = job_id
        _running_task = asyncio.current_task()
        if on_started is not None:
            on_started(job_id)

        counts = PairCounts()
        try:
            with structlog.contextvars.bound_contextvars(job_id=job_id, job_type=job_type):
                logger.info("Similarity job started")
                try:
                    if job_type == "full":
                        counts = await run_full_rebuild(session, job)
                    else:
                        counts = await run_incremental_update(session, job)

                    await _update_job(
                        session,
                        job,
                        status="completed",
                        completed_at=_now(),
                        processed_pairs=counts.pairs_processed,
                        stored_pairs=counts.pairs_stored,
                    )
                except asyncio.CancelledError:
                    logger.warning("Similarity job cancelled")
                    await _mark_failed(session, job_id, "Job cancelled")
                    similarity_jobs_total.labels(type=job_type, status="failed").inc()
                    raise
                except Exception as e:
                    logger.error("Similarity job failed", error=str(e), exc_info=True)
                    await _mark_failed(session, job_id, str(e))
                    similarity_jobs_total.labels(type=job_type, status="failed").inc()
                    return JobResult(
                        job_id=job_id,
                        status="failed",
                        pairs_processed=counts.pairs_processed,
                        pairs_stored=counts.pairs_stored,
                        duration_ms=int((time.monotonic() - start) * 1000),
                        error=str(e),
                    )

                duration = time.monotonic() - start
                similarity_jobs_total.labels(type=job_type, status="completed").inc()
                similarity_job_duration_seconds.labels(type=job_type).observe(duration)
                similarity_pairs_stored_total.labels(type=job_type).inc(counts.pairs_stored)
                logger.info(
                    "Similarity job completed",
                    pairs_processed=counts.pairs_processed,
                    pairs_stored=counts.pairs_stored,
                    duration_seconds=round(duration, 3),
                )
                return JobResult(
                    job_id=job_id,
                    status="completed",
                    pairs_processed=counts.pairs_processed,
                    pairs_stored=counts.pairs_stored,
                    duration_ms=int(duration * 1000),
                )
        finally:
            _running_job_id = None
            _running_task = None


async def start_similarity_job(
    session_factory: SessionFactory,
    job_type: JobType = "incremental",
) -> str:
    """Start a similarity job in the background and return its id once created.

    Raises:
        SimilarityJobBusyError: If another similarity job is running in this process
    """
    if _job_lock.locked():
        raise SimilarityJobBusyError(_running_job_id)

    started: asyncio.Future[str] = asyncio.get_running_loop().create_future()

    async def _run() -> None:
        try:
            async with session_factory() as session:
                await run_similarity_job(session, job_type, on_started=started.set_result)
        except asyncio.CancelledError:
            if not started.done():
                started.cancel()
            raise
        except Exception as e:
            if not started.done():
                started.set_exception(e)
            else:
                logger.error("Background similarity job crashed", error=str(e), exc_info=True)

    task = asyncio.create_task(_run())
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)

    return await started


async def cancel_running_jobs() -> None:
    """Cancel the in-flight similarity job and background job tasks, waiting until they finish."""
    tasks: set[asyncio.Task[Any]] = set(_background_tasks)
    if _running_task is not None:
        tasks.add(_running_task)
    tasks.discard(asyncio.current_task())  # type: ignore[arg-type]
    if not tasks:
        return

    logger.info("Cancelling similarity jobs", count=len(tasks))
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)


async def run_full_rebuild(session: SQLModelAsyncSession, job: SimilarityJob) -> PairCounts:
    """Recompute similarity for every unordered pair of active series."""
    async def _delete_all() -> None:
        await session.exec(delete(SeriesSimilarity))  # type: ignore[call-overload]
        await session.commit()

    await retry_db_operation(_delete_all, session=session, operation_type="delete")

    all_series = await _load_active_series(session)
    series_count = len(all_series)
    total_pairs = series_count * (series_count - 1) // 2
    await _update_job(session, job, total_pairs=total_pairs)

    logger.info("Full rebuild loaded series", series_count=series_count, total_pairs=total_pairs)

    counts = PairCounts()
    batch: list[SeriesSimilarity] = []

    for i, series_a in enumerate(all_series):
        for series_b in all_series[i + 1 :]:
            scores = compute_and_filter_similarity(series_a, series_b)
            if scores:
                batch.append(_build_row(series_a.id, series_b.id, scores))

            counts.pairs_processed += 1

            if len(batch) >= BATCH_SIZE:
                await _insert_rows(session, batch)
                counts.pairs_stored += len(batch)
                batch = []

            if counts.pairs_processed % PROGRESS_UPDATE_INTERVAL == 0:
                await _update_job(
                    session,
                    job,
                    processed_pairs=counts.pairs_processed,
                    last_processed_id=series_a.id,
                )
                # Yield so API requests are served during long rebuilds
                await asyncio.sleep(0)

    if batch:
        await _insert_rows(session, batch)
        counts.pairs_stored += len(batch)

    return counts


async def run_incremental_update(session: SQLModelAsyncSession, job: SimilarityJob) -> PairCounts:
    """Recompute similarity for series updated since the last completed job.

    Each changed series has its rows (both directions) deleted and
    recomputed against every other active series. A pair of two changed
    series is rewritten by the second pass, so no duplicates arise.
    """
    last_job = await get_last_completed_job(session)
    since = last_job.completed_at if last_job and last_job.completed_at else 0

    async def _query_updated() -> Sequence[Series]:
        result = await session.exec(
            select(Series)
            .where(col(Series.deleted_at).is_(None), col(Series.updated_at) >= since)
            .order_by(col(Series.id))
        )
        return result.all()

    updated_rows = await retry_db_operation(_query_updated, operation_type="query")
    if not updated_rows:
        logger.info("No series updated since last job", since=since)
        return PairCounts()

    updated_series = [SeriesData.model_validate(row) for row in updated_rows]
    all_series = await _load_active_series(session)

    total_pairs = len(updated_series) * (len(all_series) - 1)
    await _update_job(session, job, total_pairs=total_pairs)

    logger.info(
        "Incremental update loaded series",
        updated_count=len(updated_series),
        series_count=len(all_series),
        total_pairs=total_pairs,
        since=since,
    )

    counts = PairCounts()
    for series in updated_series:
        await _delete_for_series(session, series.id)

        batch: list[SeriesSimilarity] = []
        for other in all_series:
            if other.id == series.id:
                continue
            scores = compute_and_filter_similarity(series, other)
            if scores:
                batch.append(_build_row(series.id, other.id, scores))
            counts.pairs_processed += 1

        if batch:
            await _insert_rows(session, batch)
            counts.pairs_stored += len(batch)

        await _update_job(
            session,
            job,
            processed_pairs=counts.pairs_processed,
            last_processed_id=series.id,
        )

    return counts


async def delete_series_similarities(session: SQLModelAsyncSession, series_id: str) -> int:
    """Delete all stored similarities involving a series."""
    deleted = await _delete_for_series(session, series_id)
    logger.debug("Series similarities deleted", series_id=series_id, deleted=deleted)
    return deleted


async def update_series_similarities(session: SQLModelAsyncSession, series_id: str) -> int:
    """Recompute one series' similarities after it was edited.

    A missing or soft-deleted series has its rows purged instead.

    Returns:
        Number of similarity rows stored
    """
    series = await session.get(Series, series_id)
    if series is None or series.deleted_at is not None:
        await delete_series_similarities(session, series_id)
        return 0

    series_data = SeriesData.model_validate(series)
    await _delete_for_series(session, series_id)

    rows: list[SeriesSimilarity] = []
    for other in await _load_active_series(session):
        if other.id == series_id:
            continue
        scores = compute_and_filter_similarity(series_data, other)
        if scores:
            rows.append(_build_row(series_id, other.id, scores))

    if rows:
        await _insert_rows(session, rows)

    logger.info("Series similarities updated", series_id=series_id, stored=len(rows))
    return len(rows)


def _to_progress(job: SimilarityJob) -> JobProgress:
    percent = round(job.processed_pairs / job.total_pairs * 100) if job.total_pairs > 0 else 0
    return JobProgress(
        job_id=job.id,
        status=job.status,  # type: ignore[arg-type]
        type=job.type,  # type: ignore[arg-type]
        total_pairs=job.total_pairs,
        processed_pairs=job.processed_pairs,
        stored_pairs=job.stored_pairs,
        percent_complete=percent,
        error=job.error,
        started_at=job.started_at,
        completed_at=job.completed_at,
    )


async def get_job_progress(session: SQLModelAsyncSession, job_id: str) -> JobProgress | None:
    job = await session.get(SimilarityJob, job_id)
    if job is None:
        return None
    return _to_progress(job)


async def get_last_completed_job(session: SQLModelAsyncSession) -> SimilarityJob | None:
    """Most recently completed job, by completion time."""
    result = await session.exec(
        select(SimilarityJob)
        .where(SimilarityJob.status == "completed", col(SimilarityJob.completed_at).is_not(None))
        .order_by(col(SimilarityJob.completed_at).desc(), col(SimilarityJob.created_at).desc())
        .limit(1)
    )
    return result.first()


async def get_recent_jobs(session: SQLModelAsyncSession, limit: int = 10) -> list[JobProgress]:
    result = await session.exec(
        select(SimilarityJob).order_by(col(SimilarityJob.created_at).desc()).limit(limit)
    )
    return [_to_progress(job) for job in result.all()]


async def get_active_series(session: SQLModelAsyncSession, series_id: str) -> Series:
    """Load a series, raising SeriesNotFoundError if it is missing or soft-deleted."""
    series = await session.get(Series, series_id)
    if series is None or series.deleted_at is not None:
        raise SeriesNotFoundError(series_id)
    return series


async def get_similar_series(
    session: SQLModelAsyncSession,
    series_id: str,
    limit: int = 10,
) -> list[SimilarSeries]:
    """Stored similarities of a series, highest score first."""
    result = await session.exec(
        select(SeriesSimilarity)
        .where(
            or_(
                SeriesSimilarity.source_series_id == series_id,
                SeriesSimilarity.target_series_id == series_id,
            )
        )
        .order_by(col(SeriesSimilarity.similarity_score).desc())
        .limit(limit)
    )

    return [
        SimilarSeries(
            series_id=(
                row.target_series_id if row.source_series_id == series_id else row.source_series_id
            ),
            similarity_score=row.similarity_score,
            genre_score=row.genre_score,
            tag_score=row.tag_score,
            character_score=row.character_score,
            team_score=row.team_score,
            creator_score=row.creator_score,
            publisher_score=row.publisher_score,
            keyword_score=row.keyword_score,
        )
        for row in result.all()
    ]


async def has_similarity_data(session: SQLModelAsyncSession) -> bool:
    result = await session.exec(select(func.count()).select_from(SeriesSimilarity))
    return result.one() > 0


async def get_similarity_stats(session: SQLModelAsyncSession) -> SimilarityStats:
    result = await session.exec(
        select(func.count(), func.avg(SeriesSimilarity.similarity_score)).select_from(
            SeriesSimilarity
        )
    )
    total, avg_score = result.one()
    last_job = await get_last_completed_job(session)
    return SimilarityStats(
        total_pairs=total or 0,
        avg_score=float(avg_score or 0.0),
        last_computed_at=last_job.completed_at if last_job else None,
    )
