"""Periodic similarity computation using APScheduler."""

from __future__ import annotations

import time
from typing import Any

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from helixio.core.database import SessionFactory
from helixio.core.exceptions import SimilarityJobBusyError
from helixio.core.settings_persistence import SimilaritySettings

from .jobs import JobResult, JobType, is_job_running, run_similarity_job

logger = structlog.get_logger("helixio.similarity.scheduler")

INCREMENTAL_JOB_ID = "similarity_incremental"
NIGHTLY_JOB_ID = "similarity_nightly_rebuild"


class SimilarityScheduler:
    """Runs incremental updates on an interval and a full rebuild nightly."""

    def __init__(
        self,
        session_factory: SessionFactory,
        settings: SimilaritySettings | None = None,
        scheduler: AsyncIOScheduler | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.settings = settings or SimilaritySettings()
        self.scheduler = scheduler or AsyncIOScheduler()
        self.last_incremental_run: int | None = None
        self.last_nightly_run: int | None = None
        self.last_result: JobResult | None = None

    @property
    def is_running(self) -> bool:
        return bool(self.scheduler.running)

    def start(self) -> None:
        """Register the jobs and start the scheduler. Must be called from a running event loop."""
        if self.is_running:
            logger.debug("Similarity scheduler already running")
            return
        if not self.settings.scheduler_enabled:
            logger.info("Similarity scheduler is disabled")
            return

        self.scheduler.add_job(
            self.run_now,
            trigger=IntervalTrigger(minutes=self.settings.incremental_interval_minutes),
            args=["incremental"],
            id=INCREMENTAL_JOB_ID,
            name="Incremental series similarity update",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.add_job(
            self.run_now,
            trigger=CronTrigger(hour=self.settings.nightly_rebuild_hour, minute=0),
            args=["full"],
            id=NIGHTLY_JOB_ID,
            name="Nightly series similarity rebuild",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()
        logger.info(
            "Similarity scheduler started",
            interval_minutes=self.settings.incremental_interval_minutes,
            nightly_rebuild_hour=self.settings.nightly_rebuild_hour,
        )

    def stop(self) -> None:
        if not self.is_running:
            return
        self.scheduler.shutdown(wait=False)
        logger.info("Similarity scheduler stopped")

    async def run_now(self, job_type: JobType = "incremental") -> JobResult | None:
        """Run a similarity job immediately.

        Returns:
            The job result, or None if another job was already running
        """
        if job_type == "full":
            self.last_nightly_run = int(time.time())
        else:
            self.last_incremental_run = int(time.time())

        try:
            async with self.session_factory() as session:
                result = await run_similarity_job(session, job_type)
        except SimilarityJobBusyError as e:
            logger.info(
                "Similarity job already running, skipping scheduled run",
                job_type=job_type,
                running_job_id=e.running_job_id,
            )
            return None

        self.last_result = result
        return result

    def _next_run(self, job_id: str) -> int | None:
        job = self.scheduler.get_job(job_id) if self.is_running else None
        if job is None or job.next_run_time is None:
            return None
        return int(job.next_run_time.timestamp())

    def status(self) -> dict[str, Any]:
        return {
            "is_running": self.is_running,
            "is_processing": is_job_running(),
            "last_incremental_run": self.last_incremental_run,
            "last_nightly_run": self.last_nightly_run,
            "next_incremental_run": self._next_run(INCREMENTAL_JOB_ID),
            "next_nightly_run": self._next_run(NIGHTLY_JOB_ID),
            "last_result": self.last_result.model_dump() if self.last_result else None,
        }
