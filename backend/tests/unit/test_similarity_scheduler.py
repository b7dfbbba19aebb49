"""Tests for the similarity scheduler."""

from __future__ import annotations

from helixio.core.settings_persistence import SimilaritySettings
from helixio.core.similarity import jobs
from helixio.core.similarity.scheduler import (
    INCREMENTAL_JOB_ID,
    NIGHTLY_JOB_ID,
    SimilarityScheduler,
)


class TestSchedulerLifecycle:
    async def test_start_registers_jobs(self, session_factory) -> None:
        scheduler = SimilarityScheduler(
            session_factory,
            SimilaritySettings(incremental_interval_minutes=15, nightly_rebuild_hour=4),
        )

        scheduler.start()
        try:
            assert scheduler.is_running is True
            assert scheduler.scheduler.get_job(INCREMENTAL_JOB_ID) is not None
            nightly = scheduler.scheduler.get_job(NIGHTLY_JOB_ID)
            assert nightly is not None
            assert nightly.next_run_time.hour == 4

            status = scheduler.status()
            assert status["is_running"] is True
            assert status["is_processing"] is False
            assert isinstance(status["next_incremental_run"], int)
            assert isinstance(status["next_nightly_run"], int)
        finally:
            scheduler.stop()

        assert scheduler.is_running is False

    async def test_start_twice_is_harmless(self, session_factory) -> None:
        scheduler = SimilarityScheduler(session_factory)

        scheduler.start()
        scheduler.start()
        try:
            assert len(scheduler.scheduler.get_jobs()) == 2
        finally:
            scheduler.stop()

    async def test_disabled_scheduler_does_not_start(self, session_factory) -> None:
        scheduler = SimilarityScheduler(session_factory, SimilaritySettings(scheduler_enabled=False))

        scheduler.start()

        assert scheduler.is_running is False
        assert scheduler.status()["next_incremental_run"] is None

    async def test_stop_when_not_running(self, session_factory) -> None:
        SimilarityScheduler(session_factory).stop()


class TestRunNow:
    async def test_run_now_records_result(self, session_factory) -> None:
        scheduler = SimilarityScheduler(session_factory)

        result = await scheduler.run_now("full")

        assert result is not None
        assert result.status == "completed"
        assert scheduler.last_nightly_run is not None
        assert scheduler.last_incremental_run is None

        status = scheduler.status()
        assert status["last_result"]["job_id"] == result.job_id
        assert status["last_nightly_run"] == scheduler.last_nightly_run

    async def test_run_now_skips_when_busy(self, session_factory) -> None:
        scheduler = SimilarityScheduler(session_factory)

        async with jobs._job_lock:
            assert scheduler.status()["is_processing"] is True
            result = await scheduler.run_now("incremental")

        assert result is None
        assert scheduler.last_incremental_run is not None
        assert scheduler.last_result is None
