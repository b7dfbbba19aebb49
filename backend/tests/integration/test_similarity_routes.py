"""Tests for similarity API routes."""

from __future__ import annotations

import asyncio
import time

import pytest
from fastapi.testclient import TestClient

from helixio.app import create_app
from helixio.core.config import get_settings
from helixio.core.database import create_database_engine, create_session_factory
from helixio.core.exceptions import SimilarityJobBusyError
from helixio.core.similarity import jobs
from helixio.db.models import Series, SimilarityJob
from helixio.routes import similarity as similarity_routes


async def _seed(series: list[Series]) -> None:
    engine = create_database_engine(get_settings().database_file, echo=False)
    try:
        async with create_session_factory(engine)() as session:
            session.add_all(series)
            await session.commit()
    finally:
        await engine.dispose()


async def _job_row(job_id: str) -> SimilarityJob | None:
    engine = create_database_engine(get_settings().database_file, echo=False)
    try:
        async with create_session_factory(engine)() as session:
            return await session.get(SimilarityJob, job_id)
    finally:
        await engine.dispose()


def seed_library() -> None:
    asyncio.run(
        _seed(
            [
                Series(id="a", name="Saga", genres="Action, Sci-Fi", characters="Alana, Marko", publisher="Image"),
                Series(id="b", name="Saga Deluxe", genres="Action, Sci-Fi", characters="Alana", publisher="Image"),
                Series(id="c", name="Love Stories", genres="Romance", publisher="DC"),
                Series(id="d", name="Gone", genres="Action", deleted_at=int(time.time())),
            ]
        )
    )


def wait_for_job(client: TestClient, job_id: str, timeout: float = 5.0) -> dict:
    deadline = time.monotonic() + timeout
    while True:
        data = client.get(f"/api/similarity/jobs/{job_id}").json()
        if data["status"] in ("completed", "failed") or time.monotonic() > deadline:
            return data
        time.sleep(0.05)


@pytest.fixture
def client():
    """Create a test client; the lifespan creates the database tables."""
    with TestClient(create_app()) as test_client:
        yield test_client


def test_start_job_and_poll(client: TestClient) -> None:
    seed_library()

    response = client.post("/api/similarity/jobs", json={"type": "full"})

    assert response.status_code == 202
    body = response.json()
    assert body["type"] == "full"

    progress = wait_for_job(client, body["job_id"])
    assert progress["status"] == "completed"
    assert progress["total_pairs"] == 3
    assert progress["processed_pairs"] == 3
    assert progress["stored_pairs"] == 1
    assert progress["percent_complete"] == 100


def test_start_job_defaults_to_incremental(client: TestClient) -> None:
    response = client.post("/api/similarity/jobs", json={})

    assert response.status_code == 202
    assert response.json()["type"] == "incremental"
    wait_for_job(client, response.json()["job_id"])


def test_start_job_conflict(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    async def busy(session_factory, job_type):  # noqa: ANN001, ANN202
        raise SimilarityJobBusyError("job-123")

    monkeypatch.setattr(similarity_routes, "start_similarity_job", busy)

    response = client.post("/api/similarity/jobs", json={"type": "full"})

    assert response.status_code == 409
    assert response.json()["detail"]["running_job_id"] == "job-123"


def test_start_job_rejects_unknown_type(client: TestClient) -> None:
    assert client.post("/api/similarity/jobs", json={"type": "partial"}).status_code == 422


def test_similar_series_with_reasons(client: TestClient) -> None:
    seed_library()
    job_id = client.post("/api/similarity/jobs", json={"type": "full"}).json()["job_id"]
    wait_for_job(client, job_id)

    response = client.get("/api/series/b/similar")

    assert response.status_code == 200
    data = response.json()
    assert data["series_id"] == "b"
    assert len(data["similar"]) == 1

    similar = data["similar"][0]
    assert similar["series_id"] == "a"
    assert similar["name"] == "Saga"
    assert similar["publisher"] == "Image"
    assert similar["similarity_score"] == pytest.approx(0.375)
    assert [r["type"] for r in similar["reasons"]] == ["genres", "characters", "publisher"]


def test_similar_series_not_found(client: TestClient) -> None:
    seed_library()

    response = client.get("/api/series/missing/similar")
    assert response.status_code == 404
    assert response.json()["detail"] == "Series 'missing' not found"
    assert client.get("/api/series/d/similar").status_code == 404


def test_similar_series_empty(client: TestClient) -> None:
    seed_library()

    response = client.get("/api/series/c/similar")

    assert response.status_code == 200
    assert response.json()["similar"] == []


def test_job_not_found(client: TestClient) -> None:
    assert client.get("/api/similarity/jobs/missing").status_code == 404


def test_list_jobs_and_stats(client: TestClient) -> None:
    seed_library()
    job_id = client.post("/api/similarity/jobs", json={"type": "full"}).json()["job_id"]
    final = wait_for_job(client, job_id)

    jobs = client.get("/api/similarity/jobs").json()
    assert [job["job_id"] for job in jobs] == [job_id]

    stats = client.get("/api/similarity/stats").json()
    assert stats["total_pairs"] == 1
    assert stats["avg_score"] == pytest.approx(0.375)
    assert stats["last_computed_at"] == final["completed_at"]


def test_scheduler_status(client: TestClient) -> None:
    response = client.get("/api/similarity/scheduler")

    assert response.status_code == 200
    data = response.json()
    assert data["is_running"] is True
    assert data["is_processing"] is False
    assert data["next_incremental_run"] is not None
    assert data["last_result"] is None


def test_shutdown_cancels_running_job(monkeypatch: pytest.MonkeyPatch) -> None:
    async def block(session, job):  # noqa: ANN001, ANN202
        await asyncio.Event().wait()

    monkeypatch.setattr(jobs, "run_full_rebuild", block)

    with TestClient(create_app()) as client:
        job_id = client.post("/api/similarity/jobs", json={"type": "full"}).json()["job_id"]
        assert client.get(f"/api/similarity/jobs/{job_id}").json()["status"] == "running"

    job = asyncio.run(_job_row(job_id))
    assert job.status == "failed"
    assert job.error == "Job cancelled"
    assert jobs.is_job_running() is False
