"""Tests for cross-source matching API routes."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from fakes import FakeProvider, make_series
from helixio.app import create_app
from helixio.core.providers import ProviderRegistry
from helixio.core.settings_persistence import save_settings_to_file

SAGA = {
    "source": "comicvine",
    "source_id": "cv-1",
    "name": "Saga",
    "publisher": "Image",
    "start_year": 2012,
    "issue_count": 54,
}


@pytest.fixture
def client():
    """Create a test client backed by fake providers."""
    save_settings_to_file({"metadata": {"enabled_sources": ["comicvine", "metron", "gcd"]}})

    registry = ProviderRegistry()
    registry.register(
        FakeProvider(
            "metron",
            series=[make_series("metron", "m-1", "Saga", publisher="Image Comics", start_year=2012, issue_count=54)],
        )
    )
    registry.register(FakeProvider("gcd", error=RuntimeError("gcd down")))

    app = create_app()
    app.state.provider_registry = registry

    with TestClient(app) as test_client:
        yield test_client


def test_match_series(client: TestClient) -> None:
    response = client.post("/api/metadata/cross-source/match", json={"series": SAGA})

    assert response.status_code == 200
    data = response.json()
    assert data["primary_source"] == "comicvine"
    assert data["status"] == {"comicvine": "skipped", "metron": "matched", "gcd": "error"}

    match = data["matches"][0]
    assert match["source"] == "metron"
    assert match["source_id"] == "m-1"
    assert match["confidence"] == pytest.approx(0.85)
    assert match["is_auto_match_candidate"] is False
    assert match["match_factors"]["year_match"] == "exact"


def test_match_series_with_options(client: TestClient) -> None:
    response = client.post(
        "/api/metadata/cross-source/match",
        json={"series": SAGA, "options": {"target_sources": ["metron"], "auto_match_threshold": 0.8}},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["status"]["gcd"] == "skipped"
    assert data["matches"][0]["is_auto_match_candidate"] is True

    mappings = client.get("/api/metadata/cross-source/mappings/comicvine/cv-1").json()["mappings"]
    assert len(mappings) == 1
    assert mappings[0]["matched_source"] == "metron"
    assert mappings[0]["matched_source_id"] == "m-1"
    assert mappings[0]["confidence"] == pytest.approx(0.85)


def test_match_below_threshold_not_saved(client: TestClient) -> None:
    client.post("/api/metadata/cross-source/match", json={"series": SAGA})

    response = client.get("/api/metadata/cross-source/mappings/comicvine/cv-1")
    assert response.json()["mappings"] == []


def test_match_not_saved_when_auto_apply_disabled(client: TestClient) -> None:
    save_settings_to_file(
        {
            "metadata": {
                "enabled_sources": ["comicvine", "metron", "gcd"],
                "auto_apply_high_confidence": False,
            }
        }
    )

    response = client.post(
        "/api/metadata/cross-source/match",
        json={"series": SAGA, "options": {"target_sources": ["metron"], "auto_match_threshold": 0.8}},
    )

    assert response.json()["matches"][0]["is_auto_match_candidate"] is True
    response = client.get("/api/metadata/cross-source/mappings/comicvine/cv-1")
    assert response.json()["mappings"] == []


def test_match_series_rejects_unknown_source(client: TestClient) -> None:
    response = client.post(
        "/api/metadata/cross-source/match",
        json={"series": {**SAGA, "source": "nowhere"}},
    )

    assert response.status_code == 422


def test_mapping_lifecycle(client: TestClient) -> None:
    response = client.post(
        "/api/metadata/cross-source/mappings",
        json={
            "primary_source": "comicvine",
            "primary_source_id": "cv-1",
            "matched_source": "metron",
            "matched_source_id": "m-1",
            "confidence": 0.85,
        },
    )
    assert response.status_code == 200
    saved = response.json()
    assert saved["match_method"] == "user"
    assert saved["verified"] is True

    response = client.get("/api/metadata/cross-source/mappings/metron/m-1")
    assert response.status_code == 200
    data = response.json()
    assert data["source"] == "metron"
    assert data["mappings"] == [{"matched_source": "comicvine", "matched_source_id": "cv-1", "confidence": 0.85}]

    response = client.delete("/api/metadata/cross-source/mappings/comicvine/cv-1")
    assert response.status_code == 200
    assert response.json() == {"deleted": 1}

    response = client.get("/api/metadata/cross-source/mappings/comicvine/cv-1")
    assert response.json()["mappings"] == []


def test_save_mapping_validates_confidence(client: TestClient) -> None:
    response = client.post(
        "/api/metadata/cross-source/mappings",
        json={
            "primary_source": "comicvine",
            "primary_source_id": "cv-1",
            "matched_source": "metron",
            "matched_source_id": "m-1",
            "confidence": 1.5,
        },
    )

    assert response.status_code == 422


def test_mappings_unknown_source_path(client: TestClient) -> None:
    assert client.get("/api/metadata/cross-source/mappings/nowhere/1").status_code == 422
