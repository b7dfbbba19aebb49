"""Tests for general routes."""

import pytest
from fastapi.testclient import TestClient

from helixio.app import create_app


@pytest.fixture
def client():
    """Create test client with the application lifespan running."""
    with TestClient(create_app()) as test_client:
        yield test_client


def test_health_endpoint(client: TestClient) -> None:
    """Test health endpoint."""
    response = client.get("/api/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["version"] == "0.1.0"


def test_unknown_route(client: TestClient) -> None:
    assert client.get("/api/does-not-exist").status_code == 404
