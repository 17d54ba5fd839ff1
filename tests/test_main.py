"""Tests for application wiring: health, security headers and error envelopes."""

import pytest
from fastapi.testclient import TestClient

from streamgate.api.dependency import get_directory
from streamgate.domain.directory.directory import LivenessDirectory
from streamgate.main import app, build_granian_kwargs


@pytest.fixture
def client(memory_registry):
    app.dependency_overrides[get_directory] = lambda: LivenessDirectory(memory_registry)
    # no context manager: the lifespan (and its Postgres pool) is not started
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client: TestClient):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_security_headers(client: TestClient):
    response = client.get("/health")

    assert response.headers["cache-control"] == "private, no-cache, must-revalidate"
    assert response.headers["referrer-policy"] == "no-referrer"
    assert response.headers["x-content-type-options"] == "nosniff"


def test_app_error_envelope(client: TestClient):
    response = client.get("/thumbs/ghost.jpg")

    assert response.status_code == 404
    body = response.json()
    assert body["success"] is False
    assert body["errcode"] == "E_NOT_FOUND"
    assert len(body["erresid"]) == 10
    assert "version" in body
    assert response.headers["referrer-policy"] == "no-referrer"


def test_ingest_routes_require_api_key(client: TestClient):
    response = client.post("/ingest/rtmp", json={"name": "alpha", "key": "x"})

    assert response.status_code == 401


def test_granian_kwargs():
    kwargs = build_granian_kwargs()

    assert kwargs["interface"] == "asgi"
    assert isinstance(kwargs["port"], int)
