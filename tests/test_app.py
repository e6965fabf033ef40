"""Tests for the main FastAPI application."""

import pytest
from httpx import ASGITransport, AsyncClient

from scanlookup import __version__
from scanlookup.app import app


@pytest.mark.anyio
async def test_info(client):
    response = await client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["version"] == __version__
    assert data["endpoints"]["lookup"] == "GET /api/lookup/:barcode"


@pytest.mark.anyio
async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert "timestamp" in data


@pytest.mark.anyio
async def test_unknown_route_lists_endpoints(client):
    response = await client.get("/api/nope")
    assert response.status_code == 404
    data = response.json()
    assert data["success"] is False
    assert data["code"] == "NOT_FOUND"
    assert "search" in data["availableEndpoints"]


@pytest.mark.anyio
async def test_cors_allows_any_origin(client):
    response = await client.get("/health", headers={"Origin": "http://example.org"})
    assert response.headers["access-control-allow-origin"] == "*"


@pytest.mark.anyio
async def test_unhandled_error_is_internal_error(monkeypatch):
    async def boom(barcode):
        raise RuntimeError("kaboom")

    monkeypatch.setattr("scanlookup.services.barcodelookup.lookup_barcode", boom)
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        response = await ac.get("/api/lookup/049000050103")
    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "Internal server error", "code": "INTERNAL_ERROR"}
