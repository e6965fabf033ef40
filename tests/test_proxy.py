"""Tests for the proxy endpoints and the upstream BarcodeLookup client."""

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from scanlookup import config
from scanlookup.services import barcodelookup
from scanlookup.services.barcodelookup import ProxyError

# ---------------------------------------------------------------------------
# /api/lookup/{barcode}
# ---------------------------------------------------------------------------


@pytest.mark.anyio
async def test_lookup_found(client):
    upstream = {"products": [{"title": "Coca-Cola"}]}
    with patch("scanlookup.services.barcodelookup._fetch", AsyncMock(return_value=upstream)) as mock_fetch:
        response = await client.get("/api/lookup/049000050103")

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["product"] == {"title": "Coca-Cola"}
    assert data["totalProducts"] == 1
    assert data["data"] == upstream
    mock_fetch.assert_awaited_once_with({"barcode": "049000050103"})


@pytest.mark.anyio
async def test_lookup_not_found(client):
    with patch("scanlookup.services.barcodelookup._fetch", AsyncMock(return_value={"products": []})):
        response = await client.get("/api/lookup/xyz")

    assert response.status_code == 404
    data = response.json()
    assert data["success"] is False
    assert data["code"] == "NOT_FOUND"
    assert "availableEndpoints" not in data


@pytest.mark.anyio
async def test_lookup_blank_barcode(client):
    with patch("scanlookup.services.barcodelookup._fetch", AsyncMock()) as mock_fetch:
        response = await client.get("/api/lookup/%20%20")

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_BARCODE"
    mock_fetch.assert_not_called()


@pytest.mark.anyio
async def test_lookup_relays_upstream_status(client):
    error = ProxyError(429, "Rate limit exceeded", "API_ERROR", upstream_status=429)
    with patch("scanlookup.services.barcodelookup._fetch", AsyncMock(side_effect=error)):
        response = await client.get("/api/lookup/049000050103")

    assert response.status_code == 429
    assert response.json() == {
        "success": False,
        "error": "Rate limit exceeded",
        "code": "API_ERROR",
        "statusCode": 429,
    }


# ---------------------------------------------------------------------------
# /api/search
# ---------------------------------------------------------------------------


@pytest.mark.anyio
async def test_search_requires_query(client):
    response = await client.get("/api/search")
    assert response.status_code == 400
    data = response.json()
    assert data["success"] is False
    assert data["code"] == "INVALID_QUERY"


@pytest.mark.anyio
async def test_search_blank_query(client):
    response = await client.get("/api/search", params={"q": "   "})
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_QUERY"


@pytest.mark.anyio
async def test_search_invalid_page(client):
    response = await client.get("/api/search", params={"q": "iPhone", "page": "abc"})
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_QUERY"


@pytest.mark.anyio
async def test_search_results(client):
    upstream = {"products": [{"title": "iPhone 15"}, {"title": "iPhone 14"}]}
    with patch("scanlookup.services.barcodelookup._fetch", AsyncMock(return_value=upstream)) as mock_fetch:
        response = await client.get("/api/search", params={"q": " iPhone ", "page": "2"})

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["totalProducts"] == 2
    assert [p["title"] for p in data["products"]] == ["iPhone 15", "iPhone 14"]
    mock_fetch.assert_awaited_once_with({"search": "iPhone", "page": "2"})


@pytest.mark.anyio
async def test_search_empty_is_success(client):
    with patch("scanlookup.services.barcodelookup._fetch", AsyncMock(return_value={})):
        response = await client.get("/api/search", params={"q": "nothing"})

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["products"] == []
    assert data["totalProducts"] == 0


@pytest.mark.anyio
async def test_search_service_unavailable(client):
    error = ProxyError(503, "BarcodeLookup API is not responding", "SERVICE_UNAVAILABLE")
    with patch("scanlookup.services.barcodelookup._fetch", AsyncMock(side_effect=error)):
        response = await client.get("/api/search", params={"q": "iPhone"})

    assert response.status_code == 503
    assert response.json()["code"] == "SERVICE_UNAVAILABLE"


# ---------------------------------------------------------------------------
# Upstream client
# ---------------------------------------------------------------------------


def _stub_upstream(monkeypatch: pytest.MonkeyPatch, handler) -> None:
    def client_factory() -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler), timeout=config.UPSTREAM_TIMEOUT)

    monkeypatch.setattr(barcodelookup, "_client", client_factory)


@pytest.mark.anyio
async def test_fetch_attaches_api_key(monkeypatch):
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"products": [{"title": "Coca-Cola"}]})

    monkeypatch.setattr(config, "BARCODE_LOOKUP_API_KEY", "secret-key")
    _stub_upstream(monkeypatch, handler)

    data = await barcodelookup.lookup_barcode("049000050103")

    assert data["products"][0]["title"] == "Coca-Cola"
    params = seen[0].url.params
    assert params["barcode"] == "049000050103"
    assert params["formatted"] == "y"
    assert params["key"] == "secret-key"


@pytest.mark.anyio
async def test_fetch_upstream_error(monkeypatch):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(403, json={"message": "Invalid API key"})

    _stub_upstream(monkeypatch, handler)

    with pytest.raises(ProxyError) as exc_info:
        await barcodelookup.lookup_barcode("049000050103")

    assert exc_info.value.status_code == 403
    assert exc_info.value.code == "API_ERROR"
    assert exc_info.value.message == "Invalid API key"
    assert exc_info.value.upstream_status == 403


@pytest.mark.anyio
async def test_fetch_timeout_is_service_unavailable(monkeypatch):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    _stub_upstream(monkeypatch, handler)

    with pytest.raises(ProxyError) as exc_info:
        await barcodelookup.search_products("iPhone")

    assert exc_info.value.status_code == 503
    assert exc_info.value.code == "SERVICE_UNAVAILABLE"


@pytest.mark.anyio
async def test_fetch_malformed_json(monkeypatch):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"<html>oops</html>")

    _stub_upstream(monkeypatch, handler)

    with pytest.raises(ProxyError) as exc_info:
        await barcodelookup.lookup_barcode("049000050103")

    assert exc_info.value.status_code == 500
    assert exc_info.value.code == "INTERNAL_ERROR"
