import json
from collections.abc import Callable

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from scanlookup.app import app


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def client():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def recorded_requests() -> list[httpx.Request]:
    return []


@pytest.fixture
def json_transport(recorded_requests: list[httpx.Request]) -> Callable[..., httpx.MockTransport]:
    """Build a MockTransport that records requests and answers with fixed JSON."""

    def factory(payload: object, status_code: int = 200) -> httpx.MockTransport:
        def handler(request: httpx.Request) -> httpx.Response:
            recorded_requests.append(request)
            return httpx.Response(status_code, content=json.dumps(payload), headers={"Content-Type": "application/json"})

        return httpx.MockTransport(handler)

    return factory
