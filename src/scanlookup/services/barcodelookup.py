"""Upstream BarcodeLookup.com client used by the proxy service.

The API key is attached here, server side.  Failures are raised as
:class:`ProxyError` and rendered by the application's exception handler.
"""

import logging
from typing import Any

import httpx

from scanlookup import config
from scanlookup.models import ErrorKind, ErrorResponse

logger = logging.getLogger(__name__)

USER_AGENT = "BarcodeLookup-Proxy/1.0"


class ProxyError(Exception):
    """A failure that maps to an ``{success: false, error, code}`` response."""

    def __init__(self, status_code: int, message: str, code: str, upstream_status: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.code = code
        self.upstream_status = upstream_status

    def envelope(self) -> ErrorResponse:
        return ErrorResponse(error=self.message, code=self.code, statusCode=self.upstream_status)


def _client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=config.UPSTREAM_TIMEOUT,
        headers={"Accept": "application/json", "User-Agent": USER_AGENT},
    )


def _upstream_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return response.reason_phrase or f"HTTP {response.status_code}"


async def _fetch(params: dict[str, str]) -> dict[str, Any]:
    """GET the upstream products endpoint with *params* plus the API key."""
    query = {**params, "formatted": "y", "key": config.BARCODE_LOOKUP_API_KEY}
    try:
        async with _client() as client:
            response = await client.get(config.BARCODE_LOOKUP_BASE_URL, params=query)
    except httpx.HTTPError as e:
        logger.warning("BarcodeLookup API is not responding: %s", e)
        raise ProxyError(503, "BarcodeLookup API is not responding", ErrorKind.SERVICE_UNAVAILABLE.value) from e

    if not response.is_success:
        message = _upstream_message(response)
        logger.warning("BarcodeLookup API returned HTTP %s: %s", response.status_code, message)
        raise ProxyError(response.status_code, message, ErrorKind.API_ERROR.value, upstream_status=response.status_code)

    try:
        data = response.json()
    except ValueError as e:
        logger.error("BarcodeLookup API returned malformed JSON: %s", e)
        raise ProxyError(500, "Malformed response from BarcodeLookup API", ErrorKind.INTERNAL_ERROR.value) from e
    if not isinstance(data, dict):
        raise ProxyError(500, "Malformed response from BarcodeLookup API", ErrorKind.INTERNAL_ERROR.value)
    return data


async def lookup_barcode(barcode: str) -> dict[str, Any]:
    """Fetch the upstream payload for a single barcode."""
    logger.info("Calling BarcodeLookup API for barcode: %s", barcode)
    return await _fetch({"barcode": barcode})


async def search_products(query: str, page: int = 1) -> dict[str, Any]:
    """Fetch one page of upstream keyword search results."""
    logger.info("Searching BarcodeLookup API for: %s (page %d)", query, page)
    return await _fetch({"search": query, "page": str(page)})
