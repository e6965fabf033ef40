"""Lookup gateway: the single entry point the scanner uses to resolve barcodes.

One adapter is active per deployment; there is no fallback between
providers.
"""

import logging

from scanlookup.models import ErrorKind, Failed, LookupRequest, LookupResult, NormalizedProduct
from scanlookup.services.providers import ProviderAdapter, build_adapter, normalize_barcode

logger = logging.getLogger(__name__)


class LookupGateway:
    """Validate input and delegate to the configured provider adapter."""

    def __init__(self, adapter: ProviderAdapter) -> None:
        self.adapter = adapter

    @property
    def provider(self) -> str:
        return self.adapter.name

    async def lookup(self, barcode: str | None) -> LookupResult:
        """Resolve *barcode*; empty input fails without a network call."""
        barcode = normalize_barcode(barcode)
        if not barcode:
            return Failed(kind=ErrorKind.INVALID_INPUT, message="Invalid barcode: barcode cannot be empty")
        request = LookupRequest(barcode=barcode)
        result = await self.adapter.lookup(request.barcode)
        logger.info("Lookup of %s via %s: %s", request.barcode, self.provider, result.status)
        return result

    async def search(self, query: str | None, page: int = 1) -> list[NormalizedProduct]:
        """Keyword search.  Providers without search support return no results."""
        query = (query or "").strip()
        if not query:
            return []
        if not self.adapter.supports_search:
            logger.warning("Provider %s does not support keyword search", self.provider)
            return []
        logger.info("Searching %s for %r (page %d)", self.provider, query, page)
        return await self.adapter.search(query, max(page, 1))


def build_gateway(provider: str | None = None, **kwargs) -> LookupGateway:
    """Build a gateway around the adapter named by *provider* or the configuration."""
    return LookupGateway(build_adapter(provider, **kwargs))
