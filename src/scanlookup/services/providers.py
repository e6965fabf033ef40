"""Product lookup providers: BarcodeLookup.com, UPCItemDB and UPCDatabase.org.

Each provider is a :class:`ProviderAdapter` that knows how to build its own
HTTP request and how to turn the provider's JSON into a
:class:`~scanlookup.models.NormalizedProduct`.  The request/response cycle and
the error classification are shared, so an adapter only supplies the parts
that differ between providers: endpoint, parameters, headers, where the
product list lives in the response, and the field names.

Adapters never raise: every outcome is a ``Found``, ``NotFound`` or
``Failed`` result.
"""

import copy
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

import httpx

from scanlookup import config
from scanlookup.models import (
    UNKNOWN_PRODUCT,
    ErrorKind,
    Failed,
    Found,
    LookupResult,
    NormalizedProduct,
    NotFound,
    Price,
    ProductDetails,
    StoreOffer,
)

logger = logging.getLogger(__name__)

UPC_DATABASE_WIDTH = 13

# Proxy error codes and how they classify on the client side
_PROXY_CODES: dict[str, ErrorKind] = {
    "INVALID_BARCODE": ErrorKind.INVALID_INPUT,
    "INVALID_QUERY": ErrorKind.INVALID_INPUT,
    "API_ERROR": ErrorKind.API_ERROR,
    "SERVICE_UNAVAILABLE": ErrorKind.SERVICE_UNAVAILABLE,
    "INTERNAL_ERROR": ErrorKind.INTERNAL_ERROR,
    "NO_API_KEY": ErrorKind.NO_API_KEY,
}


@dataclass(frozen=True)
class ProviderRequest:
    """An outbound GET request to a provider."""

    url: str
    params: dict[str, str] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)


def normalize_barcode(barcode: str | None) -> str:
    """Strip surrounding whitespace; returns ``""`` for missing input."""
    return (barcode or "").strip()


def pad_barcode(barcode: str, width: int = UPC_DATABASE_WIDTH) -> str:
    """Left-pad *barcode* with zeros to *width* digits (no checksum check)."""
    return barcode.rjust(width, "0")


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------


def _text(*values: Any) -> str:
    """Return the first non-empty value as a string, or ``""``."""
    for value in values:
        if value is None:
            continue
        text = str(value).strip()
        if text:
            return text
    return ""


def _price(value: Any) -> str | None:
    text = _text(value)
    return text or None


def _rating(value: Any) -> float | None:
    try:
        return float(value) if value not in (None, "") else None
    except (TypeError, ValueError):
        return None


def _images(value: Any) -> tuple[str, ...]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return ()
    return tuple(str(img) for img in value if img)


def _offers(value: Any) -> tuple[StoreOffer, ...]:
    """Normalise a BarcodeLookup ``stores`` or UPCItemDB ``offers`` list."""
    if not isinstance(value, list):
        return ()
    offers: list[StoreOffer] = []
    for item in value:
        if isinstance(item, str) and item:
            offers.append(StoreOffer(name=item))
        elif isinstance(item, dict):
            offers.append(
                StoreOffer(
                    name=_text(item.get("store_name"), item.get("name"), item.get("merchant"), item.get("domain")),
                    price=_price(item.get("price") or item.get("sale_price")),
                    currency=_text(item.get("currency")),
                    link=_text(item.get("link")),
                    updated=_text(item.get("last_update"), item.get("updated_t")),
                )
            )
    return tuple(offers)


def _reviews(value: Any) -> tuple[dict[str, Any], ...]:
    if not isinstance(value, list):
        return ()
    return tuple(copy.deepcopy(item) for item in value if isinstance(item, dict))


# ---------------------------------------------------------------------------
# Formatters (pure: never mutate the raw payload)
# ---------------------------------------------------------------------------


def format_barcodelookup_product(product: dict[str, Any]) -> NormalizedProduct:
    """Normalise a BarcodeLookup.com product record."""
    return NormalizedProduct(
        title=_text(product.get("title"), product.get("product_name")) or UNKNOWN_PRODUCT,
        brand=_text(product.get("brand"), product.get("manufacturer")),
        manufacturer=_text(product.get("manufacturer")),
        description=_text(product.get("description")),
        category=_text(product.get("category")),
        upc=_text(product.get("barcode_number"), product.get("upc")),
        ean=_text(product.get("ean")),
        asin=_text(product.get("asin")),
        images=_images(product.get("images")),
        price=Price(
            lowest=_price(product.get("lowest_recorded_price")),
            highest=_price(product.get("highest_recorded_price")),
            currency=_text(product.get("currency")) or "USD",
        ),
        details=ProductDetails(
            color=_text(product.get("color")),
            size=_text(product.get("size")),
            weight=_text(product.get("weight")),
            dimension=_text(product.get("dimension")),
            model=_text(product.get("model")),
            mpn=_text(product.get("mpn")),
        ),
        offers=_offers(product.get("stores")),
        reviews=_reviews(product.get("reviews")),
        rating=_rating(product.get("rating")),
    )


def format_upcitemdb_product(product: dict[str, Any]) -> NormalizedProduct:
    """Normalise a UPCItemDB ``items[]`` entry."""
    return NormalizedProduct(
        title=_text(product.get("title")) or UNKNOWN_PRODUCT,
        brand=_text(product.get("brand")) or "Unknown Brand",
        description=_text(product.get("description")),
        category=_text(product.get("category")),
        upc=_text(product.get("upc"), product.get("ean")),
        ean=_text(product.get("ean")),
        asin=_text(product.get("asin")),
        images=_images(product.get("images")),
        price=Price(
            lowest=_price(product.get("lowest_recorded_price")),
            highest=_price(product.get("highest_recorded_price")),
            currency=_text(product.get("currency")) or "USD",
        ),
        details=ProductDetails(
            color=_text(product.get("color")),
            size=_text(product.get("size")),
            weight=_text(product.get("weight")),
            dimension=_text(product.get("dimension")),
            model=_text(product.get("model")),
        ),
        offers=_offers(product.get("offers")),
    )


def format_upcdatabase_product(product: dict[str, Any]) -> NormalizedProduct:
    """Normalise a UPCDatabase.org product.  The provider has no price data."""
    return NormalizedProduct(
        title=_text(product.get("title"), product.get("description")) or UNKNOWN_PRODUCT,
        brand=_text(product.get("brand")),
        manufacturer=_text(product.get("manufacturer")),
        description=_text(product.get("description")),
        category=_text(product.get("category")),
        upc=_text(product.get("upc"), product.get("ean"), product.get("barcode")),
        ean=_text(product.get("ean")),
        asin=_text(product.get("asin"), product.get("ASIN")),
        issuer_country=_text(product.get("issuer_country")),
        images=_images(product.get("images")),
        details=ProductDetails(
            color=_text(product.get("color")),
            size=_text(product.get("size")),
            weight=_text(product.get("weight")),
        ),
    )


FORMATTERS = {
    "barcodelookup": format_barcodelookup_product,
    "upcitemdb": format_upcitemdb_product,
    "upcdatabase": format_upcdatabase_product,
}


def format_product_data(provider: str, product: dict[str, Any]) -> NormalizedProduct:
    """Normalise a raw *product* record from the named *provider*."""
    try:
        formatter = FORMATTERS[provider]
    except KeyError:
        raise ValueError(f"Unknown lookup provider: {provider!r}") from None
    return formatter(product)


# ---------------------------------------------------------------------------
# Adapters
# ---------------------------------------------------------------------------


class ProviderAdapter(ABC):
    """Common request/response cycle for a product lookup provider.

    Args:
        transport: Optional httpx transport, used by tests to stub the network.
        timeout:   Per-request timeout in seconds; ``None`` waits indefinitely.
    """

    name: str = ""

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None, timeout: float | None = None) -> None:
        self._transport = transport
        self._timeout = timeout

    # -- provider specific -------------------------------------------------

    @abstractmethod
    def lookup_request(self, barcode: str) -> ProviderRequest:
        """Build the provider request for a (trimmed, non-empty) barcode."""

    @abstractmethod
    def extract_products(self, payload: Any) -> list[dict[str, Any]] | NotFound:
        """Return the product records in *payload*, or ``NotFound``."""

    @staticmethod
    @abstractmethod
    def format_product(product: dict[str, Any]) -> NormalizedProduct:
        """Normalise one raw product record."""

    def check_configured(self) -> Failed | None:
        """Return a ``Failed`` result if the adapter cannot make requests."""
        return None

    def error_result(self, response: httpx.Response, payload: Any) -> LookupResult:
        """Classify a non-success HTTP response."""
        message = ""
        if isinstance(payload, dict):
            message = _text(payload.get("message"), payload.get("error"))
        return Failed(
            kind=ErrorKind.API_ERROR,
            message=message or f"HTTP {response.status_code}: {response.reason_phrase}",
            http_status=response.status_code,
        )

    def search_request(self, query: str, page: int) -> ProviderRequest | None:
        """Build a keyword search request; ``None`` when the provider has no search."""
        return None

    @property
    def supports_search(self) -> bool:
        return type(self).search_request is not ProviderAdapter.search_request

    # -- shared ------------------------------------------------------------

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport, timeout=self._timeout)

    async def _get(self, request: ProviderRequest) -> tuple[httpx.Response, Any] | Failed:
        """Perform *request*; returns the response and its decoded JSON body."""
        try:
            async with self._client() as client:
                response = await client.get(request.url, params=request.params or None, headers=request.headers)
        except httpx.TimeoutException as e:
            logger.warning("%s request timed out: %s", self.name, e)
            return Failed(kind=ErrorKind.NETWORK_ERROR, message=f"Request timed out: {e}")
        except httpx.InvalidURL as e:
            logger.warning("%s request URL rejected: %s", self.name, e)
            return Failed(kind=ErrorKind.INVALID_INPUT, message=f"Invalid barcode: {e}")
        except httpx.HTTPError as e:
            logger.warning("%s request failed: %s", self.name, e)
            return Failed(kind=ErrorKind.NETWORK_ERROR, message=str(e) or "Failed to fetch product data")

        try:
            payload = response.json()
        except ValueError as e:
            if not response.is_success:
                return response, None
            logger.warning("%s returned malformed JSON: %s", self.name, e)
            return Failed(kind=ErrorKind.NETWORK_ERROR, message="Malformed response from provider")
        return response, payload

    async def lookup(self, barcode: str) -> LookupResult:
        """Look up a single barcode."""
        barcode = normalize_barcode(barcode)
        if not barcode:
            return Failed(kind=ErrorKind.INVALID_INPUT, message="Invalid barcode: barcode cannot be empty")
        problem = self.check_configured()
        if problem is not None:
            return problem

        try:
            request = self.lookup_request(barcode)
        except httpx.InvalidURL as e:
            logger.warning("%s cannot build a request for %r: %s", self.name, barcode, e)
            return Failed(kind=ErrorKind.INVALID_INPUT, message=f"Invalid barcode: {e}")
        logger.info("Fetching product data for barcode %s from %s", barcode, self.name)
        logger.debug("%s request URL: %s", self.name, config.mask_secret(request.url))

        outcome = await self._get(request)
        if isinstance(outcome, Failed):
            return outcome
        response, payload = outcome
        if not response.is_success:
            return self.error_result(response, payload)

        try:
            products = self.extract_products(payload)
            if isinstance(products, NotFound):
                return products
            return Found(product=self.format_product(products[0]), raw=copy.deepcopy(products[0]))
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning("%s returned an unexpected response shape: %s", self.name, e)
            return Failed(kind=ErrorKind.NETWORK_ERROR, message="Malformed response from provider")

    async def search(self, query: str, page: int = 1) -> list[NormalizedProduct]:
        """Keyword search; failures are logged and yield an empty list."""
        query = query.strip()
        if not query:
            return []
        problem = self.check_configured()
        if problem is not None:
            logger.warning("%s search skipped: %s", self.name, problem.message)
            return []
        try:
            request = self.search_request(query, page)
        except httpx.InvalidURL as e:
            logger.warning("%s cannot build a search request for %r: %s", self.name, query, e)
            return []
        if request is None:
            logger.warning("%s does not support keyword search", self.name)
            return []

        outcome = await self._get(request)
        if isinstance(outcome, Failed):
            return []
        response, payload = outcome
        if not response.is_success:
            logger.warning("%s search for %r failed: HTTP %s", self.name, query, response.status_code)
            return []
        try:
            products = self.extract_products(payload)
            if isinstance(products, NotFound):
                return []
            return [self.format_product(product) for product in products]
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning("%s search returned an unexpected response shape: %s", self.name, e)
            return []


class BarcodeLookupAdapter(ProviderAdapter):
    """BarcodeLookup.com, either directly or through the lookup proxy.

    In proxy mode the API key stays on the server and requests go to
    ``{proxy_url}/lookup/{barcode}`` and ``{proxy_url}/search``.
    """

    name = "barcodelookup"
    format_product = staticmethod(format_barcodelookup_product)

    def __init__(
        self,
        use_proxy: bool | None = None,
        proxy_url: str | None = None,
        endpoint: str | None = None,
        api_key: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.use_proxy = config.USE_PROXY if use_proxy is None else use_proxy
        self.proxy_url = (proxy_url or config.PROXY_URL).rstrip("/")
        self.endpoint = endpoint or config.BARCODE_LOOKUP_BASE_URL
        self.api_key = config.BARCODE_LOOKUP_API_KEY if api_key is None else api_key

    def check_configured(self) -> Failed | None:
        if not self.use_proxy and not self.api_key:
            logger.warning("BarcodeLookup API key not configured")
            return Failed(
                kind=ErrorKind.NO_API_KEY,
                message="API key not configured. Please use proxy server or add API key.",
            )
        return None

    def lookup_request(self, barcode: str) -> ProviderRequest:
        headers = {"Accept": "application/json"}
        if self.use_proxy:
            return ProviderRequest(url=f"{self.proxy_url}/lookup/{quote(barcode, safe='')}", headers=headers)
        return ProviderRequest(
            url=self.endpoint,
            params={"barcode": barcode, "formatted": "y", "key": self.api_key},
            headers=headers,
        )

    def search_request(self, query: str, page: int) -> ProviderRequest:
        headers = {"Accept": "application/json"}
        if self.use_proxy:
            return ProviderRequest(url=f"{self.proxy_url}/search", params={"q": query, "page": str(page)}, headers=headers)
        return ProviderRequest(
            url=self.endpoint,
            params={"search": query, "formatted": "y", "page": str(page), "key": self.api_key},
            headers=headers,
        )

    def extract_products(self, payload: Any) -> list[dict[str, Any]] | NotFound:
        if self.use_proxy:
            if not payload.get("success"):
                return NotFound(reason=_text(payload.get("error")) or "No product found for this barcode")
            if "product" in payload:
                return [payload["product"]]
        products = payload.get("products") or []
        if not products:
            return NotFound(reason="No product found for this barcode")
        return products

    def error_result(self, response: httpx.Response, payload: Any) -> LookupResult:
        if not self.use_proxy or not isinstance(payload, dict) or "code" not in payload:
            return super().error_result(response, payload)
        # The proxy answers with its own envelope: {success, error, code}
        code = payload.get("code")
        message = _text(payload.get("error")) or f"HTTP {response.status_code}"
        if code == "NOT_FOUND":
            return NotFound(reason=message)
        return Failed(
            kind=_PROXY_CODES.get(code, ErrorKind.API_ERROR),
            message=message,
            http_status=payload.get("statusCode") or response.status_code,
        )


class UPCItemDBAdapter(ProviderAdapter):
    """UPCItemDB: the trial endpoint needs no key, the paid one sends key headers."""

    name = "upcitemdb"
    format_product = staticmethod(format_upcitemdb_product)

    def __init__(
        self,
        use_paid_plan: bool | None = None,
        api_key: str | None = None,
        key_type: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.use_paid_plan = config.UPCITEMDB_USE_PAID_PLAN if use_paid_plan is None else use_paid_plan
        self.api_key = config.UPCITEMDB_API_KEY if api_key is None else api_key
        self.key_type = key_type or config.UPCITEMDB_KEY_TYPE

    @property
    def endpoint(self) -> str:
        return config.UPCITEMDB_PAID_ENDPOINT if self.use_paid_plan else config.UPCITEMDB_TRIAL_ENDPOINT

    def lookup_request(self, barcode: str) -> ProviderRequest:
        headers = {"Accept": "application/json", "Accept-Encoding": "gzip, deflate"}
        if self.use_paid_plan and self.api_key:
            headers["user_key"] = self.api_key
            headers["key_type"] = self.key_type
        return ProviderRequest(url=self.endpoint, params={"upc": barcode}, headers=headers)

    def extract_products(self, payload: Any) -> list[dict[str, Any]] | NotFound:
        items = payload.get("items") or []
        if not items:
            return NotFound(reason="No product found for this barcode")
        return items


class UPCDatabaseAdapter(ProviderAdapter):
    """UPCDatabase.org, optionally through a CORS relay.

    Only simple headers are sent; the API key travels as the ``apikey`` query
    parameter, never as an ``Authorization`` header.
    """

    name = "upcdatabase"
    format_product = staticmethod(format_upcdatabase_product)

    def __init__(
        self,
        api_key: str | None = None,
        use_cors_proxy: bool | None = None,
        cors_proxy: str | None = None,
        endpoint: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.api_key = config.UPC_DATABASE_API_KEY if api_key is None else api_key
        self.use_cors_proxy = config.UPC_DATABASE_USE_CORS_PROXY if use_cors_proxy is None else use_cors_proxy
        self.cors_proxy = cors_proxy or config.UPC_DATABASE_CORS_PROXY
        self.endpoint = (endpoint or config.UPC_DATABASE_ENDPOINT).rstrip("/")

    def target_url(self, barcode: str) -> str:
        """The provider URL for *barcode*, zero-padded to 13 digits."""
        url = httpx.URL(f"{self.endpoint}/{quote(pad_barcode(barcode), safe='')}")
        if self.api_key:
            url = url.copy_merge_params({"apikey": self.api_key})
        return str(url)

    def lookup_request(self, barcode: str) -> ProviderRequest:
        target = self.target_url(barcode)
        url = self.cors_proxy + quote(target, safe="") if self.use_cors_proxy else target
        return ProviderRequest(url=url, headers={"Accept": "application/json"})

    def extract_products(self, payload: Any) -> list[dict[str, Any]] | NotFound:
        if not payload or payload.get("error"):
            error = payload.get("error") if payload else None
            if isinstance(error, dict):
                error = error.get("message")
            return NotFound(reason=_text(error) or "No product found for this barcode")
        if payload.get("valid") is False or payload.get("valid") == "false":
            return NotFound(reason="Invalid barcode or product not found")
        return [payload]


ADAPTERS: dict[str, type[ProviderAdapter]] = {
    BarcodeLookupAdapter.name: BarcodeLookupAdapter,
    UPCItemDBAdapter.name: UPCItemDBAdapter,
    UPCDatabaseAdapter.name: UPCDatabaseAdapter,
}


def build_adapter(provider: str | None = None, **kwargs: Any) -> ProviderAdapter:
    """Instantiate the adapter for *provider* (default: ``config.LOOKUP_PROVIDER``)."""
    name = (provider or config.LOOKUP_PROVIDER).strip().lower()
    try:
        adapter_cls = ADAPTERS[name]
    except KeyError:
        raise ValueError(f"Unknown lookup provider: {name!r}. Choose one of: {', '.join(ADAPTERS)}") from None
    return adapter_cls(**kwargs)
