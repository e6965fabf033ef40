"""Pydantic models for normalized products, lookup results and proxy responses."""

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

UNKNOWN_PRODUCT = "Unknown Product"


class ErrorKind(str, Enum):
    """Classification shared by the adapters, the gateway and the proxy."""

    INVALID_INPUT = "INVALID_INPUT"
    NOT_FOUND = "NOT_FOUND"
    API_ERROR = "API_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    NETWORK_ERROR = "NETWORK_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    NO_API_KEY = "NO_API_KEY"


# ---------------------------------------------------------------------------
# Normalized product
# ---------------------------------------------------------------------------


class Price(BaseModel):
    """Recorded price range for a product."""

    model_config = ConfigDict(frozen=True)

    lowest: str | None = None
    highest: str | None = None
    currency: str = "USD"


class ProductDetails(BaseModel):
    """Physical attributes of a product."""

    model_config = ConfigDict(frozen=True)

    color: str = ""
    size: str = ""
    weight: str = ""
    dimension: str = ""
    model: str = ""
    mpn: str = ""


class StoreOffer(BaseModel):
    """A store or merchant listing the product."""

    model_config = ConfigDict(frozen=True)

    name: str = ""
    price: str | None = None
    currency: str = ""
    link: str = ""
    updated: str = ""


class NormalizedProduct(BaseModel):
    """Provider-agnostic product record built by an adapter.

    Every field has an empty default so that callers never see ``None`` where
    text is expected; only ``title`` is guaranteed to be non-empty.
    """

    model_config = ConfigDict(frozen=True)

    title: str = UNKNOWN_PRODUCT
    brand: str = ""
    manufacturer: str = ""
    description: str = ""
    category: str = ""
    upc: str = ""
    ean: str = ""
    asin: str = ""
    issuer_country: str = ""
    images: tuple[str, ...] = ()
    price: Price = Price()
    details: ProductDetails = ProductDetails()
    offers: tuple[StoreOffer, ...] = ()
    reviews: tuple[dict[str, Any], ...] = ()
    rating: float | None = None


# ---------------------------------------------------------------------------
# Lookup results
# ---------------------------------------------------------------------------


class LookupRequest(BaseModel):
    """A single barcode lookup, built once per scan event."""

    model_config = ConfigDict(frozen=True)

    barcode: str


class Found(BaseModel):
    """The provider returned a matching product."""

    model_config = ConfigDict(frozen=True)

    status: Literal["found"] = "found"
    product: NormalizedProduct
    #: The provider's own record for the matched product.
    raw: dict[str, Any] = {}


class NotFound(BaseModel):
    """The request was well-formed but the provider has no matching product."""

    model_config = ConfigDict(frozen=True)

    status: Literal["not_found"] = "not_found"
    reason: str = "No product found for this barcode"


class Failed(BaseModel):
    """The lookup could not be completed."""

    model_config = ConfigDict(frozen=True)

    status: Literal["failed"] = "failed"
    kind: ErrorKind
    message: str
    http_status: int | None = None


LookupResult = Found | NotFound | Failed


# ---------------------------------------------------------------------------
# Proxy service responses
# ---------------------------------------------------------------------------


class LookupResponse(BaseModel):
    """Successful ``/api/lookup/{barcode}`` response."""

    success: bool = True
    data: dict[str, Any]
    product: dict[str, Any]
    totalProducts: int


class SearchResponse(BaseModel):
    """Successful ``/api/search`` response; ``products`` may be empty."""

    success: bool = True
    data: dict[str, Any]
    products: list[dict[str, Any]] = []
    totalProducts: int = 0


class ErrorResponse(BaseModel):
    """Error envelope returned for every failed proxy request."""

    success: bool = False
    error: str
    code: str
    statusCode: int | None = None
    availableEndpoints: dict[str, str] | None = None


class InfoResponse(BaseModel):
    """Service information served at ``/``."""

    status: str = "ok"
    message: str
    version: str
    endpoints: dict[str, str] = Field(default_factory=dict)


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "healthy"
    timestamp: str
