"""BarcodeLookup proxy endpoints."""

from fastapi import APIRouter, Query

from scanlookup.models import ErrorKind, LookupResponse, SearchResponse
from scanlookup.services import barcodelookup
from scanlookup.services.barcodelookup import ProxyError

router = APIRouter()


@router.get("/lookup/{barcode}", response_model=LookupResponse)
async def lookup(barcode: str) -> LookupResponse:
    """Look up a product by barcode.

    Returns 400 for a blank barcode and 404 when the upstream provider has no
    product for it.  Upstream failures keep the upstream status code.
    """
    barcode = barcode.strip()
    if not barcode:
        raise ProxyError(400, "Barcode parameter is required", "INVALID_BARCODE")

    data = await barcodelookup.lookup_barcode(barcode)
    products = data.get("products") or []
    if not products:
        raise ProxyError(404, "No product found for this barcode", ErrorKind.NOT_FOUND.value)

    return LookupResponse(data=data, product=products[0], totalProducts=len(products))


@router.get("/search", response_model=SearchResponse)
async def search(
    q: str | None = Query(None, description="Search keyword"),
    page: int = Query(1, ge=1, description="Result page"),
) -> SearchResponse:
    """Search products by keyword.  An empty result list is still a success."""
    query = (q or "").strip()
    if not query:
        raise ProxyError(400, 'Query parameter "q" is required', "INVALID_QUERY")

    data = await barcodelookup.search_products(query, page)
    products = data.get("products") or []
    return SearchResponse(data=data, products=products, totalProducts=len(products))
