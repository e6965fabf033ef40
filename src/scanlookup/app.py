"""FastAPI application for the BarcodeLookup proxy."""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from scanlookup import __version__, config
from scanlookup.models import ErrorKind, ErrorResponse, HealthResponse, InfoResponse
from scanlookup.routers import proxy
from scanlookup.services.barcodelookup import ProxyError

logger = logging.getLogger(__name__)

ENDPOINTS = {
    "health": "GET /",
    "lookup": "GET /api/lookup/:barcode",
    "search": "GET /api/search?q=keyword&page=1",
}


@asynccontextmanager
async def lifespan(app: FastAPI):  # noqa: ARG001
    """Log the upstream configuration on startup."""
    logger.info("BarcodeLookup API proxy %s, upstream %s", __version__, config.BARCODE_LOOKUP_BASE_URL)
    logger.info("API key configured: %s", "yes" if config.BARCODE_LOOKUP_API_KEY else "no")
    yield


app = FastAPI(
    title="scanlookup",
    description="BarcodeLookup API proxy",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.info("%s %s", request.method, request.url.path)
    return await call_next(request)


app.include_router(proxy.router, prefix="/api", tags=["proxy"])


def _error(status_code: int, body: ErrorResponse) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


@app.exception_handler(ProxyError)
async def proxy_error_handler(request: Request, exc: ProxyError) -> JSONResponse:  # noqa: ARG001
    return _error(exc.status_code, exc.envelope())


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:  # noqa: ARG001
    if exc.status_code == 404:
        body = ErrorResponse(error="Endpoint not found", code=ErrorKind.NOT_FOUND.value, availableEndpoints=ENDPOINTS)
        return _error(404, body)
    return _error(exc.status_code, ErrorResponse(error=str(exc.detail), code="HTTP_ERROR"))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:  # noqa: ARG001
    messages = "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors())
    return _error(400, ErrorResponse(error=messages or "Invalid request", code="INVALID_QUERY"))


@app.exception_handler(Exception)
async def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:  # noqa: ARG001
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error(500, ErrorResponse(error="Internal server error", code=ErrorKind.INTERNAL_ERROR.value))


@app.get("/", response_model=InfoResponse)
async def info():
    """Service information."""
    return InfoResponse(message="BarcodeLookup API Proxy Server", version=__version__, endpoints=ENDPOINTS)


@app.get("/health", response_model=HealthResponse)
async def health():
    """Liveness check."""
    return HealthResponse(timestamp=datetime.now(timezone.utc).isoformat())


def main() -> None:
    """Run the proxy with uvicorn."""
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    uvicorn.run(app, host=config.HOST, port=config.PORT)


if __name__ == "__main__":
    main()
