"""
FastAPI server — tap-to-mint relayer API.

Mounts the /api routes, CORS and request-logging middleware, and renders every
error as {"error": message}. Config via env (see tapmint.config).
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from tapmint import __version__
from tapmint.api_server.middleware import cors_middleware, request_logging_middleware
from tapmint.api_server.routes import router
from tapmint.config import get_settings
from tapmint.core.exceptions import RelayError
from tapmint.database import get_store
from tapmint.tapmint_logging import get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the store (and its schema) before serving; log the non-secret configuration."""
    settings = get_settings()
    store = get_store(settings.database_url)
    logger.info(
        "relayer_startup",
        chain_id=settings.chain_id,
        contract=settings.contract_address or "missing",
        relayer="configured" if settings.relayer_configured else "missing",
        tap_key="configured" if settings.tap_key else "missing",
        store="durable" if store.durable else "memory",
        ens_rpc_count=len(settings.mainnet_rpc_urls),
    )
    yield
    logger.info("relayer_shutdown")


app = FastAPI(
    title="tapmint relayer",
    description="Gas relayer for tap-to-mint NFTs: mint, minted lookup, ENS resolve, health.",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(router)

# Added last = outermost: CORS headers land on every response, logged ones included.
app.middleware("http")(request_logging_middleware)
app.middleware("http")(cors_middleware)


@app.exception_handler(RelayError)
def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
    """Client-safe JSON for every relay error."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


@app.exception_handler(StarletteHTTPException)
def http_exception_handler(request: Any, exc: StarletteHTTPException) -> JSONResponse:
    """Consistent JSON error response for routing errors (404, 405)."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=500, content={"error": "Internal error"})
