"""
HTTP middleware — CORS and request logging.

CORS: every response echoes the request Origin when it is on the allow-list,
otherwise the first allow-list entry. OPTIONS short-circuits with 204 on every
path before routing.
"""

from __future__ import annotations

import time
from typing import Awaitable, Callable

from fastapi import Request, Response

from tapmint.config import get_settings
from tapmint.tapmint_logging import get_logger

logger = get_logger(__name__)

ALLOWED_METHODS = "GET,POST,OPTIONS"
ALLOWED_HEADERS = "Content-Type, x-tap-key"

CallNext = Callable[[Request], Awaitable[Response]]


def cors_headers(origin: str, allowed_origins: tuple[str, ...]) -> dict[str, str]:
    allow_origin = origin if origin in allowed_origins else (allowed_origins[0] if allowed_origins else "")
    return {
        "Access-Control-Allow-Origin": allow_origin,
        "Vary": "Origin",
        "Access-Control-Allow-Methods": ALLOWED_METHODS,
        "Access-Control-Allow-Headers": ALLOWED_HEADERS,
    }


async def cors_middleware(request: Request, call_next: CallNext) -> Response:
    headers = cors_headers(request.headers.get("origin", ""), get_settings().allowed_origins)
    if request.method == "OPTIONS":
        return Response(status_code=204, headers=headers)
    response = await call_next(request)
    response.headers.update(headers)
    return response


async def request_logging_middleware(request: Request, call_next: CallNext) -> Response:
    """Log method, path, status and duration for every request."""
    start = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception as e:
        logger.exception(
            "http_request_failed",
            method=request.method,
            path=request.url.path,
            error=str(e),
        )
        raise
    logger.info(
        "http_request",
        method=request.method,
        path=request.url.path,
        status=response.status_code,
        duration_ms=round((time.perf_counter() - start) * 1000, 2),
    )
    return response
