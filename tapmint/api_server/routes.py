"""
API route definitions — /api/mint, /api/minted, /api/resolve, /api/health.

Routes parse HTTP details (headers, query, body, client IP) and delegate to the
relay handlers. Handlers are provided through dependencies so tests can swap in
a memory store and fake chain.
"""

from __future__ import annotations

import json
from typing import Any

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from starlette.concurrency import run_in_threadpool

from tapmint.chain import build_mint_chain, build_name_resolver, is_ens_name
from tapmint.config import Settings, get_settings
from tapmint.core.exceptions import BadRequest, NotFound
from tapmint.database import get_store
from tapmint.relay import IdentityResolver, MintCall, MintedLookup, MintRelay

router = APIRouter(prefix="/api")


# -----------------------------------------------------------------------------
# Dependencies
# -----------------------------------------------------------------------------


def get_app_settings() -> Settings:
    return get_settings()


def get_identity_resolver(settings: Settings = Depends(get_app_settings)) -> IdentityResolver:
    return IdentityResolver(build_name_resolver(settings))


def get_mint_relay(
    settings: Settings = Depends(get_app_settings),
    identity: IdentityResolver = Depends(get_identity_resolver),
) -> MintRelay:
    return MintRelay(settings, get_store(settings.database_url), identity, build_mint_chain)


def get_minted_lookup(
    settings: Settings = Depends(get_app_settings),
    identity: IdentityResolver = Depends(get_identity_resolver),
) -> MintedLookup:
    return MintedLookup(settings, identity, build_mint_chain)


# -----------------------------------------------------------------------------
# Request helpers
# -----------------------------------------------------------------------------


def client_ip(request: Request) -> str:
    """First X-Forwarded-For hop, then X-Real-IP, then the socket peer."""
    forwarded = (request.headers.get("x-forwarded-for") or "").split(",")[0].strip()
    if forwarded:
        return forwarded
    real_ip = (request.headers.get("x-real-ip") or "").strip()
    if real_ip:
        return real_ip
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def tap_key(request: Request) -> str:
    """x-tap-key header, else the k query parameter."""
    return (request.headers.get("x-tap-key") or "").strip() or (request.query_params.get("k") or "").strip()


async def read_json_body(request: Request) -> Any:
    """Parsed JSON body; empty or malformed bodies read as {}."""
    raw = await request.body()
    if not raw:
        return {}
    try:
        return json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        return {}


# -----------------------------------------------------------------------------
# Response models
# -----------------------------------------------------------------------------


class MintResponse(BaseModel):
    """POST /api/mint response: cached verbatim under the request id."""

    resolvedAddress: str = Field(..., description="Checksum address that received the token")
    txHash: str = Field(..., description="mintTo transaction hash")
    tokenId: str = Field(..., description="Minted token id (decimal string)")


class MintedResponse(BaseModel):
    """GET /api/minted response."""

    address: str
    count: int = Field(..., ge=0)
    tokenIds: list[str] = Field(default_factory=list, description="Token ids in chain order")
    lastTokenId: str | None = None


class ResolveResponse(BaseModel):
    name: str
    address: str


class HealthResponse(BaseModel):
    """GET /api/health response: configuration status only, never secrets."""

    ok: bool
    chainId: int
    contract: str
    relayer: str = Field(..., description="configured | missing")


# -----------------------------------------------------------------------------
# Routes
# -----------------------------------------------------------------------------


@router.api_route(
    "/mint",
    methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    response_model=MintResponse,
)
async def mint(request: Request, relay: MintRelay = Depends(get_mint_relay)) -> JSONResponse:
    """
    Relay a tap mint. Authorized by the tap key; idempotent per requestId.

    The relay's blocking chain and store calls run in the thread pool.
    """
    call = MintCall(
        method=request.method,
        tap_key=tap_key(request),
        client_ip=client_ip(request),
        body=await read_json_body(request),
    )
    result = await run_in_threadpool(relay.handle, call)
    return JSONResponse(status_code=200, content=result)


@router.get("/minted", response_model=MintedResponse)
def minted(
    response: Response,
    address: str | None = Query(None),
    name: str | None = Query(None),
    from_block: str | None = Query(None, alias="fromBlock"),
    lookup: MintedLookup = Depends(get_minted_lookup),
) -> dict[str, Any]:
    """Token ids minted to an address or ENS name."""
    response.headers["Cache-Control"] = "no-store"
    return lookup.lookup(address=address, name=name, from_block=from_block)


@router.get("/resolve", response_model=ResolveResponse)
def resolve(
    name: str | None = Query(None),
    identity: IdentityResolver = Depends(get_identity_resolver),
) -> dict[str, str]:
    """Resolve an ENS name for the UI."""
    name = (name or "").strip()
    if not name or not is_ens_name(name):
        raise BadRequest("Invalid ENS name")
    address = identity.resolve_name(name)
    if not address:
        raise NotFound("ENS name not found")
    return {"name": name, "address": address}


@router.get("/health", response_model=HealthResponse)
def health(settings: Settings = Depends(get_app_settings)) -> dict[str, Any]:
    """Configuration status: chain id, contract, whether a relayer key is set."""
    return {
        "ok": True,
        "chainId": settings.chain_id,
        "contract": settings.contract_address,
        "relayer": "configured" if settings.relayer_configured else "missing",
    }
