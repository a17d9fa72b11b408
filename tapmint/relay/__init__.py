"""
Relay handlers — mint relay, minted lookup and identity resolution.

Framework-agnostic: handlers take plain inputs, raise RelayError subclasses,
and return JSON-ready dicts. The API server adapts them to HTTP.
"""

from tapmint.relay.identity import IdentityResolver, normalize_address
from tapmint.relay.lookup import MintedLookup, parse_block
from tapmint.relay.mint import (
    MAX_MINTS_PER_ADDRESS,
    RATE_MAX,
    RATE_WINDOW_MS,
    MintCall,
    MintRelay,
)

__all__ = [
    "IdentityResolver",
    "MAX_MINTS_PER_ADDRESS",
    "MintCall",
    "MintRelay",
    "MintedLookup",
    "RATE_MAX",
    "RATE_WINDOW_MS",
    "normalize_address",
    "parse_block",
]
