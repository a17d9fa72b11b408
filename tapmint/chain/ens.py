"""
ENS name resolution.

namehash() follows EIP-137; Web3EnsResolver asks the registry for the name's
resolver, then the resolver for the address. Resolution never raises: an
unregistered name, a zero resolver or an RPC failure all yield None.
"""

from __future__ import annotations

from typing import Protocol, Sequence

from web3 import Web3

from tapmint.chain.abi import ENS_REGISTRY_ABI, ENS_REGISTRY_ADDRESS, ENS_RESOLVER_ABI, ZERO_ADDRESS
from tapmint.config import Settings
from tapmint.tapmint_logging import get_logger

logger = get_logger(__name__)

ENS_SUFFIX = ".eth"
EMPTY_NODE = b"\x00" * 32


def is_ens_name(value: str) -> bool:
    return value.strip().lower().endswith(ENS_SUFFIX)


def namehash(name: str) -> bytes:
    """
    EIP-137 namehash.

    Trim, lowercase and drop one trailing dot; then fold the labels right to
    left: node = keccak(node || keccak(label)), starting from 32 zero bytes.
    """
    cleaned = name.strip().lower()
    if cleaned.endswith("."):
        cleaned = cleaned[:-1]
    node = EMPTY_NODE
    if not cleaned:
        return node
    labels = [label for label in cleaned.split(".") if label]
    for label in reversed(labels):
        label_hash = bytes(Web3.keccak(text=label))
        node = bytes(Web3.keccak(node + label_hash))
    return node


class NameResolver(Protocol):
    """Anything that maps an ENS name to a checksum address or None."""

    def resolve(self, name: str) -> str | None: ...


class Web3EnsResolver:
    """Registry -> resolver -> addr lookups against one or more mainnet RPCs."""

    def __init__(self, rpc_urls: Sequence[str], *, timeout_sec: float = 20.0) -> None:
        if not rpc_urls:
            raise ValueError("at least one mainnet RPC URL is required")
        self._rpc_urls = list(rpc_urls)
        self._timeout_sec = timeout_sec
        self._clients: dict[str, Web3] = {}

    def _w3(self, url: str) -> Web3:
        w3 = self._clients.get(url)
        if w3 is None:
            w3 = Web3(Web3.HTTPProvider(url, request_kwargs={"timeout": self._timeout_sec}))
            self._clients[url] = w3
        return w3

    def _lookup(self, w3: Web3, node: bytes) -> str | None:
        registry = w3.eth.contract(address=ENS_REGISTRY_ADDRESS, abi=ENS_REGISTRY_ABI)
        resolver_address = registry.functions.resolver(node).call()
        if not resolver_address or resolver_address == ZERO_ADDRESS:
            return None
        resolver = w3.eth.contract(
            address=Web3.to_checksum_address(resolver_address), abi=ENS_RESOLVER_ABI
        )
        address = resolver.functions.addr(node).call()
        if not address or address == ZERO_ADDRESS:
            return None
        return Web3.to_checksum_address(address)

    def resolve(self, name: str) -> str | None:
        cleaned = name.strip().lower()
        if not cleaned.endswith(ENS_SUFFIX):
            return None
        node = namehash(cleaned)
        for url in self._rpc_urls:
            try:
                address = self._lookup(self._w3(url), node)
            except Exception as e:
                logger.warning("ens_rpc_failed", name=cleaned, rpc=url.split("?")[0], error=str(e))
                continue
            if address is None:
                logger.info("ens_name_unresolved", name=cleaned)
            return address
        logger.error("ens_resolve_failed", name=cleaned, rpc_count=len(self._rpc_urls))
        return None


def build_name_resolver(settings: Settings) -> Web3EnsResolver:
    return Web3EnsResolver(settings.mainnet_rpc_urls, timeout_sec=settings.http_timeout_sec)
