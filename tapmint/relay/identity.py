"""
Identity resolution: ENS name or literal hex address -> checksum address.

Resolution failure is an expected, user-correctable condition (typo,
unregistered name), so resolve() returns None instead of raising.
"""

from __future__ import annotations

import re

from web3 import Web3

from tapmint.chain.ens import NameResolver, is_ens_name
from tapmint.tapmint_logging import get_logger

logger = get_logger(__name__)

HEX_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


def normalize_address(value: str) -> str | None:
    """Checksum form of a 0x-prefixed 40-hex literal, in any letter case; else None."""
    candidate = (value or "").strip()
    if not HEX_ADDRESS_RE.match(candidate):
        return None
    return Web3.to_checksum_address(candidate.lower())


class IdentityResolver:
    """Maps user input to a canonical address via ENS or literal validation."""

    def __init__(self, names: NameResolver) -> None:
        self._names = names

    def resolve(self, value: str) -> str | None:
        candidate = (value or "").strip()
        if not candidate:
            return None
        if is_ens_name(candidate):
            return self.resolve_name(candidate)
        return normalize_address(candidate)

    def resolve_name(self, name: str) -> str | None:
        try:
            address = self._names.resolve(name.strip())
        except Exception as e:
            logger.error("identity_name_resolve_failed", name=name, error=str(e))
            return None
        return normalize_address(address) if address else None
