"""
Minted lookup: token ids minted to an address, in chain order.

Read-only and idempotent; safe to call unauthenticated and repeatedly.
"""

from __future__ import annotations

from typing import Any, Callable

from web3 import Web3

from tapmint.chain.client import MintChain
from tapmint.config import Settings
from tapmint.core.exceptions import BadRequest, LookupFailed, Misconfigured
from tapmint.relay.identity import IdentityResolver
from tapmint.tapmint_logging import get_logger, short_address

logger = get_logger(__name__)


def parse_block(value: str | None) -> int:
    """Decimal or 0x-hex block number; anything unparsable or negative is 0."""
    raw = (value or "").strip()
    if not raw:
        return 0
    try:
        block = int(raw, 16) if raw.lower().startswith("0x") else int(raw)
    except ValueError:
        return 0
    return max(block, 0)


class MintedLookup:
    def __init__(
        self,
        settings: Settings,
        identity: IdentityResolver,
        chain_factory: Callable[[Settings], MintChain],
    ) -> None:
        self.settings = settings
        self.identity = identity
        self.chain_factory = chain_factory

    def lookup(
        self,
        address: str | None = None,
        name: str | None = None,
        from_block: str | None = None,
    ) -> dict[str, Any]:
        """
        Return {address, count, tokenIds, lastTokenId} for address (or name).

        Start block: from_block, else CONTRACT_DEPLOY_BLOCK, else 0.
        """
        raw = (address or "").strip() or (name or "").strip()
        if not raw:
            raise BadRequest("address is required")
        if not Web3.is_address(self.settings.contract_address):
            raise Misconfigured("CONTRACT_ADDRESS is not configured")

        resolved = self.identity.resolve(raw)
        if resolved is None:
            raise BadRequest("Invalid address or ENS name")

        start = parse_block((from_block or "").strip() or self.settings.contract_deploy_block)
        try:
            token_ids = self.chain_factory(self.settings).minted_token_ids(resolved, start)
        except Exception as e:
            logger.error(
                "minted_lookup_failed",
                address=short_address(resolved),
                from_block=start,
                error=str(e),
            )
            raise LookupFailed() from e

        logger.info("minted_lookup", address=short_address(resolved), count=len(token_ids))
        return {
            "address": resolved,
            "count": len(token_ids),
            "tokenIds": token_ids,
            "lastTokenId": token_ids[-1] if token_ids else None,
        }
