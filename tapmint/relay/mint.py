"""
Mint relay: turns an authorized tap into at most one on-chain mint per request id.

Guards run in a fixed order and short-circuit:

  method -> tap key -> IP rate window -> body -> cached result -> relayer config
  -> recipient resolution -> request + cap reservation -> sign mintTo
  -> record tx hash -> broadcast -> receipt -> commit

The cached-result check precedes the cap check so a retried request id that
already minted succeeds even when the recipient is now at the cap. The
reservation is taken before the chain write and either committed with the
result or released, so concurrent duplicates cannot both mint.
"""

from __future__ import annotations

import hmac
import time
from dataclasses import dataclass, field
from typing import Any, Callable

from web3 import Web3

from tapmint.chain.client import MintChain, is_private_key
from tapmint.config import Settings
from tapmint.core.exceptions import (
    BadRequest,
    ChainError,
    ChainTimeout,
    Forbidden,
    MethodNotAllowed,
    Misconfigured,
    MintFailed,
    MintInProgress,
    MintLimitReached,
    MintTimeout,
    RateLimited,
)
from tapmint.database import CapExceeded, MintResult, MintStore, RequestRecord
from tapmint.relay.identity import IdentityResolver
from tapmint.tapmint_logging import bind_request, get_logger, short_address

logger = get_logger(__name__)

MAX_MINTS_PER_ADDRESS = 3
RATE_WINDOW_MS = 10 * 60 * 1000
RATE_MAX = 120
# A pending slot with no transaction after this long belongs to a crashed request.
PENDING_STALE_MS = 5 * 60 * 1000


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class MintCall:
    """One inbound mint request as seen by the relay."""

    method: str
    tap_key: str = ""
    client_ip: str = "unknown"
    body: Any = field(default_factory=dict)


class MintRelay:
    def __init__(
        self,
        settings: Settings,
        store: MintStore,
        identity: IdentityResolver,
        chain_factory: Callable[[Settings], MintChain],
        *,
        clock: Callable[[], int] = now_ms,
        max_mints_per_address: int = MAX_MINTS_PER_ADDRESS,
        rate_window_ms: int = RATE_WINDOW_MS,
        rate_max: int = RATE_MAX,
    ) -> None:
        self.settings = settings
        self.store = store
        self.identity = identity
        self.chain_factory = chain_factory
        self.clock = clock
        self.max_mints_per_address = max_mints_per_address
        self.rate_window_ms = rate_window_ms
        self.rate_max = rate_max

    # -------------------------------------------------------------------------
    # Guards
    # -------------------------------------------------------------------------

    def check_tap_key(self, provided: str) -> None:
        expected = self.settings.tap_key
        if not expected or not provided:
            raise Forbidden()
        if not hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8")):
            raise Forbidden()

    def check_rate(self, client_ip: str) -> None:
        decision = self.store.hit_rate_limit(
            client_ip or "unknown", self.clock(), self.rate_window_ms, self.rate_max
        )
        if not decision.allowed:
            logger.warning("mint_rate_limited", client_ip=client_ip, count=decision.count)
            raise RateLimited()

    @staticmethod
    def parse_body(body: Any) -> tuple[str, str]:
        if not isinstance(body, dict):
            body = {}
        recipient = body.get("recipient")
        request_id = body.get("requestId")
        recipient = recipient.strip() if isinstance(recipient, str) else ""
        request_id = request_id.strip() if isinstance(request_id, str) else ""
        if not recipient:
            raise BadRequest("recipient is required")
        if not request_id:
            raise BadRequest("requestId is required")
        return recipient, request_id

    def check_config(self) -> None:
        if not Web3.is_address(self.settings.contract_address):
            raise Misconfigured("CONTRACT_ADDRESS is not configured")
        if not is_private_key(self.settings.relayer_private_key):
            raise Misconfigured("RELAYER_PRIVATE_KEY is not configured")

    # -------------------------------------------------------------------------
    # Handler
    # -------------------------------------------------------------------------

    def handle(self, call: MintCall) -> dict[str, str]:
        """Run every guard, mint if they pass, and return {resolvedAddress, txHash, tokenId}."""
        if call.method.upper() != "POST":
            raise MethodNotAllowed()
        self.check_tap_key(call.tap_key)
        self.check_rate(call.client_ip)
        recipient, request_id = self.parse_body(call.body)
        log = bind_request(request_id, call.client_ip)

        cached = self.store.get_request(request_id)
        if cached is not None and cached.done:
            log.info("mint_cache_hit")
            return self._cached_response(cached)

        self.check_config()

        resolved = self.identity.resolve(recipient)
        if resolved is None:
            log.info("mint_recipient_invalid", recipient=recipient[:64])
            raise BadRequest("Invalid recipient")

        existing = self._reserve(request_id, resolved, log)
        if existing is not None:
            return self._resume(existing, log)

        chain, tx_hash = self._submit(request_id, resolved, log)
        return self._confirm(chain, request_id, resolved, tx_hash, log)

    # -------------------------------------------------------------------------
    # Reservation lifecycle
    # -------------------------------------------------------------------------

    def _submit(self, request_id: str, resolved: str, log: Any) -> tuple[MintChain, str]:
        """
        Sign, record the hash on the reservation, then broadcast.

        The hash is stored before anything reaches the network; a retry after a
        crash finds the transaction instead of minting again. A failure at any
        step up to a successful broadcast releases the reservation.
        """
        try:
            chain = self.chain_factory(self.settings)
            signed = chain.sign_mint(resolved)
        except Exception as e:
            log.error("mint_sign_error", to=short_address(resolved), error=str(e))
            self._release(request_id, log)
            raise MintFailed() from e

        try:
            attached = self.store.attach_tx(request_id, signed.tx_hash)
        except Exception as e:
            log.exception("mint_attach_error", tx_hash=signed.tx_hash, error=str(e))
            self._release(request_id, log)
            raise MintFailed() from e
        if not attached:
            log.error("mint_reservation_lost", tx_hash=signed.tx_hash)
            raise MintFailed()

        try:
            tx_hash = chain.send_mint(signed)
        except Exception as e:
            log.error("mint_submit_error", to=short_address(resolved), tx_hash=signed.tx_hash, error=str(e))
            self._release(request_id, log)
            raise MintFailed() from e
        return chain, tx_hash

    def _release(self, request_id: str, log: Any) -> None:
        """Free the reservation after a failed attempt; a store error leaves it to the stale sweep."""
        try:
            self.store.release_mint(request_id)
        except Exception as e:
            log.exception("mint_release_error", error=str(e))

    def _reserve(self, request_id: str, resolved: str, log: Any) -> RequestRecord | None:
        """Claim the request slot and a cap slot; return the holder's record if already claimed."""
        for _ in range(2):
            try:
                existing = self.store.reserve_mint(
                    request_id,
                    resolved,
                    self.max_mints_per_address,
                    self.clock(),
                    stale_after_ms=PENDING_STALE_MS,
                )
            except CapExceeded as e:
                log.info("mint_cap_reached", to=short_address(resolved), cap=e.cap)
                raise MintLimitReached() from e
            if existing is None:
                log.info("mint_reserved", to=short_address(resolved))
                return None
            if existing.done or existing.tx_hash or not self._is_stale(existing):
                return existing
            log.warning("mint_stale_reservation_released", created_at=existing.created_at)
            self.store.release_mint(request_id)
        raise MintInProgress()

    def _is_stale(self, record: RequestRecord) -> bool:
        if record.created_at is None:
            return False
        return self.clock() - record.created_at > PENDING_STALE_MS

    def _resume(self, existing: RequestRecord, log: Any) -> dict[str, str]:
        """Another request holds the slot: return its result or finish its transaction."""
        if existing.done:
            log.info("mint_cache_hit", concurrent=True)
            return self._cached_response(existing)
        if not existing.tx_hash:
            log.info("mint_in_progress")
            raise MintInProgress()
        log.info("mint_reconcile", tx_hash=existing.tx_hash)
        try:
            chain = self.chain_factory(self.settings)
        except Exception as e:
            log.error("mint_chain_unavailable", error=str(e))
            raise MintFailed() from e
        return self._confirm(chain, existing.request_id, existing.resolved_address, existing.tx_hash, log)

    def _confirm(
        self, chain: MintChain, request_id: str, resolved: str, tx_hash: str, log: Any
    ) -> dict[str, str]:
        try:
            token_id = chain.wait_for_mint(tx_hash)
        except ChainTimeout as e:
            # Transaction may still land: keep the reservation so a retry reconciles it.
            log.warning("mint_confirm_timeout", tx_hash=tx_hash, timeout_sec=e.timeout_sec)
            raise MintTimeout(txHash=tx_hash) from e
        except ChainError as e:
            log.error("mint_confirm_failed", tx_hash=tx_hash, error=str(e))
            self._release(request_id, log)
            raise MintFailed() from e
        except Exception as e:
            log.exception("mint_confirm_error", tx_hash=tx_hash, error=str(e))
            self._release(request_id, log)
            raise MintFailed() from e

        result = MintResult(resolved_address=resolved, tx_hash=tx_hash, token_id=token_id)
        if not self.store.commit_mint(request_id, result):
            current = self.store.get_request(request_id)
            if current is not None and current.done:
                return self._cached_response(current)
            log.error("mint_commit_lost", tx_hash=tx_hash)
        log.info("mint_confirmed", to=short_address(resolved), tx_hash=tx_hash, token_id=token_id)
        return result.to_response()

    @staticmethod
    def _cached_response(record: RequestRecord) -> dict[str, str]:
        result = record.result
        if result is None:
            raise MintInProgress()
        return result.to_response()
