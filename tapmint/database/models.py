"""
Domain models for relayer state.

Request records (idempotency slots), cached mint results and rate-limit
decisions. Used by both store backends; no ORM coupling.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

STATUS_PENDING = "pending"
STATUS_DONE = "done"


@dataclass(frozen=True)
class MintResult:
    """Outcome of one confirmed mint; cached under its request id."""

    resolved_address: str
    tx_hash: str
    token_id: str

    def to_response(self) -> dict[str, str]:
        return {
            "resolvedAddress": self.resolved_address,
            "txHash": self.tx_hash,
            "tokenId": self.token_id,
        }


@dataclass
class RequestRecord:
    """Idempotency slot for one request id."""

    request_id: str
    status: str
    resolved_address: str
    tx_hash: str | None = None
    token_id: str | None = None
    created_at: int | None = None
    """Epoch milliseconds when the slot was reserved."""

    @property
    def done(self) -> bool:
        return self.status == STATUS_DONE

    @property
    def result(self) -> MintResult | None:
        if not self.done or self.tx_hash is None or self.token_id is None:
            return None
        return MintResult(
            resolved_address=self.resolved_address,
            tx_hash=self.tx_hash,
            token_id=self.token_id,
        )


@dataclass(frozen=True)
class RateDecision:
    """Result of counting one request against a client's rate window."""

    allowed: bool
    count: int
    reset_at: int
    """Epoch milliseconds when the window ends."""


def address_key(address: str) -> str:
    """Store key for per-recipient counters: lowercased address."""
    return address.strip().lower()
