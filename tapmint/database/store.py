"""
Abstract relayer store.

Every method that guards a chain write is a single atomic operation, so two
concurrent requests can never both pass the same check:

- reserve_mint: reclaim the recipient's stale slots, then claim the request id
  slot and one cap slot together
- hit_rate_limit: increment-with-expiry on the client window
- commit_mint: cache the result and move pending -> minted in one step
- release_mint: drop a pending slot and its cap reservation
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from tapmint.database.models import MintResult, RateDecision, RequestRecord


class CapExceeded(Exception):
    """Raised by reserve_mint when the recipient has no cap slot left."""

    def __init__(self, address: str, cap: int) -> None:
        self.address = address
        self.cap = cap
        super().__init__(f"{address} reached the cap of {cap} mints")


class MintStore(ABC):
    """Persistence interface for idempotency slots, mint counters and rate windows."""

    #: False for stores that do not survive a restart or span instances.
    durable: bool = True

    @abstractmethod
    def ensure_schema(self) -> None:
        """Create tables if they do not exist."""
        ...

    @abstractmethod
    def get_request(self, request_id: str) -> RequestRecord | None:
        """Return the slot for request_id, pending or done, or None."""
        ...

    @abstractmethod
    def reserve_mint(
        self,
        request_id: str,
        resolved_address: str,
        cap: int,
        now_ms: int,
        stale_after_ms: int | None = None,
    ) -> RequestRecord | None:
        """
        Atomically claim the request_id slot and one mint for resolved_address.

        When stale_after_ms is given, pending slots for resolved_address that
        never recorded a transaction and are older than that are deleted first,
        freeing their cap slots.

        Returns None when both were claimed; the existing record when another
        request holds the slot. Raises CapExceeded (claiming nothing) when
        minted + pending has reached cap.
        """
        ...

    @abstractmethod
    def attach_tx(self, request_id: str, tx_hash: str) -> bool:
        """
        Record the signed transaction hash on a pending slot, before it is broadcast.

        Returns False if the slot is no longer pending.
        """
        ...

    @abstractmethod
    def commit_mint(self, request_id: str, result: MintResult) -> bool:
        """
        Mark a pending slot done with result and count the mint.

        Returns False if the slot was not pending (already committed or released).
        """
        ...

    @abstractmethod
    def release_mint(self, request_id: str) -> bool:
        """Delete a pending slot and free its cap reservation. False if nothing was pending."""
        ...

    @abstractmethod
    def mint_count(self, address: str) -> int:
        """Number of confirmed mints recorded for address."""
        ...

    @abstractmethod
    def hit_rate_limit(
        self, client_key: str, now_ms: int, window_ms: int, max_requests: int
    ) -> RateDecision:
        """Count one request for client_key; reset the window when it has expired."""
        ...

    @abstractmethod
    def sweep_rate_windows(self, now_ms: int) -> int:
        """Delete windows that ended before now_ms; return how many were removed."""
        ...
