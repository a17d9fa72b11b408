"""
Process-local store.

Used when no DATABASE_URL is configured. State lives in this process only:
it is lost on restart and not shared between instances, so it suits local
development and tests, not a multi-instance deployment.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, replace

from tapmint.database.models import (
    STATUS_DONE,
    STATUS_PENDING,
    MintResult,
    RateDecision,
    RequestRecord,
    address_key,
)
from tapmint.database.store import CapExceeded, MintStore


@dataclass
class _Counter:
    minted: int = 0
    pending: int = 0


class MemoryMintStore(MintStore):
    """Dict-backed store; a single lock makes every operation atomic."""

    durable = False

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._requests: dict[str, RequestRecord] = {}
        self._counters: dict[str, _Counter] = {}
        self._rates: dict[str, tuple[int, int]] = {}
        self._next_sweep_ms = 0

    def ensure_schema(self) -> None:
        return None

    def get_request(self, request_id: str) -> RequestRecord | None:
        with self._lock:
            record = self._requests.get(request_id)
            return replace(record) if record else None

    def reserve_mint(
        self,
        request_id: str,
        resolved_address: str,
        cap: int,
        now_ms: int,
        stale_after_ms: int | None = None,
    ) -> RequestRecord | None:
        key = address_key(resolved_address)
        with self._lock:
            counter = self._counters.setdefault(key, _Counter())
            if stale_after_ms is not None:
                self._reclaim_stale(key, counter, now_ms - stale_after_ms)
            existing = self._requests.get(request_id)
            if existing is not None:
                return replace(existing)
            if counter.minted + counter.pending >= cap:
                raise CapExceeded(resolved_address, cap)
            counter.pending += 1
            self._requests[request_id] = RequestRecord(
                request_id=request_id,
                status=STATUS_PENDING,
                resolved_address=resolved_address,
                created_at=now_ms,
            )
            return None

    def _reclaim_stale(self, key: str, counter: _Counter, cutoff_ms: int) -> None:
        stale = [
            rid
            for rid, record in self._requests.items()
            if record.status == STATUS_PENDING
            and not record.tx_hash
            and address_key(record.resolved_address) == key
            and (record.created_at or 0) < cutoff_ms
        ]
        for rid in stale:
            del self._requests[rid]
        counter.pending = max(counter.pending - len(stale), 0)

    def attach_tx(self, request_id: str, tx_hash: str) -> bool:
        with self._lock:
            record = self._requests.get(request_id)
            if record is None or record.status != STATUS_PENDING:
                return False
            record.tx_hash = tx_hash
            return True

    def commit_mint(self, request_id: str, result: MintResult) -> bool:
        with self._lock:
            record = self._requests.get(request_id)
            if record is None or record.status != STATUS_PENDING:
                return False
            record.status = STATUS_DONE
            record.tx_hash = result.tx_hash
            record.token_id = result.token_id
            counter = self._counters.setdefault(address_key(record.resolved_address), _Counter())
            counter.minted += 1
            counter.pending = max(counter.pending - 1, 0)
            return True

    def release_mint(self, request_id: str) -> bool:
        with self._lock:
            record = self._requests.get(request_id)
            if record is None or record.status != STATUS_PENDING:
                return False
            del self._requests[request_id]
            counter = self._counters.get(address_key(record.resolved_address))
            if counter is not None and counter.pending > 0:
                counter.pending -= 1
            return True

    def mint_count(self, address: str) -> int:
        with self._lock:
            counter = self._counters.get(address_key(address))
            return counter.minted if counter else 0

    def hit_rate_limit(
        self, client_key: str, now_ms: int, window_ms: int, max_requests: int
    ) -> RateDecision:
        with self._lock:
            if now_ms >= self._next_sweep_ms:
                self._next_sweep_ms = now_ms + window_ms
                self._drop_expired(now_ms)
            window = self._rates.get(client_key)
            if window is None or now_ms > window[1]:
                reset_at = now_ms + window_ms
                self._rates[client_key] = (1, reset_at)
                return RateDecision(allowed=True, count=1, reset_at=reset_at)
            count, reset_at = window
            if count >= max_requests:
                return RateDecision(allowed=False, count=count, reset_at=reset_at)
            self._rates[client_key] = (count + 1, reset_at)
            return RateDecision(allowed=True, count=count + 1, reset_at=reset_at)

    def sweep_rate_windows(self, now_ms: int) -> int:
        with self._lock:
            return self._drop_expired(now_ms)

    def _drop_expired(self, now_ms: int) -> int:
        expired = [k for k, (_, reset_at) in self._rates.items() if reset_at < now_ms]
        for k in expired:
            del self._rates[k]
        return len(expired)
