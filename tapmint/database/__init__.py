"""
Relayer state — idempotency slots, per-recipient mint counters, rate windows.

SqlMintStore when a database URL is configured; otherwise the process-local
MemoryMintStore. Both implement the atomic MintStore interface.
"""

from __future__ import annotations

import threading

from tapmint.database.memory_store import MemoryMintStore
from tapmint.database.models import (
    STATUS_DONE,
    STATUS_PENDING,
    MintResult,
    RateDecision,
    RequestRecord,
    address_key,
)
from tapmint.database.sql_store import SqlMintStore
from tapmint.database.store import CapExceeded, MintStore
from tapmint.tapmint_logging import get_logger

logger = get_logger(__name__)

_store: MintStore | None = None
_store_lock = threading.Lock()


def create_store(database_url: str) -> MintStore:
    """Build and initialise a store for database_url (empty -> memory)."""
    if database_url:
        store: MintStore = SqlMintStore(database_url)
    else:
        logger.warning(
            "memory_store_in_use",
            detail="no DATABASE_URL; state is per-process and lost on restart",
        )
        store = MemoryMintStore()
    store.ensure_schema()
    return store


def get_store(database_url: str | None = None) -> MintStore:
    """Return the process-wide store, creating it on first use."""
    global _store
    if _store is None:
        with _store_lock:
            if _store is None:
                if database_url is None:
                    from tapmint.config import get_settings

                    database_url = get_settings().database_url
                _store = create_store(database_url)
    return _store


def reset_store_for_test() -> None:
    """Drop the cached store. For tests only."""
    global _store
    with _store_lock:
        _store = None


__all__ = [
    "CapExceeded",
    "MemoryMintStore",
    "MintResult",
    "MintStore",
    "RateDecision",
    "RequestRecord",
    "SqlMintStore",
    "STATUS_DONE",
    "STATUS_PENDING",
    "address_key",
    "create_store",
    "get_store",
    "reset_store_for_test",
]
