"""
SQLAlchemy-backed relayer store.

Uses DATABASE_URL (or TAPMINT_DB_URL): PostgreSQL for durable, multi-instance
deployments, or a SQLite file for a single host. Guards are single conditional
UPDATE/INSERT statements so the database, not the process, arbitrates races.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator

from sqlalchemy import BigInteger, Column, Integer, String, case, create_engine, delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from tapmint.database.models import (
    STATUS_DONE,
    STATUS_PENDING,
    MintResult,
    RateDecision,
    RequestRecord,
    address_key,
)
from tapmint.database.store import CapExceeded, MintStore
from tapmint.tapmint_logging import get_logger, short_address

logger = get_logger(__name__)

Base = declarative_base()

# -----------------------------------------------------------------------------
# SQLAlchemy models
# -----------------------------------------------------------------------------


class MintRequestRow(Base):
    """One row per request id: pending while the chain write is in flight, done once cached."""

    __tablename__ = "mint_requests"

    request_id = Column(String(256), primary_key=True)
    status = Column(String(16), nullable=False, index=True)
    resolved_address = Column(String(42), nullable=False, index=True)
    tx_hash = Column(String(66), nullable=True)
    token_id = Column(String(80), nullable=True)
    created_at = Column(BigInteger, nullable=False)  # epoch ms

    def to_record(self) -> RequestRecord:
        return RequestRecord(
            request_id=self.request_id,
            status=self.status,
            resolved_address=self.resolved_address,
            tx_hash=self.tx_hash,
            token_id=self.token_id,
            created_at=self.created_at,
        )


class MintCountRow(Base):
    """Per-recipient counters keyed by lowercased address. minted never decreases."""

    __tablename__ = "mint_counts"

    address = Column(String(42), primary_key=True)
    minted = Column(Integer, nullable=False, default=0)
    pending = Column(Integer, nullable=False, default=0)


class RateWindowRow(Base):
    """Fixed rate-limit window per client key."""

    __tablename__ = "rate_windows"

    client_key = Column(String(128), primary_key=True)
    count = Column(Integer, nullable=False)
    reset_at = Column(BigInteger, nullable=False)  # epoch ms


# -----------------------------------------------------------------------------
# Store
# -----------------------------------------------------------------------------


class _SlotTaken(Exception):
    """Request id already has a row."""


class SqlMintStore(MintStore):
    """MintStore over any SQLAlchemy URL."""

    durable = True

    def __init__(self, url: str, *, echo: bool = False) -> None:
        connect_args: dict[str, Any] = {}
        if url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self._url = url
        self._engine = create_engine(url, connect_args=connect_args, pool_pre_ping=True, echo=echo)
        self._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=self._engine)
        self._next_sweep_ms = 0
        logger.info("sql_store_engine", url=url.split("?")[0].split("@")[-1])

    @contextmanager
    def _session_scope(self) -> Iterator[Session]:
        """Single session. Commits on success, rolls back on error."""
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def ensure_schema(self) -> None:
        try:
            Base.metadata.create_all(bind=self._engine)
            logger.info("sql_store_schema_ready")
        except Exception as e:
            logger.exception("sql_store_schema_failed", error=str(e))
            raise

    def dispose(self) -> None:
        self._engine.dispose()

    # -- idempotency slots ---------------------------------------------------

    def get_request(self, request_id: str) -> RequestRecord | None:
        with self._session_scope() as session:
            row = session.get(MintRequestRow, request_id)
            return row.to_record() if row else None

    def reserve_mint(
        self,
        request_id: str,
        resolved_address: str,
        cap: int,
        now_ms: int,
        stale_after_ms: int | None = None,
    ) -> RequestRecord | None:
        key = address_key(resolved_address)
        for _ in range(3):
            try:
                with self._session_scope() as session:
                    if stale_after_ms is not None:
                        self._reclaim_stale(session, key, now_ms - stale_after_ms)
                    session.add(
                        MintRequestRow(
                            request_id=request_id,
                            status=STATUS_PENDING,
                            resolved_address=resolved_address,
                            created_at=now_ms,
                        )
                    )
                    try:
                        session.flush()
                    except IntegrityError as e:
                        raise _SlotTaken() from e
                    if not self._take_cap_slot(session, key, cap):
                        raise CapExceeded(resolved_address, cap)
                return None
            except _SlotTaken:
                existing = self.get_request(request_id)
                if existing is not None:
                    return existing
                # Holder released between our insert and read; claim again.
            except IntegrityError:
                # Concurrent first mint for this address created the counter row.
                continue
        raise RuntimeError(f"could not reserve request slot {request_id!r}")

    @staticmethod
    def _reclaim_stale(session: Session, key: str, cutoff_ms: int) -> None:
        """Drop pending rows for key that never got a transaction, and their cap slots."""
        reclaimed = session.execute(
            delete(MintRequestRow)
            .where(
                MintRequestRow.status == STATUS_PENDING,
                MintRequestRow.tx_hash.is_(None),
                func.lower(MintRequestRow.resolved_address) == key,
                MintRequestRow.created_at < cutoff_ms,
            )
            .execution_options(synchronize_session=False)
        ).rowcount
        if not reclaimed:
            return
        session.execute(
            update(MintCountRow)
            .where(MintCountRow.address == key)
            .values(
                pending=case(
                    (MintCountRow.pending > reclaimed, MintCountRow.pending - reclaimed),
                    else_=0,
                )
            )
            .execution_options(synchronize_session=False)
        )
        logger.warning("sql_store_stale_reclaimed", address=short_address(key), count=reclaimed)

    @staticmethod
    def _take_cap_slot(session: Session, key: str, cap: int) -> bool:
        """pending += 1 on the counter row if minted + pending < cap; creates the row on first use."""
        if cap <= 0:
            return False
        result = session.execute(
            update(MintCountRow)
            .where(
                MintCountRow.address == key,
                MintCountRow.minted + MintCountRow.pending < cap,
            )
            .values(pending=MintCountRow.pending + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            return True
        if session.get(MintCountRow, key) is not None:
            return False
        session.add(MintCountRow(address=key, minted=0, pending=1))
        session.flush()
        return True

    def attach_tx(self, request_id: str, tx_hash: str) -> bool:
        with self._session_scope() as session:
            result = session.execute(
                update(MintRequestRow)
                .where(MintRequestRow.request_id == request_id, MintRequestRow.status == STATUS_PENDING)
                .values(tx_hash=tx_hash)
                .execution_options(synchronize_session=False)
            )
            return bool(result.rowcount)

    # -- mint counters -------------------------------------------------------

    def commit_mint(self, request_id: str, result: MintResult) -> bool:
        try:
            with self._session_scope() as session:
                row = session.get(MintRequestRow, request_id)
                if row is None or row.status != STATUS_PENDING:
                    return False
                key = address_key(row.resolved_address)
                updated = session.execute(
                    update(MintRequestRow)
                    .where(MintRequestRow.request_id == request_id, MintRequestRow.status == STATUS_PENDING)
                    .values(status=STATUS_DONE, tx_hash=result.tx_hash, token_id=result.token_id)
                    .execution_options(synchronize_session=False)
                )
                if not updated.rowcount:
                    return False
                session.execute(
                    update(MintCountRow)
                    .where(MintCountRow.address == key)
                    .values(
                        minted=MintCountRow.minted + 1,
                        pending=MintCountRow.pending - 1,
                    )
                    .execution_options(synchronize_session=False)
                )
            logger.debug("sql_store_mint_committed", request_id=request_id, address=short_address(key))
            return True
        except Exception as e:
            logger.exception("sql_store_commit_failed", request_id=request_id, error=str(e))
            raise

    def release_mint(self, request_id: str) -> bool:
        with self._session_scope() as session:
            row = session.get(MintRequestRow, request_id)
            if row is None or row.status != STATUS_PENDING:
                return False
            key = address_key(row.resolved_address)
            deleted = session.execute(
                delete(MintRequestRow)
                .where(MintRequestRow.request_id == request_id, MintRequestRow.status == STATUS_PENDING)
                .execution_options(synchronize_session=False)
            )
            if not deleted.rowcount:
                return False
            session.execute(
                update(MintCountRow)
                .where(MintCountRow.address == key, MintCountRow.pending > 0)
                .values(pending=MintCountRow.pending - 1)
                .execution_options(synchronize_session=False)
            )
            return True

    def mint_count(self, address: str) -> int:
        with self._session_scope() as session:
            minted = session.execute(
                select(MintCountRow.minted).where(MintCountRow.address == address_key(address))
            ).scalar_one_or_none()
            return int(minted or 0)

    # -- rate windows --------------------------------------------------------

    def hit_rate_limit(
        self, client_key: str, now_ms: int, window_ms: int, max_requests: int
    ) -> RateDecision:
        if now_ms >= self._next_sweep_ms:
            self._next_sweep_ms = now_ms + window_ms
            self.sweep_rate_windows(now_ms)
        for _ in range(2):
            with self._session_scope() as session:
                new_reset = now_ms + window_ms
                reset = session.execute(
                    update(RateWindowRow)
                    .where(RateWindowRow.client_key == client_key, RateWindowRow.reset_at < now_ms)
                    .values(count=1, reset_at=new_reset)
                    .execution_options(synchronize_session=False)
                )
                if reset.rowcount:
                    return RateDecision(allowed=True, count=1, reset_at=new_reset)
                bumped = session.execute(
                    update(RateWindowRow)
                    .where(RateWindowRow.client_key == client_key, RateWindowRow.count < max_requests)
                    .values(count=RateWindowRow.count + 1)
                    .execution_options(synchronize_session=False)
                )
                row = session.execute(
                    select(RateWindowRow.count, RateWindowRow.reset_at).where(
                        RateWindowRow.client_key == client_key
                    )
                ).one_or_none()
                if row is not None:
                    return RateDecision(
                        allowed=bool(bumped.rowcount), count=int(row[0]), reset_at=int(row[1])
                    )
            try:
                with self._session_scope() as session:
                    session.add(RateWindowRow(client_key=client_key, count=1, reset_at=now_ms + window_ms))
                    session.flush()
                return RateDecision(allowed=True, count=1, reset_at=now_ms + window_ms)
            except IntegrityError:
                continue
        raise RuntimeError(f"could not record rate window for {client_key!r}")

    def sweep_rate_windows(self, now_ms: int) -> int:
        with self._session_scope() as session:
            removed = session.execute(
                delete(RateWindowRow)
                .where(RateWindowRow.reset_at < now_ms)
                .execution_options(synchronize_session=False)
            ).rowcount
        if removed:
            logger.debug("sql_store_rate_windows_swept", removed=removed)
        return int(removed or 0)
