"""
Simulated tap NFT contract for dry runs, tests and the stress harness.

Behaves like the deployed contract from the relayer's point of view: sequential
token ids from 1, a per-recipient cap that reverts the mint, pause, and a
Minted log per mint. Signing only hands out a transaction hash; the mint is
"included" in its own block when the signed transaction is sent.
Enable for the API with TAPMINT_DRY_RUN=1 (no RPC, no gas).
"""

from __future__ import annotations

import threading
from dataclasses import dataclass

from web3 import Web3

from tapmint.chain.client import SignedMint
from tapmint.core.exceptions import ChainError

CONTRACT_MAX_PER_RECIPIENT = 3


@dataclass(frozen=True)
class MintedLog:
    block_number: int
    to: str
    token_id: int
    tx_hash: str


class InMemoryMintChain:
    """MintChain backed by process memory."""

    def __init__(self, *, max_per_recipient: int = CONTRACT_MAX_PER_RECIPIENT, start_block: int = 1) -> None:
        self._lock = threading.Lock()
        self._max_per_recipient = max_per_recipient
        self._next_token_id = 1
        self._nonce = 0
        self._block_number = start_block
        self._logs: list[MintedLog] = []
        self._receipts: dict[str, MintedLog] = {}
        self._balances: dict[str, int] = {}
        self.paused = False
        self.submissions = 0

    def sign_mint(self, to: str) -> SignedMint:
        key = to.lower()
        with self._lock:
            self._nonce += 1
            nonce = self._nonce
        raw = f"mint:{key}:{nonce}".encode()
        return SignedMint(to=to, tx_hash=Web3.to_hex(Web3.keccak(raw)), raw_transaction=raw)

    def send_mint(self, signed: SignedMint) -> str:
        key = signed.to.lower()
        with self._lock:
            self.submissions += 1
            if signed.tx_hash in self._receipts:
                return signed.tx_hash
            if self.paused:
                raise ChainError("Pausable: paused")
            if self._balances.get(key, 0) >= self._max_per_recipient:
                raise ChainError("Mint limit reached")
            token_id = self._next_token_id
            self._next_token_id += 1
            self._balances[key] = self._balances.get(key, 0) + 1
            log = MintedLog(
                block_number=self._block_number,
                to=Web3.to_checksum_address(key),
                token_id=token_id,
                tx_hash=signed.tx_hash,
            )
            self._block_number += 1
            self._logs.append(log)
            self._receipts[signed.tx_hash] = log
            return signed.tx_hash

    def submit_mint(self, to: str) -> str:
        """Sign and send in one step, for seeding state."""
        return self.send_mint(self.sign_mint(to))

    def wait_for_mint(self, tx_hash: str) -> str:
        with self._lock:
            log = self._receipts.get(tx_hash)
        if log is None:
            raise ChainError(f"unknown transaction {tx_hash}")
        return str(log.token_id)

    def minted_token_ids(self, owner: str, from_block: int) -> list[str]:
        key = owner.lower()
        with self._lock:
            return [
                str(log.token_id)
                for log in self._logs
                if log.to.lower() == key and log.block_number >= from_block
            ]

    def balance_of(self, owner: str) -> int:
        with self._lock:
            return self._balances.get(owner.lower(), 0)


_dry_run_chain: InMemoryMintChain | None = None
_dry_run_lock = threading.Lock()


def get_dry_run_chain() -> InMemoryMintChain:
    """Process-wide simulated chain so dry-run mints persist across requests."""
    global _dry_run_chain
    with _dry_run_lock:
        if _dry_run_chain is None:
            _dry_run_chain = InMemoryMintChain()
        return _dry_run_chain
