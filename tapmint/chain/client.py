"""
Relayer chain client for the tap NFT contract.

Signs mintTo(address) with the relayer key, broadcasts it as a separate step,
waits (bounded) for the receipt, extracts the token id from the Minted event,
and reads past Minted logs for an address. Signing first gives the relay the
transaction hash to record before anything reaches the network. Blocking
calls; the API runs them in the thread pool.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Protocol

from eth_account import Account
from web3 import Web3
from web3.exceptions import TimeExhausted
from web3.logs import DISCARD
from web3.middleware import ExtraDataToPOAMiddleware

from tapmint.chain.abi import TAP_NFT_ABI
from tapmint.config import Settings
from tapmint.core.exceptions import ChainError, ChainTimeout
from tapmint.tapmint_logging import get_logger, short_address

logger = get_logger(__name__)

GAS_HEADROOM = 1.2
RECEIPT_POLL_SEC = 1.0

PRIVATE_KEY_RE = re.compile(r"^(0x)?[0-9a-fA-F]{64}$")


@dataclass(frozen=True)
class SignedMint:
    """A signed mintTo transaction that has not been broadcast."""

    to: str
    tx_hash: str
    raw_transaction: bytes


class MintChain(Protocol):
    """Chain-write and chain-read capabilities the relay needs."""

    def sign_mint(self, to: str) -> SignedMint:
        """Build and sign mintTo(to) without sending it."""
        ...

    def send_mint(self, signed: SignedMint) -> str:
        """Broadcast a signed mint; return the 0x transaction hash."""
        ...

    def wait_for_mint(self, tx_hash: str) -> str:
        """Wait for the receipt; return the minted token id. Raises ChainTimeout / ChainError."""
        ...

    def minted_token_ids(self, owner: str, from_block: int) -> list[str]:
        """Token ids from Minted(to=owner) logs, chain order, from_block..latest."""
        ...


def is_private_key(key: str) -> bool:
    """32-byte hex key, with or without 0x."""
    return bool(PRIVATE_KEY_RE.match((key or "").strip()))


def normalize_private_key(key: str) -> str:
    key = key.strip()
    return key if key.startswith("0x") else f"0x{key}"


class Web3MintChain:
    """MintChain over JSON-RPC via web3.py."""

    def __init__(
        self,
        rpc_url: str,
        contract_address: str,
        *,
        chain_id: int,
        private_key: str | None = None,
        receipt_timeout_sec: float = 120.0,
        http_timeout_sec: float = 20.0,
        poa: bool = False,
    ) -> None:
        self.w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": http_timeout_sec}))
        if poa:
            self.w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
        self.chain_id = chain_id
        self.contract = self.w3.eth.contract(
            address=Web3.to_checksum_address(contract_address), abi=TAP_NFT_ABI
        )
        self.receipt_timeout_sec = receipt_timeout_sec
        self._account = Account.from_key(normalize_private_key(private_key)) if private_key else None

    @property
    def relayer_address(self) -> str | None:
        return self._account.address if self._account else None

    def sign_mint(self, to: str) -> SignedMint:
        if self._account is None:
            raise ChainError("relayer key not configured")
        sender = self._account.address
        try:
            call = self.contract.functions.mintTo(Web3.to_checksum_address(to))
            gas_estimate = call.estimate_gas({"from": sender})
            tx = call.build_transaction(
                {
                    "from": sender,
                    "chainId": self.chain_id,
                    "nonce": self.w3.eth.get_transaction_count(sender, "pending"),
                    "gas": int(gas_estimate * GAS_HEADROOM),
                    "gasPrice": self.w3.eth.gas_price,
                }
            )
            signed = self._account.sign_transaction(tx)
        except Exception as e:
            logger.error("mint_sign_failed", to=short_address(to), error=str(e))
            raise ChainError(str(e)) from e
        return SignedMint(
            to=to, tx_hash=Web3.to_hex(signed.hash), raw_transaction=bytes(signed.raw_transaction)
        )

    def send_mint(self, signed: SignedMint) -> str:
        try:
            tx_hash = Web3.to_hex(self.w3.eth.send_raw_transaction(signed.raw_transaction))
        except Exception as e:
            logger.error("mint_send_failed", to=short_address(signed.to), tx_hash=signed.tx_hash, error=str(e))
            raise ChainError(str(e)) from e
        logger.info("mint_submitted", to=short_address(signed.to), tx_hash=tx_hash)
        return tx_hash

    def wait_for_mint(self, tx_hash: str) -> str:
        try:
            receipt = self.w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self.receipt_timeout_sec, poll_latency=RECEIPT_POLL_SEC
            )
        except TimeExhausted as e:
            logger.warning("mint_receipt_timeout", tx_hash=tx_hash, timeout_sec=self.receipt_timeout_sec)
            raise ChainTimeout(tx_hash, self.receipt_timeout_sec) from e
        except Exception as e:
            logger.error("mint_receipt_failed", tx_hash=tx_hash, error=str(e))
            raise ChainError(str(e)) from e
        if receipt["status"] != 1:
            logger.error("mint_reverted", tx_hash=tx_hash, block=receipt.get("blockNumber"))
            raise ChainError(f"transaction {tx_hash} reverted")
        events = self.contract.events.Minted().process_receipt(receipt, errors=DISCARD)
        if not events:
            logger.warning("mint_event_missing", tx_hash=tx_hash)
            return ""
        return str(events[0]["args"]["tokenId"])

    def minted_token_ids(self, owner: str, from_block: int) -> list[str]:
        logs = self.contract.events.Minted().get_logs(
            argument_filters={"to": Web3.to_checksum_address(owner)},
            from_block=from_block,
            to_block="latest",
        )
        return [str(log["args"]["tokenId"]) for log in logs]


def build_mint_chain(settings: Settings) -> MintChain:
    """Web3MintChain for the configured contract, RPC and relayer key; simulated chain in dry-run mode."""
    if settings.dry_run:
        from tapmint.chain.memory import get_dry_run_chain

        return get_dry_run_chain()
    return Web3MintChain(
        settings.status_rpc_url,
        settings.contract_address,
        chain_id=settings.chain_id,
        private_key=settings.relayer_private_key or None,
        receipt_timeout_sec=settings.receipt_timeout_sec,
        http_timeout_sec=settings.http_timeout_sec,
        poa=settings.chain_poa,
    )
