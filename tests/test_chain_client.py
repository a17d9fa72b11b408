"""
Tests for Web3MintChain with the JSON-RPC client and contract mocked out.

Signing uses a real eth_account key; nothing is sent to a node.
"""

from __future__ import annotations

from dataclasses import replace
from unittest.mock import MagicMock

import pytest
from web3.exceptions import TimeExhausted

from tapmint.chain import InMemoryMintChain, Web3MintChain, build_mint_chain
from tapmint.chain.client import GAS_HEADROOM, is_private_key, normalize_private_key
from tapmint.core.exceptions import ChainError, ChainTimeout

from conftest import ALICE, CONTRACT, RELAYER_KEY

TX_HASH = "0x" + "12" * 32


@pytest.fixture
def mint_chain():
    chain = Web3MintChain(
        "http://127.0.0.1:8545",
        CONTRACT,
        chain_id=1660990954,
        private_key=RELAYER_KEY,
        receipt_timeout_sec=5,
    )
    chain.w3 = MagicMock()
    chain.contract = MagicMock()
    return chain


def test_normalize_private_key():
    assert normalize_private_key("ab" * 32) == "0x" + "ab" * 32
    assert normalize_private_key(" 0x" + "ab" * 32 + " ") == "0x" + "ab" * 32


@pytest.mark.parametrize(
    "key, ok",
    [
        (RELAYER_KEY, True),
        ("ab" * 32, True),
        (" 0x" + "AB" * 32 + " ", True),
        ("", False),
        ("not-hex", False),
        ("0x" + "ab" * 31, False),
        ("0x" + "zz" * 32, False),
    ],
)
def test_is_private_key(key, ok):
    assert is_private_key(key) is ok


def _mock_mint_call(mint_chain):
    call = mint_chain.contract.functions.mintTo.return_value
    call.estimate_gas.return_value = 100_000
    call.build_transaction.return_value = {
        "to": CONTRACT,
        "value": 0,
        "data": "0x",
        "gas": int(100_000 * GAS_HEADROOM),
        "gasPrice": 1_000_000_000,
        "nonce": 4,
        "chainId": 1660990954,
    }
    mint_chain.w3.eth.get_transaction_count.return_value = 4
    mint_chain.w3.eth.gas_price = 1_000_000_000
    return call


def test_sign_mint_builds_tx_without_sending(mint_chain):
    call = _mock_mint_call(mint_chain)

    signed = mint_chain.sign_mint(ALICE.lower())

    assert signed.to == ALICE.lower()
    assert signed.tx_hash.startswith("0x") and len(signed.tx_hash) == 66
    assert signed.raw_transaction
    mint_chain.contract.functions.mintTo.assert_called_once_with(ALICE)
    sender = mint_chain.relayer_address
    mint_chain.w3.eth.get_transaction_count.assert_called_once_with(sender, "pending")
    tx = call.build_transaction.call_args[0][0]
    assert tx["gas"] == 120_000
    assert tx["nonce"] == 4
    assert tx["chainId"] == 1660990954
    mint_chain.w3.eth.send_raw_transaction.assert_not_called()


def test_send_mint_broadcasts_signed_bytes(mint_chain):
    _mock_mint_call(mint_chain)
    mint_chain.w3.eth.send_raw_transaction.return_value = bytes.fromhex("12" * 32)

    signed = mint_chain.sign_mint(ALICE)
    assert mint_chain.send_mint(signed) == TX_HASH

    mint_chain.w3.eth.send_raw_transaction.assert_called_once_with(signed.raw_transaction)


def test_sign_mint_wraps_rpc_errors(mint_chain):
    mint_chain.contract.functions.mintTo.return_value.estimate_gas.side_effect = ValueError(
        "execution reverted: Mint limit reached"
    )
    with pytest.raises(ChainError, match="Mint limit reached"):
        mint_chain.sign_mint(ALICE)
    mint_chain.w3.eth.send_raw_transaction.assert_not_called()


def test_send_mint_wraps_rpc_errors(mint_chain):
    _mock_mint_call(mint_chain)
    mint_chain.w3.eth.send_raw_transaction.side_effect = ValueError("nonce too low")
    signed = mint_chain.sign_mint(ALICE)
    with pytest.raises(ChainError, match="nonce too low"):
        mint_chain.send_mint(signed)


def test_sign_mint_without_key():
    chain = Web3MintChain("http://127.0.0.1:8545", CONTRACT, chain_id=1)
    assert chain.relayer_address is None
    with pytest.raises(ChainError):
        chain.sign_mint(ALICE)


def test_wait_for_mint_returns_token_id(mint_chain):
    receipt = {"status": 1, "blockNumber": 10}
    mint_chain.w3.eth.wait_for_transaction_receipt.return_value = receipt
    minted = mint_chain.contract.events.Minted.return_value
    minted.process_receipt.return_value = [{"args": {"to": ALICE, "tokenId": 7}}]
    assert mint_chain.wait_for_mint(TX_HASH) == "7"
    mint_chain.w3.eth.wait_for_transaction_receipt.assert_called_once()
    assert mint_chain.w3.eth.wait_for_transaction_receipt.call_args.kwargs["timeout"] == 5


def test_wait_for_mint_missing_event(mint_chain):
    mint_chain.w3.eth.wait_for_transaction_receipt.return_value = {"status": 1}
    mint_chain.contract.events.Minted.return_value.process_receipt.return_value = []
    assert mint_chain.wait_for_mint(TX_HASH) == ""


def test_wait_for_mint_reverted(mint_chain):
    mint_chain.w3.eth.wait_for_transaction_receipt.return_value = {"status": 0, "blockNumber": 3}
    with pytest.raises(ChainError, match="reverted"):
        mint_chain.wait_for_mint(TX_HASH)


def test_wait_for_mint_timeout(mint_chain):
    mint_chain.w3.eth.wait_for_transaction_receipt.side_effect = TimeExhausted("no receipt")
    with pytest.raises(ChainTimeout) as exc_info:
        mint_chain.wait_for_mint(TX_HASH)
    assert exc_info.value.tx_hash == TX_HASH


def test_minted_token_ids_filters_by_recipient(mint_chain):
    minted = mint_chain.contract.events.Minted.return_value
    minted.get_logs.return_value = [{"args": {"tokenId": 2}}, {"args": {"tokenId": 9}}]
    assert mint_chain.minted_token_ids(ALICE.lower(), 100) == ["2", "9"]
    minted.get_logs.assert_called_once_with(
        argument_filters={"to": ALICE}, from_block=100, to_block="latest"
    )


def test_build_mint_chain(settings):
    assert isinstance(build_mint_chain(settings), Web3MintChain)
    dry = build_mint_chain(replace(settings, dry_run=True))
    assert isinstance(dry, InMemoryMintChain)
    assert build_mint_chain(replace(settings, dry_run=True)) is dry


def test_memory_chain_enforces_contract_rules():
    chain = InMemoryMintChain(max_per_recipient=1)
    tx = chain.submit_mint(ALICE)
    assert chain.wait_for_mint(tx) == "1"
    with pytest.raises(ChainError, match="Mint limit reached"):
        chain.submit_mint(ALICE.lower())
    chain.paused = True
    with pytest.raises(ChainError, match="paused"):
        chain.submit_mint(CONTRACT)
    with pytest.raises(ChainError):
        chain.wait_for_mint("0x" + "00" * 32)


def test_memory_chain_sign_then_send():
    chain = InMemoryMintChain()
    signed = chain.sign_mint(ALICE)
    assert chain.submissions == 0
    assert chain.send_mint(signed) == signed.tx_hash
    # a rebroadcast of the same signed tx does not mint twice
    assert chain.send_mint(signed) == signed.tx_hash
    assert chain.balance_of(ALICE) == 1
    assert chain.sign_mint(ALICE).tx_hash != signed.tx_hash
