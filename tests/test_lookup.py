"""
Tests for the minted lookup and block parsing.
"""

from __future__ import annotations

from dataclasses import replace
from unittest.mock import MagicMock

import pytest

from tapmint.core.exceptions import BadRequest, LookupFailed, Misconfigured
from tapmint.relay import MintedLookup, parse_block

from conftest import ALICE, BOB


@pytest.mark.parametrize(
    "value, expected",
    [(None, 0), ("", 0), ("42", 42), ("0x2a", 42), ("0X2A", 42), (" 7 ", 7), ("-5", 0), ("abc", 0), ("0xzz", 0)],
)
def test_parse_block(value, expected):
    assert parse_block(value) == expected


def test_lookup_lists_tokens_in_order(lookup, chain):
    chain.submit_mint(ALICE)
    chain.submit_mint(BOB)
    chain.submit_mint(ALICE)
    result = lookup.lookup(address=ALICE.lower())
    assert result == {"address": ALICE, "count": 2, "tokenIds": ["1", "3"], "lastTokenId": "3"}


def test_lookup_by_name(lookup, chain):
    chain.submit_mint(ALICE)
    assert lookup.lookup(name="alice.eth")["tokenIds"] == ["1"]


def test_lookup_address_takes_precedence(lookup, chain):
    chain.submit_mint(ALICE)
    assert lookup.lookup(address=BOB, name="alice.eth")["address"] == BOB


def test_lookup_from_block(lookup, chain):
    for _ in range(3):
        chain.submit_mint(ALICE)
    assert lookup.lookup(address=ALICE, from_block="0x2")["tokenIds"] == ["2", "3"]


def test_lookup_defaults_to_deploy_block(settings, identity, chain):
    for _ in range(3):
        chain.submit_mint(ALICE)
    lookup = MintedLookup(replace(settings, contract_deploy_block="3"), identity, lambda _s: chain)
    assert lookup.lookup(address=ALICE)["tokenIds"] == ["3"]
    # explicit fromBlock wins over the deploy block
    assert lookup.lookup(address=ALICE, from_block="1")["count"] == 3


def test_lookup_requires_input(lookup):
    with pytest.raises(BadRequest, match="address is required"):
        lookup.lookup()
    with pytest.raises(BadRequest, match="Invalid address or ENS name"):
        lookup.lookup(address="nobody.eth")


def test_lookup_requires_contract(settings, identity, chain):
    lookup = MintedLookup(replace(settings, contract_address=""), identity, lambda _s: chain)
    with pytest.raises(Misconfigured, match="CONTRACT_ADDRESS is not configured"):
        lookup.lookup(address=ALICE)


def test_lookup_chain_failure(settings, identity):
    broken = MagicMock()
    broken.minted_token_ids.side_effect = ConnectionError("rpc down")
    lookup = MintedLookup(settings, identity, lambda _s: broken)
    with pytest.raises(LookupFailed) as exc_info:
        lookup.lookup(address=ALICE)
    assert exc_info.value.to_body() == {"error": "Minted lookup failed"}
    broken.minted_token_ids.assert_called_once_with(ALICE, 0)
