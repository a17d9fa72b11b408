"""
Tests for identity resolution: literal addresses in any case, ENS names via the name resolver.
"""

from __future__ import annotations

import pytest

from tapmint.relay import IdentityResolver, normalize_address

from conftest import ALICE, FakeNames


@pytest.mark.parametrize("value", [ALICE, ALICE.lower(), "0x" + ALICE[2:].upper(), f"  {ALICE}  "])
def test_normalize_address_any_case(value):
    assert normalize_address(value) == ALICE


def test_normalize_address_accepts_bad_checksum():
    mixed = "0x52908400098527886e0F7030069857D2E4169EE7"
    assert normalize_address(mixed) == ALICE


@pytest.mark.parametrize(
    "value",
    ["", "0x", "52908400098527886E0F7030069857D2E4169EE7", ALICE + "00", ALICE[:-1] + "g", "alice.eth"],
)
def test_normalize_address_rejects(value):
    assert normalize_address(value) is None


def test_resolve_routes_ens_names(identity, names):
    assert identity.resolve("Alice.ETH") == ALICE
    assert names.calls == ["Alice.ETH"]
    assert identity.resolve("nobody.eth") is None


def test_resolve_literal_does_not_touch_ens(identity, names):
    assert identity.resolve(ALICE.lower()) == ALICE
    assert names.calls == []


def test_resolve_empty(identity):
    assert identity.resolve("") is None
    assert identity.resolve("   ") is None


def test_resolve_name_failure_is_none():
    class Broken:
        def resolve(self, name):
            raise RuntimeError("rpc exploded")

    assert IdentityResolver(Broken()).resolve("alice.eth") is None


def test_resolve_name_garbage_answer_is_none():
    assert IdentityResolver(FakeNames({"odd.eth": "not-an-address"})).resolve("odd.eth") is None
