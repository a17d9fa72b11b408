"""
Tests for ENS namehash and the registry/resolver lookup with RPC fallback.

Web3 clients are replaced with MagicMock; no network.
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from tapmint.chain.abi import ZERO_ADDRESS
from tapmint.chain.ens import Web3EnsResolver, build_name_resolver, is_ens_name, namehash

from conftest import ALICE

RESOLVER = "0x4976fb03C32e5B8cfe2b6cCB31c09Ba78EBaBa41"


def fake_w3(resolver_address=RESOLVER, address=ALICE.lower(), error=None):
    """Web3 stand-in whose registry and resolver contracts answer the given values."""
    w3 = MagicMock()
    if error is not None:
        w3.eth.contract.side_effect = error
        return w3
    functions = w3.eth.contract.return_value.functions
    functions.resolver.return_value.call.return_value = resolver_address
    functions.addr.return_value.call.return_value = address
    return w3


def test_namehash_vectors():
    assert namehash("") == b"\x00" * 32
    assert namehash("eth").hex() == "93cdeb708b7545dc668eb9280176169d1c33cfd8ed6f04690a0bcc88a93fc4ae"
    assert namehash("foo.eth").hex() == "de9b09fd7c5f901e23a3f19fecc54828e9c848539801e86591bd9801b019f84f"


def test_namehash_normalizes_input():
    assert namehash("  Foo.ETH ") == namehash("foo.eth")
    assert namehash("foo.eth.") == namehash("foo.eth")


def test_is_ens_name():
    assert is_ens_name("alice.eth")
    assert is_ens_name("Sub.Alice.ETH ")
    assert not is_ens_name(ALICE)
    assert not is_ens_name("alice.xyz")


def test_resolve_returns_checksum_address():
    resolver = Web3EnsResolver(["https://rpc.one"])
    w3 = fake_w3()
    with patch.object(resolver, "_w3", return_value=w3):
        assert resolver.resolve("Alice.eth") == ALICE
    node = namehash("alice.eth")
    w3.eth.contract.return_value.functions.resolver.assert_called_once_with(node)
    w3.eth.contract.return_value.functions.addr.assert_called_once_with(node)


def test_resolve_zero_resolver_is_unregistered():
    resolver = Web3EnsResolver(["https://rpc.one", "https://rpc.two"])
    clients = {"https://rpc.one": fake_w3(resolver_address=ZERO_ADDRESS), "https://rpc.two": fake_w3()}
    with patch.object(resolver, "_w3", side_effect=clients.__getitem__):
        assert resolver.resolve("nobody.eth") is None
    # an authoritative "not registered" does not fall through to the next RPC
    clients["https://rpc.two"].eth.contract.assert_not_called()


def test_resolve_zero_address_is_unregistered():
    resolver = Web3EnsResolver(["https://rpc.one"])
    with patch.object(resolver, "_w3", return_value=fake_w3(address=ZERO_ADDRESS)):
        assert resolver.resolve("empty.eth") is None


def test_resolve_falls_back_to_next_rpc():
    resolver = Web3EnsResolver(["https://rpc.one", "https://rpc.two"])
    clients = {
        "https://rpc.one": fake_w3(error=ConnectionError("rpc down")),
        "https://rpc.two": fake_w3(),
    }
    with patch.object(resolver, "_w3", side_effect=clients.__getitem__):
        assert resolver.resolve("alice.eth") == ALICE


def test_resolve_all_rpcs_failing_yields_none():
    resolver = Web3EnsResolver(["https://rpc.one", "https://rpc.two"])
    with patch.object(resolver, "_w3", return_value=fake_w3(error=TimeoutError("slow"))):
        assert resolver.resolve("alice.eth") is None


def test_resolve_skips_non_eth_names():
    resolver = Web3EnsResolver(["https://rpc.one"])
    with patch.object(resolver, "_w3") as w3:
        assert resolver.resolve("alice.xyz") is None
    w3.assert_not_called()


def test_resolver_requires_rpc():
    with pytest.raises(ValueError):
        Web3EnsResolver([])


def test_build_name_resolver_uses_settings(settings):
    from dataclasses import replace

    resolver = build_name_resolver(replace(settings, mainnet_rpc_urls=("https://a", "https://b")))
    assert resolver._rpc_urls == ["https://a", "https://b"]
