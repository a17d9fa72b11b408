"""Minimal ABIs for the tap NFT contract and the ENS registry/resolver."""

from __future__ import annotations

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

TAP_NFT_ABI = [
    {
        "type": "function",
        "name": "mintTo",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "to", "type": "address"}],
        "outputs": [{"name": "tokenId", "type": "uint256"}],
    },
    {
        "type": "event",
        "name": "Minted",
        "anonymous": False,
        "inputs": [
            {"name": "to", "type": "address", "indexed": True},
            {"name": "tokenId", "type": "uint256", "indexed": True},
        ],
    },
]

ENS_REGISTRY_ADDRESS = "0x00000000000C2E074eC69A0dFb2997BA6C7d2e1e"

ENS_REGISTRY_ABI = [
    {
        "name": "resolver",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "node", "type": "bytes32"}],
        "outputs": [{"name": "resolver", "type": "address"}],
    }
]

ENS_RESOLVER_ABI = [
    {
        "name": "addr",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "node", "type": "bytes32"}],
        "outputs": [{"name": "addr", "type": "address"}],
    }
]
