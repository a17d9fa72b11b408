"""
Chain access — the NFT contract (mintTo, Minted logs) and ENS name resolution.

Web3-backed implementations of the MintChain and NameResolver interfaces used
by the relay handlers, plus a simulated contract for dry runs and tests.
"""

from tapmint.chain.client import MintChain, SignedMint, Web3MintChain, build_mint_chain, is_private_key
from tapmint.chain.ens import NameResolver, Web3EnsResolver, build_name_resolver, is_ens_name, namehash
from tapmint.chain.memory import InMemoryMintChain

__all__ = [
    "InMemoryMintChain",
    "MintChain",
    "NameResolver",
    "SignedMint",
    "Web3EnsResolver",
    "Web3MintChain",
    "build_mint_chain",
    "build_name_resolver",
    "is_ens_name",
    "is_private_key",
    "namehash",
]
