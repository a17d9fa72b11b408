"""
tapmint — gas relayer for the tap-to-mint NFT promotion.

Accepts tap-authorized mint requests, resolves ENS names, mints on behalf of
users through the relayer wallet, and lists past mints. Modular layout:
config, logging, store (database), chain client, relay handlers, API server.
"""

__version__ = "0.1.0"
