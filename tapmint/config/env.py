"""
Environment variable loading for tapmint.

- STATUS_RPC_URL / STATUS_CHAIN_ID: chain the NFT contract lives on
- MAINNET_RPC_URLS / MAINNET_RPC_URL: Ethereum mainnet RPC(s) for ENS
- CONTRACT_ADDRESS, CONTRACT_DEPLOY_BLOCK, RELAYER_PRIVATE_KEY, TAP_KEY
- Loads .env from project root when available.
"""

from __future__ import annotations

import os
from pathlib import Path

# Project root: config is tapmint/config/, root is 2 levels up
_CONFIG_DIR = Path(__file__).resolve().parent
_PACKAGE_DIR = _CONFIG_DIR.parent
_ROOT = _PACKAGE_DIR.parent
_ENV_PATH = _ROOT / ".env"

DEFAULT_STATUS_RPC_URL = "https://public.sepolia.rpc.status.network"
DEFAULT_STATUS_CHAIN_ID = 1660990954
DEFAULT_MAINNET_RPC_URL = "https://cloudflare-eth.com"
DEFAULT_ALLOWED_ORIGINS = ("https://phift.github.io", "http://localhost:5173")

_TRUTHY = ("1", "true", "yes", "on")


def load_tapmint_env() -> None:
    """Load .env from project root. Existing environment variables win."""
    from dotenv import load_dotenv

    if _ENV_PATH.is_file():
        load_dotenv(_ENV_PATH, override=False)


def env_str(name: str, default: str = "") -> str:
    return (os.getenv(name) or default).strip()


def env_int(name: str, default: int) -> int:
    raw = env_str(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def env_float(name: str, default: float) -> float:
    raw = env_str(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def env_flag(name: str) -> bool:
    return env_str(name).lower() in _TRUTHY


def env_list(name: str) -> list[str]:
    """Comma-separated env value as a list of non-empty, stripped entries."""
    return [part.strip() for part in env_str(name).split(",") if part.strip()]


def get_mainnet_rpc_urls() -> list[str]:
    """
    ENS RPC endpoints in priority order.
    Order: MAINNET_RPC_URLS (comma-separated) > MAINNET_RPC_URL > public default.
    """
    urls = env_list("MAINNET_RPC_URLS")
    single = env_str("MAINNET_RPC_URL")
    if single and single not in urls:
        urls.append(single)
    return urls or [DEFAULT_MAINNET_RPC_URL]


def get_database_url() -> str:
    """TAPMINT_DB_URL or DATABASE_URL; empty string selects the in-memory store."""
    return env_str("TAPMINT_DB_URL") or env_str("DATABASE_URL")
