"""
Application settings.

Settings are read from the environment once per process (after .env is
loaded) and cached; tests call reset_settings_cache() after monkeypatching env.
"""

from __future__ import annotations

import functools
from dataclasses import dataclass, field

from tapmint.config.env import (
    DEFAULT_ALLOWED_ORIGINS,
    DEFAULT_STATUS_CHAIN_ID,
    DEFAULT_STATUS_RPC_URL,
    env_flag,
    env_float,
    env_int,
    env_list,
    env_str,
    get_database_url,
    get_mainnet_rpc_urls,
    load_tapmint_env,
)


@dataclass(frozen=True)
class Settings:
    """Typed relayer configuration."""

    tap_key: str = ""
    status_rpc_url: str = DEFAULT_STATUS_RPC_URL
    chain_id: int = DEFAULT_STATUS_CHAIN_ID
    contract_address: str = ""
    contract_deploy_block: str = ""
    relayer_private_key: str = field(default="", repr=False)
    mainnet_rpc_urls: tuple[str, ...] = ()
    chain_poa: bool = False
    receipt_timeout_sec: float = 120.0
    http_timeout_sec: float = 20.0
    allowed_origins: tuple[str, ...] = DEFAULT_ALLOWED_ORIGINS
    database_url: str = ""
    dry_run: bool = False

    @property
    def relayer_configured(self) -> bool:
        return bool(self.relayer_private_key)


def load_settings() -> Settings:
    """Build Settings from the current environment."""
    load_tapmint_env()
    return Settings(
        tap_key=env_str("TAP_KEY"),
        status_rpc_url=env_str("STATUS_RPC_URL", DEFAULT_STATUS_RPC_URL),
        chain_id=env_int("STATUS_CHAIN_ID", DEFAULT_STATUS_CHAIN_ID),
        contract_address=env_str("CONTRACT_ADDRESS"),
        contract_deploy_block=env_str("CONTRACT_DEPLOY_BLOCK"),
        relayer_private_key=env_str("RELAYER_PRIVATE_KEY"),
        mainnet_rpc_urls=tuple(get_mainnet_rpc_urls()),
        chain_poa=env_flag("CHAIN_POA"),
        receipt_timeout_sec=env_float("CHAIN_RECEIPT_TIMEOUT_SEC", 120.0),
        http_timeout_sec=env_float("CHAIN_HTTP_TIMEOUT_SEC", 20.0),
        allowed_origins=tuple(env_list("ALLOWED_ORIGINS")) or DEFAULT_ALLOWED_ORIGINS,
        database_url=get_database_url(),
        dry_run=env_flag("TAPMINT_DRY_RUN"),
    )


@functools.lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings (cached)."""
    return load_settings()


def reset_settings_cache() -> None:
    get_settings.cache_clear()
