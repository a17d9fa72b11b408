"""
Pytest fixtures for relayer tests. Memory store and simulated chain; no RPC.
"""

from __future__ import annotations

import pytest

TAP_KEY = "test-tap-key"
CONTRACT = "0x1111111111111111111111111111111111111111"
RELAYER_KEY = "0x" + "11" * 32
ALICE = "0x52908400098527886E0F7030069857D2E4169EE7"
BOB = "0x8617E340B3D01FA5F11F306F4090FD50E238070D"


class FakeNames:
    """NameResolver over a dict; names missing from it are unregistered."""

    def __init__(self, names: dict[str, str] | None = None) -> None:
        self.names = dict(names or {})
        self.calls: list[str] = []

    def resolve(self, name: str) -> str | None:
        self.calls.append(name)
        return self.names.get(name.lower())


class FakeClock:
    def __init__(self, start_ms: int = 1_700_000_000_000) -> None:
        self.now = start_ms

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Isolate every test from the host environment and process-wide caches."""
    for name in (
        "TAP_KEY",
        "CONTRACT_ADDRESS",
        "CONTRACT_DEPLOY_BLOCK",
        "RELAYER_PRIVATE_KEY",
        "ALLOWED_ORIGINS",
        "DATABASE_URL",
        "TAPMINT_DB_URL",
        "TAPMINT_DRY_RUN",
        "MAINNET_RPC_URL",
        "MAINNET_RPC_URLS",
        "STATUS_RPC_URL",
        "STATUS_CHAIN_ID",
        "CHAIN_POA",
        "CHAIN_RECEIPT_TIMEOUT_SEC",
        "CHAIN_HTTP_TIMEOUT_SEC",
    ):
        monkeypatch.delenv(name, raising=False)

    from tapmint.config import reset_settings_cache
    from tapmint.database import reset_store_for_test

    reset_settings_cache()
    reset_store_for_test()
    yield
    reset_settings_cache()
    reset_store_for_test()


@pytest.fixture
def settings():
    from tapmint.config import Settings

    return Settings(tap_key=TAP_KEY, contract_address=CONTRACT, relayer_private_key=RELAYER_KEY)


@pytest.fixture
def store():
    from tapmint.database import MemoryMintStore

    return MemoryMintStore()


@pytest.fixture
def sql_store(tmp_path):
    """SqlMintStore on a temporary SQLite file, schema created."""
    from tapmint.database import SqlMintStore

    s = SqlMintStore(f"sqlite:///{tmp_path / 'tapmint.db'}")
    s.ensure_schema()
    yield s
    s.dispose()


@pytest.fixture
def chain():
    from tapmint.chain import InMemoryMintChain

    return InMemoryMintChain()


@pytest.fixture
def names():
    return FakeNames({"alice.eth": ALICE})


@pytest.fixture
def identity(names):
    from tapmint.relay import IdentityResolver

    return IdentityResolver(names)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def relay(settings, store, identity, chain, clock):
    from tapmint.relay import MintRelay

    return MintRelay(settings, store, identity, lambda _s: chain, clock=clock)


@pytest.fixture
def lookup(settings, identity, chain):
    from tapmint.relay import MintedLookup

    return MintedLookup(settings, identity, lambda _s: chain)


@pytest.fixture
def client(settings, relay, lookup, identity):
    """FastAPI TestClient with relay dependencies pointed at the fixtures above."""
    from fastapi.testclient import TestClient

    from tapmint.api_server import routes
    from tapmint.api_server.server import app

    app.dependency_overrides[routes.get_app_settings] = lambda: settings
    app.dependency_overrides[routes.get_identity_resolver] = lambda: identity
    app.dependency_overrides[routes.get_mint_relay] = lambda: relay
    app.dependency_overrides[routes.get_minted_lookup] = lambda: lookup
    yield TestClient(app)
    app.dependency_overrides.clear()
