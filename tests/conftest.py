"""Shared test fixtures for Gaius-Engine."""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest
from algosdk import account
from httpx import ASGITransport, AsyncClient

from gaius_engine.common.config import GaiusSettings
from gaius_engine.common.database import DatabaseManager
from gaius_engine.ledger.client import (
    AssetHolding,
    AssetInfo,
    ConfirmedTransaction,
    TransactionParams,
)
from gaius_engine.subscriptions.store import SqlEntitlementStore


API_KEY = "test-admin-api-key"
NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)
TESTNET_GENESIS_HASH = "SGO1GKSzyE7IEPItTxCByw9x8FmnrCDexi9/cOUJOiI="


class FakeClock:
    """Settable clock; call it to read the time."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakeLedger:
    """In-memory LedgerClient. Set the ``*_error`` attributes to simulate failures."""

    def __init__(self):
        self.params = TransactionParams(
            fee=0,
            min_fee=1000,
            first_round=1000,
            last_round=2000,
            genesis_id="testnet-v1.0",
            genesis_hash=TESTNET_GENESIS_HASH,
        )
        self.next_tx_id = "ABC123"
        self.params_error: Optional[Exception] = None
        self.submit_error: Optional[Exception] = None
        self.confirm_error: Optional[Exception] = None
        self.account_error: Optional[Exception] = None
        self.submitted: list[list[bytes]] = []
        self.confirm_calls: list[tuple[str, int]] = []
        self.holdings: dict[str, list[AssetHolding]] = {}
        self.assets: dict[int, AssetInfo] = {}
        self.transactions: dict[str, ConfirmedTransaction] = {}
        self.closed = False

    async def get_transaction_params(self) -> TransactionParams:
        if self.params_error:
            raise self.params_error
        return self.params

    async def submit_signed_transaction(self, signed_txns: list[bytes]) -> str:
        if self.submit_error:
            raise self.submit_error
        self.submitted.append(signed_txns)
        return self.next_tx_id

    async def wait_for_confirmation(self, tx_id: str, max_rounds: int) -> ConfirmedTransaction:
        self.confirm_calls.append((tx_id, max_rounds))
        if self.confirm_error:
            raise self.confirm_error
        return ConfirmedTransaction(tx_id=tx_id, confirmed_round=1001)

    async def get_transaction(self, tx_id: str) -> Optional[ConfirmedTransaction]:
        return self.transactions.get(tx_id)

    async def get_account_assets(self, address: str) -> list[AssetHolding]:
        if self.account_error:
            raise self.account_error
        return list(self.holdings.get(address, []))

    async def get_asset_info(self, asset_id: int) -> Optional[AssetInfo]:
        return self.assets.get(asset_id)

    def give_programs(self, address: str, count: int, start_id: int = 1000) -> None:
        """Put ``count`` unique program assets in ``address``'s account."""
        for asset_id in range(start_id, start_id + count):
            self.assets[asset_id] = AssetInfo(asset_id=asset_id, total=1, decimals=0, name=f"Program {asset_id}")
            self.holdings.setdefault(address, []).append(AssetHolding(asset_id=asset_id, amount=1))

    async def close(self) -> None:
        self.closed = True


class FakeSigner:
    """WalletSigner that signs, declines, fails or hangs on demand."""

    def __init__(self, error: Optional[Exception] = None, unsigned: bool = False, delay: float = 0):
        self.error = error
        self.unsigned = unsigned
        self.delay = delay
        self.calls: list[list[bytes]] = []

    async def sign_transactions(self, txns: list[bytes]) -> list[Optional[bytes]]:
        self.calls.append(txns)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        if self.unsigned:
            return [None for _ in txns]
        return [b"signed:" + t for t in txns]


def new_address() -> str:
    _, address = account.generate_account()
    return address


@pytest.fixture
def wallet():
    return new_address()


@pytest.fixture
def receiver():
    return new_address()


@pytest.fixture
def settings(receiver):
    return GaiusSettings(
        db_url="sqlite+aiosqlite://",
        subscription_wallet=receiver,
        api_key=API_KEY,
        signing_timeout=1.0,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def signer():
    return FakeSigner()


@pytest.fixture
def make_signer():
    return FakeSigner


@pytest.fixture
async def db(settings):
    manager = DatabaseManager(settings)
    await manager.init()
    await manager.create_all()
    yield manager
    await manager.close()


@pytest.fixture
def store(db):
    return SqlEntitlementStore(db)


# ── API fixtures ──


@pytest.fixture
def app(monkeypatch, receiver, ledger):
    """Create a test app with in-memory DB and a fake ledger."""
    monkeypatch.setenv("GAIUS_DB_URL", "sqlite+aiosqlite://")
    monkeypatch.setenv("GAIUS_API_KEY", API_KEY)
    monkeypatch.setenv("GAIUS_SUBSCRIPTION_WALLET", receiver)

    # Clear caches and singletons so new env vars take effect
    from gaius_engine.common.config import get_settings
    get_settings.cache_clear()

    from gaius_engine.deps import reset_singletons, set_ledger
    reset_singletons()
    set_ledger(ledger)

    from gaius_engine.app import create_app
    yield create_app()

    reset_singletons()
    get_settings.cache_clear()


@pytest.fixture
async def client(app):
    # Manually init DB since ASGITransport doesn't run lifespan
    from gaius_engine.deps import get_db
    db = get_db()
    await db.init()
    await db.create_all()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await db.close()


@pytest.fixture
def admin_headers():
    return {"X-Gaius-Api-Key": API_KEY}
