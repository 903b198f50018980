"""Dependency injection singletons for Gaius-Engine."""

from gaius_engine.common.config import get_settings
from gaius_engine.common.database import DatabaseManager
from gaius_engine.entitlements.service import EntitlementService
from gaius_engine.ledger.client import AlgodLedgerClient, LedgerClient
from gaius_engine.payments.processor import PaymentProcessor
from gaius_engine.subscriptions.resolver import SubscriptionResolver
from gaius_engine.subscriptions.store import SqlEntitlementStore

_db: DatabaseManager | None = None
_ledger: LedgerClient | None = None
_store: SqlEntitlementStore | None = None
_resolver: SubscriptionResolver | None = None
_entitlements: EntitlementService | None = None
_processor: PaymentProcessor | None = None


def get_db() -> DatabaseManager:
    global _db
    if _db is None:
        _db = DatabaseManager(get_settings())
    return _db


def get_ledger() -> LedgerClient:
    global _ledger
    if _ledger is None:
        _ledger = AlgodLedgerClient.from_settings(get_settings())
    return _ledger


def set_ledger(ledger: LedgerClient | None) -> None:
    """Swap the ledger client (tests, or an alternative node backend)."""
    global _ledger, _entitlements, _processor
    _ledger = ledger
    _entitlements = None
    _processor = None


async def close_ledger() -> None:
    """Close the ledger client if one was built, without creating one."""
    ledger = _ledger
    set_ledger(None)
    if ledger is not None and hasattr(ledger, "close"):
        await ledger.close()


def get_store() -> SqlEntitlementStore:
    global _store
    if _store is None:
        _store = SqlEntitlementStore(get_db())
    return _store


def get_resolver() -> SubscriptionResolver:
    global _resolver
    if _resolver is None:
        _resolver = SubscriptionResolver(get_store())
    return _resolver


def get_entitlement_service() -> EntitlementService:
    global _entitlements
    if _entitlements is None:
        _entitlements = EntitlementService(
            get_resolver(),
            get_ledger(),
            program_marker=get_settings().program_marker,
        )
    return _entitlements


def get_payment_processor() -> PaymentProcessor:
    global _processor
    if _processor is None:
        _processor = PaymentProcessor(get_settings(), get_ledger(), get_store())
    return _processor


def reset_singletons() -> None:
    """Reset all singletons (for testing)."""
    global _db, _ledger, _store, _resolver, _entitlements, _processor
    _db = None
    _ledger = None
    _store = None
    _resolver = None
    _entitlements = None
    _processor = None
