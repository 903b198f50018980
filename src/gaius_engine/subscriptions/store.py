"""Entitlement storage: the engine's narrow read/write interface to subscription rows."""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from gaius_engine.common.database import DatabaseManager
from gaius_engine.common.exceptions import RecordWriteFailedError, ResolverUnavailableError
from gaius_engine.subscriptions.models import SubscriptionModel, SubscriptionPaymentModel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubscriptionRow:
    wallet_address: str
    plan: str
    activated_at: datetime
    expiry_date: datetime
    tx_id: str


@dataclass(frozen=True)
class PaymentRow:
    tx_id: str
    wallet_address: str
    plan: str
    amount: int
    paid_at: datetime
    expiry_date: datetime
    confirmed_round: int = 0


class EntitlementStore(Protocol):
    async def find_subscription(self, wallet_address: str) -> Optional[SubscriptionRow]: ...

    async def upsert_subscription(
        self, row: SubscriptionRow, payment: Optional[PaymentRow] = None
    ) -> bool: ...

    async def find_payment(self, tx_id: str) -> Optional[PaymentRow]: ...


def _aware(value: datetime) -> datetime:
    # SQLite drops tzinfo on the way back out
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_row(model: SubscriptionModel) -> SubscriptionRow:
    return SubscriptionRow(
        wallet_address=model.wallet_address,
        plan=model.plan,
        activated_at=_aware(model.activated_at),
        expiry_date=_aware(model.expiry_date),
        tx_id=model.tx_id,
    )


def _to_payment(model: SubscriptionPaymentModel) -> PaymentRow:
    return PaymentRow(
        tx_id=model.tx_id,
        wallet_address=model.wallet_address,
        plan=model.plan,
        amount=model.amount,
        paid_at=_aware(model.paid_at),
        expiry_date=_aware(model.expiry_date),
        confirmed_round=model.confirmed_round,
    )


class SqlEntitlementStore:
    """EntitlementStore backed by async SQLAlchemy.

    One row per wallet; concurrent writers resolve last-writer-wins.
    """

    def __init__(self, db: DatabaseManager):
        self.db = db

    async def find_subscription(self, wallet_address: str) -> Optional[SubscriptionRow]:
        try:
            async with self.db.get_session() as session:
                model = await session.get(SubscriptionModel, wallet_address)
                return _to_row(model) if model is not None else None
        except (SQLAlchemyError, OSError) as exc:
            logger.warning("Subscription lookup failed for %s: %s", wallet_address, exc)
            raise ResolverUnavailableError(f"Subscription storage unavailable: {exc}") from exc

    async def find_payment(self, tx_id: str) -> Optional[PaymentRow]:
        try:
            async with self.db.get_session() as session:
                result = await session.execute(
                    select(SubscriptionPaymentModel).where(SubscriptionPaymentModel.tx_id == tx_id)
                )
                model = result.scalar_one_or_none()
                return _to_payment(model) if model is not None else None
        except (SQLAlchemyError, OSError) as exc:
            raise ResolverUnavailableError(f"Subscription storage unavailable: {exc}") from exc

    async def list_payments(self, wallet_address: str) -> list[PaymentRow]:
        """Payment history for a wallet, newest first."""
        try:
            async with self.db.get_session() as session:
                result = await session.execute(
                    select(SubscriptionPaymentModel)
                    .where(SubscriptionPaymentModel.wallet_address == wallet_address)
                    .order_by(SubscriptionPaymentModel.paid_at.desc())
                )
                return [_to_payment(m) for m in result.scalars().all()]
        except (SQLAlchemyError, OSError) as exc:
            raise ResolverUnavailableError(f"Subscription storage unavailable: {exc}") from exc

    async def upsert_subscription(
        self, row: SubscriptionRow, payment: Optional[PaymentRow] = None
    ) -> bool:
        """Replace the wallet's subscription and append ``payment`` in one transaction.

        Returns False without writing when ``payment`` was already recorded.
        """
        try:
            async with self.db.get_session() as session:
                if payment is not None:
                    existing = await session.execute(
                        select(SubscriptionPaymentModel.id).where(
                            SubscriptionPaymentModel.tx_id == payment.tx_id
                        )
                    )
                    if existing.scalar_one_or_none() is not None:
                        return False

                model = await session.get(SubscriptionModel, row.wallet_address)
                if model is None:
                    model = SubscriptionModel(wallet_address=row.wallet_address)
                    session.add(model)
                model.plan = row.plan
                model.activated_at = row.activated_at
                model.expiry_date = row.expiry_date
                model.tx_id = row.tx_id

                if payment is not None:
                    session.add(SubscriptionPaymentModel(
                        tx_id=payment.tx_id,
                        wallet_address=payment.wallet_address,
                        plan=payment.plan,
                        amount=payment.amount,
                        confirmed_round=payment.confirmed_round,
                        paid_at=payment.paid_at,
                        expiry_date=payment.expiry_date,
                    ))
            return True
        except (SQLAlchemyError, OSError) as exc:
            raise RecordWriteFailedError(f"Subscription record could not be written: {exc}") from exc
