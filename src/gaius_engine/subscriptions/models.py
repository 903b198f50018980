"""SQLAlchemy models for subscriptions."""

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from gaius_engine.common.models import Base, TimestampMixin, generate_uuid


class SubscriptionModel(Base, TimestampMixin):
    """Current subscription per wallet. Replaced in full on every payment."""

    __tablename__ = "subscriptions"

    wallet_address: Mapped[str] = mapped_column(String(58), primary_key=True)
    plan: Mapped[str] = mapped_column(String(50), nullable=False)
    activated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expiry_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )
    tx_id: Mapped[str] = mapped_column(String(64), nullable=False)


class SubscriptionPaymentModel(Base, TimestampMixin):
    """Append-only record of every settled subscription payment."""

    __tablename__ = "subscription_payments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    tx_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    wallet_address: Mapped[str] = mapped_column(String(58), nullable=False, index=True)
    plan: Mapped[str] = mapped_column(String(50), nullable=False)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)  # microAlgos
    confirmed_round: Mapped[int] = mapped_column(Integer, default=0)
    paid_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expiry_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
