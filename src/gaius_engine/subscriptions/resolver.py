"""Subscription resolution: which plan a wallet is on right now."""

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from gaius_engine.ledger.address import validate_address
from gaius_engine.plans.catalog import PlanId
from gaius_engine.subscriptions.store import EntitlementStore, SubscriptionRow

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Subscription:
    """A wallet's subscription as resolved at a point in time.

    ``is_active`` is a snapshot taken at resolution. Gating code re-derives
    it with :func:`is_active` instead of trusting the field.
    """

    wallet_address: str
    plan: str
    activated_at: datetime
    expiry_date: datetime
    tx_id: str
    is_active: bool = False


def is_active(subscription: Optional[Subscription], now: Optional[datetime] = None) -> bool:
    if subscription is None:
        return False
    now = now or utcnow()
    return subscription.expiry_date > now


def days_remaining(subscription: Optional[Subscription], now: Optional[datetime] = None) -> int:
    """Whole days left, rounded up, never negative."""
    if subscription is None:
        return 0
    now = now or utcnow()
    seconds = (subscription.expiry_date - now).total_seconds()
    return max(0, math.ceil(seconds / 86400))


def format_expiry_date(value: datetime) -> str:
    """Render a date like ``January 5, 2026``."""
    return f"{value.strftime('%B')} {value.day}, {value.year}"


def is_current_plan(
    subscription: Optional[Subscription], plan_id: "PlanId | str", now: Optional[datetime] = None,
) -> bool:
    if subscription is None:
        return False
    value = plan_id.value if isinstance(plan_id, PlanId) else plan_id
    return subscription.plan == value and is_active(subscription, now)


class SubscriptionResolver:
    """Read-only view of subscription storage."""

    def __init__(self, store: EntitlementStore, clock: Clock = utcnow):
        self.store = store
        self.clock = clock

    def _from_row(self, row: SubscriptionRow) -> Subscription:
        return Subscription(
            wallet_address=row.wallet_address,
            plan=row.plan,
            activated_at=row.activated_at,
            expiry_date=row.expiry_date,
            tx_id=row.tx_id,
            is_active=row.expiry_date > self.clock(),
        )

    async def resolve(self, wallet_address: str) -> Optional[Subscription]:
        """Return the wallet's subscription, or None for the implicit no-plan tier.

        Raises:
            InvalidAddressError: ``wallet_address`` is not a valid address.
            ResolverUnavailableError: storage could not be read.
        """
        validate_address(wallet_address)
        row = await self.store.find_subscription(wallet_address)
        if row is None:
            return None
        return self._from_row(row)
