"""Entitlement decisions: may this wallet create one more resource?

The decision is advisory. The resources themselves live on the ledger, so a
client-side check only gives early feedback; a trusted backend has to repeat
it before anything depends on the limit being enforced.
"""

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from gaius_engine.common.exceptions import UnknownPlanError
from gaius_engine.plans.catalog import (
    DEFAULT_CATALOG,
    UNLIMITED,
    Limit,
    PlanCatalog,
    ResourceKind,
)
from gaius_engine.subscriptions.resolver import Subscription, is_active


class DecisionReason(str, enum.Enum):
    ALLOWED = "Allowed"
    NO_ACTIVE_SUBSCRIPTION = "NoActiveSubscription"
    UNKNOWN_PLAN = "UnknownPlan"
    LIMIT_REACHED = "LimitReached"
    RESOLVER_UNAVAILABLE = "ResolverUnavailable"
    INVALID_ADDRESS = "InvalidAddress"


@dataclass(frozen=True)
class EntitlementDecision:
    allowed: bool
    remaining: Limit
    reason: DecisionReason
    limit: Optional[Limit] = None

    @classmethod
    def deny(cls, reason: DecisionReason, limit: Optional[Limit] = None) -> "EntitlementDecision":
        return cls(allowed=False, remaining=0, reason=reason, limit=limit)


def can_create_resource(
    subscription: Optional[Subscription],
    current_count: int,
    catalog: PlanCatalog = DEFAULT_CATALOG,
    resource: ResourceKind = ResourceKind.PROGRAM,
    now: Optional[datetime] = None,
) -> EntitlementDecision:
    if current_count < 0:
        raise ValueError(f"current_count must be non-negative, got {current_count}")

    if subscription is None or not is_active(subscription, now):
        return EntitlementDecision.deny(DecisionReason.NO_ACTIVE_SUBSCRIPTION)

    try:
        plan = catalog.get_plan(subscription.plan)
    except UnknownPlanError:
        return EntitlementDecision.deny(DecisionReason.UNKNOWN_PLAN)

    limit = plan.limit_for(resource)
    if limit is UNLIMITED:
        return EntitlementDecision(
            allowed=True, remaining=UNLIMITED, reason=DecisionReason.ALLOWED, limit=UNLIMITED,
        )

    allowed = current_count < limit
    return EntitlementDecision(
        allowed=allowed,
        remaining=max(0, limit - current_count),
        reason=DecisionReason.ALLOWED if allowed else DecisionReason.LIMIT_REACHED,
        limit=limit,
    )
