"""Entitlement service: resolve, count and decide in one fail-closed step."""

import logging
from dataclasses import dataclass
from typing import Optional

from gaius_engine.common.exceptions import (
    InvalidAddressError,
    LedgerUnavailableError,
    ResolverUnavailableError,
    UnknownPlanError,
)
from gaius_engine.entitlements.checker import (
    DecisionReason,
    EntitlementDecision,
    can_create_resource,
)
from gaius_engine.entitlements.counter import count_programs
from gaius_engine.ledger.client import LedgerClient
from gaius_engine.plans.catalog import DEFAULT_CATALOG, Plan, PlanCatalog, ResourceKind
from gaius_engine.subscriptions.resolver import Subscription, SubscriptionResolver, days_remaining

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EntitlementStatus:
    wallet_address: str
    subscription: Optional[Subscription]
    plan: Optional[Plan]
    program_count: Optional[int]
    days_remaining: int
    decision: EntitlementDecision


class EntitlementService:
    """Gates program creation on the wallet's current plan and holdings."""

    def __init__(
        self,
        resolver: SubscriptionResolver,
        ledger: LedgerClient,
        catalog: PlanCatalog = DEFAULT_CATALOG,
        program_marker: str = "",
    ):
        self.resolver = resolver
        self.ledger = ledger
        self.catalog = catalog
        self.program_marker = program_marker

    async def status(self, wallet_address: str) -> EntitlementStatus:
        """Resolve the subscription, recount programs and decide.

        Never raises for invalid input or unavailable backends: those produce
        a denying decision.
        """
        try:
            subscription = await self.resolver.resolve(wallet_address)
        except InvalidAddressError:
            return self._denied(wallet_address, None, DecisionReason.INVALID_ADDRESS)
        except ResolverUnavailableError:
            logger.warning("Entitlement unknown for %s: storage unavailable", wallet_address)
            return self._denied(wallet_address, None, DecisionReason.RESOLVER_UNAVAILABLE)

        try:
            program_count = await count_programs(self.ledger, wallet_address, self.program_marker)
        except LedgerUnavailableError as exc:
            logger.warning("Entitlement unknown for %s: %s", wallet_address, exc.message)
            return self._denied(wallet_address, subscription, DecisionReason.RESOLVER_UNAVAILABLE)

        now = self.resolver.clock()
        decision = can_create_resource(
            subscription, program_count, self.catalog, ResourceKind.PROGRAM, now=now,
        )
        return EntitlementStatus(
            wallet_address=wallet_address,
            subscription=subscription,
            plan=self._plan_for(subscription),
            program_count=program_count,
            days_remaining=days_remaining(subscription, now),
            decision=decision,
        )

    async def check_program_creation(self, wallet_address: str) -> EntitlementDecision:
        """Decide whether ``wallet_address`` may mint one more loyalty program."""
        status = await self.status(wallet_address)
        logger.info(
            "Program creation check",
            extra={
                "wallet": wallet_address,
                "allowed": status.decision.allowed,
                "reason": status.decision.reason.value,
            },
        )
        return status.decision

    def _plan_for(self, subscription: Optional[Subscription]) -> Optional[Plan]:
        if subscription is None:
            return None
        try:
            return self.catalog.get_plan(subscription.plan)
        except UnknownPlanError:
            return None

    def _denied(
        self, wallet_address: str, subscription: Optional[Subscription], reason: DecisionReason,
    ) -> EntitlementStatus:
        return EntitlementStatus(
            wallet_address=wallet_address,
            subscription=subscription,
            plan=self._plan_for(subscription),
            program_count=None,
            days_remaining=days_remaining(subscription, self.resolver.clock()),
            decision=EntitlementDecision.deny(reason),
        )
