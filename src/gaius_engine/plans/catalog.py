"""Subscription plan catalog.

Plans are fixed at deploy time. Every ``PlanId`` maps to exactly one ``Plan``,
so lookups by a valid tag always succeed; anything else is an
``UnknownPlanError``.

Limits are positive integers or the ``UNLIMITED`` sentinel.
"""

import enum
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Union

from gaius_engine.common.exceptions import UnknownPlanError

MICRO_ALGOS_PER_ALGO = 1_000_000


class PlanId(str, enum.Enum):
    BASIC = "basic"
    PRO = "pro"
    ENTERPRISE = "enterprise"


class Unlimited(enum.Enum):
    UNLIMITED = "unlimited"

    def __repr__(self) -> str:
        return "UNLIMITED"


UNLIMITED = Unlimited.UNLIMITED

Limit = Union[int, Unlimited]


class ResourceKind(str, enum.Enum):
    """Resources counted against plan limits."""

    PROGRAM = "program"
    MEMBER = "member"


@dataclass(frozen=True)
class Plan:
    id: PlanId
    name: str
    price: Decimal  # ALGO per billing period
    member_limit: Limit
    program_limit: Limit
    features: tuple[str, ...] = ()
    recommended: bool = False

    @property
    def price_micro_algos(self) -> int:
        return int(self.price * MICRO_ALGOS_PER_ALGO)

    def limit_for(self, resource: ResourceKind) -> Limit:
        if resource is ResourceKind.MEMBER:
            return self.member_limit
        return self.program_limit


def _check_limit(plan_id: PlanId, name: str, value: Limit) -> None:
    if value is UNLIMITED:
        return
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValueError(f"Plan {plan_id.value}: {name} must be a positive int or UNLIMITED, got {value!r}")


def coerce_plan_id(plan_id: "PlanId | str") -> PlanId:
    """Return the ``PlanId`` for a tag or its string value."""
    if isinstance(plan_id, PlanId):
        return plan_id
    try:
        return PlanId(str(plan_id).lower())
    except ValueError:
        raise UnknownPlanError(f"Unknown subscription plan: {plan_id!r}") from None


class PlanCatalog:
    """Immutable, total lookup table from ``PlanId`` to ``Plan``."""

    def __init__(self, plans: Iterable[Plan]):
        by_id: dict[PlanId, Plan] = {}
        for plan in plans:
            if plan.id in by_id:
                raise ValueError(f"Duplicate plan: {plan.id.value}")
            _check_limit(plan.id, "member_limit", plan.member_limit)
            _check_limit(plan.id, "program_limit", plan.program_limit)
            by_id[plan.id] = plan
        missing = [p.value for p in PlanId if p not in by_id]
        if missing:
            raise ValueError(f"Catalog missing plans: {', '.join(missing)}")
        self._plans = by_id

    def get_plan(self, plan_id: "PlanId | str") -> Plan:
        return self._plans[coerce_plan_id(plan_id)]

    def list_plans(self) -> list[Plan]:
        """Plans in display order (ascending price)."""
        return sorted(self._plans.values(), key=lambda p: (p.price, list(PlanId).index(p.id)))

    def is_upgrade(self, current_plan_id: "PlanId | str | None", new_plan_id: "PlanId | str") -> bool:
        """True when the new plan costs strictly more than the current one."""
        new_price = self.get_plan(new_plan_id).price
        if current_plan_id is None:
            return False
        try:
            current_price = self.get_plan(current_plan_id).price
        except UnknownPlanError:
            current_price = Decimal(0)
        return new_price > current_price

    def __iter__(self):
        return iter(self.list_plans())

    def __len__(self) -> int:
        return len(self._plans)


DEFAULT_PLANS = (
    Plan(
        id=PlanId.BASIC,
        name="Basic",
        price=Decimal("5"),
        member_limit=250,
        program_limit=40,
        features=("Basic analytics", "Email support"),
    ),
    Plan(
        id=PlanId.PRO,
        name="Professional",
        price=Decimal("20"),
        member_limit=2500,
        program_limit=20,
        features=("Advanced analytics", "Priority support", "Custom branding"),
        recommended=True,
    ),
    Plan(
        id=PlanId.ENTERPRISE,
        name="Enterprise",
        price=Decimal("50"),
        member_limit=UNLIMITED,
        program_limit=UNLIMITED,
        features=("Premium analytics", "Dedicated support", "Custom branding", "API access"),
    ),
)

DEFAULT_CATALOG = PlanCatalog(DEFAULT_PLANS)


def get_plan(plan_id: "PlanId | str") -> Plan:
    return DEFAULT_CATALOG.get_plan(plan_id)


def list_plans() -> list[Plan]:
    return DEFAULT_CATALOG.list_plans()


def format_limit(limit: Limit) -> str:
    return "Unlimited" if limit is UNLIMITED else str(limit)
