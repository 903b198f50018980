"""Pydantic schemas for plan, subscription and entitlement endpoints."""

from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel, Field

from gaius_engine.plans.catalog import UNLIMITED, Limit, Plan


def limit_value(limit: Optional[Limit]) -> Union[int, str, None]:
    if limit is UNLIMITED:
        return "unlimited"
    return limit


# ── Plans ──

class PlanResponse(BaseModel):
    id: str
    name: str
    price: float
    price_micro_algos: int
    member_limit: Union[int, str]
    program_limit: Union[int, str]
    features: list[str]
    recommended: bool

    @classmethod
    def from_plan(cls, plan: Plan) -> "PlanResponse":
        return cls(
            id=plan.id.value,
            name=plan.name,
            price=float(plan.price),
            price_micro_algos=plan.price_micro_algos,
            member_limit=limit_value(plan.member_limit),
            program_limit=limit_value(plan.program_limit),
            features=list(plan.features),
            recommended=plan.recommended,
        )


# ── Subscriptions ──

class SubscriptionResponse(BaseModel):
    wallet_address: str
    plan: str
    activated_at: datetime
    expiry_date: datetime
    is_active: bool
    days_remaining: int
    tx_id: str


class EntitlementResponse(BaseModel):
    wallet_address: str
    allowed: bool
    remaining: Union[int, str]
    reason: str
    limit: Union[int, str, None] = None
    plan: Optional[str] = None
    program_count: Optional[int] = None


class ReconcileRequest(BaseModel):
    tx_id: str = Field(..., min_length=1, max_length=64)
    plan: str = Field(..., min_length=1, max_length=50)


class SubscribeResultResponse(BaseModel):
    success: bool
    message: str
    stage: str
    tx_id: Optional[str] = None
    reason: Optional[str] = None
    expiry_date: Optional[datetime] = None
