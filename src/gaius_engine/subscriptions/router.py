"""Plans, subscription and entitlement API router."""

from fastapi import APIRouter, Depends, HTTPException

from gaius_engine.common.exceptions import InvalidAddressError, ResolverUnavailableError
from gaius_engine.common.security import require_api_key
from gaius_engine.plans.catalog import list_plans
from gaius_engine.subscriptions.resolver import days_remaining
from gaius_engine.subscriptions.schemas import (
    EntitlementResponse,
    PlanResponse,
    ReconcileRequest,
    SubscribeResultResponse,
    SubscriptionResponse,
    limit_value,
)

router = APIRouter()


def _get_resolver():
    from gaius_engine.deps import get_resolver
    return get_resolver()


def _get_entitlements():
    from gaius_engine.deps import get_entitlement_service
    return get_entitlement_service()


def _get_processor():
    from gaius_engine.deps import get_payment_processor
    return get_payment_processor()


@router.get("/plans", response_model=list[PlanResponse])
async def get_plans():
    return [PlanResponse.from_plan(p) for p in list_plans()]


@router.get("/subscriptions/{wallet_address}", response_model=SubscriptionResponse)
async def get_subscription(wallet_address: str):
    resolver = _get_resolver()
    try:
        sub = await resolver.resolve(wallet_address)
    except InvalidAddressError as e:
        raise HTTPException(status_code=400, detail=e.message)
    except ResolverUnavailableError as e:
        raise HTTPException(status_code=503, detail=e.message)
    if sub is None:
        raise HTTPException(status_code=404, detail="No subscription for this wallet")
    return SubscriptionResponse(
        wallet_address=sub.wallet_address,
        plan=sub.plan,
        activated_at=sub.activated_at,
        expiry_date=sub.expiry_date,
        is_active=sub.is_active,
        days_remaining=days_remaining(sub, resolver.clock()),
        tx_id=sub.tx_id,
    )


@router.get("/entitlements/{wallet_address}/programs", response_model=EntitlementResponse)
async def check_program_entitlement(wallet_address: str):
    status = await _get_entitlements().status(wallet_address)
    decision = status.decision
    return EntitlementResponse(
        wallet_address=wallet_address,
        allowed=decision.allowed,
        remaining=limit_value(decision.remaining),
        reason=decision.reason.value,
        limit=limit_value(decision.limit),
        plan=status.subscription.plan if status.subscription else None,
        program_count=status.program_count,
    )


@router.post(
    "/subscriptions/{wallet_address}/reconcile",
    response_model=SubscribeResultResponse,
)
async def reconcile_subscription(
    wallet_address: str, body: ReconcileRequest, _=Depends(require_api_key),
):
    result = await _get_processor().reconcile(wallet_address, body.tx_id, body.plan)
    return SubscribeResultResponse(
        success=result.success,
        message=result.message,
        stage=result.stage.value,
        tx_id=result.tx_id,
        reason=result.reason.value if result.reason else None,
        expiry_date=result.subscription.expiry_date if result.subscription else None,
    )
