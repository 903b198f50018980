"""Checkout flow state.

The pricing screen's state is an immutable ``CheckoutState``; every user
action goes through :func:`reduce` and yields a new state. ``processing``
doubles as the re-entry guard for ``PaymentProcessor.subscribe``: a second
``SubmitStarted`` while one is in flight is ignored.
"""

from dataclasses import dataclass, replace
from typing import Optional, Union

from gaius_engine.ledger.signer import WalletSigner
from gaius_engine.payments.processor import PaymentProcessor, SubscribeResult
from gaius_engine.plans.catalog import PlanId, coerce_plan_id


@dataclass(frozen=True)
class CheckoutState:
    selected_plan: Optional[PlanId] = None
    processing: bool = False
    result: Optional[SubscribeResult] = None


@dataclass(frozen=True)
class SelectPlan:
    plan_id: Union[PlanId, str]


@dataclass(frozen=True)
class ClearSelection:
    pass


@dataclass(frozen=True)
class SubmitStarted:
    pass


@dataclass(frozen=True)
class SubmitFinished:
    result: SubscribeResult


Action = Union[SelectPlan, ClearSelection, SubmitStarted, SubmitFinished]


def can_submit(state: CheckoutState) -> bool:
    return state.selected_plan is not None and not state.processing


def reduce(state: CheckoutState, action: Action) -> CheckoutState:
    """Return the state that follows ``action``. Never mutates ``state``."""
    if isinstance(action, SelectPlan):
        if state.processing:
            return state
        return replace(state, selected_plan=coerce_plan_id(action.plan_id), result=None)

    if isinstance(action, ClearSelection):
        if state.processing:
            return state
        return CheckoutState()

    if isinstance(action, SubmitStarted):
        if not can_submit(state):
            return state
        return replace(state, processing=True, result=None)

    if isinstance(action, SubmitFinished):
        if not state.processing:
            return state
        return replace(state, processing=False, result=action.result)

    raise TypeError(f"Unknown checkout action: {action!r}")


async def run_checkout(
    state: CheckoutState,
    processor: PaymentProcessor,
    wallet_address: str,
    signer: WalletSigner,
) -> CheckoutState:
    """Submit the selected plan once and return the settled state.

    Returns ``state`` unchanged when submission is not allowed (no plan
    selected, or a submission already in flight).
    """
    started = reduce(state, SubmitStarted())
    if started is state:
        return state
    result = await processor.subscribe(wallet_address, started.selected_plan, signer)
    return reduce(started, SubmitFinished(result))
