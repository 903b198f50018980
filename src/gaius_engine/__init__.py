"""Gaius-Engine: subscription plans and entitlement gating for the Gaius loyalty platform."""

from gaius_engine.entitlements.checker import DecisionReason, EntitlementDecision, can_create_resource
from gaius_engine.payments.processor import PaymentProcessor, PaymentStage, SubscribeResult
from gaius_engine.plans.catalog import UNLIMITED, Plan, PlanId, get_plan, list_plans
from gaius_engine.subscriptions.resolver import Subscription, SubscriptionResolver, is_active

__all__ = [
    "DecisionReason",
    "EntitlementDecision",
    "can_create_resource",
    "PaymentProcessor",
    "PaymentStage",
    "SubscribeResult",
    "UNLIMITED",
    "Plan",
    "PlanId",
    "get_plan",
    "list_plans",
    "Subscription",
    "SubscriptionResolver",
    "is_active",
]
__version__ = "0.1.0"
