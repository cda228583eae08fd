"""Entitlements module for plan-based resource limits."""

from strataccess.core.entitlements.gate import (
    EntitlementGate,
    evaluate_limit,
    recommend_upgrade,
)
from strataccess.core.entitlements.interfaces import PlanResolver, UsageCounter, UsageCounters
from strataccess.core.entitlements.plans import (
    LEGACY_LIMITS,
    PLAN_LIMITS,
    UNBOUNDED,
    PlanDescriptor,
    PlanId,
    PlanLimits,
    ResourceKind,
    get_plan_limits,
)
from strataccess.core.entitlements.prompts import LimitType, TriggerReason, UpgradePrompt

__all__ = [
    "EntitlementGate",
    "LEGACY_LIMITS",
    "LimitType",
    "PLAN_LIMITS",
    "PlanDescriptor",
    "PlanId",
    "PlanLimits",
    "PlanResolver",
    "ResourceKind",
    "TriggerReason",
    "UNBOUNDED",
    "UpgradePrompt",
    "UsageCounter",
    "UsageCounters",
    "evaluate_limit",
    "get_plan_limits",
    "recommend_upgrade",
]
