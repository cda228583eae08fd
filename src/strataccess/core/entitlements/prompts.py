"""Upgrade prompt state sent to clients alongside limit denials."""

from enum import Enum

from pydantic import BaseModel

from strataccess.core.entitlements.plans import PlanId, ResourceKind
from strataccess.core.outcomes import LimitExceeded


class TriggerReason(str, Enum):
    """What opened the upgrade prompt."""

    LIMIT_REACHED = "limit_reached"
    MANUAL = "manual"
    FEATURE_LOCKED = "feature_locked"


class LimitType(str, Enum):
    """Which limit the prompt is about."""

    PRIORITIES = "priorities"
    PROJECTS = "projects"
    USERS = "users"
    NONE = "none"


LIMIT_TYPES: dict[ResourceKind, LimitType] = {
    ResourceKind.PRIORITY: LimitType.PRIORITIES,
    ResourceKind.PROJECT: LimitType.PROJECTS,
    ResourceKind.USER: LimitType.USERS,
}

_unmapped = set(ResourceKind) - set(LIMIT_TYPES)
if _unmapped:
    raise RuntimeError(f"Resource kinds without a limit type: {sorted(k.value for k in _unmapped)}")


class UpgradePrompt(BaseModel):
    """Upgrade prompt state."""

    trigger_reason: TriggerReason = TriggerReason.MANUAL
    limit_type: LimitType = LimitType.NONE
    recommended_plan: PlanId | None = None
    contact_sales: bool = False

    @classmethod
    def for_limit(cls, denial: LimitExceeded) -> "UpgradePrompt":
        """Build the prompt for a limit denial."""
        return cls(
            trigger_reason=TriggerReason.LIMIT_REACHED,
            limit_type=LIMIT_TYPES[denial.resource_kind],
            recommended_plan=denial.upgrade_hint,
            contact_sales=denial.contact_sales,
        )
