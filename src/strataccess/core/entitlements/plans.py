"""Plan registry and plan limit definitions."""

from enum import Enum

from pydantic import BaseModel


class PlanId(str, Enum):
    """Available subscription plans, cheapest first."""

    STARTER = "starter"
    LEADERPRO = "leaderpro"
    TEAM = "team"


class ResourceKind(str, Enum):
    """Resources whose creation is limited by plan."""

    PRIORITY = "priority"  # a strategic priority (strategy)
    PROJECT = "project"
    USER = "user"


# None means unbounded
UNBOUNDED = None


class PlanLimits(BaseModel):
    """Numeric creation limits for a plan."""

    priorities: int | None
    projects: int | None
    users: int

    def for_kind(self, kind: ResourceKind, extra_seats: int = 0) -> int | None:
        """Get the limit for a resource kind.

        Purchased extra seats only raise the user limit.
        """
        if kind is ResourceKind.PRIORITY:
            return self.priorities
        if kind is ResourceKind.PROJECT:
            return self.projects
        return self.users + max(extra_seats, 0)


PLAN_LIMITS: dict[PlanId, PlanLimits] = {
    PlanId.STARTER: PlanLimits(priorities=1, projects=4, users=1),
    PlanId.LEADERPRO: PlanLimits(priorities=UNBOUNDED, projects=UNBOUNDED, users=1),
    PlanId.TEAM: PlanLimits(priorities=UNBOUNDED, projects=UNBOUNDED, users=6),
}

# Organizations created before the current plan catalog
LEGACY_LIMITS = PlanLimits(priorities=UNBOUNDED, projects=UNBOUNDED, users=6)


def get_plan_limits(plan_id: PlanId, is_legacy: bool = False) -> PlanLimits:
    """Get the limits for a plan, honoring the legacy grant."""
    if is_legacy:
        return LEGACY_LIMITS
    return PLAN_LIMITS[plan_id]


class PlanDescriptor(BaseModel):
    """Effective plan of an organization, recomputed on each billing query."""

    plan_id: PlanId
    is_legacy: bool = False
    has_active_subscription: bool = False
    limits: PlanLimits
    subscription_status: str | None = None
    extra_seats: int = 0

    def limit_for(self, kind: ResourceKind) -> int | None:
        """Effective limit for a resource kind, including extra seats."""
        return self.limits.for_kind(kind, self.extra_seats)
