"""Tests for plan limit definitions."""

from strataccess.core.entitlements.plans import (
    LEGACY_LIMITS,
    PLAN_LIMITS,
    PlanDescriptor,
    PlanId,
    ResourceKind,
    get_plan_limits,
)


class TestPlanLimits:
    """Test the plan registry."""

    def test_starter_limits(self) -> None:
        """Starter allows one priority, four projects and one user."""
        limits = PLAN_LIMITS[PlanId.STARTER]
        assert (limits.priorities, limits.projects, limits.users) == (1, 4, 1)

    def test_paid_plans_unbounded_resources(self) -> None:
        """Paid plans do not cap priorities or projects."""
        for plan in (PlanId.LEADERPRO, PlanId.TEAM):
            assert PLAN_LIMITS[plan].for_kind(ResourceKind.PRIORITY) is None
            assert PLAN_LIMITS[plan].for_kind(ResourceKind.PROJECT) is None

    def test_extra_seats_raise_user_limit_only(self) -> None:
        """Extra seats add to users and nothing else."""
        team = PLAN_LIMITS[PlanId.TEAM]
        assert team.for_kind(ResourceKind.USER, extra_seats=3) == 9
        assert PLAN_LIMITS[PlanId.STARTER].for_kind(ResourceKind.PROJECT, extra_seats=3) == 4

    def test_negative_extra_seats_ignored(self) -> None:
        """Negative seat counts never lower the limit."""
        assert PLAN_LIMITS[PlanId.TEAM].for_kind(ResourceKind.USER, extra_seats=-2) == 6

    def test_legacy_overrides_plan(self) -> None:
        """Legacy organizations get the legacy grant on any plan."""
        assert get_plan_limits(PlanId.STARTER, is_legacy=True) == LEGACY_LIMITS
        assert get_plan_limits(PlanId.STARTER) == PLAN_LIMITS[PlanId.STARTER]


class TestPlanDescriptor:
    """Test descriptor limit lookup."""

    def test_limit_for_includes_extra_seats(self) -> None:
        """Descriptor limits count purchased seats."""
        descriptor = PlanDescriptor(
            plan_id=PlanId.TEAM,
            limits=PLAN_LIMITS[PlanId.TEAM],
            extra_seats=2,
        )
        assert descriptor.limit_for(ResourceKind.USER) == 8
