"""Tests for the entitlement gate."""

import asyncio
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

from strataccess.adapters.usage.memory import InMemoryUsageCounter
from strataccess.core.entitlements.gate import (
    EntitlementGate,
    evaluate_limit,
    limit_message,
    recommend_upgrade,
)
from strataccess.core.entitlements.plans import (
    PLAN_LIMITS,
    PlanDescriptor,
    PlanId,
    ResourceKind,
    get_plan_limits,
)
from strataccess.core.exceptions import BillingProviderError
from strataccess.core.outcomes import Allowed, LimitExceeded


def descriptor(plan: PlanId, is_legacy: bool = False, extra_seats: int = 0) -> PlanDescriptor:
    """Build a plan descriptor."""
    return PlanDescriptor(
        plan_id=plan,
        is_legacy=is_legacy,
        limits=get_plan_limits(plan, is_legacy),
        extra_seats=extra_seats,
    )


def resolver_for(plan_descriptor: PlanDescriptor) -> MagicMock:
    """Mock resolver returning a fixed descriptor."""
    resolver = MagicMock()
    resolver.resolve = AsyncMock(return_value=plan_descriptor)
    return resolver


class TestRecommendUpgrade:
    """Test upgrade recommendations."""

    def test_starter_recommends_leaderpro(self) -> None:
        """Starter limits point at leaderpro."""
        assert recommend_upgrade(PlanId.STARTER, ResourceKind.PRIORITY) == PlanId.LEADERPRO

    def test_leaderpro_recommends_team(self) -> None:
        """Leaderpro limits point at team."""
        assert recommend_upgrade(PlanId.LEADERPRO, ResourceKind.PROJECT) == PlanId.TEAM

    def test_team_has_no_higher_plan(self) -> None:
        """Team limits have no recommendation."""
        assert recommend_upgrade(PlanId.TEAM, ResourceKind.PROJECT) is None

    @pytest.mark.parametrize("plan", list(PlanId))
    def test_user_limit_always_team(self, plan: PlanId) -> None:
        """User limits always point at team, the only plan with extra seats."""
        assert recommend_upgrade(plan, ResourceKind.USER) == PlanId.TEAM


class TestEvaluateLimit:
    """Test the pure limit evaluation."""

    def test_starter_priority_at_limit(self) -> None:
        """One existing priority on starter denies the second."""
        result = evaluate_limit(descriptor(PlanId.STARTER), ResourceKind.PRIORITY, 1)

        assert isinstance(result, LimitExceeded)
        assert result.limit == 1
        assert result.current == 1
        assert result.upgrade_hint == PlanId.LEADERPRO
        assert result.contact_sales is False

    def test_under_limit_allowed(self) -> None:
        """Counts below the limit are allowed."""
        result = evaluate_limit(descriptor(PlanId.STARTER), ResourceKind.PROJECT, 3)
        assert result == Allowed(limit=4, current=3)

    def test_unbounded_never_denies(self) -> None:
        """Unbounded limits allow any count."""
        result = evaluate_limit(descriptor(PlanId.LEADERPRO), ResourceKind.PRIORITY, 10_000)
        assert result == Allowed(limit=None, current=10_000)

    def test_leaderpro_user_limit_recommends_team(self) -> None:
        """The single leaderpro seat points at team."""
        result = evaluate_limit(descriptor(PlanId.LEADERPRO), ResourceKind.USER, 1)

        assert isinstance(result, LimitExceeded)
        assert result.upgrade_hint == PlanId.TEAM

    def test_team_user_limit_recommends_seats(self) -> None:
        """Team at its seat limit points at buying more team seats."""
        result = evaluate_limit(descriptor(PlanId.TEAM), ResourceKind.USER, 6)

        assert isinstance(result, LimitExceeded)
        assert result.upgrade_hint == PlanId.TEAM
        assert "Add more seats" in result.message

    def test_extra_seats_extend_user_limit(self) -> None:
        """Purchased seats raise the user limit."""
        plan = descriptor(PlanId.TEAM, extra_seats=2)

        assert isinstance(evaluate_limit(plan, ResourceKind.USER, 7), Allowed)
        assert isinstance(evaluate_limit(plan, ResourceKind.USER, 8), LimitExceeded)

    def test_legacy_unbounded_priorities(self) -> None:
        """Legacy starter organizations are not capped on priorities."""
        result = evaluate_limit(
            descriptor(PlanId.STARTER, is_legacy=True),
            ResourceKind.PRIORITY,
            50,
        )
        assert isinstance(result, Allowed)

    def test_over_limit_is_denied(self) -> None:
        """Counts above the limit, from a downgrade, are denied too."""
        result = evaluate_limit(descriptor(PlanId.STARTER), ResourceKind.PROJECT, 9)
        assert isinstance(result, LimitExceeded)


class TestLimitMessage:
    """Test denial copy."""

    def test_priority_singular(self) -> None:
        """A limit of one uses the singular noun."""
        message = limit_message(descriptor(PlanId.STARTER), ResourceKind.PRIORITY, 1, 1)
        assert "1 strategic priority on the starter plan" in message

    def test_base_plan_users(self) -> None:
        """Single-seat plans say so."""
        message = limit_message(descriptor(PlanId.LEADERPRO), ResourceKind.USER, 1, 1)
        assert message.startswith("The leaderpro plan allows only 1 user.")


class TestEntitlementGate:
    """Test the gate with plan resolution and reservations."""

    @pytest.mark.asyncio
    async def test_check_limit_resolves_plan(self) -> None:
        """The gate evaluates against the resolved plan."""
        resolver = resolver_for(descriptor(PlanId.STARTER))
        gate = EntitlementGate(resolver)
        org_id = uuid4()

        result = await gate.check_limit(org_id, ResourceKind.PROJECT, 4)

        resolver.resolve.assert_awaited_once_with(org_id)
        assert isinstance(result, LimitExceeded)

    @pytest.mark.asyncio
    async def test_resolver_failure_propagates(self) -> None:
        """A resolver fault is raised, never treated as allowed."""
        resolver = MagicMock()
        resolver.resolve = AsyncMock(side_effect=BillingProviderError("down"))

        with pytest.raises(BillingProviderError):
            await EntitlementGate(resolver).check_limit(uuid4(), ResourceKind.PROJECT, 0)

    @pytest.mark.asyncio
    async def test_reserve_reads_live_count(self) -> None:
        """Reservations count inside the creation scope."""
        usage = InMemoryUsageCounter()
        org_id = uuid4()
        usage.set_count(org_id, ResourceKind.PROJECT, 4)
        gate = EntitlementGate(resolver_for(descriptor(PlanId.STARTER)))

        async with gate.check_and_reserve(org_id, ResourceKind.PROJECT, usage) as outcome:
            assert isinstance(outcome, LimitExceeded)
            assert outcome.current == 4

    @pytest.mark.asyncio
    async def test_concurrent_reservations_last_slot(self) -> None:
        """Two callers racing for the last slot: one creates, one is denied."""
        usage = InMemoryUsageCounter()
        org_id = uuid4()
        usage.set_count(org_id, ResourceKind.PROJECT, PLAN_LIMITS[PlanId.STARTER].projects - 1)
        gate = EntitlementGate(resolver_for(descriptor(PlanId.STARTER)))

        async def create_project() -> Allowed | LimitExceeded:
            async with gate.check_and_reserve(org_id, ResourceKind.PROJECT, usage) as outcome:
                if isinstance(outcome, Allowed):
                    # Give the other caller a chance to interleave
                    await asyncio.sleep(0.01)
                    usage.add(org_id, ResourceKind.PROJECT)
                return outcome

        results = await asyncio.gather(create_project(), create_project())

        assert sum(isinstance(r, Allowed) for r in results) == 1
        assert sum(isinstance(r, LimitExceeded) for r in results) == 1
        assert await usage.count(org_id, ResourceKind.PROJECT) == 4

    @pytest.mark.asyncio
    async def test_scopes_are_per_kind(self) -> None:
        """A held project scope does not block priority creation."""
        usage = InMemoryUsageCounter()
        org_id = uuid4()
        gate = EntitlementGate(resolver_for(descriptor(PlanId.TEAM)))

        async with gate.check_and_reserve(org_id, ResourceKind.PROJECT, usage):
            async with asyncio.timeout(1):
                async with gate.check_and_reserve(
                    org_id, ResourceKind.PRIORITY, usage
                ) as outcome:
                    assert isinstance(outcome, Allowed)

    @pytest.mark.asyncio
    async def test_plan_resolved_before_scope_opens(self) -> None:
        """A slow billing sync never runs while the creation lock is held."""
        events: list[str] = []
        usage = InMemoryUsageCounter()
        inner_scope = usage.creation_scope

        @asynccontextmanager
        async def recording_scope(organization_id, kind):
            events.append("scope")
            async with inner_scope(organization_id, kind):
                yield

        async def resolve(organization_id):
            events.append("resolve")
            return descriptor(PlanId.TEAM)

        usage.creation_scope = recording_scope
        resolver = MagicMock()
        resolver.resolve = AsyncMock(side_effect=resolve)

        async with EntitlementGate(resolver).check_and_reserve(
            uuid4(), ResourceKind.PROJECT, usage
        ):
            pass

        assert events == ["resolve", "scope"]

    @pytest.mark.asyncio
    async def test_outstanding_counts_toward_limit(self) -> None:
        """Promised resources fill slots before they are created."""
        usage = InMemoryUsageCounter()
        org_id = uuid4()
        usage.set_count(org_id, ResourceKind.USER, 5)
        gate = EntitlementGate(resolver_for(descriptor(PlanId.TEAM)))

        async with gate.check_and_reserve(
            org_id,
            ResourceKind.USER,
            usage,
            outstanding=AsyncMock(return_value=1),
        ) as outcome:
            assert isinstance(outcome, LimitExceeded)
            assert outcome.current == 6
