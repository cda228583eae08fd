"""Entitlement gate: plan limits and upgrade recommendations.

``evaluate_limit`` and ``recommend_upgrade`` are pure. ``EntitlementGate``
only adds the plan lookup and, for reservations, the usage store's
serialized creation scope.
"""

from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from uuid import UUID

import structlog

from strataccess.core.entitlements.interfaces import PlanResolver, UsageCounter
from strataccess.core.entitlements.plans import PlanDescriptor, PlanId, ResourceKind
from strataccess.core.outcomes import Allowed, LimitExceeded

logger = structlog.get_logger()

_NEXT_PLAN: dict[PlanId, PlanId | None] = {
    PlanId.STARTER: PlanId.LEADERPRO,
    PlanId.LEADERPRO: PlanId.TEAM,
    PlanId.TEAM: None,
}


def recommend_upgrade(plan_id: PlanId, kind: ResourceKind) -> PlanId | None:
    """Pick the plan to suggest after a limit denial.

    Only team sells extra seats, so a user limit always points at team.
    None means there is no higher plan and the caller should contact sales.
    """
    if kind is ResourceKind.USER:
        return PlanId.TEAM
    return _NEXT_PLAN[plan_id]


def limit_message(descriptor: PlanDescriptor, kind: ResourceKind, limit: int, current: int) -> str:
    """Product copy shown with a limit denial."""
    plan = descriptor.plan_id.value
    if kind is ResourceKind.PRIORITY:
        noun = "priority" if limit == 1 else "priorities"
        return (
            f"You've reached the limit of {limit} strategic {noun} on the {plan} plan. "
            "Upgrade to add more."
        )
    if kind is ResourceKind.PROJECT:
        return (
            f"You've reached the limit of {limit} projects on the {plan} plan. "
            "Upgrade to add more."
        )
    if descriptor.plan_id is PlanId.TEAM or descriptor.is_legacy:
        return f"You have {current} users. Add more seats to invite additional team members."
    base = descriptor.limits.users
    return (
        f"The {plan} plan allows only {base} user{'' if base == 1 else 's'}. "
        "Upgrade to add team members."
    )


def evaluate_limit(
    descriptor: PlanDescriptor,
    kind: ResourceKind,
    current_count: int,
) -> Allowed | LimitExceeded:
    """Decide whether one more resource of ``kind`` may be created.

    Args:
        descriptor: The organization's effective plan.
        kind: Resource about to be created.
        current_count: Non-archived resources of that kind right now.

    Returns:
        Allowed, or LimitExceeded iff the limit is bounded and
        ``current_count >= limit``.
    """
    limit = descriptor.limit_for(kind)
    if limit is None or current_count < limit:
        return Allowed(limit=limit, current=current_count)

    return LimitExceeded(
        resource_kind=kind,
        limit=limit,
        current=current_count,
        plan_id=descriptor.plan_id,
        upgrade_hint=recommend_upgrade(descriptor.plan_id, kind),
        message=limit_message(descriptor, kind, limit, current_count),
    )


class EntitlementGate:
    """Checks plan limits for an organization."""

    def __init__(self, resolver: PlanResolver) -> None:
        """Initialize with the plan resolver.

        Args:
            resolver: Produces the organization's effective plan.
        """
        self._resolver = resolver

    async def check_limit(
        self,
        organization_id: UUID,
        kind: ResourceKind,
        current_count: int,
    ) -> Allowed | LimitExceeded:
        """Resolve the organization's plan and evaluate one limit."""
        descriptor = await self._resolver.resolve(organization_id)
        return self._evaluate(organization_id, descriptor, kind, current_count)

    @asynccontextmanager
    async def check_and_reserve(
        self,
        organization_id: UUID,
        kind: ResourceKind,
        usage: UsageCounter,
        outstanding: Callable[[], Awaitable[int]] | None = None,
    ) -> AsyncIterator[Allowed | LimitExceeded]:
        """Check a limit and hold the slot while the caller creates the resource.

        The plan is resolved before the scope opens so a slow billing sync
        never holds the lock. The count is read inside the usage store's
        creation scope, so two callers racing for the last slot are
        serialized and the second sees the first one's insert.

        Usage:
            async with gate.check_and_reserve(org_id, ResourceKind.PROJECT, usage) as outcome:
                if isinstance(outcome, LimitExceeded):
                    raise limit_exceeded_http(outcome)
                await create_project(...)

        Args:
            organization_id: Organization creating the resource.
            kind: Resource about to be created.
            usage: Usage store providing counts and the creation scope.
            outstanding: Reads resources promised but not yet created, such
                as open invites. Called inside the scope and added to the count.

        Yields:
            Allowed or LimitExceeded.
        """
        descriptor = await self._resolver.resolve(organization_id)
        async with usage.creation_scope(organization_id, kind):
            current = await usage.count(organization_id, kind)
            if outstanding is not None:
                current += await outstanding()
            yield self._evaluate(organization_id, descriptor, kind, current)

    def _evaluate(
        self,
        organization_id: UUID,
        descriptor: PlanDescriptor,
        kind: ResourceKind,
        current_count: int,
    ) -> Allowed | LimitExceeded:
        outcome = evaluate_limit(descriptor, kind, current_count)
        if isinstance(outcome, LimitExceeded):
            logger.info(
                "limit_exceeded",
                organization_id=str(organization_id),
                resource_kind=kind.value,
                plan_id=descriptor.plan_id.value,
                limit=outcome.limit,
                current=current_count,
                upgrade_hint=outcome.upgrade_hint.value if outcome.upgrade_hint else None,
            )
        return outcome
