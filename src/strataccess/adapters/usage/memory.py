"""In-memory usage counter for tests and local development."""

import asyncio
from collections import defaultdict
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from uuid import UUID

from strataccess.adapters.auth.memory import InMemoryAuthRepository
from strataccess.core.entitlements.interfaces import UsageCounters
from strataccess.core.entitlements.plans import ResourceKind


class InMemoryUsageCounter:
    """Usage counts held in process, one lock per (organization, kind).

    When linked to an auth store, user counts come from the accounts in it
    and ``set_count`` for users is ignored.
    """

    def __init__(self, users: InMemoryAuthRepository | None = None) -> None:
        """Initialize with zero counts.

        Args:
            users: Auth store whose accounts are the user count.
        """
        self._users = users
        self._counts: dict[tuple[UUID, ResourceKind], int] = defaultdict(int)
        self._locks: dict[tuple[UUID, ResourceKind], asyncio.Lock] = defaultdict(asyncio.Lock)

    def set_count(self, organization_id: UUID, kind: ResourceKind, value: int) -> None:
        """Set a count directly."""
        self._counts[(organization_id, kind)] = value

    def add(self, organization_id: UUID, kind: ResourceKind, amount: int = 1) -> None:
        """Record created resources."""
        self._counts[(organization_id, kind)] += amount

    async def count(self, organization_id: UUID, kind: ResourceKind) -> int:
        """Count resources of one kind."""
        if kind is ResourceKind.USER and self._users is not None:
            return self._users.count_users(organization_id)
        return self._counts[(organization_id, kind)]

    async def counters(self, organization_id: UUID) -> UsageCounters:
        """Read all usage counters for an organization."""
        return UsageCounters(
            priority_count=await self.count(organization_id, ResourceKind.PRIORITY),
            project_count=await self.count(organization_id, ResourceKind.PROJECT),
            user_count=await self.count(organization_id, ResourceKind.USER),
        )

    @asynccontextmanager
    async def creation_scope(
        self,
        organization_id: UUID,
        kind: ResourceKind,
    ) -> AsyncIterator[None]:
        """Serialize creations of one kind within an organization."""
        async with self._locks[(organization_id, kind)]:
            yield
