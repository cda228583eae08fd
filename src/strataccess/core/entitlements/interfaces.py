"""Protocol definitions for entitlement collaborators."""

from contextlib import AbstractAsyncContextManager
from typing import Protocol, runtime_checkable
from uuid import UUID

from pydantic import BaseModel

from strataccess.core.entitlements.plans import PlanDescriptor, ResourceKind


class UsageCounters(BaseModel):
    """Live resource counts for an organization."""

    priority_count: int = 0
    project_count: int = 0
    user_count: int = 0


@runtime_checkable
class UsageCounter(Protocol):
    """Protocol for reading live usage from the resource store.

    Implementations:
    - PostgresUsageCounter: counts rows in the application database
    - InMemoryUsageCounter: counts held in process, for tests
    """

    async def counters(self, organization_id: UUID) -> UsageCounters:
        """Read all usage counters for an organization."""
        ...

    async def count(self, organization_id: UUID, kind: ResourceKind) -> int:
        """Count non-archived resources of one kind."""
        ...

    def creation_scope(
        self,
        organization_id: UUID,
        kind: ResourceKind,
    ) -> AbstractAsyncContextManager[None]:
        """Serialize creations of one kind within an organization.

        While the scope is open no other caller can enter a scope for the
        same organization and kind, so a count read inside it stays valid
        until the caller's insert commits.
        """
        ...


@runtime_checkable
class PlanResolver(Protocol):
    """Anything that can produce an organization's effective plan."""

    async def resolve(self, organization_id: UUID) -> PlanDescriptor:
        """Resolve the current plan descriptor."""
        ...
