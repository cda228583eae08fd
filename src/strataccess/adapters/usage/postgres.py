"""PostgreSQL usage counter."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from uuid import UUID

from strataccess.adapters.db.app_db import AppDatabase
from strataccess.core.entitlements.interfaces import UsageCounters
from strataccess.core.entitlements.plans import ResourceKind

_COUNT_QUERIES: dict[ResourceKind, str] = {
    ResourceKind.PRIORITY: (
        "SELECT count(*) FROM strategies WHERE organization_id = $1 AND status <> 'Archived'"
    ),
    ResourceKind.PROJECT: (
        "SELECT count(*) FROM projects WHERE organization_id = $1 AND NOT is_archived"
    ),
    ResourceKind.USER: "SELECT count(*) FROM users WHERE organization_id = $1",
}


class PostgresUsageCounter:
    """Counts limited resources in the application database."""

    def __init__(self, db: AppDatabase) -> None:
        """Initialize with database connection.

        Args:
            db: Application database instance.
        """
        self._db = db

    async def count(self, organization_id: UUID, kind: ResourceKind) -> int:
        """Count non-archived resources of one kind."""
        value = await self._db.fetch_value(_COUNT_QUERIES[kind], organization_id)
        return int(value or 0)

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
        """Hold a transaction-scoped advisory lock for (organization, kind).

        The lock is released when the transaction ends, after the caller's
        insert has committed.
        """
        async with self._db.transaction() as conn:
            await conn.execute(
                "SELECT pg_advisory_xact_lock(hashtext($1))",
                f"{organization_id}:{kind.value}",
            )
            yield
