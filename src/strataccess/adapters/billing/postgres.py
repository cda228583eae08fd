"""PostgreSQL implementation of the organization plan cache."""

from typing import Any
from uuid import UUID

from strataccess.adapters.db.app_db import AppDatabase
from strataccess.core.billing.types import OrganizationBilling, SubscriptionStatus
from strataccess.core.entitlements.plans import PlanId


class PostgresOrganizationRepository:
    """Reads and writes the billing columns of the organizations table."""

    def __init__(self, db: AppDatabase) -> None:
        """Initialize with database connection.

        Args:
            db: Application database instance.
        """
        self._db = db

    def _row_to_org(self, row: dict[str, Any]) -> OrganizationBilling:
        """Convert database row to OrganizationBilling model."""
        return OrganizationBilling(
            id=row["id"],
            name=row["name"],
            plan=PlanId(row.get("plan") or PlanId.STARTER.value),
            subscription_status=SubscriptionStatus(
                row.get("subscription_status") or SubscriptionStatus.ACTIVE.value
            ),
            stripe_customer_id=row.get("stripe_customer_id"),
            stripe_subscription_id=row.get("stripe_subscription_id"),
            stripe_price_id=row.get("stripe_price_id"),
            is_legacy=row.get("is_legacy", False),
            extra_seats=row.get("extra_seats") or 0,
            current_period_end=row.get("current_period_end"),
            last_synced_at=row.get("last_synced_at"),
        )

    async def get_organization(self, organization_id: UUID) -> OrganizationBilling | None:
        """Get an organization's cached billing state."""
        row = await self._db.fetch_one(
            "SELECT * FROM organizations WHERE id = $1",
            organization_id,
        )
        return self._row_to_org(row) if row else None

    async def get_organization_by_customer(self, customer_id: str) -> OrganizationBilling | None:
        """Find the organization linked to a billing customer."""
        row = await self._db.fetch_one(
            "SELECT * FROM organizations WHERE stripe_customer_id = $1",
            customer_id,
        )
        return self._row_to_org(row) if row else None

    async def create_organization(
        self,
        name: str,
        plan: PlanId = PlanId.STARTER,
        stripe_customer_id: str | None = None,
        stripe_subscription_id: str | None = None,
    ) -> OrganizationBilling:
        """Create an organization with an active subscription state."""
        row = await self._db.execute_returning(
            """
            INSERT INTO organizations
                (name, plan, subscription_status, stripe_customer_id, stripe_subscription_id)
            VALUES ($1, $2, $3, $4, $5)
            RETURNING *
            """,
            name,
            plan.value,
            SubscriptionStatus.ACTIVE.value,
            stripe_customer_id,
            stripe_subscription_id,
        )
        assert row is not None, "INSERT RETURNING should always return a row"
        return self._row_to_org(row)

    async def save_billing(self, org: OrganizationBilling) -> None:
        """Persist the billing fields of an organization."""
        await self._db.execute(
            """
            UPDATE organizations
            SET plan = $2,
                subscription_status = $3,
                stripe_customer_id = $4,
                stripe_subscription_id = $5,
                stripe_price_id = $6,
                is_legacy = $7,
                extra_seats = $8,
                current_period_end = $9,
                last_synced_at = $10,
                updated_at = NOW()
            WHERE id = $1
            """,
            org.id,
            org.plan.value,
            org.subscription_status.value,
            org.stripe_customer_id,
            org.stripe_subscription_id,
            org.stripe_price_id,
            org.is_legacy,
            org.extra_seats,
            org.current_period_end,
            org.last_synced_at,
        )
