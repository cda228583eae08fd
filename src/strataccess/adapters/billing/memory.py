"""In-memory organization plan cache for tests and local development."""

from uuid import UUID, uuid4

from strataccess.core.billing.types import OrganizationBilling, SubscriptionStatus
from strataccess.core.entitlements.plans import PlanId


class InMemoryOrganizationRepository:
    """Organization repository backed by a dict."""

    def __init__(self) -> None:
        """Initialize an empty store."""
        self.organizations: dict[UUID, OrganizationBilling] = {}

    def add(self, org: OrganizationBilling) -> OrganizationBilling:
        """Seed an organization directly."""
        self.organizations[org.id] = org
        return org

    async def get_organization(self, organization_id: UUID) -> OrganizationBilling | None:
        """Get an organization's cached billing state."""
        return self.organizations.get(organization_id)

    async def get_organization_by_customer(self, customer_id: str) -> OrganizationBilling | None:
        """Find the organization linked to a billing customer."""
        for org in self.organizations.values():
            if org.stripe_customer_id == customer_id:
                return org
        return None

    async def create_organization(
        self,
        name: str,
        plan: PlanId = PlanId.STARTER,
        stripe_customer_id: str | None = None,
        stripe_subscription_id: str | None = None,
    ) -> OrganizationBilling:
        """Create an organization with an active subscription state."""
        org = OrganizationBilling(
            id=uuid4(),
            name=name,
            plan=plan,
            subscription_status=SubscriptionStatus.ACTIVE,
            stripe_customer_id=stripe_customer_id,
            stripe_subscription_id=stripe_subscription_id,
        )
        return self.add(org)

    async def save_billing(self, org: OrganizationBilling) -> None:
        """Persist the billing fields of an organization."""
        self.organizations[org.id] = org
