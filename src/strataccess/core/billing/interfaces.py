"""Protocol definitions for billing adapters."""

from typing import Protocol, runtime_checkable
from uuid import UUID

from strataccess.core.billing.types import OrganizationBilling, SubscriptionRecord
from strataccess.core.entitlements.plans import PlanId


@runtime_checkable
class SubscriptionProvider(Protocol):
    """Protocol for the external subscription source.

    Implementations:
    - StripeSubscriptionProvider: Stripe REST API over httpx
    - ManualBillingProvider: no external billing, the plan cache is the truth
    """

    async def list_subscriptions(self, customer_id: str) -> list[SubscriptionRecord]:
        """List a customer's live (active, trialing or past_due) subscriptions.

        Raises:
            BillingProviderError: If the provider fails.
        """
        ...

    async def get_subscription(self, subscription_id: str) -> SubscriptionRecord | None:
        """Get one subscription by id, None if the provider does not know it.

        Raises:
            BillingProviderError: If the provider fails.
        """
        ...


@runtime_checkable
class OrganizationRepository(Protocol):
    """Protocol for the organization plan cache."""

    async def get_organization(self, organization_id: UUID) -> OrganizationBilling | None:
        """Get an organization's cached billing state."""
        ...

    async def get_organization_by_customer(self, customer_id: str) -> OrganizationBilling | None:
        """Find the organization linked to a billing customer."""
        ...

    async def create_organization(
        self,
        name: str,
        plan: PlanId = PlanId.STARTER,
        stripe_customer_id: str | None = None,
        stripe_subscription_id: str | None = None,
    ) -> OrganizationBilling:
        """Create an organization with an active subscription state."""
        ...

    async def save_billing(self, org: OrganizationBilling) -> None:
        """Persist the billing fields of an organization."""
        ...
