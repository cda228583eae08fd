"""Billing state resolver: subscription records to plan descriptors."""

import asyncio
from datetime import UTC, datetime
from uuid import UUID

import structlog

from strataccess.core.billing.interfaces import OrganizationRepository, SubscriptionProvider
from strataccess.core.billing.types import (
    BillingInfo,
    OrganizationBilling,
    PriceCatalog,
    SubscriptionRecord,
    SubscriptionStatus,
)
from strataccess.core.entitlements.interfaces import UsageCounter
from strataccess.core.entitlements.plans import PlanDescriptor, PlanId, get_plan_limits
from strataccess.core.exceptions import BillingProviderError, OrganizationNotFoundError

logger = structlog.get_logger()

DEFAULT_PROVIDER_TIMEOUT_SECONDS = 5.0

_ACTIVE_STATUSES = (SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIALING)


def describe(org: OrganizationBilling) -> PlanDescriptor:
    """Compute the effective plan of an organization from its cached state.

    A canceled subscription drops the plan to starter. past_due keeps the
    plan as a grace period but is not an active subscription. Legacy
    organizations get the legacy grant regardless of plan.
    """
    status = org.subscription_status
    is_legacy = org.is_legacy or status is SubscriptionStatus.LEGACY

    plan_id = org.plan
    if status is SubscriptionStatus.CANCELED and not is_legacy:
        plan_id = PlanId.STARTER

    return PlanDescriptor(
        plan_id=plan_id,
        is_legacy=is_legacy,
        has_active_subscription=bool(org.stripe_subscription_id) and status in _ACTIVE_STATUSES,
        limits=get_plan_limits(plan_id, is_legacy),
        subscription_status=status.value,
        extra_seats=org.extra_seats,
    )


def select_subscription(
    subscriptions: list[SubscriptionRecord],
    catalog: PriceCatalog,
) -> SubscriptionRecord | None:
    """Pick the subscription that decides the plan.

    Subscriptions on a recognized base-plan price win over add-ons; among
    those the one with the latest period end wins.
    """
    if not subscriptions:
        return None
    base_plans = [s for s in subscriptions if catalog.plan_for(s.price_id)]
    candidates = base_plans or subscriptions
    return max(candidates, key=lambda s: s.current_period_end or 0)


def apply_subscription(
    org: OrganizationBilling,
    subscription: SubscriptionRecord,
    catalog: PriceCatalog,
) -> OrganizationBilling:
    """Fold a provider subscription into the cached organization state.

    Unrecognized price ids keep the cached plan.
    """
    status = SubscriptionStatus.from_provider(subscription.status)
    period_end = (
        datetime.fromtimestamp(subscription.current_period_end, tz=UTC)
        if subscription.current_period_end
        else org.current_period_end
    )
    canceled = status is SubscriptionStatus.CANCELED
    return org.model_copy(
        update={
            "plan": catalog.plan_for(subscription.price_id) or org.plan,
            "subscription_status": status,
            "stripe_subscription_id": None if canceled else subscription.id,
            "stripe_price_id": None if canceled else subscription.price_id,
            "current_period_end": period_end,
        }
    )


class BillingStateResolver:
    """Resolves an organization's effective plan.

    The plan cache is authoritative when the provider has nothing to say or
    cannot be reached. A provider failure never widens limits.
    """

    def __init__(
        self,
        organizations: OrganizationRepository,
        provider: SubscriptionProvider,
        catalog: PriceCatalog | None = None,
        timeout_seconds: float = DEFAULT_PROVIDER_TIMEOUT_SECONDS,
    ) -> None:
        """Initialize the resolver.

        Args:
            organizations: Organization plan cache.
            provider: External subscription source.
            catalog: Price id to plan mapping.
            timeout_seconds: Upper bound on each provider call.
        """
        self._organizations = organizations
        self._provider = provider
        self._catalog = catalog or PriceCatalog()
        self._timeout = timeout_seconds

    async def resolve(self, organization_id: UUID) -> PlanDescriptor:
        """Get the current plan descriptor for an organization.

        Raises:
            OrganizationNotFoundError: If the organization does not exist.
        """
        org = await self._current_state(organization_id)
        return describe(org)

    async def billing_info(self, organization_id: UUID, usage: UsageCounter) -> BillingInfo:
        """Get the billing summary for an organization."""
        org = await self._current_state(organization_id)
        descriptor = describe(org)
        counters = await usage.counters(organization_id)
        return BillingInfo(
            organization_id=org.id,
            organization_name=org.name,
            plan_id=descriptor.plan_id,
            status=org.subscription_status,
            is_legacy=descriptor.is_legacy,
            has_active_subscription=descriptor.has_active_subscription,
            limits=descriptor.limits,
            base_user_limit=descriptor.limits.users,
            extra_seats=org.extra_seats,
            max_users=descriptor.limits.users + org.extra_seats,
            user_count=counters.user_count,
            priority_count=counters.priority_count,
            project_count=counters.project_count,
            current_period_end=org.current_period_end,
        )

    async def sync(self, org: OrganizationBilling) -> OrganizationBilling:
        """Refresh an organization from the provider and write back changes.

        Returns the cached state unchanged when the provider fails, times
        out or reports no live subscription.
        """
        if not org.stripe_customer_id:
            return org

        try:
            subscriptions = await asyncio.wait_for(
                self._provider.list_subscriptions(org.stripe_customer_id),
                timeout=self._timeout,
            )
        except TimeoutError:
            logger.warning(
                "billing_sync_timeout",
                organization_id=str(org.id),
                timeout_seconds=self._timeout,
            )
            return org
        except BillingProviderError as e:
            logger.error(
                "billing_sync_failed",
                organization_id=str(org.id),
                error=str(e),
                retryable=e.retryable,
            )
            return org

        subscription = select_subscription(subscriptions, self._catalog)
        if subscription is None:
            logger.debug("billing_sync_no_subscription", organization_id=str(org.id))
            return org

        updated = apply_subscription(org, subscription, self._catalog)
        if updated != org:
            updated = updated.model_copy(update={"last_synced_at": datetime.now(UTC)})
            await self._organizations.save_billing(updated)
            logger.info(
                "billing_state_synced",
                organization_id=str(org.id),
                plan=updated.plan.value,
                status=updated.subscription_status.value,
                subscription_id=subscription.id,
            )
        return updated

    async def _current_state(self, organization_id: UUID) -> OrganizationBilling:
        org = await self._organizations.get_organization(organization_id)
        if org is None:
            raise OrganizationNotFoundError(organization_id)
        return await self.sync(org)
