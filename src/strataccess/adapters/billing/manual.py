"""Manual billing provider - no external subscription source."""

from strataccess.core.billing.types import SubscriptionRecord


class ManualBillingProvider:
    """Provider used when no billing integration is configured.

    Reports no subscriptions, so the organization plan cache (edited by
    operators or by webhooks) is always the effective state.
    """

    async def list_subscriptions(self, customer_id: str) -> list[SubscriptionRecord]:
        """Manual billing has no live subscriptions."""
        return []

    async def get_subscription(self, subscription_id: str) -> SubscriptionRecord | None:
        """Manual billing knows no subscriptions."""
        return None
