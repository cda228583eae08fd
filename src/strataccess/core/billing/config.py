"""Subscription provider factory configuration."""

import os
from functools import lru_cache

from strataccess.adapters.billing.manual import ManualBillingProvider
from strataccess.adapters.billing.stripe import StripeSubscriptionProvider
from strataccess.core.billing.interfaces import SubscriptionProvider
from strataccess.core.billing.types import PriceCatalog


@lru_cache
def get_subscription_provider() -> SubscriptionProvider:
    """Get the configured subscription provider.

    Selection priority:
    1. STRIPE_SECRET_KEY set -> StripeSubscriptionProvider
    2. Not set -> ManualBillingProvider (plan cache is authoritative)

    Returns:
        Configured subscription provider instance
    """
    stripe_key = os.environ.get("STRIPE_SECRET_KEY", "").strip()

    if stripe_key:
        timeout = float(os.environ.get("STRIPE_TIMEOUT_SECONDS", "5"))
        return StripeSubscriptionProvider(api_key=stripe_key, timeout_seconds=timeout)

    return ManualBillingProvider()


@lru_cache
def get_price_catalog() -> PriceCatalog:
    """Get the price catalog configured from the environment."""
    return PriceCatalog.from_env()
