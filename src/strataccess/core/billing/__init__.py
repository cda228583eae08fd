"""Billing core domain."""

from strataccess.core.billing.interfaces import OrganizationRepository, SubscriptionProvider
from strataccess.core.billing.resolver import BillingStateResolver, describe
from strataccess.core.billing.types import (
    BillingInfo,
    OrganizationBilling,
    PriceCatalog,
    SubscriptionRecord,
    SubscriptionStatus,
)
from strataccess.core.billing.webhooks import (
    BillingWebhookHandler,
    WebhookOutcome,
    verify_stripe_signature,
)

__all__ = [
    "BillingInfo",
    "BillingStateResolver",
    "BillingWebhookHandler",
    "OrganizationBilling",
    "OrganizationRepository",
    "PriceCatalog",
    "SubscriptionProvider",
    "SubscriptionRecord",
    "SubscriptionStatus",
    "WebhookOutcome",
    "describe",
    "verify_stripe_signature",
]
