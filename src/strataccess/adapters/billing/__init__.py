"""Billing adapters."""

from strataccess.adapters.billing.manual import ManualBillingProvider
from strataccess.adapters.billing.memory import InMemoryOrganizationRepository
from strataccess.adapters.billing.postgres import PostgresOrganizationRepository
from strataccess.adapters.billing.stripe import StripeSubscriptionProvider

__all__ = [
    "InMemoryOrganizationRepository",
    "ManualBillingProvider",
    "PostgresOrganizationRepository",
    "StripeSubscriptionProvider",
]
