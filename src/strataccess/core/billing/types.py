"""Billing domain types."""

import os
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel

from strataccess.core.entitlements.plans import PlanId, PlanLimits


class SubscriptionStatus(str, Enum):
    """Internal subscription status of an organization."""

    ACTIVE = "active"
    TRIALING = "trialing"
    PAST_DUE = "past_due"
    CANCELED = "canceled"
    LEGACY = "legacy"

    @classmethod
    def from_provider(cls, status: str) -> "SubscriptionStatus":
        """Map a Stripe subscription status to an internal one.

        Statuses that do not grant access map to past_due or canceled, never
        to active.
        """
        mapping = {
            "active": cls.ACTIVE,
            "trialing": cls.TRIALING,
            "past_due": cls.PAST_DUE,
            "unpaid": cls.PAST_DUE,
            "incomplete": cls.PAST_DUE,
            "paused": cls.PAST_DUE,
            "canceled": cls.CANCELED,
            "incomplete_expired": cls.CANCELED,
        }
        return mapping.get(status, cls.PAST_DUE)


class SubscriptionRecord(BaseModel):
    """A subscription as reported by the billing provider."""

    id: str
    customer_id: str | None = None
    status: str
    price_id: str | None = None
    current_period_end: int | None = None  # epoch seconds
    cancel_at_period_end: bool = False
    organization_id: str | None = None  # from subscription metadata

    @classmethod
    def from_stripe(cls, data: dict[str, Any]) -> "SubscriptionRecord":
        """Build from a Stripe subscription object."""
        items = (data.get("items") or {}).get("data") or []
        price = (items[0].get("price") or {}) if items else {}
        customer = data.get("customer")
        if isinstance(customer, dict):
            customer = customer.get("id")
        # Newer API versions moved the period onto the subscription item
        period_end = data.get("current_period_end")
        if period_end is None and items:
            period_end = items[0].get("current_period_end")
        return cls(
            id=data["id"],
            customer_id=customer,
            status=data.get("status", ""),
            price_id=price.get("id"),
            current_period_end=period_end,
            cancel_at_period_end=bool(data.get("cancel_at_period_end")),
            organization_id=(data.get("metadata") or {}).get("organizationId"),
        )


class OrganizationBilling(BaseModel):
    """Cached billing state of an organization."""

    id: UUID
    name: str
    plan: PlanId = PlanId.STARTER
    subscription_status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    stripe_customer_id: str | None = None
    stripe_subscription_id: str | None = None
    stripe_price_id: str | None = None
    is_legacy: bool = False
    extra_seats: int = 0
    current_period_end: datetime | None = None
    last_synced_at: datetime | None = None


def _price_ids(env_var: str) -> list[str]:
    """Read a comma-separated list of price ids."""
    return [p.strip() for p in os.getenv(env_var, "").split(",") if p.strip()]


class PriceCatalog(BaseModel):
    """Maps provider price ids to plans.

    Seat add-on prices are not listed, so subscriptions for them are never
    mistaken for a base plan.
    """

    prices: dict[str, PlanId] = {}

    @classmethod
    def from_env(cls) -> "PriceCatalog":
        """Load price ids from STRIPE_PRICE_<PLAN> environment variables."""
        prices: dict[str, PlanId] = {}
        for plan in PlanId:
            for price_id in _price_ids(f"STRIPE_PRICE_{plan.value.upper()}"):
                prices[price_id] = plan
        return cls(prices=prices)

    def plan_for(self, price_id: str | None) -> PlanId | None:
        """Get the plan for a price id, None if unrecognized."""
        if not price_id:
            return None
        return self.prices.get(price_id)


class BillingInfo(BaseModel):
    """Billing summary returned to the organization's members."""

    organization_id: UUID
    organization_name: str
    plan_id: PlanId
    status: SubscriptionStatus
    is_legacy: bool
    has_active_subscription: bool
    limits: PlanLimits
    base_user_limit: int
    extra_seats: int
    max_users: int
    user_count: int
    priority_count: int
    project_count: int
    current_period_end: datetime | None = None
