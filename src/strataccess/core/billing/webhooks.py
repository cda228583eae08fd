"""Billing provider webhook verification and event handling."""

import hashlib
import hmac
import time
from dataclasses import dataclass
from typing import Any
from uuid import UUID

import structlog

from strataccess.core.auth.registration import IssuedToken, RegistrationTokenService
from strataccess.core.auth.repository import AuthRepository
from strataccess.core.billing.interfaces import OrganizationRepository, SubscriptionProvider
from strataccess.core.billing.resolver import apply_subscription
from strataccess.core.billing.types import (
    OrganizationBilling,
    PriceCatalog,
    SubscriptionRecord,
    SubscriptionStatus,
)
from strataccess.core.entitlements.plans import PlanId
from strataccess.core.exceptions import WebhookSignatureError

logger = structlog.get_logger()

DEFAULT_TOLERANCE_SECONDS = 300


def verify_stripe_signature(
    payload: bytes,
    signature_header: str | None,
    secret: str,
    tolerance: int = DEFAULT_TOLERANCE_SECONDS,
    now: float | None = None,
) -> None:
    """Verify a Stripe-Signature header.

    The header looks like ``t=1700000000,v1=<hex>,v1=<hex>``. Each ``v1`` is
    HMAC-SHA256 of ``"{t}.{payload}"`` keyed with the endpoint secret; any
    one matching is enough.

    Raises:
        WebhookSignatureError: If the header is missing, malformed, stale or
            no signature matches.
    """
    if not signature_header:
        raise WebhookSignatureError("Missing signature header")
    if not secret:
        raise WebhookSignatureError("Webhook secret not configured")

    timestamp: int | None = None
    signatures: list[str] = []
    for part in signature_header.split(","):
        key, _, value = part.strip().partition("=")
        if key == "t":
            try:
                timestamp = int(value)
            except ValueError as e:
                raise WebhookSignatureError("Malformed signature timestamp") from e
        elif key == "v1":
            signatures.append(value)

    if timestamp is None or not signatures:
        raise WebhookSignatureError("Malformed signature header")

    current = time.time() if now is None else now
    if tolerance and abs(current - timestamp) > tolerance:
        raise WebhookSignatureError("Signature timestamp outside tolerance")

    signed_payload = f"{timestamp}.".encode() + payload
    expected = hmac.new(secret.encode(), signed_payload, hashlib.sha256).hexdigest()
    if not any(hmac.compare_digest(expected, sig) for sig in signatures):
        raise WebhookSignatureError("No matching signature")


@dataclass(frozen=True)
class WebhookOutcome:
    """What handling one event did."""

    action: str  # provisioned, linked, updated, canceled, past_due, recovered, ignored
    organization_id: UUID | None = None
    purchase_token: IssuedToken | None = None


class BillingWebhookHandler:
    """Applies billing provider events to the organization plan cache."""

    def __init__(
        self,
        organizations: OrganizationRepository,
        provider: SubscriptionProvider,
        users: AuthRepository,
        registration: RegistrationTokenService,
        catalog: PriceCatalog | None = None,
    ) -> None:
        """Initialize the handler.

        Args:
            organizations: Organization plan cache.
            provider: Subscription source, used to read purchased plans.
            users: Credential store, used to link existing accounts.
            registration: Issues purchase registration tokens.
            catalog: Price id to plan mapping.
        """
        self._organizations = organizations
        self._provider = provider
        self._users = users
        self._registration = registration
        self._catalog = catalog or PriceCatalog()

    async def handle(self, event: dict[str, Any]) -> WebhookOutcome:
        """Dispatch one verified event."""
        event_type = event.get("type", "")
        obj = (event.get("data") or {}).get("object") or {}

        if event_type == "checkout.session.completed":
            return await self._checkout_completed(obj)
        if event_type in ("customer.subscription.created", "customer.subscription.updated"):
            return await self._subscription_changed(SubscriptionRecord.from_stripe(obj))
        if event_type == "customer.subscription.deleted":
            return await self._subscription_deleted(SubscriptionRecord.from_stripe(obj))
        if event_type == "invoice.payment_failed":
            return await self._payment_failed(obj)
        if event_type == "invoice.payment_succeeded":
            return await self._payment_succeeded(obj)

        logger.info("billing_webhook_ignored", event_type=event_type, event_id=event.get("id"))
        return WebhookOutcome(action="ignored")

    async def _find_organization(
        self,
        subscription: SubscriptionRecord,
    ) -> OrganizationBilling | None:
        if subscription.organization_id:
            try:
                org = await self._organizations.get_organization(
                    UUID(subscription.organization_id)
                )
            except ValueError:
                org = None
            if org:
                return org
        if subscription.customer_id:
            return await self._organizations.get_organization_by_customer(
                subscription.customer_id
            )
        return None

    async def _checkout_completed(self, session: dict[str, Any]) -> WebhookOutcome:
        details = session.get("customer_details") or {}
        email = details.get("email") or session.get("customer_email")
        customer_id = session.get("customer")
        subscription_id = session.get("subscription")

        if not email:
            logger.warning("checkout_without_email", session_id=session.get("id"))
            return WebhookOutcome(action="ignored")

        if customer_id:
            existing = await self._organizations.get_organization_by_customer(customer_id)
            if existing:
                return WebhookOutcome(action="linked", organization_id=existing.id)

        user = await self._users.get_user_by_email(email.lower())
        if user:
            org = await self._organizations.get_organization(user.organization_id)
            if org and customer_id and subscription_id:
                await self._organizations.save_billing(
                    org.model_copy(
                        update={
                            "stripe_customer_id": customer_id,
                            "stripe_subscription_id": subscription_id,
                        }
                    )
                )
            logger.info(
                "checkout_linked_existing_user",
                organization_id=str(user.organization_id),
                user_id=str(user.id),
            )
            return WebhookOutcome(action="linked", organization_id=user.organization_id)

        plan = PlanId.STARTER
        subscription = None
        if subscription_id:
            subscription = await self._provider.get_subscription(subscription_id)
            if subscription:
                plan = self._catalog.plan_for(subscription.price_id) or plan

        name = (details.get("name") or "").strip() or f"{email.split('@')[0]}'s Organization"
        org = await self._organizations.create_organization(
            name=name,
            plan=plan,
            stripe_customer_id=customer_id,
            stripe_subscription_id=subscription_id,
        )
        if subscription:
            await self._organizations.save_billing(
                apply_subscription(org, subscription, self._catalog)
            )

        issued = await self._registration.issue_purchase(org.id, email)
        logger.info(
            "checkout_provisioned_organization",
            organization_id=str(org.id),
            plan=plan.value,
            token_id=str(issued.record.id),
        )
        return WebhookOutcome(action="provisioned", organization_id=org.id, purchase_token=issued)

    async def _subscription_changed(self, subscription: SubscriptionRecord) -> WebhookOutcome:
        org = await self._find_organization(subscription)
        if org is None:
            logger.info("subscription_without_organization", subscription_id=subscription.id)
            return WebhookOutcome(action="ignored")

        updated = apply_subscription(org, subscription, self._catalog)
        await self._organizations.save_billing(updated)
        logger.info(
            "subscription_updated",
            organization_id=str(org.id),
            plan=updated.plan.value,
            status=updated.subscription_status.value,
        )
        return WebhookOutcome(action="updated", organization_id=org.id)

    async def _subscription_deleted(self, subscription: SubscriptionRecord) -> WebhookOutcome:
        org = await self._find_organization(subscription)
        if org is None:
            logger.info("subscription_without_organization", subscription_id=subscription.id)
            return WebhookOutcome(action="ignored")

        await self._organizations.save_billing(
            org.model_copy(
                update={
                    "subscription_status": SubscriptionStatus.CANCELED,
                    "stripe_subscription_id": None,
                    "stripe_price_id": None,
                }
            )
        )
        logger.info("subscription_canceled", organization_id=str(org.id))
        return WebhookOutcome(action="canceled", organization_id=org.id)

    async def _payment_failed(self, invoice: dict[str, Any]) -> WebhookOutcome:
        customer_id = invoice.get("customer")
        org = (
            await self._organizations.get_organization_by_customer(customer_id)
            if customer_id
            else None
        )
        if org is None:
            logger.info("payment_failed_unknown_customer", customer_id=customer_id)
            return WebhookOutcome(action="ignored")

        await self._organizations.save_billing(
            org.model_copy(update={"subscription_status": SubscriptionStatus.PAST_DUE})
        )
        logger.warning(
            "payment_failed",
            organization_id=str(org.id),
            amount_due=invoice.get("amount_due"),
        )
        return WebhookOutcome(action="past_due", organization_id=org.id)

    async def _payment_succeeded(self, invoice: dict[str, Any]) -> WebhookOutcome:
        customer_id = invoice.get("customer")
        org = (
            await self._organizations.get_organization_by_customer(customer_id)
            if customer_id
            else None
        )
        if org is None or org.subscription_status is not SubscriptionStatus.PAST_DUE:
            return WebhookOutcome(action="ignored")

        await self._organizations.save_billing(
            org.model_copy(update={"subscription_status": SubscriptionStatus.ACTIVE})
        )
        logger.info("payment_recovered", organization_id=str(org.id))
        return WebhookOutcome(action="recovered", organization_id=org.id)
