"""Billing API routes: plan info, limit checks and provider webhooks."""

import json
from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from strataccess.core.billing.resolver import BillingStateResolver
from strataccess.core.billing.types import BillingInfo
from strataccess.core.billing.webhooks import BillingWebhookHandler, verify_stripe_signature
from strataccess.core.entitlements.gate import EntitlementGate
from strataccess.core.entitlements.interfaces import UsageCounter
from strataccess.core.entitlements.plans import ResourceKind
from strataccess.core.exceptions import WebhookSignatureError
from strataccess.core.outcomes import LimitExceeded
from strataccess.entrypoints.api.deps import (
    get_billing_resolver,
    get_entitlement_gate,
    get_usage_counter,
    get_webhook_handler,
    get_webhook_secret,
)
from strataccess.entrypoints.api.errors import limit_exceeded_http
from strataccess.entrypoints.api.middleware.session_auth import CurrentPrincipal

logger = structlog.get_logger()

router = APIRouter(prefix="/billing", tags=["billing"])


class CheckLimitRequest(BaseModel):
    """Limit check body."""

    resource_kind: ResourceKind
    # Defaults to the live count from the resource store
    current_count: int | None = Field(default=None, ge=0)


class CheckLimitResponse(BaseModel):
    """A limit check that passed."""

    allowed: bool = True
    limit: int | None = None
    current: int


@router.get("/info", response_model=BillingInfo)
async def get_billing_info(
    principal: CurrentPrincipal,
    resolver: Annotated[BillingStateResolver, Depends(get_billing_resolver)],
    usage: Annotated[UsageCounter, Depends(get_usage_counter)],
) -> BillingInfo:
    """Get the caller's organization plan, limits and usage."""
    return await resolver.billing_info(principal.organization_id, usage)


@router.post("/check-limit", response_model=CheckLimitResponse)
async def check_limit(
    body: CheckLimitRequest,
    principal: CurrentPrincipal,
    gate: Annotated[EntitlementGate, Depends(get_entitlement_gate)],
    usage: Annotated[UsageCounter, Depends(get_usage_counter)],
) -> CheckLimitResponse:
    """Check whether the organization may create one more resource.

    Raises:
        HTTPException: 403 limit_exceeded with the upgrade prompt.
    """
    current = body.current_count
    if current is None:
        current = await usage.count(principal.organization_id, body.resource_kind)

    outcome = await gate.check_limit(principal.organization_id, body.resource_kind, current)
    if isinstance(outcome, LimitExceeded):
        raise limit_exceeded_http(outcome)
    return CheckLimitResponse(limit=outcome.limit, current=current)


@router.post("/webhook")
async def billing_webhook(
    request: Request,
    handler: Annotated[BillingWebhookHandler, Depends(get_webhook_handler)],
    secret: Annotated[str, Depends(get_webhook_secret)],
) -> dict[str, Any]:
    """Receive a signed billing provider event."""
    payload = await request.body()
    try:
        verify_stripe_signature(payload, request.headers.get("Stripe-Signature"), secret)
    except WebhookSignatureError as e:
        logger.warning("billing_webhook_rejected", error=str(e))
        raise HTTPException(
            status_code=400,
            detail={"error": "invalid_signature", "message": str(e)},
        ) from None

    try:
        event = json.loads(payload)
    except ValueError:
        raise HTTPException(
            status_code=400,
            detail={"error": "invalid_payload", "message": "Body is not valid JSON"},
        ) from None
    if not isinstance(event, dict):
        raise HTTPException(
            status_code=400,
            detail={"error": "invalid_payload", "message": "Body is not a JSON object"},
        )

    outcome = await handler.handle(event)
    logger.info(
        "billing_webhook_handled",
        event_type=event.get("type"),
        action=outcome.action,
        organization_id=str(outcome.organization_id) if outcome.organization_id else None,
    )
    return {"received": True, "action": outcome.action}
