"""Stripe subscription provider over the Stripe REST API."""

from typing import Any

import httpx
import structlog

from strataccess.core.billing.types import SubscriptionRecord
from strataccess.core.exceptions import BillingProviderError

logger = structlog.get_logger()

# Subscriptions that can still decide an organization's plan
LIVE_STATUSES = ("active", "trialing", "past_due")


class StripeSubscriptionProvider:
    """Reads subscriptions from Stripe.

    Every call opens a short-lived client with a bounded timeout. Transport
    and API failures surface as BillingProviderError.
    """

    BASE_URL = "https://api.stripe.com"

    def __init__(
        self,
        api_key: str,
        timeout_seconds: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize Stripe provider.

        Args:
            api_key: Stripe secret API key.
            timeout_seconds: Per-request timeout.
            transport: Optional transport override, used by tests.
        """
        self._api_key = api_key
        self._timeout = timeout_seconds
        self._transport = transport

    def _get_headers(self) -> dict[str, str]:
        """Get request headers with authentication."""
        return {"Authorization": f"Bearer {self._api_key}"}

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> httpx.Response:
        try:
            async with httpx.AsyncClient(
                base_url=self.BASE_URL,
                headers=self._get_headers(),
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                response = await client.get(path, params=params)
        except httpx.TimeoutException as e:
            logger.warning("stripe_timeout", path=path)
            raise BillingProviderError("Stripe request timed out") from e
        except httpx.HTTPError as e:
            logger.error("stripe_request_failed", path=path, error=str(e))
            raise BillingProviderError(f"Stripe request failed: {e}") from e

        if response.status_code == 401:
            raise BillingProviderError("Invalid Stripe API key", retryable=False)
        if response.status_code == 429:
            raise BillingProviderError("Stripe API rate limit exceeded")
        if response.status_code >= 500:
            raise BillingProviderError(f"Stripe API error: {response.status_code}")
        return response

    async def list_subscriptions(self, customer_id: str) -> list[SubscriptionRecord]:
        """List a customer's active, trialing and past_due subscriptions."""
        records: list[SubscriptionRecord] = []
        for status in LIVE_STATUSES:
            response = await self._get(
                "/v1/subscriptions",
                params={"customer": customer_id, "status": status, "limit": 10},
            )
            if response.status_code != 200:
                raise BillingProviderError(
                    f"Stripe API error: {response.status_code}", retryable=False
                )
            for item in response.json().get("data", []):
                records.append(SubscriptionRecord.from_stripe(item))

        logger.debug("stripe_subscriptions_listed", customer_id=customer_id, count=len(records))
        return records

    async def get_subscription(self, subscription_id: str) -> SubscriptionRecord | None:
        """Get one subscription by id."""
        response = await self._get(f"/v1/subscriptions/{subscription_id}")
        if response.status_code == 404:
            return None
        if response.status_code != 200:
            raise BillingProviderError(f"Stripe API error: {response.status_code}", retryable=False)
        return SubscriptionRecord.from_stripe(response.json())
