"""Tests for the Stripe subscription provider."""

import httpx
import pytest

from strataccess.adapters.billing.stripe import StripeSubscriptionProvider
from strataccess.core.exceptions import BillingProviderError


def stripe_subscription(sub_id: str, status: str, price_id: str = "price_team") -> dict:
    """Minimal Stripe subscription object."""
    return {
        "id": sub_id,
        "customer": "cus_1",
        "status": status,
        "current_period_end": 1_800_000_000,
        "items": {"data": [{"price": {"id": price_id}}]},
    }


def provider_with(handler) -> StripeSubscriptionProvider:
    """Create a provider whose requests go to ``handler``."""
    return StripeSubscriptionProvider(
        api_key="sk_test_123",  # pragma: allowlist secret
        transport=httpx.MockTransport(handler),
    )


class TestListSubscriptions:
    """Tests for list_subscriptions."""

    @pytest.mark.asyncio
    async def test_lists_live_statuses(self) -> None:
        """Queries each live status and merges the results."""
        seen: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            params = dict(request.url.params)
            seen.append(params)
            assert request.headers["Authorization"] == "Bearer sk_test_123"
            if params["status"] == "active":
                return httpx.Response(200, json={"data": [stripe_subscription("sub_a", "active")]})
            if params["status"] == "past_due":
                return httpx.Response(
                    200, json={"data": [stripe_subscription("sub_b", "past_due")]}
                )
            return httpx.Response(200, json={"data": []})

        records = await provider_with(handler).list_subscriptions("cus_1")

        assert [r.id for r in records] == ["sub_a", "sub_b"]
        assert {p["status"] for p in seen} == {"active", "trialing", "past_due"}
        assert all(p["customer"] == "cus_1" for p in seen)

    @pytest.mark.asyncio
    async def test_unauthorized_not_retryable(self) -> None:
        """A bad API key is a permanent failure."""
        provider = provider_with(lambda request: httpx.Response(401, json={}))

        with pytest.raises(BillingProviderError) as exc_info:
            await provider.list_subscriptions("cus_1")

        assert exc_info.value.retryable is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code", [429, 500, 503])
    async def test_transient_errors_retryable(self, status_code: int) -> None:
        """Rate limits and server errors are transient."""
        provider = provider_with(lambda request: httpx.Response(status_code, json={}))

        with pytest.raises(BillingProviderError) as exc_info:
            await provider.list_subscriptions("cus_1")

        assert exc_info.value.retryable is True

    @pytest.mark.asyncio
    async def test_timeout(self) -> None:
        """Transport timeouts become provider errors."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(BillingProviderError, match="timed out"):
            await provider_with(handler).list_subscriptions("cus_1")

    @pytest.mark.asyncio
    async def test_connection_error(self) -> None:
        """Connection failures become provider errors."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(BillingProviderError, match="request failed"):
            await provider_with(handler).list_subscriptions("cus_1")


class TestGetSubscription:
    """Tests for get_subscription."""

    @pytest.mark.asyncio
    async def test_found(self) -> None:
        """Returns the parsed subscription."""

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/v1/subscriptions/sub_1"
            return httpx.Response(200, json=stripe_subscription("sub_1", "trialing"))

        record = await provider_with(handler).get_subscription("sub_1")

        assert record is not None
        assert record.status == "trialing"
        assert record.price_id == "price_team"

    @pytest.mark.asyncio
    async def test_not_found(self) -> None:
        """Unknown subscriptions return None."""
        provider = provider_with(lambda request: httpx.Response(404, json={}))
        assert await provider.get_subscription("sub_missing") is None

    @pytest.mark.asyncio
    async def test_bad_request(self) -> None:
        """Other client errors are permanent failures."""
        provider = provider_with(lambda request: httpx.Response(400, json={}))

        with pytest.raises(BillingProviderError) as exc_info:
            await provider.get_subscription("sub_1")

        assert exc_info.value.retryable is False
