"""Dependency injection and application lifespan management."""

from __future__ import annotations

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import structlog
from fastapi import Request

from strataccess.adapters.auth.memory import InMemoryAuthRepository
from strataccess.adapters.auth.postgres import PostgresAuthRepository
from strataccess.adapters.billing.memory import InMemoryOrganizationRepository
from strataccess.adapters.billing.postgres import PostgresOrganizationRepository
from strataccess.adapters.db.app_db import AppDatabase
from strataccess.adapters.usage.memory import InMemoryUsageCounter
from strataccess.adapters.usage.postgres import PostgresUsageCounter
from strataccess.core.auth.registration import RegistrationTokenService
from strataccess.core.auth.repository import AuthRepository
from strataccess.core.auth.session import SessionAuthenticator
from strataccess.core.billing.config import get_price_catalog, get_subscription_provider
from strataccess.core.billing.interfaces import OrganizationRepository
from strataccess.core.billing.resolver import BillingStateResolver
from strataccess.core.billing.webhooks import BillingWebhookHandler
from strataccess.core.entitlements.gate import EntitlementGate
from strataccess.core.entitlements.interfaces import UsageCounter

if TYPE_CHECKING:
    from fastapi import FastAPI

logger = structlog.get_logger()


class Settings:
    """Application settings loaded from environment."""

    def __init__(self) -> None:
        """Load settings from environment variables."""
        # Empty means in-memory stores, for local development only
        self.app_database_url = os.getenv("APP_DATABASE_URL", "")
        self.session_cookie_secure = os.getenv("SESSION_COOKIE_SECURE", "true").lower() == "true"
        self.stripe_webhook_secret = os.getenv("STRIPE_WEBHOOK_SECRET", "")
        self.stripe_timeout_seconds = float(os.getenv("STRIPE_TIMEOUT_SECONDS", "5"))


settings = Settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan - setup and teardown.

    This context manager handles:
    - Database connection pool setup
    - Repository and service construction
    - Subscription provider selection
    """
    app_db: AppDatabase | None = None
    if settings.app_database_url:
        app_db = AppDatabase(settings.app_database_url)
        await app_db.connect()
        auth_repo: AuthRepository = PostgresAuthRepository(app_db)
        organizations: OrganizationRepository = PostgresOrganizationRepository(app_db)
        usage: UsageCounter = PostgresUsageCounter(app_db)
    else:
        logger.warning("using_in_memory_stores")
        memory_orgs = InMemoryOrganizationRepository()
        organizations = memory_orgs
        auth_repo = InMemoryAuthRepository(memory_orgs)
        usage = InMemoryUsageCounter(auth_repo)

    provider = get_subscription_provider()
    catalog = get_price_catalog()
    resolver = BillingStateResolver(
        organizations,
        provider,
        catalog=catalog,
        timeout_seconds=settings.stripe_timeout_seconds,
    )
    registration = RegistrationTokenService(auth_repo, EntitlementGate(resolver), usage)

    app.state.app_db = app_db
    app.state.auth_repo = auth_repo
    app.state.organizations = organizations
    app.state.usage = usage
    app.state.billing_resolver = resolver
    app.state.webhook_handler = BillingWebhookHandler(
        organizations,
        provider,
        auth_repo,
        registration,
        catalog=catalog,
    )

    logger.info(
        "app_started",
        provider=type(provider).__name__,
        persistent=app_db is not None,
    )

    yield

    if app_db is not None:
        await app_db.close()


def get_auth_repo(request: Request) -> AuthRepository:
    """Get the credential store from app state.

    Args:
        request: The current request.

    Returns:
        The configured AuthRepository.
    """
    repo: AuthRepository = request.app.state.auth_repo
    return repo


def get_session_authenticator(request: Request) -> SessionAuthenticator:
    """Get the session authenticator for this request."""
    return SessionAuthenticator(get_auth_repo(request))


def get_registration_service(request: Request) -> RegistrationTokenService:
    """Get the registration token service for this request."""
    return RegistrationTokenService(
        get_auth_repo(request),
        get_entitlement_gate(request),
        get_usage_counter(request),
    )


def get_billing_resolver(request: Request) -> BillingStateResolver:
    """Get the billing state resolver from app state."""
    resolver: BillingStateResolver = request.app.state.billing_resolver
    return resolver


def get_entitlement_gate(request: Request) -> EntitlementGate:
    """Get the entitlement gate for this request."""
    return EntitlementGate(get_billing_resolver(request))


def get_usage_counter(request: Request) -> UsageCounter:
    """Get the usage counter from app state."""
    usage: UsageCounter = request.app.state.usage
    return usage


def get_webhook_handler(request: Request) -> BillingWebhookHandler:
    """Get the billing webhook handler from app state."""
    handler: BillingWebhookHandler = request.app.state.webhook_handler
    return handler


def get_webhook_secret() -> str:
    """Get the billing webhook signing secret."""
    return settings.stripe_webhook_secret


def get_cookie_secure() -> bool:
    """Whether session cookies are marked Secure."""
    return settings.session_cookie_secure
