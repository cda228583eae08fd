"""FastAPI application definition."""

from __future__ import annotations

import os

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from strataccess.core.exceptions import (
    BillingProviderError,
    OrganizationNotFoundError,
    StratAccessError,
)

from .deps import lifespan
from .middleware.csrf import CsrfMiddleware
from .routes import api_router

logger = structlog.get_logger()

API_PREFIX = "/api/v1"

app = FastAPI(
    title="strataccess",
    description="Access control and plan entitlements",
    version="1.0.0",
    lifespan=lifespan,
    redirect_slashes=False,  # Prevent 307 redirects that lose auth headers
)

# CORS middleware for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o for o in os.getenv("CORS_ORIGINS", "").split(",") if o],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(
    CsrfMiddleware,
    exempt_paths=frozenset(
        {
            f"{API_PREFIX}/auth/login",
            f"{API_PREFIX}/billing/webhook",
        }
    ),
)

# Include API routes
app.include_router(api_router, prefix=API_PREFIX)


@app.exception_handler(OrganizationNotFoundError)
async def organization_not_found_handler(
    request: Request, exc: OrganizationNotFoundError
) -> JSONResponse:
    """Unknown organization ids are a 404."""
    return JSONResponse(
        status_code=404,
        content={"detail": {"error": "organization_not_found", "message": str(exc)}},
    )


@app.exception_handler(StratAccessError)
async def access_fault_handler(request: Request, exc: StratAccessError) -> JSONResponse:
    """Unexpected faults deny the request."""
    logger.error(
        "access_fault",
        path=request.url.path,
        error_type=type(exc).__name__,
        error=str(exc),
    )
    error = "service_unavailable"
    if isinstance(exc, BillingProviderError):
        error = "billing_unavailable"
    return JSONResponse(
        status_code=503,
        content={"detail": {"error": error, "message": "Please try again shortly."}},
    )


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}
