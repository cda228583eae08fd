"""API route modules."""

from fastapi import APIRouter

from strataccess.entrypoints.api.routes.auth import router as auth_router
from strataccess.entrypoints.api.routes.billing import router as billing_router
from strataccess.entrypoints.api.routes.invites import router as invites_router

# Create main API router
api_router = APIRouter()

# Include all route modules
api_router.include_router(auth_router)
api_router.include_router(billing_router)
api_router.include_router(invites_router)

__all__ = ["api_router"]
