"""API middleware."""

from strataccess.entrypoints.api.middleware.csrf import CsrfMiddleware
from strataccess.entrypoints.api.middleware.session_auth import (
    CurrentPrincipal,
    PasswordChangePrincipal,
    RequireUserManagement,
    authorize_or_raise,
    require_capability,
    require_principal,
    verify_session,
)

__all__ = [
    # Session auth
    "verify_session",
    "require_principal",
    "CurrentPrincipal",
    "PasswordChangePrincipal",
    # Role authorization
    "require_capability",
    "authorize_or_raise",
    "RequireUserManagement",
    # Middleware
    "CsrfMiddleware",
]
