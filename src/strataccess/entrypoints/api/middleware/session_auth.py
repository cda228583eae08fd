"""Session authentication and role authorization dependencies."""

from collections.abc import Callable
from typing import Annotated, Any
from uuid import UUID

import structlog
from fastapi import Depends, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from strataccess.core.auth.session import SessionAuthenticator
from strataccess.core.auth.types import Principal
from strataccess.core.outcomes import Forbidden, ForbiddenReason, Unauthenticated
from strataccess.core.rbac.policy import Capability, check_capability
from strataccess.entrypoints.api.deps import get_session_authenticator
from strataccess.entrypoints.api.errors import forbidden_http, unauthenticated_http

logger = structlog.get_logger()

SESSION_COOKIE = "session"

# Bearer header for API clients, session cookie for browsers
bearer_scheme = HTTPBearer(auto_error=False)


def extract_credential(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None,
) -> str | None:
    """Pick the session credential from the Authorization header or cookie."""
    if credentials:
        return credentials.credentials
    return request.cookies.get(SESSION_COOKIE)


async def verify_session(
    request: Request,
    authenticator: Annotated[SessionAuthenticator, Depends(get_session_authenticator)],
    credentials: HTTPAuthorizationCredentials | None = Security(bearer_scheme),  # noqa: B008
) -> Principal:
    """Authenticate the request without checking the forced-change flag.

    Only the password change route depends on this directly.

    Raises:
        HTTPException: 401 if the credential is missing, invalid, expired or
            revoked, or the user is gone or deactivated.
    """
    result = await authenticator.authenticate(extract_credential(request, credentials))
    if isinstance(result, Unauthenticated):
        logger.debug("session_rejected", reason=result.reason, path=request.url.path)
        raise unauthenticated_http(result)

    request.state.principal = result
    return result


async def require_principal(
    principal: Annotated[Principal, Depends(verify_session)],
) -> Principal:
    """Authenticate and refuse accounts with a pending forced password change.

    Raises:
        HTTPException: 403 password_change_required.
    """
    if principal.must_change_password:
        raise forbidden_http(Forbidden(reason=ForbiddenReason.PASSWORD_CHANGE_REQUIRED))
    return principal


def authorize_or_raise(
    principal: Principal,
    capability: Capability,
    resource_owner_id: UUID | None = None,
) -> None:
    """Check a capability inside a handler that knows the resource owner.

    Raises:
        HTTPException: 403 forbidden.
    """
    outcome = check_capability(principal, capability, resource_owner_id)
    if isinstance(outcome, Forbidden):
        logger.info(
            "capability_denied",
            user_id=str(principal.id),
            role=principal.role.value,
            capability=capability.value,
        )
        raise forbidden_http(outcome)


def require_capability(capability: Capability) -> Callable[..., Any]:
    """Dependency to require a capability that is not ownership-scoped.

    Usage:
        @router.post("/strategies")
        async def create_strategy(
            principal: Annotated[
                Principal, Depends(require_capability(Capability.CREATE_STRATEGY))
            ],
        ):
            ...

    Args:
        capability: Capability the route needs.

    Returns:
        Dependency function that validates the capability.
    """

    async def capability_checker(
        principal: Annotated[Principal, Depends(require_principal)],
    ) -> Principal:
        authorize_or_raise(principal, capability)
        return principal

    return capability_checker


# Common dependencies for convenience
CurrentPrincipal = Annotated[Principal, Depends(require_principal)]
PasswordChangePrincipal = Annotated[Principal, Depends(verify_session)]
RequireUserManagement = Annotated[Principal, Depends(require_capability(Capability.MANAGE_USERS))]
