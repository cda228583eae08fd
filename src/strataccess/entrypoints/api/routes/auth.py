"""Auth API routes for login, logout, registration and password changes."""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response, Security
from fastapi.security import HTTPAuthorizationCredentials
from pydantic import BaseModel, EmailStr

from strataccess.core.auth.registration import RegistrationTokenService
from strataccess.core.auth.session import SessionAuthenticator
from strataccess.core.auth.types import AccountDetails, Principal, TokenSource
from strataccess.core.outcomes import (
    InvalidCredentials,
    LimitExceeded,
    PolicyViolation,
    TokenErrorKind,
    TokenFailure,
)
from strataccess.entrypoints.api.deps import (
    get_cookie_secure,
    get_registration_service,
    get_session_authenticator,
)
from strataccess.entrypoints.api.errors import (
    invalid_credentials_http,
    limit_exceeded_http,
    policy_violation_http,
    token_failure_http,
)
from strataccess.entrypoints.api.middleware.csrf import CSRF_COOKIE, generate_csrf_token
from strataccess.entrypoints.api.middleware.session_auth import (
    SESSION_COOKIE,
    CurrentPrincipal,
    PasswordChangePrincipal,
    bearer_scheme,
    extract_credential,
)

router = APIRouter(prefix="/auth", tags=["auth"])


# Request/Response models
class LoginRequest(BaseModel):
    """Login request body."""

    email: EmailStr
    password: str


class PrincipalResponse(BaseModel):
    """The authenticated account."""

    id: str
    email: str
    role: str
    organization_id: str
    must_change_password: bool

    @classmethod
    def from_principal(cls, principal: Principal) -> "PrincipalResponse":
        """Serialize a principal."""
        return cls(
            id=str(principal.id),
            email=principal.email,
            role=principal.role.value,
            organization_id=str(principal.organization_id),
            must_change_password=principal.must_change_password,
        )


class LoginResponse(BaseModel):
    """Login response."""

    access_token: str
    token_type: str = "bearer"
    expires_at: datetime
    user: PrincipalResponse


class RegisterRequest(BaseModel):
    """Registration token redemption body."""

    token: str
    email: EmailStr
    password: str
    first_name: str | None = None
    last_name: str | None = None
    organization_name: str | None = None


class TokenValidationResponse(BaseModel):
    """Registration token check result."""

    valid: bool
    intended_email: str | None = None
    source: TokenSource | None = None


class ForceChangePasswordRequest(BaseModel):
    """Forced password change body."""

    current_password: str
    new_password: str


@router.post("/login", response_model=LoginResponse)
async def login(
    body: LoginRequest,
    response: Response,
    authenticator: Annotated[SessionAuthenticator, Depends(get_session_authenticator)],
    cookie_secure: Annotated[bool, Depends(get_cookie_secure)],
) -> LoginResponse:
    """Check credentials and open a session.

    The credential is returned in the body for API clients and set as an
    HttpOnly cookie for browsers, alongside a readable anti-forgery cookie.
    """
    result = await authenticator.login(body.email, body.password)
    if isinstance(result, InvalidCredentials):
        raise invalid_credentials_http(result)

    response.set_cookie(
        SESSION_COOKIE,
        result.credential,
        expires=result.expires_at,
        httponly=True,
        secure=cookie_secure,
        samesite="lax",
    )
    response.set_cookie(
        CSRF_COOKIE,
        generate_csrf_token(),
        expires=result.expires_at,
        httponly=False,
        secure=cookie_secure,
        samesite="lax",
    )
    return LoginResponse(
        access_token=result.credential,
        expires_at=result.expires_at,
        user=PrincipalResponse.from_principal(result.principal),
    )


@router.post("/logout")
async def logout(
    request: Request,
    response: Response,
    authenticator: Annotated[SessionAuthenticator, Depends(get_session_authenticator)],
    credentials: HTTPAuthorizationCredentials | None = Security(bearer_scheme),  # noqa: B008
) -> dict[str, str]:
    """Revoke the current session. Always succeeds."""
    await authenticator.logout(extract_credential(request, credentials))
    response.delete_cookie(SESSION_COOKIE)
    response.delete_cookie(CSRF_COOKIE)
    return {"message": "Logged out"}


@router.get("/me", response_model=PrincipalResponse)
async def get_current_user(principal: CurrentPrincipal) -> PrincipalResponse:
    """Get current authenticated user info."""
    return PrincipalResponse.from_principal(principal)


@router.get("/register/{token}", response_model=TokenValidationResponse)
async def validate_registration_token(
    token: str,
    service: Annotated[RegistrationTokenService, Depends(get_registration_service)],
) -> TokenValidationResponse:
    """Check a registration link before showing the sign-up form."""
    result = await service.validate(token)
    if not result.valid:
        raise token_failure_http(TokenFailure(result.reason or TokenErrorKind.NOT_FOUND))
    return TokenValidationResponse(
        valid=True,
        intended_email=result.intended_email,
        source=result.source,
    )


@router.post("/register", response_model=PrincipalResponse, status_code=201)
async def register(
    body: RegisterRequest,
    service: Annotated[RegistrationTokenService, Depends(get_registration_service)],
) -> PrincipalResponse:
    """Redeem a registration token and create the account."""
    result = await service.consume(
        body.token,
        AccountDetails(
            email=body.email,
            password=body.password,
            first_name=body.first_name,
            last_name=body.last_name,
            organization_name=body.organization_name,
        ),
    )
    if isinstance(result, PolicyViolation):
        raise policy_violation_http(result)
    if isinstance(result, TokenFailure):
        raise token_failure_http(result)
    if isinstance(result, LimitExceeded):
        raise limit_exceeded_http(result)
    return PrincipalResponse.from_principal(result)


@router.post("/force-change-password")
async def force_change_password(
    body: ForceChangePasswordRequest,
    principal: PasswordChangePrincipal,
    authenticator: Annotated[SessionAuthenticator, Depends(get_session_authenticator)],
) -> dict[str, str]:
    """Replace the password. The only route open during a forced change."""
    result = await authenticator.force_change_password(
        principal,
        body.current_password,
        body.new_password,
    )
    if isinstance(result, InvalidCredentials):
        raise invalid_credentials_http(result)
    if isinstance(result, PolicyViolation):
        raise policy_violation_http(result)
    return {"message": "Password changed"}
