"""Auth domain types and utilities."""

from strataccess.core.auth.jwt import (
    TokenError,
    TokenExpiredError,
    create_session_token,
    decode_token,
)
from strataccess.core.auth.password import (
    PasswordRule,
    check_password_policy,
    hash_password,
    verify_password,
)
from strataccess.core.auth.registration import (
    IssuedToken,
    RegistrationTokenService,
    TokenValidation,
)
from strataccess.core.auth.repository import AuthRepository, EmailAlreadyRegistered
from strataccess.core.auth.session import LoginResult, SessionAuthenticator
from strataccess.core.auth.types import (
    AccountDetails,
    Principal,
    RegistrationToken,
    Role,
    SessionClaims,
    TokenSource,
    User,
)

__all__ = [
    "User",
    "Principal",
    "Role",
    "RegistrationToken",
    "TokenSource",
    "AccountDetails",
    "SessionClaims",
    "PasswordRule",
    "hash_password",
    "verify_password",
    "check_password_policy",
    "create_session_token",
    "decode_token",
    "TokenError",
    "TokenExpiredError",
    "AuthRepository",
    "EmailAlreadyRegistered",
    "SessionAuthenticator",
    "LoginResult",
    "RegistrationTokenService",
    "IssuedToken",
    "TokenValidation",
]
