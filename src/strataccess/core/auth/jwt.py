"""JWT session credential creation and validation."""

import os
import uuid
from datetime import UTC, datetime, timedelta

import jwt

from strataccess.core.auth.types import SessionClaims


class TokenError(Exception):
    """Raised when a session credential fails validation."""

    pass


class TokenExpiredError(TokenError):
    """Raised when a session credential is well formed but past its expiry."""

    pass


# Configuration
SECRET_KEY = os.environ.get("JWT_SECRET_KEY", "dev-secret-change-in-production")
ALGORITHM = "HS256"
SESSION_EXPIRE_DAYS = int(os.environ.get("SESSION_EXPIRE_DAYS", "7"))


def create_session_token(user_id: str, expires_in: timedelta | None = None) -> tuple[str, datetime]:
    """Create a signed session credential.

    The credential carries identity only. Role and account flags are looked
    up on every request.

    Args:
        user_id: User identifier
        expires_in: Lifetime override, defaults to SESSION_EXPIRE_DAYS

    Returns:
        Tuple of (encoded JWT string, expiry time)
    """
    now = datetime.now(UTC)
    expire = now + (expires_in or timedelta(days=SESSION_EXPIRE_DAYS))

    payload = {
        "sub": user_id,
        "jti": uuid.uuid4().hex,
        "exp": int(expire.timestamp()),
        "iat": int(now.timestamp()),
    }

    return jwt.encode(payload, SECRET_KEY, algorithm=ALGORITHM), expire


def decode_token(token: str) -> SessionClaims:
    """Decode and validate a session credential.

    Args:
        token: Encoded JWT string

    Returns:
        Decoded session claims

    Raises:
        TokenExpiredError: If token is past its expiry
        TokenError: If token is otherwise invalid
    """
    try:
        payload = jwt.decode(
            token,
            SECRET_KEY,
            algorithms=[ALGORITHM],
            options={"require": ["sub", "jti", "exp", "iat"]},
        )
        return SessionClaims(
            sub=payload["sub"],
            jti=payload["jti"],
            exp=payload["exp"],
            iat=payload["iat"],
        )
    except jwt.ExpiredSignatureError:
        raise TokenExpiredError("Token has expired") from None
    except jwt.InvalidTokenError as e:
        raise TokenError(f"Invalid token: {e}") from None


def decode_token_unverified_expiry(token: str) -> SessionClaims | None:
    """Read claims from a correctly signed credential, ignoring expiry.

    Used by logout, which must accept credentials that have already expired.

    Returns:
        Claims, or None if the credential is malformed or badly signed.
    """
    try:
        payload = jwt.decode(
            token,
            SECRET_KEY,
            algorithms=[ALGORITHM],
            options={"verify_exp": False, "require": ["sub", "jti", "exp", "iat"]},
        )
    except jwt.InvalidTokenError:
        return None
    return SessionClaims(
        sub=payload["sub"],
        jti=payload["jti"],
        exp=payload["exp"],
        iat=payload["iat"],
    )
