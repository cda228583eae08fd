"""Secure token generation for registration links."""

import hashlib
import os
import secrets
from datetime import UTC, datetime, timedelta

# Token configuration
REGISTRATION_TOKEN_BYTES = 32  # 256 bits of entropy
INVITE_EXPIRY_DAYS = int(os.environ.get("INVITE_EXPIRE_DAYS", "7"))
PURCHASE_EXPIRY_DAYS = int(os.environ.get("PURCHASE_TOKEN_EXPIRE_DAYS", "30"))


def generate_registration_token() -> str:
    """Generate a cryptographically secure registration token.

    Returns:
        URL-safe base64 encoded token string.
    """
    return secrets.token_urlsafe(REGISTRATION_TOKEN_BYTES)


def hash_token(token: str) -> str:
    """Hash a token for secure storage.

    Uses SHA-256 for fast lookup while maintaining security.
    The token itself has enough entropy that rainbow tables are infeasible.

    Args:
        token: The plaintext token to hash.

    Returns:
        Hex-encoded SHA-256 hash of the token.
    """
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def get_token_expiry(days: int) -> datetime:
    """Calculate token expiry timestamp.

    Args:
        days: Number of days until expiry.

    Returns:
        UTC datetime when the token expires.
    """
    return datetime.now(UTC) + timedelta(days=days)


def is_token_expired(expires_at: datetime, now: datetime | None = None) -> bool:
    """Check if a token has expired.

    A token is still usable at exactly ``expires_at``.

    Args:
        expires_at: The token's expiry timestamp.
        now: Reference time, defaults to the current UTC time.

    Returns:
        True if the token has expired.
    """
    now = now or datetime.now(UTC)
    # Handle timezone-naive datetimes
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=UTC)
    return now > expires_at
