"""Auth domain types."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, EmailStr


class Role(str, Enum):
    """Organization roles, most to least privileged."""

    ADMINISTRATOR = "administrator"
    EXECUTIVE = "executive"
    LEADER = "leader"


class TokenSource(str, Enum):
    """How a registration token came to exist."""

    INVITE = "invite"
    PURCHASE = "purchase"


class User(BaseModel):
    """Credential store record."""

    id: UUID
    email: EmailStr
    first_name: str | None = None
    last_name: str | None = None
    password_hash: str | None = None  # None until a password is set
    role: Role = Role.LEADER
    organization_id: UUID
    must_change_password: bool = False
    is_active: bool = True
    created_at: datetime


class Principal(BaseModel):
    """The authenticated identity attached to a request.

    Always built from the live user row so role and flag changes made after
    the session was issued take effect on the next request.
    """

    id: UUID
    email: EmailStr
    role: Role
    organization_id: UUID
    must_change_password: bool = False

    @classmethod
    def from_user(cls, user: User) -> "Principal":
        """Snapshot a user record as a principal."""
        return cls(
            id=user.id,
            email=user.email,
            role=user.role,
            organization_id=user.organization_id,
            must_change_password=user.must_change_password,
        )


class RegistrationToken(BaseModel):
    """A single-use token that bootstraps one account.

    Only the SHA-256 hash of the token value is stored.
    """

    id: UUID
    token_hash: str
    organization_id: UUID | None = None
    intended_email: str | None = None
    role: Role = Role.LEADER
    source: TokenSource
    expires_at: datetime
    consumed_at: datetime | None = None
    created_at: datetime


class AccountDetails(BaseModel):
    """Details supplied by the person redeeming a registration token."""

    email: EmailStr
    password: str
    first_name: str | None = None
    last_name: str | None = None
    organization_name: str | None = None  # Used when the token has no organization


class SessionClaims(BaseModel):
    """JWT session claims.

    Identity only. Role and flags are never read from the token.
    """

    sub: str  # user_id
    jti: str  # session id, the revocation key
    exp: int  # expiration timestamp
    iat: int  # issued at timestamp
