"""Auth repository protocol for database operations."""

from datetime import datetime
from typing import Protocol, runtime_checkable
from uuid import UUID

from strataccess.core.auth.types import RegistrationToken, Role, TokenSource, User


class EmailAlreadyRegistered(Exception):
    """Raised by repositories when a user insert hits the unique email index."""

    def __init__(self, email: str) -> None:
        """Initialize with the conflicting email."""
        super().__init__(f"User with email {email} already exists")
        self.email = email


@runtime_checkable
class AuthRepository(Protocol):
    """Protocol for auth database operations.

    Implementations provide actual database access (PostgreSQL, in-memory).
    Driver failures must surface as StorageUnavailableError.
    """

    # User operations
    async def get_user_by_id(self, user_id: UUID) -> User | None:
        """Get user by ID."""
        ...

    async def get_user_by_email(self, email: str) -> User | None:
        """Get user by email address (case-insensitive)."""
        ...

    async def update_password(
        self,
        user_id: UUID,
        password_hash: str,
        must_change_password: bool = False,
    ) -> User | None:
        """Store a new password hash and set the forced-change flag."""
        ...

    # Session revocation
    async def revoke_session(self, session_id: str, user_id: UUID, expires_at: datetime) -> None:
        """Record a session as revoked. Revoking twice is a no-op."""
        ...

    async def is_session_revoked(self, session_id: str) -> bool:
        """Check whether a session id has been revoked."""
        ...

    async def purge_expired_revocations(self, now: datetime) -> int:
        """Delete revocation rows whose sessions have expired anyway."""
        ...

    # Registration tokens
    async def create_registration_token(
        self,
        token_hash: str,
        source: TokenSource,
        expires_at: datetime,
        organization_id: UUID | None = None,
        intended_email: str | None = None,
        role: Role = Role.LEADER,
    ) -> RegistrationToken:
        """Store a newly issued registration token."""
        ...

    async def get_registration_token(self, token_hash: str) -> RegistrationToken | None:
        """Get a registration token by its hash."""
        ...

    async def count_pending_invites(self, organization_id: UUID, now: datetime) -> int:
        """Count unconsumed, unexpired tokens that will add a user to an organization."""
        ...

    async def consume_token_and_create_user(
        self,
        token_hash: str,
        email: str,
        password_hash: str,
        now: datetime,
        first_name: str | None = None,
        last_name: str | None = None,
        organization_name: str | None = None,
    ) -> User | None:
        """Atomically consume a token and create the account it grants.

        The token row is claimed with a single conditional update that only
        matches while it is unconsumed, unexpired at ``now`` and, when bound
        to an email, bound to ``email``. The user row is written in the same
        transaction, so either both writes happen or neither does.

        Returns:
            The created user, or None if the conditional update matched no
            row. Callers classify the failure by re-reading the token.

        Raises:
            EmailAlreadyRegistered: If the email is taken. Nothing is consumed.
        """
        ...
