"""In-memory AuthRepository for tests and local development."""

import asyncio
from datetime import UTC, datetime
from uuid import UUID, uuid4

from strataccess.adapters.auth.postgres import default_organization_name
from strataccess.adapters.billing.memory import InMemoryOrganizationRepository
from strataccess.core.auth.repository import EmailAlreadyRegistered
from strataccess.core.auth.tokens import is_token_expired
from strataccess.core.auth.types import RegistrationToken, Role, TokenSource, User


class InMemoryAuthRepository:
    """Auth repository backed by dicts.

    A single lock stands in for the database transaction, so token
    consumption is atomic across concurrent tasks on one event loop.
    """

    def __init__(self, organizations: InMemoryOrganizationRepository | None = None) -> None:
        """Initialize empty stores.

        Args:
            organizations: Organization store used when a token creates a new
                organization.
        """
        self.users: dict[UUID, User] = {}
        self.tokens: dict[str, RegistrationToken] = {}
        self.revoked: dict[str, datetime] = {}
        self._organizations = organizations
        self._lock = asyncio.Lock()

    def add_user(
        self,
        email: str,
        password_hash: str | None = None,
        role: Role = Role.LEADER,
        organization_id: UUID | None = None,
        must_change_password: bool = False,
        is_active: bool = True,
    ) -> User:
        """Seed a user directly."""
        user = User(
            id=uuid4(),
            email=email,
            password_hash=password_hash,
            role=role,
            organization_id=organization_id or uuid4(),
            must_change_password=must_change_password,
            is_active=is_active,
            created_at=datetime.now(UTC),
        )
        self.users[user.id] = user
        return user

    def _find_by_email(self, email: str) -> User | None:
        lowered = email.lower()
        for user in self.users.values():
            if user.email.lower() == lowered:
                return user
        return None

    # User operations
    async def get_user_by_id(self, user_id: UUID) -> User | None:
        """Get user by ID."""
        return self.users.get(user_id)

    async def get_user_by_email(self, email: str) -> User | None:
        """Get user by email address (case-insensitive)."""
        return self._find_by_email(email)

    async def update_password(
        self,
        user_id: UUID,
        password_hash: str,
        must_change_password: bool = False,
    ) -> User | None:
        """Store a new password hash and set the forced-change flag."""
        user = self.users.get(user_id)
        if user is None:
            return None
        updated = user.model_copy(
            update={"password_hash": password_hash, "must_change_password": must_change_password}
        )
        self.users[user_id] = updated
        return updated

    # Session revocation
    async def revoke_session(self, session_id: str, user_id: UUID, expires_at: datetime) -> None:
        """Record a session as revoked. Revoking twice is a no-op."""
        self.revoked.setdefault(session_id, expires_at)

    async def is_session_revoked(self, session_id: str) -> bool:
        """Check whether a session id has been revoked."""
        return session_id in self.revoked

    async def purge_expired_revocations(self, now: datetime) -> int:
        """Delete revocation rows whose sessions have expired anyway."""
        expired = [sid for sid, expires_at in self.revoked.items() if expires_at < now]
        for sid in expired:
            del self.revoked[sid]
        return len(expired)

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
        record = RegistrationToken(
            id=uuid4(),
            token_hash=token_hash,
            organization_id=organization_id,
            intended_email=intended_email,
            role=role,
            source=source,
            expires_at=expires_at,
            created_at=datetime.now(UTC),
        )
        self.tokens[token_hash] = record
        return record

    async def get_registration_token(self, token_hash: str) -> RegistrationToken | None:
        """Get a registration token by its hash."""
        return self.tokens.get(token_hash)

    async def count_pending_invites(self, organization_id: UUID, now: datetime) -> int:
        """Count unconsumed, unexpired tokens that will add a user to an organization."""
        return sum(
            1
            for token in self.tokens.values()
            if token.organization_id == organization_id
            and token.consumed_at is None
            and not is_token_expired(token.expires_at, now)
        )

    def count_users(self, organization_id: UUID) -> int:
        """Count accounts in an organization."""
        return sum(1 for user in self.users.values() if user.organization_id == organization_id)

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
        """Atomically consume a token and create the account it grants."""
        async with self._lock:
            token = self.tokens.get(token_hash)
            if (
                token is None
                or token.consumed_at is not None
                or is_token_expired(token.expires_at, now)
                or (token.intended_email and token.intended_email.lower() != email.lower())
            ):
                return None

            if self._find_by_email(email):
                raise EmailAlreadyRegistered(email)

            organization_id = token.organization_id
            if organization_id is None:
                name = organization_name or default_organization_name(email)
                if self._organizations is not None:
                    organization_id = (await self._organizations.create_organization(name)).id
                else:
                    organization_id = uuid4()

            user = User(
                id=uuid4(),
                email=email,
                first_name=first_name,
                last_name=last_name,
                password_hash=password_hash,
                role=token.role,
                organization_id=organization_id,
                created_at=now,
            )
            self.users[user.id] = user
            self.tokens[token_hash] = token.model_copy(update={"consumed_at": now})
            return user
