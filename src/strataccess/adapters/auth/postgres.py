"""PostgreSQL implementation of AuthRepository."""

from datetime import datetime
from typing import Any
from uuid import UUID

import asyncpg

from strataccess.adapters.db.app_db import AppDatabase
from strataccess.core.auth.repository import EmailAlreadyRegistered
from strataccess.core.auth.types import RegistrationToken, Role, TokenSource, User


def default_organization_name(email: str) -> str:
    """Name for an organization created on behalf of a new account."""
    return f"{email.split('@')[0]}'s Organization"


class PostgresAuthRepository:
    """PostgreSQL implementation of auth repository."""

    def __init__(self, db: AppDatabase) -> None:
        """Initialize with database connection.

        Args:
            db: Application database instance.
        """
        self._db = db

    def _row_to_user(self, row: dict[str, Any]) -> User:
        """Convert database row to User model."""
        return User(
            id=row["id"],
            email=row["email"],
            first_name=row.get("first_name"),
            last_name=row.get("last_name"),
            password_hash=row.get("password_hash"),
            role=Role(row.get("role", Role.LEADER.value)),
            organization_id=row["organization_id"],
            must_change_password=row.get("must_change_password", False),
            is_active=row.get("is_active", True),
            created_at=row["created_at"],
        )

    def _row_to_token(self, row: dict[str, Any]) -> RegistrationToken:
        """Convert database row to RegistrationToken model."""
        return RegistrationToken(
            id=row["id"],
            token_hash=row["token_hash"],
            organization_id=row.get("organization_id"),
            intended_email=row.get("intended_email"),
            role=Role(row["role"]),
            source=TokenSource(row["source"]),
            expires_at=row["expires_at"],
            consumed_at=row.get("consumed_at"),
            created_at=row["created_at"],
        )

    # User operations
    async def get_user_by_id(self, user_id: UUID) -> User | None:
        """Get user by ID."""
        row = await self._db.fetch_one(
            "SELECT * FROM users WHERE id = $1",
            user_id,
        )
        return self._row_to_user(row) if row else None

    async def get_user_by_email(self, email: str) -> User | None:
        """Get user by email address (case-insensitive)."""
        row = await self._db.fetch_one(
            "SELECT * FROM users WHERE lower(email) = lower($1)",
            email,
        )
        return self._row_to_user(row) if row else None

    async def update_password(
        self,
        user_id: UUID,
        password_hash: str,
        must_change_password: bool = False,
    ) -> User | None:
        """Store a new password hash and set the forced-change flag."""
        row = await self._db.execute_returning(
            """
            UPDATE users
            SET password_hash = $2, must_change_password = $3, updated_at = NOW()
            WHERE id = $1
            RETURNING *
            """,
            user_id,
            password_hash,
            must_change_password,
        )
        return self._row_to_user(row) if row else None

    # Session revocation
    async def revoke_session(self, session_id: str, user_id: UUID, expires_at: datetime) -> None:
        """Record a session as revoked. Revoking twice is a no-op."""
        await self._db.execute(
            """
            INSERT INTO revoked_sessions (session_id, user_id, expires_at)
            VALUES ($1, $2, $3)
            ON CONFLICT (session_id) DO NOTHING
            """,
            session_id,
            user_id,
            expires_at,
        )

    async def is_session_revoked(self, session_id: str) -> bool:
        """Check whether a session id has been revoked."""
        revoked = await self._db.fetch_value(
            "SELECT EXISTS (SELECT 1 FROM revoked_sessions WHERE session_id = $1)",
            session_id,
        )
        return bool(revoked)

    async def purge_expired_revocations(self, now: datetime) -> int:
        """Delete revocation rows whose sessions have expired anyway."""
        result = await self._db.execute(
            "DELETE FROM revoked_sessions WHERE expires_at < $1",
            now,
        )
        # asyncpg status looks like "DELETE 3"
        return int(result.split()[-1]) if result else 0

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
        row = await self._db.execute_returning(
            """
            INSERT INTO registration_tokens
                (token_hash, organization_id, intended_email, role, source, expires_at)
            VALUES ($1, $2, $3, $4, $5, $6)
            RETURNING *
            """,
            token_hash,
            organization_id,
            intended_email,
            role.value,
            source.value,
            expires_at,
        )
        assert row is not None, "INSERT RETURNING should always return a row"
        return self._row_to_token(row)

    async def get_registration_token(self, token_hash: str) -> RegistrationToken | None:
        """Get a registration token by its hash."""
        row = await self._db.fetch_one(
            "SELECT * FROM registration_tokens WHERE token_hash = $1",
            token_hash,
        )
        return self._row_to_token(row) if row else None

    async def count_pending_invites(self, organization_id: UUID, now: datetime) -> int:
        """Count unconsumed, unexpired tokens that will add a user to an organization."""
        value = await self._db.fetch_value(
            """
            SELECT count(*) FROM registration_tokens
            WHERE organization_id = $1 AND consumed_at IS NULL AND expires_at >= $2
            """,
            organization_id,
            now,
        )
        return int(value or 0)

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
        async with self._db.transaction() as conn:
            token = await conn.fetchrow(
                """
                UPDATE registration_tokens
                SET consumed_at = $2
                WHERE token_hash = $1
                  AND consumed_at IS NULL
                  AND expires_at >= $2
                  AND (intended_email IS NULL OR lower(intended_email) = lower($3))
                RETURNING id, organization_id, role
                """,
                token_hash,
                now,
                email,
            )
            if token is None:
                return None

            organization_id = token["organization_id"]
            if organization_id is None:
                organization_id = await conn.fetchval(
                    "INSERT INTO organizations (name) VALUES ($1) RETURNING id",
                    organization_name or default_organization_name(email),
                )

            try:
                row = await conn.fetchrow(
                    """
                    INSERT INTO users
                        (email, first_name, last_name, password_hash, role, organization_id)
                    VALUES ($1, $2, $3, $4, $5, $6)
                    RETURNING *
                    """,
                    email,
                    first_name,
                    last_name,
                    password_hash,
                    token["role"],
                    organization_id,
                )
            except asyncpg.UniqueViolationError as e:
                raise EmailAlreadyRegistered(email) from e

            await conn.execute(
                "UPDATE registration_tokens SET consumed_by = $2 WHERE id = $1",
                token["id"],
                row["id"],
            )
            return self._row_to_user(dict(row))
