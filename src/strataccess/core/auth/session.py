"""Session authentication: login, logout, credential checks and password changes."""

from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

import structlog

from strataccess.core.auth.jwt import (
    TokenError,
    TokenExpiredError,
    create_session_token,
    decode_token,
    decode_token_unverified_expiry,
)
from strataccess.core.auth.password import (
    PasswordRule,
    check_password_policy,
    hash_password,
    verify_password,
)
from strataccess.core.auth.repository import AuthRepository
from strataccess.core.auth.types import Principal
from strataccess.core.outcomes import InvalidCredentials, PolicyViolation, Unauthenticated

logger = structlog.get_logger()


@dataclass(frozen=True)
class LoginResult:
    """A freshly issued session."""

    credential: str
    expires_at: datetime
    principal: Principal


class SessionAuthenticator:
    """Turns bearer credentials into principals.

    The credential is a signed JWT that carries the user id and a session id.
    Everything else about the principal is read from the credential store on
    each call, so role changes, deactivation and the forced-password-change
    flag apply to sessions that already exist.
    """

    def __init__(self, repo: AuthRepository) -> None:
        """Initialize with auth repository.

        Args:
            repo: Auth repository for database operations.
        """
        self._repo = repo

    async def authenticate(self, credential: str | None) -> Principal | Unauthenticated:
        """Resolve a bearer credential to the current principal.

        Args:
            credential: Raw credential from the request, None if absent.

        Returns:
            The live principal, or Unauthenticated with a reason code.
        """
        if not credential:
            return Unauthenticated("missing_credential")

        try:
            claims = decode_token(credential)
        except TokenExpiredError:
            return Unauthenticated("expired_credential")
        except TokenError as e:
            logger.info("session_credential_rejected", error=str(e))
            return Unauthenticated("invalid_credential")

        try:
            user_id = UUID(claims.sub)
        except ValueError:
            return Unauthenticated("invalid_credential")

        if await self._repo.is_session_revoked(claims.jti):
            return Unauthenticated("revoked_credential")

        user = await self._repo.get_user_by_id(user_id)
        if not user:
            logger.warning("session_user_missing", user_id=claims.sub)
            return Unauthenticated("unknown_user")
        if not user.is_active:
            return Unauthenticated("inactive_user")

        return Principal.from_user(user)

    async def login(self, email: str, password: str) -> LoginResult | InvalidCredentials:
        """Check an email/password pair and open a session.

        Args:
            email: User's email address, any case.
            password: Plain text password.

        Returns:
            LoginResult with the new credential, or InvalidCredentials.
        """
        user = await self._repo.get_user_by_email(email.strip().lower())
        if not user:
            logger.info("login_unknown_email")
            return InvalidCredentials()

        if not user.is_active:
            logger.info("login_inactive_user", user_id=str(user.id))
            return InvalidCredentials()

        if not user.password_hash:
            return InvalidCredentials("Account not set up for password login")

        if not verify_password(password, user.password_hash):
            logger.info("login_wrong_password", user_id=str(user.id))
            return InvalidCredentials()

        credential, expires_at = create_session_token(str(user.id))
        logger.info(
            "login_succeeded",
            user_id=str(user.id),
            must_change_password=user.must_change_password,
        )
        return LoginResult(
            credential=credential,
            expires_at=expires_at,
            principal=Principal.from_user(user),
        )

    async def logout(self, credential: str | None) -> None:
        """Revoke a session.

        Safe to call any number of times, including with a credential that is
        missing, malformed, expired or already revoked.
        Revocations whose sessions have expired anyway are purged here.
        """
        if not credential:
            return

        claims = decode_token_unverified_expiry(credential)
        if claims is None:
            return

        try:
            user_id = UUID(claims.sub)
        except ValueError:
            return

        purged = await self._repo.purge_expired_revocations(datetime.now(UTC))
        if purged:
            logger.info("expired_revocations_purged", count=purged)
        await self._repo.revoke_session(
            claims.jti,
            user_id,
            datetime.fromtimestamp(claims.exp, tz=UTC),
        )
        logger.info("session_revoked", user_id=claims.sub)

    async def force_change_password(
        self,
        principal: Principal,
        current_password: str,
        new_password: str,
    ) -> InvalidCredentials | PolicyViolation | None:
        """Replace the principal's password and clear the forced-change flag.

        Args:
            principal: The authenticated caller.
            current_password: Password the caller logged in with.
            new_password: Replacement password.

        Returns:
            None on success, InvalidCredentials if the current password is
            wrong, PolicyViolation naming every unmet clause otherwise.
        """
        user = await self._repo.get_user_by_id(principal.id)
        if not user or not verify_password(current_password, user.password_hash):
            logger.warning("password_change_wrong_current", user_id=str(principal.id))
            return InvalidCredentials("Current password is incorrect")

        violation = check_password_policy(new_password)
        if new_password == current_password:
            unmet = (violation.unmet if violation else ()) + (PasswordRule.DIFFERS_FROM_CURRENT,)
            violation = PolicyViolation(unmet=unmet)
        if violation:
            return violation

        await self._repo.update_password(
            user.id,
            hash_password(new_password),
            must_change_password=False,
        )
        logger.info("password_changed", user_id=str(user.id))
        return None
