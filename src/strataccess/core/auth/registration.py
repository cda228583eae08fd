"""Single-use registration tokens: issue, validate and consume."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

import structlog

from strataccess.core.auth.password import check_password_policy, hash_password
from strataccess.core.auth.repository import AuthRepository, EmailAlreadyRegistered
from strataccess.core.auth.tokens import (
    INVITE_EXPIRY_DAYS,
    PURCHASE_EXPIRY_DAYS,
    generate_registration_token,
    get_token_expiry,
    hash_token,
    is_token_expired,
)
from strataccess.core.auth.types import (
    AccountDetails,
    Principal,
    RegistrationToken,
    Role,
    TokenSource,
)
from strataccess.core.entitlements.gate import EntitlementGate
from strataccess.core.entitlements.interfaces import UsageCounter
from strataccess.core.entitlements.plans import ResourceKind
from strataccess.core.outcomes import (
    Allowed,
    LimitExceeded,
    PolicyViolation,
    TokenErrorKind,
    TokenFailure,
)

logger = structlog.get_logger()


@dataclass(frozen=True)
class IssuedToken:
    """A newly issued token. ``token`` is the only copy of the plaintext."""

    token: str
    record: RegistrationToken


@dataclass(frozen=True)
class TokenValidation:
    """Result of a read-only token check."""

    valid: bool
    reason: TokenErrorKind | None = None
    intended_email: str | None = None
    source: TokenSource | None = None


def classify_token(
    record: RegistrationToken | None,
    now: datetime,
    email: str | None = None,
) -> TokenErrorKind | None:
    """Explain why a token cannot be used, or return None if it can.

    Consumption is checked before expiry, so a spent token always reports
    ALREADY_CONSUMED and an unspent stale token always reports EXPIRED.
    """
    if record is None:
        return TokenErrorKind.NOT_FOUND
    if record.consumed_at is not None:
        return TokenErrorKind.ALREADY_CONSUMED
    if is_token_expired(record.expires_at, now):
        return TokenErrorKind.EXPIRED
    if email and record.intended_email and record.intended_email.lower() != email.lower():
        return TokenErrorKind.EMAIL_MISMATCH
    return None


class RegistrationTokenService:
    """Issues and redeems single-use registration tokens.

    A token moves from issued to consumed exactly once, or silently becomes
    expired. Neither terminal state can be left.
    """

    def __init__(
        self,
        repo: AuthRepository,
        gate: EntitlementGate,
        usage: UsageCounter,
    ) -> None:
        """Initialize with auth repository and seat accounting.

        Args:
            repo: Auth repository for database operations.
            gate: Entitlement gate enforcing the user limit.
            usage: Usage store holding the user count and creation scope.
        """
        self._repo = repo
        self._gate = gate
        self._usage = usage

    async def issue_invite(
        self,
        inviter: Principal,
        email: str | None = None,
        role: Role = Role.LEADER,
        expires_in_days: int = INVITE_EXPIRY_DAYS,
    ) -> IssuedToken | LimitExceeded:
        """Issue a token that adds one account to the inviter's organization.

        Open invites hold a seat, so the user limit is checked against
        existing users plus unexpired unconsumed tokens for the organization.

        Args:
            inviter: Principal sending the invite.
            email: Restrict redemption to this address, if given.
            role: Role the new account receives.
            expires_in_days: Token lifetime.

        Returns:
            The plaintext token and its stored record, or LimitExceeded.
        """
        organization_id = inviter.organization_id

        async def pending() -> int:
            return await self._repo.count_pending_invites(organization_id, datetime.now(UTC))

        token = generate_registration_token()
        async with self._gate.check_and_reserve(
            organization_id,
            ResourceKind.USER,
            self._usage,
            outstanding=pending,
        ) as seat:
            if isinstance(seat, LimitExceeded):
                return seat
            record = await self._repo.create_registration_token(
                token_hash=hash_token(token),
                source=TokenSource.INVITE,
                expires_at=get_token_expiry(expires_in_days),
                organization_id=organization_id,
                intended_email=email.lower() if email else None,
                role=role,
            )
        logger.info(
            "registration_token_issued",
            token_id=str(record.id),
            source=TokenSource.INVITE.value,
            organization_id=str(inviter.organization_id),
            inviter_id=str(inviter.id),
        )
        return IssuedToken(token=token, record=record)

    async def issue_purchase(
        self,
        organization_id: UUID,
        email: str,
        expires_in_days: int = PURCHASE_EXPIRY_DAYS,
    ) -> IssuedToken:
        """Issue the token that creates the administrator of a purchased plan.

        Args:
            organization_id: Organization created for the purchase.
            email: Customer email from checkout.
            expires_in_days: Token lifetime.
        """
        token = generate_registration_token()
        record = await self._repo.create_registration_token(
            token_hash=hash_token(token),
            source=TokenSource.PURCHASE,
            expires_at=get_token_expiry(expires_in_days),
            organization_id=organization_id,
            intended_email=email.lower(),
            role=Role.ADMINISTRATOR,
        )
        logger.info(
            "registration_token_issued",
            token_id=str(record.id),
            source=TokenSource.PURCHASE.value,
            organization_id=str(organization_id),
        )
        return IssuedToken(token=token, record=record)

    async def validate(self, token: str) -> TokenValidation:
        """Check whether a token could be redeemed right now. Never consumes."""
        record = await self._repo.get_registration_token(hash_token(token))
        reason = classify_token(record, datetime.now(UTC))
        if reason is not None or record is None:
            return TokenValidation(valid=False, reason=reason)
        return TokenValidation(
            valid=True,
            intended_email=record.intended_email,
            source=record.source,
        )

    async def consume(
        self,
        token: str,
        details: AccountDetails,
    ) -> Principal | TokenFailure | PolicyViolation | LimitExceeded:
        """Redeem a token and create the account it grants.

        The password policy is checked first so a weak password never burns
        the token. The token is then claimed by one conditional update in the
        same transaction as the user insert; of several concurrent callers
        exactly one succeeds and the others see ALREADY_CONSUMED.

        Tokens bound to an organization also need a free user seat. The seat
        is checked inside the organization's creation scope and a full
        organization leaves the token unconsumed.

        Args:
            token: Plaintext token from the registration link.
            details: Email, password and names for the new account.

        Returns:
            The new principal, a TokenFailure, a PolicyViolation, or
            LimitExceeded.
        """
        violation = check_password_policy(details.password)
        if violation:
            return violation

        token_hash = hash_token(token)
        email = details.email.lower()
        now = datetime.now(UTC)

        record = await self._repo.get_registration_token(token_hash)
        reason = classify_token(record, now, email)
        if reason is not None or record is None:
            reason = reason or TokenErrorKind.NOT_FOUND
            logger.info("registration_token_rejected", reason=reason.value)
            return TokenFailure(reason)

        if await self._repo.get_user_by_email(email):
            return TokenFailure(TokenErrorKind.EMAIL_TAKEN)

        password_hash = hash_password(details.password)
        async with self._seat(record.organization_id) as seat:
            if isinstance(seat, LimitExceeded):
                logger.info(
                    "registration_seat_unavailable",
                    token_id=str(record.id),
                    organization_id=str(record.organization_id),
                )
                return seat
            try:
                user = await self._repo.consume_token_and_create_user(
                    token_hash=token_hash,
                    email=email,
                    password_hash=password_hash,
                    now=now,
                    first_name=details.first_name,
                    last_name=details.last_name,
                    organization_name=details.organization_name,
                )
            except EmailAlreadyRegistered:
                return TokenFailure(TokenErrorKind.EMAIL_TAKEN)

        if user is None:
            # Lost a race or the token changed state since the first read
            record = await self._repo.get_registration_token(token_hash)
            reason = classify_token(record, now, email) or TokenErrorKind.ALREADY_CONSUMED
            logger.info("registration_token_rejected", reason=reason.value)
            return TokenFailure(reason)

        logger.info(
            "registration_token_consumed",
            user_id=str(user.id),
            organization_id=str(user.organization_id),
            role=user.role.value,
        )
        return Principal.from_user(user)

    @asynccontextmanager
    async def _seat(self, organization_id: UUID | None) -> AsyncIterator[Allowed | LimitExceeded]:
        # Tokens without an organization create a new one, which starts empty
        if organization_id is None:
            yield Allowed()
            return
        async with self._gate.check_and_reserve(
            organization_id,
            ResourceKind.USER,
            self._usage,
        ) as outcome:
            yield outcome
