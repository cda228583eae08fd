"""Tests for registration token issue, validation and consumption."""

import asyncio
from datetime import UTC, datetime, timedelta
from uuid import UUID

import pytest

from strataccess.adapters.auth.memory import InMemoryAuthRepository
from strataccess.adapters.billing.memory import InMemoryOrganizationRepository
from strataccess.core.auth.registration import (
    IssuedToken,
    RegistrationTokenService,
    classify_token,
)
from strataccess.core.auth.tokens import hash_token
from strataccess.core.auth.types import (
    AccountDetails,
    Principal,
    RegistrationToken,
    Role,
    TokenSource,
    User,
)
from strataccess.core.billing.types import OrganizationBilling
from strataccess.core.entitlements.plans import PlanId, ResourceKind
from strataccess.core.outcomes import LimitExceeded, PolicyViolation, TokenErrorKind, TokenFailure
from tests.fixtures.domain_objects import STRONG_PASSWORD


@pytest.fixture
def service(registration_service: RegistrationTokenService) -> RegistrationTokenService:
    """Return the registration service over the in-memory stores."""
    return registration_service


@pytest.fixture
def inviter(admin_user: User) -> Principal:
    """Return the administrator as a principal."""
    return Principal.from_user(admin_user)


def details(email: str = "new@example.com", password: str = STRONG_PASSWORD) -> AccountDetails:
    """Build account details for redemption."""
    return AccountDetails(email=email, password=password, first_name="New", last_name="Person")


def seed_token(
    repo: InMemoryAuthRepository,
    token: str,
    expires_at: datetime,
    intended_email: str | None = None,
) -> RegistrationToken:
    """Store a token record directly."""
    record = RegistrationToken(
        id="00000000-0000-0000-0000-000000000001",
        token_hash=hash_token(token),
        intended_email=intended_email,
        source=TokenSource.INVITE,
        expires_at=expires_at,
        created_at=datetime.now(UTC),
    )
    repo.tokens[record.token_hash] = record
    return record


class TestIssue:
    """Test token issue."""

    @pytest.mark.asyncio
    async def test_invite_stores_hash_only(
        self,
        service: RegistrationTokenService,
        auth_repo: InMemoryAuthRepository,
        inviter: Principal,
    ) -> None:
        """The plaintext token is returned once and never stored."""
        issued = await service.issue_invite(inviter, email="New@Example.com", role=Role.EXECUTIVE)

        assert issued.token not in auth_repo.tokens
        assert hash_token(issued.token) in auth_repo.tokens
        assert issued.record.organization_id == inviter.organization_id
        assert issued.record.intended_email == "new@example.com"
        assert issued.record.role == Role.EXECUTIVE
        assert issued.record.source == TokenSource.INVITE

    @pytest.mark.asyncio
    async def test_invite_expiry(
        self,
        service: RegistrationTokenService,
        inviter: Principal,
    ) -> None:
        """Invites expire after seven days by default."""
        issued = await service.issue_invite(inviter)
        remaining = issued.record.expires_at - datetime.now(UTC)
        assert timedelta(days=6) < remaining <= timedelta(days=7)

    @pytest.mark.asyncio
    async def test_purchase_token_creates_administrator(
        self,
        service: RegistrationTokenService,
        team_org: OrganizationBilling,
    ) -> None:
        """Purchase tokens grant the administrator role."""
        issued = await service.issue_purchase(team_org.id, "Buyer@Example.com")

        assert issued.record.source == TokenSource.PURCHASE
        assert issued.record.role == Role.ADMINISTRATOR
        assert issued.record.intended_email == "buyer@example.com"


class TestValidate:
    """Test read-only validation."""

    @pytest.mark.asyncio
    async def test_valid_token(
        self,
        service: RegistrationTokenService,
        inviter: Principal,
    ) -> None:
        """An issued token validates and exposes its intended email."""
        issued = await service.issue_invite(inviter, email="new@example.com")

        result = await service.validate(issued.token)

        assert result.valid is True
        assert result.intended_email == "new@example.com"
        assert result.source == TokenSource.INVITE

    @pytest.mark.asyncio
    async def test_unknown_token(self, service: RegistrationTokenService) -> None:
        """Unknown tokens report not_found."""
        result = await service.validate("nope")

        assert result.valid is False
        assert result.reason == TokenErrorKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_validate_never_consumes(
        self,
        service: RegistrationTokenService,
        inviter: Principal,
    ) -> None:
        """Validation can be repeated without using the token up."""
        issued = await service.issue_invite(inviter)

        await service.validate(issued.token)
        await service.validate(issued.token)

        assert isinstance(await service.consume(issued.token, details()), Principal)

    @pytest.mark.asyncio
    async def test_expired_token(
        self,
        service: RegistrationTokenService,
        auth_repo: InMemoryAuthRepository,
    ) -> None:
        """Expired tokens report expired."""
        seed_token(auth_repo, "stale", datetime.now(UTC) - timedelta(minutes=1))

        result = await service.validate("stale")

        assert result.reason == TokenErrorKind.EXPIRED


class TestConsume:
    """Test token redemption."""

    @pytest.mark.asyncio
    async def test_consume_creates_user_in_token_org(
        self,
        service: RegistrationTokenService,
        auth_repo: InMemoryAuthRepository,
        inviter: Principal,
    ) -> None:
        """The new account joins the inviter's organization with the token's role."""
        issued = await service.issue_invite(inviter, role=Role.EXECUTIVE)

        result = await service.consume(issued.token, details())

        assert isinstance(result, Principal)
        assert result.organization_id == inviter.organization_id
        assert result.role == Role.EXECUTIVE
        assert result.must_change_password is False
        assert auth_repo.tokens[hash_token(issued.token)].consumed_at is not None

    @pytest.mark.asyncio
    async def test_consume_twice(
        self,
        service: RegistrationTokenService,
        inviter: Principal,
    ) -> None:
        """A second redemption reports already_consumed."""
        issued = await service.issue_invite(inviter)
        await service.consume(issued.token, details("first@example.com"))

        result = await service.consume(issued.token, details("second@example.com"))

        assert result == TokenFailure(TokenErrorKind.ALREADY_CONSUMED)

    @pytest.mark.asyncio
    async def test_consumed_then_expired_reports_consumed(
        self,
        service: RegistrationTokenService,
        auth_repo: InMemoryAuthRepository,
        inviter: Principal,
    ) -> None:
        """A spent token keeps reporting already_consumed after it expires."""
        issued = await service.issue_invite(inviter)
        await service.consume(issued.token, details())
        key = hash_token(issued.token)
        auth_repo.tokens[key] = auth_repo.tokens[key].model_copy(
            update={"expires_at": datetime.now(UTC) - timedelta(days=1)}
        )

        result = await service.validate(issued.token)

        assert result.reason == TokenErrorKind.ALREADY_CONSUMED

    @pytest.mark.asyncio
    async def test_weak_password_does_not_consume(
        self,
        service: RegistrationTokenService,
        auth_repo: InMemoryAuthRepository,
        inviter: Principal,
    ) -> None:
        """A policy failure leaves the token usable."""
        issued = await service.issue_invite(inviter)

        result = await service.consume(issued.token, details(password="weak"))

        assert isinstance(result, PolicyViolation)
        assert auth_repo.tokens[hash_token(issued.token)].consumed_at is None
        assert (await service.validate(issued.token)).valid is True

    @pytest.mark.asyncio
    async def test_expired_token_not_consumed(
        self,
        service: RegistrationTokenService,
        auth_repo: InMemoryAuthRepository,
    ) -> None:
        """Expired tokens cannot be redeemed and create no account."""
        seed_token(auth_repo, "stale", datetime.now(UTC) - timedelta(minutes=1))

        result = await service.consume("stale", details())

        assert result == TokenFailure(TokenErrorKind.EXPIRED)
        assert auth_repo.users == {}

    @pytest.mark.asyncio
    async def test_email_mismatch(
        self,
        service: RegistrationTokenService,
        auth_repo: InMemoryAuthRepository,
        inviter: Principal,
    ) -> None:
        """Tokens bound to an email reject other addresses."""
        issued = await service.issue_invite(inviter, email="invited@example.com")

        result = await service.consume(issued.token, details("someone@example.com"))

        assert result == TokenFailure(TokenErrorKind.EMAIL_MISMATCH)
        assert auth_repo.tokens[hash_token(issued.token)].consumed_at is None

    @pytest.mark.asyncio
    async def test_bound_email_matches_case_insensitively(
        self,
        service: RegistrationTokenService,
        inviter: Principal,
    ) -> None:
        """Email binding ignores case."""
        issued = await service.issue_invite(inviter, email="invited@example.com")

        result = await service.consume(issued.token, details("Invited@Example.com"))

        assert isinstance(result, Principal)

    @pytest.mark.asyncio
    async def test_email_taken(
        self,
        service: RegistrationTokenService,
        auth_repo: InMemoryAuthRepository,
        inviter: Principal,
        leader_user: User,
    ) -> None:
        """An existing account's email cannot register again."""
        issued = await service.issue_invite(inviter)

        result = await service.consume(issued.token, details("leader@example.com"))

        assert result == TokenFailure(TokenErrorKind.EMAIL_TAKEN)
        assert auth_repo.tokens[hash_token(issued.token)].consumed_at is None

    @pytest.mark.asyncio
    async def test_token_without_org_creates_one(
        self,
        org_repo: InMemoryOrganizationRepository,
        auth_repo: InMemoryAuthRepository,
        service: RegistrationTokenService,
    ) -> None:
        """Tokens with no organization create a new one for the account."""
        seed_token(auth_repo, "fresh", datetime.now(UTC) + timedelta(days=1))

        result = await service.consume(
            "fresh",
            AccountDetails(
                email="founder@example.com",
                password=STRONG_PASSWORD,
                organization_name="Founders",
            ),
        )

        assert isinstance(result, Principal)
        org = org_repo.organizations[result.organization_id]
        assert org.name == "Founders"

    @pytest.mark.asyncio
    async def test_concurrent_consume_single_winner(
        self,
        service: RegistrationTokenService,
        auth_repo: InMemoryAuthRepository,
        inviter: Principal,
    ) -> None:
        """Of many concurrent redemptions exactly one creates an account."""
        issued = await service.issue_invite(inviter)
        users_before = len(auth_repo.users)

        results = await asyncio.gather(
            *(service.consume(issued.token, details(f"user{i}@example.com")) for i in range(5))
        )

        winners = [r for r in results if isinstance(r, Principal)]
        losers = [r for r in results if isinstance(r, TokenFailure)]
        assert len(winners) == 1
        assert len(losers) == 4
        assert all(r.kind == TokenErrorKind.ALREADY_CONSUMED for r in losers)
        assert len(auth_repo.users) == users_before + 1


def fill_seats(repo: InMemoryAuthRepository, organization_id: UUID, total: int) -> None:
    """Seed accounts until the organization holds ``total`` users."""
    for i in range(total - repo.count_users(organization_id)):
        repo.add_user(f"member{i}@example.com", organization_id=organization_id)


class TestSeats:
    """Test that invites and redemptions respect the user limit."""

    @pytest.mark.asyncio
    async def test_open_invite_holds_last_seat(
        self,
        service: RegistrationTokenService,
        auth_repo: InMemoryAuthRepository,
        inviter: Principal,
    ) -> None:
        """With five of six seats used, only one invite can be outstanding."""
        fill_seats(auth_repo, inviter.organization_id, 5)

        first = await service.issue_invite(inviter)
        second = await service.issue_invite(inviter)

        assert isinstance(first, IssuedToken)
        assert isinstance(second, LimitExceeded)
        assert second.resource_kind is ResourceKind.USER
        assert second.limit == 6
        assert second.current == 6
        assert second.plan_id is PlanId.TEAM

    @pytest.mark.asyncio
    async def test_expired_invite_releases_seat(
        self,
        service: RegistrationTokenService,
        auth_repo: InMemoryAuthRepository,
        inviter: Principal,
    ) -> None:
        """Stale invites no longer count against the limit."""
        fill_seats(auth_repo, inviter.organization_id, 5)
        issued = await service.issue_invite(inviter)
        assert isinstance(issued, IssuedToken)
        key = hash_token(issued.token)
        auth_repo.tokens[key] = auth_repo.tokens[key].model_copy(
            update={"expires_at": datetime.now(UTC) - timedelta(minutes=1)}
        )

        result = await service.issue_invite(inviter)

        assert isinstance(result, IssuedToken)

    @pytest.mark.asyncio
    async def test_full_organization_keeps_token_unconsumed(
        self,
        service: RegistrationTokenService,
        auth_repo: InMemoryAuthRepository,
        inviter: Principal,
    ) -> None:
        """Seats filled after the invite was sent block redemption."""
        issued = await service.issue_invite(inviter)
        assert isinstance(issued, IssuedToken)
        fill_seats(auth_repo, inviter.organization_id, 6)

        result = await service.consume(issued.token, details())

        assert isinstance(result, LimitExceeded)
        assert result.current == 6
        assert auth_repo.tokens[hash_token(issued.token)].consumed_at is None
        assert await auth_repo.get_user_by_email("new@example.com") is None

    @pytest.mark.asyncio
    async def test_concurrent_redemptions_never_exceed_limit(
        self,
        service: RegistrationTokenService,
        auth_repo: InMemoryAuthRepository,
        inviter: Principal,
    ) -> None:
        """Racing redemptions of separate tokens stop at the plan limit."""
        tokens = []
        for _ in range(3):
            issued = await service.issue_invite(inviter)
            assert isinstance(issued, IssuedToken)
            tokens.append(issued.token)
        fill_seats(auth_repo, inviter.organization_id, 4)

        results = await asyncio.gather(
            *(
                service.consume(token, details(f"racer{i}@example.com"))
                for i, token in enumerate(tokens)
            )
        )

        assert sum(isinstance(r, Principal) for r in results) == 2
        assert sum(isinstance(r, LimitExceeded) for r in results) == 1
        assert auth_repo.count_users(inviter.organization_id) == 6


class TestClassifyToken:
    """Test token state classification."""

    def test_missing(self) -> None:
        """No record is not_found."""
        assert classify_token(None, datetime.now(UTC)) == TokenErrorKind.NOT_FOUND

    def test_usable(self) -> None:
        """An unspent, unexpired, unbound token is usable."""
        record = RegistrationToken(
            id="00000000-0000-0000-0000-000000000002",
            token_hash="h",
            source=TokenSource.INVITE,
            expires_at=datetime.now(UTC) + timedelta(days=1),
            created_at=datetime.now(UTC),
        )
        assert classify_token(record, datetime.now(UTC), "any@example.com") is None
