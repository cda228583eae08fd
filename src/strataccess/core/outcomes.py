"""Typed outcomes for expected access-control decisions.

Services return these values instead of raising. Only the HTTP layer turns
them into responses, so a denial never travels through unrelated code as an
exception. Genuinely unexpected failures use ``strataccess.core.exceptions``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from strataccess.core.auth.password import PasswordRule
    from strataccess.core.entitlements.plans import PlanId, ResourceKind
    from strataccess.core.rbac.policy import Capability


class ForbiddenReason(str, Enum):
    """Why an authenticated request was refused."""

    ROLE = "role"
    PASSWORD_CHANGE_REQUIRED = "password_change_required"
    CSRF = "csrf"


class TokenErrorKind(str, Enum):
    """Why a registration token could not be used."""

    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    ALREADY_CONSUMED = "already_consumed"
    EMAIL_MISMATCH = "email_mismatch"
    EMAIL_TAKEN = "email_taken"


@dataclass(frozen=True)
class Allowed:
    """The request may proceed."""

    limit: int | None = None
    current: int | None = None


@dataclass(frozen=True)
class Unauthenticated:
    """No usable credential: missing, malformed, expired or revoked."""

    reason: str = "missing_credential"


@dataclass(frozen=True)
class InvalidCredentials:
    """Email/password pair did not match an active account."""

    message: str = "Invalid email or password"


@dataclass(frozen=True)
class Forbidden:
    """Authenticated, but not permitted."""

    reason: ForbiddenReason
    capability: Capability | None = None


@dataclass(frozen=True)
class TokenFailure:
    """A registration token was rejected."""

    kind: TokenErrorKind


@dataclass(frozen=True)
class PolicyViolation:
    """A password failed one or more policy clauses."""

    unmet: tuple[PasswordRule, ...]

    @property
    def messages(self) -> list[str]:
        """Human readable description of each unmet clause."""
        return [rule.description for rule in self.unmet]


@dataclass(frozen=True)
class LimitExceeded:
    """A creation request would exceed the organization's plan limit.

    ``upgrade_hint`` is None only when no higher plan exists for this kind of
    limit, in which case ``contact_sales`` is True.
    """

    resource_kind: ResourceKind
    limit: int
    current: int
    plan_id: PlanId
    upgrade_hint: PlanId | None
    message: str = field(default="")

    @property
    def contact_sales(self) -> bool:
        """Whether the caller should be sent to sales instead of checkout."""
        return self.upgrade_hint is None
