"""Translation of typed access outcomes into HTTP errors.

This is the only place outcomes become exceptions.
"""

from fastapi import HTTPException

from strataccess.core.entitlements.prompts import UpgradePrompt
from strataccess.core.outcomes import (
    Forbidden,
    ForbiddenReason,
    InvalidCredentials,
    LimitExceeded,
    PolicyViolation,
    TokenErrorKind,
    TokenFailure,
    Unauthenticated,
)

UPGRADE_URL = "/settings/billing"

TOKEN_FAILURE_STATUS: dict[TokenErrorKind, int] = {
    TokenErrorKind.NOT_FOUND: 404,
    TokenErrorKind.EXPIRED: 410,
    TokenErrorKind.ALREADY_CONSUMED: 409,
    TokenErrorKind.EMAIL_MISMATCH: 400,
    TokenErrorKind.EMAIL_TAKEN: 409,
}

TOKEN_FAILURE_MESSAGES: dict[TokenErrorKind, str] = {
    TokenErrorKind.NOT_FOUND: "This registration link is not valid.",
    TokenErrorKind.EXPIRED: "This registration link has expired.",
    TokenErrorKind.ALREADY_CONSUMED: "This registration link has already been used.",
    TokenErrorKind.EMAIL_MISMATCH: "This registration link was issued for a different email.",
    TokenErrorKind.EMAIL_TAKEN: "An account with this email already exists.",
}

_FORBIDDEN_ERRORS: dict[ForbiddenReason, str] = {
    ForbiddenReason.ROLE: "forbidden",
    ForbiddenReason.PASSWORD_CHANGE_REQUIRED: "password_change_required",
    ForbiddenReason.CSRF: "csrf_failed",
}


def unauthenticated_http(outcome: Unauthenticated) -> HTTPException:
    """401 asking the client to log in."""
    return HTTPException(
        status_code=401,
        detail={"error": "unauthenticated", "reason": outcome.reason},
        headers={"WWW-Authenticate": "Bearer"},
    )


def invalid_credentials_http(outcome: InvalidCredentials) -> HTTPException:
    """401 for a failed login or a wrong current password."""
    return HTTPException(
        status_code=401,
        detail={"error": "invalid_credentials", "message": outcome.message},
    )


def forbidden_detail(outcome: Forbidden) -> dict[str, str | None]:
    """Response body for a refused request."""
    return {
        "error": _FORBIDDEN_ERRORS[outcome.reason],
        "capability": outcome.capability.value if outcome.capability else None,
    }


def forbidden_http(outcome: Forbidden) -> HTTPException:
    """403 for role, forced-password-change and anti-forgery refusals."""
    return HTTPException(status_code=403, detail=forbidden_detail(outcome))


def token_failure_http(outcome: TokenFailure) -> HTTPException:
    """Status per failure kind so clients can tell expired from used."""
    return HTTPException(
        status_code=TOKEN_FAILURE_STATUS[outcome.kind],
        detail={
            "error": outcome.kind.value,
            "message": TOKEN_FAILURE_MESSAGES[outcome.kind],
        },
    )


def policy_violation_http(outcome: PolicyViolation) -> HTTPException:
    """422 naming every unmet password rule."""
    return HTTPException(
        status_code=422,
        detail={
            "error": "policy_violation",
            "unmet": [rule.value for rule in outcome.unmet],
            "messages": outcome.messages,
        },
    )


def limit_exceeded_detail(outcome: LimitExceeded) -> dict[str, object]:
    """Response body for a plan limit denial."""
    return {
        "error": "limit_exceeded",
        "resource_kind": outcome.resource_kind.value,
        "limit": outcome.limit,
        "current": outcome.current,
        "plan_id": outcome.plan_id.value,
        "upgrade_hint": outcome.upgrade_hint.value if outcome.upgrade_hint else None,
        "contact_sales": outcome.contact_sales,
        "message": outcome.message,
        "upgrade_url": UPGRADE_URL,
        "prompt": UpgradePrompt.for_limit(outcome).model_dump(mode="json"),
    }


def limit_exceeded_http(outcome: LimitExceeded) -> HTTPException:
    """403 that triggers the upgrade prompt."""
    return HTTPException(status_code=403, detail=limit_exceeded_detail(outcome))
