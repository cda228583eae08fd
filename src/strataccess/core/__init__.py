"""Core domain - access decisions with no I/O of their own."""

from .exceptions import (
    BillingProviderError,
    OrganizationNotFoundError,
    StorageUnavailableError,
    StratAccessError,
    WebhookSignatureError,
)
from .outcomes import (
    Allowed,
    Forbidden,
    ForbiddenReason,
    InvalidCredentials,
    LimitExceeded,
    PolicyViolation,
    TokenErrorKind,
    TokenFailure,
    Unauthenticated,
)

__all__ = [
    # Outcomes
    "Allowed",
    "Forbidden",
    "ForbiddenReason",
    "InvalidCredentials",
    "LimitExceeded",
    "PolicyViolation",
    "TokenErrorKind",
    "TokenFailure",
    "Unauthenticated",
    # Exceptions
    "StratAccessError",
    "StorageUnavailableError",
    "BillingProviderError",
    "OrganizationNotFoundError",
    "WebhookSignatureError",
]
