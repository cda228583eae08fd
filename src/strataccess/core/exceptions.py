"""Domain-specific exceptions.

All exceptions in the strataccess system inherit from StratAccessError.
They are reserved for genuinely unexpected failures: storage that cannot be
reached, a billing provider that does not answer, an organization id that
does not exist. Expected denials (bad credentials, forbidden roles, spent
registration tokens, plan limits) are returned as typed outcomes from
``strataccess.core.outcomes`` instead.
"""

from __future__ import annotations


class StratAccessError(Exception):
    """Base exception for all strataccess errors.

    Callers that catch this type must deny the request. Nothing in the
    access core treats an unexpected failure as permission to proceed.
    """

    pass


class StorageUnavailableError(StratAccessError):
    """The durable store could not be reached or failed mid-operation.

    Raised by repository adapters when the underlying driver errors out.
    The HTTP layer maps it to 503.
    """

    pass


class BillingProviderError(StratAccessError):
    """The external billing provider failed or timed out.

    Attributes:
        retryable: Whether the failure is likely transient.
    """

    def __init__(self, message: str, retryable: bool = True) -> None:
        """Initialize BillingProviderError.

        Args:
            message: Error description.
            retryable: Whether error is transient and retryable.
        """
        super().__init__(message)
        self.retryable = retryable


class OrganizationNotFoundError(StratAccessError):
    """An organization id did not match any organization."""

    def __init__(self, organization_id: object) -> None:
        """Initialize with the missing organization id."""
        super().__init__(f"Organization not found: {organization_id}")
        self.organization_id = organization_id


class WebhookSignatureError(StratAccessError):
    """A billing webhook payload failed signature verification."""

    pass
