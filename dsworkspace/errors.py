"""Error taxonomy for workspace deployments.

Provider failures are translated once, at the resource client boundary, into
``ProviderError`` so callers never have to inspect botocore exceptions.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from botocore.exceptions import (
    ClientError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
    WaiterError,
)


class ErrorCategory(Enum):
    """Category of a provider failure."""

    NETWORK = "network"
    TIMEOUT = "timeout"
    AUTH = "auth"
    RATE_LIMIT = "rate-limit"
    NOT_FOUND = "not-found"
    CONFLICT = "conflict"
    UNKNOWN = "unknown"


TRANSIENT_CATEGORIES = frozenset({ErrorCategory.NETWORK, ErrorCategory.TIMEOUT, ErrorCategory.RATE_LIMIT})

# AWS error code -> category
ERROR_CODE_CATEGORIES = {
    # Rate limiting
    "Throttling": ErrorCategory.RATE_LIMIT,
    "ThrottlingException": ErrorCategory.RATE_LIMIT,
    "RequestLimitExceeded": ErrorCategory.RATE_LIMIT,
    "SlowDown": ErrorCategory.RATE_LIMIT,
    "TooManyRequestsException": ErrorCategory.RATE_LIMIT,
    # Service-side timeouts and outages
    "RequestTimeout": ErrorCategory.TIMEOUT,
    "RequestTimeoutException": ErrorCategory.TIMEOUT,
    "ServiceUnavailable": ErrorCategory.NETWORK,
    "Unavailable": ErrorCategory.NETWORK,
    "InternalError": ErrorCategory.NETWORK,
    "InternalFailure": ErrorCategory.NETWORK,
    # Authentication / authorization
    "AuthFailure": ErrorCategory.AUTH,
    "UnauthorizedOperation": ErrorCategory.AUTH,
    "AccessDenied": ErrorCategory.AUTH,
    "AccessDeniedException": ErrorCategory.AUTH,
    "InvalidClientTokenId": ErrorCategory.AUTH,
    "ExpiredToken": ErrorCategory.AUTH,
    "SignatureDoesNotMatch": ErrorCategory.AUTH,
    "OptInRequired": ErrorCategory.AUTH,
    # Missing resources
    "InvalidGroup.NotFound": ErrorCategory.NOT_FOUND,
    "InvalidGroupId.NotFound": ErrorCategory.NOT_FOUND,
    "InvalidKeyPair.NotFound": ErrorCategory.NOT_FOUND,
    "InvalidInstanceID.NotFound": ErrorCategory.NOT_FOUND,
    "InvalidAMIID.NotFound": ErrorCategory.NOT_FOUND,
    "NoSuchBucket": ErrorCategory.NOT_FOUND,
    "NoSuchTagSet": ErrorCategory.NOT_FOUND,
    "NotFound": ErrorCategory.NOT_FOUND,
    "404": ErrorCategory.NOT_FOUND,
    "403": ErrorCategory.AUTH,
    # Conflicts
    "InvalidGroup.Duplicate": ErrorCategory.CONFLICT,
    "InvalidKeyPair.Duplicate": ErrorCategory.CONFLICT,
    "InvalidPermission.Duplicate": ErrorCategory.CONFLICT,
    "BucketAlreadyExists": ErrorCategory.CONFLICT,
    "BucketAlreadyOwnedByYou": ErrorCategory.CONFLICT,
    "BucketNotEmpty": ErrorCategory.CONFLICT,
    "DependencyViolation": ErrorCategory.CONFLICT,
    "IncorrectInstanceState": ErrorCategory.CONFLICT,
}


class WorkspaceError(Exception):
    """Base class for all deployment errors."""


class ValidationError(WorkspaceError, ValueError):
    """Deployment input is invalid. Raised before any provider call."""

    def __init__(self, problems: list[str]) -> None:
        self.problems = list(problems)
        super().__init__("Invalid deployment spec: " + "; ".join(self.problems))


class ProviderError(WorkspaceError):
    """A provider operation failed.

    Attributes:
        operation: Resource client operation name (e.g., "create_storage")
        resource: Resource name or identifier the operation targeted
        category: Failure category
        code: Provider error code, if any
        message: Provider error message
        transient: True when a limited local retry may succeed
    """

    def __init__(
        self,
        operation: str,
        resource: str,
        category: ErrorCategory,
        message: str,
        code: Optional[str] = None,
        transient: Optional[bool] = None,
    ) -> None:
        self.operation = operation
        self.resource = resource
        self.category = category
        self.code = code
        self.message = message
        self.transient = category in TRANSIENT_CATEGORIES if transient is None else transient
        super().__init__(f"{operation} failed for {resource}: [{category.value}] {code or ''} {message}".strip())

    @property
    def is_not_found(self) -> bool:
        return self.category == ErrorCategory.NOT_FOUND


class VerificationMismatch(WorkspaceError):
    """Post-creation state does not match what was provisioned."""

    def __init__(self, mismatches: list[str]) -> None:
        self.mismatches = list(mismatches)
        super().__init__("Verification failed: " + "; ".join(self.mismatches))


class CompensationError(WorkspaceError):
    """A cleanup call failed. Logged and recorded, never escalated."""

    def __init__(self, kind: str, identifier: str, cause: Exception) -> None:
        self.kind = kind
        self.identifier = identifier
        self.cause = cause
        super().__init__(f"Failed to delete {kind} {identifier}: {cause}")


class DeploymentCancelled(WorkspaceError):
    """The operator aborted the deployment."""

    def __init__(self, reason: str = "cancelled by operator") -> None:
        self.reason = reason
        super().__init__(reason)


def translate_client_error(error: Exception, operation: str, resource: str) -> ProviderError:
    """Translate a botocore exception into a ProviderError.

    Args:
        error: Exception raised by a boto3 call
        operation: Resource client operation name
        resource: Resource name or identifier

    Returns:
        ProviderError describing the failure
    """
    if isinstance(error, ClientError):
        error_code = error.response.get("Error", {}).get("Code", "Unknown")
        error_message = error.response.get("Error", {}).get("Message", str(error))
        category = ERROR_CODE_CATEGORIES.get(error_code)
        if category is None and error_code.endswith(".NotFound"):
            category = ErrorCategory.NOT_FOUND
        return ProviderError(
            operation=operation,
            resource=resource,
            category=category or ErrorCategory.UNKNOWN,
            code=error_code,
            message=error_message,
        )

    if isinstance(error, WaiterError):
        # Waiter expiry is terminal: the bounded wait already ran its retries
        return ProviderError(
            operation=operation,
            resource=resource,
            category=ErrorCategory.TIMEOUT,
            code="WaiterExpired",
            message=str(error),
            transient=False,
        )

    if isinstance(error, (ConnectTimeoutError, ReadTimeoutError)):
        return ProviderError(operation, resource, ErrorCategory.TIMEOUT, str(error), code="RequestTimeout")

    if isinstance(error, EndpointConnectionError):
        return ProviderError(operation, resource, ErrorCategory.NETWORK, str(error), code="EndpointConnectionError")

    return ProviderError(operation, resource, ErrorCategory.UNKNOWN, str(error))
