"""AWS access layer.

Classes:
    ResourceClient: Create/describe/delete calls for workspace resources
    CredentialValidationError: Raised when AWS credentials are unusable
"""

from __future__ import annotations

from .client import create_boto_client
from .credentials import CredentialValidationError, validate_credentials
from .resource_client import ComputeState, CredentialHandle, IngressRule, ResourceClient

__all__ = [
    "ComputeState",
    "CredentialHandle",
    "CredentialValidationError",
    "IngressRule",
    "ResourceClient",
    "create_boto_client",
    "validate_credentials",
]
