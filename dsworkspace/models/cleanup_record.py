"""Cleanup record model.

Outcome of a single resource deletion during compensation or sweep cleanup.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from .resource_record import ResourceKind


class CleanupStatus(Enum):
    """Individual resource deletion status."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class CleanupRecord:
    """Cleanup record entity.

    Validation rules:
        - status=succeeded: no error_code
        - status=failed: requires error_code

    Attributes:
        kind: Resource kind
        identifier: Resource identifier
        timestamp: When deletion was attempted (UTC)
        status: Deletion outcome (succeeded, failed)
        error_code: Provider error code if failed (optional)
        error_message: Human-readable error if failed (optional)
    """

    kind: ResourceKind
    identifier: str
    timestamp: datetime
    status: CleanupStatus
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    def validate(self) -> bool:
        """Validate record invariants.

        Returns:
            True if validation passes

        Raises:
            ValueError: If any validation rule fails
        """
        if self.status == CleanupStatus.FAILED:
            if not self.error_code:
                raise ValueError("Failed status requires error_code")
        elif self.status == CleanupStatus.SUCCEEDED:
            if self.error_code:
                raise ValueError("Succeeded status cannot have an error code")

        return True

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "identifier": self.identifier,
            "timestamp": self.timestamp.isoformat(),
            "status": self.status.value,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }
