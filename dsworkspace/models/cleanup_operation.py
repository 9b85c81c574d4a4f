"""Cleanup operation model.

Aggregate outcome of rolling back a deployment or sweeping a prior one.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from .cleanup_record import CleanupRecord, CleanupStatus


class CleanupMode(Enum):
    """Where the resources to delete came from."""

    COMPENSATE = "compensate"
    SWEEP = "sweep"


class OperationStatus(Enum):
    """Cleanup operation status."""

    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"


@dataclass
class CleanupOperation:
    """Cleanup operation entity.

    Status rules:
        completed: no deletion failed
        partial: some deletions failed, some succeeded
        failed: every attempted deletion failed

    Attributes:
        mode: compensate (tracker-driven) or sweep (tag-driven)
        started_at: When cleanup started (UTC)
        records: One record per resource, in deletion order
        completed_at: When cleanup finished (optional)
    """

    mode: CleanupMode
    started_at: datetime
    records: list[CleanupRecord] = field(default_factory=list)
    completed_at: Optional[datetime] = None

    def _count(self, status: CleanupStatus) -> int:
        return sum(1 for record in self.records if record.status == status)

    @property
    def total_resources(self) -> int:
        return len(self.records)

    @property
    def succeeded_count(self) -> int:
        return self._count(CleanupStatus.SUCCEEDED)

    @property
    def failed_count(self) -> int:
        return self._count(CleanupStatus.FAILED)

    @property
    def status(self) -> OperationStatus:
        if self.failed_count == 0:
            return OperationStatus.COMPLETED
        if self.succeeded_count > 0:
            return OperationStatus.PARTIAL
        return OperationStatus.FAILED

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds()

    def failed_records(self) -> list[CleanupRecord]:
        return [record for record in self.records if record.status == CleanupStatus.FAILED]

    def validate(self) -> bool:
        """Validate operation invariants.

        Validation rules:
            - succeeded_count + failed_count == total_resources
            - completed_at must be after started_at
            - every record is valid

        Returns:
            True if validation passes

        Raises:
            ValueError: If any validation rule fails
        """
        if self.succeeded_count + self.failed_count != self.total_resources:
            raise ValueError("Resource counts don't match total")

        if self.completed_at and self.completed_at < self.started_at:
            raise ValueError("Completion time before start time")

        for record in self.records:
            record.validate()

        return True

    def to_dict(self) -> dict:
        return {
            "mode": self.mode.value,
            "status": self.status.value,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_seconds": self.duration_seconds,
            "total_resources": self.total_resources,
            "succeeded_count": self.succeeded_count,
            "failed_count": self.failed_count,
            "records": [record.to_dict() for record in self.records],
        }
