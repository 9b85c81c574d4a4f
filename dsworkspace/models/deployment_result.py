"""Deployment result model.

Produced once per orchestrator run and consumed by the summary stage.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Optional

from .cleanup_operation import CleanupOperation
from .resource_record import ResourceKind, ResourceRecord

if TYPE_CHECKING:
    from ..aws.resource_client import ComputeState


class DeploymentState(Enum):
    """Orchestrator states, in pipeline order.

    State transitions:
        init → validating → provisioning-network → provisioning-credential →
        provisioning-storage → provisioning-compute → verifying → done
        any non-terminal state → failed
    """

    INIT = "init"
    VALIDATING = "validating"
    PROVISIONING_NETWORK = "provisioning-network"
    PROVISIONING_CREDENTIAL = "provisioning-credential"
    PROVISIONING_STORAGE = "provisioning-storage"
    PROVISIONING_COMPUTE = "provisioning-compute"
    VERIFYING = "verifying"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (DeploymentState.DONE, DeploymentState.FAILED)


@dataclass
class DeploymentResult:
    """Deployment result entity.

    Attributes:
        succeeded: True if the run reached DONE
        records: Tracker snapshot, keyed by resource kind
        failure_reason: Human-readable failure description (optional)
        final_state: Terminal state reached
        failed_state: State the run was in when it failed (optional)
        failed_resource: Resource or operation that failed (optional)
        cancelled: True if the operator aborted the run
        instances: Live instance details gathered during verification
        key_material: Private key, only when a key pair was created in this run
        cleanup: Compensation outcome, if compensation ran
        history: Every state entered, in order
        started_at: When the run started
        completed_at: When the run finished
    """

    succeeded: bool
    records: dict[ResourceKind, tuple[ResourceRecord, ...]]
    failure_reason: Optional[str] = None
    final_state: DeploymentState = DeploymentState.DONE
    failed_state: Optional[DeploymentState] = None
    failed_resource: Optional[str] = None
    cancelled: bool = False
    instances: list[ComputeState] = field(default_factory=list)
    key_material: Optional[str] = field(default=None, repr=False)
    cleanup: Optional[CleanupOperation] = None
    history: list[DeploymentState] = field(default_factory=list)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def count(self, kind: ResourceKind) -> int:
        return len(self.records.get(kind, ()))

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.started_at is None or self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds()

    def to_dict(self) -> dict:
        """Convert to a plain dictionary (key material is never included)."""
        return {
            "succeeded": self.succeeded,
            "final_state": self.final_state.value,
            "failed_state": self.failed_state.value if self.failed_state else None,
            "failed_resource": self.failed_resource,
            "failure_reason": self.failure_reason,
            "cancelled": self.cancelled,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_seconds": self.duration_seconds,
            "history": [state.value for state in self.history],
            "resources": {
                kind.value: [record.to_dict() for record in self.records.get(kind, ())] for kind in ResourceKind
            },
            "instances": [instance.to_dict() for instance in self.instances],
            "cleanup": self.cleanup.to_dict() if self.cleanup else None,
        }
