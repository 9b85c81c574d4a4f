"""Data model for workspace deployments.

Classes:
    ResourceKind: Kinds of resources a deployment creates
    ResourceRecord: Immutable ledger entry for one created resource
    DeploymentSpec: Validated deployment input
    DeploymentResult: Outcome of one orchestrator run
    CleanupRecord: Outcome of deleting one resource
    CleanupOperation: Aggregate outcome of a compensation or sweep
"""

from __future__ import annotations

from .cleanup_operation import CleanupMode, CleanupOperation, OperationStatus
from .cleanup_record import CleanupRecord, CleanupStatus
from .deployment_result import DeploymentResult, DeploymentState
from .deployment_spec import DeploymentSpec
from .resource_record import ResourceKind, ResourceRecord

__all__ = [
    "CleanupMode",
    "CleanupOperation",
    "CleanupRecord",
    "CleanupStatus",
    "DeploymentResult",
    "DeploymentSpec",
    "DeploymentState",
    "OperationStatus",
    "ResourceKind",
    "ResourceRecord",
]
