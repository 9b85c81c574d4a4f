"""Workspace provisioning module.

This module creates the workspace resources in dependency order and rolls
them back on failure.

Classes:
    DeploymentOrchestrator: Runs the provisioning pipeline
    ResourceTracker: In-memory ledger of created resources
    Compensator: Reverse-order deletion of tracked or tag-discovered resources
    DeploymentVerifier: Post-creation live-state checks
    CancellationToken: Operator cancellation flag
"""

from __future__ import annotations

from .cancellation import CancellationToken, handle_signals
from .compensator import Compensator
from .orchestrator import DeploymentOrchestrator
from .plan import PlannedResource, build_plan
from .tracker import ResourceTracker
from .verifier import DeploymentVerifier

__all__ = [
    "CancellationToken",
    "Compensator",
    "DeploymentOrchestrator",
    "DeploymentVerifier",
    "PlannedResource",
    "ResourceTracker",
    "build_plan",
    "handle_signals",
]
