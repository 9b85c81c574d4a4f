"""Post-deployment verification."""

from __future__ import annotations

import logging

from ..aws.resource_client import ComputeState, ResourceClient
from ..errors import ProviderError, VerificationMismatch
from ..models.resource_record import ResourceKind
from .tracker import ResourceTracker

logger = logging.getLogger(__name__)


class DeploymentVerifier:
    """Re-queries every tracked resource and checks it is live.

    Expected states:
        security group: describable
        key pair: describable
        bucket: reachable (head bucket succeeds)
        instance: running
    """

    def __init__(self, client: ResourceClient) -> None:
        self.client = client

    def verify(self, tracker: ResourceTracker) -> list[ComputeState]:
        """Verify tracked resources.

        Args:
            tracker: Tracker of the current run

        Returns:
            Live state of every tracked instance

        Raises:
            VerificationMismatch: Listing every resource not in its expected state
        """
        mismatches = []
        instances = []

        for record in tracker.all(ResourceKind.SECURITY_GROUP):
            try:
                self.client.describe_network_rule(record.identifier)
            except ProviderError as e:
                mismatches.append(f"security group {record.identifier} not found ({e.code or e.category.value})")

        for record in tracker.all(ResourceKind.KEY_PAIR):
            try:
                self.client.describe_credential(record.identifier)
            except ProviderError as e:
                mismatches.append(f"key pair {record.identifier} not found ({e.code or e.category.value})")

        for record in tracker.all(ResourceKind.BUCKET):
            try:
                self.client.describe_storage(record.identifier)
            except ProviderError as e:
                mismatches.append(f"bucket {record.identifier} not reachable ({e.code or e.category.value})")

        for record in tracker.all(ResourceKind.INSTANCE):
            try:
                state = self.client.describe_compute(record.identifier)
            except ProviderError as e:
                mismatches.append(f"instance {record.identifier} not found ({e.code or e.category.value})")
                continue
            instances.append(state)
            if not state.is_running:
                mismatches.append(f"instance {record.identifier} is {state.state}, expected running")

        if mismatches:
            for mismatch in mismatches:
                logger.error(f"Verification mismatch: {mismatch}")
            raise VerificationMismatch(mismatches)

        logger.info(f"Verified {len(tracker)} resource(s)")
        return instances
