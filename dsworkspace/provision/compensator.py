"""Deployment rollback and tag-based sweep cleanup."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Callable, Optional

from ..aws.resource_client import ResourceClient
from ..errors import CompensationError, ProviderError
from ..models.cleanup_operation import CleanupMode, CleanupOperation
from ..models.cleanup_record import CleanupRecord, CleanupStatus
from ..models.resource_record import ResourceKind
from .tracker import ResourceTracker

logger = logging.getLogger(__name__)

DEFAULT_TERMINATION_TIMEOUT = 300


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Compensator:
    """Deletes tracked resources in reverse dependency order.

    Deletion order:
        1. Instances (they hold the security group and key pair)
        2. Buckets (emptied first)
        3. Security groups, after a bounded wait for instance termination
        4. Key pairs

    Every delete is best-effort: a failure is logged and recorded, and the
    remaining deletes still run.

    Attributes:
        client: Resource client for provider calls
        termination_timeout: Seconds to wait for instances to terminate
        max_retries: Attempts for security group deletion on DependencyViolation
        retry_delay: Base delay in seconds for exponential backoff
    """

    def __init__(
        self,
        client: ResourceClient,
        termination_timeout: int = DEFAULT_TERMINATION_TIMEOUT,
        max_retries: int = 3,
        retry_delay: float = 5.0,
    ) -> None:
        self.client = client
        self.termination_timeout = termination_timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay

    def compensate(self, tracker: ResourceTracker, mode: CleanupMode = CleanupMode.COMPENSATE) -> CleanupOperation:
        """Delete every tracked resource.

        Args:
            tracker: Tracker holding the resources to delete (read, not cleared)
            mode: Recorded on the returned operation

        Returns:
            CleanupOperation with one record per resource
        """
        operation = CleanupOperation(mode=mode, started_at=_utcnow())

        if tracker.is_empty():
            logger.info("Nothing to clean up")
            operation.completed_at = _utcnow()
            return operation

        logger.info(f"Cleaning up {len(tracker)} resource(s)")

        instance_ids = tracker.identifiers(ResourceKind.INSTANCE)
        for instance_id in instance_ids:
            self._delete(operation, ResourceKind.INSTANCE, instance_id, self.client.terminate_compute)

        for bucket_name in tracker.identifiers(ResourceKind.BUCKET):
            self._delete(operation, ResourceKind.BUCKET, bucket_name, self.client.delete_storage)

        if not tracker.is_empty(ResourceKind.SECURITY_GROUP):
            if instance_ids:
                logger.info(f"Waiting up to {self.termination_timeout}s for instances to terminate")
                if not self.client.await_terminated(instance_ids, self.termination_timeout):
                    logger.warning("Instances still terminating, security group deletion may fail")
            for group_id in tracker.identifiers(ResourceKind.SECURITY_GROUP):
                self._delete(operation, ResourceKind.SECURITY_GROUP, group_id, self._delete_network_rule)

        for key_name in tracker.identifiers(ResourceKind.KEY_PAIR):
            self._delete(operation, ResourceKind.KEY_PAIR, key_name, self.client.delete_credential)

        operation.completed_at = _utcnow()
        logger.info(
            f"Cleanup {operation.status.value}: {operation.succeeded_count} deleted, "
            f"{operation.failed_count} failed"
        )
        return operation

    def sweep(self, project_name: str, environment: str, tags: Optional[dict[str, str]] = None) -> CleanupOperation:
        """Discover resources by tag and delete them.

        Used when no tracker exists, e.g. to clean up after a previous process.

        Args:
            project_name: Project tag value
            environment: Environment tag value
            tags: Extra tags every resource must carry (optional)

        Returns:
            CleanupOperation with one record per discovered resource
        """
        filter_tags = {"Project": project_name, "Environment": environment, **(tags or {})}
        tracker = self.discover(filter_tags)
        logger.info(
            "Discovered "
            + ", ".join(f"{count} {kind.value}(s)" for kind, count in tracker.counts().items())
            + f" tagged {project_name}/{environment}"
        )
        return self.compensate(tracker, mode=CleanupMode.SWEEP)

    def discover(self, tags: dict[str, str]) -> ResourceTracker:
        """Build a tracker from resources carrying every tag.

        Raises:
            ProviderError: If discovery itself fails
        """
        tracker = ResourceTracker()
        for instance_id in self.client.find_tagged_instances(tags):
            tracker.register(ResourceKind.INSTANCE, instance_id)
        for bucket_name in self.client.find_tagged_buckets(tags):
            tracker.register(ResourceKind.BUCKET, bucket_name)
        for group_id in self.client.find_tagged_network_rules(tags):
            tracker.register(ResourceKind.SECURITY_GROUP, group_id)
        for key_name in self.client.find_tagged_credentials(tags):
            tracker.register(ResourceKind.KEY_PAIR, key_name)
        return tracker

    def _delete_network_rule(self, group_id: str) -> None:
        """Delete a security group, retrying while instances still hold it."""
        for attempt in range(self.max_retries):
            try:
                self.client.delete_network_rule(group_id)
                return
            except ProviderError as e:
                if e.code != "DependencyViolation" or attempt >= self.max_retries - 1:
                    raise
                wait_time = self.retry_delay * (2**attempt)
                logger.debug(
                    f"Dependency violation for {group_id}, "
                    f"retrying in {wait_time:.0f}s (attempt {attempt + 1}/{self.max_retries})"
                )
                time.sleep(wait_time)

    def _delete(
        self,
        operation: CleanupOperation,
        kind: ResourceKind,
        identifier: str,
        delete: Callable[[str], None],
    ) -> None:
        try:
            delete(identifier)
        except Exception as e:
            error = CompensationError(kind.value, identifier, e)
            logger.error(f"{error}. Remove it manually or rerun cleanup.")
            operation.records.append(
                CleanupRecord(
                    kind=kind,
                    identifier=identifier,
                    timestamp=_utcnow(),
                    status=CleanupStatus.FAILED,
                    error_code=getattr(e, "code", None) or type(e).__name__,
                    error_message=str(e),
                )
            )
            return

        logger.info(f"Deleted {kind.value} {identifier}")
        operation.records.append(
            CleanupRecord(kind=kind, identifier=identifier, timestamp=_utcnow(), status=CleanupStatus.SUCCEEDED)
        )
