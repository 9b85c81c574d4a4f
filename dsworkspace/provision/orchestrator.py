"""Deployment orchestrator.

Runs the provisioners in dependency order and rolls everything back on the
first failure, verification mismatch or operator interrupt.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from ..aws.resource_client import ResourceClient
from ..errors import DeploymentCancelled, ProviderError, ValidationError, WorkspaceError
from ..models.deployment_result import DeploymentResult, DeploymentState
from ..models.deployment_spec import DeploymentSpec
from .cancellation import CancellationToken
from .compensator import Compensator
from .compute import DEFAULT_WAIT_TIMEOUT, ComputeProvisioner
from .credential import CredentialProvisioner
from .network import NetworkProvisioner
from .storage import StorageProvisioner
from .tracker import ResourceTracker
from .verifier import DeploymentVerifier

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DeploymentOrchestrator:
    """Deployment orchestrator.

    State transitions:
        init → validating → provisioning-network → provisioning-credential →
        provisioning-storage → provisioning-compute → verifying → done
        validating → failed (invalid spec, nothing to roll back)
        provisioning-* / verifying → failed (after compensation)

    Attributes:
        client: Resource client shared by every provisioner
        compensator: Rolls back the tracker on failure
        verifier: Checks tracked resources after provisioning
        cancellation: Operator cancellation token
        state: Current state
        history: Every state entered, in order
        tracker: Tracker of the most recent run
    """

    def __init__(
        self,
        client: ResourceClient,
        compensator: Optional[Compensator] = None,
        verifier: Optional[DeploymentVerifier] = None,
        cancellation: Optional[CancellationToken] = None,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        wait_timeout: int = DEFAULT_WAIT_TIMEOUT,
    ) -> None:
        """Initialize orchestrator.

        Args:
            client: Resource client
            compensator: Compensator (default: one built on the same client)
            verifier: Verifier (default: one built on the same client)
            cancellation: Cancellation token (default: a fresh token)
            max_retries: Attempts per provider call for transient failures
            retry_delay: Base backoff delay in seconds
            wait_timeout: Seconds to wait for each instance to run
        """
        self.client = client
        self.compensator = compensator or Compensator(client)
        self.verifier = verifier or DeploymentVerifier(client)
        self.cancellation = cancellation or CancellationToken()
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.wait_timeout = wait_timeout
        self.state = DeploymentState.INIT
        self.history: list[DeploymentState] = [DeploymentState.INIT]
        self.tracker: Optional[ResourceTracker] = None

    def _transition(self, state: DeploymentState) -> None:
        logger.debug(f"{self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)

    def _enter(self, state: DeploymentState) -> None:
        """Enter a pipeline step, honoring pending cancellation first."""
        self.cancellation.raise_if_cancelled()
        self._transition(state)

    def run(self, spec: DeploymentSpec) -> DeploymentResult:
        """Deploy a workspace.

        Args:
            spec: Deployment spec (validated here, before any provider call)

        Returns:
            DeploymentResult; on failure every tracked resource has already
            been handed to the compensator
        """
        tracker = ResourceTracker()
        self.tracker = tracker
        started_at = _utcnow()

        self._transition(DeploymentState.VALIDATING)
        try:
            spec.validate()
        except ValidationError as e:
            logger.error(str(e))
            return self._fail(tracker, e, started_at, compensate=False)

        for warning in spec.uses_insecure_defaults():
            logger.warning(f"SECURITY: {warning}")

        options = {"max_retries": self.max_retries, "retry_delay": self.retry_delay}
        key_material = None
        try:
            self._enter(DeploymentState.PROVISIONING_NETWORK)
            group_id = NetworkProvisioner(self.client, tracker, **options).ensure(spec)

            self._enter(DeploymentState.PROVISIONING_CREDENTIAL)
            credential = CredentialProvisioner(self.client, tracker, **options)
            key_name = credential.ensure(spec)
            key_material = credential.material

            self._enter(DeploymentState.PROVISIONING_STORAGE)
            StorageProvisioner(self.client, tracker, **options).ensure(spec)

            self._enter(DeploymentState.PROVISIONING_COMPUTE)
            ComputeProvisioner(
                self.client,
                tracker,
                network_rule_id=group_id,
                credential_name=key_name,
                wait_timeout=self.wait_timeout,
                cancellation=self.cancellation,
                **options,
            ).ensure(spec)

            self._enter(DeploymentState.VERIFYING)
            instances = self.verifier.verify(tracker)
        except WorkspaceError as e:
            return self._fail(tracker, e, started_at)
        except KeyboardInterrupt:
            self.cancellation.cancel("interrupted by operator")
            return self._fail(tracker, DeploymentCancelled("interrupted by operator"), started_at)
        except Exception as e:
            logger.exception(f"Unexpected error while {self.state.value}")
            return self._fail(tracker, e, started_at)

        self._transition(DeploymentState.DONE)
        logger.info(f"Deployment complete: {len(tracker)} resource(s) created")
        return DeploymentResult(
            succeeded=True,
            records=tracker.snapshot(),
            final_state=DeploymentState.DONE,
            instances=instances,
            key_material=key_material,
            history=list(self.history),
            started_at=started_at,
            completed_at=_utcnow(),
        )

    def _fail(
        self,
        tracker: ResourceTracker,
        error: Exception,
        started_at: datetime,
        compensate: bool = True,
    ) -> DeploymentResult:
        """Move to FAILED, roll back the tracker and build the result."""
        failed_state = self.state
        cancelled = isinstance(error, DeploymentCancelled)
        failed_resource = f"{error.operation} {error.resource}" if isinstance(error, ProviderError) else None

        if cancelled:
            logger.warning(f"Deployment cancelled during {failed_state.value}: {error}")
        elif compensate:
            logger.error(f"Deployment failed during {failed_state.value}: {error}")

        self._transition(DeploymentState.FAILED)

        cleanup = None
        if compensate:
            with self.cancellation.compensating():
                cleanup = self.compensator.compensate(tracker)

        return DeploymentResult(
            succeeded=False,
            records=tracker.snapshot(),
            failure_reason=str(error),
            final_state=DeploymentState.FAILED,
            failed_state=failed_state,
            failed_resource=failed_resource,
            cancelled=cancelled,
            cleanup=cleanup,
            history=list(self.history),
            started_at=started_at,
            completed_at=_utcnow(),
        )
