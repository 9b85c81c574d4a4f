"""Base provisioner interface."""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, TypeVar, Union

from ..aws.resource_client import ResourceClient
from ..errors import ProviderError
from ..models.deployment_spec import DeploymentSpec
from ..models.resource_record import ResourceKind
from .tracker import ResourceTracker

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BaseProvisioner(ABC):
    """Abstract base class for all provisioners.

    Each provisioner should:
    1. Declare the resource kind it creates
    2. Implement ensure() to create (or adopt) its resource
    3. Register with the tracker only after a confirmed outcome
    4. Return the identifier later provisioners depend on

    Attributes:
        client: Resource client for provider calls
        tracker: Tracker for the current run
        max_retries: Attempts per provider call for transient failures
        retry_delay: Base delay in seconds for exponential backoff
    """

    def __init__(
        self,
        client: ResourceClient,
        tracker: ResourceTracker,
        max_retries: int = 3,
        retry_delay: float = 1.0,
    ) -> None:
        self.client = client
        self.tracker = tracker
        self.max_retries = max_retries
        self.retry_delay = retry_delay

    @property
    @abstractmethod
    def kind(self) -> ResourceKind:
        """Resource kind this provisioner creates."""
        pass

    @abstractmethod
    def ensure(self, spec: DeploymentSpec) -> Union[str, list[str]]:
        """Create the resource for a deployment spec.

        Args:
            spec: Validated deployment spec

        Returns:
            Identifier of the created or adopted resource (a list for
            provisioners that create several)

        Raises:
            ProviderError: If the resource could not be created
        """
        pass

    def _call(self, method: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Call a resource client method, retrying transient failures.

        Permanent failures propagate immediately. Transient ones are retried
        with exponential backoff until max_retries attempts were made.
        """
        attempts = max(1, self.max_retries)
        attempt = 0
        while True:
            try:
                return method(*args, **kwargs)
            except ProviderError as e:
                if not e.transient or attempt >= attempts - 1:
                    raise
                wait_time = self.retry_delay * (2**attempt)
                logger.warning(
                    f"Transient failure in {e.operation} for {e.resource}, "
                    f"retrying in {wait_time:.0f}s (attempt {attempt + 1}/{attempts}): {e.message}"
                )
                time.sleep(wait_time)
                attempt += 1
