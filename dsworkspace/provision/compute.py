"""EC2 instance provisioner."""

from __future__ import annotations

import logging
import re
import uuid
from typing import Optional

from ..errors import ErrorCategory, ProviderError
from ..models.deployment_spec import DeploymentSpec
from ..models.resource_record import ResourceKind
from .base import BaseProvisioner
from .cancellation import CancellationToken
from .user_data import render_init_script

logger = logging.getLogger(__name__)

# Canonical's account publishes the official Ubuntu images
CANONICAL_OWNER_ID = "099720109477"
UBUNTU_IMAGE_PATTERNS = {
    "x86_64": "ubuntu/images/hvm-ssd/ubuntu-jammy-22.04-amd64-server-*",
    "arm64": "ubuntu/images/hvm-ssd/ubuntu-jammy-22.04-arm64-server-*",
}

# Graviton families carry a "g" right after the generation (t4g, m6gd, c7gn)
GRAVITON_FAMILY_PATTERN = re.compile(r"^[a-z]+\d+g")

DEFAULT_WAIT_TIMEOUT = 600


def image_architecture(instance_type: str) -> str:
    family = instance_type.split(".", 1)[0]
    return "arm64" if GRAVITON_FAMILY_PATTERN.match(family) else "x86_64"


class ComputeProvisioner(BaseProvisioner):
    """Creates workspace instances one at a time.

    Each instance is registered as soon as its ID is known and then awaited
    until running before the next one is launched, so at any failure point
    the tracker holds exactly the instances that were launched.

    Attributes:
        network_rule_id: Security group to attach
        credential_name: Key pair to install
        wait_timeout: Seconds to wait for each instance to run
        cancellation: Checked before every launch (optional)
        instance_ids: Instances launched by this provisioner
    """

    def __init__(
        self,
        *args,
        network_rule_id: str,
        credential_name: str,
        wait_timeout: int = DEFAULT_WAIT_TIMEOUT,
        cancellation: Optional[CancellationToken] = None,
        **kwargs,
    ) -> None:
        super().__init__(*args, **kwargs)
        self.network_rule_id = network_rule_id
        self.credential_name = credential_name
        self.wait_timeout = wait_timeout
        self.cancellation = cancellation
        self.instance_ids: list[str] = []

    @property
    def kind(self) -> ResourceKind:
        return ResourceKind.INSTANCE

    def resolve_image(self, spec: DeploymentSpec) -> str:
        """Return the requested image, or the newest Ubuntu 22.04 image for the instance architecture."""
        if spec.image_id:
            return spec.image_id

        architecture = image_architecture(spec.instance_type)
        image_id = self._call(
            self.client.find_latest_image,
            CANONICAL_OWNER_ID,
            UBUNTU_IMAGE_PATTERNS[architecture],
            architecture=architecture,
        )
        logger.info(f"Using Ubuntu 22.04 {architecture} image {image_id}")
        return image_id

    def ensure(self, spec: DeploymentSpec) -> list[str]:
        """Launch spec.instance_count instances sequentially.

        Returns:
            Instance IDs, in launch order

        Raises:
            ProviderError: If a launch or wait fails
            DeploymentCancelled: If cancellation was requested between launches
        """
        image_id = self.resolve_image(spec)
        init_script = render_init_script(spec)

        for index in range(1, spec.instance_count + 1):
            if self.cancellation is not None:
                self.cancellation.raise_if_cancelled()
            self.ensure_instance(spec, index, image_id, init_script)

        return list(self.instance_ids)

    def ensure_instance(self, spec: DeploymentSpec, index: int, image_id: str, init_script: str) -> str:
        """Launch one instance and block until it is running."""
        name = spec.instance_name(index)
        # Same token on every retry so a repeated launch is idempotent
        client_token = uuid.uuid4().hex

        instance_ids = self._call(
            self.client.create_compute,
            image_id,
            spec.instance_type,
            1,
            self.credential_name,
            self.network_rule_id,
            init_script,
            tags={**spec.tags, "Name": name},
            client_token=client_token,
        )
        if not instance_ids:
            raise ProviderError("create_compute", name, ErrorCategory.UNKNOWN, "provider returned no instance")

        instance_id = instance_ids[0]
        self.tracker.register(self.kind, instance_id)
        self.instance_ids.append(instance_id)
        logger.info(f"Launched instance {name}: {instance_id}, waiting for it to run")

        state = self.client.await_running(instance_id, self.wait_timeout)
        if state != "running":
            raise ProviderError(
                "await_running", instance_id, ErrorCategory.CONFLICT, f"instance is {state}, expected running"
            )

        logger.info(f"Instance {instance_id} ({index}/{spec.instance_count}) is running")
        return instance_id
