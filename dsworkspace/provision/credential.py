"""Key pair provisioner."""

from __future__ import annotations

import logging
from typing import Optional

from ..models.deployment_spec import DeploymentSpec
from ..models.resource_record import ResourceKind
from .base import BaseProvisioner

logger = logging.getLogger(__name__)


class CredentialProvisioner(BaseProvisioner):
    """Creates the workspace key pair, or adopts an existing one.

    Key material is only returned by the provider at creation time, so an
    existing key pair with the deterministic name is reused rather than
    replaced. The material of a new key pair is kept in ``material`` for the
    caller to save.
    """

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.material: Optional[str] = None
        self.reused = False

    @property
    def kind(self) -> ResourceKind:
        return ResourceKind.KEY_PAIR

    def ensure(self, spec: DeploymentSpec) -> str:
        handle = self._call(self.client.create_credential, spec.key_name, tags={**spec.tags, "Name": spec.key_name})

        if handle.created:
            self.material = handle.material
            self.reused = False
            logger.info(f"Created key pair {handle.key_name}")
        else:
            self.material = None
            self.reused = True
            logger.warning(
                f"Key pair {handle.key_name} already exists, reusing it. "
                "Its private key is not available from AWS; use the copy saved when it was created."
            )

        self.tracker.register(self.kind, handle.key_name, reused=self.reused)
        return handle.key_name
