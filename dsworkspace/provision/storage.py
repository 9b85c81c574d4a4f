"""S3 bucket provisioner."""

from __future__ import annotations

import logging

from ..models.deployment_spec import DeploymentSpec
from ..models.resource_record import ResourceKind
from .base import BaseProvisioner

logger = logging.getLogger(__name__)

WORKSPACE_FOLDERS = ["data/", "notebooks/", "models/", "outputs/", "scripts/"]


class StorageProvisioner(BaseProvisioner):
    """Creates the workspace bucket.

    Versioning, the public access block, tags and folder markers are applied
    after the bucket exists. Each of those steps is best-effort: a failure is
    logged and the deployment continues.
    """

    @property
    def kind(self) -> ResourceKind:
        return ResourceKind.BUCKET

    def ensure(self, spec: DeploymentSpec) -> str:
        self._call(self.client.create_storage, spec.bucket_name, spec.region)
        self.tracker.register(self.kind, spec.bucket_name)
        logger.info(f"Created bucket s3://{spec.bucket_name} in {spec.region}")

        self.client.enable_versioning(spec.bucket_name)
        self.client.block_public_access(spec.bucket_name)
        if not self.client.tag_storage(spec.bucket_name, {**spec.tags, "Name": spec.bucket_name}):
            logger.warning(
                f"Bucket s3://{spec.bucket_name} is untagged; if it survives a failed rollback, "
                "dsworkspace cleanup will not find it and it must be deleted by hand"
            )

        created = sum(1 for folder in WORKSPACE_FOLDERS if self.client.create_folder_marker(spec.bucket_name, folder))
        if created < len(WORKSPACE_FOLDERS):
            logger.warning(f"Created {created}/{len(WORKSPACE_FOLDERS)} folders in s3://{spec.bucket_name}")

        return spec.bucket_name
