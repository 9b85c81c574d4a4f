"""Workspace resource client.

Thin pass-through over the EC2 and S3 APIs. Every call either returns the
provider's answer or raises a ``ProviderError``; nothing here retries or
decides idempotency, that is left to the callers.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from botocore.exceptions import BotoCoreError, ClientError

from ..errors import ErrorCategory, ProviderError, translate_client_error
from .client import create_boto_client

logger = logging.getLogger(__name__)

# us-east-1 rejects an explicit LocationConstraint
DEFAULT_S3_REGION = "us-east-1"

# States that still hold a security group attachment
LIVE_INSTANCE_STATES = ["pending", "running", "stopping", "stopped"]

# delete_objects accepts at most 1000 keys per call
DELETE_BATCH_SIZE = 1000


@dataclass(frozen=True)
class IngressRule:
    """Single inbound rule for a security group."""

    protocol: str
    port: int
    cidr: str
    description: str = ""

    def to_permission(self) -> dict:
        ip_range = {"CidrIp": self.cidr}
        if self.description:
            ip_range["Description"] = self.description
        return {
            "IpProtocol": self.protocol,
            "FromPort": self.port,
            "ToPort": self.port,
            "IpRanges": [ip_range],
        }


@dataclass(frozen=True)
class CredentialHandle:
    """Result of creating (or finding) a key pair.

    Attributes:
        key_name: Key pair name
        key_id: Provider key pair ID
        material: Private key, only available when the key was just created
        created: False when an existing key pair with the same name was found
    """

    key_name: str
    key_id: Optional[str]
    material: Optional[str] = field(default=None, repr=False)
    created: bool = True


@dataclass(frozen=True)
class ComputeState:
    """Live state of an EC2 instance."""

    instance_id: str
    state: str
    public_address: Optional[str] = None
    private_address: Optional[str] = None

    @property
    def is_running(self) -> bool:
        return self.state == "running"

    def to_dict(self) -> dict:
        return {
            "instance_id": self.instance_id,
            "state": self.state,
            "public_address": self.public_address,
            "private_address": self.private_address,
        }


def tag_list(tags: Optional[dict[str, str]]) -> list[dict[str, str]]:
    """Convert a tag dict into the AWS Key/Value list shape."""
    return [{"Key": key, "Value": value} for key, value in (tags or {}).items()]


def tag_filters(tags: dict[str, str]) -> list[dict[str, Any]]:
    """Build EC2 describe filters matching every tag."""
    return [{"Name": f"tag:{key}", "Values": [value]} for key, value in tags.items()]


class ResourceClient:
    """Control-plane operations for workspace resources.

    Attributes:
        region: AWS region for every call
        aws_profile: AWS profile name (optional)
        wait_delay: Seconds between waiter polls
    """

    def __init__(
        self,
        region: str,
        aws_profile: Optional[str] = None,
        ec2_client: Any = None,
        s3_client: Any = None,
        wait_delay: int = 15,
    ) -> None:
        """Initialize resource client.

        Args:
            region: AWS region
            aws_profile: AWS profile name (optional)
            ec2_client: Pre-built EC2 client (optional, created lazily otherwise)
            s3_client: Pre-built S3 client (optional, created lazily otherwise)
            wait_delay: Seconds between waiter polls (default: 15)
        """
        self.region = region
        self.aws_profile = aws_profile
        self.wait_delay = wait_delay
        self._ec2 = ec2_client
        self._s3 = s3_client

    @property
    def ec2(self) -> Any:
        if self._ec2 is None:
            self._ec2 = create_boto_client(service_name="ec2", region_name=self.region, profile_name=self.aws_profile)
        return self._ec2

    @property
    def s3(self) -> Any:
        if self._s3 is None:
            self._s3 = create_boto_client(service_name="s3", region_name=self.region, profile_name=self.aws_profile)
        return self._s3

    def _invoke(self, operation: str, resource: str, method: Callable[..., Any], **params: Any) -> Any:
        """Call a boto3 method, translating failures into ProviderError."""
        try:
            return method(**params)
        except (ClientError, BotoCoreError) as e:
            raise translate_client_error(e, operation, resource) from e

    def _best_effort(self, operation: str, resource: str, method: Callable[..., Any], **params: Any) -> bool:
        """Call a boto3 method whose failure must not abort the deployment."""
        try:
            self._invoke(operation, resource, method, **params)
            return True
        except ProviderError as e:
            logger.warning(f"{operation} failed for {resource}, continuing: {e}")
            return False

    # ------------------------------------------------------------------
    # Security groups
    # ------------------------------------------------------------------

    def create_network_rule(
        self,
        name: str,
        description: str,
        ingress_rules: list[IngressRule],
        tags: Optional[dict[str, str]] = None,
    ) -> str:
        """Create a security group with the given ingress rules.

        If authorizing the rules fails, the new group is deleted again so the
        caller never receives an error for a group that still exists.

        Returns:
            Security group ID
        """
        params: dict[str, Any] = {"GroupName": name, "Description": description}
        if tags:
            params["TagSpecifications"] = [{"ResourceType": "security-group", "Tags": tag_list(tags)}]

        response = self._invoke("create_network_rule", name, self.ec2.create_security_group, **params)
        group_id = response["GroupId"]
        logger.debug(f"Created security group {name}: {group_id}")

        try:
            self._invoke(
                "authorize_ingress",
                group_id,
                self.ec2.authorize_security_group_ingress,
                GroupId=group_id,
                IpPermissions=[rule.to_permission() for rule in ingress_rules],
            )
        except ProviderError:
            logger.error(f"Failed to authorize ingress on {group_id}, removing the group")
            try:
                self.delete_network_rule(group_id)
            except ProviderError as cleanup_error:
                logger.error(f"Could not remove security group {group_id}: {cleanup_error}")
            raise

        return group_id

    def describe_network_rule(self, group_id: str) -> dict:
        response = self._invoke(
            "describe_network_rule", group_id, self.ec2.describe_security_groups, GroupIds=[group_id]
        )
        groups = response.get("SecurityGroups", [])
        if not groups:
            raise ProviderError("describe_network_rule", group_id, ErrorCategory.NOT_FOUND, "security group not found")
        return groups[0]

    def delete_network_rule(self, group_id: str) -> None:
        """Delete a security group. A group that is already gone counts as deleted."""
        try:
            self._invoke("delete_network_rule", group_id, self.ec2.delete_security_group, GroupId=group_id)
        except ProviderError as e:
            if not e.is_not_found:
                raise
            logger.info(f"Security group {group_id} already deleted")

    # ------------------------------------------------------------------
    # Key pairs
    # ------------------------------------------------------------------

    def create_credential(self, name: str, tags: Optional[dict[str, str]] = None) -> CredentialHandle:
        """Create a key pair, or return the existing one with the same name.

        Returns:
            CredentialHandle; material is None when the key pair already existed
        """
        params: dict[str, Any] = {"KeyName": name, "KeyType": "rsa"}
        if tags:
            params["TagSpecifications"] = [{"ResourceType": "key-pair", "Tags": tag_list(tags)}]

        try:
            response = self._invoke("create_credential", name, self.ec2.create_key_pair, **params)
        except ProviderError as e:
            if e.code != "InvalidKeyPair.Duplicate":
                raise
            return CredentialHandle(key_name=name, key_id=self.describe_credential(name), created=False)

        return CredentialHandle(
            key_name=name,
            key_id=response.get("KeyPairId"),
            material=response.get("KeyMaterial"),
            created=True,
        )

    def describe_credential(self, name: str) -> Optional[str]:
        """Look up a key pair by name.

        Returns:
            Key pair ID

        Raises:
            ProviderError: NOT_FOUND if no key pair has this name
        """
        response = self._invoke("describe_credential", name, self.ec2.describe_key_pairs, KeyNames=[name])
        key_pairs = response.get("KeyPairs", [])
        if not key_pairs:
            raise ProviderError("describe_credential", name, ErrorCategory.NOT_FOUND, "key pair not found")
        return key_pairs[0].get("KeyPairId")

    def delete_credential(self, name: str) -> None:
        """Delete a key pair. A key pair that is already gone counts as deleted."""
        try:
            self._invoke("delete_credential", name, self.ec2.delete_key_pair, KeyName=name)
        except ProviderError as e:
            if not e.is_not_found:
                raise
            logger.info(f"Key pair {name} already deleted")

    # ------------------------------------------------------------------
    # Buckets
    # ------------------------------------------------------------------

    def create_storage(self, name: str, region: str) -> None:
        """Create an S3 bucket in the given region."""
        params: dict[str, Any] = {"Bucket": name}
        if region != DEFAULT_S3_REGION:
            params["CreateBucketConfiguration"] = {"LocationConstraint": region}
        self._invoke("create_storage", name, self.s3.create_bucket, **params)
        logger.debug(f"Created bucket {name} in {region}")

    def enable_versioning(self, name: str) -> bool:
        return self._best_effort(
            "enable_versioning",
            name,
            self.s3.put_bucket_versioning,
            Bucket=name,
            VersioningConfiguration={"Status": "Enabled"},
        )

    def block_public_access(self, name: str) -> bool:
        return self._best_effort(
            "block_public_access",
            name,
            self.s3.put_public_access_block,
            Bucket=name,
            PublicAccessBlockConfiguration={
                "BlockPublicAcls": True,
                "IgnorePublicAcls": True,
                "BlockPublicPolicy": True,
                "RestrictPublicBuckets": True,
            },
        )

    def tag_storage(self, name: str, tags: dict[str, str]) -> bool:
        return self._best_effort(
            "tag_storage", name, self.s3.put_bucket_tagging, Bucket=name, Tagging={"TagSet": tag_list(tags)}
        )

    def create_folder_marker(self, name: str, folder: str) -> bool:
        key = folder if folder.endswith("/") else f"{folder}/"
        return self._best_effort(
            "create_folder_marker", f"{name}/{key}", self.s3.put_object, Bucket=name, Key=key, Body=b""
        )

    def describe_storage(self, name: str) -> None:
        """Check the bucket exists and is reachable."""
        self._invoke("describe_storage", name, self.s3.head_bucket, Bucket=name)

    def delete_storage(self, name: str) -> None:
        """Empty and delete a bucket. A bucket that is already gone counts as deleted."""
        try:
            self._empty_bucket(name)
            self._invoke("delete_storage", name, self.s3.delete_bucket, Bucket=name)
        except ProviderError as e:
            if not e.is_not_found:
                raise
            logger.info(f"Bucket {name} already deleted")

    def _empty_bucket(self, name: str) -> None:
        """Delete every object version and delete marker in a bucket."""
        deleted = 0
        try:
            paginator = self.s3.get_paginator("list_object_versions")
            for page in paginator.paginate(Bucket=name):
                objects = [
                    {"Key": entry["Key"], "VersionId": entry["VersionId"]}
                    for entry in page.get("Versions", []) + page.get("DeleteMarkers", [])
                ]
                for start in range(0, len(objects), DELETE_BATCH_SIZE):
                    batch = objects[start : start + DELETE_BATCH_SIZE]
                    response = self.s3.delete_objects(Bucket=name, Delete={"Objects": batch, "Quiet": True})
                    errors = response.get("Errors", [])
                    if errors:
                        first = errors[0]
                        raise ProviderError(
                            "empty_storage",
                            name,
                            ErrorCategory.UNKNOWN,
                            f"{len(errors)} object(s) could not be deleted, first: {first.get('Key')}",
                            code=first.get("Code"),
                        )
                    deleted += len(batch)
        except (ClientError, BotoCoreError) as e:
            raise translate_client_error(e, "empty_storage", name) from e

        logger.debug(f"Removed {deleted} object version(s) from {name}")

    # ------------------------------------------------------------------
    # Instances
    # ------------------------------------------------------------------

    def create_compute(
        self,
        image_id: str,
        instance_type: str,
        count: int,
        credential_name: str,
        network_rule_id: str,
        init_script: str,
        tags: Optional[dict[str, str]] = None,
        client_token: Optional[str] = None,
    ) -> list[str]:
        """Launch instances.

        A client_token makes a repeated call return the instances launched by
        the first one instead of launching new ones.

        Returns:
            Instance IDs, in launch order
        """
        params: dict[str, Any] = {
            "ImageId": image_id,
            "InstanceType": instance_type,
            "MinCount": count,
            "MaxCount": count,
            "KeyName": credential_name,
            "SecurityGroupIds": [network_rule_id],
            "UserData": init_script,
        }
        if client_token:
            params["ClientToken"] = client_token
        if tags:
            params["TagSpecifications"] = [
                {"ResourceType": "instance", "Tags": tag_list(tags)},
                {"ResourceType": "volume", "Tags": tag_list(tags)},
            ]

        resource = tags.get("Name", image_id) if tags else image_id
        response = self._invoke("create_compute", resource, self.ec2.run_instances, **params)
        return [instance["InstanceId"] for instance in response.get("Instances", [])]

    def await_running(self, instance_id: str, timeout: int) -> str:
        """Block until an instance is running.

        Args:
            instance_id: Instance to wait for
            timeout: Upper bound in seconds

        Returns:
            Instance state after the wait

        Raises:
            ProviderError: TIMEOUT (not transient) when the wait expires
        """
        waiter = self.ec2.get_waiter("instance_running")
        max_attempts = max(1, math.ceil(timeout / self.wait_delay))
        self._invoke(
            "await_running",
            instance_id,
            waiter.wait,
            InstanceIds=[instance_id],
            WaiterConfig={"Delay": self.wait_delay, "MaxAttempts": max_attempts},
        )
        return self.describe_compute(instance_id).state

    def await_terminated(self, instance_ids: list[str], timeout: int) -> bool:
        """Wait for instances to terminate.

        Returns:
            True if every instance terminated within the timeout
        """
        if not instance_ids:
            return True

        waiter = self.ec2.get_waiter("instance_terminated")
        max_attempts = max(1, math.ceil(timeout / self.wait_delay))
        try:
            self._invoke(
                "await_terminated",
                ",".join(instance_ids),
                waiter.wait,
                InstanceIds=instance_ids,
                WaiterConfig={"Delay": self.wait_delay, "MaxAttempts": max_attempts},
            )
        except ProviderError as e:
            logger.warning(f"Instances did not terminate within {timeout}s: {e}")
            return False
        return True

    def describe_compute(self, instance_id: str) -> ComputeState:
        response = self._invoke("describe_compute", instance_id, self.ec2.describe_instances, InstanceIds=[instance_id])
        for reservation in response.get("Reservations", []):
            for instance in reservation.get("Instances", []):
                return ComputeState(
                    instance_id=instance["InstanceId"],
                    state=instance.get("State", {}).get("Name", "unknown"),
                    public_address=instance.get("PublicIpAddress"),
                    private_address=instance.get("PrivateIpAddress"),
                )
        raise ProviderError("describe_compute", instance_id, ErrorCategory.NOT_FOUND, "instance not found")

    def terminate_compute(self, instance_id: str) -> None:
        """Terminate an instance. An instance that is already gone counts as terminated."""
        try:
            self._invoke("terminate_compute", instance_id, self.ec2.terminate_instances, InstanceIds=[instance_id])
        except ProviderError as e:
            if not e.is_not_found:
                raise
            logger.info(f"Instance {instance_id} already terminated")

    def find_latest_image(self, owner: str, name_pattern: str, architecture: str = "x86_64") -> str:
        """Find the newest available image matching a name pattern.

        Returns:
            Image ID

        Raises:
            ProviderError: NOT_FOUND if no image matches
        """
        response = self._invoke(
            "find_latest_image",
            name_pattern,
            self.ec2.describe_images,
            Owners=[owner],
            Filters=[
                {"Name": "name", "Values": [name_pattern]},
                {"Name": "state", "Values": ["available"]},
                {"Name": "architecture", "Values": [architecture]},
            ],
        )
        images = sorted(response.get("Images", []), key=lambda image: image.get("CreationDate", ""), reverse=True)
        if not images:
            raise ProviderError(
                "find_latest_image", name_pattern, ErrorCategory.NOT_FOUND, f"no image in {self.region}"
            )
        return images[0]["ImageId"]

    # ------------------------------------------------------------------
    # Tag-based discovery
    # ------------------------------------------------------------------

    def find_tagged_instances(self, tags: dict[str, str]) -> list[str]:
        """Find instances carrying every tag, excluding terminated ones."""
        filters = tag_filters(tags) + [{"Name": "instance-state-name", "Values": LIVE_INSTANCE_STATES}]
        instance_ids = []
        try:
            paginator = self.ec2.get_paginator("describe_instances")
            for page in paginator.paginate(Filters=filters):
                for reservation in page.get("Reservations", []):
                    for instance in reservation.get("Instances", []):
                        instance_ids.append(instance["InstanceId"])
        except (ClientError, BotoCoreError) as e:
            raise translate_client_error(e, "find_tagged_instances", self.region) from e
        return instance_ids

    def find_tagged_buckets(self, tags: dict[str, str]) -> list[str]:
        """Find buckets whose tag set contains every tag."""
        response = self._invoke("find_tagged_buckets", "*", self.s3.list_buckets)
        matches = []
        for bucket in response.get("Buckets", []):
            name = bucket["Name"]
            try:
                tagging = self._invoke("get_bucket_tagging", name, self.s3.get_bucket_tagging, Bucket=name)
            except ProviderError as e:
                # Untagged, foreign-region or inaccessible buckets are not ours
                logger.debug(f"Skipping bucket {name}: {e.code or e.category.value}")
                continue
            bucket_tags = {tag["Key"]: tag["Value"] for tag in tagging.get("TagSet", [])}
            if all(bucket_tags.get(key) == value for key, value in tags.items()):
                matches.append(name)
        return matches

    def find_tagged_network_rules(self, tags: dict[str, str]) -> list[str]:
        response = self._invoke(
            "find_tagged_network_rules", self.region, self.ec2.describe_security_groups, Filters=tag_filters(tags)
        )
        return [group["GroupId"] for group in response.get("SecurityGroups", [])]

    def find_tagged_credentials(self, tags: dict[str, str]) -> list[str]:
        response = self._invoke(
            "find_tagged_credentials", self.region, self.ec2.describe_key_pairs, Filters=tag_filters(tags)
        )
        return [key_pair["KeyName"] for key_pair in response.get("KeyPairs", [])]
