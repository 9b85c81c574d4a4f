"""Tests for ResourceClient class.

Test coverage for boto3 calls, error translation and already-gone handling.
"""

from __future__ import annotations

from unittest.mock import Mock, patch

import pytest
from botocore.exceptions import ClientError, WaiterError

from dsworkspace.aws.resource_client import IngressRule, ResourceClient, tag_filters, tag_list
from dsworkspace.errors import ErrorCategory, ProviderError


def client_error(code: str, operation: str = "Operation", message: str = "error") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


@pytest.fixture
def ec2() -> Mock:
    """Create mock EC2 client."""
    return Mock()


@pytest.fixture
def s3() -> Mock:
    """Create mock S3 client."""
    return Mock()


@pytest.fixture
def client(ec2: Mock, s3: Mock) -> ResourceClient:
    """Create resource client over mock boto3 clients."""
    return ResourceClient(region="us-west-2", ec2_client=ec2, s3_client=s3, wait_delay=15)


class TestResourceClientSetup:
    """Test suite for client construction and helpers."""

    @patch("dsworkspace.aws.resource_client.create_boto_client")
    def test_boto_clients_created_lazily(self, mock_create_client: Mock) -> None:
        """Test boto3 clients are built on first use with region and profile."""
        client = ResourceClient(region="eu-west-1", aws_profile="research")

        mock_create_client.assert_not_called()
        client.ec2
        client.ec2

        mock_create_client.assert_called_once_with(service_name="ec2", region_name="eu-west-1", profile_name="research")

    def test_tag_helpers(self) -> None:
        """Test tag dicts convert to AWS tag lists and filters."""
        tags = {"Project": "ml", "Environment": "dev"}

        assert tag_list(tags) == [{"Key": "Project", "Value": "ml"}, {"Key": "Environment", "Value": "dev"}]
        assert tag_filters(tags) == [
            {"Name": "tag:Project", "Values": ["ml"]},
            {"Name": "tag:Environment", "Values": ["dev"]},
        ]
        assert tag_list(None) == []


class TestSecurityGroups:
    """Test suite for security group operations."""

    def test_create_network_rule(self, client: ResourceClient, ec2: Mock) -> None:
        """Test group creation with tags and ingress rules."""
        ec2.create_security_group.return_value = {"GroupId": "sg-123"}
        rule = IngressRule(protocol="tcp", port=22, cidr="203.0.113.0/24", description="SSH")

        group_id = client.create_network_rule("proj-dev-sg", "workspace", [rule], tags={"Project": "proj"})

        assert group_id == "sg-123"
        ec2.create_security_group.assert_called_once_with(
            GroupName="proj-dev-sg",
            Description="workspace",
            TagSpecifications=[{"ResourceType": "security-group", "Tags": [{"Key": "Project", "Value": "proj"}]}],
        )
        ec2.authorize_security_group_ingress.assert_called_once_with(
            GroupId="sg-123",
            IpPermissions=[
                {
                    "IpProtocol": "tcp",
                    "FromPort": 22,
                    "ToPort": 22,
                    "IpRanges": [{"CidrIp": "203.0.113.0/24", "Description": "SSH"}],
                }
            ],
        )

    def test_failed_authorization_removes_group(self, client: ResourceClient, ec2: Mock) -> None:
        """Test the group is deleted again when its rules cannot be added."""
        ec2.create_security_group.return_value = {"GroupId": "sg-123"}
        ec2.authorize_security_group_ingress.side_effect = client_error("InvalidPermission.Malformed")

        with pytest.raises(ProviderError) as exc_info:
            client.create_network_rule("proj-dev-sg", "workspace", [])

        assert exc_info.value.operation == "authorize_ingress"
        ec2.delete_security_group.assert_called_once_with(GroupId="sg-123")

    def test_duplicate_group_is_conflict(self, client: ResourceClient, ec2: Mock) -> None:
        """Test an existing group name raises a conflict."""
        ec2.create_security_group.side_effect = client_error("InvalidGroup.Duplicate")

        with pytest.raises(ProviderError) as exc_info:
            client.create_network_rule("proj-dev-sg", "workspace", [])

        assert exc_info.value.category == ErrorCategory.CONFLICT
        assert exc_info.value.transient is False

    def test_delete_already_gone_group(self, client: ResourceClient, ec2: Mock) -> None:
        """Test deleting a missing group counts as success."""
        ec2.delete_security_group.side_effect = client_error("InvalidGroup.NotFound")

        client.delete_network_rule("sg-123")

    def test_delete_group_dependency_violation(self, client: ResourceClient, ec2: Mock) -> None:
        """Test a group still in use raises with its error code."""
        ec2.delete_security_group.side_effect = client_error("DependencyViolation")

        with pytest.raises(ProviderError) as exc_info:
            client.delete_network_rule("sg-123")

        assert exc_info.value.code == "DependencyViolation"

    def test_describe_missing_group(self, client: ResourceClient, ec2: Mock) -> None:
        """Test an empty describe response is reported as not found."""
        ec2.describe_security_groups.return_value = {"SecurityGroups": []}

        with pytest.raises(ProviderError) as exc_info:
            client.describe_network_rule("sg-123")

        assert exc_info.value.is_not_found


class TestKeyPairs:
    """Test suite for key pair operations."""

    def test_create_credential_returns_material(self, client: ResourceClient, ec2: Mock) -> None:
        """Test a new key pair returns its private key."""
        ec2.create_key_pair.return_value = {"KeyName": "k", "KeyPairId": "key-1", "KeyMaterial": "PEM"}

        handle = client.create_credential("proj-dev-key")

        assert handle.created is True
        assert handle.material == "PEM"
        assert handle.key_id == "key-1"
        ec2.create_key_pair.assert_called_once_with(KeyName="proj-dev-key", KeyType="rsa")

    def test_duplicate_key_pair_is_adopted(self, client: ResourceClient, ec2: Mock) -> None:
        """Test an existing key pair is returned without material."""
        ec2.create_key_pair.side_effect = client_error("InvalidKeyPair.Duplicate")
        ec2.describe_key_pairs.return_value = {"KeyPairs": [{"KeyName": "proj-dev-key", "KeyPairId": "key-9"}]}

        handle = client.create_credential("proj-dev-key")

        assert handle.created is False
        assert handle.material is None
        assert handle.key_id == "key-9"
        assert "PEM" not in repr(handle)

    def test_delete_already_gone_key_pair(self, client: ResourceClient, ec2: Mock) -> None:
        """Test deleting a missing key pair counts as success."""
        ec2.delete_key_pair.side_effect = client_error("InvalidKeyPair.NotFound")

        client.delete_credential("proj-dev-key")


class TestBuckets:
    """Test suite for bucket operations."""

    def test_create_bucket_outside_us_east_1(self, client: ResourceClient, s3: Mock) -> None:
        """Test a LocationConstraint is sent for regions other than us-east-1."""
        client.create_storage("my-bucket", "us-west-2")

        s3.create_bucket.assert_called_once_with(
            Bucket="my-bucket", CreateBucketConfiguration={"LocationConstraint": "us-west-2"}
        )

    def test_create_bucket_in_us_east_1(self, client: ResourceClient, s3: Mock) -> None:
        """Test no LocationConstraint is sent for us-east-1."""
        client.create_storage("my-bucket", "us-east-1")

        s3.create_bucket.assert_called_once_with(Bucket="my-bucket")

    def test_bucket_name_taken(self, client: ResourceClient, s3: Mock) -> None:
        """Test a globally taken bucket name is a conflict."""
        s3.create_bucket.side_effect = client_error("BucketAlreadyExists")

        with pytest.raises(ProviderError) as exc_info:
            client.create_storage("my-bucket", "us-west-2")

        assert exc_info.value.category == ErrorCategory.CONFLICT

    def test_best_effort_step_returns_false_on_error(self, client: ResourceClient, s3: Mock) -> None:
        """Test hardening failures are reported, not raised."""
        s3.put_bucket_versioning.side_effect = client_error("AccessDenied")

        assert client.enable_versioning("my-bucket") is False
        assert client.block_public_access("my-bucket") is True

    def test_folder_marker_key(self, client: ResourceClient, s3: Mock) -> None:
        """Test folder markers are empty objects ending in a slash."""
        client.create_folder_marker("my-bucket", "data")

        s3.put_object.assert_called_once_with(Bucket="my-bucket", Key="data/", Body=b"")

    def test_delete_empties_versions_and_markers(self, client: ResourceClient, s3: Mock) -> None:
        """Test every object version and delete marker is removed before the bucket."""
        paginator = Mock()
        paginator.paginate.return_value = [
            {
                "Versions": [{"Key": "data/a.csv", "VersionId": "v1"}, {"Key": "data/a.csv", "VersionId": "v2"}],
                "DeleteMarkers": [{"Key": "old.txt", "VersionId": "m1"}],
            }
        ]
        s3.get_paginator.return_value = paginator
        s3.delete_objects.return_value = {}

        client.delete_storage("my-bucket")

        s3.get_paginator.assert_called_once_with("list_object_versions")
        s3.delete_objects.assert_called_once_with(
            Bucket="my-bucket",
            Delete={
                "Objects": [
                    {"Key": "data/a.csv", "VersionId": "v1"},
                    {"Key": "data/a.csv", "VersionId": "v2"},
                    {"Key": "old.txt", "VersionId": "m1"},
                ],
                "Quiet": True,
            },
        )
        s3.delete_bucket.assert_called_once_with(Bucket="my-bucket")

    def test_delete_batches_large_pages(self, client: ResourceClient, s3: Mock) -> None:
        """Test deletes are sent in batches of at most 1000 keys."""
        paginator = Mock()
        paginator.paginate.return_value = [
            {"Versions": [{"Key": f"k{i}", "VersionId": "v"} for i in range(2500)]},
        ]
        s3.get_paginator.return_value = paginator
        s3.delete_objects.return_value = {}

        client.delete_storage("my-bucket")

        batch_sizes = [len(call.kwargs["Delete"]["Objects"]) for call in s3.delete_objects.call_args_list]
        assert batch_sizes == [1000, 1000, 500]

    def test_delete_reports_object_errors(self, client: ResourceClient, s3: Mock) -> None:
        """Test objects that could not be deleted fail the bucket delete."""
        paginator = Mock()
        paginator.paginate.return_value = [{"Versions": [{"Key": "locked", "VersionId": "v"}]}]
        s3.get_paginator.return_value = paginator
        s3.delete_objects.return_value = {"Errors": [{"Key": "locked", "Code": "AccessDenied"}]}

        with pytest.raises(ProviderError) as exc_info:
            client.delete_storage("my-bucket")

        assert exc_info.value.code == "AccessDenied"
        s3.delete_bucket.assert_not_called()

    def test_delete_already_gone_bucket(self, client: ResourceClient, s3: Mock) -> None:
        """Test deleting a missing bucket counts as success."""
        paginator = Mock()
        paginator.paginate.side_effect = client_error("NoSuchBucket", "ListObjectVersions")
        s3.get_paginator.return_value = paginator

        client.delete_storage("my-bucket")

        s3.delete_bucket.assert_not_called()

    def test_describe_storage_missing(self, client: ResourceClient, s3: Mock) -> None:
        """Test head_bucket 404 is reported as not found."""
        s3.head_bucket.side_effect = client_error("404", "HeadBucket")

        with pytest.raises(ProviderError) as exc_info:
            client.describe_storage("my-bucket")

        assert exc_info.value.is_not_found


class TestInstances:
    """Test suite for instance operations."""

    def test_create_compute(self, client: ResourceClient, ec2: Mock) -> None:
        """Test run_instances parameters, client token and tags."""
        ec2.run_instances.return_value = {"Instances": [{"InstanceId": "i-1"}]}

        instance_ids = client.create_compute(
            "ami-1",
            "t3.medium",
            1,
            "proj-dev-key",
            "sg-1",
            "#!/bin/bash",
            tags={"Name": "proj-dev-1"},
            client_token="t",
        )

        assert instance_ids == ["i-1"]
        params = ec2.run_instances.call_args.kwargs
        assert params["ImageId"] == "ami-1"
        assert params["MinCount"] == params["MaxCount"] == 1
        assert params["KeyName"] == "proj-dev-key"
        assert params["SecurityGroupIds"] == ["sg-1"]
        assert params["UserData"] == "#!/bin/bash"
        assert params["ClientToken"] == "t"
        assert [spec["ResourceType"] for spec in params["TagSpecifications"]] == ["instance", "volume"]

    def test_await_running(self, client: ResourceClient, ec2: Mock) -> None:
        """Test the waiter is bounded by the timeout and the state is re-read."""
        waiter = Mock()
        ec2.get_waiter.return_value = waiter
        ec2.describe_instances.return_value = {
            "Reservations": [{"Instances": [{"InstanceId": "i-1", "State": {"Name": "running"}}]}]
        }

        state = client.await_running("i-1", timeout=600)

        assert state == "running"
        ec2.get_waiter.assert_called_once_with("instance_running")
        waiter.wait.assert_called_once_with(InstanceIds=["i-1"], WaiterConfig={"Delay": 15, "MaxAttempts": 40})

    def test_await_running_timeout_is_not_transient(self, client: ResourceClient, ec2: Mock) -> None:
        """Test an expired wait raises a non-transient timeout."""
        waiter = Mock()
        waiter.wait.side_effect = WaiterError(name="InstanceRunning", reason="Max attempts exceeded", last_response={})
        ec2.get_waiter.return_value = waiter

        with pytest.raises(ProviderError) as exc_info:
            client.await_running("i-1", timeout=30)

        assert exc_info.value.category == ErrorCategory.TIMEOUT
        assert exc_info.value.transient is False

    def test_await_terminated_timeout_returns_false(self, client: ResourceClient, ec2: Mock) -> None:
        """Test an expired termination wait is reported, not raised."""
        waiter = Mock()
        waiter.wait.side_effect = WaiterError(
            name="InstanceTerminated", reason="Max attempts exceeded", last_response={}
        )
        ec2.get_waiter.return_value = waiter

        assert client.await_terminated(["i-1"], timeout=10) is False

    def test_await_terminated_nothing_to_wait_for(self, client: ResourceClient, ec2: Mock) -> None:
        """Test an empty instance list returns immediately."""
        assert client.await_terminated([], timeout=10) is True
        ec2.get_waiter.assert_not_called()

    def test_describe_compute(self, client: ResourceClient, ec2: Mock) -> None:
        """Test instance state and addresses are parsed."""
        ec2.describe_instances.return_value = {
            "Reservations": [
                {
                    "Instances": [
                        {
                            "InstanceId": "i-1",
                            "State": {"Name": "running"},
                            "PublicIpAddress": "198.51.100.1",
                            "PrivateIpAddress": "10.0.0.1",
                        }
                    ]
                }
            ]
        }

        state = client.describe_compute("i-1")

        assert state.is_running
        assert state.public_address == "198.51.100.1"
        assert state.private_address == "10.0.0.1"

    def test_terminate_already_gone_instance(self, client: ResourceClient, ec2: Mock) -> None:
        """Test terminating a missing instance counts as success."""
        ec2.terminate_instances.side_effect = client_error("InvalidInstanceID.NotFound")

        client.terminate_compute("i-1")

    def test_terminate_access_denied(self, client: ResourceClient, ec2: Mock) -> None:
        """Test authorization failures propagate."""
        ec2.terminate_instances.side_effect = client_error("UnauthorizedOperation")

        with pytest.raises(ProviderError) as exc_info:
            client.terminate_compute("i-1")

        assert exc_info.value.category == ErrorCategory.AUTH

    def test_find_latest_image(self, client: ResourceClient, ec2: Mock) -> None:
        """Test the newest image by creation date is chosen."""
        ec2.describe_images.return_value = {
            "Images": [
                {"ImageId": "ami-old", "CreationDate": "2024-01-01T00:00:00.000Z"},
                {"ImageId": "ami-new", "CreationDate": "2025-06-01T00:00:00.000Z"},
            ]
        }

        assert client.find_latest_image("099720109477", "ubuntu/*") == "ami-new"

    def test_find_latest_image_none(self, client: ResourceClient, ec2: Mock) -> None:
        """Test no matching image is reported as not found."""
        ec2.describe_images.return_value = {"Images": []}

        with pytest.raises(ProviderError) as exc_info:
            client.find_latest_image("099720109477", "ubuntu/*")

        assert exc_info.value.is_not_found


class TestDiscovery:
    """Test suite for tag-based discovery."""

    def test_find_tagged_instances_excludes_terminated(self, client: ResourceClient, ec2: Mock) -> None:
        """Test instance discovery filters by tag and live state."""
        paginator = Mock()
        paginator.paginate.return_value = [
            {"Reservations": [{"Instances": [{"InstanceId": "i-1"}, {"InstanceId": "i-2"}]}]},
        ]
        ec2.get_paginator.return_value = paginator

        instance_ids = client.find_tagged_instances({"Project": "proj"})

        assert instance_ids == ["i-1", "i-2"]
        filters = paginator.paginate.call_args.kwargs["Filters"]
        assert {"Name": "tag:Project", "Values": ["proj"]} in filters
        state_filter = next(f for f in filters if f["Name"] == "instance-state-name")
        assert "terminated" not in state_filter["Values"]

    def test_find_tagged_buckets(self, client: ResourceClient, s3: Mock) -> None:
        """Test buckets match on every tag and untagged buckets are skipped."""
        s3.list_buckets.return_value = {"Buckets": [{"Name": "ours"}, {"Name": "other"}, {"Name": "untagged"}]}

        def get_bucket_tagging(Bucket):
            if Bucket == "untagged":
                raise client_error("NoSuchTagSet", "GetBucketTagging")
            project = "proj" if Bucket == "ours" else "someone-else"
            return {"TagSet": [{"Key": "Project", "Value": project}, {"Key": "Environment", "Value": "dev"}]}

        s3.get_bucket_tagging.side_effect = get_bucket_tagging

        assert client.find_tagged_buckets({"Project": "proj", "Environment": "dev"}) == ["ours"]

    def test_find_tagged_network_rules_and_credentials(self, client: ResourceClient, ec2: Mock) -> None:
        """Test group and key pair discovery use tag filters."""
        ec2.describe_security_groups.return_value = {"SecurityGroups": [{"GroupId": "sg-1"}]}
        ec2.describe_key_pairs.return_value = {"KeyPairs": [{"KeyName": "proj-dev-key"}]}

        assert client.find_tagged_network_rules({"Project": "proj"}) == ["sg-1"]
        assert client.find_tagged_credentials({"Project": "proj"}) == ["proj-dev-key"]
        ec2.describe_key_pairs.assert_called_once_with(Filters=[{"Name": "tag:Project", "Values": ["proj"]}])

    def test_discovery_error_translated(self, client: ResourceClient, ec2: Mock) -> None:
        """Test discovery failures surface as ProviderError."""
        paginator = Mock()
        paginator.paginate.side_effect = client_error("AuthFailure", "DescribeInstances")
        ec2.get_paginator.return_value = paginator

        with pytest.raises(ProviderError) as exc_info:
            client.find_tagged_instances({"Project": "proj"})

        assert exc_info.value.category == ErrorCategory.AUTH
