"""Dry-run deployment plan."""

from __future__ import annotations

from dataclasses import dataclass

from ..models.deployment_spec import DeploymentSpec
from ..models.resource_record import ResourceKind
from .compute import image_architecture
from .network import build_ingress_rules
from .storage import WORKSPACE_FOLDERS


@dataclass(frozen=True)
class PlannedResource:
    """A resource the deployment would create."""

    kind: ResourceKind
    name: str
    details: str


def build_plan(spec: DeploymentSpec) -> list[PlannedResource]:
    """List every resource a deployment would create, in creation order.

    Makes no provider calls.

    Args:
        spec: Validated deployment spec

    Returns:
        Planned resources
    """
    ports = ", ".join(f"{rule.port}/{rule.protocol}" for rule in build_ingress_rules(spec))
    image = spec.image_id or f"latest Ubuntu 22.04 {image_architecture(spec.instance_type)} (resolved at deploy time)"

    plan = [
        PlannedResource(
            ResourceKind.SECURITY_GROUP, spec.security_group_name, f"ingress {ports} from {spec.ingress_cidr}"
        ),
        PlannedResource(ResourceKind.KEY_PAIR, spec.key_name, "RSA, reused if it already exists"),
        PlannedResource(
            ResourceKind.BUCKET,
            spec.bucket_name,
            f"{spec.region}, versioned, public access blocked, folders {' '.join(WORKSPACE_FOLDERS)}",
        ),
    ]
    for index in range(1, spec.instance_count + 1):
        plan.append(
            PlannedResource(
                ResourceKind.INSTANCE,
                spec.instance_name(index),
                f"{spec.instance_type}, {image}, notebook on port {spec.notebook_port}",
            )
        )
    return plan
