"""Security group provisioner."""

from __future__ import annotations

import logging

from ..aws.resource_client import IngressRule
from ..models.deployment_spec import DEFAULT_INGRESS_CIDR, DeploymentSpec
from ..models.resource_record import ResourceKind
from .base import BaseProvisioner

logger = logging.getLogger(__name__)

# port -> description; the notebook port is configurable
FIXED_INGRESS_PORTS = {
    22: "SSH",
    80: "HTTP",
    443: "HTTPS",
}


def build_ingress_rules(spec: DeploymentSpec) -> list[IngressRule]:
    """Build the four workspace ingress rules (SSH, HTTP, HTTPS, notebook)."""
    rules = [
        IngressRule(protocol="tcp", port=port, cidr=spec.ingress_cidr, description=description)
        for port, description in FIXED_INGRESS_PORTS.items()
    ]
    rules.append(IngressRule(protocol="tcp", port=spec.notebook_port, cidr=spec.ingress_cidr, description="Notebook"))
    return rules


class NetworkProvisioner(BaseProvisioner):
    """Creates the workspace security group.

    Exactly one group per run, named <project>-<environment>-sg.
    """

    @property
    def kind(self) -> ResourceKind:
        return ResourceKind.SECURITY_GROUP

    def ensure(self, spec: DeploymentSpec) -> str:
        rules = build_ingress_rules(spec)
        if spec.ingress_cidr == DEFAULT_INGRESS_CIDR:
            logger.warning(
                f"Security group {spec.security_group_name} opens ports "
                f"{', '.join(str(rule.port) for rule in rules)} to 0.0.0.0/0. "
                "Restrict it with --ingress-cidr for anything beyond a throwaway workspace."
            )

        group_id = self._call(
            self.client.create_network_rule,
            spec.security_group_name,
            f"Data science workspace {spec.project_name}/{spec.environment}",
            rules,
            tags={**spec.tags, "Name": spec.security_group_name},
        )
        self.tracker.register(self.kind, group_id)
        logger.info(f"Created security group {spec.security_group_name}: {group_id}")
        return group_id
