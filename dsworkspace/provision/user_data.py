"""Boot-time script delivered to workspace instances.

The orchestrator treats the rendered script as an opaque blob and passes it to
the compute provisioner unchanged.
"""

from __future__ import annotations

from string import Template

from ..models.deployment_spec import DeploymentSpec

NOTEBOOK_PACKAGES = [
    "jupyterlab",
    "numpy",
    "pandas",
    "scikit-learn",
    "matplotlib",
    "seaborn",
    "boto3",
]

INIT_SCRIPT_TEMPLATE = Template(
    """#!/bin/bash
set -euxo pipefail
exec > >(tee /var/log/dsworkspace-init.log) 2>&1

export DEBIAN_FRONTEND=noninteractive
apt-get update -y
apt-get install -y python3-pip python3-venv git

python3 -m venv /opt/dsworkspace
/opt/dsworkspace/bin/pip install --upgrade pip
/opt/dsworkspace/bin/pip install $packages

mkdir -p /home/ubuntu/notebooks
chown -R ubuntu:ubuntu /home/ubuntu/notebooks

cat > /etc/systemd/system/jupyter.service <<'UNIT'
[Unit]
Description=Jupyter Lab ($project/$environment)
After=network-online.target

[Service]
Type=simple
User=ubuntu
WorkingDirectory=/home/ubuntu/notebooks
Environment=WORKSPACE_BUCKET=$bucket
ExecStart=/opt/dsworkspace/bin/jupyter lab --ip=0.0.0.0 --port=$port --no-browser --ServerApp.token=$token
Restart=always

[Install]
WantedBy=multi-user.target
UNIT

systemctl daemon-reload
systemctl enable --now jupyter.service
"""
)


def render_init_script(spec: DeploymentSpec) -> str:
    """Render the instance user-data script for a deployment.

    Args:
        spec: Deployment spec (bucket, notebook port and token are used)

    Returns:
        Bash script text
    """
    return INIT_SCRIPT_TEMPLATE.substitute(
        packages=" ".join(NOTEBOOK_PACKAGES),
        project=spec.project_name,
        environment=spec.environment,
        bucket=spec.bucket_name,
        port=spec.notebook_port,
        token=spec.notebook_token,
    )
