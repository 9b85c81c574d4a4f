"""CLI configuration.

Settings are resolved in this order, later sources winning:
    1. Built-in defaults
    2. YAML config file (~/.dsworkspace/config.yaml or $DSWORKSPACE_CONFIG)
    3. Environment variables
    4. Command-line options (applied by the commands)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Optional

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "DSWORKSPACE_CONFIG"
DEFAULT_CONFIG_PATH = Path.home() / ".dsworkspace" / "config.yaml"

# environment variable -> config field
ENV_OVERRIDES = {
    "AWS_PROFILE": "aws_profile",
    "DSWORKSPACE_REGION": "region",
    "DSWORKSPACE_PROJECT": "project_name",
    "DSWORKSPACE_ENVIRONMENT": "environment",
    "DSWORKSPACE_INSTANCE_TYPE": "instance_type",
    "DSWORKSPACE_LOG_LEVEL": "log_level",
    "DSWORKSPACE_KEY_DIR": "key_dir",
}


class ConfigError(Exception):
    """Config file could not be read or has invalid values."""


@dataclass
class Config:
    """Resolved CLI configuration.

    Attributes:
        aws_profile: AWS profile name (optional)
        region: Default AWS region
        project_name: Default project name
        environment: Default environment name
        instance_type: Default EC2 instance type
        instance_count: Default number of instances
        log_level: Log level when neither --verbose nor --quiet is given
        key_dir: Directory for saved private keys
        wait_timeout: Seconds to wait for each instance to run
        termination_timeout: Seconds to wait for instances to terminate during cleanup
        max_retries: Attempts per provider call for transient failures
    """

    aws_profile: Optional[str] = None
    region: str = "us-east-1"
    project_name: str = "datascience"
    environment: str = "dev"
    instance_type: str = "t3.medium"
    instance_count: int = 1
    log_level: str = "INFO"
    key_dir: str = str(Path.home() / ".ssh")
    wait_timeout: int = 600
    termination_timeout: int = 300
    max_retries: int = 3

    @classmethod
    def load(cls, path: Optional[str] = None) -> Config:
        """Load configuration from file and environment.

        Args:
            path: Config file path (default: $DSWORKSPACE_CONFIG or ~/.dsworkspace/config.yaml)

        Returns:
            Config instance

        Raises:
            ConfigError: If the file exists but is not a valid mapping
        """
        config = cls()

        config_path = Path(path or os.environ.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH).expanduser()
        if config_path.exists():
            config.update(cls._read_file(config_path))
            logger.debug(f"Loaded config from {config_path}")

        config.update(
            {
                field_name: os.environ[env_var]
                for env_var, field_name in ENV_OVERRIDES.items()
                if os.environ.get(env_var)
            }
        )
        return config

    @staticmethod
    def _read_file(config_path: Path) -> dict[str, Any]:
        try:
            with open(config_path, "r") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Could not read config file {config_path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"Config file {config_path} must contain a mapping")
        return data

    def update(self, values: dict[str, Any]) -> None:
        """Apply values, coercing them to each field's type.

        Raises:
            ConfigError: If a key is unknown or a value has the wrong type
        """
        known = {f.name for f in fields(self)}
        for key, value in values.items():
            if key not in known:
                raise ConfigError(f"Unknown config key: {key}")
            if value is None:
                setattr(self, key, None)
                continue
            current = getattr(type(self), key, None)
            if isinstance(current, int) and not isinstance(current, bool):
                try:
                    value = int(value)
                except (TypeError, ValueError) as e:
                    raise ConfigError(f"Config key {key} must be an integer, got {value!r}") from e
            else:
                value = str(value)
            setattr(self, key, value)
