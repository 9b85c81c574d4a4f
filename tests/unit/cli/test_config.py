"""Tests for CLI configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from dsworkspace.cli.config import Config, ConfigError

ENV_VARS = [
    "AWS_PROFILE",
    "DSWORKSPACE_CONFIG",
    "DSWORKSPACE_REGION",
    "DSWORKSPACE_PROJECT",
    "DSWORKSPACE_ENVIRONMENT",
    "DSWORKSPACE_INSTANCE_TYPE",
    "DSWORKSPACE_LOG_LEVEL",
    "DSWORKSPACE_KEY_DIR",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove config environment variables."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestConfig:
    """Test suite for Config loading."""

    def test_defaults_without_file(self, tmp_path: Path) -> None:
        """Test built-in defaults when the config file does not exist."""
        config = Config.load(str(tmp_path / "missing.yaml"))

        assert config.aws_profile is None
        assert config.region == "us-east-1"
        assert config.instance_type == "t3.medium"
        assert config.instance_count == 1
        assert config.wait_timeout == 600
        assert config.termination_timeout == 300

    def test_file_values(self, tmp_path: Path) -> None:
        """Test YAML values override defaults, with integer coercion."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("region: eu-central-1\ninstance_count: '3'\nproject_name: vision\n")

        config = Config.load(str(config_file))

        assert config.region == "eu-central-1"
        assert config.instance_count == 3
        assert config.project_name == "vision"

    def test_environment_overrides_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test environment variables win over the config file."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("region: eu-central-1\n")
        monkeypatch.setenv("DSWORKSPACE_REGION", "ap-southeast-2")
        monkeypatch.setenv("AWS_PROFILE", "research")

        config = Config.load(str(config_file))

        assert config.region == "ap-southeast-2"
        assert config.aws_profile == "research"

    def test_config_path_from_environment(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test DSWORKSPACE_CONFIG selects the file."""
        config_file = tmp_path / "custom.yaml"
        config_file.write_text("environment: staging\n")
        monkeypatch.setenv("DSWORKSPACE_CONFIG", str(config_file))

        config = Config.load()

        assert config.environment == "staging"

    def test_unknown_key_rejected(self, tmp_path: Path) -> None:
        """Test typos in the config file are reported."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("regoin: us-west-2\n")

        with pytest.raises(ConfigError, match="Unknown config key: regoin"):
            Config.load(str(config_file))

    def test_bad_integer_rejected(self, tmp_path: Path) -> None:
        """Test non-integer values for integer settings are reported."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("wait_timeout: soon\n")

        with pytest.raises(ConfigError, match="must be an integer"):
            Config.load(str(config_file))

    def test_non_mapping_rejected(self, tmp_path: Path) -> None:
        """Test a YAML list is not accepted as config."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("- region\n- us-west-2\n")

        with pytest.raises(ConfigError, match="must contain a mapping"):
            Config.load(str(config_file))

    def test_invalid_yaml_rejected(self, tmp_path: Path) -> None:
        """Test unparsable YAML is reported."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("region: [unclosed\n")

        with pytest.raises(ConfigError, match="Could not read config file"):
            Config.load(str(config_file))

    def test_empty_file_uses_defaults(self, tmp_path: Path) -> None:
        """Test an empty config file is treated as no settings."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("")

        config = Config.load(str(config_file))

        assert config.region == "us-east-1"
