"""Tests for the plugin configuration module."""

import logging
import os
from unittest.mock import patch

import pytest

from sigv4_plugin.config import (
    ConfigError,
    PluginSettings,
    SigningConfig,
    validate_script_config,
)


class TestValidateScriptConfig:
    """Tests for validate_script_config."""

    def test_valid_config(self):
        """Test that a valid section yields a SigningConfig."""
        config = validate_script_config({
            "target": "https://api.example.com",
            "plugins": {"aws-sigv4": {"serviceName": "execute-api"}},
        })

        assert config == SigningConfig(service_name="execute-api", target="https://api.example.com")

    def test_target_is_optional(self):
        """Test that absolute-URL scripts need no target."""
        config = validate_script_config({"plugins": {"aws-sigv4": {"serviceName": "es"}}})

        assert config.target is None

    @pytest.mark.parametrize("script_config", [
        None,
        {},
        {"plugins": {}},
        {"plugins": {"other-plugin": {"serviceName": "es"}}},
    ])
    def test_missing_plugin_section(self, script_config):
        """Test that a missing plugin section is fatal."""
        with pytest.raises(ConfigError, match="requires configuration under"):
            validate_script_config(script_config)

    def test_missing_service_name(self):
        """Test that a missing serviceName is fatal."""
        with pytest.raises(ConfigError, match='"serviceName" parameter is required'):
            validate_script_config({"plugins": {"aws-sigv4": {"region": "us-west-2"}}})

    def test_null_plugin_section_reports_missing_service_name(self):
        """Test that an empty plugin entry reports the missing service name."""
        with pytest.raises(ConfigError, match="parameter is required"):
            validate_script_config({"plugins": {"aws-sigv4": None}})

    @pytest.mark.parametrize("service_name", [42, None, ["execute-api"], {"name": "es"}, True])
    def test_service_name_must_be_string(self, service_name):
        """Test that non-string service names are fatal."""
        with pytest.raises(ConfigError, match="must have a string value"):
            validate_script_config({"plugins": {"aws-sigv4": {"serviceName": service_name}}})

    def test_empty_service_name(self):
        """Test that an empty service name is fatal."""
        with pytest.raises(ConfigError, match="must not be empty"):
            validate_script_config({"plugins": {"aws-sigv4": {"serviceName": ""}}})

    def test_config_error_is_value_error(self):
        """Test that ConfigError can be caught as ValueError."""
        assert issubclass(ConfigError, ValueError)


class TestPluginSettings:
    """Tests for PluginSettings."""

    def test_default_values(self):
        """Test that default values are set correctly."""
        settings = PluginSettings()

        assert settings.aws_profile is None
        assert settings.aws_region is None
        assert settings.require_worker is False
        assert settings.log_level == "INFO"
        assert settings.metrics_enabled is True

    def test_from_env_with_defaults(self):
        """Test from_env uses defaults when env vars not set."""
        with patch.dict(os.environ, {}, clear=True):
            settings = PluginSettings.from_env()

            assert settings.worker_id is None
            assert settings.in_worker is False
            assert settings.role_arn is None
            assert settings.otel_endpoint == ""

    def test_from_env_with_custom_values(self):
        """Test from_env reads environment variables correctly."""
        env_vars = {
            "AWS_PROFILE": "loadtest",
            "SIGV4_REGION": "eu-west-1",
            "SIGV4_ROLE_ARN": "arn:aws:iam::123456789012:role/loadtest",
            "LOCAL_WORKER_ID": "3",
            "SIGV4_REQUIRE_WORKER": "true",
            "SIGV4_LOG_LEVEL": "debug",
            "SIGV4_METRICS": "false",
            "OTEL_CONSOLE_EXPORT": "TRUE",
        }

        with patch.dict(os.environ, env_vars, clear=True):
            settings = PluginSettings.from_env()

            assert settings.aws_profile == "loadtest"
            assert settings.aws_region == "eu-west-1"
            assert settings.role_arn == "arn:aws:iam::123456789012:role/loadtest"
            assert settings.in_worker is True
            assert settings.require_worker is True
            assert settings.log_level == "DEBUG"
            assert settings.metrics_enabled is False
            assert settings.otel_console_export is True

    def test_apply_log_level(self):
        """Test that the package logger level follows the settings."""
        PluginSettings(log_level="WARNING").apply_log_level()
        assert logging.getLogger("sigv4_plugin").level == logging.WARNING

        PluginSettings(log_level="nonsense").apply_log_level()
        assert logging.getLogger("sigv4_plugin").level == logging.INFO
