"""Configuration for the aws-sigv4 load-testing plugin.

Two sources feed the plugin:

- the test script's ``config`` section, validated once at startup by
  :func:`validate_script_config` and turned into a read-only
  :class:`SigningConfig`;
- the process environment (optionally a ``.env`` file), read by
  :meth:`PluginSettings.from_env`.
"""

import logging
import os
from dataclasses import dataclass
from importlib.metadata import PackageNotFoundError, version
from typing import Any, Mapping, Optional

from dotenv import load_dotenv

load_dotenv()

DISTRIBUTION_NAME = "loadtest-aws-sigv4"
PLUGIN_NAME = "aws-sigv4"
PARAM_SERVICE_NAME = "serviceName"
PARAM_TARGET = "target"

MSG_PLUGIN_CONFIG_REQUIRED = (
    f'The "{PLUGIN_NAME}" plugin requires configuration under '
    f"[script].config.plugins.{PLUGIN_NAME}"
)
MSG_SERVICE_NAME_REQUIRED = f'The "{PARAM_SERVICE_NAME}" parameter is required'
MSG_SERVICE_NAME_MUST_BE_STRING = (
    f'The "{PARAM_SERVICE_NAME}" param must have a string value'
)
MSG_SERVICE_NAME_EMPTY = f'The "{PARAM_SERVICE_NAME}" param must not be empty'


def plugin_version() -> str:
    """Installed version of the plugin distribution, or "unknown" outside an install."""
    try:
        return version(DISTRIBUTION_NAME)
    except PackageNotFoundError:
        return "unknown"


class ConfigError(ValueError):
    """Raised at startup when the plugin configuration is missing or invalid."""


@dataclass(frozen=True)
class SigningConfig:
    """Validated signing configuration, read-only after startup."""

    service_name: str
    target: Optional[str] = None


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class PluginSettings:
    """Environment driven settings for the plugin."""

    # Credential chain
    aws_profile: Optional[str] = None
    aws_region: Optional[str] = None
    role_arn: Optional[str] = None

    # Set by the host engine inside worker processes
    worker_id: Optional[str] = None
    require_worker: bool = False

    log_level: str = "INFO"
    metrics_enabled: bool = True

    # OpenTelemetry configuration
    otel_endpoint: str = ""
    otel_console_export: bool = False

    @classmethod
    def from_env(cls) -> "PluginSettings":
        """Load settings from environment variables."""
        return cls(
            aws_profile=os.getenv("AWS_PROFILE") or None,
            aws_region=os.getenv("SIGV4_REGION") or None,
            role_arn=os.getenv("SIGV4_ROLE_ARN") or None,
            worker_id=os.getenv("LOCAL_WORKER_ID"),
            require_worker=_env_flag("SIGV4_REQUIRE_WORKER"),
            log_level=os.getenv("SIGV4_LOG_LEVEL", cls.log_level).upper(),
            metrics_enabled=_env_flag("SIGV4_METRICS", default=True),
            otel_endpoint=os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", ""),
            otel_console_export=_env_flag("OTEL_CONSOLE_EXPORT"),
        )

    @property
    def in_worker(self) -> bool:
        return self.worker_id is not None

    def apply_log_level(self) -> None:
        """Set the level of the package logger."""
        level = logging.getLevelName(self.log_level)
        if not isinstance(level, int):
            level = logging.INFO
        logging.getLogger("sigv4_plugin").setLevel(level)


def validate_script_config(script_config: Optional[Mapping[str, Any]]) -> SigningConfig:
    """
    Validate the plugin section of a script's configuration.

    Args:
        script_config: The ``config`` section of the test script

    Returns:
        SigningConfig built from the validated section

    Raises:
        ConfigError: If the plugin section or the service name is missing,
            or the service name is not a non-empty string
    """
    plugins = script_config.get("plugins") if script_config else None
    if not plugins or PLUGIN_NAME not in plugins:
        raise ConfigError(MSG_PLUGIN_CONFIG_REQUIRED)

    plugin_config = plugins[PLUGIN_NAME] or {}
    if PARAM_SERVICE_NAME not in plugin_config:
        raise ConfigError(MSG_SERVICE_NAME_REQUIRED)

    service_name = plugin_config[PARAM_SERVICE_NAME]
    if not isinstance(service_name, str):
        raise ConfigError(MSG_SERVICE_NAME_MUST_BE_STRING)
    if not service_name:
        raise ConfigError(MSG_SERVICE_NAME_EMPTY)

    return SigningConfig(
        service_name=service_name,
        target=script_config.get(PARAM_TARGET),
    )
