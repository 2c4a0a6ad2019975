"""aws-sigv4 plugin - signs load-test requests with AWS Signature Version 4."""

from .auth import (
    AWSCredentials,
    BotoCredentialResolver,
    BotocoreSigner,
    CredentialResolutionError,
    ResolvedCredentials,
    SignatureAttacher,
    SigningPreconditionError,
)
from .canonical import CanonicalRequest, canonicalize, maybe_prepend_base
from .config import ConfigError, PluginSettings, SigningConfig, validate_script_config
from .gate import CredentialGate, GateState, PendingRequest
from .metrics import MetricsEmitter, SigningMetricName, get_metrics_emitter, init_metrics
from .plugin import HOOK_NAME, Plugin, SigV4Plugin
from .templating import render

__all__ = [
    # Plugin entry point
    "Plugin",
    "SigV4Plugin",
    "HOOK_NAME",
    # Configuration
    "ConfigError",
    "PluginSettings",
    "SigningConfig",
    "validate_script_config",
    # Credentials and signing
    "AWSCredentials",
    "BotoCredentialResolver",
    "BotocoreSigner",
    "CredentialResolutionError",
    "ResolvedCredentials",
    "SignatureAttacher",
    "SigningPreconditionError",
    # Credential gate
    "CredentialGate",
    "GateState",
    "PendingRequest",
    # Request canonicalization
    "CanonicalRequest",
    "canonicalize",
    "maybe_prepend_base",
    "render",
    # Metrics
    "MetricsEmitter",
    "SigningMetricName",
    "get_metrics_emitter",
    "init_metrics",
]
