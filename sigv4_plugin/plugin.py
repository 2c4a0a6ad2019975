"""
Load-testing engine plugin that signs virtual-user requests with AWS SigV4.

The host constructs the plugin with the parsed test script and its event
emitter, then calls the installed processor hook before each request:

    config:
      target: "https://abc123.execute-api.us-west-2.amazonaws.com"
      plugins:
        aws-sigv4:
          serviceName: "execute-api"
    scenarios:
      - flow:
          - get:
              url: "/prod/items"
              beforeRequest: "addSignature"
"""

import asyncio
import logging
from typing import Any, Callable, Mapping, MutableMapping, Optional

from .auth import BotoCredentialResolver, CredentialResolver, ResolvedCredentials, SignatureAttacher, Signer
from .auth.sigv4 import Clock
from .canonical import canonicalize
from .config import PluginSettings, validate_script_config
from .gate import CredentialGate
from .metrics import init_metrics
from .templating import TemplateRenderer, render
from .tracing import init_tracing

logger = logging.getLogger(__name__)

HOOK_NAME = "addSignature"
LEGACY_HOOK_NAME = "addAmazonSignatureV4"


class SigV4Plugin:
    """
    Wires configuration, credential gate and signing into the host's processor hook.

    Attributes:
        signing_config: Validated signing configuration
        gate: Credential gate, None while the plugin is dormant
    """

    def __init__(
        self,
        script: MutableMapping[str, Any],
        events: Any = None,
        *,
        settings: Optional[PluginSettings] = None,
        resolver: Optional[CredentialResolver] = None,
        signer: Optional[Signer] = None,
        renderer: Optional[TemplateRenderer] = None,
        clock: Optional[Clock] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        """
        Initialize the plugin.

        Args:
            script: Parsed test script; its ``config`` section gets the hook
            events: Host event emitter handle
            settings: Environment settings (read from the environment if omitted)
            resolver: Credential resolver (boto3 credential chain if omitted)
            signer: Signature primitive (botocore SigV4 if omitted)
            renderer: Template renderer for request fields
            clock: Source of signing timestamps
            loop: Event loop running credential resolution. Defaults to the running
                loop; without one, resolution runs on a background thread and
                replayed requests are continued from that thread.

        Raises:
            ConfigError: If the plugin configuration is missing or invalid
        """
        self.settings = settings or PluginSettings.from_env()
        self.settings.apply_log_level()

        script_config = script.get("config") if script else None
        self.signing_config = validate_script_config(script_config)
        self.events = events
        self.gate: Optional[CredentialGate] = None

        if self.settings.require_worker and not self.settings.in_worker:
            logger.debug("Not running in a worker, plugin stays inactive")
            return

        init_metrics(enabled=self.settings.metrics_enabled)
        init_tracing(
            otlp_endpoint=self.settings.otel_endpoint or None,
            enable_console_export=self.settings.otel_console_export,
        )

        self.render = renderer or render
        self.attacher = SignatureAttacher(signer=signer, clock=clock)
        self.gate = CredentialGate(
            resolver or BotoCredentialResolver(
                profile_name=self.settings.aws_profile,
                region=self.settings.aws_region,
                role_arn=self.settings.role_arn,
            ),
            self.sign,
        )
        self.gate.start(loop)

        if not script_config.get("processor"):
            script_config["processor"] = {}
        script_config["processor"][HOOK_NAME] = self.add_signature
        script_config["processor"][LEGACY_HOOK_NAME] = self.add_signature
        logger.info("aws-sigv4 plugin ready for service %s", self.signing_config.service_name)

    def sign(
        self,
        request_params: MutableMapping[str, Any],
        context: Mapping[str, Any],
        resolved: ResolvedCredentials,
    ) -> Optional[dict[str, str]]:
        """Canonicalize one request and attach its signature."""
        canonical = canonicalize(request_params, context, self.signing_config, self.render)
        return self.attacher.attach(
            request_params,
            canonical,
            credentials=resolved.credentials,
            region=resolved.region,
            service_name=self.signing_config.service_name,
        )

    def add_signature(
        self,
        request_params: MutableMapping[str, Any],
        context: Mapping[str, Any],
        events: Any,
        callback: Callable[..., Any],
    ) -> None:
        """Processor hook called by the host before each request."""
        self.gate.on_request(request_params, context, events, callback)


Plugin = SigV4Plugin
