"""OpenTelemetry tracing for the aws-sigv4 plugin.

The plugin records two kinds of span:

- ``sigv4.resolve_credentials`` around the one-off credential lookup
  (:func:`traced` on the resolver);
- ``sigv4.attach`` around each signature (:func:`signing_span`), tagged with
  the signing service and target host.

Trace ids use the AWS X-Ray format so load-test spans can be lined up with the
X-Ray traces of the backend that receives the signed requests.
"""

import os
from contextlib import contextmanager
from functools import wraps
from typing import Awaitable, Callable, Iterator, Optional, ParamSpec, TypeVar

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.propagate import set_global_textmap
from opentelemetry.propagators.aws import AwsXRayPropagator
from opentelemetry.sdk.extension.aws.trace import AwsXRayIdGenerator
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.trace import Status, StatusCode

from .config import PLUGIN_NAME, plugin_version

P = ParamSpec("P")
T = TypeVar("T")

TRACER_NAME = "sigv4_plugin"
RESOLVE_SPAN = "sigv4.resolve_credentials"
ATTACH_SPAN = "sigv4.attach"

_tracer: Optional[trace.Tracer] = None


def init_tracing(
    otlp_endpoint: Optional[str] = None,
    enable_console_export: bool = False,
) -> trace.Tracer:
    """
    Install the X-Ray flavoured tracer provider once and return the plugin tracer.

    Args:
        otlp_endpoint: OTLP gRPC collector, OTEL_EXPORTER_OTLP_ENDPOINT if omitted
        enable_console_export: Also print finished spans to the console
    """
    global _tracer
    if _tracer is not None:
        return _tracer

    release = plugin_version()
    provider = TracerProvider(
        resource=Resource.create({
            SERVICE_NAME: f"{PLUGIN_NAME}-plugin",
            SERVICE_VERSION: release,
            "deployment.environment": os.getenv("ENVIRONMENT", "development"),
        }),
        id_generator=AwsXRayIdGenerator(),
    )
    set_global_textmap(AwsXRayPropagator())

    endpoint = otlp_endpoint or os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    if endpoint:
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint, insecure=True)))
    if enable_console_export:
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
    trace.set_tracer_provider(provider)

    _tracer = trace.get_tracer(TRACER_NAME, release)
    return _tracer


def get_tracer() -> trace.Tracer:
    return _tracer or init_tracing()


@contextmanager
def signing_span(service_name: str, host: str) -> Iterator[trace.Span]:
    """Span around one signature, tagged with the service and host being signed for."""
    with get_tracer().start_as_current_span(ATTACH_SPAN) as span:
        span.set_attribute("sigv4.service", service_name)
        span.set_attribute("sigv4.host", host)
        yield span


def traced(name: str) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Run a coroutine function inside a span named ``name``, recording failures on it."""
    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            with get_tracer().start_as_current_span(
                name, record_exception=False, set_status_on_exception=False
            ) as span:
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    span.set_status(Status(StatusCode.ERROR, str(e)))
                    span.record_exception(e)
                    raise
                span.set_status(Status(StatusCode.OK))
                return result

        return wrapper

    return decorator
