"""
Signing metrics for the aws-sigv4 plugin.

Metrics are written to stdout in CloudWatch Embedded Metric Format (EMF), so
they can be picked up from the load generator's logs without calling
PutMetricData.
"""

import json
import logging
import os
import sys
import time
from enum import Enum
from typing import Any, Optional

logger = logging.getLogger(__name__)


class MetricUnit(str, Enum):
    """CloudWatch metric units."""
    COUNT = "Count"
    MILLISECONDS = "Milliseconds"


class SigningMetricName(str, Enum):
    """Metric names for request signing."""
    REQUEST_SIGNED = "RequestSigned"
    REQUEST_UNSIGNED = "RequestUnsigned"
    REQUEST_BUFFERED = "RequestBuffered"
    PENDING_REQUEST_DROPPED = "PendingRequestDropped"
    CREDENTIAL_RESOLUTION_FAILURE = "CredentialResolutionFailure"
    CREDENTIAL_RESOLUTION_LATENCY = "CredentialResolutionLatency"


class MetricsEmitter:
    """
    CloudWatch metrics emitter using Embedded Metric Format (EMF).

    EMF allows publishing metrics by simply logging JSON in a specific format.
    CloudWatch automatically extracts metrics from these logs.
    """

    NAMESPACE = "LoadTestSigV4"

    def __init__(self, service_name: str = "aws-sigv4-plugin", enabled: bool = True):
        """
        Initialize the metrics emitter.

        Args:
            service_name: Service name for metric attribution
            enabled: When False, emit() is a no-op
        """
        self.service_name = service_name
        self.enabled = enabled
        self.environment = os.getenv("ENVIRONMENT", "development")

    def _create_emf_log(
        self,
        metric_name: SigningMetricName,
        value: float,
        unit: MetricUnit,
        dimensions: Optional[dict[str, str]] = None,
    ) -> dict[str, Any]:
        dim_dict = {"Environment": self.environment, **(dimensions or {})}
        return {
            "_aws": {
                "Timestamp": int(time.time() * 1000),
                "CloudWatchMetrics": [
                    {
                        "Namespace": self.NAMESPACE,
                        "Dimensions": [list(dim_dict.keys())],
                        "Metrics": [{"Name": metric_name.value, "Unit": unit.value}],
                    }
                ],
            },
            "service": self.service_name,
            **dim_dict,
            metric_name.value: value,
        }

    def emit(
        self,
        metric_name: SigningMetricName,
        value: float,
        unit: MetricUnit = MetricUnit.COUNT,
        dimensions: Optional[dict[str, str]] = None,
    ) -> None:
        """
        Emit a single metric.

        Args:
            metric_name: Name of the metric
            value: Metric value
            unit: Metric unit
            dimensions: Extra dimensions added to Environment
        """
        if not self.enabled:
            return
        try:
            emf_log = self._create_emf_log(metric_name, value, unit, dimensions)
            print(json.dumps(emf_log), file=sys.stdout, flush=True)
        except Exception as e:
            logger.warning(f"Failed to emit metric {metric_name}: {e}")

    def emit_unsigned(self, reason: str) -> None:
        """Count a request sent without a signature."""
        self.emit(SigningMetricName.REQUEST_UNSIGNED, 1, dimensions={"Reason": reason})


# Global metrics emitter instance
_metrics_emitter: Optional[MetricsEmitter] = None


def init_metrics(service_name: str = "aws-sigv4-plugin", enabled: bool = True) -> MetricsEmitter:
    """Replace the global metrics emitter."""
    global _metrics_emitter
    _metrics_emitter = MetricsEmitter(service_name=service_name, enabled=enabled)
    return _metrics_emitter


def get_metrics_emitter() -> MetricsEmitter:
    """Get the global metrics emitter, creating a default one if needed."""
    global _metrics_emitter
    if _metrics_emitter is None:
        _metrics_emitter = MetricsEmitter()
    return _metrics_emitter
