"""Tests for the signing metrics module."""

import json

from sigv4_plugin.metrics import (
    MetricsEmitter,
    MetricUnit,
    SigningMetricName,
    get_metrics_emitter,
    init_metrics,
)


class TestMetricsEmitter:
    """Tests for MetricsEmitter class."""

    def test_emit_single_metric(self, capsys):
        """Test emitting a single metric."""
        emitter = MetricsEmitter(service_name="test-service")

        emitter.emit(SigningMetricName.REQUEST_SIGNED, 1)

        output = json.loads(capsys.readouterr().out.strip())
        assert output["_aws"]["CloudWatchMetrics"][0]["Namespace"] == "LoadTestSigV4"
        assert output["_aws"]["CloudWatchMetrics"][0]["Metrics"] == [{"Name": "RequestSigned", "Unit": "Count"}]
        assert output["RequestSigned"] == 1
        assert output["service"] == "test-service"

    def test_emit_latency(self, capsys):
        """Test emitting a timing metric."""
        MetricsEmitter().emit(
            SigningMetricName.CREDENTIAL_RESOLUTION_LATENCY,
            12.5,
            MetricUnit.MILLISECONDS,
        )

        output = json.loads(capsys.readouterr().out.strip())
        assert output["CredentialResolutionLatency"] == 12.5
        assert output["_aws"]["CloudWatchMetrics"][0]["Metrics"][0]["Unit"] == "Milliseconds"

    def test_emit_unsigned_reason_dimension(self, capsys):
        """Test that unsigned requests carry the reason as a dimension."""
        MetricsEmitter().emit_unsigned("no_region")

        output = json.loads(capsys.readouterr().out.strip())
        assert output["Reason"] == "no_region"
        assert output["_aws"]["CloudWatchMetrics"][0]["Dimensions"] == [["Environment", "Reason"]]

    def test_disabled_emitter_is_silent(self, capsys):
        """Test that a disabled emitter writes nothing."""
        MetricsEmitter(enabled=False).emit(SigningMetricName.REQUEST_SIGNED, 1)

        assert capsys.readouterr().out == ""


class TestGlobalEmitter:
    """Tests for the global emitter helpers."""

    def test_init_metrics_replaces_global(self):
        """Test that init_metrics installs a new global emitter."""
        emitter = init_metrics(service_name="custom", enabled=False)

        assert get_metrics_emitter() is emitter
        assert get_metrics_emitter().service_name == "custom"
