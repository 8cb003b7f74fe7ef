"""Tests for telemetry setup and OTLP span exporters."""

import pytest

from sjstemplate.errors import EngineError
from sjstemplate.telemetry import (
    OTLPExporterConfig,
    Telemetry,
    TelemetryConfig,
    get_telemetry,
    reset_telemetry,
    setup_telemetry,
)


class TestOTLPExporterConfig:
    """Tests for OTLPExporterConfig."""

    def test_default_config(self):
        config = OTLPExporterConfig()
        assert config.enabled is False
        assert config.endpoint == "http://localhost:4317"
        assert config.insecure is True
        assert config.protocol == "grpc"
        assert config.headers == {}

    def test_grpc_exporter(self):
        config = OTLPExporterConfig(enabled=True, endpoint="http://collector:4317")
        exporter = config.span_exporter()
        assert "grpc" in type(exporter).__module__

    def test_http_exporter(self):
        config = OTLPExporterConfig(enabled=True, endpoint="http://collector:4318/", protocol="http")
        exporter = config.span_exporter()
        assert "http" in type(exporter).__module__

    def test_unknown_protocol(self):
        with pytest.raises(EngineError) as exc_info:
            OTLPExporterConfig(protocol="udp").span_exporter()
        assert exc_info.value.code == "CONFIG_INVALID"
        assert "udp" in exc_info.value.message


class TestTelemetryConfig:
    """Tests for TelemetryConfig."""

    def test_resource_attributes(self):
        config = TelemetryConfig(service_name="site", attributes={"deployment.environment": "ci"})
        attributes = config.resource().attributes
        assert attributes["service.name"] == "site"
        assert attributes["service.version"] == "0.1.0"
        assert attributes["deployment.environment"] == "ci"


class TestSetupTelemetry:
    """Tests for setup_telemetry state handling."""

    def test_nothing_before_setup(self):
        assert get_telemetry() is None

    def test_disabled_handle(self):
        config = TelemetryConfig()
        telemetry = setup_telemetry(config)
        assert isinstance(telemetry, Telemetry)
        assert telemetry.config is config
        assert telemetry.enabled is False
        assert telemetry.metrics is None

    def test_enabled_without_metrics(self):
        telemetry = setup_telemetry(TelemetryConfig(enabled=True, metrics_enabled=False))
        assert telemetry.enabled is True
        assert telemetry.tracer_provider is not None
        assert telemetry.meter_provider is None
        assert telemetry.metrics is None
        assert get_telemetry() is telemetry

    def test_enabled_with_metrics(self):
        telemetry = setup_telemetry(TelemetryConfig(enabled=True))
        assert telemetry.meter_provider is not None
        assert telemetry.metrics is not None

    def test_first_setup_wins(self):
        first = setup_telemetry(TelemetryConfig(enabled=True, metrics_enabled=False))
        assert setup_telemetry(TelemetryConfig()) is first

    def test_traces_with_otlp(self):
        config = TelemetryConfig(
            enabled=True,
            metrics_enabled=False,
            traces_enabled=True,
            otlp=OTLPExporterConfig(enabled=True),
        )
        telemetry = setup_telemetry(config)
        assert telemetry.tracer is not None

    def test_reset_forgets_handle(self):
        setup_telemetry(TelemetryConfig(enabled=True, metrics_enabled=False))
        reset_telemetry()
        assert get_telemetry() is None
