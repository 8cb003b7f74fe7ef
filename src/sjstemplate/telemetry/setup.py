"""Telemetry bootstrap for sjstemplate.

setup_telemetry() builds a tracer provider and, when metrics are on, a
meter provider backed by a Prometheus reader. Both belong to the returned
Telemetry handle rather than to the OpenTelemetry globals, so an embedding
application keeps control of its own providers.

Until setup runs, or when telemetry is disabled, the instrumentation
helpers find no tracer or metrics and record nothing.
"""

from dataclasses import dataclass, field

from opentelemetry.exporter.prometheus import PrometheusMetricReader
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, SpanExporter
from opentelemetry.trace import Tracer

from sjstemplate.errors import create_error

from .metrics import EngineMetrics

INSTRUMENTATION_NAME = "sjstemplate"


@dataclass
class OTLPExporterConfig:
    """Where render and script spans are shipped.

    `protocol` is "grpc" (endpoint used as is) or "http" (spans are posted
    to `<endpoint>/v1/traces`).
    """

    enabled: bool = False
    endpoint: str = "http://localhost:4317"
    insecure: bool = True
    protocol: str = "grpc"
    headers: dict[str, str] = field(default_factory=dict)

    def span_exporter(self) -> SpanExporter:
        """Build the OTLP span exporter for the configured protocol.

        Raises:
            EngineError: CONFIG_INVALID for an unknown protocol
        """
        headers = self.headers or None
        if self.protocol == "http":
            from opentelemetry.exporter.otlp.proto.http.trace_exporter import (
                OTLPSpanExporter as HTTPSpanExporter,
            )

            return HTTPSpanExporter(
                endpoint=f"{self.endpoint.rstrip('/')}/v1/traces", headers=headers
            )
        if self.protocol == "grpc":
            from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
                OTLPSpanExporter as GRPCSpanExporter,
            )

            return GRPCSpanExporter(endpoint=self.endpoint, insecure=self.insecure, headers=headers)
        raise create_error(
            "CONFIG_INVALID",
            error=f"unknown OTLP protocol {self.protocol!r}",
            path="telemetry.otlp.protocol",
        )


@dataclass
class TelemetryConfig:
    """The `telemetry` section of the engine configuration."""

    enabled: bool = False
    service_name: str = "sjstemplate"
    service_version: str = "0.1.0"
    metrics_enabled: bool = True
    traces_enabled: bool = False
    otlp: OTLPExporterConfig = field(default_factory=OTLPExporterConfig)
    attributes: dict[str, str] = field(default_factory=dict)  # extra resource attributes

    def resource(self) -> Resource:
        return Resource.create(
            {
                SERVICE_NAME: self.service_name,
                SERVICE_VERSION: self.service_version,
                **self.attributes,
            }
        )


@dataclass
class Telemetry:
    """Handle on the providers and instruments built by setup_telemetry."""

    config: TelemetryConfig
    tracer: Tracer | None = None
    metrics: EngineMetrics | None = None
    tracer_provider: TracerProvider | None = None
    meter_provider: MeterProvider | None = None

    @property
    def enabled(self) -> bool:
        return self.tracer is not None

    def shutdown(self) -> None:
        """Flush pending spans and release the metric reader."""
        if self.tracer_provider is not None:
            self.tracer_provider.shutdown()
        if self.meter_provider is not None:
            self.meter_provider.shutdown()


_telemetry: Telemetry | None = None


def _build_tracer_provider(config: TelemetryConfig, resource: Resource) -> TracerProvider:
    provider = TracerProvider(resource=resource)
    if config.traces_enabled and config.otlp.enabled:
        provider.add_span_processor(BatchSpanProcessor(config.otlp.span_exporter()))
    return provider


def _build_meter_provider(resource: Resource) -> MeterProvider:
    return MeterProvider(metric_readers=[PrometheusMetricReader()], resource=resource)


def setup_telemetry(config: TelemetryConfig | None = None) -> Telemetry:
    """Set up telemetry once per process.

    Later calls return the first handle unchanged, whatever config they
    pass. A disabled config yields a handle with no tracer or metrics.

    Args:
        config: Telemetry configuration (default: TelemetryConfig())

    Returns:
        The process-wide Telemetry handle
    """
    global _telemetry

    if _telemetry is not None:
        return _telemetry

    config = config or TelemetryConfig()
    if not config.enabled:
        _telemetry = Telemetry(config=config)
        return _telemetry

    resource = config.resource()
    tracer_provider = _build_tracer_provider(config, resource)
    telemetry = Telemetry(
        config=config,
        tracer=tracer_provider.get_tracer(INSTRUMENTATION_NAME, config.service_version),
        tracer_provider=tracer_provider,
    )
    if config.metrics_enabled:
        telemetry.meter_provider = _build_meter_provider(resource)
        telemetry.metrics = EngineMetrics(
            telemetry.meter_provider.get_meter(INSTRUMENTATION_NAME, config.service_version)
        )

    _telemetry = telemetry
    return _telemetry


def get_telemetry() -> Telemetry | None:
    """The handle from setup_telemetry, or None before setup."""
    return _telemetry


def reset_telemetry() -> None:
    """Shut down and forget the current handle (for testing)."""
    global _telemetry
    if _telemetry is not None:
        _telemetry.shutdown()
    _telemetry = None
