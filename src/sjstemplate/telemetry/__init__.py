"""sjstemplate telemetry - OpenTelemetry-based observability."""

from .instrumentation import instrument_render, instrument_script
from .metrics import EngineMetrics, MetricLabels
from .setup import (
    OTLPExporterConfig,
    Telemetry,
    TelemetryConfig,
    get_telemetry,
    reset_telemetry,
    setup_telemetry,
)

__all__ = [
    # Metrics
    "EngineMetrics",
    "MetricLabels",
    # Setup
    "Telemetry",
    "TelemetryConfig",
    "OTLPExporterConfig",
    "setup_telemetry",
    "get_telemetry",
    "reset_telemetry",
    # Instrumentation
    "instrument_render",
    "instrument_script",
]
