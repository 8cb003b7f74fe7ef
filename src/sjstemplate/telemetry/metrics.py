"""sjstemplate metrics schema - OpenTelemetry conventions.

Metrics:
- Counters: renders, render passes, script runs
- Histograms: render and script durations

Labels/Attributes:
- template: Template name
- script: Script name (or template:line for inline blocks)
- status: success, error, cancelled
- error_code: Error code when status=error

All metrics use the 'sjstemplate_' prefix.
"""

from dataclasses import dataclass

from opentelemetry import metrics
from opentelemetry.metrics import Counter, Histogram, UpDownCounter

# Metric prefix for all engine metrics
METRIC_PREFIX = "sjstemplate"


@dataclass
class MetricLabels:
    """Standard metric labels/attributes."""

    TEMPLATE = "template"
    SCRIPT = "script"
    STOP_REASON = "stop_reason"

    # Status labels
    STATUS = "status"
    ERROR_CODE = "error_code"

    # Status values
    STATUS_SUCCESS = "success"
    STATUS_ERROR = "error"
    STATUS_CANCELLED = "cancelled"


class EngineMetrics:
    """Engine metrics collection.

    Provides instrumentation for:
    - Template invocations (and their passes)
    - Script runs (files, functions and inline blocks)
    - Render nesting depth
    """

    def __init__(self, meter: metrics.Meter):
        """Initialize metrics.

        Args:
            meter: OpenTelemetry Meter instance
        """
        self._meter = meter
        self._setup_counters()
        self._setup_histograms()
        self._setup_gauges()

    def _setup_counters(self) -> None:
        """Set up counter metrics."""
        self.renders_total: Counter = self._meter.create_counter(
            name=f"{METRIC_PREFIX}_renders_total",
            description="Total number of template invocations",
            unit="1",
        )

        self.render_passes_total: Counter = self._meter.create_counter(
            name=f"{METRIC_PREFIX}_render_passes_total",
            description="Total number of render passes across all invocations",
            unit="1",
        )

        self.script_runs_total: Counter = self._meter.create_counter(
            name=f"{METRIC_PREFIX}_script_runs_total",
            description="Total number of script executions",
            unit="1",
        )

    def _setup_histograms(self) -> None:
        """Set up histogram metrics."""
        self.render_duration_seconds: Histogram = self._meter.create_histogram(
            name=f"{METRIC_PREFIX}_render_duration_seconds",
            description="Template invocation duration in seconds",
            unit="s",
        )

        self.script_duration_seconds: Histogram = self._meter.create_histogram(
            name=f"{METRIC_PREFIX}_script_duration_seconds",
            description="Script execution duration in seconds",
            unit="s",
        )

    def _setup_gauges(self) -> None:
        """Set up gauge metrics (using UpDownCounter)."""
        self.active_renders: UpDownCounter = self._meter.create_up_down_counter(
            name=f"{METRIC_PREFIX}_active_renders",
            description="Number of template invocations currently on the stack",
            unit="1",
        )

    def record_render_start(self, template: str) -> None:
        """Record the start of a template invocation."""
        self.active_renders.add(1, {MetricLabels.TEMPLATE: template})

    def record_render_end(
        self,
        template: str,
        duration_seconds: float,
        status: str,
        passes: int = 0,
        error_code: str | None = None,
    ) -> None:
        """Record the end of a template invocation.

        Args:
            template: Template name
            duration_seconds: Invocation duration
            status: Final status (success, error, cancelled)
            passes: Number of passes executed
            error_code: Error code if status is error
        """
        labels = {MetricLabels.TEMPLATE: template, MetricLabels.STATUS: status}
        if error_code:
            labels[MetricLabels.ERROR_CODE] = error_code

        self.active_renders.add(-1, {MetricLabels.TEMPLATE: template})
        self.renders_total.add(1, labels)
        self.render_duration_seconds.record(duration_seconds, labels)
        if passes:
            self.render_passes_total.add(passes, {MetricLabels.TEMPLATE: template})

    def record_script(
        self,
        script: str,
        duration_seconds: float,
        status: str,
        error_code: str | None = None,
    ) -> None:
        """Record one script execution."""
        labels = {MetricLabels.SCRIPT: script, MetricLabels.STATUS: status}
        if error_code:
            labels[MetricLabels.ERROR_CODE] = error_code

        self.script_runs_total.add(1, labels)
        self.script_duration_seconds.record(duration_seconds, labels)
