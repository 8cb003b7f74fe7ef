"""sjstemplate telemetry instrumentation - span and metric helpers.

Provides instrumentation helpers for:
- Template invocations
- Script executions

Both helpers are no-ops until setup_telemetry() has been called.
"""

import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from opentelemetry.trace import Status, StatusCode, Tracer

from .metrics import EngineMetrics, MetricLabels
from .setup import get_telemetry


def _instruments() -> tuple[Tracer | None, EngineMetrics | None]:
    telemetry = get_telemetry()
    if telemetry is None:
        return None, None
    return telemetry.tracer, telemetry.metrics


def _status_for(error: BaseException) -> tuple[str, str]:
    code = getattr(error, "code", None) or type(error).__name__
    if code == "CANCELLED":
        return MetricLabels.STATUS_CANCELLED, code
    return MetricLabels.STATUS_ERROR, code


@contextmanager
def instrument_render(template: str, depth: int = 0) -> Iterator[dict[str, Any]]:
    """Context manager for instrumenting one template invocation.

    Records:
    - Render start/end metrics and duration histogram
    - Trace span for the invocation

    Args:
        template: Template name
        depth: Nesting depth of the invocation

    Yields:
        Dictionary to store execution status and pass count
    """
    start_time = time.time()
    result: dict[str, Any] = {
        "status": MetricLabels.STATUS_SUCCESS,
        "error_code": None,
        "passes": 0,
    }

    tracer, metrics = _instruments()

    span = None
    if tracer:
        span = tracer.start_span(f"template:{template}")
        span.set_attribute("template.name", template)
        span.set_attribute("template.depth", depth)

    if metrics:
        metrics.record_render_start(template)

    try:
        yield result
    except Exception as e:
        result["status"], result["error_code"] = _status_for(e)
        if span:
            span.set_status(Status(StatusCode.ERROR, str(e)))
            span.record_exception(e)
        raise
    finally:
        duration = time.time() - start_time

        if metrics:
            metrics.record_render_end(
                template=template,
                duration_seconds=duration,
                status=result["status"],
                passes=result["passes"],
                error_code=result.get("error_code"),
            )

        if span:
            span.set_attribute("template.passes", result["passes"])
            if result["status"] == MetricLabels.STATUS_SUCCESS:
                span.set_status(Status(StatusCode.OK))
            span.end()


@contextmanager
def instrument_script(script: str) -> Iterator[dict[str, Any]]:
    """Context manager for instrumenting a script execution.

    Args:
        script: Script name (or template:line for inline blocks)

    Yields:
        Dictionary to store execution status
    """
    start_time = time.time()
    result: dict[str, Any] = {"status": MetricLabels.STATUS_SUCCESS, "error_code": None}

    tracer, metrics = _instruments()

    span = None
    if tracer:
        span = tracer.start_span(f"script:{script}")
        span.set_attribute("script.name", script)

    try:
        yield result
    except Exception as e:
        result["status"], result["error_code"] = _status_for(e)
        if span:
            span.set_status(Status(StatusCode.ERROR, str(e)))
            span.record_exception(e)
        raise
    finally:
        if metrics:
            metrics.record_script(
                script=script,
                duration_seconds=time.time() - start_time,
                status=result["status"],
                error_code=result.get("error_code"),
            )

        if span:
            if result["status"] == MetricLabels.STATUS_SUCCESS:
                span.set_status(Status(StatusCode.OK))
            span.end()
