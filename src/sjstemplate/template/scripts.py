"""Execution of inline script blocks."""

import textwrap
import time
from typing import TYPE_CHECKING, Any

from sjstemplate.errors import EngineError
from sjstemplate.telemetry import instrument_script

from .types import ScriptBlock

if TYPE_CHECKING:
    from sjstemplate.logging import InvocationLogger
    from sjstemplate.sandbox import RunControl, ScriptRuntime

RENDER_BINDING = "render"

_MISSING = object()


class RenderCollector:
    """Collects the strings one block passes to `render`."""

    def __init__(self) -> None:
        self.rendered: list[str] = []

    def render(self, value: Any) -> None:
        self.rendered.append(str(value))

    def output(self) -> str:
        return "\n".join(self.rendered)


def execute_block(
    runtime: "ScriptRuntime",
    block: ScriptBlock,
    template_name: str,
    control: "RunControl | None" = None,
    logger: "InvocationLogger | None" = None,
) -> str:
    """Run one block and return what it rendered, joined by newlines.

    `render` is bound only while the block runs; the previous binding, if
    any, is put back afterwards. A failed block produces no output.

    Raises:
        EngineError: The runtime's error, annotated with the template name
            and block source
    """
    collector = RenderCollector()
    previous = runtime.get(RENDER_BINDING, _MISSING)
    runtime.set(RENDER_BINDING, collector.render)

    script_logger = logger.block(block.start_line) if logger else None
    if script_logger:
        script_logger.executing()

    start_time = time.perf_counter()
    try:
        with instrument_script(f"{template_name}:{block.start_line}"):
            runtime.run(
                template_name,
                textwrap.dedent(block.source),
                start_line=block.start_line,
                control=control,
            )
    except EngineError as e:
        if script_logger:
            script_logger.error(e.code, e.message)
        if e.code == "CANCELLED":
            raise
        raise e.with_context(
            template=template_name,
            detail=f"failed to run inline script in {template_name}:\n```sjs\n{block.source}sjs```",
        ) from e
    finally:
        if previous is _MISSING:
            runtime.delete(RENDER_BINDING)
        else:
            runtime.set(RENDER_BINDING, previous)

    if script_logger:
        duration_ms = int((time.perf_counter() - start_time) * 1000)
        script_logger.completed(duration_ms, rendered_count=len(collector.rendered))

    return collector.output()
