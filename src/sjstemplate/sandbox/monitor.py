"""Line monitor that enforces RunControl deadlines inside running scripts.

Built on sys.monitoring LINE and JUMP events. A monitoring callback stays
registered after it raises, so a script that catches one interrupt is
interrupted again at its next line or loop iteration.
"""

import contextlib
import sys
import threading
from collections.abc import Iterator
from types import CodeType

from .types import RunControl, SourceMapCache

# Tool ids without a reserved meaning in sys.monitoring
FREE_TOOL_IDS = (4, 3)
TOOL_NAME = "sjstemplate"

EVENTS = sys.monitoring.events.LINE | sys.monitoring.events.JUMP


class ScriptInterrupted(BaseException):
    """Raised inside a running script to halt it.

    Derives from BaseException so `except Exception` in scripts cannot
    swallow it.
    """

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class LineMonitor:
    """Process-wide hook polling the innermost RunControl of each thread.

    Only code compiled by the watching runtime (its source maps) is
    checked; host code running underneath a script is left alone.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._tool_id: int | None = None
        self._watches: dict[int, list[tuple[RunControl, SourceMapCache]]] = {}

    @contextlib.contextmanager
    def watch(self, control: RunControl, source_maps: SourceMapCache) -> Iterator[None]:
        thread_id = threading.get_ident()
        with self._lock:
            if self._tool_id is None:
                self._tool_id = self._acquire_tool()
            if not self._watches:
                sys.monitoring.set_events(self._tool_id, EVENTS)
            self._watches.setdefault(thread_id, []).append((control, source_maps))
        try:
            yield
        finally:
            with self._lock:
                stack = self._watches[thread_id]
                stack.pop()
                if not stack:
                    del self._watches[thread_id]
                if not self._watches:
                    sys.monitoring.set_events(self._tool_id, 0)

    def _acquire_tool(self) -> int:
        for tool_id in FREE_TOOL_IDS:
            if sys.monitoring.get_tool(tool_id) is None:
                sys.monitoring.use_tool_id(tool_id, TOOL_NAME)
                sys.monitoring.register_callback(
                    tool_id, sys.monitoring.events.LINE, self._on_line
                )
                sys.monitoring.register_callback(
                    tool_id, sys.monitoring.events.JUMP, self._on_jump
                )
                return tool_id
        raise RuntimeError("no free sys.monitoring tool id for script cancellation")

    def _on_line(self, code: CodeType, line_number: int) -> None:
        self._check(code)

    def _on_jump(self, code: CodeType, instruction_offset: int, destination_offset: int) -> None:
        self._check(code)

    def _check(self, code: CodeType) -> None:
        stack = self._watches.get(threading.get_ident())
        if not stack:
            return
        control, source_maps = stack[-1]
        if code.co_filename not in source_maps:
            return
        reason = control.check()
        if reason:
            raise ScriptInterrupted(reason)


line_monitor = LineMonitor()
