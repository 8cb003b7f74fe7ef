"""Sandbox types: configuration, run control and the source-map cache."""

import threading
import time
from dataclasses import dataclass, field

# Keep in sync with SAFE_IMPORTS in sandbox.py
DEFAULT_ALLOWED_IMPORTS = [
    "json",
    "math",
    "datetime",
    "time",
    "random",
    "itertools",
    "functools",
    "collections",
    "typing",
    "re",
    "decimal",
    "statistics",
    "operator",
    "copy",
    "uuid",
    "hashlib",
    "string",
    "textwrap",
]


@dataclass
class SandboxConfig:
    """Configuration for script execution."""

    timeout: float | None = None  # Seconds; None = no deadline
    allowed_imports: list[str] | None = None  # None = use defaults
    seed: int | None = None  # Seeds the random module scripts see; None = shared generator

    def __post_init__(self) -> None:
        """Initialize default allowed imports if not provided."""
        if self.allowed_imports is None:
            self.allowed_imports = list(DEFAULT_ALLOWED_IMPORTS)


@dataclass
class RunControl:
    """Deadline and cancellation signal for one engine call.

    Scripts check it at every line boundary; see ScriptRuntime.
    """

    timeout: float | None = None
    cancel_event: threading.Event | None = None
    started_at: float = field(default_factory=time.monotonic)

    @property
    def deadline(self) -> float | None:
        if self.timeout is None:
            return None
        return self.started_at + self.timeout

    def check(self) -> str | None:
        """Return the reason execution must stop, or None."""
        if self.cancel_event is not None and self.cancel_event.is_set():
            return "cancelled"
        deadline = self.deadline
        if deadline is not None and time.monotonic() >= deadline:
            return f"timeout after {self.timeout}s"
        return None


@dataclass
class SourceMap:
    """Original source lines of every script compiled under one name.

    Inline blocks of one template share the template's name, so lines are
    keyed by their line number in the original file.
    """

    name: str
    lines: dict[int, str] = field(default_factory=dict)

    def source_line(self, line: int) -> str | None:
        return self.lines.get(line)


class SourceMapCache:
    """Per-runtime cache of compiled script sources, keyed by script name."""

    def __init__(self) -> None:
        self._maps: dict[str, SourceMap] = {}

    def add(self, name: str, source: str, line_offset: int = 0) -> SourceMap:
        source_map = self._maps.setdefault(name, SourceMap(name=name))
        for number, text in enumerate(source.splitlines(), start=line_offset + 1):
            source_map.lines[number] = text
        return source_map

    def get(self, name: str) -> SourceMap | None:
        return self._maps.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._maps

    def __len__(self) -> int:
        return len(self._maps)
