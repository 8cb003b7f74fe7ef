"""Template engine type definitions."""

from dataclasses import dataclass


@dataclass(frozen=True)
class ScriptBlock:
    """A fenced script region located in a template body.

    Attributes:
        raw_text: The block including its fences, as it appears in the body
        source: The script source between the fences
        start_line: 1-based line of the first source line in the body
        start: Offset of raw_text in the body
        end: Offset just past raw_text in the body
    """

    raw_text: str
    source: str
    start_line: int
    start: int
    end: int

    @property
    def line_count(self) -> int:
        """Newlines consumed by the raw block."""
        return self.raw_text.count("\n")


@dataclass
class SpliceResult:
    """Result of replacing every script block of a body with its output."""

    body: str  # Spliced body handed to the template compiler
    line_delta: int = 0  # Net newlines removed by splicing
    block_count: int = 0  # Number of blocks replaced
