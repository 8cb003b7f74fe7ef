"""Recursive rendering.

A template whose first line is `{{ recurse(N) }}` is rendered up to N + 1
times, each pass taking the previous pass's output as its body. The
`recurse` call records the request on the current RecursionState instead
of leaving a marker in the output.
"""

import re
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

from sjstemplate.errors import create_error
from sjstemplate.types import StopReason

from .context import ComputedStore

RECURSE_DIRECTIVE = re.compile(r"^\{\{-*\s*recurse\s*\(\s*(\d+)\s*\)\s*-*\}\}$")


def parse_directive(body: str) -> int | None:
    """Pass count requested by the first line of `body`, or None.

    A directive anywhere else is not a directive.
    """
    first_line = body.replace("\r\n", "\n").split("\n", 1)[0]
    match = RECURSE_DIRECTIVE.match(first_line.strip())
    if not match:
        return None
    return int(match.group(1))


@dataclass
class RecursionState:
    """Pass bookkeeping for one invocation."""

    template: str
    max_passes: int = 1
    recursive_computed: Any = None
    declared: bool = False
    pass_index: int = 0
    remaining: int | None = None
    signaled: bool = False
    stop_reason: StopReason | None = field(default=None)

    @classmethod
    def for_body(cls, template: str, body: str, inherited: Any = None) -> "RecursionState":
        """Build the state for a body.

        Without a directive the caller's RecursiveComputed is inherited;
        with one, a fresh store starts a new recursion cycle.
        """
        count = parse_directive(body)
        if count is None:
            return cls(template=template, recursive_computed=inherited)
        return cls(
            template=template,
            max_passes=count + 1,
            recursive_computed=ComputedStore(),
            declared=True,
        )

    @property
    def passes(self) -> int:
        return self.pass_index + 1

    def begin_pass(self) -> None:
        self.signaled = False

    def signal(self, count: Any) -> None:
        """Request `count` more passes. At most once per pass."""
        if isinstance(count, bool) or not isinstance(count, int) or count < 0:
            raise create_error(
                "INVALID_ARGUMENT",
                function="recurse",
                reason=f"expected a non-negative integer, got {count!r}",
                template=self.template,
            )
        if self.signaled:
            raise create_error("RECURSE_INVALID", template=self.template)
        self.signaled = True
        self.remaining = count

    def advance(self, evaluated: str, output: str) -> bool:
        """Decide whether another pass runs after this one.

        Args:
            evaluated: The spliced body handed to the template engine
            output: What the template engine produced from it

        Returns:
            True to run another pass with `output` as its body
        """
        if output == evaluated:
            self.stop_reason = StopReason.FIXED_POINT
        elif self.passes >= self.max_passes:
            self.stop_reason = StopReason.CEILING if self.declared else StopReason.SINGLE_PASS
        elif not self.remaining:
            self.stop_reason = StopReason.NO_SIGNAL
        else:
            self.remaining -= 1
            self.pass_index += 1
            return True
        return False


class RecursionController:
    """Stack of RecursionStates, one per invocation in progress."""

    def __init__(self) -> None:
        self._states: list[RecursionState] = []

    @property
    def current(self) -> RecursionState | None:
        return self._states[-1] if self._states else None

    @contextmanager
    def cycle(self, template: str, body: str, inherited: Any = None) -> Iterator[RecursionState]:
        state = RecursionState.for_body(template, body, inherited)
        self._states.append(state)
        try:
            yield state
        finally:
            self._states.pop()

    def signal(self, count: Any) -> str:
        """Backs the `recurse` function for templates and scripts."""
        state = self.current
        if state is None:
            raise create_error(
                "INVALID_ARGUMENT",
                function="recurse",
                reason="recurse can only be called while a template is rendering",
            )
        state.signal(count)
        return ""
