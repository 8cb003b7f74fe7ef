"""Line-number remapping for template errors.

Script blocks are spliced out before compilation, so line numbers reported
by the template engine refer to the spliced body. The net number of lines
removed by splicing every block of the body is added back to each locator,
whether the failing line sits before or after those blocks.
"""

import dataclasses
import re

from sjstemplate.errors import EngineError


def adjust_line_numbers(name: str, message: str, delta: int) -> str:
    """Rewrite `template: <name>:<N>` locators to `N + delta`.

    Locators of other templates are left alone. Best-effort: on any failure
    the original message is returned unchanged.
    """
    if not delta:
        return message

    try:
        pattern = re.compile(rf"template: {re.escape(name)}:(\d+)")
    except re.error:
        return message

    def _shift(match: re.Match[str]) -> str:
        try:
            line = int(match.group(1)) + delta
        except ValueError:
            return match.group(0)
        return f"template: {name}:{line}"

    return pattern.sub(_shift, message)


def remap_error(error: EngineError, name: str, delta: int) -> EngineError:
    """Return `error` with its locators and line shifted by `delta`."""
    if not delta:
        return error

    line = error.line
    if line and error.template == name:
        line += delta

    return dataclasses.replace(
        error,
        message=adjust_line_numbers(name, error.message, delta),
        line=line,
    )
