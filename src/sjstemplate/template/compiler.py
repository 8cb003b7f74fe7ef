"""Jinja compiler adapter.

Every error leaving this module carries a `template: <name>:<line>: ...`
locator in its message so the renderer can remap line numbers.
"""

import traceback
from collections.abc import Callable, Mapping
from types import TracebackType
from typing import Any

from jinja2 import Environment, StrictUndefined, Template, TemplateSyntaxError, Undefined

from sjstemplate.config.models import TemplateConfig
from sjstemplate.errors import EngineError, ErrorCategory, create_error

# Errors raised by template functions that keep their own identity
PASSTHROUGH_CATEGORIES = {
    ErrorCategory.CANCELLATION,
    ErrorCategory.REGISTRY,
    ErrorCategory.VALIDATION,
}


def format_locator(name: str, line: int | None) -> str:
    if line:
        return f"template: {name}:{line}"
    return f"template: {name}"


class CompiledTemplate:
    """A compiled template bound to the functions it was compiled with."""

    def __init__(self, name: str, template: Template):
        self.name = name
        self._template = template

    def execute(self, data: Mapping[str, Any]) -> str:
        """Render the template.

        Raises:
            EngineError: TEMPLATE_RUNTIME, or a passthrough error raised by
                a template function
        """
        try:
            return self._template.render(data)
        except EngineError as e:
            if e.category in PASSTHROUGH_CATEGORIES:
                raise e.with_context(template=self.name) from e
            line = self._error_line(e.__traceback__)
            raise create_error(
                "TEMPLATE_RUNTIME",
                cause=e,
                template=self.name,
                line=line,
                error=f"{format_locator(self.name, line)}: error calling function: {e.message}",
            ) from e
        except Exception as e:
            line = self._error_line(e.__traceback__)
            raise create_error(
                "TEMPLATE_RUNTIME",
                template=self.name,
                line=line,
                error=f"{format_locator(self.name, line)}: {type(e).__name__}: {e}",
            ) from e

    def _error_line(self, tb: TracebackType | None) -> int | None:
        """Innermost traceback line that belongs to this template.

        Jinja rewrites tracebacks so template frames report template lines.
        """
        line = None
        for summary in traceback.extract_tb(tb):
            if summary.filename == self.name:
                line = summary.lineno
        return line


class TemplateCompiler:
    """Compiles template bodies with a shared Jinja environment."""

    def __init__(self, config: TemplateConfig | None = None):
        self.config = config or TemplateConfig()
        self.env = Environment(
            autoescape=False,
            trim_blocks=self.config.trim_blocks,
            lstrip_blocks=self.config.lstrip_blocks,
            keep_trailing_newline=self.config.keep_trailing_newline,
            undefined=StrictUndefined if self.config.strict_undefined else Undefined,
        )

    def compile(
        self,
        name: str,
        body: str,
        funcs: Mapping[str, Callable[..., Any]] | None = None,
    ) -> CompiledTemplate:
        """Compile a body; `funcs` become template globals.

        Raises:
            EngineError: TEMPLATE_COMPILATION
        """
        try:
            code = self.env.compile(body, name=name, filename=name)
        except TemplateSyntaxError as e:
            raise create_error(
                "TEMPLATE_COMPILATION",
                template=name,
                line=e.lineno,
                error=f"{format_locator(name, e.lineno)}: {e.message}",
            ) from e

        template = self.env.template_class.from_code(
            self.env, code, self.env.make_globals(dict(funcs or {})), None
        )
        return CompiledTemplate(name, template)
