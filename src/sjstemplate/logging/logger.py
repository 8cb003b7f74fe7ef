"""Engine logger - hierarchical colored logging for template invocations."""

import json
import sys
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, TextIO

from sjstemplate.logging.colors import (
    CYAN,
    GREEN,
    LIGHT_BLUE,
    MAGENTA,
    ORANGE,
    RED,
    RESET,
    YELLOW,
)
from sjstemplate.types import LogFormat, LogLevel


@dataclass
class LogConfig:
    """Logger configuration."""

    level: LogLevel = LogLevel.INFO
    format: LogFormat = LogFormat.COLORED
    show_params: bool = True
    truncate_at: int = 200
    components: dict[str, bool] = field(default_factory=dict)
    output: TextIO | None = None  # None = sys.stderr as of each log call

    def __post_init__(self) -> None:
        """Initialize default components if not provided."""
        if not self.components:
            self.components = {
                "engine": True,
                "template": True,
                "script": True,
            }


class EngineLogger:
    """Main logger facade. Creates component-specific loggers."""

    def __init__(self, config: LogConfig | None = None):
        """Initialize logger with configuration.

        Args:
            config: Logger configuration (defaults to LogConfig())
        """
        self.config = config or LogConfig()
        self._level_order = {
            LogLevel.DEBUG: 0,
            LogLevel.INFO: 1,
            LogLevel.WARN: 2,
            LogLevel.ERROR: 3,
        }

    def invocation(self, template_name: str, depth: int = 0) -> "InvocationLogger":
        """Get a logger scoped to one template invocation.

        Args:
            template_name: Name of the template being rendered
            depth: Nesting depth of the invocation (0 = top level)

        Returns:
            InvocationLogger instance
        """
        return InvocationLogger(self, template_name, depth)

    def script(self, script_name: str) -> "ScriptLogger":
        """Get a logger scoped to a script run outside of a template."""
        return ScriptLogger(self, script_name)

    def engine_event(self, level: LogLevel, message: str, **context: Any) -> None:
        """Log an engine lifecycle event (init, script files, config)."""
        context["event"] = context.get("event", "engine")
        self._log(level, "engine", message, context)

    def configure(self, config: LogConfig) -> None:
        """Update configuration.

        Args:
            config: New logger configuration
        """
        self.config = config

    def _should_log(self, level: LogLevel) -> bool:
        """Check if a log level should be logged.

        Args:
            level: Log level to check

        Returns:
            True if should log, False otherwise
        """
        return self._level_order.get(level, 0) >= self._level_order.get(self.config.level, 1)

    def _log(
        self,
        level: LogLevel,
        component: str,
        message: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Internal logging method.

        Args:
            level: Log level
            component: Component name (engine, template, script)
            message: Log message
            context: Additional context data
        """
        if not self._should_log(level):
            return

        if not self.config.components.get(component, True):
            return

        if self.config.format == LogFormat.JSON:
            self._log_json(level, component, message, context)
        else:
            self._log_colored(level, component, message, context)

    def _stream(self) -> TextIO:
        return self.config.output or sys.stderr

    def _log_json(
        self,
        level: LogLevel,
        component: str,
        message: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Log in JSON format.

        Args:
            level: Log level
            component: Component name
            message: Log message
            context: Additional context data
        """
        log_entry = {
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "level": level.value,
            "component": component,
            "message": message,
        }
        if context:
            log_entry.update(context)

        print(json.dumps(log_entry, default=str), file=self._stream())

    def _log_colored(
        self,
        level: LogLevel,
        component: str,
        message: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Log in colored format.

        Args:
            level: Log level
            component: Component name
            message: Log message
            context: Additional context data
        """
        level_colors = {
            LogLevel.DEBUG: LIGHT_BLUE,
            LogLevel.INFO: CYAN,
            LogLevel.WARN: YELLOW,
            LogLevel.ERROR: RED,
        }

        color = level_colors.get(level, RESET)
        component_color = {
            "engine": GREEN,
            "template": MAGENTA,
            "script": ORANGE,
        }.get(component, RESET)

        # Format: [COMPONENT] message
        output = f"{component_color}[{component.upper()}]{RESET} {color}{message}{RESET}"

        if context and self.config.show_params:
            context_str = str(context)
            if len(context_str) > self.config.truncate_at:
                context_str = context_str[: self.config.truncate_at] + "..."
            output += f" {LIGHT_BLUE}{context_str}{RESET}"

        print(output, file=self._stream())


class InvocationLogger:
    """Logger for template invocation events."""

    def __init__(self, parent: EngineLogger, template_name: str, depth: int = 0):
        """Initialize invocation logger.

        Args:
            parent: Parent EngineLogger instance
            template_name: Template being rendered
            depth: Nesting depth of the invocation
        """
        self.parent = parent
        self.template_name = template_name
        self.depth = depth

    def _context(self, event: str, **extra: Any) -> dict[str, Any]:
        context: dict[str, Any] = {
            "template": self.template_name,
            "depth": self.depth,
            "event": event,
        }
        context.update(extra)
        return context

    def started(self, max_passes: int) -> None:
        """Log invocation start.

        Args:
            max_passes: Upper bound of render passes for this invocation
        """
        message = f"Template '{self.template_name}' started"
        if max_passes > 1:
            message += f" (up to {max_passes} passes)"

        self.parent._log(
            LogLevel.INFO,
            "template",
            message,
            self._context("template_started", max_passes=max_passes),
        )

    def pass_completed(self, pass_index: int, block_count: int, line_delta: int) -> None:
        """Log the end of one render pass.

        Args:
            pass_index: 0-based pass index
            block_count: Number of script blocks executed in the pass
            line_delta: Net lines removed by splicing
        """
        message = (
            f"Template '{self.template_name}' pass {pass_index + 1} done "
            f"({block_count} script blocks)"
        )

        self.parent._log(
            LogLevel.DEBUG,
            "template",
            message,
            self._context(
                "template_pass_completed",
                pass_index=pass_index,
                block_count=block_count,
                line_delta=line_delta,
            ),
        )

    def spliced_body(self, body: str) -> None:
        """Dump the spliced body that failed to compile."""
        self.parent._log(
            LogLevel.ERROR,
            "template",
            f"Spliced body of '{self.template_name}':\n{body}",
            self._context("template_spliced_body"),
        )

    def completed(self, duration_ms: int, passes: int, stop_reason: str) -> None:
        """Log invocation completion.

        Args:
            duration_ms: Render duration in milliseconds
            passes: Number of passes executed
            stop_reason: Why the recursion loop stopped
        """
        duration_s = duration_ms / 1000
        message = (
            f"Template '{self.template_name}' rendered ({passes} passes, {duration_s:.2f}s) ✓"
        )

        self.parent._log(
            LogLevel.INFO,
            "template",
            message,
            self._context(
                "template_completed",
                duration_ms=duration_ms,
                passes=passes,
                stop_reason=stop_reason,
            ),
        )

    def failed(self, error: Exception, duration_ms: int) -> None:
        """Log invocation failure.

        Args:
            error: Exception that caused failure
            duration_ms: Render duration in milliseconds
        """
        context = self._context(
            "template_failed",
            duration_ms=duration_ms,
            error=str(error),
            error_type=type(error).__name__,
        )
        code = getattr(error, "code", None)
        if code:
            context["error_code"] = code

        duration_s = duration_ms / 1000
        message = f"Template '{self.template_name}' failed ({duration_s:.2f}s): {error}"

        self.parent._log(LogLevel.ERROR, "template", message, context)

    def block(self, start_line: int) -> "ScriptLogger":
        """Get a logger for one script block of this template.

        Args:
            start_line: First line of the block in the template

        Returns:
            ScriptLogger instance
        """
        return ScriptLogger(self.parent, f"{self.template_name}:{start_line}", self.template_name)


class ScriptLogger:
    """Logger for script execution events."""

    def __init__(self, parent: EngineLogger, script_name: str, template_name: str | None = None):
        """Initialize script logger.

        Args:
            parent: Parent EngineLogger instance
            script_name: Script (or template:line for blocks) being run
            template_name: Owning template, for inline blocks
        """
        self.parent = parent
        self.script_name = script_name
        self.template_name = template_name

    def _context(self, event: str, **extra: Any) -> dict[str, Any]:
        context: dict[str, Any] = {"script": self.script_name, "event": event}
        if self.template_name:
            context["template"] = self.template_name
        context.update(extra)
        return context

    def executing(self) -> None:
        """Log script execution start."""
        self.parent._log(
            LogLevel.DEBUG,
            "script",
            f"Executing script '{self.script_name}'",
            self._context("script_executing"),
        )

    def completed(self, duration_ms: int, rendered_count: int | None = None) -> None:
        """Log script completion.

        Args:
            duration_ms: Execution duration in milliseconds
            rendered_count: Number of render() calls, for inline blocks
        """
        extra: dict[str, Any] = {"duration_ms": duration_ms}
        message = f"Script '{self.script_name}' completed ({duration_ms / 1000:.2f}s"
        if rendered_count is not None:
            extra["rendered_count"] = rendered_count
            message += f", {rendered_count} renders"
        message += ") ✓"

        self.parent._log(
            LogLevel.DEBUG,
            "script",
            message,
            self._context("script_completed", **extra),
        )

    def error(self, error_type: str, message_text: str) -> None:
        """Log script error.

        Args:
            error_type: Type of error (e.g., SCRIPT_RUNTIME, CANCELLED)
            message_text: Error message
        """
        self.parent._log(
            LogLevel.ERROR,
            "script",
            f"Script error ({error_type}): {message_text}",
            self._context("script_error", error_type=error_type, error=message_text),
        )
