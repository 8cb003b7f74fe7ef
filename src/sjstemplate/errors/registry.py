"""Error registry for creating errors from templates."""

from typing import Any

from .errors import EngineError, ErrorCategory, ErrorTemplate


class ErrorRegistry:
    """Registry of error templates. Creates errors from templates + context."""

    def __init__(self) -> None:
        """Initialize error registry with built-in templates."""
        self._templates: dict[str, ErrorTemplate] = {}
        self._load_builtin_templates()

    def get_template(self, code: str) -> ErrorTemplate | None:
        """Get template by error code.

        Args:
            code: Error code to look up

        Returns:
            ErrorTemplate if found, None otherwise
        """
        return self._templates.get(code)

    def list_codes(self) -> list[str]:
        """List all registered error codes.

        Returns:
            List of error codes
        """
        return list(self._templates.keys())

    def register(self, template: ErrorTemplate) -> None:
        """Add or replace an error template."""
        self._templates[template.code] = template

    def create(
        self,
        code: str,
        context: dict[str, Any] | None = None,
        cause: EngineError | None = None,
    ) -> EngineError:
        """Create error instance from template + context.

        Args:
            code: Error code
            context: Context variables for template interpolation
            cause: Optional cause error

        Returns:
            EngineError instance

        Raises:
            ValueError: If error code not found
        """
        template = self.get_template(code)
        if not template:
            msg = f"Unknown error code: {code}"
            raise ValueError(msg)

        context = context or {}

        # Interpolate templates
        message = self._interpolate(template.message_template, context)
        detail = self._interpolate(template.detail_template, context)
        suggestion = self._interpolate(template.suggestion_template, context)

        # Ensure message is not None
        if message is None:
            message = f"Error {code}"

        return EngineError(
            code=template.code,
            category=template.category,
            message=message,
            detail=detail,
            suggestion=suggestion,
            retryable=template.default_retryable,
            template=context.get("template"),
            script=context.get("script"),
            line=context.get("line"),
            stack=list(context.get("stack") or []),
            cause=cause,
        )

    def _interpolate(
        self,
        template: str | None,
        context: dict[str, Any],
    ) -> str | None:
        """Safe string interpolation.

        Args:
            template: Template string with {var} placeholders
            context: Context variables

        Returns:
            Interpolated string or None if template is None
        """
        if template is None:
            return None

        try:
            return template.format(**context)
        except (KeyError, IndexError):
            # Missing context variable - return template as-is
            return template

    def _load_builtin_templates(self) -> None:
        """Load hardcoded built-in templates."""
        # COMPILATION Errors
        self._templates["TEMPLATE_COMPILATION"] = ErrorTemplate(
            code="TEMPLATE_COMPILATION",
            category=ErrorCategory.COMPILATION,
            message_template="{error}",
            detail_template="Template '{template}' could not be compiled",
            suggestion_template="Check the template syntax near the reported line",
        )

        self._templates["SCRIPT_COMPILATION"] = ErrorTemplate(
            code="SCRIPT_COMPILATION",
            category=ErrorCategory.COMPILATION,
            message_template="{script}:{line}: {error}",
            detail_template="Script '{script}' could not be compiled",
            suggestion_template="Check the script syntax near the reported line",
        )

        self._templates["SCRIPT_SECURITY"] = ErrorTemplate(
            code="SCRIPT_SECURITY",
            category=ErrorCategory.COMPILATION,
            message_template="{script}: {error}",
            detail_template="Script '{script}' uses a construct the sandbox does not allow",
            suggestion_template="Only whitelisted modules may be imported from scripts",
        )

        # RUNTIME Errors
        self._templates["TEMPLATE_RUNTIME"] = ErrorTemplate(
            code="TEMPLATE_RUNTIME",
            category=ErrorCategory.RUNTIME,
            message_template="{error}",
            detail_template="Template '{template}' failed during execution",
        )

        self._templates["SCRIPT_RUNTIME"] = ErrorTemplate(
            code="SCRIPT_RUNTIME",
            category=ErrorCategory.RUNTIME,
            message_template="{script}:{line}: {error_type}: {error}",
            detail_template="Script '{script}' raised an exception",
        )

        self._templates["FUNCTION_NOT_FOUND"] = ErrorTemplate(
            code="FUNCTION_NOT_FOUND",
            category=ErrorCategory.RUNTIME,
            message_template="Function '{function}' is not defined",
            detail_template="No callable named '{function}' exists in the script runtime",
            suggestion_template="Load the script that defines '{function}' before calling it",
        )

        self._templates["RENDER_FAILED"] = ErrorTemplate(
            code="RENDER_FAILED",
            category=ErrorCategory.RUNTIME,
            message_template="Rendering '{template}' failed: {error}",
            detail_template="Unexpected {error_type} while rendering",
        )

        self._templates["INTERNAL_ERROR"] = ErrorTemplate(
            code="INTERNAL_ERROR",
            category=ErrorCategory.RUNTIME,
            message_template="Internal error: {error}",
            detail_template="Unexpected {error_type}",
        )

        # REGISTRY Errors
        self._templates["RESERVED_NAME"] = ErrorTemplate(
            code="RESERVED_NAME",
            category=ErrorCategory.REGISTRY,
            message_template="Reserved name '{function}': {reason}",
            suggestion_template="Choose a different function name",
        )

        self._templates["INVALID_ARGUMENT"] = ErrorTemplate(
            code="INVALID_ARGUMENT",
            category=ErrorCategory.REGISTRY,
            message_template="Invalid argument to '{function}': {reason}",
        )

        # CANCELLATION Errors
        self._templates["CANCELLED"] = ErrorTemplate(
            code="CANCELLED",
            category=ErrorCategory.CANCELLATION,
            message_template="Execution cancelled: {reason}",
            detail_template="Script '{script}' was interrupted",
            suggestion_template="Increase the timeout or check the script for endless loops",
            default_retryable=True,
        )

        # IO Errors
        self._templates["READ_FAILED"] = ErrorTemplate(
            code="READ_FAILED",
            category=ErrorCategory.IO,
            message_template="Failed to read '{path}'",
            detail_template="Searched: {searched}",
            suggestion_template="Check the path and the configured search locations",
        )

        self._templates["WRITE_FAILED"] = ErrorTemplate(
            code="WRITE_FAILED",
            category=ErrorCategory.IO,
            message_template="Failed to write '{path}'",
            detail_template="{error}",
            suggestion_template="Check file permissions and disk space",
        )

        # VALIDATION Errors
        self._templates["RECURSE_INVALID"] = ErrorTemplate(
            code="RECURSE_INVALID",
            category=ErrorCategory.VALIDATION,
            message_template="recurse called more than once in a single pass of '{template}'",
            suggestion_template="Call recurse at most once per template pass",
        )

        # SYSTEM Errors
        self._templates["NOT_INITIALIZED"] = ErrorTemplate(
            code="NOT_INITIALIZED",
            category=ErrorCategory.SYSTEM,
            message_template="Engine is not initialized",
            suggestion_template="Call init() before rendering or running scripts",
        )

        self._templates["ALREADY_INITIALIZED"] = ErrorTemplate(
            code="ALREADY_INITIALIZED",
            category=ErrorCategory.SYSTEM,
            message_template="Engine is already initialized",
            suggestion_template="Create a new Engine instead of calling init() twice",
        )

        self._templates["CONFIG_INVALID"] = ErrorTemplate(
            code="CONFIG_INVALID",
            category=ErrorCategory.SYSTEM,
            message_template="Invalid configuration: {error}",
            detail_template="{path}",
            suggestion_template="Fix the configuration values and reload",
        )
