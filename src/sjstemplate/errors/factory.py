"""Error factory for creating EngineErrors from any exception type."""

from typing import Any

from .errors import EngineError
from .matchers import ErrorMatcherChain
from .registry import ErrorRegistry


class ErrorFactory:
    """Creates EngineErrors from any exception type."""

    def __init__(
        self,
        registry: ErrorRegistry | None = None,
        matcher_chain: ErrorMatcherChain | None = None,
    ):
        """Initialize error factory.

        Args:
            registry: Error registry (defaults to new ErrorRegistry())
            matcher_chain: Matcher chain (defaults to new ErrorMatcherChain())
        """
        self.registry = registry or ErrorRegistry()
        self.matcher_chain = matcher_chain or ErrorMatcherChain()

    def from_exception(
        self,
        error: BaseException,
        template: str | None = None,
        script: str | None = None,
        fallback_code: str | None = None,
    ) -> EngineError:
        """Convert any exception to EngineError.

        Args:
            error: Exception to convert
            template: Optional template name
            script: Optional script name
            fallback_code: Code used instead of INTERNAL_ERROR when no
                specific matcher applies

        Returns:
            EngineError instance
        """
        # If already an EngineError, just add context
        if isinstance(error, EngineError):
            return error.with_context(template=template, script=script)

        match_result = self.matcher_chain.match(error)

        context = match_result.context.copy()
        if template and "template" not in context:
            context["template"] = template
        if script and "script" not in context:
            context["script"] = script

        code = match_result.error_code
        if code == "INTERNAL_ERROR" and fallback_code:
            code = fallback_code

        engine_error = self.registry.create(code=code, context=context)

        # Override retryable if specified in match result
        if match_result.retryable is not None:
            engine_error.retryable = match_result.retryable

        return engine_error

    def create(
        self,
        code: str,
        context: dict[str, Any] | None = None,
        cause: EngineError | None = None,
        **kwargs: Any,
    ) -> EngineError:
        """Create EngineError directly from code.

        Args:
            code: Error code
            context: Context variables for template interpolation
            cause: Optional cause error
            **kwargs: Additional context variables

        Returns:
            EngineError instance
        """
        merged_context = dict(context or {})
        merged_context.update(kwargs)

        return self.registry.create(code=code, context=merged_context, cause=cause)


# Convenience singleton
_default_factory: ErrorFactory | None = None


def get_error_factory() -> ErrorFactory:
    """Get default error factory singleton.

    Returns:
        Default ErrorFactory instance
    """
    global _default_factory  # noqa: PLW0603
    if _default_factory is None:
        _default_factory = ErrorFactory()
    return _default_factory


def create_error(code: str, cause: EngineError | None = None, **context: Any) -> EngineError:
    """Convenience function to create error.

    Args:
        code: Error code
        cause: Optional cause error
        **context: Context variables for template interpolation

    Returns:
        EngineError instance
    """
    return get_error_factory().create(code, context, cause=cause)
