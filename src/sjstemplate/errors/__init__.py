"""Engine error handling - Structured errors with context."""

from .errors import (
    EngineError,
    ErrorCategory,
    ErrorMatcher,
    ErrorTemplate,
    MatchResult,
    ScriptFrame,
)
from .factory import ErrorFactory, create_error, get_error_factory
from .matchers import ErrorMatcherChain
from .registry import ErrorRegistry

__all__ = [
    # Core error types
    "EngineError",
    "ErrorCategory",
    "ErrorTemplate",
    "MatchResult",
    "ScriptFrame",
    # Registry and factory
    "ErrorRegistry",
    "ErrorFactory",
    "ErrorMatcherChain",
    "ErrorMatcher",
    # Convenience functions
    "get_error_factory",
    "create_error",
]
