"""Error matchers for converting exceptions to EngineErrors."""

from jinja2 import TemplateSyntaxError

from .errors import ErrorMatcher, MatchResult


class TimeoutErrorMatcher(ErrorMatcher):
    """Matches timeout errors."""

    def matches(self, error: BaseException) -> bool:
        """Check if error is a timeout error.

        Args:
            error: Exception to check

        Returns:
            True if error is a timeout error
        """
        return isinstance(error, TimeoutError)

    def extract(self, error: BaseException) -> MatchResult:
        """Extract timeout error info.

        Args:
            error: Exception to extract from

        Returns:
            MatchResult with CANCELLED code
        """
        return MatchResult(
            error_code="CANCELLED",
            context={"reason": str(error) or "timeout"},
            retryable=True,
        )


class TemplateSyntaxErrorMatcher(ErrorMatcher):
    """Matches Jinja template syntax errors."""

    def matches(self, error: BaseException) -> bool:
        return isinstance(error, TemplateSyntaxError)

    def extract(self, error: BaseException) -> MatchResult:
        assert isinstance(error, TemplateSyntaxError)
        name = error.name or error.filename or "<template>"
        return MatchResult(
            error_code="TEMPLATE_COMPILATION",
            context={
                "template": name,
                "line": error.lineno,
                "error": f"template: {name}:{error.lineno}: {error.message}",
            },
            retryable=False,
        )


class SyntaxErrorMatcher(ErrorMatcher):
    """Matches Python syntax errors raised by script sources."""

    def matches(self, error: BaseException) -> bool:
        """Check if error is a syntax error.

        Args:
            error: Exception to check

        Returns:
            True if error is a syntax error
        """
        return isinstance(error, SyntaxError)

    def extract(self, error: BaseException) -> MatchResult:
        """Extract syntax error info.

        Args:
            error: Exception to extract from

        Returns:
            MatchResult with SCRIPT_COMPILATION code
        """
        assert isinstance(error, SyntaxError)
        return MatchResult(
            error_code="SCRIPT_COMPILATION",
            context={
                "script": error.filename or "<script>",
                "line": error.lineno,
                "error": error.msg,
            },
            retryable=False,
        )


class GenericErrorMatcher(ErrorMatcher):
    """Fallback matcher for any exception."""

    def matches(self, error: BaseException) -> bool:
        """Always matches.

        Args:
            error: Exception to check

        Returns:
            Always True (fallback matcher)
        """
        return True

    def extract(self, error: BaseException) -> MatchResult:
        """Extract generic error info.

        Args:
            error: Exception to extract from

        Returns:
            MatchResult with INTERNAL_ERROR code
        """
        return MatchResult(
            error_code="INTERNAL_ERROR",
            context={"error": str(error), "error_type": type(error).__name__},
            retryable=False,
        )


class ErrorMatcherChain:
    """Ordered chain of matchers. First match wins."""

    def __init__(self) -> None:
        """Initialize matcher chain with built-in matchers."""
        self.matchers: list[ErrorMatcher] = []
        self._load_builtin_matchers()

    def match(self, error: BaseException) -> MatchResult:
        """Find first matching matcher and extract result.

        Args:
            error: Exception to match

        Returns:
            MatchResult from first matching matcher
        """
        for matcher in self.matchers:
            if matcher.matches(error):
                return matcher.extract(error)

        # Should never reach here due to GenericErrorMatcher
        return MatchResult(
            error_code="INTERNAL_ERROR",
            context={"error": str(error), "error_type": type(error).__name__},
            retryable=False,
        )

    def _load_builtin_matchers(self) -> None:
        """Load built-in matchers in priority order."""
        # Order matters - more specific matchers first
        self.matchers = [
            TimeoutErrorMatcher(),
            TemplateSyntaxErrorMatcher(),
            SyntaxErrorMatcher(),
            GenericErrorMatcher(),  # Fallback - must be last
        ]
