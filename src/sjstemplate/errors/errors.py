"""Engine error types and error matcher protocol."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Error source categories."""

    COMPILATION = "COMPILATION"
    RUNTIME = "RUNTIME"
    REGISTRY = "REGISTRY"
    CANCELLATION = "CANCELLATION"
    IO = "IO"
    VALIDATION = "VALIDATION"
    SYSTEM = "SYSTEM"


@dataclass
class ScriptFrame:
    """One frame of a script call stack, in original template coordinates."""

    name: str
    line: int
    column: int | None = None
    source_line: str | None = None

    def __str__(self) -> str:
        location = f"{self.name}:{self.line}"
        if self.column is not None:
            location = f"{location}:{self.column}"
        return location

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "line": self.line,
            "column": self.column,
            "source_line": self.source_line,
        }


@dataclass
class EngineError(Exception):
    """Structured error with context. Base exception for all engine errors."""

    # Identity
    code: str  # e.g., "TEMPLATE_RUNTIME"
    category: ErrorCategory

    # Messages
    message: str  # Human-readable summary
    detail: str | None = None  # Extended explanation
    suggestion: str | None = None  # Actionable fix

    # Context
    retryable: bool = False  # Is retry potentially useful?
    template: str | None = None  # Which template failed
    script: str | None = None  # Which script failed
    line: int | None = None  # Line in the original source
    stack: list[ScriptFrame] = field(default_factory=list)

    # Error chain (max depth 3)
    cause: "EngineError | None" = None

    # Metadata
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def __post_init__(self) -> None:
        """Set Exception message."""
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Serialize for logging and reporting.

        Returns:
            Dictionary representation of the error
        """
        return {
            "code": self.code,
            "category": self.category.value,
            "message": self.message,
            "detail": self.detail,
            "suggestion": self.suggestion,
            "retryable": self.retryable,
            "template": self.template,
            "script": self.script,
            "line": self.line,
            "stack": [frame.to_dict() for frame in self.stack],
            "timestamp": self.timestamp.isoformat(),
            "cause": self.cause.to_dict() if self.cause else None,
        }

    def with_context(
        self,
        template: str | None = None,
        script: str | None = None,
        detail: str | None = None,
        message: str | None = None,
    ) -> "EngineError":
        """Return copy with additional context.

        Args:
            template: Optional template name
            script: Optional script name
            detail: Optional replacement detail
            message: Optional replacement message

        Returns:
            New EngineError instance with updated context
        """
        return EngineError(
            code=self.code,
            category=self.category,
            message=message or self.message,
            detail=detail or self.detail,
            suggestion=self.suggestion,
            retryable=self.retryable,
            template=template or self.template,
            script=script or self.script,
            line=self.line,
            stack=list(self.stack),
            cause=self.cause,
            timestamp=self.timestamp,
        )


@dataclass
class ErrorTemplate:
    """Template for creating errors."""

    code: str
    category: ErrorCategory
    message_template: str  # "Template '{template}' failed to compile"
    detail_template: str | None = None
    suggestion_template: str | None = None
    default_retryable: bool = False


@dataclass
class MatchResult:
    """Result of matching an exception."""

    error_code: str
    context: dict[str, Any]
    retryable: bool | None = None  # None = use template default


class ErrorMatcher(ABC):
    """Base class for exception matchers."""

    @abstractmethod
    def matches(self, error: BaseException) -> bool:
        """Check if this matcher handles the error.

        Args:
            error: Exception to check

        Returns:
            True if this matcher can handle the error
        """

    @abstractmethod
    def extract(self, error: BaseException) -> MatchResult:
        """Extract engine error info from the exception.

        Args:
            error: Exception to extract from

        Returns:
            MatchResult with error code and context
        """
