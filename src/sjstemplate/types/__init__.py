"""Shared types for sjstemplate.

Import from here rather than submodules:
    from sjstemplate.types import LogLevel, ValidationResult
"""

from .enums import LogFormat, LogLevel, StopReason
from .validation import ValidationIssue, ValidationResult

__all__ = [
    # Enums
    "LogLevel",
    "LogFormat",
    "StopReason",
    # Validation
    "ValidationIssue",
    "ValidationResult",
]
