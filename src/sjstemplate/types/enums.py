"""Shared enumerations for sjstemplate."""

from enum import Enum


class LogLevel(str, Enum):
    """Log verbosity level."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"


class LogFormat(str, Enum):
    """Log output format."""

    COLORED = "colored"
    JSON = "json"


class StopReason(str, Enum):
    """Why a recursive render stopped issuing passes."""

    SINGLE_PASS = "single_pass"
    FIXED_POINT = "fixed_point"
    CEILING = "ceiling"
    NO_SIGNAL = "no_signal"
