"""Engine logging - hierarchical colored logging for template rendering."""

from .colors import (
    CYAN,
    GREEN,
    LIGHT_BLUE,
    MAGENTA,
    ORANGE,
    RED,
    RESET,
    YELLOW,
)
from .logger import (
    EngineLogger,
    InvocationLogger,
    LogConfig,
    ScriptLogger,
)

__all__ = [
    # Logger classes
    "EngineLogger",
    "InvocationLogger",
    "ScriptLogger",
    "LogConfig",
    # Colors
    "RESET",
    "GREEN",
    "RED",
    "YELLOW",
    "ORANGE",
    "LIGHT_BLUE",
    "CYAN",
    "MAGENTA",
]
