"""Restricted Python script runtime."""

from .sandbox import (
    DANGEROUS_BUILTINS,
    SAFE_IMPORTS,
    CompiledScript,
    ScriptInterrupted,
    ScriptRuntime,
    SecurityError,
)
from .types import RunControl, SandboxConfig, SourceMap, SourceMapCache

__all__ = [
    "ScriptRuntime",
    "CompiledScript",
    "SecurityError",
    "ScriptInterrupted",
    "SAFE_IMPORTS",
    "DANGEROUS_BUILTINS",
    "SandboxConfig",
    "RunControl",
    "SourceMap",
    "SourceMapCache",
]
