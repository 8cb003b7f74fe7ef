"""Templating engine facade."""

from .engine import SCRIPT_BUILTINS, Engine, read_file, write_file

__all__ = [
    "Engine",
    "SCRIPT_BUILTINS",
    "read_file",
    "write_file",
]
