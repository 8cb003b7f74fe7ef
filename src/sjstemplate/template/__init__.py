"""Template rendering - script blocks, context and recursion over Jinja2."""

from .compiler import CompiledTemplate, TemplateCompiler, format_locator
from .context import CONTEXT_BINDING, ComputedStore, Context, ContextStack, export_value
from .functions import BUILTIN_TEMPLATE_FUNCTIONS, FunctionRegistry
from .lines import adjust_line_numbers, remap_error
from .parser import (
    SCRIPT_BLOCK_PATTERN,
    extract_blocks,
    splice,
    split_body,
)
from .recursion import RECURSE_DIRECTIVE, RecursionController, RecursionState, parse_directive
from .renderer import TemplateRenderer
from .scripts import RENDER_BINDING, RenderCollector, execute_block
from .types import ScriptBlock, SpliceResult

__all__ = [
    # Types
    "ScriptBlock",
    "SpliceResult",
    # Extraction
    "SCRIPT_BLOCK_PATTERN",
    "extract_blocks",
    "split_body",
    "splice",
    # Script blocks
    "RENDER_BINDING",
    "RenderCollector",
    "execute_block",
    # Context
    "CONTEXT_BINDING",
    "ComputedStore",
    "Context",
    "ContextStack",
    "export_value",
    # Recursion
    "RECURSE_DIRECTIVE",
    "RecursionController",
    "RecursionState",
    "parse_directive",
    # Compilation
    "CompiledTemplate",
    "TemplateCompiler",
    "format_locator",
    "FunctionRegistry",
    "BUILTIN_TEMPLATE_FUNCTIONS",
    # Line numbers
    "adjust_line_numbers",
    "remap_error",
    # Orchestration
    "TemplateRenderer",
]
