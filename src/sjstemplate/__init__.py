"""sjstemplate - Jinja2 templates with embedded Python script blocks.

Script blocks are fenced with ```sjs ... sjs``` inside a template body. They
run in a persistent restricted runtime, can rewrite the render context and
can request further render passes with recurse().
"""

from sjstemplate.config import EngineConfig
from sjstemplate.engine import Engine
from sjstemplate.errors import EngineError, ErrorCategory
from sjstemplate.template import ComputedStore, Context

__version__ = "0.1.0"
__all__ = [
    "__version__",
    "Engine",
    "EngineConfig",
    "EngineError",
    "ErrorCategory",
    "ComputedStore",
    "Context",
]
