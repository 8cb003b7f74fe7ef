"""Python script runtime for sjstemplate.

Runs script files and inline template blocks with several security layers:
1. Import restrictions (AST-based whitelist, public module attributes only)
2. Attribute restrictions (no dunder or frame/code attribute access)
3. Builtin restrictions (no eval, exec, open, etc.)
4. Cooperative cancellation (deadline/cancel event checked per line and
   loop jump through sys.monitoring)

Unlike a one-shot sandbox, the runtime keeps a single namespace for its
whole lifetime: variables, functions and host callbacks defined by one
script are visible to every later script and template block.
"""

import ast
import builtins as builtins_module
import contextlib
import inspect
import random
import traceback
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from types import CodeType, ModuleType, SimpleNamespace, TracebackType
from typing import Any

from sjstemplate.errors import EngineError, ScriptFrame, create_error

from .monitor import ScriptInterrupted, line_monitor
from .types import DEFAULT_ALLOWED_IMPORTS, RunControl, SandboxConfig, SourceMapCache


class SecurityError(Exception):
    """Raised when code violates security policy."""

    def __init__(self, message: str, lineno: int | None = None):
        super().__init__(message)
        self.lineno = lineno


# Security constants
SAFE_IMPORTS = set(DEFAULT_ALLOWED_IMPORTS)

DANGEROUS_BUILTINS = {
    "eval",
    "exec",
    "compile",
    "__import__",
    "open",
    "input",
    "breakpoint",
    "exit",
    "quit",
    "help",
    "globals",
    "locals",
    "vars",
    "dir",
    "getattr",
    "setattr",
    "delattr",
    "classmethod",
    "staticmethod",
    "property",
    "super",
    "type",
    "memoryview",
}

DISALLOWED_NAMES = {"eval", "exec", "compile", "__import__", "__builtins__"}

# Frame, code and traceback links lead back to host globals and builtins
BLOCKED_ATTRIBUTES = {
    "gi_frame",
    "gi_code",
    "gi_yieldfrom",
    "cr_frame",
    "cr_code",
    "cr_await",
    "ag_frame",
    "ag_code",
    "ag_await",
    "tb_frame",
    "tb_next",
    "f_back",
    "f_globals",
    "f_locals",
    "f_builtins",
    "f_code",
}

# Module members that look attributes up by string, out of reach of the AST check
DENIED_MODULE_ATTRIBUTES = {
    "operator": {"attrgetter", "methodcaller"},
    "string": {"Formatter"},
    "typing": {"get_type_hints", "ForwardRef", "evaluate_forward_ref"},
}


@dataclass
class CompiledScript:
    """A validated script ready to run."""

    name: str
    body: CodeType
    result: CodeType | None = None  # trailing expression, evaluated for the return value


class ScriptRuntime:
    """Persistent, restricted Python runtime.

    Example:
        >>> runtime = ScriptRuntime()
        >>> runtime.run("setup.py", "def add(a, b):\\n    return a + b")
        >>> runtime.call("add", 1, 2)
        3
    """

    def __init__(
        self,
        config: SandboxConfig | None = None,
        rand_source: random.Random | None = None,
    ):
        """Initialize runtime.

        Args:
            config: Sandbox configuration (default: SandboxConfig())
            rand_source: Generator behind the `random` module seen by
                scripts (default: seeded from config.seed when set,
                otherwise the process-wide generator)
        """
        self.config = config or SandboxConfig()
        if rand_source is None and self.config.seed is not None:
            rand_source = random.Random(self.config.seed)
        self.rand_source = rand_source
        self.allowed_imports = set(self.config.allowed_imports or SAFE_IMPORTS)
        self.source_maps = SourceMapCache()
        self._namespace = self._create_safe_globals()
        self._control: RunControl | None = None

    # ─────────────────────────────────────────────────────────────
    # Bindings
    # ─────────────────────────────────────────────────────────────

    def get(self, name: str, default: Any = None) -> Any:
        return self._namespace.get(name, default)

    def has(self, name: str) -> bool:
        return name in self._namespace

    def set(self, name: str, value: Any) -> None:
        self._namespace[name] = value

    def delete(self, name: str) -> None:
        self._namespace.pop(name, None)

    def register(self, name: str, fn: Callable[..., Any]) -> None:
        """Expose a host function to scripts under `name`."""
        if not callable(fn):
            raise create_error("INVALID_ARGUMENT", function=name, reason="not callable")
        self._namespace[name] = fn

    @property
    def control(self) -> RunControl | None:
        """RunControl of the outermost call currently executing, if any."""
        return self._control

    @contextlib.contextmanager
    def controlled(self, control: RunControl | None) -> Iterator[RunControl | None]:
        """Make `control` the default for every run, call and invoke inside.

        Nested scopes without a control of their own keep the outer one.
        """
        previous = self._control
        if control is not None:
            self._control = control
        try:
            yield self._control
        finally:
            self._control = previous

    def current_script(self) -> str | None:
        """Name of the innermost script frame on the current call stack."""
        frame = inspect.currentframe()
        while frame is not None:
            if frame.f_code.co_filename in self.source_maps:
                return frame.f_code.co_filename
            frame = frame.f_back
        return None

    # ─────────────────────────────────────────────────────────────
    # Compilation
    # ─────────────────────────────────────────────────────────────

    def compile(self, name: str, source: str, start_line: int = 1) -> CompiledScript:
        """Validate and compile script source.

        Line numbers of the compiled code are shifted so that line 1 of
        `source` reports as `start_line`.

        Args:
            name: Script name used in tracebacks and error messages
            source: Python source
            start_line: Line of the first source line in its original file

        Returns:
            CompiledScript

        Raises:
            EngineError: SCRIPT_COMPILATION or SCRIPT_SECURITY
        """
        offset = max(start_line, 1) - 1

        try:
            tree = ast.parse(source, filename=name, mode="exec")
        except SyntaxError as e:
            raise create_error(
                "SCRIPT_COMPILATION",
                script=name,
                line=(e.lineno or 1) + offset,
                error=e.msg,
            ) from None

        if offset:
            ast.increment_lineno(tree, offset)

        try:
            self._validate_tree(tree)
        except SecurityError as e:
            raise create_error(
                "SCRIPT_SECURITY",
                script=name,
                line=e.lineno,
                error=str(e),
            ) from None

        result_code = None
        if tree.body and isinstance(tree.body[-1], ast.Expr):
            last = tree.body.pop()
            result_code = compile(ast.Expression(body=last.value), name, "eval")

        self.source_maps.add(name, source, offset)

        return CompiledScript(
            name=name,
            body=compile(tree, name, "exec"),
            result=result_code,
        )

    def _validate_tree(self, tree: ast.AST) -> None:
        """Check imports, blocked attributes and disallowed names.

        Raises:
            SecurityError: On the first violation found
        """
        for node in ast.walk(tree):
            lineno = getattr(node, "lineno", None)
            if isinstance(node, ast.Import):
                for alias in node.names:
                    module = alias.name.split(".")[0]
                    if module not in self.allowed_imports:
                        raise SecurityError(
                            f"Import '{module}' not allowed. "
                            f"Allowed imports: {sorted(self.allowed_imports)}",
                            lineno,
                        )
            elif isinstance(node, ast.ImportFrom):
                if node.level or not node.module:
                    raise SecurityError("Relative imports are not allowed", lineno)
                module = node.module.split(".")[0]
                if module not in self.allowed_imports:
                    raise SecurityError(
                        f"Import from '{module}' not allowed. "
                        f"Allowed imports: {sorted(self.allowed_imports)}",
                        lineno,
                    )
            elif isinstance(node, ast.Attribute):
                if node.attr.startswith("__") and node.attr.endswith("__"):
                    raise SecurityError(f"Access to '{node.attr}' is not allowed", lineno)
                if node.attr in BLOCKED_ATTRIBUTES:
                    raise SecurityError(f"Access to '{node.attr}' is not allowed", lineno)
            elif isinstance(node, ast.Name) and node.id in DISALLOWED_NAMES:
                raise SecurityError(f"Use of '{node.id}' is not allowed", lineno)

    def _create_safe_import(self) -> Any:
        """Create a safe __import__ function that only allows whitelisted modules."""

        def safe_import(name: str, *args: Any, **kwargs: Any) -> Any:
            module_name = name.split(".")[0]
            if module_name not in self.allowed_imports:
                raise SecurityError(f"Import '{module_name}' not allowed")
            return self._module_view(__import__(name, *args, **kwargs))

        return safe_import

    def _module_view(
        self, module: ModuleType, seen: dict[str, SimpleNamespace] | None = None
    ) -> SimpleNamespace:
        """Snapshot of a module's public attributes.

        Private names, string-based attribute lookups and modules of other
        packages (`uuid.os`, `typing.sys`) are left out. Submodules of the
        same package are wrapped in turn. The `random` functions are bound
        to the runtime's rand_source when one is set.
        """
        seen = {} if seen is None else seen
        if module.__name__ in seen:
            return seen[module.__name__]

        view = SimpleNamespace()
        seen[module.__name__] = view
        package = module.__name__.split(".")[0]
        denied = DENIED_MODULE_ATTRIBUTES.get(module.__name__, set())
        rebind = module.__name__ == "random" and self.rand_source is not None
        for attr, value in vars(module).items():
            if attr.startswith("_") or attr in denied:
                continue
            if isinstance(value, ModuleType):
                if value.__name__.split(".")[0] != package:
                    continue
                value = self._module_view(value, seen)
            elif rebind and inspect.ismethod(getattr(self.rand_source, attr, None)):
                value = getattr(self.rand_source, attr)
            setattr(view, attr, value)
        return view

    def _create_safe_globals(self) -> dict[str, Any]:
        """Create the persistent namespace with restricted builtins."""
        safe_builtins = {}
        for name in dir(builtins_module):
            if name not in DANGEROUS_BUILTINS:
                with contextlib.suppress(AttributeError):
                    safe_builtins[name] = getattr(builtins_module, name)

        safe_builtins["__import__"] = self._create_safe_import()

        return {"__builtins__": safe_builtins, "__name__": "__sjs__"}

    # ─────────────────────────────────────────────────────────────
    # Execution
    # ─────────────────────────────────────────────────────────────

    def run(
        self,
        name: str,
        source: str,
        start_line: int = 1,
        control: RunControl | None = None,
    ) -> Any:
        """Compile and run script source in the shared namespace.

        Args:
            name: Script name
            source: Python source
            start_line: Line of the first source line in its original file
            control: Deadline/cancellation for this run (inherits the
                enclosing run's control when nested)

        Returns:
            Value of a trailing expression statement, else None

        Raises:
            EngineError: SCRIPT_COMPILATION, SCRIPT_SECURITY, SCRIPT_RUNTIME
                or CANCELLED
        """
        script = self.compile(name, source, start_line)

        def _run() -> Any:
            exec(script.body, self._namespace)
            if script.result is not None:
                return eval(script.result, self._namespace)
            return None

        return self._execute(name, _run, control)

    def call(self, fn_name: str, *args: Any, control: RunControl | None = None) -> Any:
        """Call a function defined in the namespace.

        Raises:
            EngineError: FUNCTION_NOT_FOUND if `fn_name` is not a callable
                binding, otherwise as for run()
        """
        fn = self._namespace.get(fn_name)
        if fn is None or not callable(fn):
            raise create_error("FUNCTION_NOT_FOUND", function=fn_name)

        return self._execute(fn_name, lambda: fn(*args), control)

    def invoke(self, name: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Call `fn` with the same error conversion and cancellation as run().

        Used for script-defined callables handed to the host, such as
        template functions registered from a script. `name` labels errors
        that cannot be attributed to a script frame.
        """
        return self._execute(name, lambda: fn(*args, **kwargs), None)

    def _execute(
        self,
        name: str,
        fn: Callable[[], Any],
        control: RunControl | None,
    ) -> Any:
        previous_control = self._control
        active = control or previous_control or RunControl()
        self._control = active

        watch: contextlib.AbstractContextManager[None] = contextlib.nullcontext()
        if active.timeout is not None or active.cancel_event is not None:
            watch = line_monitor.watch(active, self.source_maps)

        try:
            with watch:
                result = fn()
                reason = active.check()
                if reason:
                    raise ScriptInterrupted(reason)
            return result
        except ScriptInterrupted as e:
            raise create_error("CANCELLED", script=name, reason=e.reason) from None
        except EngineError as e:
            if e.code == "CANCELLED":
                raise
            raise self._runtime_error(name, e, e.__traceback__, cause=e) from e
        except SecurityError as e:
            raise create_error("SCRIPT_SECURITY", script=name, error=str(e)) from e
        except Exception as e:
            raise self._runtime_error(name, e, e.__traceback__) from e
        finally:
            self._control = previous_control

    def _runtime_error(
        self,
        name: str,
        error: BaseException,
        tb: TracebackType | None,
        cause: EngineError | None = None,
    ) -> EngineError:
        frames = self.script_frames(tb)
        innermost = frames[-1] if frames else None
        return create_error(
            "SCRIPT_RUNTIME",
            cause=cause,
            script=innermost.name if innermost else name,
            line=innermost.line if innermost else 0,
            error=str(error),
            error_type=error.code if isinstance(error, EngineError) else type(error).__name__,
            stack=frames,
        )

    def script_frames(self, tb: TracebackType | None) -> list[ScriptFrame]:
        """Script frames of a traceback in original coordinates, outermost first."""
        frames: list[ScriptFrame] = []
        for summary in traceback.extract_tb(tb):
            source_map = self.source_maps.get(summary.filename)
            if source_map is None or summary.lineno is None:
                continue
            colno = getattr(summary, "colno", None)
            frames.append(
                ScriptFrame(
                    name=summary.filename,
                    line=summary.lineno,
                    column=colno + 1 if colno is not None else None,
                    source_line=source_map.source_line(summary.lineno),
                )
            )
        return frames
