"""Templating engine facade.

Wires the script runtime, the template compiler and the render orchestrator
together and exposes the host functions scripts and templates call back into.
"""

import posixpath
import random
import threading
import time
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from sjstemplate.config import EngineConfig, load_config
from sjstemplate.errors import EngineError, ErrorFactory, create_error, get_error_factory
from sjstemplate.logging import EngineLogger
from sjstemplate.sandbox import RunControl, ScriptRuntime
from sjstemplate.telemetry import setup_telemetry
from sjstemplate.template import (
    CONTEXT_BINDING,
    RENDER_BINDING,
    ComputedStore,
    Context,
    ContextStack,
    FunctionRegistry,
    RecursionController,
    TemplateCompiler,
    TemplateRenderer,
    export_value,
)
from sjstemplate.types import LogLevel

ReadFunc = Callable[[str], bytes]
WriteFunc = Callable[[str, bytes], None]

# Names every script sees; user script functions may not shadow them.
SCRIPT_BUILTINS = (
    RENDER_BINDING,
    CONTEXT_BINDING,
    "require",
    "recurse",
    "template_file",
    "template_string",
    "template_string_input",
    "register_template_func",
    "unregister_template_func",
)


def read_file(path: str) -> bytes:
    """Default read collaborator: read from disk."""
    return Path(path).read_bytes()


def write_file(path: str, data: bytes) -> None:
    """Default write collaborator: write to disk, creating parent directories."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(data)


class Engine:
    """
    Hybrid templating engine.

    Templates are Jinja2 bodies that may contain fenced Python script
    blocks. Scripts share one persistent runtime per engine, read and write
    the render context, and can drive multi-pass rendering.

    Lifecycle:
    1. Construct with collaborators and functions
    2. init(data) exactly once
    3. Any number of run_script / run_function / template_* calls

    The engine is not safe for concurrent use.

    Example:
        >>> engine = Engine(search_locations=["templates"])
        >>> engine.init({"Name": "Bob"})
        >>> engine.template_string_input("hello", "Hi {{ Global.Name }}")
        'Hi Bob'
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        *,
        search_locations: list[str] | None = None,
        read_func: ReadFunc | None = None,
        write_func: WriteFunc | None = None,
        template_funcs: Mapping[str, Callable[..., Any]] | None = None,
        script_funcs: Mapping[str, Callable[..., Any]] | None = None,
        script_files: Mapping[str, str] | None = None,
        logger: EngineLogger | None = None,
        debug: bool | None = None,
        error_factory: ErrorFactory | None = None,
        rand_source: random.Random | None = None,
    ):
        """Initialize engine.

        Args:
            config: Engine configuration (default: EngineConfig())
            search_locations: Directories tried before the bare path when
                reading (default: config.search_locations)
            read_func: Read collaborator (default: disk)
            write_func: Write collaborator (default: disk)
            template_funcs: Extra functions callable from templates
            script_funcs: Extra functions callable from scripts
            script_files: Script sources by name, run once by init()
            logger: Optional logger
            debug: Log the spliced body of templates that fail to compile
                (default: config.debug)
            error_factory: Optional error factory
            rand_source: Generator behind the `random` module scripts import
                (default: seeded from config.sandbox.seed, else shared)

        Raises:
            EngineError(RESERVED_NAME) if a function shadows a built-in
        """
        self.config = config or EngineConfig()
        self.search_locations = list(
            self.config.search_locations if search_locations is None else search_locations
        )
        self.debug = self.config.debug if debug is None else debug
        self._read_func = read_func or read_file
        self._write_func = write_func or write_file
        self._logger = logger
        self._error_factory = error_factory or get_error_factory()
        self._script_files = dict(script_files or {})
        self._rand_source = rand_source

        self._script_funcs = dict(script_funcs or {})
        for name in self._script_funcs:
            if name in SCRIPT_BUILTINS:
                raise create_error(
                    "RESERVED_NAME",
                    function=name,
                    reason="built-in script functions cannot be overridden",
                )

        self._recursion = RecursionController()
        self._functions = FunctionRegistry(
            {
                "template_file": self._template_file_func,
                "template_string": self._template_string_func,
                "template_string_input": self._template_string_input_func,
                "recurse": self._recursion.signal,
            }
        )
        self._functions.register_all(template_funcs or {})

        self._compiler = TemplateCompiler(self.config.template)

        self._runtime: ScriptRuntime | None = None
        self._contexts: ContextStack | None = None
        self._renderer: TemplateRenderer | None = None
        self._global_computed: ComputedStore | None = None

    @classmethod
    def from_config(cls, path: str | Path | None = None, **kwargs: Any) -> "Engine":
        """Build an engine from a config file.

        Sets up the logger and, when enabled, telemetry from the loaded
        configuration. Keyword arguments are passed to the constructor.
        """
        config = load_config(path)
        if config.telemetry.enabled:
            setup_telemetry(config.telemetry)
        kwargs.setdefault("logger", EngineLogger(config.logging.to_log_config()))
        return cls(config, **kwargs)

    # ─────────────────────────────────────────────────────────────
    # Properties
    # ─────────────────────────────────────────────────────────────

    @property
    def initialized(self) -> bool:
        return self._runtime is not None

    @property
    def global_computed(self) -> ComputedStore:
        """The GlobalComputed store shared by every invocation."""
        self._require_init()
        return self._global_computed  # type: ignore[return-value]

    @property
    def runtime(self) -> ScriptRuntime:
        """The script runtime, for advanced configuration."""
        return self._require_init()

    @property
    def functions(self) -> FunctionRegistry:
        """Functions callable from templates."""
        return self._functions

    # ─────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────

    def init(self, data: Any = None) -> None:
        """
        Initialize the engine with global data.

        Must be called exactly once, before any other entry point. Every
        later call shares the same runtime, so changes scripts make to it
        are visible to everything that runs afterwards.

        Args:
            data: Global data, visible as Global (and as Local outside of
                any template)

        Raises:
            EngineError(ALREADY_INITIALIZED) on a second call
            EngineError from a script file that fails
        """
        if self._runtime is not None:
            raise create_error("ALREADY_INITIALIZED")

        start_time = time.perf_counter()
        runtime = ScriptRuntime(self.config.sandbox, rand_source=self._rand_source)
        contexts = ContextStack(runtime)

        host_functions: dict[str, Callable[..., Any]] = {
            "require": self._require,
            "recurse": self._recursion.signal,
            "template_file": self._template_file_func,
            "template_string": self._template_string_func,
            "template_string_input": self._template_string_input_func,
            "register_template_func": self._register_template_func,
            "unregister_template_func": self._unregister_template_func,
        }
        host_functions.update(self._script_funcs)
        for name, fn in host_functions.items():
            runtime.register(name, fn)

        global_computed = ComputedStore()
        contexts.install(
            Context(
                Global=data,
                GlobalComputed=global_computed,
                Local=data,
                LocalComputed=global_computed,
            )
        )

        self._runtime = runtime
        self._contexts = contexts
        self._global_computed = global_computed
        self._renderer = TemplateRenderer(
            runtime=runtime,
            compiler=self._compiler,
            functions=self._functions,
            contexts=contexts,
            recursion=self._recursion,
            global_data=data,
            global_computed=global_computed,
            logger=self._logger,
            debug=self.debug,
            error_factory=self._error_factory,
        )

        try:
            for name, source in self._script_files.items():
                runtime.run(name, source)
        except EngineError:
            self._runtime = None
            self._contexts = None
            self._renderer = None
            self._global_computed = None
            raise

        if self._logger:
            self._logger.engine_event(
                LogLevel.INFO,
                "Engine initialized",
                event="init",
                script_files=len(self._script_files),
                duration_ms=int((time.perf_counter() - start_time) * 1000),
            )

    def _require_init(self) -> ScriptRuntime:
        if self._runtime is None:
            raise create_error("NOT_INITIALIZED")
        return self._runtime

    @contextmanager
    def _active_control(
        self,
        timeout: float | None,
        cancel_event: threading.Event | None,
    ) -> Iterator[RunControl | None]:
        """Apply a deadline and cancellation event to everything run inside."""
        runtime = self._require_init()
        if timeout is None:
            timeout = self.config.sandbox.timeout
        control = None
        if timeout is not None or cancel_event is not None:
            control = RunControl(timeout=timeout, cancel_event=cancel_event)
        with runtime.controlled(control) as active:
            yield active

    # ─────────────────────────────────────────────────────────────
    # Entry points
    # ─────────────────────────────────────────────────────────────

    def run_script(
        self,
        script_path: str,
        *,
        timeout: float | None = None,
        cancel_event: threading.Event | None = None,
    ) -> Any:
        """
        Run a script file in the shared runtime.

        Useful for defining variables and functions used by later templates.

        Returns:
            Value of the script's trailing expression, or None

        Raises:
            EngineError(NOT_INITIALIZED) before init()
            EngineError(READ_FAILED) if the script cannot be read
            EngineError from the script itself
        """
        runtime = self._require_init()
        source = self._read_text(script_path)
        script_logger = self._logger.script(script_path) if self._logger else None
        if script_logger:
            script_logger.executing()

        start_time = time.perf_counter()
        with self._active_control(timeout, cancel_event) as control:
            try:
                result = runtime.run(script_path, source, control=control)
            except EngineError as e:
                if script_logger:
                    script_logger.error(e.code, e.message)
                raise

        if script_logger:
            script_logger.completed(int((time.perf_counter() - start_time) * 1000))
        return result

    def run_function(
        self,
        fn_name: str,
        *args: Any,
        timeout: float | None = None,
        cancel_event: threading.Event | None = None,
    ) -> Any:
        """
        Call a function previously defined by a script.

        Raises:
            EngineError(NOT_INITIALIZED) before init()
            EngineError(FUNCTION_NOT_FOUND) if no such function exists
        """
        runtime = self._require_init()
        with self._active_control(timeout, cancel_event) as control:
            return runtime.call(fn_name, *args, control=control)

    def template_file(
        self,
        template_path: str,
        out_path: str,
        data: Any = None,
        *,
        timeout: float | None = None,
        cancel_event: threading.Event | None = None,
    ) -> None:
        """
        Render a template file and write the output.

        Nothing is written unless rendering succeeds.

        Raises:
            EngineError(WRITE_FAILED) if the output cannot be written
        """
        self._require_init()
        with self._active_control(timeout, cancel_event) as control:
            self._template_file(template_path, out_path, data, control)

    def template_string(
        self,
        template_path: str,
        data: Any = None,
        *,
        timeout: float | None = None,
        cancel_event: threading.Event | None = None,
    ) -> str:
        """Render a template file and return the output."""
        self._require_init()
        with self._active_control(timeout, cancel_event) as control:
            return self._template_string(template_path, data, control)

    def template_string_input(
        self,
        name: str,
        template: str,
        data: Any = None,
        *,
        timeout: float | None = None,
        cancel_event: threading.Event | None = None,
    ) -> str:
        """Render `template` under the name `name` and return the output."""
        self._require_init()
        with self._active_control(timeout, cancel_event) as control:
            return self._render(name, template, data, control)

    # ─────────────────────────────────────────────────────────────
    # Rendering
    # ─────────────────────────────────────────────────────────────

    def _render(self, name: str, body: str, data: Any, control: RunControl | None = None) -> str:
        assert self._renderer is not None
        return self._renderer.render(name, body, data, control)

    def _template_string(
        self, template_path: str, data: Any, control: RunControl | None = None
    ) -> str:
        body = self._read_text(template_path)
        return self._render(template_path, body, data, control)

    def _template_file(
        self,
        template_path: str,
        out_path: str,
        data: Any,
        control: RunControl | None = None,
    ) -> None:
        output = self._template_string(template_path, data, control)
        try:
            self._write_func(out_path, output.encode("utf-8"))
        except OSError as e:
            raise create_error(
                "WRITE_FAILED",
                template=template_path,
                path=out_path,
                error=str(e),
            ) from e

    # ─────────────────────────────────────────────────────────────
    # Reading
    # ─────────────────────────────────────────────────────────────

    def _read(self, path: str) -> bytes:
        """Read `path` from the first search location that has it, else as is."""
        candidates = [posixpath.join(location, path) for location in self.search_locations]
        candidates.append(path)

        for candidate in candidates:
            try:
                return self._read_func(candidate)
            except (OSError, KeyError):
                continue

        raise create_error("READ_FAILED", path=path, searched=", ".join(candidates))

    def _read_text(self, path: str) -> str:
        data = self._read(path)
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise create_error("READ_FAILED", path=path, searched=f"not valid UTF-8: {e}") from e

    # ─────────────────────────────────────────────────────────────
    # Host functions
    # ─────────────────────────────────────────────────────────────

    def _require(self, script_path: str) -> None:
        """Run another script file in the shared runtime.

        Paths that cannot be read as given are retried relative to the
        directory of the script calling require.
        """
        runtime = self._require_init()
        try:
            source = self._read_text(script_path)
            name = script_path
        except EngineError:
            current = runtime.current_script()
            if current is None:
                raise
            name = posixpath.join(posixpath.dirname(current), script_path)
            source = self._read_text(name)

        runtime.run(name, source)

    def _template_file_func(self, template_path: str, out_path: str, data: Any = None) -> str:
        self._template_file(template_path, out_path, export_value(data))
        return ""

    def _template_string_func(self, template_path: str, data: Any = None) -> str:
        return self._template_string(template_path, export_value(data))

    def _template_string_input_func(self, name: str, template: str, data: Any = None) -> str:
        return self._render(name, template, export_value(data))

    def _register_template_func(self, name: str, fn: Callable[..., Any]) -> None:
        """Make a script function callable from templates."""
        runtime = self._require_init()
        if not callable(fn):
            raise create_error(
                "INVALID_ARGUMENT",
                function="register_template_func",
                reason="second argument must be a function",
            )

        def template_func(*args: Any, **kwargs: Any) -> Any:
            return export_value(runtime.invoke(name, fn, *args, **kwargs))

        self._functions.register(name, template_func)

    def _unregister_template_func(self, name: str) -> None:
        self._functions.unregister(name)
