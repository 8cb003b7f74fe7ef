"""Render orchestrator.

One invocation runs:

    (extract blocks -> execute blocks -> splice -> compile -> execute
     -> decide on another pass)* -> restore context

against a context installed for the invocation only.
"""

import time
from typing import TYPE_CHECKING, Any

from sjstemplate.errors import EngineError, ErrorFactory, get_error_factory
from sjstemplate.telemetry import instrument_render

from .compiler import TemplateCompiler
from .context import ComputedStore, Context, ContextStack
from .functions import FunctionRegistry
from .lines import remap_error
from .parser import splice
from .recursion import RecursionController
from .scripts import execute_block

if TYPE_CHECKING:
    from sjstemplate.logging import EngineLogger, InvocationLogger
    from sjstemplate.sandbox import RunControl, ScriptRuntime


class TemplateRenderer:
    """Renders template bodies that may contain script blocks."""

    def __init__(
        self,
        runtime: "ScriptRuntime",
        compiler: TemplateCompiler,
        functions: FunctionRegistry,
        contexts: ContextStack,
        recursion: RecursionController,
        global_data: Any = None,
        global_computed: Any = None,
        logger: "EngineLogger | None" = None,
        debug: bool = False,
        error_factory: ErrorFactory | None = None,
    ):
        """Initialize renderer.

        Args:
            runtime: Script runtime holding the `context` binding
            compiler: Template compiler
            functions: Template functions, snapshotted on every pass
            contexts: Context stack over `runtime`
            recursion: Recursion state stack backing `recurse`
            global_data: Global data of the engine
            global_computed: GlobalComputed store of the engine
            logger: Optional engine logger
            debug: Log the spliced body when it fails to compile
            error_factory: Converts unexpected exceptions
        """
        self.runtime = runtime
        self.compiler = compiler
        self.functions = functions
        self.contexts = contexts
        self.recursion = recursion
        self.global_data = global_data
        self.global_computed = global_computed if global_computed is not None else ComputedStore()
        self._logger = logger
        self.debug = debug
        self._error_factory = error_factory or get_error_factory()

    def render(
        self,
        name: str,
        body: str,
        data: Any = None,
        control: "RunControl | None" = None,
    ) -> str:
        """Render `body` as template `name` with `data` as Local.

        Returns:
            The output of the final pass

        Raises:
            EngineError: Every failure, with the caller's context restored
        """
        depth = self.contexts.depth
        invocation_logger = self._logger.invocation(name, depth) if self._logger else None
        start_time = time.perf_counter()

        with instrument_render(name, depth) as result:
            try:
                output, passes, stop_reason = self._render(
                    name, body, data, control, invocation_logger
                )
            except EngineError as e:
                if invocation_logger:
                    invocation_logger.failed(e, _elapsed_ms(start_time))
                raise
            except Exception as e:
                error = self._error_factory.from_exception(
                    e, template=name, fallback_code="RENDER_FAILED"
                )
                if invocation_logger:
                    invocation_logger.failed(error, _elapsed_ms(start_time))
                raise error from e
            result["passes"] = passes

        if invocation_logger:
            invocation_logger.completed(_elapsed_ms(start_time), passes, stop_reason)

        return output

    def _render(
        self,
        name: str,
        body: str,
        data: Any,
        control: "RunControl | None",
        invocation_logger: "InvocationLogger | None",
    ) -> tuple[str, int, str]:
        caller = self.contexts.current
        inherited = caller.RecursiveComputed if caller else None
        local_computed: Any = ComputedStore()

        with self.recursion.cycle(name, body, inherited) as state:
            if invocation_logger:
                invocation_logger.started(state.max_passes)

            recursive_computed = state.recursive_computed
            with self.contexts.scope(
                self.global_data, self.global_computed, data, local_computed, recursive_computed
            ):
                while True:
                    state.begin_pass()

                    spliced = splice(
                        body,
                        lambda block: execute_block(
                            self.runtime, block, name, control, invocation_logger
                        ),
                    )

                    # Scripts may have replaced the stores on the context object.
                    context = self.contexts.current or Context(
                        Global=self.global_data,
                        GlobalComputed=self.global_computed,
                        Local=data,
                        LocalComputed=local_computed,
                        RecursiveComputed=recursive_computed,
                    )
                    local_computed = context.LocalComputed
                    recursive_computed = context.RecursiveComputed

                    try:
                        compiled = self.compiler.compile(
                            name, spliced.body, self.functions.as_dict()
                        )
                    except EngineError:
                        if self.debug and invocation_logger:
                            invocation_logger.spliced_body(spliced.body)
                        raise

                    try:
                        output = compiled.execute(context.export())
                    except EngineError as e:
                        if e.code != "TEMPLATE_RUNTIME":
                            raise
                        raise remap_error(e, name, spliced.line_delta) from e

                    if invocation_logger:
                        invocation_logger.pass_completed(
                            state.pass_index, spliced.block_count, spliced.line_delta
                        )

                    if not state.advance(spliced.body, output):
                        break

                    body = output
                    self.contexts.install(
                        Context(
                            Global=self.global_data,
                            GlobalComputed=self.global_computed,
                            Local=data,
                            LocalComputed=local_computed,
                            RecursiveComputed=recursive_computed,
                        )
                    )

            stop_reason = state.stop_reason.value if state.stop_reason else ""
            return output, state.passes, stop_reason


def _elapsed_ms(start_time: float) -> int:
    return int((time.perf_counter() - start_time) * 1000)
