"""Render context shared by scripts and templates.

One Context is current at a time. It lives in the script runtime under the
`context` binding so scripts and the renderer read and write the same
object; nested renders save and restore it in stack order.
"""

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field, is_dataclass
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

if TYPE_CHECKING:
    from sjstemplate.sandbox import ScriptRuntime

CONTEXT_BINDING = "context"


class ComputedStore(dict):
    """Script-writable key/value store.

    Supports both item and attribute access:

        context.LocalComputed["count"] = 1
        context.LocalComputed.count += 1
    """

    def __getattr__(self, name: str) -> Any:
        try:
            return self[name]
        except KeyError:
            raise AttributeError(name) from None

    def __setattr__(self, name: str, value: Any) -> None:
        self[name] = value

    def __delattr__(self, name: str) -> None:
        try:
            del self[name]
        except KeyError:
            raise AttributeError(name) from None

    def export(self) -> dict[str, Any]:
        return export_value(self)


def export_value(value: Any) -> Any:
    """Convert script values to plain data for the template engine.

    Mappings become dicts, sequences and sets become lists, pydantic models
    and dataclasses are dumped. Scalars and other objects pass through.
    """
    if isinstance(value, BaseModel):
        return export_value(value.model_dump())
    if is_dataclass(value) and not isinstance(value, type):
        return export_value(asdict(value))
    if isinstance(value, Mapping):
        return {key: export_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [export_value(item) for item in value]
    return value


@dataclass
class Context:
    """The unit of state visible to scripts (as `context`) and templates."""

    Global: Any = None  # noqa: N815
    GlobalComputed: Any = field(default_factory=ComputedStore)  # noqa: N815
    Local: Any = None  # noqa: N815
    LocalComputed: Any = field(default_factory=ComputedStore)  # noqa: N815
    RecursiveComputed: Any = None  # noqa: N815

    def export(self) -> dict[str, Any]:
        """Template data: raw Global/Local, computed stores as plain values."""
        return {
            "Global": self.Global,
            "Local": self.Local,
            "GlobalComputed": export_value(self.GlobalComputed),
            "LocalComputed": export_value(self.LocalComputed),
            "RecursiveComputed": export_value(self.RecursiveComputed),
        }


class ContextStack:
    """Installs contexts in the script runtime with save/restore discipline."""

    def __init__(self, runtime: "ScriptRuntime"):
        self._runtime = runtime
        self._depth = 0

    @property
    def depth(self) -> int:
        """Number of nested renders currently entered."""
        return self._depth

    @property
    def current(self) -> Context | None:
        value = self._runtime.get(CONTEXT_BINDING)
        return value if isinstance(value, Context) else None

    def install(self, context: Context) -> Context:
        self._runtime.set(CONTEXT_BINDING, context)
        return context

    def enter(
        self,
        global_data: Any,
        global_computed: Any,
        local_data: Any,
        local_computed: Any,
        recursive_computed: Any = None,
    ) -> Context | None:
        """Install a new context and return the one it replaces.

        The returned value must be handed back to exit().
        """
        previous = self._runtime.get(CONTEXT_BINDING)
        self.install(
            Context(
                Global=global_data,
                GlobalComputed=global_computed,
                Local=local_data,
                LocalComputed=local_computed,
                RecursiveComputed=recursive_computed,
            )
        )
        self._depth += 1
        return previous

    def exit(self, previous: Context | None) -> None:
        """Restore the context returned by the matching enter()."""
        if previous is None:
            self._runtime.delete(CONTEXT_BINDING)
        else:
            self._runtime.set(CONTEXT_BINDING, previous)
        self._depth = max(self._depth - 1, 0)

    @contextmanager
    def scope(
        self,
        global_data: Any,
        global_computed: Any,
        local_data: Any,
        local_computed: Any,
        recursive_computed: Any = None,
    ) -> Iterator[Context]:
        """enter() on entry and exit() on every way out."""
        previous = self.enter(
            global_data, global_computed, local_data, local_computed, recursive_computed
        )
        try:
            yield self.current  # type: ignore[misc]
        finally:
            self.exit(previous)

    def current_local_computed(self) -> Any:
        context = self.current
        return context.LocalComputed if context else None

    def current_recursive_computed(self) -> Any:
        context = self.current
        return context.RecursiveComputed if context else None
