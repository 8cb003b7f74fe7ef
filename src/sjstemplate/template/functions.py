"""Registered template functions."""

from collections.abc import Callable, Iterable, Mapping
from typing import Any

from sjstemplate.errors import create_error

BUILTIN_TEMPLATE_FUNCTIONS = (
    "template_file",
    "template_string",
    "template_string_input",
    "recurse",
)


class FunctionRegistry:
    """Functions callable from templates, owned by one engine.

    A name can only be registered while it is free; replacing a function
    takes an explicit unregister first. Built-ins can never be removed.
    """

    def __init__(self, builtins: Mapping[str, Callable[..., Any]] | None = None):
        self._functions: dict[str, Callable[..., Any]] = dict(builtins or {})
        self._builtins = set(self._functions)

    def register(self, name: str, fn: Callable[..., Any]) -> None:
        """Register `fn` under `name`.

        Raises:
            EngineError: INVALID_ARGUMENT for a bad name or non-callable,
                RESERVED_NAME if the name is taken
        """
        if not isinstance(name, str) or not name.isidentifier():
            raise create_error(
                "INVALID_ARGUMENT",
                function="register_template_func",
                reason=f"{name!r} is not a valid function name",
            )
        if not callable(fn):
            raise create_error(
                "INVALID_ARGUMENT",
                function="register_template_func",
                reason="second argument must be a function",
            )
        if name in self._functions:
            raise create_error(
                "RESERVED_NAME",
                function=name,
                reason=f"template function {name} already exists",
            )
        self._functions[name] = fn

    def register_all(self, functions: Mapping[str, Callable[..., Any]]) -> None:
        for name, fn in functions.items():
            self.register(name, fn)

    def unregister(self, name: str) -> None:
        """Remove a user-registered function.

        Raises:
            EngineError: RESERVED_NAME if it does not exist or is built in
        """
        if name not in self._functions:
            raise create_error(
                "RESERVED_NAME",
                function=name,
                reason=f"template function {name} does not exist",
            )
        if name in self._builtins:
            raise create_error(
                "RESERVED_NAME",
                function=name,
                reason=f"built-in template function {name} cannot be unregistered",
            )
        del self._functions[name]

    def get(self, name: str) -> Callable[..., Any] | None:
        return self._functions.get(name)

    def is_builtin(self, name: str) -> bool:
        return name in self._builtins

    def names(self) -> Iterable[str]:
        return list(self._functions)

    def as_dict(self) -> dict[str, Callable[..., Any]]:
        """Snapshot handed to the compiler for one pass."""
        return dict(self._functions)

    def __contains__(self, name: object) -> bool:
        return name in self._functions

    def __len__(self) -> int:
        return len(self._functions)
