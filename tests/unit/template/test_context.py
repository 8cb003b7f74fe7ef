"""Unit tests for the render context and its stack."""

from dataclasses import dataclass

import pytest
from pydantic import BaseModel

from sjstemplate.sandbox import ScriptRuntime
from sjstemplate.template import CONTEXT_BINDING, ComputedStore, Context, ContextStack, export_value


class Item(BaseModel):
    name: str
    tags: list[str] = []


@dataclass
class Point:
    x: int
    y: int


class TestComputedStore:
    """Tests for ComputedStore."""

    def test_attribute_and_item_access_share_storage(self):
        store = ComputedStore()
        store.count = 1
        store["count"] += 1

        assert store.count == 2
        assert store == {"count": 2}

    def test_missing_attribute_raises_attribute_error(self):
        store = ComputedStore()
        with pytest.raises(AttributeError):
            _ = store.missing
        with pytest.raises(AttributeError):
            del store.missing

    def test_export_is_plain_dict(self):
        store = ComputedStore(nested=ComputedStore(a=(1, 2)))
        exported = store.export()

        assert exported == {"nested": {"a": [1, 2]}}
        assert type(exported["nested"]) is dict


class TestExportValue:
    """Tests for the value-export boundary."""

    def test_pydantic_models_are_dumped(self):
        assert export_value(Item(name="a", tags=["x"])) == {"name": "a", "tags": ["x"]}

    def test_dataclasses_are_dumped(self):
        assert export_value([Point(1, 2)]) == [{"x": 1, "y": 2}]

    def test_sets_become_lists(self):
        assert export_value({"s": {1}}) == {"s": [1]}

    def test_other_objects_pass_by_reference(self):
        marker = object()
        assert export_value({"m": marker})["m"] is marker
        assert export_value(None) is None


class TestContext:
    """Tests for Context.export."""

    def test_export_keeps_raw_data_and_flattens_stores(self):
        global_data = {"Name": "Bob"}
        context = Context(
            Global=global_data,
            GlobalComputed=ComputedStore(a=1),
            Local={"x": 1},
            LocalComputed=ComputedStore(b=(1,)),
            RecursiveComputed=None,
        )
        data = context.export()

        assert data["Global"] is global_data
        assert data["Local"] == {"x": 1}
        assert data["GlobalComputed"] == {"a": 1}
        assert data["LocalComputed"] == {"b": [1]}
        assert data["RecursiveComputed"] is None


class TestContextStack:
    """Tests for ContextStack."""

    @pytest.fixture
    def stack(self, runtime: ScriptRuntime) -> ContextStack:
        return ContextStack(runtime)

    def test_enter_installs_and_exit_restores(self, runtime, stack):
        outer = stack.install(Context(Global=1))
        previous = stack.enter(1, ComputedStore(), 2, ComputedStore(), None)

        assert previous is outer
        assert stack.current.Local == 2
        assert stack.depth == 1

        stack.exit(previous)
        assert runtime.get(CONTEXT_BINDING) is outer
        assert stack.depth == 0

    def test_exit_without_previous_removes_binding(self, runtime, stack):
        previous = stack.enter(None, ComputedStore(), None, ComputedStore())
        stack.exit(previous)

        assert not runtime.has(CONTEXT_BINDING)
        assert stack.current is None

    def test_scope_restores_on_error(self, runtime, stack):
        outer = stack.install(Context())

        with pytest.raises(ValueError), stack.scope(None, ComputedStore(), None, ComputedStore()):
            raise ValueError("boom")

        assert runtime.get(CONTEXT_BINDING) is outer

    def test_current_stores(self, stack):
        local_computed = ComputedStore()
        recursive_computed = ComputedStore()
        with stack.scope(None, ComputedStore(), None, local_computed, recursive_computed):
            assert stack.current_local_computed() is local_computed
            assert stack.current_recursive_computed() is recursive_computed

        assert stack.current_local_computed() is None

    def test_scripts_see_the_installed_context(self, runtime, stack):
        with stack.scope({"Name": "Bob"}, ComputedStore(), None, ComputedStore()):
            runtime.run("s.py", "context.LocalComputed.greeting = 'hi ' + context.Global['Name']")
            assert stack.current_local_computed() == {"greeting": "hi Bob"}
