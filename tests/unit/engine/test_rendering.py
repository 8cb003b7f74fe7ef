"""Unit tests for template rendering through the engine."""

import json
import sys
import threading

import pytest

from sjstemplate.config import EngineConfig
from sjstemplate.errors import EngineError
from sjstemplate.sandbox import SandboxConfig
from sjstemplate.sandbox.monitor import line_monitor


def _events(log_output) -> list[dict]:
    return [json.loads(line) for line in log_output.getvalue().splitlines()]


class TestContextPropagation:
    """Tests for how scripts and templates share the context."""

    def test_script_writes_are_visible_to_template(self, engine):
        body = (
            "```sjs\n"
            "context.LocalComputed.greeting = 'hi ' + context.Local['who']\n"
            "sjs```\n"
            "{{ LocalComputed.greeting }}"
        )
        assert engine.template_string_input("t", body, {"who": "ann"}) == "\nhi ann"

    def test_global_computed_persists_across_invocations(self, engine):
        body = (
            "```sjs\n"
            "context.GlobalComputed.count = context.GlobalComputed.get('count', 0) + 1\n"
            "sjs```"
        )
        engine.template_string_input("a", body)
        engine.template_string_input("b", body)

        assert engine.template_string_input("c", "{{ GlobalComputed.count }}") == "2"
        assert engine.global_computed["count"] == 2

    def test_local_computed_is_fresh_per_invocation(self, engine):
        engine.template_string_input("a", "```sjs\ncontext.LocalComputed.x = 1\nsjs```")
        assert engine.template_string_input("b", "[{{ LocalComputed.x }}]") == "[]"

    def test_replaced_store_is_read_back(self, engine):
        body = "```sjs\ncontext.LocalComputed = {'v': 3}\nsjs```{{ LocalComputed.v }}"
        assert engine.template_string_input("t", body) == "3"

    def test_global_and_local_data(self, engine):
        out = engine.template_string_input("t", "{{ Global.Name }}/{{ Local.x }}", {"x": 1})
        assert out == "Bob/1"

    def test_context_restored_after_success_and_failure(self, engine):
        before = engine.runtime.get("context")

        engine.template_string_input("ok", "```sjs\nrender(1)\nsjs```")
        assert engine.runtime.get("context") is before

        with pytest.raises(EngineError):
            engine.template_string_input("bad", "```sjs\nraise ValueError('x')\nsjs```")
        assert engine.runtime.get("context") is before

    def test_nested_render_restores_parent_context(self, engine):
        body = (
            "```sjs\n"
            "render(template_string_input('child', '{{ Local.k }}', {'k': 'child'}))\n"
            "render(context.Local['k'])\n"
            "sjs```"
        )
        assert engine.template_string_input("t", body, {"k": "parent"}) == "child\nparent"

    def test_nested_template_from_template(self, make_engine):
        engine = make_engine(files={"partial.tpl": "{{ Local.a }}-{{ Global.Name }}"})
        engine.init({"Name": "Bob"})

        out = engine.template_string_input("t", "{{ template_string('partial.tpl', {'a': 1}) }}")
        assert out == "1-Bob"

    def test_multiple_blocks_share_runtime_state(self, engine):
        body = "```sjs\nitems = ['a', 'b']\nsjs```\n```sjs\nfor i in items:\n    render(i)\nsjs```"
        assert engine.template_string_input("t", body) == "\na\nb"


class TestRecursion:
    """Tests for recursive rendering."""

    def test_recursive_computed_survives_passes(self, make_engine, json_logger, log_output):
        engine = make_engine(logger=json_logger)
        engine.init({})
        body = (
            "{{ recurse(1) }}\n"
            "```sjs\n"
            "context.RecursiveComputed.Count = 5\n"
            "sjs```\n"
            "{{ RecursiveComputed.Count }}"
        )

        assert engine.template_string_input("t", body) == "\n\n5"

        completed = [e for e in _events(log_output) if e["event"] == "template_completed"]
        assert completed[-1]["passes"] == 2
        assert completed[-1]["stop_reason"] == "fixed_point"

    def test_output_is_rendered_again(self, engine):
        body = "{{ recurse(1) }}\n{{ '{{ 1 + 1 }}' }}"
        assert engine.template_string_input("t", body) == "\n2"

    def test_without_directive_renders_once(self, engine):
        assert engine.template_string_input("t", "{{ '{{ 1 + 1 }}' }}") == "{{ 1 + 1 }}"

    def test_pass_ceiling(self, engine):
        body = "{{ recurse(2) }}\n{{ \"{{ '{{ 3 }}' }}\" }}"
        assert engine.template_string_input("t", body) == "\n3"

    def test_ceiling_limits_passes(self, engine):
        body = "{{ recurse(1) }}\n{{ \"{{ '{{ 3 }}' }}\" }}"
        assert engine.template_string_input("t", body) == "\n{{ 3 }}"

    def test_recurse_twice_in_one_pass(self, engine):
        with pytest.raises(EngineError) as exc_info:
            engine.template_string_input("t", "{{ recurse(1) }}{{ recurse(1) }}")
        assert exc_info.value.code == "RECURSE_INVALID"

    def test_negative_recurse(self, engine):
        with pytest.raises(EngineError) as exc_info:
            engine.template_string_input("t", "{{ recurse(-1) }}")
        assert exc_info.value.code == "INVALID_ARGUMENT"

    def test_script_recurse_without_directive_is_single_pass(self, engine):
        body = "```sjs\nrecurse(1)\nsjs```{{ '{{ x }}' }}"
        assert engine.template_string_input("t", body) == "{{ x }}"

    def test_child_inherits_recursive_computed(self, engine):
        body = (
            "{{ recurse(1) }}\n"
            "```sjs\n"
            "context.RecursiveComputed.v = 'deep'\n"
            "sjs```\n"
            "{{ template_string_input('child', '{{ RecursiveComputed.v }}') }}"
        )
        assert engine.template_string_input("t", body) == "\n\ndeep"

    def test_directive_in_child_starts_new_cycle(self, engine):
        child = "{{ recurse(0) }}\\n[{{ RecursiveComputed.v }}]"
        body = (
            "```sjs\n"
            "context.RecursiveComputed = {'v': 'outer'}\n"
            f"render(template_string_input('child', '{child}'))\n"
            "sjs```"
        )
        assert engine.template_string_input("t", body) == "\n[]"


class TestLineNumbers:
    """Tests for error line attribution."""

    def test_runtime_error_remapped_past_blocks(self, engine):
        body = "```sjs\nx = 1\nsjs```\n{{ Local.n // 0 }}"

        with pytest.raises(EngineError) as exc_info:
            engine.template_string_input("page", body, {"n": 1})

        error = exc_info.value
        assert error.code == "TEMPLATE_RUNTIME"
        assert error.line == 4
        assert "template: page:4:" in error.message

    def test_whole_body_delta_applies_to_lines_before_blocks(self, engine):
        body = "{{ Local.n // 0 }}\n```sjs\nx = 1\nsjs```"

        with pytest.raises(EngineError) as exc_info:
            engine.template_string_input("page", body, {"n": 1})
        assert exc_info.value.line == 3

    def test_block_output_lines_are_accounted_for(self, engine):
        body = "```sjs\nrender('a\\nb\\nc')\nsjs```\n{{ Local.n // 0 }}"

        with pytest.raises(EngineError) as exc_info:
            engine.template_string_input("page", body, {"n": 1})
        assert exc_info.value.line == 4

    def test_script_error_reports_template_line(self, engine):
        body = "one\ntwo\n```sjs\nok = 1\nundefined_name\nsjs```"

        with pytest.raises(EngineError) as exc_info:
            engine.template_string_input("page", body)

        error = exc_info.value
        assert error.code == "SCRIPT_RUNTIME"
        assert error.template == "page"
        assert error.line == 5
        assert "NameError" in error.message

    def test_same_block_twice_reports_second_occurrence(self, engine):
        block = "```sjs\nboom = context.Local['fail'] and 1 / 0\nsjs```"
        body = f"{block}\n```sjs\ncontext.Local['fail'] = True\nsjs```\n{block}"

        with pytest.raises(EngineError) as exc_info:
            engine.template_string_input("page", body, {"fail": False})
        assert exc_info.value.line == 8


class TestDebugOutput:
    """Tests for spliced-body logging."""

    @pytest.mark.parametrize("debug,expected", [(True, 1), (False, 0)])
    def test_spliced_body_logged_only_in_debug(
        self, make_engine, json_logger, log_output, debug, expected
    ):
        engine = make_engine(logger=json_logger, debug=debug)
        engine.init({})

        with pytest.raises(EngineError) as exc_info:
            engine.template_string_input("t", "```sjs\nrender('{% if %}')\nsjs```")
        assert exc_info.value.code == "TEMPLATE_COMPILATION"

        dumps = [e for e in _events(log_output) if e["event"] == "template_spliced_body"]
        assert len(dumps) == expected
        if dumps:
            assert "{% if %}" in dumps[0]["message"]


class TestLogging:
    """Tests for invocation and block log events."""

    def test_success_events(self, make_engine, json_logger, log_output):
        engine = make_engine(logger=json_logger)
        engine.init({})
        engine.template_string_input("t", "```sjs\nrender(1)\nsjs```")

        events = [e["event"] for e in _events(log_output)]
        assert events == [
            "init",
            "template_started",
            "script_executing",
            "script_completed",
            "template_pass_completed",
            "template_completed",
        ]

    def test_failure_event(self, make_engine, json_logger, log_output):
        engine = make_engine(logger=json_logger)
        engine.init({})

        with pytest.raises(EngineError):
            engine.template_string_input("t", "{{ Local.n // 0 }}", {"n": 1})

        failed = [e for e in _events(log_output) if e["event"] == "template_failed"]
        assert failed[0]["error_code"] == "TEMPLATE_RUNTIME"
        assert failed[0]["template"] == "t"


class TestCancellation:
    """Tests for deadlines and cancellation during rendering."""

    SPIN = "```sjs\nwhile True:\n    pass\nsjs```"

    def test_timeout_in_block(self, engine):
        before = engine.runtime.get("context")

        with pytest.raises(EngineError) as exc_info:
            engine.template_string_input("t", self.SPIN, timeout=0.05)

        assert exc_info.value.code == "CANCELLED"
        assert exc_info.value.retryable is True
        assert engine.runtime.get("context") is before

    def test_cancel_event(self, engine):
        event = threading.Event()
        event.set()

        with pytest.raises(EngineError) as exc_info:
            engine.template_string_input("t", self.SPIN, cancel_event=event)
        assert exc_info.value.code == "CANCELLED"

    def test_configured_timeout_applies_to_template_functions(self, make_engine):
        engine = make_engine(
            config=EngineConfig(sandbox=SandboxConfig(timeout=0.05)),
            files={
                "spin.py": (
                    "def spin():\n"
                    "    while True:\n"
                    "        pass\n"
                    "\n"
                    "register_template_func('spin', spin)"
                )
            },
        )
        engine.init({})
        engine.run_script("spin.py", timeout=5)

        with pytest.raises(EngineError) as exc_info:
            engine.template_string_input("t", "{{ spin() }}")
        assert exc_info.value.code == "CANCELLED"

    def test_run_function_timeout(self, make_engine):
        engine = make_engine(files={"spin.py": "def spin():\n    while True:\n        pass"})
        engine.init({})
        engine.run_script("spin.py")

        with pytest.raises(EngineError) as exc_info:
            engine.run_function("spin", timeout=0.05)
        assert exc_info.value.code == "CANCELLED"

    def test_block_catching_base_exception_is_still_cancelled(self, engine):
        body = (
            "```sjs\n"
            "hits = 0\n"
            "for attempt in range(3):\n"
            "    try:\n"
            "        n = 0\n"
            "        while n < 3000000:\n"
            "            n += 1\n"
            "    except BaseException:\n"
            "        hits += 1\n"
            "sjs```\n"
            "{{ hits }}"
        )

        with pytest.raises(EngineError) as exc_info:
            engine.template_string_input("t", body, timeout=0.01)
        assert exc_info.value.code == "CANCELLED"

    def test_monitoring_events_cleared_after_call(self, engine):
        engine.template_string_input("t", "```sjs\nx = 1\nsjs```done", timeout=5)

        assert line_monitor._watches == {}
        assert sys.monitoring.get_events(line_monitor._tool_id) == 0
