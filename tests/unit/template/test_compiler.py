"""Unit tests for the Jinja compiler adapter."""

import pytest

from sjstemplate.config import TemplateConfig
from sjstemplate.errors import EngineError, create_error
from sjstemplate.template import TemplateCompiler, format_locator


@pytest.fixture
def compiler() -> TemplateCompiler:
    return TemplateCompiler()


class TestFormatLocator:
    def test_with_and_without_line(self):
        assert format_locator("t", 3) == "template: t:3"
        assert format_locator("t", None) == "template: t"


class TestCompile:
    """Tests for TemplateCompiler.compile."""

    def test_renders_with_globals(self, compiler):
        compiled = compiler.compile("t", "{{ shout(Local.word) }}", {"shout": str.upper})
        assert compiled.execute({"Local": {"word": "hi"}}) == "HI"

    def test_syntax_error_has_locator(self, compiler):
        with pytest.raises(EngineError) as exc_info:
            compiler.compile("page", "line one\n{% if %}\n{% endif %}")

        error = exc_info.value
        assert error.code == "TEMPLATE_COMPILATION"
        assert error.template == "page"
        assert error.line == 2
        assert error.message.startswith("template: page:2: ")

    def test_trailing_newline_dropped_by_default(self, compiler):
        assert compiler.compile("t", "a\n").execute({}) == "a"

    def test_config_is_applied(self):
        compiler = TemplateCompiler(TemplateConfig(keep_trailing_newline=True))
        assert compiler.compile("t", "a\n").execute({}) == "a\n"


class TestExecute:
    """Tests for CompiledTemplate.execute."""

    def test_runtime_error_has_locator_and_line(self, compiler):
        compiled = compiler.compile("page", "ok\n{{ Local.n // 0 }}")

        with pytest.raises(EngineError) as exc_info:
            compiled.execute({"Local": {"n": 1}})

        error = exc_info.value
        assert error.code == "TEMPLATE_RUNTIME"
        assert error.line == 2
        assert error.message.startswith("template: page:2: ZeroDivisionError")

    def test_strict_undefined(self):
        compiler = TemplateCompiler(TemplateConfig(strict_undefined=True))
        compiled = compiler.compile("t", "{{ missing }}")

        with pytest.raises(EngineError) as exc_info:
            compiled.execute({})
        assert "UndefinedError" in exc_info.value.message

    def test_registry_errors_pass_through(self, compiler):
        def bad():
            raise create_error("INVALID_ARGUMENT", function="bad", reason="nope")

        compiled = compiler.compile("t", "{{ bad() }}", {"bad": bad})
        with pytest.raises(EngineError) as exc_info:
            compiled.execute({})

        assert exc_info.value.code == "INVALID_ARGUMENT"
        assert exc_info.value.template == "t"

    def test_cancellation_passes_through(self, compiler):
        def stop():
            raise create_error("CANCELLED", reason="timeout")

        compiled = compiler.compile("t", "{{ stop() }}", {"stop": stop})
        with pytest.raises(EngineError) as exc_info:
            compiled.execute({})
        assert exc_info.value.code == "CANCELLED"

    def test_other_engine_errors_are_wrapped(self, compiler):
        inner = create_error("READ_FAILED", path="x.tpl", searched="x.tpl")

        def fail():
            raise inner

        compiled = compiler.compile("t", "{{ fail() }}", {"fail": fail})
        with pytest.raises(EngineError) as exc_info:
            compiled.execute({})

        error = exc_info.value
        assert error.code == "TEMPLATE_RUNTIME"
        assert "error calling function" in error.message
        assert error.cause is inner
