"""Unit tests for engine errors, registry, matchers and factory."""

import pytest
from jinja2 import Environment, TemplateSyntaxError

from sjstemplate.errors import (
    EngineError,
    ErrorCategory,
    ErrorFactory,
    ErrorMatcherChain,
    ErrorRegistry,
    ErrorTemplate,
    ScriptFrame,
    create_error,
    get_error_factory,
)


class TestErrorRegistry:
    """Tests for ErrorRegistry."""

    @pytest.mark.parametrize(
        ("code", "category"),
        [
            ("TEMPLATE_COMPILATION", ErrorCategory.COMPILATION),
            ("SCRIPT_SECURITY", ErrorCategory.COMPILATION),
            ("TEMPLATE_RUNTIME", ErrorCategory.RUNTIME),
            ("FUNCTION_NOT_FOUND", ErrorCategory.RUNTIME),
            ("RESERVED_NAME", ErrorCategory.REGISTRY),
            ("CANCELLED", ErrorCategory.CANCELLATION),
            ("READ_FAILED", ErrorCategory.IO),
            ("RECURSE_INVALID", ErrorCategory.VALIDATION),
            ("NOT_INITIALIZED", ErrorCategory.SYSTEM),
        ],
    )
    def test_builtin_categories(self, code, category):
        registry = ErrorRegistry()
        assert registry.get_template(code).category == category

    def test_create_interpolates(self):
        error = ErrorRegistry().create("READ_FAILED", {"path": "a.tmpl", "searched": "x, y"})
        assert error.message == "Failed to read 'a.tmpl'"
        assert error.detail == "Searched: x, y"

    def test_missing_variable_keeps_template(self):
        error = ErrorRegistry().create("READ_FAILED", {})
        assert error.message == "Failed to read '{path}'"

    def test_unknown_code(self):
        with pytest.raises(ValueError, match="Unknown error code"):
            ErrorRegistry().create("NOPE")

    def test_register_custom(self):
        registry = ErrorRegistry()
        registry.register(
            ErrorTemplate(code="CUSTOM", category=ErrorCategory.RUNTIME, message_template="x {n}")
        )
        assert "CUSTOM" in registry.list_codes()
        assert registry.create("CUSTOM", {"n": 1}).message == "x 1"

    def test_cancelled_is_retryable(self):
        assert ErrorRegistry().create("CANCELLED", {"reason": "t"}).retryable


class TestMatchers:
    """Tests for ErrorMatcherChain."""

    def test_timeout(self):
        result = ErrorMatcherChain().match(TimeoutError())
        assert result.error_code == "CANCELLED"
        assert result.context["reason"] == "timeout"

    def test_template_syntax_error(self):
        with pytest.raises(TemplateSyntaxError) as exc_info:
            Environment().from_string("line\n{% if %}")
        result = ErrorMatcherChain().match(exc_info.value)
        assert result.error_code == "TEMPLATE_COMPILATION"
        assert result.context["line"] == 2

    def test_syntax_error(self):
        with pytest.raises(SyntaxError) as exc_info:
            compile("x = (", "lib.py", "exec")
        result = ErrorMatcherChain().match(exc_info.value)
        assert result.error_code == "SCRIPT_COMPILATION"
        assert result.context["script"] == "lib.py"

    def test_generic_fallback(self):
        result = ErrorMatcherChain().match(KeyError("k"))
        assert result.error_code == "INTERNAL_ERROR"
        assert result.context["error_type"] == "KeyError"


class TestErrorFactory:
    """Tests for ErrorFactory."""

    def test_from_exception_adds_context(self):
        error = ErrorFactory().from_exception(ValueError("bad"), template="page")
        assert error.code == "INTERNAL_ERROR"
        assert error.template == "page"

    def test_fallback_code(self):
        error = ErrorFactory().from_exception(
            ValueError("bad"), template="page", fallback_code="RENDER_FAILED"
        )
        assert error.code == "RENDER_FAILED"
        assert error.message == "Rendering 'page' failed: bad"

    def test_fallback_does_not_override_specific_match(self):
        error = ErrorFactory().from_exception(TimeoutError(), fallback_code="RENDER_FAILED")
        assert error.code == "CANCELLED"

    def test_engine_error_passes_through(self):
        original = create_error("RECURSE_INVALID", template="page")
        error = ErrorFactory().from_exception(original, script="s")
        assert error.code == "RECURSE_INVALID"
        assert error.script == "s"

    def test_singleton(self):
        assert get_error_factory() is get_error_factory()

    def test_create_with_cause(self):
        cause = create_error("CANCELLED", reason="timeout")
        error = create_error("TEMPLATE_RUNTIME", cause=cause, error="failed")
        assert error.cause is cause


class TestEngineError:
    """Tests for EngineError."""

    def test_is_exception(self):
        error = create_error("NOT_INITIALIZED")
        assert isinstance(error, Exception)
        assert str(error) == "Engine is not initialized"

    def test_to_dict(self):
        cause = create_error("CANCELLED", reason="timeout")
        error = create_error("TEMPLATE_RUNTIME", cause=cause, error="boom", template="page")
        error.stack.append(ScriptFrame(name="page", line=4))

        data = error.to_dict()
        assert data["code"] == "TEMPLATE_RUNTIME"
        assert data["category"] == "RUNTIME"
        assert data["template"] == "page"
        assert data["stack"] == [
            {"name": "page", "line": 4, "column": None, "source_line": None}
        ]
        assert data["cause"]["code"] == "CANCELLED"

    def test_with_context_preserves_identity(self):
        error = create_error("TEMPLATE_RUNTIME", error="boom", line=3)
        updated = error.with_context(template="page", detail="more")

        assert isinstance(updated, EngineError)
        assert updated.code == error.code
        assert updated.line == 3
        assert updated.template == "page"
        assert updated.detail == "more"
        assert updated.timestamp == error.timestamp

    def test_frame_str(self):
        assert str(ScriptFrame(name="lib.py", line=3)) == "lib.py:3"
        assert str(ScriptFrame(name="lib.py", line=3, column=5)) == "lib.py:3:5"
