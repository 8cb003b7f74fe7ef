"""
Pytest configuration and shared fixtures for sjstemplate tests.
"""

import sys
from collections.abc import Callable, Generator
from io import StringIO
from pathlib import Path
from typing import Any

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from sjstemplate.engine import Engine  # noqa: E402
from sjstemplate.logging import EngineLogger, LogConfig  # noqa: E402
from sjstemplate.sandbox import ScriptRuntime  # noqa: E402
from sjstemplate.telemetry import reset_telemetry  # noqa: E402
from sjstemplate.types import LogFormat, LogLevel  # noqa: E402

# =============================================================================
# In-memory file system
# =============================================================================


class MemoryFS:
    """Dict-backed read/write collaborators for the engine."""

    def __init__(self, files: dict[str, str] | None = None):
        self.files: dict[str, bytes] = {
            path: content.encode("utf-8") for path, content in (files or {}).items()
        }
        self.reads: list[str] = []

    def read(self, path: str) -> bytes:
        self.reads.append(path)
        try:
            return self.files[path]
        except KeyError:
            raise FileNotFoundError(path) from None

    def write(self, path: str, data: bytes) -> None:
        self.files[path] = data

    def text(self, path: str) -> str:
        return self.files[path].decode("utf-8")


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def memory_fs() -> MemoryFS:
    """Empty in-memory file system."""
    return MemoryFS()


@pytest.fixture
def make_engine(memory_fs: MemoryFS) -> Callable[..., Engine]:
    """Factory for engines reading from and writing to `memory_fs`."""

    def _make(files: dict[str, str] | None = None, **kwargs: Any) -> Engine:
        for path, content in (files or {}).items():
            memory_fs.files[path] = content.encode("utf-8")
        kwargs.setdefault("read_func", memory_fs.read)
        kwargs.setdefault("write_func", memory_fs.write)
        return Engine(**kwargs)

    return _make


@pytest.fixture
def engine(make_engine: Callable[..., Engine]) -> Engine:
    """Initialized engine with Global = {"Name": "Bob"}."""
    eng = make_engine()
    eng.init({"Name": "Bob"})
    return eng


@pytest.fixture
def runtime() -> ScriptRuntime:
    """Fresh script runtime with default sandbox config."""
    return ScriptRuntime()


@pytest.fixture
def log_output() -> StringIO:
    return StringIO()


@pytest.fixture
def json_logger(log_output: StringIO) -> EngineLogger:
    """Debug-level JSON logger writing to `log_output`."""
    return EngineLogger(LogConfig(level=LogLevel.DEBUG, format=LogFormat.JSON, output=log_output))


@pytest.fixture(autouse=True)
def reset_telemetry_state() -> Generator[None, None, None]:
    """Keep telemetry disabled unless a test sets it up itself."""
    reset_telemetry()
    yield
    reset_telemetry()


# =============================================================================
# Markers Configuration
# =============================================================================


def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "property: Property-based tests")
    config.addinivalue_line("markers", "security: Security tests")
