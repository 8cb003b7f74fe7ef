"""sjstemplate configuration models."""

from dataclasses import dataclass, field
from typing import TextIO

from sjstemplate.logging import LogConfig
from sjstemplate.sandbox.types import SandboxConfig
from sjstemplate.telemetry.setup import TelemetryConfig
from sjstemplate.types import LogFormat, LogLevel


@dataclass
class TemplateConfig:
    """Jinja environment configuration.

    Attributes:
        trim_blocks: Remove the first newline after a block tag
        lstrip_blocks: Strip leading whitespace before a block tag
        keep_trailing_newline: Keep a single trailing newline of the body
        strict_undefined: Fail on undefined variables instead of rendering ""
    """

    trim_blocks: bool = False
    lstrip_blocks: bool = False
    keep_trailing_newline: bool = False
    strict_undefined: bool = False


@dataclass
class LoggingComponentsConfig:
    """Logging components configuration."""

    engine: bool = True
    template: bool = True
    script: bool = True


@dataclass
class LoggingOptionsConfig:
    """Logging options configuration."""

    show_params: bool = True
    truncate_at: int = 200


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: LogLevel = LogLevel.INFO
    format: LogFormat = LogFormat.COLORED
    components: LoggingComponentsConfig = field(default_factory=LoggingComponentsConfig)
    options: LoggingOptionsConfig = field(default_factory=LoggingOptionsConfig)

    def to_log_config(self, output: TextIO | None = None) -> LogConfig:
        """Build the runtime LogConfig for EngineLogger."""
        return LogConfig(
            level=self.level,
            format=self.format,
            show_params=self.options.show_params,
            truncate_at=self.options.truncate_at,
            components={
                "engine": self.components.engine,
                "template": self.components.template,
                "script": self.components.script,
            },
            output=output,
        )


@dataclass
class EngineConfig:
    """Root configuration object.

    Attributes:
        search_locations: Directories tried, in order, before the bare path
            when reading templates and scripts
        debug: Dump the spliced body when a template fails to compile
    """

    search_locations: list[str] = field(default_factory=list)
    debug: bool = False
    template: TemplateConfig = field(default_factory=TemplateConfig)
    sandbox: SandboxConfig = field(default_factory=SandboxConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    telemetry: TelemetryConfig = field(default_factory=TelemetryConfig)
