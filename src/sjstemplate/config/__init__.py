"""sjstemplate configuration - config loading and models."""

from .loader import (
    ConfigLoader,
    deep_merge,
    get_config_loader,
    load_config,
    resolve_env_vars,
)
from .models import (
    EngineConfig,
    LoggingComponentsConfig,
    LoggingConfig,
    LoggingOptionsConfig,
    TemplateConfig,
)

__all__ = [
    # Config models
    "EngineConfig",
    "TemplateConfig",
    "LoggingConfig",
    "LoggingComponentsConfig",
    "LoggingOptionsConfig",
    # Loader
    "ConfigLoader",
    "get_config_loader",
    "load_config",
    "resolve_env_vars",
    "deep_merge",
]
