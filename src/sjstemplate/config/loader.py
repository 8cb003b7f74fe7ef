"""sjstemplate configuration loader."""

import os
import re
import typing
from collections.abc import Callable
from dataclasses import fields
from pathlib import Path
from typing import Any

import yaml

from sjstemplate.errors import create_error
from sjstemplate.types import LogLevel, ValidationIssue, ValidationResult

from .models import EngineConfig


def resolve_env_vars(value: str) -> str:
    """Resolve environment variable references in string.

    Supports:
    - ${VAR} - Required, error if not set
    - ${VAR:-default} - With default value
    - ${VAR:?error message} - Required with custom error

    Args:
        value: String with potential env var references

    Returns:
        String with env vars resolved

    Raises:
        EngineError: If required var not set
    """
    # Pattern: ${VAR}, ${VAR:-default}, ${VAR:?error}
    pattern = r"\$\{([^}:]+)(?::([?-])([^}]*))?\}"

    def replacer(match: re.Match[str]) -> str:
        var_name = match.group(1)
        operator = match.group(2)  # '-' or '?' or None
        operand = match.group(3)  # default value or error message

        env_value = os.environ.get(var_name)

        if env_value is not None:
            return env_value

        if operator == "-":
            return operand or ""
        elif operator == "?":
            error_msg = operand or f"Required environment variable {var_name} not set"
            raise create_error("CONFIG_INVALID", error=error_msg, path=var_name)
        else:
            raise create_error(
                "CONFIG_INVALID",
                error=f"Required environment variable {var_name} not set",
                path=var_name,
            )

    return re.sub(pattern, replacer, value)


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries.

    Args:
        base: Base dictionary
        override: Override dictionary

    Returns:
        Merged dictionary
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def _resolve_env_vars_recursive(data: Any) -> Any:
    """Recursively resolve env vars in data structure.

    Args:
        data: Data structure (dict, list, str, etc.)

    Returns:
        Data with env vars resolved
    """
    if isinstance(data, dict):
        return {k: _resolve_env_vars_recursive(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_resolve_env_vars_recursive(item) for item in data]
    elif isinstance(data, str):
        return resolve_env_vars(data)
    else:
        return data


class ConfigLoader:
    """Load and validate engine configuration."""

    def __init__(self, logger: Any = None):
        """Initialize config loader.

        Args:
            logger: Optional EngineLogger instance
        """
        self._config: EngineConfig | None = None
        self._config_path: Path | None = None
        self._logger = logger
        self._change_callbacks: list[Callable[[EngineConfig], None]] = []

    def load(self, path: str | Path | None = None, use_defaults: bool = True) -> EngineConfig:
        """Load configuration from file.

        Resolution order if path not specified:
        1. SJSTEMPLATE_CONFIG_PATH environment variable
        2. ./sjstemplate.yaml
        3. ~/.sjstemplate/config.yaml
        4. If use_defaults=True and no file found, use default configuration

        Args:
            path: Optional path to config file
            use_defaults: If True, use default config when no file found

        Returns:
            Loaded EngineConfig instance

        Raises:
            EngineError: If file not found (when use_defaults=False) or invalid
        """
        if path is None:
            path = self._resolve_config_path()

        config_path = Path(path)

        if not config_path.exists():
            if use_defaults:
                if self._logger:
                    self._logger.engine_event(
                        LogLevel.INFO, "No config file found, using default configuration"
                    )
                return self.load_defaults()
            raise create_error(
                "CONFIG_INVALID",
                error="configuration file not found",
                path=str(config_path),
            )

        try:
            with config_path.open() as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise create_error(
                "CONFIG_INVALID",
                error=f"invalid YAML: {e}",
                path=str(config_path),
            ) from e

        if not isinstance(data, dict):
            raise create_error(
                "CONFIG_INVALID",
                error="top level of the configuration must be a mapping",
                path=str(config_path),
            )

        data = _resolve_env_vars_recursive(data)

        return self.load_from_dict(data, config_path)

    def load_defaults(self) -> EngineConfig:
        """Load default configuration without a file.

        Returns:
            EngineConfig with default values
        """
        return self.load_from_dict({})

    def load_from_dict(
        self, data: dict[str, Any], config_path: Path | None = None
    ) -> EngineConfig:
        """Load configuration from dictionary.

        Args:
            data: Configuration dictionary
            config_path: Optional path to config file (for tracking)

        Returns:
            Loaded EngineConfig instance

        Raises:
            EngineError: If configuration is invalid
        """
        validation = self.validate(data)
        if not validation.valid:
            error_messages = [f"- {issue.path}: {issue.message}" for issue in validation.errors]
            raise create_error(
                "CONFIG_INVALID",
                error="validation failed:\n" + "\n".join(error_messages),
                path=str(config_path) if config_path else "<dict>",
            )

        try:
            config = self._dict_to_config(data)
        except (TypeError, ValueError) as e:
            raise create_error(
                "CONFIG_INVALID",
                error=f"failed to parse configuration: {e}",
                path=str(config_path) if config_path else "<dict>",
            ) from e

        self._config = config
        self._config_path = config_path

        if self._logger:
            for warning in validation.warnings:
                self._logger.engine_event(LogLevel.WARN, warning.message, path=warning.path)
            self._logger.engine_event(LogLevel.DEBUG, "Configuration loaded successfully")

        return config

    def validate(self, data: dict[str, Any]) -> ValidationResult:
        """Validate config data without loading.

        Args:
            data: Configuration dictionary

        Returns:
            ValidationResult with errors and warnings
        """
        errors: list[ValidationIssue] = []
        warnings: list[ValidationIssue] = []

        valid_keys = {field.name for field in fields(EngineConfig)}

        for key in data:
            if key not in valid_keys:
                warnings.append(
                    ValidationIssue(
                        path=key,
                        message=f"Unknown configuration key: {key}",
                        severity="warning",
                    )
                )

        for section in ("template", "sandbox", "logging", "telemetry"):
            if section in data and not isinstance(data[section], dict):
                errors.append(
                    ValidationIssue(
                        path=section,
                        message=f"{section} must be a dictionary",
                    )
                )

        if "search_locations" in data:
            locations = data["search_locations"]
            if not isinstance(locations, list) or not all(
                isinstance(item, str) for item in locations
            ):
                errors.append(
                    ValidationIssue(
                        path="search_locations",
                        message="search_locations must be a list of strings",
                    )
                )

        if "debug" in data and not isinstance(data["debug"], bool):
            errors.append(ValidationIssue(path="debug", message="debug must be a boolean"))

        sandbox = data.get("sandbox")
        if isinstance(sandbox, dict) and sandbox.get("timeout") is not None:
            value = sandbox["timeout"]
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
                errors.append(
                    ValidationIssue(
                        path="sandbox.timeout",
                        message="timeout must be a positive number",
                    )
                )
        if isinstance(sandbox, dict) and sandbox.get("seed") is not None:
            seed = sandbox["seed"]
            if isinstance(seed, bool) or not isinstance(seed, int):
                errors.append(
                    ValidationIssue(path="sandbox.seed", message="seed must be an integer")
                )

        logging_section = data.get("logging")
        if isinstance(logging_section, dict) and "level" in logging_section:
            if logging_section["level"] not in {level.value for level in LogLevel}:
                errors.append(
                    ValidationIssue(
                        path="logging.level",
                        message=f"Unknown log level: {logging_section['level']}",
                    )
                )

        return ValidationResult(valid=True, errors=errors, warnings=warnings)

    def get(self) -> EngineConfig:
        """Get current configuration.

        Returns:
            Current EngineConfig instance

        Raises:
            EngineError: If configuration not loaded
        """
        if self._config is None:
            raise create_error("CONFIG_INVALID", error="configuration not loaded", path="")
        return self._config

    def reload(self) -> EngineConfig:
        """Reload configuration from file and notify registered callbacks.

        Returns:
            Reloaded EngineConfig instance

        Raises:
            EngineError: If no config path set or reload fails
        """
        if self._config_path is None:
            raise create_error("CONFIG_INVALID", error="no config path set, cannot reload", path="")

        new_config = self.load(self._config_path)

        for callback in self._change_callbacks:
            try:
                callback(new_config)
            except Exception as e:
                if self._logger:
                    self._logger.engine_event(
                        LogLevel.ERROR, f"Config change callback failed: {e}"
                    )

        return new_config

    def on_change(self, callback: Callable[[EngineConfig], None]) -> None:
        """Register callback for config changes.

        Args:
            callback: Function to call when config changes
        """
        self._change_callbacks.append(callback)

    def _resolve_config_path(self) -> Path:
        """Resolve config file path using resolution order.

        Returns:
            Path to config file
        """
        env_path = os.environ.get("SJSTEMPLATE_CONFIG_PATH")
        if env_path:
            return Path(env_path)

        local_path = Path("sjstemplate.yaml")
        if local_path.exists():
            return local_path

        home_path = Path.home() / ".sjstemplate" / "config.yaml"
        if home_path.exists():
            return home_path

        # Not found - use local path as default
        return local_path

    def _dict_to_config(self, data: dict[str, Any]) -> EngineConfig:
        """Convert dictionary to EngineConfig.

        Args:
            data: Configuration dictionary

        Returns:
            EngineConfig instance
        """
        kwargs: dict[str, Any] = {}

        for field in fields(EngineConfig):
            if field.name in data:
                kwargs[field.name] = self._convert_field(field.type, data[field.name])

        return EngineConfig(**kwargs)

    def _convert_field(self, field_type: Any, value: Any) -> Any:
        """Convert field value to appropriate type.

        Args:
            field_type: Expected field type
            value: Value to convert

        Returns:
            Converted value
        """
        if value is None:
            return None

        origin = typing.get_origin(field_type)

        if origin is list:
            if not isinstance(value, list):
                return value
            args = typing.get_args(field_type)
            if args:
                return [self._convert_field(args[0], item) for item in value]
            return value

        if origin is dict:
            if not isinstance(value, dict):
                return value
            args = typing.get_args(field_type)
            if args and len(args) == 2:
                value_type = args[1]
                return {k: self._convert_field(value_type, v) for k, v in value.items()}
            return value

        if hasattr(field_type, "__dataclass_fields__"):
            if isinstance(value, dict):
                kwargs = {}
                for f in fields(field_type):
                    if f.name in value:
                        kwargs[f.name] = self._convert_field(f.type, value[f.name])
                return field_type(**kwargs)
            return value

        if hasattr(field_type, "__mro__") and any(
            base.__name__ == "Enum" for base in field_type.__mro__
        ):
            if isinstance(value, str):
                return field_type(value)
            return value

        return value


# Convenience singleton
_default_loader: ConfigLoader | None = None


def get_config_loader() -> ConfigLoader:
    """Get default config loader singleton.

    Returns:
        Default ConfigLoader instance
    """
    global _default_loader  # noqa: PLW0603
    if _default_loader is None:
        _default_loader = ConfigLoader()
    return _default_loader


def load_config(path: str | Path | None = None) -> EngineConfig:
    """Convenience function to load config.

    Args:
        path: Optional path to config file

    Returns:
        Loaded EngineConfig instance
    """
    return get_config_loader().load(path)
