"""Configuration schema, resolution and display for shell-ai."""

from shell_ai.config.loader import (
    ConfigError,
    ConfigLoadError,
    ConfigTypeError,
    ConfigValidationError,
    Configuration,
    LoadedConfigFile,
    MissingRequiredError,
    ResolvedValue,
    load_config_file,
    load_configuration,
    resolve,
    resolve_frontend,
    resolve_values,
)
from shell_ai.config.schema import (
    SETTINGS,
    ConfigSource,
    DebugLevel,
    Frontend,
    OutputFormat,
    ProviderId,
    Setting,
    SettingKind,
)

__all__ = [
    "SETTINGS",
    "ConfigError",
    "ConfigLoadError",
    "ConfigSource",
    "ConfigTypeError",
    "ConfigValidationError",
    "Configuration",
    "DebugLevel",
    "Frontend",
    "LoadedConfigFile",
    "MissingRequiredError",
    "OutputFormat",
    "ProviderId",
    "ResolvedValue",
    "Setting",
    "SettingKind",
    "load_config_file",
    "load_configuration",
    "resolve",
    "resolve_frontend",
    "resolve_values",
]
