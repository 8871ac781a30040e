"""
shell-ai - configuration resolver.

File: src/shell_ai/config/loader.py
Last updated: 2026-10-19

Purpose
- Merge CLI flags, environment variables, config-file values and schema
  defaults into one immutable ``Configuration`` with per-field provenance.

What should be included in this file
- Precedence logic: CLI > env > file > defaults, first present source wins.
- Per-kind coercion of native and string-typed values.
- Cross-field validation once every field has resolved.
- The pure automatic-frontend decision table.
- TOML loading via ``tomllib`` with the legacy ``config.json`` layered on top.

Functional requirements
- Resolution is deterministic and side-effect free given identical inputs.
- Every error names the offending key and where its value came from.

Non-functional requirements
- Configuration errors surface before any network call is made.
"""

from __future__ import annotations

import json
import logging
import math
import os
import sys
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Final

from shell_ai.config.schema import (
    PROVIDER_SPECS,
    SETTINGS,
    ConfigSource,
    DebugLevel,
    Frontend,
    OutputFormat,
    ProviderId,
    Setting,
    SettingKind,
    supported_providers,
)

logger = logging.getLogger(__name__)

CONFIG_DIR_NAME: Final[str] = "shell-ai"
TOML_FILE_NAME: Final[str] = "config.toml"
JSON_FILE_NAME: Final[str] = "config.json"
DEFAULT_ORIGIN: Final[str] = "default"

_BOOLEAN_TRUE: Final[frozenset[str]] = frozenset({"1", "true", "t", "yes", "y", "on"})
_BOOLEAN_FALSE: Final[frozenset[str]] = frozenset({"0", "false", "f", "no", "n", "off"})

_SOURCE_RANK: Final[Mapping[ConfigSource, int]] = MappingProxyType(
    {
        ConfigSource.CLI: 0,
        ConfigSource.ENV: 1,
        ConfigSource.FILE: 2,
        ConfigSource.DEFAULT: 3,
    }
)


class ConfigError(ValueError):
    """Base class for configuration failures."""

    def __init__(
        self,
        message: str,
        *,
        key: str | None = None,
        origin: str | None = None,
    ) -> None:
        self.key = key
        self.origin = origin
        super().__init__(message)


class ConfigTypeError(ConfigError, TypeError):
    """Raised when a raw value cannot be coerced to its setting kind."""


class ConfigValidationError(ConfigError):
    """Raised when resolved values break a validation or cross-field rule."""

    def __init__(
        self,
        message: str,
        *,
        keys: tuple[str, ...] = (),
        origin: str | None = None,
    ) -> None:
        self.keys = keys
        super().__init__(message, key=keys[0] if keys else None, origin=origin)


class MissingRequiredError(ConfigValidationError):
    """Raised when a required setting has no value in any source."""


class ConfigLoadError(ConfigError):
    """Raised when a config file exists but cannot be read or parsed."""

    def __init__(self, message: str, *, path: Path) -> None:
        self.path = path
        super().__init__(message, origin=str(path))


@dataclass(frozen=True, slots=True)
class ResolvedValue:
    """A setting's final value plus the source that supplied it."""

    value: object
    source: ConfigSource
    origin: str = DEFAULT_ORIGIN

    @property
    def is_set(self) -> bool:
        return self.value is not None


@dataclass(frozen=True, slots=True)
class LoadedConfigFile:
    """Merged config-file contents with the file each key came from."""

    contents: Mapping[str, object] = field(default_factory=dict)
    origins: Mapping[str, str] = field(default_factory=dict)
    loaded_paths: tuple[Path, ...] = ()
    searched_paths: tuple[Path, ...] = ()


@dataclass(frozen=True, slots=True)
class Configuration:
    """Resolved, validated, read-only configuration for one process run."""

    values: Mapping[str, ResolvedValue]
    provider: ProviderId
    frontend: Frontend
    output_format: OutputFormat
    effective_model: str
    effective_max_tokens: int | None

    def resolved(self, key: str) -> ResolvedValue:
        try:
            return self.values[key]
        except KeyError as exc:
            raise KeyError(f"unknown setting: {key}") from exc

    def get(self, key: str) -> object:
        return self.resolved(key).value

    def provider_value(self, field_name: str) -> object:
        """Value of ``<active provider>.<field_name>``, or ``None`` if the field does not exist."""

        resolved = self.values.get(f"{self.provider.value}.{field_name}")
        return None if resolved is None else resolved.value

    @property
    def temperature(self) -> float:
        return float(self._number("temperature"))

    @property
    def suggestion_count(self) -> int:
        return int(self._number("suggestion_count"))

    @property
    def max_reference_chars(self) -> int:
        return int(self._number("max_reference_chars"))

    @property
    def exit_after_copy(self) -> bool:
        return self.get("exit_after_copy") is True

    @property
    def debug(self) -> DebugLevel | None:
        raw = self.get("debug")
        return None if raw is None else DebugLevel(str(raw))

    def _number(self, key: str) -> float:
        raw = self.get(key)
        if not isinstance(raw, (int, float)) or isinstance(raw, bool):
            raise TypeError(f"{key} is not numeric")
        return raw


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


def resolve(
    cli_args: Mapping[str, object],
    environment: Mapping[str, str],
    file_contents: Mapping[str, object],
    schema: tuple[Setting, ...] = SETTINGS,
    *,
    is_tty: bool = False,
    file_origins: Mapping[str, str] | None = None,
) -> Configuration:
    """Resolve every setting and run cross-field validation.

    ``cli_args`` is keyed by setting key (``max_tokens``, ``openai.model``);
    ``None`` entries count as absent. ``is_tty`` is the only external signal
    consulted, and only to resolve ``frontend=automatic``.
    """

    values = resolve_values(
        cli_args,
        environment,
        file_contents,
        schema,
        file_origins=file_origins,
    )
    _check_skip_confirm_conflict(values, environment)

    provider = _validate_provider(values)
    _run_validators(values, schema, provider)
    _validate_required_provider_fields(values, schema, provider)

    output_format = OutputFormat(str(values["output_format"].value))
    requested_frontend = Frontend(str(values["frontend"].value))
    _validate_frontend_output_format(values, requested_frontend, output_format)

    return Configuration(
        values=MappingProxyType(values),
        provider=provider,
        frontend=resolve_frontend(
            requested_frontend,
            is_tty=is_tty,
            output_format=output_format,
        ),
        output_format=output_format,
        effective_model=_effective_model(values, provider),
        effective_max_tokens=_effective_max_tokens(values, provider),
    )


def resolve_values(
    cli_args: Mapping[str, object],
    environment: Mapping[str, str],
    file_contents: Mapping[str, object],
    schema: tuple[Setting, ...] = SETTINGS,
    *,
    file_origins: Mapping[str, str] | None = None,
) -> dict[str, ResolvedValue]:
    """Resolve each setting independently, without cross-field validation.

    Used directly by ``config`` display, which must work on incomplete setups.
    """

    origins = file_origins if file_origins is not None else {}
    values: dict[str, ResolvedValue] = {}
    for setting in schema:
        values[setting.key] = _resolve_setting(
            setting,
            cli_args=cli_args,
            environment=environment,
            file_contents=file_contents,
            file_origins=origins,
        )
    _apply_skip_confirm(values)
    _apply_azure_key_fallback(values)
    return values


def resolve_frontend(
    requested: Frontend,
    *,
    is_tty: bool,
    output_format: OutputFormat,
) -> Frontend:
    """Map ``automatic`` onto a concrete frontend; concrete modes pass through."""

    if requested is not Frontend.AUTOMATIC:
        return requested
    if output_format is OutputFormat.JSON:
        return Frontend.NONINTERACTIVE
    return Frontend.DIALOG if is_tty else Frontend.NONINTERACTIVE


def _resolve_setting(
    setting: Setting,
    *,
    cli_args: Mapping[str, object],
    environment: Mapping[str, str],
    file_contents: Mapping[str, object],
    file_origins: Mapping[str, str],
) -> ResolvedValue:
    raw_cli = cli_args.get(setting.key)
    if _is_present(raw_cli):
        origin = setting.cli_flag or f"--{setting.key.replace('_', '-')}"
        return _resolved(setting, raw_cli, ConfigSource.CLI, origin)

    for env_name in setting.env_vars:
        raw_env = environment.get(env_name)
        if _is_present(raw_env):
            return _resolved(setting, raw_env, ConfigSource.ENV, env_name)

    raw_file = _lookup_path(file_contents, setting.path)
    if _is_present(raw_file):
        origin = file_origins.get(setting.key, TOML_FILE_NAME)
        return _resolved(setting, raw_file, ConfigSource.FILE, origin)

    return ResolvedValue(value=setting.default, source=ConfigSource.DEFAULT, origin=DEFAULT_ORIGIN)


def _resolved(setting: Setting, raw: object, source: ConfigSource, origin: str) -> ResolvedValue:
    return ResolvedValue(value=coerce_value(setting, raw, origin=origin), source=source, origin=origin)


def _is_present(raw: object) -> bool:
    if raw is None:
        return False
    if isinstance(raw, str) and not raw.strip():
        return False
    return True


def _lookup_path(contents: Mapping[str, object], path: tuple[str, ...]) -> object:
    current: object = contents
    for part in path:
        if not isinstance(current, Mapping):
            return None
        current = current.get(part)
    return current


def coerce_value(setting: Setting, raw: object, *, origin: str) -> object:
    """Coerce ``raw`` to the setting's kind, raising ``ConfigTypeError`` on failure."""

    kind = setting.kind
    if kind is SettingKind.STRING:
        if isinstance(raw, str):
            return raw.strip()
        if isinstance(raw, (int, float)) and not isinstance(raw, bool):
            return str(raw)
        raise _type_error(setting, raw, origin)

    if kind is SettingKind.INTEGER:
        if isinstance(raw, bool):
            raise _type_error(setting, raw, origin)
        if isinstance(raw, int):
            return raw
        if isinstance(raw, float) and raw.is_integer():
            return int(raw)
        if isinstance(raw, str):
            try:
                return int(raw.strip())
            except ValueError as exc:
                raise _type_error(setting, raw, origin) from exc
        raise _type_error(setting, raw, origin)

    if kind is SettingKind.NUMBER:
        if isinstance(raw, bool):
            raise _type_error(setting, raw, origin)
        if isinstance(raw, (int, float)):
            number = float(raw)
        elif isinstance(raw, str):
            try:
                number = float(raw.strip())
            except ValueError as exc:
                raise _type_error(setting, raw, origin) from exc
        else:
            raise _type_error(setting, raw, origin)
        if not math.isfinite(number):
            raise _type_error(setting, raw, origin)
        return number

    if kind is SettingKind.BOOL:
        if isinstance(raw, bool):
            return raw
        if isinstance(raw, int) and raw in (0, 1):
            return bool(raw)
        if isinstance(raw, str):
            lowered = raw.strip().lower()
            if lowered in _BOOLEAN_TRUE:
                return True
            if lowered in _BOOLEAN_FALSE:
                return False
        raise _type_error(setting, raw, origin)

    if not isinstance(raw, str):
        raise _type_error(setting, raw, origin)
    lowered = raw.strip().lower()
    if lowered not in setting.choices:
        raise ConfigValidationError(
            f"invalid value {raw!r} for {setting.key} (from {origin}); "
            f"expected one of: {', '.join(setting.choices)}",
            keys=(setting.key,),
            origin=origin,
        )
    return lowered


def _type_error(setting: Setting, raw: object, origin: str) -> ConfigTypeError:
    return ConfigTypeError(
        f"invalid {setting.kind.value} value {raw!r} for {setting.key} (from {origin})",
        key=setting.key,
        origin=origin,
    )


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def _check_skip_confirm_conflict(
    values: Mapping[str, ResolvedValue],
    environment: Mapping[str, str],
) -> None:
    if values["skip_confirm"].value is not True:
        return
    frontend = values["frontend"]
    if frontend.source is not ConfigSource.ENV:
        return
    if frontend.value == Frontend.NONINTERACTIVE.value:
        return
    skip_origin = values["skip_confirm"].origin
    raise ConfigValidationError(
        f"Configuration conflict: {skip_origin}=true and "
        f"{frontend.origin}={environment.get(frontend.origin, frontend.value)} are mutually "
        f"exclusive.\nEither unset {skip_origin} or set {frontend.origin}=noninteractive.",
        keys=("skip_confirm", "frontend"),
        origin=frontend.origin,
    )


def _apply_skip_confirm(values: dict[str, ResolvedValue]) -> None:
    skip = values["skip_confirm"]
    if skip.value is not True:
        return
    frontend = values["frontend"]
    if _SOURCE_RANK[skip.source] < _SOURCE_RANK[frontend.source]:
        values["frontend"] = ResolvedValue(
            value=Frontend.NONINTERACTIVE.value,
            source=skip.source,
            origin=skip.origin,
        )


def _apply_azure_key_fallback(values: dict[str, ResolvedValue]) -> None:
    azure_key = values.get("azure.api_key")
    openai_key = values.get("openai.api_key")
    if azure_key is None or openai_key is None:
        return
    if not azure_key.is_set and openai_key.is_set:
        values["azure.api_key"] = openai_key


def _validate_provider(values: Mapping[str, ResolvedValue]) -> ProviderId:
    resolved = values["provider"]
    if not resolved.is_set:
        raise MissingRequiredError(
            "No provider configured.\n\n"
            "Quick start (choose one):\n"
            "  1. Set environment variable:  export SHAI_API_PROVIDER=groq\n"
            "  2. Generate config file:      shell-ai config init\n"
            "  3. View all options:          shell-ai config schema\n\n"
            f"Supported providers: {', '.join(supported_providers())}",
            keys=("provider",),
        )
    return ProviderId(str(resolved.value))


def _run_validators(
    values: Mapping[str, ResolvedValue],
    schema: tuple[Setting, ...],
    provider: ProviderId,
) -> None:
    for setting in schema:
        if setting.validator is None:
            continue
        if setting.provider is not None and setting.provider is not provider:
            continue
        resolved = values[setting.key]
        if not resolved.is_set:
            continue
        problem = setting.validator(resolved.value)
        if problem is not None:
            raise ConfigValidationError(
                f"invalid value {resolved.value!r} for {setting.key} (from {resolved.origin}): "
                f"{problem}",
                keys=(setting.key,),
                origin=resolved.origin,
            )


def _validate_required_provider_fields(
    values: Mapping[str, ResolvedValue],
    schema: tuple[Setting, ...],
    provider: ProviderId,
) -> None:
    missing: list[Setting] = [
        setting
        for setting in schema
        if setting.provider is provider and setting.required and not values[setting.key].is_set
    ]
    if not missing:
        return

    lines = [f"Configuration incomplete for {provider.value} provider:"]
    for setting in missing:
        lines.append(f"  - {setting.key}: {setting.description}")
        lines.append(f"    Hint: {missing_field_hint(setting)}")
    raise MissingRequiredError(
        "\n".join(lines),
        keys=tuple(setting.key for setting in missing),
    )


def missing_field_hint(setting: Setting) -> str:
    table, _, field_name = setting.key.rpartition(".")
    location = f"[{table}].{field_name}" if table else field_name
    if setting.env_vars:
        return f"Set {setting.env_vars[0]} or add {location} to {TOML_FILE_NAME}"
    return f"Add {location} to {TOML_FILE_NAME}"


def _validate_frontend_output_format(
    values: Mapping[str, ResolvedValue],
    frontend: Frontend,
    output_format: OutputFormat,
) -> None:
    if output_format is not OutputFormat.JSON:
        return
    if frontend not in (Frontend.DIALOG, Frontend.READLINE):
        return
    frontend_origin = values["frontend"].origin
    format_origin = values["output_format"].origin
    raise ConfigValidationError(
        f"frontend={frontend.value} (from {frontend_origin}) cannot be combined with "
        f"output_format=json (from {format_origin}); "
        "use frontend=noninteractive or frontend=automatic for JSON output",
        keys=("frontend", "output_format"),
        origin=frontend_origin,
    )


def _effective_model(values: Mapping[str, ResolvedValue], provider: ProviderId) -> str:
    name = provider.value
    # Azure requests always go to the deployment, whatever ``model`` says.
    if provider is ProviderId.AZURE:
        deployment = values.get(f"{name}.deployment_name")
        if deployment is not None and deployment.is_set:
            return str(deployment.value)
    global_model = values["model"]
    if global_model.is_set:
        return str(global_model.value)
    provider_model = values.get(f"{name}.model")
    if provider_model is not None and provider_model.is_set:
        return str(provider_model.value)
    default_model = PROVIDER_SPECS[provider].default_model
    return default_model or ""


def _effective_max_tokens(values: Mapping[str, ResolvedValue], provider: ProviderId) -> int | None:
    for key in ("max_tokens", f"{provider.value}.max_tokens"):
        resolved = values.get(key)
        if resolved is not None and resolved.is_set:
            value = resolved.value
            if isinstance(value, int) and not isinstance(value, bool):
                return value
    return None


# ---------------------------------------------------------------------------
# Config files
# ---------------------------------------------------------------------------


def default_config_dir(
    environ: Mapping[str, str] | None = None,
    *,
    platform: str = sys.platform,
) -> Path:
    """Per-user config directory: ``%APPDATA%`` on Windows, XDG elsewhere."""

    env = os.environ if environ is None else environ
    if platform.startswith("win"):
        appdata = env.get("APPDATA")
        if appdata:
            return Path(appdata) / CONFIG_DIR_NAME
    xdg = env.get("XDG_CONFIG_HOME")
    base = Path(xdg) if xdg else Path.home() / ".config"
    return base / CONFIG_DIR_NAME


def default_config_paths(
    environ: Mapping[str, str] | None = None,
    *,
    platform: str = sys.platform,
) -> tuple[Path, Path]:
    config_dir = default_config_dir(environ, platform=platform)
    return config_dir / TOML_FILE_NAME, config_dir / JSON_FILE_NAME


def load_config_file(
    toml_path: Path | None = None,
    json_path: Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
) -> LoadedConfigFile:
    """Read ``config.toml`` then overlay the legacy ``config.json``.

    Missing files are skipped. When neither path is given the per-user
    defaults from ``default_config_paths`` are used.
    """

    if toml_path is None and json_path is None:
        toml_path, json_path = default_config_paths(environ)

    merged: dict[str, object] = {}
    origins: dict[str, str] = {}
    loaded: list[Path] = []
    searched: list[Path] = []

    for path, reader in ((toml_path, _read_toml), (json_path, _read_json)):
        if path is None:
            continue
        searched.append(path)
        if not path.exists():
            continue
        if not path.is_file():
            raise ConfigLoadError(f"config path is not a file: {path}", path=path)
        layer = reader(path)
        _merge_layer(merged, origins, layer, origin=path.name, prefix=())
        loaded.append(path)

    return LoadedConfigFile(
        contents=merged,
        origins=origins,
        loaded_paths=tuple(loaded),
        searched_paths=tuple(searched),
    )


def _read_toml(path: Path) -> Mapping[str, object]:
    try:
        with path.open("rb") as handle:
            parsed = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigLoadError(
            f"Failed to parse config file: {path}\n\n{exc}\n\n"
            "Hint: Fix the syntax error above, or delete the file to use defaults.",
            path=path,
        ) from exc
    except OSError as exc:
        raise ConfigLoadError(f"failed to read config file {path}: {exc}", path=path) from exc
    return parsed


def _read_json(path: Path) -> Mapping[str, object]:
    try:
        parsed = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigLoadError(
            f"Failed to parse JSON config file: {path}\n\n{exc}\n\n"
            "Hint: Fix the syntax error above, or delete the file to use defaults.",
            path=path,
        ) from exc
    except OSError as exc:
        raise ConfigLoadError(f"failed to read config file {path}: {exc}", path=path) from exc
    if not isinstance(parsed, dict):
        raise ConfigLoadError(f"config file {path} must contain a JSON object", path=path)
    return parsed


def _merge_layer(
    target: dict[str, object],
    origins: dict[str, str],
    layer: Mapping[str, object],
    *,
    origin: str,
    prefix: tuple[str, ...],
) -> None:
    for key, value in layer.items():
        path = (*prefix, str(key))
        if isinstance(value, Mapping):
            existing = target.get(str(key))
            nested: dict[str, object] = dict(existing) if isinstance(existing, Mapping) else {}
            _merge_layer(nested, origins, value, origin=origin, prefix=path)
            target[str(key)] = nested
            continue
        target[str(key)] = value
        origins[".".join(path)] = origin


def unknown_file_keys(
    contents: Mapping[str, object],
    schema: tuple[Setting, ...] = SETTINGS,
) -> tuple[str, ...]:
    """Dotted keys present in a config file that no setting claims."""

    known = {setting.key for setting in schema}
    found: list[str] = []

    def _walk(node: Mapping[str, object], prefix: tuple[str, ...]) -> None:
        for key, value in node.items():
            path = (*prefix, str(key))
            if isinstance(value, Mapping):
                _walk(value, path)
                continue
            dotted = ".".join(path)
            if dotted not in known:
                found.append(dotted)

    _walk(contents, ())
    return tuple(sorted(found))


def load_configuration(
    cli_args: Mapping[str, object],
    *,
    environ: Mapping[str, str] | None = None,
    is_tty: bool = False,
    config_path: Path | None = None,
    schema: tuple[Setting, ...] = SETTINGS,
) -> tuple[Configuration, LoadedConfigFile]:
    """Load config files and resolve them against CLI flags and the environment.

    An explicit ``config_path`` replaces the default TOML/JSON pair.
    """

    env = dict(os.environ) if environ is None else dict(environ)
    if config_path is not None:
        if config_path.suffix.lower() == ".json":
            loaded = load_config_file(json_path=config_path)
        else:
            loaded = load_config_file(toml_path=config_path)
    else:
        loaded = load_config_file(environ=env)

    for dotted in unknown_file_keys(loaded.contents, schema):
        logger.warning(
            "ignoring unknown config key %s (from %s)",
            dotted,
            loaded.origins.get(dotted, TOML_FILE_NAME),
        )

    configuration = resolve(
        cli_args,
        env,
        loaded.contents,
        schema,
        is_tty=is_tty,
        file_origins=loaded.origins,
    )
    return configuration, loaded


__all__ = [
    "CONFIG_DIR_NAME",
    "JSON_FILE_NAME",
    "TOML_FILE_NAME",
    "ConfigError",
    "ConfigLoadError",
    "ConfigTypeError",
    "ConfigValidationError",
    "Configuration",
    "LoadedConfigFile",
    "MissingRequiredError",
    "ResolvedValue",
    "coerce_value",
    "default_config_dir",
    "default_config_paths",
    "load_config_file",
    "load_configuration",
    "missing_field_hint",
    "resolve",
    "resolve_frontend",
    "resolve_values",
    "unknown_file_keys",
]
