"""
shell-ai - settings schema.

File: src/shell_ai/config/schema.py
Last updated: 2026-10-19

Purpose
- Enumerate every configurable knob with its kind, default, environment
  variables, CLI flag and validation rule.

What should be included in this file
- Enumerations shared by the resolver, dispatch and frontend layers.
- Provider metadata (default endpoints, default models, auth scheme).
- The immutable ``SETTINGS`` table used for resolution, display and templates.

Functional requirements
- The table is the single source of truth for defaults and env names.

Non-functional requirements
- Pure data; importing this module has no side effects.
"""

from __future__ import annotations

import enum
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Final


class SettingKind(str, enum.Enum):
    STRING = "string"
    INTEGER = "integer"
    NUMBER = "number"
    BOOL = "bool"
    ENUM = "enum"


class ConfigSource(str, enum.Enum):
    """Where a resolved value came from, highest precedence first."""

    CLI = "cli"
    ENV = "env"
    FILE = "file"
    DEFAULT = "default"


class ProviderId(str, enum.Enum):
    OPENAI = "openai"
    AZURE = "azure"
    GROQ = "groq"
    OLLAMA = "ollama"
    MISTRAL = "mistral"


class Frontend(str, enum.Enum):
    AUTOMATIC = "automatic"
    DIALOG = "dialog"
    READLINE = "readline"
    NONINTERACTIVE = "noninteractive"


class OutputFormat(str, enum.Enum):
    HUMAN = "human"
    JSON = "json"


class DebugLevel(str, enum.Enum):
    ERROR = "error"
    WARN = "warn"
    INFO = "info"
    DEBUG = "debug"
    TRACE = "trace"


class AuthScheme(str, enum.Enum):
    BEARER = "bearer"
    API_KEY_HEADER = "api-key"
    NONE = "none"


Validator = Callable[[object], str | None]


def bounded(
    *,
    minimum: float | None = None,
    maximum: float | None = None,
) -> Validator:
    """Return a validator enforcing an inclusive numeric range."""

    def _check(value: object) -> str | None:
        if not isinstance(value, (int, float)) or isinstance(value, bool):
            return "must be numeric"
        if minimum is not None and value < minimum:
            return f"must be >= {minimum:g}"
        if maximum is not None and value > maximum:
            return f"must be <= {maximum:g}"
        return None

    return _check


@dataclass(frozen=True, slots=True)
class Setting:
    """One configurable knob."""

    key: str
    kind: SettingKind
    default: object = None
    env_vars: tuple[str, ...] = ()
    cli_flag: str | None = None
    choices: tuple[str, ...] = ()
    validator: Validator | None = field(default=None, compare=False)
    required: bool = False
    sensitive: bool = False
    description: str = ""
    provider: ProviderId | None = None
    legacy: bool = False

    @property
    def path(self) -> tuple[str, ...]:
        """Nested config-file path for this key (``openai.api_key`` -> table, field)."""

        return tuple(self.key.split("."))

    @property
    def field_name(self) -> str:
        return self.path[-1]


@dataclass(frozen=True, slots=True)
class ProviderSpec:
    """Static facts about one backend variant."""

    id: ProviderId
    env_prefix: str
    auth_scheme: AuthScheme
    default_api_base: str | None
    default_model: str | None
    requires_api_key: bool = True
    requires_api_base: bool = False
    extra_fields: tuple[str, ...] = ()


PROVIDER_SPECS: Final[Mapping[ProviderId, ProviderSpec]] = MappingProxyType(
    {
        ProviderId.OPENAI: ProviderSpec(
            id=ProviderId.OPENAI,
            env_prefix="OPENAI",
            auth_scheme=AuthScheme.BEARER,
            default_api_base="https://api.openai.com",
            default_model="gpt-5",
            extra_fields=("organization",),
        ),
        ProviderId.AZURE: ProviderSpec(
            id=ProviderId.AZURE,
            env_prefix="AZURE",
            auth_scheme=AuthScheme.API_KEY_HEADER,
            default_api_base=None,
            default_model=None,
            requires_api_base=True,
            extra_fields=("deployment_name", "api_version"),
        ),
        ProviderId.GROQ: ProviderSpec(
            id=ProviderId.GROQ,
            env_prefix="GROQ",
            auth_scheme=AuthScheme.BEARER,
            default_api_base="https://api.groq.com/openai",
            default_model="openai/gpt-oss-120b",
        ),
        ProviderId.OLLAMA: ProviderSpec(
            id=ProviderId.OLLAMA,
            env_prefix="OLLAMA",
            auth_scheme=AuthScheme.NONE,
            default_api_base="http://localhost:11434",
            default_model="gpt-oss:120b-cloud",
            requires_api_key=False,
        ),
        ProviderId.MISTRAL: ProviderSpec(
            id=ProviderId.MISTRAL,
            env_prefix="MISTRAL",
            auth_scheme=AuthScheme.BEARER,
            default_api_base="https://api.mistral.ai",
            default_model="codestral-2508",
        ),
    }
)

DEFAULT_AZURE_API_VERSION: Final[str] = "2023-05-15"
DEFAULT_TEMPERATURE: Final[float] = 0.05
DEFAULT_SUGGESTION_COUNT: Final[int] = 3
DEFAULT_MAX_REFERENCE_CHARS: Final[int] = 262_144
MAX_SUGGESTION_COUNT: Final[int] = 9

PROVIDER_FIELDS: Final[tuple[str, ...]] = (
    "api_key",
    "api_base",
    "model",
    "max_tokens",
    "organization",
    "deployment_name",
    "api_version",
)


def _choices(enum_type: type[enum.Enum]) -> tuple[str, ...]:
    return tuple(str(member.value) for member in enum_type)


def _global_settings() -> tuple[Setting, ...]:
    return (
        Setting(
            key="provider",
            kind=SettingKind.ENUM,
            env_vars=("SHAI_API_PROVIDER", "SHAI_PROVIDER"),
            cli_flag="--provider",
            choices=_choices(ProviderId),
            required=True,
            description="AI provider to use",
        ),
        Setting(
            key="model",
            kind=SettingKind.STRING,
            env_vars=("SHAI_MODEL",),
            cli_flag="--model",
            description="Model override for the active provider",
        ),
        Setting(
            key="temperature",
            kind=SettingKind.NUMBER,
            default=DEFAULT_TEMPERATURE,
            env_vars=("SHAI_TEMPERATURE",),
            cli_flag="--temperature",
            validator=bounded(minimum=0.0, maximum=2.0),
            description="Sampling temperature (0.0-2.0)",
        ),
        Setting(
            key="max_tokens",
            kind=SettingKind.INTEGER,
            env_vars=("SHAI_MAX_TOKENS",),
            cli_flag="--max-tokens",
            validator=bounded(minimum=1),
            description="Maximum tokens in the response (unset lets the provider decide)",
        ),
        Setting(
            key="suggestion_count",
            kind=SettingKind.INTEGER,
            default=DEFAULT_SUGGESTION_COUNT,
            env_vars=("SHAI_SUGGESTION_COUNT",),
            validator=bounded(minimum=1, maximum=MAX_SUGGESTION_COUNT),
            description="Number of suggestions to request in interactive modes",
        ),
        Setting(
            key="frontend",
            kind=SettingKind.ENUM,
            default=Frontend.AUTOMATIC.value,
            env_vars=("SHAI_FRONTEND",),
            cli_flag="--frontend",
            choices=_choices(Frontend),
            description="UI mode: automatic, dialog, readline, or noninteractive",
        ),
        Setting(
            key="output_format",
            kind=SettingKind.ENUM,
            default=OutputFormat.HUMAN.value,
            env_vars=("SHAI_OUTPUT_FORMAT",),
            cli_flag="--output-format",
            choices=_choices(OutputFormat),
            description="Output format: human or json",
        ),
        Setting(
            key="debug",
            kind=SettingKind.ENUM,
            env_vars=("SHAI_DEBUG",),
            cli_flag="--debug",
            choices=_choices(DebugLevel),
            description="Log level written to stderr",
        ),
        Setting(
            key="max_reference_chars",
            kind=SettingKind.INTEGER,
            default=DEFAULT_MAX_REFERENCE_CHARS,
            env_vars=("SHAI_MAX_REFERENCE_CHARS",),
            validator=bounded(minimum=0),
            description="Man-page characters attached to explain requests (0 disables)",
        ),
        Setting(
            key="exit_after_copy",
            kind=SettingKind.BOOL,
            default=False,
            env_vars=("SHAI_EXIT_AFTER_COPY",),
            description="Finish the dialog after copying a command (default: stay in the menu)",
        ),
        Setting(
            key="skip_confirm",
            kind=SettingKind.BOOL,
            default=False,
            env_vars=("SHAI_SKIP_CONFIRM",),
            legacy=True,
            description="Legacy: skip confirmation (implies frontend=noninteractive)",
        ),
        Setting(
            key="retry.max_attempts",
            kind=SettingKind.INTEGER,
            default=4,
            env_vars=("SHAI_RETRY_MAX_ATTEMPTS",),
            validator=bounded(minimum=1),
            description="Attempts per provider call, including the first",
        ),
        Setting(
            key="retry.initial_delay",
            kind=SettingKind.NUMBER,
            default=1.0,
            env_vars=("SHAI_RETRY_INITIAL_DELAY",),
            validator=bounded(minimum=0.0),
            description="Seconds to wait before the first retry",
        ),
        Setting(
            key="retry.max_delay",
            kind=SettingKind.NUMBER,
            default=16.0,
            env_vars=("SHAI_RETRY_MAX_DELAY",),
            validator=bounded(minimum=0.0),
            description="Upper bound on a single backoff wait, in seconds",
        ),
        Setting(
            key="retry.jitter",
            kind=SettingKind.NUMBER,
            default=0.1,
            env_vars=("SHAI_RETRY_JITTER",),
            validator=bounded(minimum=0.0, maximum=0.5),
            description="Fraction of each delay randomly shaved off (0.0-0.5)",
        ),
    )


def _provider_settings(spec: ProviderSpec) -> tuple[Setting, ...]:
    prefix = spec.env_prefix
    name = spec.id.value
    settings: list[Setting] = [
        Setting(
            key=f"{name}.api_key",
            kind=SettingKind.STRING,
            env_vars=(f"{prefix}_API_KEY",),
            required=spec.requires_api_key,
            sensitive=True,
            provider=spec.id,
            description=f"{name} API key",
        ),
        Setting(
            key=f"{name}.api_base",
            kind=SettingKind.STRING,
            default=spec.default_api_base,
            env_vars=(f"{prefix}_API_BASE",),
            required=spec.requires_api_base,
            provider=spec.id,
            description=f"{name} API base URL",
        ),
    ]
    if spec.id is not ProviderId.AZURE:
        settings.append(
            Setting(
                key=f"{name}.model",
                kind=SettingKind.STRING,
                default=spec.default_model,
                env_vars=(f"{prefix}_MODEL",),
                provider=spec.id,
                description=f"{name} model name",
            )
        )
    settings.append(
        Setting(
            key=f"{name}.max_tokens",
            kind=SettingKind.INTEGER,
            env_vars=(f"{prefix}_MAX_TOKENS",),
            validator=bounded(minimum=1),
            provider=spec.id,
            description=f"{name} max tokens",
        )
    )
    if "organization" in spec.extra_fields:
        settings.append(
            Setting(
                key=f"{name}.organization",
                kind=SettingKind.STRING,
                env_vars=(f"{prefix}_ORGANIZATION",),
                provider=spec.id,
                description="OpenAI organization id",
            )
        )
    if "deployment_name" in spec.extra_fields:
        settings.append(
            Setting(
                key=f"{name}.deployment_name",
                kind=SettingKind.STRING,
                env_vars=(f"{prefix}_DEPLOYMENT_NAME",),
                required=True,
                provider=spec.id,
                description="Azure deployment name",
            )
        )
    if "api_version" in spec.extra_fields:
        settings.append(
            Setting(
                key=f"{name}.api_version",
                kind=SettingKind.STRING,
                default=DEFAULT_AZURE_API_VERSION,
                env_vars=(f"{prefix}_API_VERSION", "OPENAI_API_VERSION"),
                provider=spec.id,
                description="Azure API version",
            )
        )
    return tuple(settings)


def _build_settings() -> tuple[Setting, ...]:
    settings = list(_global_settings())
    for spec in PROVIDER_SPECS.values():
        settings.extend(_provider_settings(spec))
    return tuple(settings)


SETTINGS: Final[tuple[Setting, ...]] = _build_settings()
SETTINGS_BY_KEY: Final[Mapping[str, Setting]] = MappingProxyType(
    {setting.key: setting for setting in SETTINGS}
)


def provider_settings(provider: ProviderId, schema: tuple[Setting, ...] = SETTINGS) -> tuple[Setting, ...]:
    return tuple(setting for setting in schema if setting.provider is provider)


def global_settings(schema: tuple[Setting, ...] = SETTINGS) -> tuple[Setting, ...]:
    return tuple(setting for setting in schema if setting.provider is None)


def supported_providers() -> tuple[str, ...]:
    return tuple(provider.value for provider in ProviderId)


__all__ = [
    "DEFAULT_AZURE_API_VERSION",
    "DEFAULT_MAX_REFERENCE_CHARS",
    "DEFAULT_SUGGESTION_COUNT",
    "DEFAULT_TEMPERATURE",
    "MAX_SUGGESTION_COUNT",
    "PROVIDER_FIELDS",
    "PROVIDER_SPECS",
    "SETTINGS",
    "SETTINGS_BY_KEY",
    "AuthScheme",
    "ConfigSource",
    "DebugLevel",
    "Frontend",
    "OutputFormat",
    "ProviderId",
    "ProviderSpec",
    "Setting",
    "SettingKind",
    "Validator",
    "bounded",
    "global_settings",
    "provider_settings",
    "supported_providers",
]
