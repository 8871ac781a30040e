"""
shell-ai - config display, template and schema listing.

File: src/shell_ai/config/display.py
Last updated: 2026-10-19

Purpose
- Back the ``config``, ``config init`` and ``config schema`` commands.

What should be included in this file
- Per-setting entries with value, source and origin, API keys masked.
- A commented TOML template covering every global and provider setting.
- A machine-readable description of the settings schema.

Functional requirements
- Display works on incomplete configurations (no cross-field validation).
- ``init`` never overwrites an existing file and writes it owner-only on POSIX.

Non-functional requirements
- No UI imports; callers choose how to print the returned data.
"""

from __future__ import annotations

import json
import os
import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from shell_ai.config.loader import TOML_FILE_NAME, LoadedConfigFile, ResolvedValue
from shell_ai.config.schema import (
    SETTINGS,
    ConfigSource,
    ProviderId,
    Setting,
    SettingKind,
    global_settings,
    provider_settings,
)

MASK: Final[str] = "****"
MASK_VISIBLE_CHARS: Final[int] = 6
CONFIG_FILE_MODE: Final[int] = 0o600


@dataclass(frozen=True, slots=True)
class ConfigEntry:
    key: str
    value: object
    source: ConfigSource
    origin: str
    description: str = ""

    @property
    def display_value(self) -> str:
        if self.value is None:
            return "(unset)"
        if isinstance(self.value, bool):
            return "true" if self.value else "false"
        return str(self.value)

    def to_dict(self) -> dict[str, object]:
        return {
            "key": self.key,
            "value": self.value,
            "source": self.source.value,
            "origin": self.origin,
        }


def mask_secret(value: object) -> str | None:
    """``****`` followed by the last six characters of a long secret."""

    if value is None:
        return None
    text = str(value)
    if len(text) <= MASK_VISIBLE_CHARS:
        return MASK
    return f"{MASK}{text[-MASK_VISIBLE_CHARS:]}"


def config_entries(
    values: Mapping[str, ResolvedValue],
    schema: tuple[Setting, ...] = SETTINGS,
) -> list[ConfigEntry]:
    """Global settings, then the active provider's settings, then any other
    provider setting that was explicitly supplied."""

    active = values.get("provider")
    active_provider = str(active.value) if active is not None and active.value else None

    entries: list[ConfigEntry] = []
    for setting in schema:
        resolved = values.get(setting.key)
        if resolved is None:
            continue
        if setting.provider is not None:
            is_active = setting.provider.value == active_provider
            if not is_active and resolved.source is ConfigSource.DEFAULT:
                continue
        value = resolved.value
        entries.append(
            ConfigEntry(
                key=setting.key,
                value=mask_secret(value) if setting.sensitive else _plain(value),
                source=resolved.source,
                origin=resolved.origin,
                description=setting.description,
            )
        )
    return entries


def _plain(value: object) -> object:
    enum_value = getattr(value, "value", None)
    if isinstance(enum_value, str):
        return enum_value
    return value


def format_entry(entry: ConfigEntry) -> str:
    if entry.source is ConfigSource.DEFAULT:
        note = "default"
    else:
        note = f"{entry.source.value}: {entry.origin}"
    return f"{entry.key} = {entry.display_value}  [{note}]"


def file_status(loaded: LoadedConfigFile) -> list[tuple[Path, str]]:
    loaded_set = set(loaded.loaded_paths)
    return [
        (path, "loaded" if path in loaded_set else "not found")
        for path in loaded.searched_paths
    ]


def config_payload(entries: Sequence[ConfigEntry], loaded: LoadedConfigFile) -> dict[str, object]:
    return {
        "files": [
            {"path": str(path), "status": status} for path, status in file_status(loaded)
        ],
        "settings": [entry.to_dict() for entry in entries],
    }


# ---------------------------------------------------------------------------
# Template
# ---------------------------------------------------------------------------


def _toml_literal(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return repr(value)
    return json.dumps(str(value))


def _template_line(setting: Setting) -> list[str]:
    lines = []
    comment = setting.description
    if setting.env_vars:
        comment = f"{comment} (env: {', '.join(setting.env_vars)})"
    if setting.choices:
        comment = f"{comment}; one of: {', '.join(setting.choices)}"
    lines.append(f"# {comment}")
    if setting.default is None:
        numeric = setting.kind in (SettingKind.INTEGER, SettingKind.NUMBER)
        placeholder = "1" if numeric else '""'
        lines.append(f"# {setting.field_name} = {placeholder}")
    else:
        lines.append(f"# {setting.field_name} = {_toml_literal(setting.default)}")
    return lines


def config_template(schema: tuple[Setting, ...] = SETTINGS) -> str:
    """Commented ``config.toml`` with every setting at its default."""

    lines = [
        "# shell-ai configuration",
        "#",
        "# Precedence (highest first): command-line flags, environment variables,",
        "# this file, built-in defaults. Uncomment a line to set it.",
        "",
    ]
    tables: dict[str, list[Setting]] = {}
    for setting in global_settings(schema):
        if setting.legacy:
            continue
        if len(setting.path) == 1:
            lines.extend(_template_line(setting))
            lines.append("")
        else:
            tables.setdefault(setting.path[0], []).append(setting)

    for table, members in tables.items():
        lines.append(f"[{table}]")
        for setting in members:
            lines.extend(_template_line(setting))
        lines.append("")

    for provider in ProviderId:
        lines.append(f"[{provider.value}]")
        for setting in provider_settings(provider, schema):
            lines.extend(_template_line(setting))
        lines.append("")

    return "\n".join(lines).rstrip("\n") + "\n"


def write_config_template(
    path: Path,
    content: str | None = None,
    *,
    platform: str = sys.platform,
) -> Path:
    """Create ``path`` with the template; refuse to replace an existing file."""

    if path.exists():
        raise FileExistsError(f"config file already exists: {path}")
    path.parent.mkdir(parents=True, exist_ok=True)
    text = content if content is not None else config_template()
    with path.open("x", encoding="utf-8") as handle:
        handle.write(text)
    if not platform.startswith("win"):
        os.chmod(path, CONFIG_FILE_MODE)
    return path


# ---------------------------------------------------------------------------
# Schema listing
# ---------------------------------------------------------------------------


def schema_payload(schema: tuple[Setting, ...] = SETTINGS) -> dict[str, object]:
    def _describe(setting: Setting) -> dict[str, object]:
        entry: dict[str, object] = {
            "key": setting.key,
            "type": setting.kind.value,
            "default": setting.default,
            "env": list(setting.env_vars),
            "description": setting.description,
        }
        if setting.choices:
            entry["choices"] = list(setting.choices)
        if setting.cli_flag:
            entry["flag"] = setting.cli_flag
        if setting.required:
            entry["required"] = True
        return entry

    return {
        "config_file": TOML_FILE_NAME,
        "settings": [_describe(setting) for setting in global_settings(schema)],
        "providers": {
            provider.value: [_describe(setting) for setting in provider_settings(provider, schema)]
            for provider in ProviderId
        },
    }


def format_schema_lines(schema: tuple[Setting, ...] = SETTINGS) -> list[str]:
    lines = ["Settings:"]
    for setting in global_settings(schema):
        lines.append(f"  {_schema_line(setting)}")
    for provider in ProviderId:
        lines.append("")
        lines.append(f"[{provider.value}]")
        for setting in provider_settings(provider, schema):
            lines.append(f"  {_schema_line(setting)}")
    return lines


def _schema_line(setting: Setting) -> str:
    parts = [f"{setting.key} ({setting.kind.value})"]
    if setting.choices:
        parts.append(f"one of {'|'.join(setting.choices)}")
    if setting.default is not None:
        parts.append(f"default {_toml_literal(setting.default)}")
    if setting.env_vars:
        parts.append(f"env {', '.join(setting.env_vars)}")
    if setting.description:
        parts.append(f"- {setting.description}")
    return "  ".join(parts)


__all__ = [
    "CONFIG_FILE_MODE",
    "ConfigEntry",
    "config_entries",
    "config_payload",
    "config_template",
    "file_status",
    "format_entry",
    "format_schema_lines",
    "mask_secret",
    "schema_payload",
    "write_config_template",
]
