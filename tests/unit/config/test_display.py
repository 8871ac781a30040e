"""
shell-ai - unit tests for config display, template and schema listing.

Coverage:
- API keys are masked down to their last six characters.
- Inactive provider settings only show when explicitly supplied.
- The template is valid TOML with every provider table.
- ``init`` refuses to overwrite and writes owner-only files on POSIX.
"""

from __future__ import annotations

import stat
import sys
import tomllib
from pathlib import Path

import pytest

from shell_ai.config.display import (
    ConfigEntry,
    config_entries,
    config_payload,
    config_template,
    format_entry,
    format_schema_lines,
    mask_secret,
    schema_payload,
    write_config_template,
)
from shell_ai.config.loader import LoadedConfigFile, resolve_values
from shell_ai.config.schema import ConfigSource


def test_mask_secret_keeps_last_six_characters() -> None:
    assert mask_secret("sk-abcdefghijklmnop") == "****klmnop"
    assert mask_secret("short") == "****"
    assert mask_secret(None) is None


def test_entries_mask_keys_and_skip_untouched_inactive_providers() -> None:
    values = resolve_values(
        {},
        {
            "SHAI_API_PROVIDER": "groq",
            "GROQ_API_KEY": "gsk_1234567890abcdef",
            "MISTRAL_MODEL": "codestral-latest",
        },
        {},
    )

    entries = {entry.key: entry for entry in config_entries(values)}

    assert entries["groq.api_key"].value == "****abcdef"
    assert entries["groq.api_key"].origin == "GROQ_API_KEY"
    assert "groq.model" in entries
    assert "mistral.model" in entries
    assert "openai.model" not in entries
    assert entries["provider"].value == "groq"


def test_format_entry_notes_source() -> None:
    default = ConfigEntry("temperature", 0.05, ConfigSource.DEFAULT, "default")
    from_env = ConfigEntry("openai.model", "gpt-4o", ConfigSource.ENV, "OPENAI_MODEL")
    unset = ConfigEntry("model", None, ConfigSource.DEFAULT, "default")

    assert format_entry(default) == "temperature = 0.05  [default]"
    assert format_entry(from_env) == "openai.model = gpt-4o  [env: OPENAI_MODEL]"
    assert format_entry(unset) == "model = (unset)  [default]"


def test_config_payload_reports_file_status(tmp_path: Path) -> None:
    present = tmp_path / "config.toml"
    missing = tmp_path / "config.json"
    loaded = LoadedConfigFile(loaded_paths=(present,), searched_paths=(present, missing))
    entry = ConfigEntry("provider", "ollama", ConfigSource.FILE, "config.toml")

    payload = config_payload([entry], loaded)

    assert payload["files"] == [
        {"path": str(present), "status": "loaded"},
        {"path": str(missing), "status": "not found"},
    ]
    assert payload["settings"] == [
        {"key": "provider", "value": "ollama", "source": "file", "origin": "config.toml"}
    ]


def test_template_parses_as_toml_with_every_provider_table() -> None:
    template = config_template()
    parsed = tomllib.loads(template)

    assert set(parsed) == {"retry", "openai", "azure", "groq", "ollama", "mistral"}
    assert "Precedence" in template
    assert "# temperature = 0.05" in template
    assert "SHAI_SKIP_CONFIRM" not in template


def test_uncommented_template_lines_are_valid_settings() -> None:
    lines = [
        line[2:] if line.startswith("# ") and " = " in line else line
        for line in config_template().splitlines()
    ]
    uncommented = "\n".join(line for line in lines if not line.startswith("#"))

    parsed = tomllib.loads(uncommented)

    assert parsed["temperature"] == pytest.approx(0.05)
    assert parsed["retry"]["max_attempts"] == 4
    assert parsed["groq"]["api_base"] == "https://api.groq.com/openai"


def test_write_config_template_refuses_to_overwrite(tmp_path: Path) -> None:
    target = tmp_path / "shell-ai" / "config.toml"

    written = write_config_template(target, "provider = \"ollama\"\n", platform="linux")

    assert written.read_text(encoding="utf-8") == 'provider = "ollama"\n'
    with pytest.raises(FileExistsError):
        write_config_template(target, platform="linux")


@pytest.mark.skipif(sys.platform.startswith("win"), reason="POSIX permissions")
def test_write_config_template_is_owner_only(tmp_path: Path) -> None:
    target = write_config_template(tmp_path / "config.toml", platform="linux")

    assert stat.S_IMODE(target.stat().st_mode) == 0o600


def test_schema_payload_groups_provider_fields() -> None:
    payload = schema_payload()
    globals_by_key = {entry["key"]: entry for entry in payload["settings"]}

    assert globals_by_key["frontend"]["choices"] == [
        "automatic",
        "dialog",
        "readline",
        "noninteractive",
    ]
    assert globals_by_key["max_tokens"]["flag"] == "--max-tokens"
    assert [entry["key"] for entry in payload["providers"]["azure"]] == [
        "azure.api_key",
        "azure.api_base",
        "azure.max_tokens",
        "azure.deployment_name",
        "azure.api_version",
    ]


def test_schema_lines_mention_env_names() -> None:
    text = "\n".join(format_schema_lines())

    assert "SHAI_API_PROVIDER" in text
    assert "[mistral]" in text
