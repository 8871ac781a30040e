"""Unit tests for the CLI router.

File: tests/unit/ui/test_cli.py

Tests:
- argv normalization (default subcommand, shai shorthand, bare --debug)
- Parser flags and subcommands
- config listing, config init and config schema output
- explain input validation and the empty-prompt hint
- A noninteractive suggest run with a fake provider adapter
"""

from __future__ import annotations

import io
import json
import tomllib
from collections.abc import Iterator
from pathlib import Path

import pytest

from shell_ai.observability import shutdown_logging
from shell_ai.synthesis.providers.base import CompletionRequest, ProviderProfile, RawCompletion
from shell_ai.ui.cli import (
    EMPTY_PROMPT_HINT,
    CLIError,
    build_parser,
    exit_code_for,
    normalize_argv,
    read_explain_command,
    run_cli,
)
from shell_ai.ui.frontend.state import Cancelled, Copied, Executed, Printed


class _TTYStringIO(io.StringIO):
    def isatty(self) -> bool:
        return True


class _FixedAdapter:
    def __init__(self, command: str) -> None:
        self.command = command
        self.calls = 0

    def supports_structured_output(self, profile: ProviderProfile) -> bool:
        return True

    async def complete(self, profile: ProviderProfile, request: CompletionRequest) -> RawCompletion:
        self.calls += 1
        return RawCompletion(content=json.dumps({"command": self.command}), finish_reason="stop")


@pytest.fixture(autouse=True)
def _reset_logging() -> Iterator[None]:
    yield
    shutdown_logging()


def _run(argv: list[str], *, environ: dict[str, str] | None = None, prog: str = "shell-ai", stdin: io.StringIO | None = None) -> tuple[int, str]:
    stdout = io.StringIO()
    code = run_cli(
        argv,
        prog=prog,
        environ=environ or {},
        stdin=stdin if stdin is not None else _TTYStringIO(),
        stdout=stdout,
    )
    return code, stdout.getvalue()


@pytest.mark.unit
class TestNormalizeArgv:
    """Routing of raw argv to subcommands."""

    @pytest.mark.parametrize(
        ("argv", "prog", "expected"),
        [
            (["list", "files"], "shell-ai", ["suggest", "list", "files"]),
            (["explain", "ls"], "shell-ai", ["explain", "ls"]),
            (["--provider", "groq", "config"], "shell-ai", ["config", "--provider", "groq"]),
            (["config", "init"], "shai", ["suggest", "config", "init"]),
            (["--debug", "explain", "ls"], "shell-ai", ["explain", "--debug=debug", "ls"]),
            (["--debug", "trace", "ls"], "shell-ai", ["suggest", "--debug", "trace", "ls"]),
            (["-h"], "shell-ai", ["-h"]),
            ([], "shell-ai", ["suggest"]),
        ],
    )
    def test_normalize(self, argv: list[str], prog: str, expected: list[str]) -> None:
        assert normalize_argv(argv, prog=prog) == expected


@pytest.mark.unit
class TestParser:
    """Flags and subcommands."""

    def test_suggest_flags(self) -> None:
        args = build_parser().parse_args(
            ["suggest", "--frontend", "dialog", "--temperature", "0.3", "find", "logs"]
        )
        assert args.frontend == "dialog"
        assert args.temperature == pytest.approx(0.3)
        assert args.prompt == ["find", "logs"]
        assert args.no_color is False

    def test_flags_before_nested_subcommand_survive(self) -> None:
        args = build_parser().parse_args(["config", "--output-format", "json", "schema"])
        assert args.output_format == "json"
        assert args.config_action == "schema"

    def test_unknown_provider_is_rejected(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args(["suggest", "--provider", "acme", "x"])


@pytest.mark.unit
class TestConfigCommands:
    """config, config init and config schema."""

    def test_config_json_masks_keys(self, tmp_path: Path) -> None:
        code, output = _run(
            ["config", "--output-format", "json", "--config", str(tmp_path / "missing.toml")],
            environ={"SHAI_API_PROVIDER": "groq", "GROQ_API_KEY": "gsk_secret_value_123"},
        )

        assert code == 0
        payload = json.loads(output)
        settings = {item["key"]: item for item in payload["settings"]}
        assert settings["provider"]["value"] == "groq"
        assert settings["groq.api_key"]["value"] == "****ue_123"
        assert "gsk_secret_value_123" not in output

    def test_config_human_lists_files_and_settings(self, tmp_path: Path) -> None:
        config_file = tmp_path / "config.toml"
        config_file.write_text('provider = "ollama"\n', encoding="utf-8")

        code, output = _run(["config", "--config", str(config_file)])

        assert code == 0
        assert output.startswith("Config files:")
        assert "Settings:" in output
        assert str(config_file) in output

    def test_config_init_stdout_prints_template(self) -> None:
        code, output = _run(["config", "init", "--stdout"])

        assert code == 0
        parsed = tomllib.loads(output)
        assert "openai" in parsed
        assert "[azure]" in output

    def test_config_init_refuses_to_overwrite(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        target = tmp_path / "shell-ai" / "config.toml"

        first, output = _run(["config", "init", "--config", str(target)])
        second, _ = _run(["config", "init", "--config", str(target)])

        assert first == 0
        assert output.strip() == f"Wrote {target}"
        assert target.exists()
        assert second == 2
        assert "config init --stdout" in capsys.readouterr().err

    def test_config_schema_json(self) -> None:
        code, output = _run(["config", "schema", "--output-format", "json"])

        assert code == 0
        assert json.loads(output)


@pytest.mark.unit
class TestExplainAndSuggestInput:
    """Input validation before any provider call."""

    def test_explain_without_command_fails(self, capsys: pytest.CaptureFixture[str]) -> None:
        code, _ = _run(["explain"], environ={"SHAI_API_PROVIDER": "ollama"})

        assert code == 2
        assert "Command to explain is empty" in capsys.readouterr().err

    def test_explain_reads_piped_stdin(self) -> None:
        assert read_explain_command([], io.StringIO("  ls -la\n")) == "ls -la"

    def test_explain_ignores_interactive_stdin(self) -> None:
        with pytest.raises(CLIError) as excinfo:
            read_explain_command([], _TTYStringIO("ignored"))
        assert excinfo.value.exit_code == 2

    def test_empty_prompt_prints_hint(self) -> None:
        code, output = _run([], prog="shai")

        assert code == 0
        assert output.strip() == EMPTY_PROMPT_HINT

    def test_noninteractive_suggest_prints_one_command(self, monkeypatch: pytest.MonkeyPatch) -> None:
        adapter = _FixedAdapter("ls -la")
        monkeypatch.setattr("shell_ai.synthesis.dispatch.create_adapter", lambda _profile: adapter)

        code, output = _run(
            ["--frontend", "noninteractive", "list", "files"],
            environ={"SHAI_API_PROVIDER": "ollama"},
            prog="shai",
        )

        assert code == 0
        assert output == "ls -la\n"
        assert adapter.calls == 1


@pytest.mark.unit
class TestExitCodes:
    """Outcome to process exit code."""

    @pytest.mark.parametrize(
        ("outcome", "expected"),
        [
            (Executed(command="false", exit_code=1), 1),
            (Executed(command="true", exit_code=0), 0),
            (Copied(command="ls"), 0),
            (Printed(commands=("ls",)), 0),
            (Cancelled(), 0),
        ],
    )
    def test_exit_code_for(self, outcome: object, expected: int) -> None:
        assert exit_code_for(outcome) == expected  # type: ignore[arg-type]
