"""
shell-ai - unit tests for the process entrypoint.

Coverage:
- Exit codes returned by the CLI router pass through unchanged.
- Exceptions escaping the router map onto the exit-code contract.
- Cancellation is silent; internal errors print a traceback.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence

import pytest

from shell_ai.config.loader import ConfigError, MissingRequiredError
from shell_ai.main import ExitCode, cli_entrypoint
from shell_ai.synthesis.dispatch import AllFailed
from shell_ai.synthesis.providers.base import AuthError, RetryExhausted, ServerError
from shell_ai.utils.concurrency import Cancelled


def _raising(exc: BaseException) -> Callable[..., int]:
    def _run_cli(argv: Sequence[str] | None = None) -> int:
        raise exc

    return _run_cli


def _chained() -> RuntimeError:
    try:
        raise AuthError("invalid api key", provider="openai", http_status=401)
    except AuthError as cause:
        wrapped = RuntimeError("suggest failed")
        wrapped.__cause__ = cause
        return wrapped


@pytest.mark.parametrize("code", [0, 1, 2, 130])
def test_router_exit_codes_pass_through(monkeypatch: pytest.MonkeyPatch, code: int) -> None:
    monkeypatch.setattr("shell_ai.ui.cli.run_cli", lambda argv=None: code)

    assert cli_entrypoint([]) == code


def test_unknown_exit_code_is_internal(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("shell_ai.ui.cli.run_cli", lambda argv=None: 77)

    assert cli_entrypoint([]) == ExitCode.INTERNAL_ERROR


def test_argparse_exit_is_normalized(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("shell_ai.ui.cli.run_cli", _raising(SystemExit(2)))

    assert cli_entrypoint([]) == ExitCode.CONFIG_ERROR


@pytest.mark.parametrize(
    ("exc", "expected"),
    [
        (ConfigError("bad value"), ExitCode.CONFIG_ERROR),
        (MissingRequiredError("openai.api_key is required", keys=("openai.api_key",)), ExitCode.CONFIG_ERROR),
        (AuthError("invalid api key", provider="openai", http_status=401), ExitCode.PROVIDER_ERROR),
        (
            RetryExhausted(attempts=4, last_error=ServerError("down", provider="groq", http_status=503)),
            ExitCode.PROVIDER_ERROR,
        ),
        (AllFailed((AuthError("nope"),)), ExitCode.PROVIDER_ERROR),
        (ModuleNotFoundError("No module named 'openai'", name="openai"), ExitCode.PROVIDER_ERROR),
        (_chained(), ExitCode.PROVIDER_ERROR),
        (Cancelled(), ExitCode.CANCELLED),
        (KeyboardInterrupt(), ExitCode.CANCELLED),
        (ZeroDivisionError("boom"), ExitCode.INTERNAL_ERROR),
    ],
)
def test_exceptions_are_routed(
    monkeypatch: pytest.MonkeyPatch,
    exc: BaseException,
    expected: ExitCode,
) -> None:
    monkeypatch.setattr("shell_ai.ui.cli.run_cli", _raising(exc))

    assert cli_entrypoint([]) == expected


def test_known_failures_print_one_line(
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    monkeypatch.setattr("shell_ai.ui.cli.run_cli", _raising(ConfigError("provider is not set")))

    cli_entrypoint([])

    assert capsys.readouterr().err == "error: provider is not set\n"


def test_cancellation_is_silent(
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    monkeypatch.setattr("shell_ai.ui.cli.run_cli", _raising(Cancelled()))

    cli_entrypoint([])

    assert capsys.readouterr().err == ""


def test_internal_errors_print_traceback(
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    monkeypatch.setattr("shell_ai.ui.cli.run_cli", _raising(ZeroDivisionError("boom")))

    cli_entrypoint([])

    err = capsys.readouterr().err
    assert "Traceback" in err
    assert "ZeroDivisionError: boom" in err
