"""
shell-ai - unit tests for stderr logging.

File: tests/unit/observability/test_logging.py
Last updated: 2026-10-19

Purpose
- Validate the human and JSON-lines formatters, level mapping and redaction.

What this test file should cover
- ``[warn] message`` lines with and without color.
- JSON lines carry timestamp, level, logger, message and extras.
- Secrets are masked in messages and sensitive extra keys.
- ``shutdown_logging`` leaves no handler behind.
"""

from __future__ import annotations

import io
import json
import logging
from typing import TYPE_CHECKING

import pytest

from shell_ai.config.schema import DebugLevel
from shell_ai.observability.logging import (
    TRACE,
    color_enabled,
    default_log_redactor,
    level_for_debug,
    setup_logging,
    shutdown_logging,
)

if TYPE_CHECKING:
    from collections.abc import Iterator


@pytest.fixture(autouse=True)
def _cleanup_logging() -> Iterator[None]:
    yield
    shutdown_logging()


class _TTYStream(io.StringIO):
    def isatty(self) -> bool:
        return True


@pytest.mark.parametrize(
    ("debug", "expected"),
    [
        (None, logging.WARNING),
        (DebugLevel.ERROR, logging.ERROR),
        (DebugLevel.WARN, logging.WARNING),
        (DebugLevel.INFO, logging.INFO),
        (DebugLevel.DEBUG, logging.DEBUG),
        (DebugLevel.TRACE, logging.DEBUG - 5),
    ],
)
def test_level_for_debug(debug: DebugLevel | None, expected: int) -> None:
    assert level_for_debug(debug) == expected


def test_trace_level_is_registered() -> None:
    assert logging.getLevelName(TRACE) == "TRACE"


def test_human_lines_use_short_level_words() -> None:
    stream = io.StringIO()
    setup_logging(logging.INFO, stream=stream, color=False)

    logger = logging.getLogger("shell_ai.tests")
    logger.warning("disk almost full")
    logger.info("retrying in %.1fs", 2.0)
    logger.debug("hidden")

    assert stream.getvalue().splitlines() == [
        "[warn] disk almost full",
        "[info] retrying in 2.0s",
    ]


def test_color_wraps_only_the_level_word() -> None:
    stream = _TTYStream()
    setup_logging(logging.WARNING, stream=stream, color=True)

    logging.getLogger("shell_ai.tests").error("boom")

    line = stream.getvalue().rstrip("\n")
    assert "\x1b[" in line
    assert line.endswith("[error]\x1b[0m boom")


def test_color_enabled_honors_no_color_and_tty() -> None:
    assert color_enabled(_TTYStream(), {}) is True
    assert color_enabled(_TTYStream(), {"NO_COLOR": "1"}) is False
    assert color_enabled(io.StringIO(), {}) is False


def test_json_lines_include_extras_and_redact_sensitive_keys() -> None:
    stream = io.StringIO()
    setup_logging("TRACE", json_lines=True, stream=stream)

    logging.getLogger("shell_ai.tests").log(
        TRACE,
        "request sent",
        extra={"attempt": 2, "api_key": "abc123"},
    )

    event = json.loads(stream.getvalue())
    assert event["level"] == "TRACE"
    assert event["logger"] == "shell_ai.tests"
    assert event["message"] == "request sent"
    assert event["fields"] == {"attempt": 2, "api_key": "***REDACTED***"}
    assert event["timestamp"].endswith("Z")


def test_human_messages_are_redacted() -> None:
    stream = io.StringIO()
    setup_logging(logging.WARNING, stream=stream, color=False)

    logging.getLogger("shell_ai.tests").warning(
        "auth failed for sk-abcdefghijklmnopqrst with Bearer xyz.123"
    )

    output = stream.getvalue()
    assert "sk-abcdefghijklmnopqrst" not in output
    assert "xyz.123" not in output
    assert output.count("***REDACTED***") == 2


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("api_key=hunter2 next", "api_key=***REDACTED*** next"),
        ("token: abc", "token:***REDACTED***"),
        ("key gsk_abcdefghijklmnop", "key ***REDACTED***"),
        ("nothing secret here", "nothing secret here"),
    ],
)
def test_default_redactor_strings(raw: str, expected: str) -> None:
    assert default_log_redactor(raw) == expected


def test_default_redactor_walks_nested_values() -> None:
    redacted = default_log_redactor({"headers": {"Authorization": "Bearer x"}, "items": ["ok"]})

    assert redacted == {"headers": {"Authorization": "***REDACTED***"}, "items": ["ok"]}


def test_setup_replaces_previous_handler_and_shutdown_removes_it() -> None:
    first = io.StringIO()
    second = io.StringIO()
    setup_logging(logging.WARNING, stream=first, color=False)
    logger = setup_logging(logging.WARNING, stream=second, color=False)

    logging.getLogger("shell_ai.tests").warning("once")

    assert first.getvalue() == ""
    assert second.getvalue() == "[warn] once\n"
    assert len(logger.handlers) == 1

    shutdown_logging()
    assert logger.handlers == []
    assert logger.propagate is True
