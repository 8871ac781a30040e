"""Stderr logging setup with human and JSON-lines output and redaction support."""

from __future__ import annotations

import io
import json
import logging
import math
import os
import re
import sys
import threading
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from pathlib import Path
from typing import Final, TextIO

from rich.console import Console
from rich.text import Text

from shell_ai.config.schema import DebugLevel

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]
LogRedactor = Callable[[JSONValue], JSONValue]

TRACE: Final[int] = logging.DEBUG - 5
logging.addLevelName(TRACE, "TRACE")

_REDACTED_VALUE: Final[str] = "***REDACTED***"
_DEFAULT_LOGGER_NAME: Final[str] = "shell_ai"

_LEVEL_BY_DEBUG: Final[Mapping[DebugLevel, int]] = {
    DebugLevel.ERROR: logging.ERROR,
    DebugLevel.WARN: logging.WARNING,
    DebugLevel.INFO: logging.INFO,
    DebugLevel.DEBUG: logging.DEBUG,
    DebugLevel.TRACE: TRACE,
}

_LEVEL_WORDS: Final[Mapping[int, tuple[str, str]]] = {
    TRACE: ("trace", "dim"),
    logging.DEBUG: ("debug", "blue"),
    logging.INFO: ("info", "green"),
    logging.WARNING: ("warn", "yellow"),
    logging.ERROR: ("error", "bold red"),
    logging.CRITICAL: ("error", "bold red"),
}

_SENSITIVE_KEY_TERMS: Final[tuple[str, ...]] = (
    "secret",
    "token",
    "password",
    "api_key",
    "apikey",
    "api-key",
    "authorization",
    "credential",
)

_SENSITIVE_ASSIGNMENT_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"(?i)\b(api[_-]?key|token|password|secret|authorization)\b\s*([:=])\s*([^\s,;]+)"
)
_BEARER_TOKEN_PATTERN: Final[re.Pattern[str]] = re.compile(r"(?i)\bbearer\s+[A-Za-z0-9._~+/-]+=*")
_OPENAI_KEY_PATTERN: Final[re.Pattern[str]] = re.compile(r"\bsk-[A-Za-z0-9_-]{12,}")
_GROQ_KEY_PATTERN: Final[re.Pattern[str]] = re.compile(r"\bgsk_[A-Za-z0-9]{12,}")

_STANDARD_LOG_RECORD_FIELDS: Final[frozenset[str]] = frozenset(
    {
        "args",
        "asctime",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "message",
        "module",
        "msecs",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "thread",
        "threadName",
        "taskName",
    }
)

_ACTIVE_HANDLER_LOCK = threading.Lock()
_ACTIVE_HANDLER: logging.Handler | None = None


def level_for_debug(debug: DebugLevel | None) -> int:
    """Map ``--debug`` to a logging level; unset means warnings only."""

    if debug is None:
        return logging.WARNING
    return _LEVEL_BY_DEBUG[debug]


def color_enabled(stream: TextIO, environ: Mapping[str, str] | None = None) -> bool:
    env = os.environ if environ is None else environ
    if env.get("NO_COLOR"):
        return False
    isatty = getattr(stream, "isatty", None)
    return bool(isatty()) if callable(isatty) else False


class _HumanFormatter(logging.Formatter):
    """``[level] message`` lines, with the level word colored on a terminal."""

    def __init__(self, *, redactor: LogRedactor, color: bool) -> None:
        super().__init__()
        self._redactor = redactor
        self._console = (
            Console(file=io.StringIO(), force_terminal=True, color_system="standard")
            if color
            else None
        )

    def format(self, record: logging.LogRecord) -> str:
        word, style = _LEVEL_WORDS.get(record.levelno, (record.levelname.lower(), ""))
        label = f"[{word}]"
        if self._console is not None:
            with self._console.capture() as capture:
                self._console.print(Text(label, style=style), end="")
            label = capture.get()
        message = _coerce_log_message(self._redactor(record.getMessage()))
        line = f"{label} {message}"
        if record.exc_info is not None:
            line = f"{line}\n{_redact_string(self.formatException(record.exc_info))}"
        return line


class _JsonLineFormatter(logging.Formatter):
    """Formatter that emits canonical JSON objects per log line."""

    def __init__(self, *, redactor: LogRedactor) -> None:
        super().__init__()
        self._redactor = redactor

    def format(self, record: logging.LogRecord) -> str:
        event: dict[str, JSONValue] = {
            "timestamp": _iso8601z_from_epoch(record.created),
            "level": record.levelname,
            "logger": record.name,
            "message": _coerce_log_message(
                self._redactor(_normalize_json_value(record.getMessage()))
            ),
        }

        extras = _extract_extra_fields(record)
        if extras:
            event["fields"] = self._redactor(_normalize_json_value(extras))

        if record.exc_info is not None:
            event["exception"] = _coerce_log_message(
                self._redactor(_normalize_json_value(self.formatException(record.exc_info)))
            )

        return json.dumps(event, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def setup_logging(
    level: int | str = logging.WARNING,
    *,
    json_lines: bool = False,
    stream: TextIO | None = None,
    color: bool | None = None,
    logger_name: str = _DEFAULT_LOGGER_NAME,
    redactor: LogRedactor | None = None,
) -> logging.Logger:
    """Install a single stderr handler on the package logger and return it.

    Parameters
    ----------
    level:
        Logging level or level name (``"TRACE"`` is accepted).
    json_lines:
        Emit one JSON object per record instead of ``[level] message`` lines.
    stream:
        Destination stream; defaults to ``sys.stderr`` at call time.
    color:
        Force color on or off; ``None`` detects a terminal and honors ``NO_COLOR``.
    """

    shutdown_logging()

    target = stream if stream is not None else sys.stderr
    parsed_level = _parse_log_level(level)
    active_redactor = redactor if redactor is not None else default_log_redactor

    formatter: logging.Formatter
    if json_lines:
        formatter = _JsonLineFormatter(redactor=active_redactor)
    else:
        use_color = color_enabled(target) if color is None else color
        formatter = _HumanFormatter(redactor=active_redactor, color=use_color)

    handler = logging.StreamHandler(target)
    handler.setLevel(parsed_level)
    handler.setFormatter(formatter)

    logger = logging.getLogger(logger_name)
    logger.setLevel(parsed_level)
    logger.propagate = False
    logger.addHandler(handler)

    with _ACTIVE_HANDLER_LOCK:
        global _ACTIVE_HANDLER
        _ACTIVE_HANDLER = handler
    return logger


def shutdown_logging(logger_name: str = _DEFAULT_LOGGER_NAME) -> None:
    """Remove the handler installed by ``setup_logging``, if any."""

    with _ACTIVE_HANDLER_LOCK:
        global _ACTIVE_HANDLER
        handler = _ACTIVE_HANDLER
        _ACTIVE_HANDLER = None
    if handler is None:
        return
    logger = logging.getLogger(logger_name)
    logger.removeHandler(handler)
    logger.propagate = True
    handler.flush()
    handler.close()


def default_log_redactor(value: JSONValue) -> JSONValue:
    """Default deep redaction for API keys and bearer tokens."""
    return _redact_value(value, key_context=None)


def _parse_log_level(value: int | str) -> int:
    if isinstance(value, int):
        return value

    if not isinstance(value, str):
        raise ValueError(f"level must be int or str, got {type(value).__name__}")

    normalized = value.strip().upper()
    parsed = logging.getLevelName(normalized)
    if isinstance(parsed, int):
        return parsed

    raise ValueError(f"unsupported logging level {value!r}")


def _iso8601z_from_epoch(epoch_seconds: float) -> str:
    timestamp = datetime.fromtimestamp(epoch_seconds, tz=UTC)
    return timestamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _coerce_log_message(value: JSONValue) -> str:
    if isinstance(value, str):
        return value
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _extract_extra_fields(record: logging.LogRecord) -> dict[str, JSONValue]:
    fields: dict[str, JSONValue] = {}
    for key, value in record.__dict__.items():
        if key in _STANDARD_LOG_RECORD_FIELDS:
            continue
        if key.startswith("_"):
            continue
        fields[key] = _normalize_json_value(value)
    return fields


def _normalize_json_value(value: object) -> JSONValue:
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if math.isfinite(value):
            return value
        return _REDACTED_VALUE
    if isinstance(value, str):
        return value
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, Mapping):
        output: dict[str, JSONValue] = {}
        for key, item in value.items():
            output[str(key)] = _normalize_json_value(item)
        return output
    if isinstance(value, (list, tuple)):
        return [_normalize_json_value(item) for item in value]
    return repr(value)


def _redact_value(value: JSONValue, *, key_context: str | None) -> JSONValue:
    if key_context is not None and _requires_redaction_for_key(key_context):
        return _REDACTED_VALUE

    if isinstance(value, str):
        return _redact_string(value)

    if isinstance(value, list):
        return [_redact_value(item, key_context=None) for item in value]

    if isinstance(value, dict):
        output: dict[str, JSONValue] = {}
        for key, item in value.items():
            output[key] = _redact_value(item, key_context=key)
        return output

    return value


def _requires_redaction_for_key(key: str) -> bool:
    key_lower = key.lower()
    return any(term in key_lower for term in _SENSITIVE_KEY_TERMS)


def _redact_string(text: str) -> str:
    redacted = _SENSITIVE_ASSIGNMENT_PATTERN.sub(
        lambda match: f"{match.group(1)}{match.group(2)}{_REDACTED_VALUE}", text
    )
    redacted = _BEARER_TOKEN_PATTERN.sub(f"Bearer {_REDACTED_VALUE}", redacted)
    redacted = _OPENAI_KEY_PATTERN.sub(_REDACTED_VALUE, redacted)
    redacted = _GROQ_KEY_PATTERN.sub(_REDACTED_VALUE, redacted)
    return redacted


__all__ = [
    "TRACE",
    "JSONScalar",
    "JSONValue",
    "LogRedactor",
    "color_enabled",
    "default_log_redactor",
    "level_for_debug",
    "setup_logging",
    "shutdown_logging",
]
