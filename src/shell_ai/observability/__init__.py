"""Public observability primitives: stderr logging and redaction."""

from shell_ai.observability.logging import (
    TRACE,
    LogRedactor,
    color_enabled,
    default_log_redactor,
    level_for_debug,
    setup_logging,
    shutdown_logging,
)

__all__ = [
    "TRACE",
    "LogRedactor",
    "color_enabled",
    "default_log_redactor",
    "level_for_debug",
    "setup_logging",
    "shutdown_logging",
]
