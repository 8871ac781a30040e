"""Shared utilities for shell-ai."""

from shell_ai.utils.concurrency import (
    CancellationToken,
    Cancelled,
    cancel_and_wait,
    sleep_with_cancellation,
)

__all__ = [
    "CancellationToken",
    "Cancelled",
    "cancel_and_wait",
    "sleep_with_cancellation",
]
