"""Readline frontend state machine - pure logic, NO Textual imports.

File: src/shell_ai/ui/frontend/readline_machine.py

The line itself is edited by the app's ``LineInput``; the machine only sees
the submitted text and the cancel keys.
"""

from __future__ import annotations

from typing import Final

from shell_ai.ui.frontend.state import (
    Cancelled,
    Effect,
    ExecuteEffect,
    Executed,
    Outcome,
)

CANCEL_KEYS: Final[frozenset[str]] = frozenset({"ctrl+c", "escape"})


class ReadlineMachine:
    """One editable line seeded with the top suggestion.

    Submitting a non-blank line requests execution; the outcome becomes
    ``Executed`` once the controller reports the exit code.
    """

    def __init__(self, suggestions: tuple[str, ...], *, prompt: str = "") -> None:
        if not suggestions:
            raise ValueError("readline frontend needs at least one suggestion")
        self.prompt = prompt
        self.initial_text = suggestions[0]
        self.outcome: Outcome | None = None
        self.pending: Effect | None = None

    @property
    def is_terminal(self) -> bool:
        return self.outcome is not None

    @property
    def line_seed(self) -> str | None:
        """Text for the line editor, or ``None`` once the line is submitted."""
        if self.outcome is not None or self.pending is not None:
            return None
        return self.initial_text

    def cancel(self) -> None:
        self.pending = None
        self.outcome = Cancelled()

    def handle_key(self, key: str, character: str | None = None) -> Effect | None:
        if self.outcome is None and self.pending is None and key in CANCEL_KEYS:
            self.cancel()
        return None

    def submit_text(self, text: str) -> Effect | None:
        if self.outcome is not None or self.pending is not None:
            return None
        if not text.strip():
            return None
        self.pending = ExecuteEffect(text)
        return self.pending

    def complete_effect(self, effect: Effect, result: object) -> None:
        if self.outcome is not None:
            return
        if not isinstance(effect, ExecuteEffect) or effect != self.pending:
            raise ValueError(f"unexpected effect completion: {effect!r}")
        self.pending = None
        if not isinstance(result, int):
            raise TypeError("execute effect must complete with an exit code")
        self.outcome = Executed(command=effect.command, exit_code=result)


__all__ = ["CANCEL_KEYS", "ReadlineMachine"]
