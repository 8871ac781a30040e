"""Dialog frontend state machine - pure logic, NO Textual imports.

File: src/shell_ai/ui/frontend/dialog.py

Modes: ``BROWSING`` (initial) -> ``ACTION_MENU`` -> ``TERMINAL``, with
``REVISING`` reachable from both. Side effects (copy, explain, execute) are
returned as ``Effect`` values and completed by the controller through
``complete_effect``; the machine itself never touches the outside world.
Revision text is edited by the app's ``LineInput`` and arrives through
``submit_text``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, cast

from shell_ai.synthesis.prompts import revise_prompt
from shell_ai.ui.frontend.state import (
    MENU_ORDER,
    Cancelled,
    Copied,
    CopyEffect,
    DialogMode,
    Effect,
    ExecuteEffect,
    Executed,
    ExplainEffect,
    MenuAction,
    Outcome,
    Revised,
    RevisionKind,
)

if TYPE_CHECKING:
    from shell_ai.synthesis.explain import ExplanationResult

_UP_KEYS = frozenset({"up", "k"})
_DOWN_KEYS = frozenset({"down", "j"})
_DIGITS = frozenset("123456789")
SUBMIT_KEYS = frozenset({"enter", "ctrl+m", "ctrl+j"})

CLIPBOARD_UNAVAILABLE_NOTICE = (
    "Clipboard not available (install pbcopy, wl-copy, xclip or xsel)."
)
COPIED_NOTICE = "Copied to clipboard."


class DialogMachine:
    """Menu-driven selection over a numbered suggestion list."""

    def __init__(
        self,
        suggestions: tuple[str, ...],
        *,
        prompt: str,
        exit_after_copy: bool = False,
    ) -> None:
        if not suggestions:
            raise ValueError("dialog frontend needs at least one suggestion")
        self.suggestions = suggestions
        self.prompt = prompt
        self.exit_after_copy = exit_after_copy

        self.mode = DialogMode.BROWSING
        self.cursor = 0
        self.menu_cursor = 0
        self.revision_kind = RevisionKind.AMEND
        self.notice: str | None = None
        self.explanation: ExplanationResult | None = None
        self.outcome: Outcome | None = None
        self.pending: Effect | None = None
        self._mode_before_revising = DialogMode.BROWSING

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def selected(self) -> str:
        return self.suggestions[self.cursor]

    @property
    def is_terminal(self) -> bool:
        return self.mode is DialogMode.TERMINAL

    @property
    def line_seed(self) -> str | None:
        """Revision text starts empty; other modes hide the line editor."""
        return "" if self.mode is DialogMode.REVISING else None

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------

    def cancel(self) -> None:
        """Ctrl+C from any mode: discard pending work and finish."""
        self.pending = None
        self._finish(Cancelled())

    def handle_key(self, key: str, character: str | None = None) -> Effect | None:
        if self.mode is DialogMode.TERMINAL or self.pending is not None:
            return None
        if key == "ctrl+c":
            self.cancel()
            return None

        if self.mode is DialogMode.BROWSING:
            return self._handle_browsing(key, character)
        if self.mode is DialogMode.ACTION_MENU:
            return self._handle_action_menu(key, character)
        self._handle_revising(key)
        return None

    def _handle_browsing(self, key: str, character: str | None) -> Effect | None:
        symbol = character or key
        if symbol in _UP_KEYS:
            self.cursor = (self.cursor - 1) % len(self.suggestions)
        elif symbol in _DOWN_KEYS:
            self.cursor = (self.cursor + 1) % len(self.suggestions)
        elif symbol in _DIGITS:
            index = int(symbol) - 1
            if index < len(self.suggestions):
                self.cursor = index
                self._open_menu()
        elif key in SUBMIT_KEYS:
            self._open_menu()
        elif symbol == "g":
            self._finish(Revised(new_prompt=self.prompt))
        elif symbol == "n":
            self._start_revising(RevisionKind.REPLACE)
        elif symbol == "q" or key == "escape":
            self._finish(Cancelled())
        return None

    def _handle_action_menu(self, key: str, character: str | None) -> Effect | None:
        symbol = character or key
        if key in _UP_KEYS:
            self.menu_cursor = (self.menu_cursor - 1) % len(MENU_ORDER)
            return None
        if key in _DOWN_KEYS:
            self.menu_cursor = (self.menu_cursor + 1) % len(MENU_ORDER)
            return None
        if key in SUBMIT_KEYS:
            return self._run_action(MENU_ORDER[self.menu_cursor])
        if key == "escape":
            return self._run_action(MenuAction.BACK)
        if symbol == "q":
            self._finish(Cancelled())
            return None
        for action in MENU_ORDER:
            if symbol == action.value:
                return self._run_action(action)
        return None

    def _handle_revising(self, key: str) -> None:
        if key == "escape":
            self.mode = self._mode_before_revising

    def submit_text(self, text: str) -> Effect | None:
        """Revision text from the line editor; blank text keeps revising."""

        if self.mode is not DialogMode.REVISING:
            return None
        correction = text.strip()
        if not correction:
            return None
        if self.revision_kind is RevisionKind.AMEND:
            new_prompt = revise_prompt(self.prompt, correction)
        else:
            new_prompt = correction
        self._finish(Revised(new_prompt=new_prompt))
        return None

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def _run_action(self, action: MenuAction) -> Effect | None:
        self.notice = None
        command = self.selected
        if action is MenuAction.BACK:
            self.mode = DialogMode.BROWSING
            self.explanation = None
            return None
        if action is MenuAction.REVISE:
            self._start_revising(RevisionKind.AMEND)
            return None
        if action is MenuAction.COPY:
            self.pending = CopyEffect(command)
        elif action is MenuAction.EXPLAIN:
            self.pending = ExplainEffect(command)
        else:
            self.pending = ExecuteEffect(command)
        return self.pending

    def complete_effect(self, effect: Effect, result: object) -> None:
        """Feed the collaborator's result for ``effect`` back into the machine.

        Copy completes with ``bool``, explain with an ``ExplanationResult`` or
        an error message string, execute with the exit code.
        """

        if self.mode is DialogMode.TERMINAL:
            return
        if effect != self.pending:
            raise ValueError(f"unexpected effect completion: {effect!r}")
        self.pending = None

        if isinstance(effect, CopyEffect):
            if result is True and self.exit_after_copy:
                self._finish(Copied(command=effect.command))
            elif result is True:
                self.notice = COPIED_NOTICE
            else:
                self.notice = CLIPBOARD_UNAVAILABLE_NOTICE
        elif isinstance(effect, ExplainEffect):
            if isinstance(result, str):
                self.notice = result
            else:
                self.explanation = cast("ExplanationResult", result)
        else:
            if not isinstance(result, int):
                raise TypeError("execute effect must complete with an exit code")
            self._finish(Executed(command=effect.command, exit_code=result))

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _open_menu(self) -> None:
        self.mode = DialogMode.ACTION_MENU
        self.menu_cursor = 0
        self.notice = None
        self.explanation = None

    def _start_revising(self, kind: RevisionKind) -> None:
        self._mode_before_revising = self.mode
        self.revision_kind = kind
        self.mode = DialogMode.REVISING

    def _finish(self, outcome: Outcome) -> None:
        self.outcome = outcome
        self.mode = DialogMode.TERMINAL


__all__ = [
    "CLIPBOARD_UNAVAILABLE_NOTICE",
    "COPIED_NOTICE",
    "DialogMachine",
]
