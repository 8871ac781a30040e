"""Widgets for the inline frontend app.

File: src/shell_ai/ui/frontend/widgets.py

Provides:
- ``LineInput``: the single-line editor used by the readline frontend and the
  dialog's revising mode, with emacs-style bindings on top of ``Input``.
- ``MachineView``: the rendered machine state; forwards key presses to the
  app while the line editor is hidden.
"""

from __future__ import annotations

from typing import ClassVar

from textual import events
from textual.binding import Binding, BindingType
from textual.message import Message
from textual.widgets import Input, Static


class LineInput(Input):
    """Command line editor seeded with a suggestion or an empty revision."""

    DEFAULT_CSS = """
    LineInput {
        border: none;
        height: 1;
        padding: 0 1;
    }
    LineInput:focus {
        border: none;
    }
    """

    BINDINGS: ClassVar[list[BindingType]] = [
        Binding("ctrl+b", "cursor_left", "Move cursor left", show=False),
        Binding("ctrl+f", "cursor_right", "Move cursor right", show=False),
        Binding("alt+b", "cursor_left_word", "Move cursor left a word", show=False),
        Binding("alt+f", "cursor_right_word", "Move cursor right a word", show=False),
        Binding("ctrl+h", "delete_left", "Delete character left", show=False),
        Binding("alt+backspace", "delete_left_word", "Delete word left", show=False),
        Binding("alt+d", "delete_right_word", "Delete word right", show=False),
    ]

    def seed(self, value: str) -> None:
        """Replace the value and put the cursor at the end."""
        self.value = value
        self.cursor_position = len(value)


class MachineView(Static, can_focus=True):
    """Suggestion list, menu and notices for the active machine."""

    class KeyPressed(Message):
        """A key pressed while the view has focus."""

        def __init__(self, key: str, character: str | None) -> None:
            self.key = key
            self.character = character
            super().__init__()

    def on_key(self, event: events.Key) -> None:
        event.stop()
        event.prevent_default()
        self.post_message(self.KeyPressed(event.key, event.character))


__all__ = ["LineInput", "MachineView"]
