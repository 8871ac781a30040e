"""Output rendering for shell-ai.

File: src/shell_ai/ui/render.py
Last updated: 2026-10-19

Purpose
- Provide a thin rendering layer over ``rich`` for command output, config
  listings and explanations.
- Respect the NO_COLOR environment variable and the --no-color CLI flag.
- Build the inline views shown by the dialog and readline frontends.

What should be included in this file
- CLIRenderer class with methods for common output patterns.
- Pure functions that turn frontend machine state into ``rich.text.Text``.

Functional requirements
- Stdout carries only results (commands, JSON); diagnostics go to stderr.
- Plain-text rendering must be byte-stable when color is off.

Non-functional requirements
- Long commands are never hard-wrapped.
"""

from __future__ import annotations

import json
import os
import sys
from collections.abc import Sequence
from typing import TYPE_CHECKING, TextIO

from rich.console import Console
from rich.text import Text

from shell_ai.synthesis.explain import display_segment
from shell_ai.ui.frontend.state import MENU_ORDER, DialogMode, RevisionKind

if TYPE_CHECKING:
    from shell_ai.synthesis.explain import ExplanationResult, ExplanationSegment
    from shell_ai.ui.frontend.dialog import DialogMachine
    from shell_ai.ui.frontend.readline_machine import ReadlineMachine


def _color_allowed(no_color_flag: bool, stream: TextIO) -> bool:
    """Check whether color output should be attempted."""

    if no_color_flag:
        return False
    if os.environ.get("NO_COLOR", ""):
        return False
    return hasattr(stream, "isatty") and stream.isatty()


class CLIRenderer:
    """Thin CLI output renderer backed by a ``rich`` console."""

    def __init__(self, *, no_color: bool = False, stream: TextIO | None = None) -> None:
        target = stream if stream is not None else sys.stdout
        self.color = _color_allowed(no_color, target)
        self.console = Console(
            file=target,
            no_color=not self.color,
            highlight=False,
            soft_wrap=True,
            emoji=False,
        )

    def text(self, line: str | Text) -> None:
        """Print a plain text line."""

        self.console.print(line, markup=False)

    def blank(self) -> None:
        self.console.print()

    def heading(self, text: str) -> None:
        self.console.print(Text(text, style="bold"))

    def kv(self, key: str, value: object, *, note: str | None = None) -> None:
        """Print a ``key = value`` pair with an optional dimmed note."""

        line = Text(f"{key} = ", style="bold")
        line.append(str(value))
        if note:
            line.append(f"  [{note}]", style="dim")
        self.console.print(line)

    def json(self, payload: object) -> None:
        """Emit a JSON payload with two-space indentation."""

        self.console.print(json.dumps(payload, indent=2, ensure_ascii=False), markup=False)

    def commands(self, commands: Sequence[str]) -> None:
        for command in commands:
            self.console.print(command, markup=False)

    def explanation(self, result: ExplanationResult) -> None:
        """Print ``Explanation:``, the synopsis and one bullet per segment."""

        self.blank()
        self.console.print(Text("Explanation:", style="bold white"))
        self.blank()
        self.console.print(Text(f"  {result.synopsis}", style="dim"))
        self.blank()
        for node in result.explanations:
            for line in explanation_lines(result.command, node, depth=1):
                self.console.print(line)
        self.blank()


def create_renderer(*, no_color: bool = False, stream: TextIO | None = None) -> CLIRenderer:
    """Create a CLI renderer with the given settings."""

    return CLIRenderer(no_color=no_color, stream=stream)


# ---------------------------------------------------------------------------
# JSON payloads
# ---------------------------------------------------------------------------


def suggestions_payload(commands: Sequence[str]) -> list[dict[str, str]]:
    return [{"command": command} for command in commands]


# ---------------------------------------------------------------------------
# Explanation bullets
# ---------------------------------------------------------------------------


def explanation_lines(command: str, node: ExplanationSegment, *, depth: int) -> list[Text]:
    """Render ``• {prefix} {segment} {suffix}`` for ``node`` and its children."""

    line = Text(f"{'  ' * depth}• ")
    if node.prefix:
        line.append(f"{node.prefix} ")
    line.append(display_segment(command, node.segment), style="cyan")
    if node.suffix:
        line.append(f" {node.suffix}")

    lines = [line]
    for child in node.children:
        lines.extend(explanation_lines(command, child, depth=depth + 1))
    return lines


# ---------------------------------------------------------------------------
# Frontend views
# ---------------------------------------------------------------------------


def render_readline(machine: ReadlineMachine) -> Text:
    """Hint shown above the line editor."""

    return Text("enter run · esc cancel", style="dim")


def render_dialog(machine: DialogMachine) -> Text:
    """Numbered suggestion list plus the mode-specific footer."""

    view = Text()
    if machine.mode is DialogMode.REVISING:
        label = (
            "Revise the request:"
            if machine.revision_kind is RevisionKind.AMEND
            else "New request:"
        )
        view.append(label, style="bold")
        view.append("\n")
        view.append("enter submit · esc back", style="dim")
        return view

    for index, command in enumerate(machine.suggestions):
        selected = index == machine.cursor
        marker = "›" if selected else " "
        view.append(f"{marker} {index + 1}. ", style="bold cyan" if selected else "dim")
        view.append(command, style="bold" if selected else "")
        view.append("\n")

    if machine.mode is DialogMode.ACTION_MENU:
        view.append("\n")
        for index, action in enumerate(MENU_ORDER):
            selected = index == machine.menu_cursor
            view.append("› " if selected else "  ", style="bold cyan")
            view.append(f"[{action.value}] ", style="dim")
            view.append(action.label, style="bold" if selected else "")
            view.append("\n")
        if machine.pending is not None:
            view.append("Working…\n", style="yellow")
        if machine.explanation is not None:
            view.append("\n")
            view.append(f"{machine.explanation.synopsis}\n", style="dim")
            for node in machine.explanation.explanations:
                for line in explanation_lines(machine.explanation.command, node, depth=1):
                    view.append_text(line)
                    view.append("\n")
        footer = "c copy · e explain · x execute · r revise · b back · q quit"
    else:
        footer = "↑/↓ move · 1-9 select · enter menu · g regenerate · n new · q quit"

    if machine.notice:
        view.append(f"{machine.notice}\n", style="yellow")
    view.append(footer, style="dim")
    return view


__all__ = [
    "CLIRenderer",
    "create_renderer",
    "explanation_lines",
    "render_dialog",
    "render_readline",
    "suggestions_payload",
]
