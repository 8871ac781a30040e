"""Inline Textual app - view layer that renders machine state and forwards input.

File: src/shell_ai/ui/frontend/app.py

The app draws below the shell prompt (``inline=True``) and exits as soon as
the controller reports a finished machine. All decisions live in the
controller and the state machines; this file only does rendering, focus and
routing of keys and submitted lines.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from rich.text import Text
from textual import work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.css.query import NoMatches
from textual.widgets import Input

from shell_ai.ui.frontend.controller import FrontendController
from shell_ai.ui.frontend.widgets import LineInput, MachineView

ViewRenderer = Callable[[Any], Text]

_CSS = """
Screen {
    height: auto;
    background: transparent;
}
#view {
    height: auto;
    padding: 0 1;
}
"""

_CSS_NO_COLOR = """
Screen {
    height: auto;
}
#view {
    height: auto;
    padding: 0 1;
    color: $text;
}
"""


class SuggestionApp(App[None]):
    """Inline picker for dialog and readline frontends."""

    CSS = _CSS
    ENABLE_COMMAND_PALETTE = False
    BINDINGS = [
        Binding("ctrl+c", "cancel", "Cancel", show=False, priority=True),
        Binding("escape", "escape", "Back", show=False, priority=True),
    ]

    def __init__(
        self,
        controller: FrontendController,
        *,
        view: ViewRenderer,
        no_color: bool = False,
    ) -> None:
        super().__init__()
        self._no_color = no_color
        self._controller = controller
        self._view = view
        self._editing = False
        controller.bind_view(self._on_state_change)

    def compose(self) -> ComposeResult:
        yield MachineView(self._render(), id="view")
        yield LineInput(id="line")

    def on_mount(self) -> None:
        self._sync_line()

    def _render(self) -> Text:
        view = self._view(self._controller.machine)
        return Text(view.plain) if self._no_color else view

    # ------------------------------------------------------------------
    # State change callback - redraw the view, show or hide the line
    # ------------------------------------------------------------------

    def _on_state_change(self) -> None:
        try:
            self.query_one("#view", MachineView).update(self._render())
        except NoMatches:
            return
        self._sync_line()

    def _sync_line(self) -> None:
        try:
            view = self.query_one("#view", MachineView)
            line = self.query_one("#line", LineInput)
        except NoMatches:
            return
        seed = self._controller.machine.line_seed
        if seed is None:
            self._editing = False
            line.display = False
            view.can_focus = True
            view.focus()
            return
        if not self._editing:
            self._editing = True
            line.seed(seed)
        view.can_focus = False
        line.display = True
        line.focus()

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------

    def on_machine_view_key_pressed(self, event: MachineView.KeyPressed) -> None:
        self._dispatch_key(event.key, event.character)

    async def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input.id != "line":
            return
        event.stop()
        await self._controller.submit(event.value)
        if self._controller.is_finished:
            self.exit()

    @work(group="keys")
    async def _dispatch_key(self, key: str, character: str | None) -> None:
        await self._controller.press(key, character)
        if self._controller.is_finished:
            self.exit()

    async def action_escape(self) -> None:
        self._dispatch_key("escape", None)

    async def action_cancel(self) -> None:
        await self._controller.cancel()
        self.exit()


class PlainSuggestionApp(SuggestionApp):
    """``SuggestionApp`` without background or accent colors."""

    CSS = _CSS_NO_COLOR


def suggestion_app_class(*, no_color: bool) -> type[SuggestionApp]:
    return PlainSuggestionApp if no_color else SuggestionApp


async def run_inline_app(
    controller: FrontendController,
    *,
    view: ViewRenderer,
    no_color: bool = False,
) -> None:
    """Run the inline app until the controller's machine finishes."""

    app = suggestion_app_class(no_color=no_color)(controller, view=view, no_color=no_color)
    await app.run_async(inline=True)
    controller.bind_view(None)
    if not controller.is_finished:
        await controller.cancel()


__all__ = [
    "PlainSuggestionApp",
    "SuggestionApp",
    "ViewRenderer",
    "run_inline_app",
    "suggestion_app_class",
]
