"""Unit tests for the readline machine, the line editor widget and the inline app.

File: tests/unit/ui/test_readline.py

Tests:
- ReadlineMachine: seeding, submit, blank lines, cancel and completion
- LineInput: seeding and emacs-style bindings on top of textual's Input
- SuggestionApp: editing, submitting and cancelling through the real widgets

Uses Textual's async test harness (App.run_test).
"""

from __future__ import annotations

import asyncio

import pytest
from textual.app import App, ComposeResult
from textual.widgets import Input

from shell_ai.synthesis.explain import ExplanationResult
from shell_ai.ui.frontend.app import PlainSuggestionApp, SuggestionApp, suggestion_app_class
from shell_ai.ui.frontend.collaborators import Collaborators
from shell_ai.ui.frontend.controller import FrontendController
from shell_ai.ui.frontend.dialog import DialogMachine
from shell_ai.ui.frontend.readline_machine import ReadlineMachine
from shell_ai.ui.frontend.state import Cancelled, DialogMode, ExecuteEffect, Executed, Revised
from shell_ai.ui.frontend.widgets import LineInput
from shell_ai.ui.render import render_dialog, render_readline

pytestmark = pytest.mark.unit


class _FakeClipboard:
    def copy(self, text: str) -> bool:
        return True


class _FakeExecutor:
    def run(self, command: str) -> int:
        return 0


async def _no_explanation(command: str) -> ExplanationResult:
    return ExplanationResult(command=command, synopsis="")


def _collaborators() -> Collaborators:
    return Collaborators(
        clipboard=_FakeClipboard(),
        executor=_FakeExecutor(),
        explainer=_no_explanation,
    )


async def _until_finished(controller: FrontendController) -> None:
    for _ in range(200):
        if controller.is_finished:
            return
        await asyncio.sleep(0.01)


class _LineHost(App[None]):
    def __init__(self, seed: str) -> None:
        super().__init__()
        self._seed = seed
        self.submitted: list[str] = []

    def compose(self) -> ComposeResult:
        yield LineInput(id="line")

    def on_mount(self) -> None:
        line = self.query_one("#line", LineInput)
        line.seed(self._seed)
        line.focus()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        self.submitted.append(event.value)


class TestReadlineMachine:
    """Readline frontend transitions."""

    def test_seeded_with_top_suggestion(self) -> None:
        machine = ReadlineMachine(("ls -la", "ls"))
        assert machine.line_seed == "ls -la"

    def test_requires_a_suggestion(self) -> None:
        with pytest.raises(ValueError):
            ReadlineMachine(())

    def test_submit_requests_execution_of_edited_line(self) -> None:
        machine = ReadlineMachine(("ls",))

        effect = machine.submit_text("ls -l")

        assert effect == ExecuteEffect("ls -l")
        assert machine.line_seed is None
        assert machine.is_terminal is False
        machine.complete_effect(effect, 2)
        assert machine.outcome == Executed(command="ls -l", exit_code=2)

    def test_blank_line_is_not_submitted(self) -> None:
        machine = ReadlineMachine(("ls",))
        assert machine.submit_text("   ") is None
        assert machine.outcome is None
        assert machine.line_seed == "ls"

    @pytest.mark.parametrize("key", ["ctrl+c", "escape"])
    def test_cancel_keys(self, key: str) -> None:
        machine = ReadlineMachine(("ls",))
        machine.handle_key(key)
        assert machine.outcome == Cancelled()
        assert machine.submit_text("ls") is None

    def test_other_keys_are_left_to_the_editor(self) -> None:
        machine = ReadlineMachine(("ls",))
        assert machine.handle_key("a", "a") is None
        assert machine.outcome is None

    def test_unexpected_completion_is_rejected(self) -> None:
        machine = ReadlineMachine(("ls",))
        with pytest.raises(ValueError):
            machine.complete_effect(ExecuteEffect("pwd"), 0)


class TestLineInput:
    """Editing keys on the line widget."""

    @pytest.mark.asyncio
    async def test_seed_puts_cursor_at_end(self) -> None:
        app = _LineHost("ls -la")
        async with app.run_test() as pilot:
            await pilot.pause()
            line = app.query_one("#line", LineInput)
            assert line.value == "ls -la"
            assert line.cursor_position == len("ls -la")

    @pytest.mark.asyncio
    async def test_typing_appends_at_cursor(self) -> None:
        app = _LineHost("du -s")
        async with app.run_test() as pilot:
            await pilot.pause()
            await pilot.press("space", "-", "h")
            assert app.query_one("#line", LineInput).value == "du -s -h"

    @pytest.mark.parametrize(
        ("keys", "expected"),
        [
            (("ctrl+b", "ctrl+b", "ctrl+h"), "ls la"),
            (("ctrl+a", "ctrl+k"), ""),
            (("ctrl+u",), ""),
            (("home", "ctrl+d"), "s -la"),
            (("ctrl+a", "ctrl+f", "x"), "lxs -la"),
        ],
    )
    @pytest.mark.asyncio
    async def test_emacs_bindings(self, keys: tuple[str, ...], expected: str) -> None:
        app = _LineHost("ls -la")
        async with app.run_test() as pilot:
            await pilot.pause()
            await pilot.press(*keys)
            assert app.query_one("#line", LineInput).value == expected

    @pytest.mark.asyncio
    async def test_enter_submits_value(self) -> None:
        app = _LineHost("pwd")
        async with app.run_test() as pilot:
            await pilot.pause()
            await pilot.press("enter")
            await pilot.pause()
        assert app.submitted == ["pwd"]


class TestSuggestionApp:
    """The inline app driving real widgets."""

    @pytest.mark.asyncio
    async def test_readline_edits_and_defers_execution(self) -> None:
        controller = FrontendController(
            ReadlineMachine(("du -s",)), _collaborators(), defer_execution=True
        )
        app = SuggestionApp(controller, view=render_readline)

        async with app.run_test() as pilot:
            await pilot.pause()
            assert app.query_one("#line", LineInput).has_focus
            await pilot.press("space", "-", "h", "enter")
            await _until_finished(controller)

        assert controller.deferred == ExecuteEffect("du -s -h")

    @pytest.mark.asyncio
    async def test_ctrl_c_cancels_readline(self) -> None:
        controller = FrontendController(
            ReadlineMachine(("ls",)), _collaborators(), defer_execution=True
        )
        app = SuggestionApp(controller, view=render_readline)

        async with app.run_test() as pilot:
            await pilot.pause()
            await pilot.press("ctrl+c")
            await _until_finished(controller)

        assert controller.outcome == Cancelled()
        assert controller.deferred is None

    @pytest.mark.asyncio
    async def test_dialog_revision_uses_line_input(self) -> None:
        machine = DialogMachine(("ls",), prompt="list files")
        controller = FrontendController(machine, _collaborators(), defer_execution=True)
        app = SuggestionApp(controller, view=render_dialog)

        async with app.run_test() as pilot:
            await pilot.pause()
            line = app.query_one("#line", LineInput)
            assert line.display is False

            await pilot.press("n")
            await app.workers.wait_for_complete()
            await pilot.pause()
            assert machine.mode is DialogMode.REVISING
            assert line.display is True
            assert line.has_focus
            assert line.value == ""

            await pilot.press("d", "u", "enter")
            await _until_finished(controller)

        assert controller.outcome == Revised(new_prompt="du")

    @pytest.mark.asyncio
    async def test_escape_leaves_revision_and_hides_line(self) -> None:
        machine = DialogMachine(("ls",), prompt="list files")
        controller = FrontendController(machine, _collaborators(), defer_execution=True)
        app = SuggestionApp(controller, view=render_dialog)

        async with app.run_test() as pilot:
            await pilot.pause()
            await pilot.press("1", "r")
            await app.workers.wait_for_complete()
            await pilot.pause()
            assert machine.mode is DialogMode.REVISING

            await pilot.press("escape")
            await app.workers.wait_for_complete()
            await pilot.pause()

            assert machine.mode is DialogMode.ACTION_MENU
            assert app.query_one("#line", LineInput).display is False
            await pilot.press("ctrl+c")
            await _until_finished(controller)

    @pytest.mark.parametrize(("no_color", "expected"), [(True, PlainSuggestionApp), (False, SuggestionApp)])
    def test_app_class_for_color_mode(self, no_color: bool, expected: type[SuggestionApp]) -> None:
        assert suggestion_app_class(no_color=no_color) is expected

    def test_no_color_does_not_restyle_the_default_app(self) -> None:
        default_css = SuggestionApp.CSS
        suggestion_app_class(no_color=True)
        assert SuggestionApp.CSS == default_css
        assert "background: transparent" in SuggestionApp.CSS
        assert "background: transparent" not in PlainSuggestionApp.CSS
