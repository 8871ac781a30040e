"""Unit tests for CLI rendering, inline views and the progress spinner.

File: tests/unit/ui/test_render.py

Tests:
- Plain output, key/value lines and JSON payloads
- Explanation bullets with nested segments
- Dialog and readline views per mode
- Spinner frames and disabled spinners
"""

from __future__ import annotations

import io
import json

import pytest

from shell_ai.synthesis.explain import ExplanationResult, ExplanationSegment
from shell_ai.ui.frontend.dialog import DialogMachine
from shell_ai.ui.frontend.readline_machine import ReadlineMachine
from shell_ai.ui.progress import ProgressSpinner, spinner_frame
from shell_ai.ui.render import (
    CLIRenderer,
    explanation_lines,
    render_dialog,
    render_readline,
    suggestions_payload,
)

RESULT = ExplanationResult(
    command="tar -xzf a.tgz",
    synopsis="Extract a gzipped archive",
    explanations=(
        ExplanationSegment(
            segment="tar",
            suffix="archives files.",
            children=(ExplanationSegment(segment="-x", prefix="The flag", suffix="extracts."),),
        ),
    ),
)


def _renderer() -> tuple[CLIRenderer, io.StringIO]:
    stream = io.StringIO()
    return CLIRenderer(no_color=True, stream=stream), stream


@pytest.mark.unit
class TestCLIRenderer:
    """Stdout output helpers."""

    def test_color_disabled_for_non_tty(self) -> None:
        renderer = CLIRenderer(stream=io.StringIO())
        assert renderer.color is False

    def test_text_is_not_markup(self) -> None:
        renderer, stream = _renderer()
        renderer.text("echo [bold]hi[/bold]")
        assert stream.getvalue() == "echo [bold]hi[/bold]\n"

    def test_kv_with_note(self) -> None:
        renderer, stream = _renderer()
        renderer.kv("provider", "groq", note="env")
        assert stream.getvalue() == "provider = groq  [env]\n"

    def test_json_payload_round_trips(self) -> None:
        renderer, stream = _renderer()
        renderer.json(suggestions_payload(["ls", "ls -a"]))
        assert json.loads(stream.getvalue()) == [{"command": "ls"}, {"command": "ls -a"}]
        assert stream.getvalue().startswith("[\n  {")

    def test_long_commands_are_not_wrapped(self) -> None:
        renderer, stream = _renderer()
        command = "echo " + "x" * 300
        renderer.commands([command])
        assert stream.getvalue() == f"{command}\n"

    def test_explanation_block(self) -> None:
        renderer, stream = _renderer()
        renderer.explanation(RESULT)
        lines = stream.getvalue().splitlines()
        assert "Explanation:" in lines
        assert "  Extract a gzipped archive" in lines
        assert "  • tar archives files." in lines
        assert "    • The flag -x extracts." in lines


@pytest.mark.unit
class TestViews:
    """Inline frontend views."""

    def test_explanation_lines_nest_children(self) -> None:
        lines = explanation_lines(RESULT.command, RESULT.explanations[0], depth=1)
        assert [line.plain for line in lines] == ["  • tar archives files.", "    • The flag -x extracts."]

    def test_readline_view_has_hint(self) -> None:
        view = render_readline(ReadlineMachine(("pwd",)))
        assert view.plain.splitlines() == ["enter run · esc cancel"]

    def test_dialog_browsing_view(self) -> None:
        machine = DialogMachine(("ls", "ls -a"), prompt="list")
        lines = render_dialog(machine).plain.splitlines()
        assert lines[0] == "› 1. ls"
        assert lines[1] == "  2. ls -a"
        assert "g regenerate" in lines[-1]

    def test_dialog_menu_view_with_notice_and_explanation(self) -> None:
        machine = DialogMachine(("tar -xzf a.tgz",), prompt="extract")
        machine.handle_key("1", "1")
        machine.notice = "Copied to clipboard."
        machine.explanation = RESULT
        plain = render_dialog(machine).plain
        assert "› [x] Execute" in plain
        assert "  [b] Back" in plain
        assert "Extract a gzipped archive" in plain
        assert "Copied to clipboard." in plain

    def test_dialog_revising_view(self) -> None:
        machine = DialogMachine(("ls",), prompt="list")
        machine.handle_key("n", "n")
        assert render_dialog(machine).plain.splitlines() == ["New request:", "enter submit · esc back"]

    def test_dialog_amend_view(self) -> None:
        machine = DialogMachine(("ls",), prompt="list")
        machine.handle_key("1", "1")
        machine.handle_key("r", "r")
        assert render_dialog(machine).plain.startswith("Revise the request:")


@pytest.mark.unit
class TestProgressSpinner:
    """Spinner ticks."""

    @pytest.mark.parametrize(("elapsed", "frame"), [(0.0, "⠋"), (0.15, "⠙"), (0.8, "⠋"), (-1.0, "⠋")])
    def test_spinner_frame(self, elapsed: float, frame: str) -> None:
        assert spinner_frame(elapsed) == frame

    def test_disabled_spinner_writes_nothing(self) -> None:
        stream = io.StringIO()
        with ProgressSpinner(stream=stream) as spinner:
            spinner.update(1.2)
        assert stream.getvalue() == ""
