"""Unit tests for frontend selection, presentation and the revise loop.

File: tests/unit/ui/test_frontend_engine.py

Tests:
- Noninteractive output in human and JSON formats
- Dialog and readline frontends driven by a scripted app runner
- Deferred execution after the view closes
- SuggestSession regenerating while outcomes are Revised
"""

from __future__ import annotations

import contextlib
import io
import json
from collections import deque
from collections.abc import Iterator, Sequence

import pytest

from shell_ai.config.loader import Configuration, resolve
from shell_ai.synthesis.prompts import Suggestion, SuggestionRequest
from shell_ai.ui.frontend.app import ViewRenderer
from shell_ai.ui.frontend.collaborators import Collaborators
from shell_ai.ui.frontend.controller import FrontendController
from shell_ai.ui.frontend.engine import (
    AppRunner,
    DialogFrontend,
    NoninteractiveFrontend,
    ReadlineFrontend,
    SuggestSession,
    select_frontend,
)
from shell_ai.ui.frontend.dialog import COPIED_NOTICE, DialogMachine
from shell_ai.ui.frontend.state import Cancelled, Copied, DialogMode, Executed, Outcome, Printed, Revised
from shell_ai.ui.render import CLIRenderer


def _configuration(frontend: str, **cli_args: object) -> Configuration:
    return resolve({"frontend": frontend, **cli_args}, {"SHAI_API_PROVIDER": "ollama"}, {})


def _suggestions(*commands: str) -> list[Suggestion]:
    return [Suggestion(command_text=command, ordinal=index) for index, command in enumerate(commands, 1)]


class _FakeExecutor:
    def __init__(self) -> None:
        self.commands: list[str] = []

    def run(self, command: str) -> int:
        self.commands.append(command)
        return 0


class _FakeClipboard:
    def copy(self, text: str) -> bool:
        return True


def _collaborators(executor: _FakeExecutor) -> Collaborators:
    return Collaborators(clipboard=_FakeClipboard(), executor=executor)


def _scripted_runner(
    keys: Sequence[str],
    views: list[str],
    *,
    submit: str | None = None,
) -> AppRunner:
    async def _run(controller: FrontendController, view: ViewRenderer) -> None:
        views.append(view(controller.machine).plain)
        await controller.press_keys(keys)
        if submit is not None:
            await controller.submit(submit)

    return _run


class _ScriptedFrontend:
    def __init__(self, *outcomes: Outcome) -> None:
        self._outcomes: deque[Outcome] = deque(outcomes)
        self.presented: list[tuple[tuple[str, ...], str]] = []

    async def present(self, suggestions: Sequence[Suggestion], *, prompt: str) -> Outcome:
        self.presented.append((tuple(item.command_text for item in suggestions), prompt))
        return self._outcomes.popleft()


class _TickRecorder:
    def __init__(self) -> None:
        self.ticks: list[float] = []

    def update(self, elapsed_seconds: float) -> None:
        self.ticks.append(elapsed_seconds)


@pytest.mark.unit
class TestNoninteractive:
    """Stdout-only presentation."""

    @pytest.mark.asyncio
    async def test_human_prints_first_command_only(self) -> None:
        stream = io.StringIO()
        frontend = NoninteractiveFrontend(
            _configuration("noninteractive").output_format,
            CLIRenderer(no_color=True, stream=stream),
        )

        outcome = await frontend.present(_suggestions("ls -la", "ls"), prompt="list")

        assert stream.getvalue() == "ls -la\n"
        assert outcome == Printed(commands=("ls -la",))

    @pytest.mark.asyncio
    async def test_json_prints_every_command(self) -> None:
        stream = io.StringIO()
        configuration = _configuration("noninteractive", output_format="json")
        frontend = NoninteractiveFrontend(
            configuration.output_format, CLIRenderer(no_color=True, stream=stream)
        )

        outcome = await frontend.present(_suggestions("ls -la", "ls"), prompt="list")

        assert json.loads(stream.getvalue()) == [{"command": "ls -la"}, {"command": "ls"}]
        assert outcome == Printed(commands=("ls -la", "ls"))


@pytest.mark.unit
class TestInteractiveFrontends:
    """Dialog and readline driven by a scripted runner."""

    @pytest.mark.asyncio
    async def test_dialog_executes_after_runner_returns(self) -> None:
        executor = _FakeExecutor()
        views: list[str] = []
        frontend = DialogFrontend(
            _collaborators(executor), runner=_scripted_runner(["2", "x"], views)
        )

        outcome = await frontend.present(_suggestions("du -sh", "du -sh *"), prompt="sizes")

        assert outcome == Executed(command="du -sh *", exit_code=0)
        assert executor.commands == ["du -sh *"]
        assert views[0].startswith("› 1. du -sh")

    @pytest.mark.asyncio
    async def test_readline_runs_edited_line(self) -> None:
        executor = _FakeExecutor()
        frontend = ReadlineFrontend(
            _collaborators(executor),
            runner=_scripted_runner([], [], submit="du -s -h"),
        )

        outcome = await frontend.present(_suggestions("du -s", "du"), prompt="sizes")

        assert outcome == Executed(command="du -s -h", exit_code=0)

    @pytest.mark.asyncio
    async def test_closed_view_without_outcome_is_cancelled(self) -> None:
        frontend = DialogFrontend(_collaborators(_FakeExecutor()), runner=_scripted_runner([], []))

        outcome = await frontend.present(_suggestions("ls"), prompt="list")

        assert outcome == Cancelled()

    @pytest.mark.asyncio
    async def test_selected_dialog_stays_open_after_copy(self) -> None:
        executor = _FakeExecutor()
        snapshots: list[tuple[Outcome | None, DialogMode, str | None]] = []

        async def runner(controller: FrontendController, view: ViewRenderer) -> None:
            await controller.press_keys(["1", "c"])
            machine = controller.machine
            assert isinstance(machine, DialogMachine)
            snapshots.append((controller.outcome, machine.mode, machine.notice))
            await controller.press_keys(["x"])

        frontend = select_frontend(_configuration("dialog"), _collaborators(executor), runner=runner)

        outcome = await frontend.present(_suggestions("ls -la", "ls"), prompt="list")

        assert snapshots == [(None, DialogMode.ACTION_MENU, COPIED_NOTICE)]
        assert outcome == Executed(command="ls -la", exit_code=0)

    @pytest.mark.asyncio
    async def test_exit_after_copy_setting_finishes_dialog(self) -> None:
        configuration = resolve(
            {"frontend": "dialog"},
            {"SHAI_API_PROVIDER": "ollama", "SHAI_EXIT_AFTER_COPY": "true"},
            {},
        )
        frontend = select_frontend(
            configuration,
            _collaborators(_FakeExecutor()),
            runner=_scripted_runner(["1", "c"], []),
        )

        outcome = await frontend.present(_suggestions("ls -la"), prompt="list")

        assert configuration.exit_after_copy is True
        assert outcome == Copied(command="ls -la")

    @pytest.mark.parametrize(
        ("frontend", "expected"),
        [
            ("noninteractive", NoninteractiveFrontend),
            ("dialog", DialogFrontend),
            ("readline", ReadlineFrontend),
        ],
    )
    def test_select_frontend(self, frontend: str, expected: type) -> None:
        selected = select_frontend(_configuration(frontend), _collaborators(_FakeExecutor()))
        assert isinstance(selected, expected)


@pytest.mark.unit
class TestSuggestSession:
    """Generate -> present -> revise loop."""

    @pytest.mark.asyncio
    async def test_revised_outcomes_regenerate_with_new_prompt(self) -> None:
        requests: list[SuggestionRequest] = []
        recorder = _TickRecorder()

        async def fake_generate(configuration: Configuration, request: SuggestionRequest, **kwargs: object) -> list[Suggestion]:
            requests.append(request)
            on_progress = kwargs["on_progress"]
            assert callable(on_progress)
            on_progress(0.0)
            return _suggestions(f"cmd-{len(requests)}")

        @contextlib.contextmanager
        def progress() -> Iterator[_TickRecorder]:
            yield recorder

        frontend = _ScriptedFrontend(
            Revised(new_prompt="list files\nonly pdf"),
            Executed(command="cmd-2", exit_code=0),
        )
        session = SuggestSession(
            _configuration("dialog"),
            frontend,
            progress_factory=progress,
            generate_fn=fake_generate,
        )

        outcome = await session.run("list files")

        assert outcome == Executed(command="cmd-2", exit_code=0)
        assert session.rounds == 2
        assert [request.prompt for request in requests] == ["list files", "list files\nonly pdf"]
        assert all(request.desired_count == 3 for request in requests)
        assert frontend.presented == [(("cmd-1",), "list files"), (("cmd-2",), "list files\nonly pdf")]
        assert recorder.ticks == [0.0, 0.0]

    def test_noninteractive_session_requests_one_suggestion(self) -> None:
        session = SuggestSession(_configuration("noninteractive"), _ScriptedFrontend(Printed(commands=("ls",))))

        assert session.build_request("list").desired_count == 1
