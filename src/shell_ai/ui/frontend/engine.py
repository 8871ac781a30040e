"""
shell-ai - frontend engine.

File: src/shell_ai/ui/frontend/engine.py
Last updated: 2026-10-19

Purpose
- Present generated suggestions through one of three interaction models and
  drive the generate -> present -> revise loop.

What should be included in this file
- The ``Frontend`` protocol and its noninteractive, readline and dialog variants.
- ``select_frontend`` mapping the resolved configuration to a variant.
- ``SuggestSession`` which regenerates while the outcome is ``Revised``.

Functional requirements
- The noninteractive frontend reads no input and performs no action.
- Execution from the inline app happens after the app has released the terminal.

Non-functional requirements
- The app runner is injectable so frontends are testable with scripted keys.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from contextlib import AbstractContextManager
from typing import Protocol, TypeAlias

from shell_ai.config.loader import Configuration
from shell_ai.config.schema import Frontend as FrontendKind
from shell_ai.config.schema import OutputFormat
from shell_ai.synthesis.dispatch import desired_count, generate
from shell_ai.synthesis.prompts import Suggestion, SuggestionRequest, build_suggestion_request
from shell_ai.synthesis.providers.base import ProviderAdapter, ProviderProfile
from shell_ai.ui.frontend.app import ViewRenderer, run_inline_app
from shell_ai.ui.frontend.collaborators import Collaborators
from shell_ai.ui.frontend.controller import FrontendController
from shell_ai.ui.frontend.dialog import DialogMachine
from shell_ai.ui.frontend.readline_machine import ReadlineMachine
from shell_ai.ui.frontend.state import Cancelled, Outcome, Printed, Revised
from shell_ai.ui.progress import ProgressSpinner
from shell_ai.ui.render import CLIRenderer, render_dialog, render_readline, suggestions_payload
from shell_ai.utils.concurrency import CancellationToken

logger = logging.getLogger(__name__)

AppRunner: TypeAlias = Callable[[FrontendController, ViewRenderer], Awaitable[None]]
GenerateFn: TypeAlias = Callable[..., Awaitable[list[Suggestion]]]


class ProgressReporter(Protocol):
    def update(self, elapsed_seconds: float) -> None: ...


ProgressFactory: TypeAlias = Callable[[], AbstractContextManager[ProgressReporter]]


class Frontend(Protocol):
    async def present(self, suggestions: Sequence[Suggestion], *, prompt: str) -> Outcome: ...


def _default_runner(no_color: bool) -> AppRunner:
    async def _run(controller: FrontendController, view: ViewRenderer) -> None:
        await run_inline_app(controller, view=view, no_color=no_color)

    return _run


# ---------------------------------------------------------------------------
# Variants
# ---------------------------------------------------------------------------


class NoninteractiveFrontend:
    """Print results to stdout; human mode prints only the first command."""

    def __init__(self, output_format: OutputFormat, renderer: CLIRenderer) -> None:
        self._output_format = output_format
        self._renderer = renderer

    async def present(self, suggestions: Sequence[Suggestion], *, prompt: str) -> Outcome:
        commands = tuple(suggestion.command_text for suggestion in suggestions)
        if self._output_format is OutputFormat.JSON:
            self._renderer.json(suggestions_payload(commands))
            return Printed(commands=commands)
        if commands:
            self._renderer.text(commands[0])
        return Printed(commands=commands[:1])


class ReadlineFrontend:
    """One editable line seeded with the top suggestion."""

    def __init__(
        self,
        collaborators: Collaborators,
        *,
        runner: AppRunner | None = None,
        no_color: bool = False,
    ) -> None:
        self._collaborators = collaborators
        self._runner = runner if runner is not None else _default_runner(no_color)

    async def present(self, suggestions: Sequence[Suggestion], *, prompt: str) -> Outcome:
        machine = ReadlineMachine(
            tuple(suggestion.command_text for suggestion in suggestions), prompt=prompt
        )
        controller = FrontendController(machine, self._collaborators, defer_execution=True)
        return await _drive(controller, self._runner, render_readline)


class DialogFrontend:
    """Numbered list with an action menu per suggestion."""

    def __init__(
        self,
        collaborators: Collaborators,
        *,
        exit_after_copy: bool = False,
        runner: AppRunner | None = None,
        no_color: bool = False,
    ) -> None:
        self._collaborators = collaborators
        self._exit_after_copy = exit_after_copy
        self._runner = runner if runner is not None else _default_runner(no_color)

    async def present(self, suggestions: Sequence[Suggestion], *, prompt: str) -> Outcome:
        machine = DialogMachine(
            tuple(suggestion.command_text for suggestion in suggestions),
            prompt=prompt,
            exit_after_copy=self._exit_after_copy,
        )
        controller = FrontendController(machine, self._collaborators, defer_execution=True)
        return await _drive(controller, self._runner, render_dialog)


async def _drive(
    controller: FrontendController,
    runner: AppRunner,
    view: ViewRenderer,
) -> Outcome:
    await runner(controller, view)
    if controller.deferred is not None:
        await controller.run_deferred()
    outcome = controller.outcome
    return outcome if outcome is not None else Cancelled()


def select_frontend(
    configuration: Configuration,
    collaborators: Collaborators,
    *,
    renderer: CLIRenderer | None = None,
    runner: AppRunner | None = None,
    no_color: bool = False,
) -> Frontend:
    """Map the resolved ``frontend`` setting to a frontend instance."""

    kind = configuration.frontend
    if kind is FrontendKind.NONINTERACTIVE:
        return NoninteractiveFrontend(
            configuration.output_format,
            renderer if renderer is not None else CLIRenderer(no_color=no_color),
        )
    if kind is FrontendKind.READLINE:
        return ReadlineFrontend(collaborators, runner=runner, no_color=no_color)
    if kind is FrontendKind.DIALOG:
        return DialogFrontend(
            collaborators,
            exit_after_copy=configuration.exit_after_copy,
            runner=runner,
            no_color=no_color,
        )
    raise ValueError(f"frontend {kind.value!r} must be resolved before selection")


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


class SuggestSession:
    """Run generate -> present until the outcome is anything but ``Revised``."""

    def __init__(
        self,
        configuration: Configuration,
        frontend: Frontend,
        *,
        adapter: ProviderAdapter | None = None,
        profile: ProviderProfile | None = None,
        cancel_token: CancellationToken | None = None,
        progress_factory: ProgressFactory = ProgressSpinner,
        generate_fn: GenerateFn = generate,
    ) -> None:
        self._configuration = configuration
        self._frontend = frontend
        self._adapter = adapter
        self._profile = profile
        self._cancel_token = cancel_token
        self._progress_factory = progress_factory
        self._generate = generate_fn
        self.rounds = 0

    def build_request(self, prompt: str) -> SuggestionRequest:
        return build_suggestion_request(prompt, desired_count(self._configuration))

    async def run(self, prompt: str) -> Outcome:
        current = prompt
        while True:
            self.rounds += 1
            request = self.build_request(current)
            with self._progress_factory() as progress:
                suggestions = await self._generate(
                    self._configuration,
                    request,
                    adapter=self._adapter,
                    profile=self._profile,
                    cancel_token=self._cancel_token,
                    on_progress=progress.update,
                )
            outcome = await self._frontend.present(suggestions, prompt=current)
            if isinstance(outcome, Revised):
                logger.debug("regenerating with revised prompt")
                current = outcome.new_prompt
                continue
            return outcome


__all__ = [
    "AppRunner",
    "DialogFrontend",
    "Frontend",
    "NoninteractiveFrontend",
    "ReadlineFrontend",
    "SuggestSession",
    "select_frontend",
]
