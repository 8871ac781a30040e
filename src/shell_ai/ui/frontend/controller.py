"""Controller layer - owns a frontend state machine and performs its effects.

File: src/shell_ai/ui/frontend/controller.py

NO widget/Textual imports. The controller:
1. Receives key presses and submitted lines from the view layer (or a test script).
2. Feeds them to the dialog or readline machine.
3. Performs the effects the machine asks for through the collaborators.
4. Notifies the view layer via a callback when state changes.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import TypeAlias

from shell_ai.ui.frontend.collaborators import Collaborators
from shell_ai.ui.frontend.dialog import DialogMachine
from shell_ai.ui.frontend.readline_machine import ReadlineMachine
from shell_ai.ui.frontend.state import (
    CopyEffect,
    Effect,
    ExecuteEffect,
    ExplainEffect,
    Outcome,
)
from shell_ai.utils.concurrency import Cancelled

logger = logging.getLogger(__name__)

Machine: TypeAlias = DialogMachine | ReadlineMachine
StateCallback = Callable[[], Awaitable[None] | None]

_NAMED_CHARACTERS = {"space": " "}


def parse_key_token(token: str) -> tuple[str, str | None]:
    """Turn a scripted key (``"x"``, ``"enter"``, ``"ctrl+a"``) into ``(key, character)``."""

    if len(token) == 1:
        return token, token
    return token, _NAMED_CHARACTERS.get(token)


class FrontendController:
    """Drives one ``present`` call from first key press to outcome."""

    def __init__(
        self,
        machine: Machine,
        collaborators: Collaborators,
        *,
        on_state_change: StateCallback | None = None,
        defer_execution: bool = False,
    ) -> None:
        self.machine = machine
        self._collaborators = collaborators
        self._on_state_change = on_state_change
        self._defer_execution = defer_execution
        self._effect_task: asyncio.Task[object] | None = None
        self.deferred: ExecuteEffect | None = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def outcome(self) -> Outcome | None:
        return self.machine.outcome

    @property
    def is_finished(self) -> bool:
        return self.machine.is_terminal or self.deferred is not None

    @property
    def busy(self) -> bool:
        return self._effect_task is not None

    def bind_view(self, callback: StateCallback | None) -> None:
        self._on_state_change = callback

    async def _notify(self) -> None:
        if self._on_state_change is not None:
            result = self._on_state_change()
            if asyncio.iscoroutine(result):
                await result

    # ------------------------------------------------------------------
    # Intents
    # ------------------------------------------------------------------

    async def press(self, key: str, character: str | None = None) -> Outcome | None:
        """Intent: a key was pressed."""
        if key == "ctrl+c":
            await self.cancel()
            return self.outcome
        if self.busy or self.is_finished:
            return self.outcome

        effect = self.machine.handle_key(key, character)
        await self._notify()
        if effect is not None:
            await self._perform(effect)
        return self.outcome

    async def submit(self, text: str) -> Outcome | None:
        """Intent: the line editor submitted ``text``."""
        if self.busy or self.is_finished:
            return self.outcome

        effect = self.machine.submit_text(text)
        await self._notify()
        if effect is not None:
            await self._perform(effect)
        return self.outcome

    async def press_keys(self, tokens: Iterable[str]) -> Outcome | None:
        """Feed scripted key tokens until the machine finishes."""
        for token in tokens:
            if self.is_finished:
                break
            await self.press(*parse_key_token(token))
        return self.outcome

    async def cancel(self) -> None:
        """Intent: Ctrl+C - stop in-flight work and finish with ``Cancelled``."""
        if not self.machine.is_terminal:
            self.machine.cancel()
        self.deferred = None
        task = self._effect_task
        if task is not None and not task.done():
            task.cancel()
        await self._notify()

    async def run_deferred(self) -> Outcome | None:
        """Execute a command whose execution was deferred until the view closed."""
        effect = self.deferred
        if effect is None:
            return self.outcome
        self.deferred = None
        exit_code = await asyncio.to_thread(self._collaborators.executor.run, effect.command)
        self.machine.complete_effect(effect, exit_code)
        return self.outcome

    # ------------------------------------------------------------------
    # Effects
    # ------------------------------------------------------------------

    async def _perform(self, effect: Effect) -> None:
        if isinstance(effect, ExecuteEffect) and self._defer_execution:
            self.deferred = effect
            await self._notify()
            return

        self._effect_task = asyncio.create_task(self._run_effect(effect))
        try:
            result = await self._effect_task
        except asyncio.CancelledError:
            if self.machine.is_terminal:
                return
            raise
        except Cancelled:
            self.machine.cancel()
            await self._notify()
            return
        finally:
            self._effect_task = None

        self.machine.complete_effect(effect, result)
        await self._notify()

    async def _run_effect(self, effect: Effect) -> object:
        if isinstance(effect, CopyEffect):
            return await asyncio.to_thread(self._collaborators.clipboard.copy, effect.command)
        if isinstance(effect, ExplainEffect):
            return await self._explain(effect.command)
        return await asyncio.to_thread(self._collaborators.executor.run, effect.command)

    async def _explain(self, command: str) -> object:
        try:
            return await self._collaborators.explainer(command)
        except Cancelled:
            raise
        except Exception as exc:  # noqa: BLE001 - surfaced as a dialog notice.
            logger.debug("explanation failed: %s", exc)
            return f"Explanation failed: {exc}"


__all__ = ["FrontendController", "Machine", "StateCallback", "parse_key_token"]
