"""
shell-ai - dispatch orchestrator.

File: src/shell_ai/synthesis/dispatch.py
Last updated: 2026-10-19

Purpose
- Issue N concurrent suggestion requests through the active adapter (each
  wrapped by the retry controller) and collect a deduplicated result list.

What should be included in this file
- The count rule for noninteractive human output.
- Settlement-order deduplication by exact command text.
- Failure aggregation: partial success is success; total failure raises.
- Elapsed-time progress ticks delivered from a separate task.

Functional requirements
- Results are returned only after every launched call has settled.
- Cancellation stops every in-flight call and backoff wait, then raises ``Cancelled``.

Non-functional requirements
- The result list is only mutated from the supervising coroutine.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from typing import Any, Final, TypeAlias

from shell_ai.config.loader import Configuration
from shell_ai.config.schema import Frontend, OutputFormat
from shell_ai.synthesis.prompts import Suggestion, SuggestionRequest, parse_suggestion
from shell_ai.synthesis.providers.base import (
    ProviderAdapter,
    ProviderError,
    ProviderProfile,
    RetryExhausted,
)
from shell_ai.synthesis.providers.profiles import build_profile, create_adapter
from shell_ai.synthesis.retry import RetryPolicy, call_with_retry
from shell_ai.utils.concurrency import (
    CancellationToken,
    Cancelled,
    SleepFn,
    cancel_and_wait,
)

logger = logging.getLogger(__name__)

ProgressCallback: TypeAlias = Callable[[float], None]
Clock: TypeAlias = Callable[[], float]

PROGRESS_TICK_SECONDS: Final[float] = 0.1


class OrchestratorError(RuntimeError):
    """Base class for dispatch-level failures."""


class AllFailed(OrchestratorError):
    """No launched call produced a suggestion."""

    def __init__(self, errors: tuple[BaseException, ...]) -> None:
        self.errors = errors
        self.first_fatal = _first_fatal(errors)
        reason = (
            str(self.first_fatal)
            if self.first_fatal is not None
            else "every response contained an empty command"
        )
        super().__init__(f"No suggestions could be generated.\nReason: {reason}")


def _first_fatal(errors: tuple[BaseException, ...]) -> BaseException | None:
    for error in errors:
        if not isinstance(error, RetryExhausted):
            return error
    return errors[0] if errors else None


def desired_count(configuration: Configuration) -> int:
    """One request for scriptable human output, otherwise ``suggestion_count``."""

    if (
        configuration.frontend is Frontend.NONINTERACTIVE
        and configuration.output_format is OutputFormat.HUMAN
    ):
        return 1
    return configuration.suggestion_count


async def generate(
    configuration: Configuration,
    request: SuggestionRequest,
    count: int | None = None,
    *,
    adapter: ProviderAdapter | None = None,
    profile: ProviderProfile | None = None,
    policy: RetryPolicy | None = None,
    cancel_token: CancellationToken | None = None,
    on_progress: ProgressCallback | None = None,
    sleep: SleepFn = asyncio.sleep,
    clock: Clock = time.monotonic,
) -> list[Suggestion]:
    """Launch ``count`` concurrent calls and return ordered, deduplicated suggestions."""

    total = request.desired_count if count is None else count
    if total < 1:
        raise ValueError("count must be >= 1")

    active_profile = profile if profile is not None else build_profile(configuration)
    active_adapter = adapter if adapter is not None else create_adapter(active_profile)
    active_policy = policy if policy is not None else RetryPolicy.from_configuration(configuration)
    completion_request = request.to_completion_request()

    async def _one_call() -> str | None:
        completion = await call_with_retry(
            lambda: active_adapter.complete(active_profile, completion_request),
            active_policy,
            cancel_token=cancel_token,
            sleep=sleep,
        )
        return parse_suggestion(completion, provider=active_profile.name)

    if cancel_token is not None:
        cancel_token.raise_if_cancelled()

    logger.debug("dispatching %d suggestion request(s) to %s", total, active_profile.name)
    tasks: list[asyncio.Task[str | None]] = [
        asyncio.create_task(_one_call()) for _ in range(total)
    ]
    launch_order = {task: index for index, task in enumerate(tasks)}
    ticker = (
        asyncio.create_task(_tick_progress(on_progress, clock=clock))
        if on_progress is not None
        else None
    )
    cancel_waiter = (
        asyncio.create_task(cancel_token.wait()) if cancel_token is not None else None
    )

    commands: list[str] = []
    errors: list[BaseException] = []
    pending: set[asyncio.Task[str | None]] = set(tasks)
    try:
        while pending:
            waitables: set[asyncio.Task[Any]] = set(pending)
            if cancel_waiter is not None:
                waitables.add(cancel_waiter)
            done, _ = await asyncio.wait(waitables, return_when=asyncio.FIRST_COMPLETED)
            if cancel_waiter is not None and cancel_waiter in done:
                raise Cancelled()

            settled = sorted(
                (task for task in done if task in launch_order),
                key=lambda task: launch_order[task],
            )
            for task in settled:
                pending.discard(task)
                _collect(task, commands, errors)
    finally:
        leftovers: list[asyncio.Task[Any]] = [*pending]
        if ticker is not None:
            leftovers.append(ticker)
        if cancel_waiter is not None:
            leftovers.append(cancel_waiter)
        await cancel_and_wait(leftovers)

    if not commands:
        if errors and all(isinstance(error, RetryExhausted) for error in errors):
            raise errors[0]
        raise AllFailed(tuple(errors))

    if errors:
        logger.debug("%d of %d suggestion request(s) failed", len(errors), total)
    return [
        Suggestion(command_text=command, ordinal=index + 1)
        for index, command in enumerate(commands)
    ]


def _collect(
    task: asyncio.Task[str | None],
    commands: list[str],
    errors: list[BaseException],
) -> None:
    exc = task.exception()
    if exc is None:
        command = task.result()
        if command is not None and command not in commands:
            commands.append(command)
        return
    if isinstance(exc, Cancelled):
        raise exc
    if not isinstance(exc, ProviderError):
        raise exc
    logger.debug("suggestion attempt failed: %s", exc)
    errors.append(exc)


async def _tick_progress(on_progress: ProgressCallback, *, clock: Clock) -> None:
    started = clock()
    while True:
        on_progress(clock() - started)
        await asyncio.sleep(PROGRESS_TICK_SECONDS)


__all__ = [
    "PROGRESS_TICK_SECONDS",
    "AllFailed",
    "OrchestratorError",
    "ProgressCallback",
    "desired_count",
    "generate",
]
