"""Async cancellation primitives shared by dispatch and the frontends."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from contextlib import suppress
from typing import Any, TypeAlias

SleepFn: TypeAlias = Callable[[float], Awaitable[None]]


class Cancelled(Exception):
    """The user cancelled the operation (Ctrl+C or an explicit token)."""

    def __init__(self, message: str = "operation cancelled") -> None:
        super().__init__(message)


class CancellationToken:
    """Cooperative cancellation token backed by ``asyncio.Event``."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise Cancelled()


async def sleep_with_cancellation(
    delay_seconds: float,
    *,
    sleep: SleepFn = asyncio.sleep,
    cancel_token: CancellationToken | None = None,
) -> None:
    """Sleep for ``delay_seconds`` unless the token fires first, then raise ``Cancelled``."""

    if cancel_token is None:
        if delay_seconds > 0:
            await sleep(delay_seconds)
        return

    cancel_token.raise_if_cancelled()
    if delay_seconds <= 0:
        return

    sleep_task: asyncio.Task[None] = asyncio.create_task(_await_sleep(delay_seconds, sleep=sleep))
    cancel_task = asyncio.create_task(cancel_token.wait())
    done, pending = await asyncio.wait(
        {sleep_task, cancel_task},
        return_when=asyncio.FIRST_COMPLETED,
    )
    try:
        if cancel_task in done and cancel_token.is_cancelled:
            sleep_task.cancel()
            await _await_cancelled(sleep_task)
            raise Cancelled("cancelled during backoff")
        await sleep_task
    finally:
        for task in pending:
            task.cancel()
        for task in pending:
            await _await_cancelled(task)


async def _await_sleep(delay_seconds: float, *, sleep: SleepFn) -> None:
    await sleep(delay_seconds)


async def _await_cancelled(task: asyncio.Task[Any]) -> None:
    with suppress(asyncio.CancelledError):
        await task


async def cancel_and_wait(tasks: Sequence[asyncio.Task[Any]]) -> None:
    """Cancel ``tasks`` and wait until every one of them has settled."""

    for task in tasks:
        task.cancel()
    if tasks:
        await asyncio.gather(*tasks, return_exceptions=True)


__all__ = [
    "CancellationToken",
    "Cancelled",
    "SleepFn",
    "cancel_and_wait",
    "sleep_with_cancellation",
]
