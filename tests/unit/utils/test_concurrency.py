"""Regression tests for cancellation tokens and cancellable sleeps."""

from __future__ import annotations

import asyncio

import pytest

from shell_ai.utils.concurrency import (
    CancellationToken,
    Cancelled,
    cancel_and_wait,
    sleep_with_cancellation,
)


class _SleepRecorder:
    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.calls.append(delay)


def test_token_starts_clear_and_latches() -> None:
    token = CancellationToken()
    assert token.is_cancelled is False

    token.cancel()
    token.cancel()

    assert token.is_cancelled is True
    with pytest.raises(Cancelled):
        token.raise_if_cancelled()


async def test_sleep_without_token_uses_injected_sleep() -> None:
    recorder = _SleepRecorder()

    await sleep_with_cancellation(1.5, sleep=recorder)
    await sleep_with_cancellation(0.0, sleep=recorder)

    assert recorder.calls == [1.5]


async def test_sleep_with_clear_token_completes() -> None:
    recorder = _SleepRecorder()

    await sleep_with_cancellation(2.0, sleep=recorder, cancel_token=CancellationToken())

    assert recorder.calls == [2.0]


async def test_already_cancelled_token_raises_before_sleeping() -> None:
    recorder = _SleepRecorder()
    token = CancellationToken()
    token.cancel()

    with pytest.raises(Cancelled):
        await sleep_with_cancellation(5.0, sleep=recorder, cancel_token=token)
    assert recorder.calls == []


async def test_cancel_during_sleep_interrupts_the_wait() -> None:
    token = CancellationToken()
    loop = asyncio.get_running_loop()
    loop.call_later(0.01, token.cancel)
    started = loop.time()

    with pytest.raises(Cancelled, match="backoff"):
        await sleep_with_cancellation(30.0, cancel_token=token)

    assert loop.time() - started < 5.0


async def test_cancel_and_wait_settles_every_task() -> None:
    tasks = [asyncio.create_task(asyncio.sleep(30)) for _ in range(3)]

    await cancel_and_wait(tasks)

    assert all(task.cancelled() for task in tasks)


async def test_cancel_and_wait_accepts_empty_sequence() -> None:
    await cancel_and_wait([])
