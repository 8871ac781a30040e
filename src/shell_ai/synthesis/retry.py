"""
shell-ai - retry controller.

File: src/shell_ai/synthesis/retry.py
Last updated: 2026-10-19

Purpose
- Wrap one provider call with bounded exponential backoff for transient
  failures (rate limits, server errors, network errors).

Functional requirements
- Non-retryable errors propagate immediately and unchanged.
- Exhaustion surfaces ``RetryExhausted`` carrying the attempt count and last error.
- A cancellation token raised during a backoff wait stops the loop at once.

Non-functional requirements
- Sleep and randomness are injectable so tests run without real delays.
"""

from __future__ import annotations

import asyncio
import logging
import random as random_module
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeAlias, TypeVar

from shell_ai.synthesis.providers.base import ProviderError, RetryExhausted, is_retryable_error
from shell_ai.utils.concurrency import CancellationToken, SleepFn, sleep_with_cancellation

if TYPE_CHECKING:
    from shell_ai.config.loader import Configuration

logger = logging.getLogger(__name__)

T = TypeVar("T")
RandomFn: TypeAlias = Callable[[], float]
RetryCallback: TypeAlias = Callable[[int, ProviderError, float], None]


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Bounded exponential backoff policy."""

    max_attempts: int = 4
    initial_delay_seconds: float = 1.0
    multiplier: float = 2.0
    max_delay_seconds: float = 16.0
    jitter_ratio: float = 0.1

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.initial_delay_seconds < 0:
            raise ValueError("initial_delay_seconds must be >= 0")
        if self.multiplier < 1.0:
            raise ValueError("multiplier must be >= 1.0")
        if self.max_delay_seconds < 0:
            raise ValueError("max_delay_seconds must be >= 0")
        if self.initial_delay_seconds > self.max_delay_seconds:
            raise ValueError("initial_delay_seconds must be <= max_delay_seconds")
        if not (0.0 <= self.jitter_ratio < 1.0):
            raise ValueError("jitter_ratio must be in [0.0, 1.0)")

    @classmethod
    def from_configuration(cls, configuration: Configuration) -> RetryPolicy:
        initial = float(_number(configuration.get("retry.initial_delay")))
        maximum = float(_number(configuration.get("retry.max_delay")))
        return cls(
            max_attempts=int(_number(configuration.get("retry.max_attempts"))),
            initial_delay_seconds=min(initial, maximum),
            max_delay_seconds=maximum,
            jitter_ratio=float(_number(configuration.get("retry.jitter"))),
        )


@dataclass(slots=True)
class RetryState:
    """Mutable bookkeeping for one ``call_with_retry`` invocation."""

    attempt: int = 0
    next_delay: float | None = None


def compute_backoff_delay(
    *,
    retry_number: int,
    policy: RetryPolicy,
    random_fn: RandomFn = random_module.random,
) -> float:
    """Return the wait before retry N (1-based).

    The base delay doubles per retry up to ``max_delay_seconds``; jitter only
    shortens it, by at most ``jitter_ratio`` of the base.
    """

    if retry_number <= 0:
        raise ValueError("retry_number must be > 0")

    base_delay = policy.initial_delay_seconds * (policy.multiplier ** (retry_number - 1))
    bounded_delay = min(base_delay, policy.max_delay_seconds)

    if policy.jitter_ratio == 0.0:
        return bounded_delay

    random_value = random_fn()
    if not (0.0 <= random_value <= 1.0):
        raise ValueError("random_fn must return values in [0.0, 1.0]")
    return max(0.0, bounded_delay * (1.0 - policy.jitter_ratio * random_value))


async def call_with_retry(
    fn: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    cancel_token: CancellationToken | None = None,
    sleep: SleepFn = asyncio.sleep,
    random_fn: RandomFn = random_module.random,
    on_retry: RetryCallback | None = None,
) -> T:
    """Run ``fn`` until it succeeds, fails fatally, or attempts run out."""

    state = RetryState()
    while True:
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()
        state.attempt += 1
        try:
            return await fn()
        except ProviderError as exc:
            if not is_retryable_error(exc):
                raise
            if state.attempt >= policy.max_attempts:
                raise RetryExhausted(attempts=state.attempt, last_error=exc) from exc

            state.next_delay = compute_backoff_delay(
                retry_number=state.attempt,
                policy=policy,
                random_fn=random_fn,
            )
            logger.info(
                "attempt %d/%d failed (%s); retrying in %.2fs",
                state.attempt,
                policy.max_attempts,
                exc,
                state.next_delay,
            )
            if on_retry is not None:
                on_retry(state.attempt, exc, state.next_delay)
            await sleep_with_cancellation(
                state.next_delay,
                sleep=sleep,
                cancel_token=cancel_token,
            )


def _number(value: object) -> float:
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        raise TypeError(f"expected a number, got {value!r}")
    return value


__all__ = [
    "RandomFn",
    "RetryCallback",
    "RetryPolicy",
    "RetryState",
    "call_with_retry",
    "compute_backoff_delay",
]
