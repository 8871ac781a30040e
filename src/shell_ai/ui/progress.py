"""Transient stderr spinner shown while suggestions are generated.

File: src/shell_ai/ui/progress.py

Driven by the dispatch ``on_progress`` ticks; renders nothing when stderr is
not a terminal so piped output stays clean.
"""

from __future__ import annotations

import sys
from types import TracebackType
from typing import Final, TextIO

from rich.console import Console
from rich.live import Live
from rich.text import Text

# Braille-dot spinner frames - smooth 8-frame cycle
_SPINNER_FRAMES: Final[tuple[str, ...]] = ("⠋", "⠙", "⠹", "⠸", "⠼", "⠴", "⠦", "⠧")
_SPINNER_INTERVAL: Final[float] = 0.1  # 100ms per frame


def spinner_frame(elapsed_seconds: float) -> str:
    index = int(max(elapsed_seconds, 0.0) / _SPINNER_INTERVAL) % len(_SPINNER_FRAMES)
    return _SPINNER_FRAMES[index]


class ProgressSpinner:
    """Context manager around a transient ``rich`` live line."""

    def __init__(
        self,
        message: str = "Generating suggestions...",
        *,
        stream: TextIO | None = None,
        enabled: bool | None = None,
    ) -> None:
        target = stream if stream is not None else sys.stderr
        self.message = message
        self.enabled = target.isatty() if enabled is None else enabled
        self._console = Console(file=target, highlight=False)
        self._live: Live | None = None

    def __enter__(self) -> ProgressSpinner:
        if self.enabled:
            self._live = Live(
                self._render(0.0),
                console=self._console,
                transient=True,
                auto_refresh=False,
            )
            self._live.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.stop()

    def update(self, elapsed_seconds: float) -> None:
        """Tick callback for ``dispatch.generate(on_progress=...)``."""
        if self._live is not None:
            self._live.update(self._render(elapsed_seconds), refresh=True)

    def set_message(self, message: str) -> None:
        self.message = message

    def stop(self) -> None:
        if self._live is not None:
            self._live.stop()
            self._live = None

    def _render(self, elapsed_seconds: float) -> Text:
        text = Text(f"{spinner_frame(elapsed_seconds)} ", style="cyan")
        text.append(self.message)
        text.append(f" {elapsed_seconds:.1f}s", style="dim")
        return text


__all__ = ["ProgressSpinner", "spinner_frame"]
