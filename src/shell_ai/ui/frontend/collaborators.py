"""External collaborators used by the interactive frontends.

File: src/shell_ai/ui/frontend/collaborators.py

Clipboard, process execution and explanation sit behind small protocols so
the state machines and the controller can be exercised with fakes.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import sys
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Final, Protocol, TypeAlias, runtime_checkable

if TYPE_CHECKING:
    from shell_ai.config.loader import Configuration
    from shell_ai.synthesis.explain import ExplanationResult
    from shell_ai.utils.concurrency import CancellationToken

logger = logging.getLogger(__name__)

Explainer: TypeAlias = Callable[[str], Awaitable["ExplanationResult"]]

CLIPBOARD_TIMEOUT_SECONDS: Final[float] = 5.0

CLIPBOARD_COMMANDS: Final[tuple[tuple[str, ...], ...]] = (
    ("pbcopy",),
    ("wl-copy",),
    ("xclip", "-selection", "clipboard"),
    ("xsel", "--clipboard", "--input"),
    ("clip",),
)


@runtime_checkable
class Clipboard(Protocol):
    def copy(self, text: str) -> bool: ...


@runtime_checkable
class Executor(Protocol):
    def run(self, command: str) -> int: ...


class SystemClipboard:
    """Best-effort clipboard writer over the platform's copy utilities."""

    def __init__(self, candidates: Sequence[tuple[str, ...]] = CLIPBOARD_COMMANDS) -> None:
        self._candidates = tuple(candidates)

    def copy(self, text: str) -> bool:
        for command in self._candidates:
            if shutil.which(command[0]) is None:
                continue
            try:
                proc = subprocess.run(
                    list(command),
                    input=text.encode("utf-8"),
                    timeout=CLIPBOARD_TIMEOUT_SECONDS,
                    check=False,
                    capture_output=True,
                )
            except (OSError, subprocess.SubprocessError) as exc:
                logger.debug("clipboard command %s failed: %s", command[0], exc)
                continue
            if proc.returncode == 0:
                return True
        return False


class ShellExecutor:
    """Run a command through the user's shell with the terminal attached."""

    def __init__(self, *, platform: str | None = None) -> None:
        self._platform = platform if platform is not None else sys.platform

    def argv_for(self, command: str) -> list[str]:
        if self._platform.startswith("win"):
            return ["cmd", "/C", command]
        return ["sh", "-c", command]

    def run(self, command: str) -> int:
        argv = self.argv_for(command)
        logger.debug("executing: %s", argv)
        try:
            completed = subprocess.run(argv, check=False)
        except OSError as exc:
            logger.error("failed to start shell: %s", exc)
            return 127
        return completed.returncode


async def _no_explainer(command: str) -> ExplanationResult:
    raise RuntimeError("explanations are not available")


@dataclass(slots=True)
class Collaborators:
    clipboard: Clipboard = field(default_factory=SystemClipboard)
    executor: Executor = field(default_factory=ShellExecutor)
    explainer: Explainer = _no_explainer


def default_collaborators(
    configuration: Configuration,
    *,
    cancel_token: CancellationToken | None = None,
) -> Collaborators:
    """System clipboard, ``sh -c`` executor and the provider-backed explainer."""

    from shell_ai.synthesis.explain import explain_command

    async def _explain(command: str) -> ExplanationResult:
        return await explain_command(command, configuration, cancel_token=cancel_token)

    return Collaborators(explainer=_explain)


__all__ = [
    "CLIPBOARD_COMMANDS",
    "Clipboard",
    "Collaborators",
    "Executor",
    "Explainer",
    "ShellExecutor",
    "SystemClipboard",
    "default_collaborators",
]
