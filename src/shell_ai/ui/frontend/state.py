"""Frontend state - pure data, NO Textual imports.

File: src/shell_ai/ui/frontend/state.py

Outcomes returned by every frontend, the effects a state machine asks the
controller to perform, and the dialog's mode enum.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeAlias

if TYPE_CHECKING:
    from shell_ai.synthesis.explain import ExplanationResult

# ---------------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Executed:
    command: str
    exit_code: int


@dataclass(frozen=True, slots=True)
class Copied:
    command: str


@dataclass(frozen=True, slots=True)
class Explained:
    command: str
    explanation: ExplanationResult


@dataclass(frozen=True, slots=True)
class Revised:
    new_prompt: str


@dataclass(frozen=True, slots=True)
class Cancelled:
    pass


@dataclass(frozen=True, slots=True)
class Printed:
    commands: tuple[str, ...]


Outcome: TypeAlias = Executed | Copied | Explained | Revised | Cancelled | Printed

# ---------------------------------------------------------------------------
# Effects (requested by a machine, performed by the controller)
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class CopyEffect:
    command: str


@dataclass(frozen=True, slots=True)
class ExplainEffect:
    command: str


@dataclass(frozen=True, slots=True)
class ExecuteEffect:
    command: str


Effect: TypeAlias = CopyEffect | ExplainEffect | ExecuteEffect

# ---------------------------------------------------------------------------
# Dialog modes
# ---------------------------------------------------------------------------


class DialogMode(enum.Enum):
    BROWSING = "browsing"
    ACTION_MENU = "action_menu"
    REVISING = "revising"
    TERMINAL = "terminal"


class RevisionKind(enum.Enum):
    """``amend`` folds a correction into the prompt; ``replace`` starts over."""

    AMEND = "amend"
    REPLACE = "replace"


class MenuAction(enum.Enum):
    COPY = "c"
    EXPLAIN = "e"
    EXECUTE = "x"
    REVISE = "r"
    BACK = "b"

    @property
    def label(self) -> str:
        return _MENU_LABELS[self]


_MENU_LABELS: dict[MenuAction, str] = {
    MenuAction.COPY: "Copy to clipboard",
    MenuAction.EXPLAIN: "Explain",
    MenuAction.EXECUTE: "Execute",
    MenuAction.REVISE: "Revise",
    MenuAction.BACK: "Back",
}

MENU_ORDER: tuple[MenuAction, ...] = (
    MenuAction.EXECUTE,
    MenuAction.COPY,
    MenuAction.EXPLAIN,
    MenuAction.REVISE,
    MenuAction.BACK,
)


__all__ = [
    "MENU_ORDER",
    "Cancelled",
    "Copied",
    "CopyEffect",
    "DialogMode",
    "Effect",
    "ExecuteEffect",
    "Executed",
    "ExplainEffect",
    "Explained",
    "MenuAction",
    "Outcome",
    "Printed",
    "Revised",
    "RevisionKind",
]
