"""UI package exports for the CLI, rendering and the frontend engine."""

from shell_ai.ui.cli import build_parser, run_cli
from shell_ai.ui.render import CLIRenderer, create_renderer

__all__ = [
    "CLIRenderer",
    "build_parser",
    "create_renderer",
    "run_cli",
]
