"""Command-line interface router for shell-ai."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
import sys
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Final, TextIO, TypeVar

from shell_ai.config.display import (
    config_entries,
    config_payload,
    config_template,
    file_status,
    format_entry,
    format_schema_lines,
    schema_payload,
    write_config_template,
)
from shell_ai.config.loader import (
    Configuration,
    LoadedConfigFile,
    default_config_paths,
    load_config_file,
    load_configuration,
    resolve_values,
)
from shell_ai.config.schema import DebugLevel, Frontend, OutputFormat, ProviderId
from shell_ai.main import ExitCode
from shell_ai.observability import level_for_debug, setup_logging
from shell_ai.synthesis.explain import ExplanationResult, explain_command
from shell_ai.ui.frontend.collaborators import default_collaborators
from shell_ai.ui.frontend.engine import SuggestSession, select_frontend
from shell_ai.ui.frontend.state import Executed, Explained, Outcome
from shell_ai.ui.progress import ProgressSpinner
from shell_ai.ui.render import CLIRenderer, create_renderer
from shell_ai.utils.concurrency import CancellationToken

logger = logging.getLogger(__name__)

T = TypeVar("T")

SUBCOMMANDS: Final[frozenset[str]] = frozenset({"suggest", "explain", "config"})
SHORTHAND_PROG: Final[str] = "shai"
EMPTY_PROMPT_HINT: Final[str] = (
    "Describe what you want to do as a single sentence. `shai <sentence>`"
)
_DEBUG_LEVELS: Final[frozenset[str]] = frozenset(level.value for level in DebugLevel)
_HELP_FLAGS: Final[frozenset[str]] = frozenset({"-h", "--help"})


@dataclass(frozen=True, slots=True)
class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    message: str
    exit_code: int = 1

    def __str__(self) -> str:
        return self.message


@dataclass(slots=True)
class CLIContext:
    """Process-level inputs; tests swap them for fakes."""

    environ: Mapping[str, str]
    stdin: TextIO
    stdout: TextIO


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def _global_options(*, nested: bool = False) -> argparse.ArgumentParser:
    # Nested parsers must not reset flags already given before their subcommand.
    unset: object = argparse.SUPPRESS if nested else None
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--provider",
        choices=tuple(provider.value for provider in ProviderId),
        default=unset,
        help="AI provider to use (env: SHAI_API_PROVIDER).",
    )
    common.add_argument("--model", default=unset, help="Model override for the active provider.")
    common.add_argument(
        "--temperature",
        type=float,
        default=unset,
        help="Sampling temperature, 0.0-2.0 (default: 0.05).",
    )
    common.add_argument(
        "--max-tokens",
        dest="max_tokens",
        type=int,
        default=unset,
        help="Maximum tokens in each response.",
    )
    common.add_argument(
        "--frontend",
        choices=tuple(frontend.value for frontend in Frontend),
        default=unset,
        help="UI mode (default: automatic).",
    )
    common.add_argument(
        "--output-format",
        dest="output_format",
        choices=tuple(output.value for output in OutputFormat),
        default=unset,
        help="Output format (default: human).",
    )
    common.add_argument(
        "--debug",
        nargs="?",
        const=DebugLevel.DEBUG.value,
        choices=tuple(level.value for level in DebugLevel),
        default=unset,
        help="Log level on stderr; bare --debug means debug, trace emits JSON lines.",
    )
    common.add_argument(
        "--no-color",
        action="store_true",
        default=argparse.SUPPRESS if nested else False,
        help="Disable colored output (also respects NO_COLOR env var).",
    )
    common.add_argument(
        "--config",
        dest="config_path",
        default=unset,
        help="Read this config file instead of the per-user config.toml/config.json.",
    )
    return common


def build_parser(prog: str = "shell-ai") -> argparse.ArgumentParser:
    """Build the argparse command router for all supported CLI workflows."""

    parser = argparse.ArgumentParser(
        prog=prog,
        description=(
            "shell-ai - turn a sentence into shell commands, or explain one.\n\n"
            "Common workflows:\n"
            "  shai list files by size          Suggest commands (same as `shell-ai suggest`)\n"
            "  shell-ai explain tar -xzf a.tgz  Explain each part of a command\n"
            "  shell-ai config                  Show settings and where they came from\n"
            "  shell-ai config init             Write a commented config.toml\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    common = _global_options()
    subparsers = parser.add_subparsers(dest="command", required=True)

    # suggest -------------------------------------------------------------
    suggest_parser = subparsers.add_parser(
        "suggest",
        parents=[common],
        help="Suggest shell commands for a description (default command)",
        description=(
            "Generate command suggestions and pick one to execute, copy, explain or revise.\n\n"
            "Examples:\n"
            "  shai find large files in my home directory\n"
            "  shai --frontend noninteractive --output-format json compress logs\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    suggest_parser.add_argument("prompt", nargs="*", help="What you want to do, as a sentence")
    suggest_parser.set_defaults(handler=_cmd_suggest)

    # explain -------------------------------------------------------------
    explain_parser = subparsers.add_parser(
        "explain",
        parents=[common],
        help="Explain a shell command piece by piece",
        description=(
            "Explain a command. When no command is given and stdin is piped,\n"
            "the command is read from stdin.\n\n"
            "Examples:\n"
            "  shell-ai explain -- ls -la\n"
            "  echo 'find . -name \"*.py\"' | shell-ai explain\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    explain_parser.add_argument("words", nargs="*", help="Command to explain")
    explain_parser.set_defaults(handler=_cmd_explain)

    # config --------------------------------------------------------------
    config_parser = subparsers.add_parser(
        "config",
        parents=[common],
        help="Show effective configuration (API keys masked)",
        description=(
            "Display every setting with its value and source.\n\n"
            "Examples:\n"
            "  shell-ai config\n"
            "  shell-ai config --output-format json\n"
            "  shell-ai config init --stdout\n"
            "  shell-ai config schema\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    config_parser.set_defaults(handler=_cmd_config)
    config_actions = config_parser.add_subparsers(dest="config_action")
    nested = _global_options(nested=True)

    init_parser = config_actions.add_parser(
        "init",
        parents=[nested],
        help="Write a commented config.toml template",
    )
    init_parser.add_argument(
        "--stdout",
        action="store_true",
        default=False,
        help="Print the template instead of writing the file.",
    )
    init_parser.set_defaults(handler=_cmd_config_init)

    schema_parser = config_actions.add_parser(
        "schema",
        parents=[nested],
        help="List settings, valid values and provider fields",
    )
    schema_parser.set_defaults(handler=_cmd_config_schema)

    return parser


def normalize_argv(argv: Sequence[str], *, prog: str = "shell-ai") -> list[str]:
    """Route bare prompts to ``suggest`` and make a bare ``--debug`` unambiguous.

    ``shai`` is always the suggest command. For ``shell-ai`` the first
    non-option word picks the subcommand, defaulting to ``suggest``.
    """

    args: list[str] = []
    for index, token in enumerate(argv):
        if token == "--debug":
            following = argv[index + 1] if index + 1 < len(argv) else None
            if following not in _DEBUG_LEVELS:
                args.append(f"--debug={DebugLevel.DEBUG.value}")
                continue
        args.append(token)

    if prog == SHORTHAND_PROG:
        return ["suggest", *args]
    if any(token in _HELP_FLAGS for token in args[:1]):
        return args
    first_word = _first_positional(args)
    if first_word is None or args[first_word] not in SUBCOMMANDS:
        return ["suggest", *args]
    # Global flags given before the subcommand move after it.
    return [args[first_word], *args[:first_word], *args[first_word + 1 :]]


def _first_positional(args: Sequence[str]) -> int | None:
    valued = {"--provider", "--model", "--temperature", "--max-tokens", "--frontend"}
    valued |= {"--output-format", "--config", "--debug"}
    skip_next = False
    for index, token in enumerate(args):
        if skip_next:
            skip_next = False
            continue
        if token == "--":
            return index + 1 if index + 1 < len(args) else None
        if token.startswith("-"):
            skip_next = token in valued
            continue
        return index
    return None


# ---------------------------------------------------------------------------
# Entrypoints
# ---------------------------------------------------------------------------


def run_cli(
    argv: Sequence[str] | None = None,
    *,
    prog: str | None = None,
    environ: Mapping[str, str] | None = None,
    stdin: TextIO | None = None,
    stdout: TextIO | None = None,
) -> int:
    """Parse argv, route to a command handler, and return process exit code."""

    program = prog if prog is not None else Path(sys.argv[0]).stem
    raw_args = list(argv) if argv is not None else sys.argv[1:]
    parser = build_parser()
    namespace = parser.parse_args(normalize_argv(raw_args, prog=program))
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return int(ExitCode.CONFIG_ERROR)

    context = CLIContext(
        environ=dict(os.environ) if environ is None else dict(environ),
        stdin=stdin if stdin is not None else sys.stdin,
        stdout=stdout if stdout is not None else sys.stdout,
    )
    _configure_logging(namespace.debug or context.environ.get("SHAI_DEBUG"))

    try:
        result = handler(namespace, context)
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code
    return int(result)


def main(argv: Sequence[str] | None = None) -> int:
    """Compatibility wrapper for main-module wiring."""

    return run_cli(argv)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_suggest(args: argparse.Namespace, context: CLIContext) -> int:
    renderer = _get_renderer(args, context)
    prompt = " ".join(args.prompt).strip()
    if not prompt:
        renderer.text(EMPTY_PROMPT_HINT)
        return int(ExitCode.SUCCESS)

    configuration = _load_configuration(args, context)
    _configure_logging(configuration.debug)
    logger.debug(
        "provider=%s model=%s frontend=%s",
        configuration.provider.value,
        configuration.effective_model,
        configuration.frontend.value,
    )

    async def _suggest(token: CancellationToken) -> Outcome:
        collaborators = default_collaborators(configuration, cancel_token=token)
        frontend = select_frontend(
            configuration,
            collaborators,
            renderer=renderer,
            no_color=_no_color(args, context),
        )
        session = SuggestSession(configuration, frontend, cancel_token=token)
        return await session.run(prompt)

    outcome = _run_async(_suggest)
    return exit_code_for(outcome)


def _cmd_explain(args: argparse.Namespace, context: CLIContext) -> int:
    renderer = _get_renderer(args, context)
    command = read_explain_command(args.words, context.stdin)
    configuration = _load_configuration(args, context)
    _configure_logging(configuration.debug)

    async def _explain(token: CancellationToken) -> ExplanationResult:
        with ProgressSpinner("Explaining command..."):
            return await explain_command(command, configuration, cancel_token=token)

    outcome = Explained(command=command, explanation=_run_async(_explain))
    if configuration.output_format is OutputFormat.JSON:
        renderer.json(outcome.explanation.to_dict())
    else:
        renderer.explanation(outcome.explanation)
    return int(ExitCode.SUCCESS)


def _cmd_config(args: argparse.Namespace, context: CLIContext) -> int:
    loaded = _load_config_file(args, context)
    values = resolve_values(
        _cli_overrides(args),
        context.environ,
        loaded.contents,
        file_origins=loaded.origins,
    )
    entries = config_entries(values)
    renderer = _get_renderer(args, context)

    if _output_format(values) is OutputFormat.JSON:
        renderer.json(config_payload(entries, loaded))
        return int(ExitCode.SUCCESS)

    renderer.heading("Config files:")
    for path, status in file_status(loaded):
        renderer.text(f"  {path} ({status})")
    renderer.blank()
    renderer.heading("Settings:")
    for entry in entries:
        renderer.text(f"  {format_entry(entry)}")
    return int(ExitCode.SUCCESS)


def _cmd_config_init(args: argparse.Namespace, context: CLIContext) -> int:
    renderer = _get_renderer(args, context)
    template = config_template()
    if args.stdout:
        context.stdout.write(template)
        return int(ExitCode.SUCCESS)

    target = Path(args.config_path) if args.config_path else default_config_paths(context.environ)[0]
    try:
        written = write_config_template(target, template)
    except FileExistsError as exc:
        raise CLIError(
            f"{exc}\nHint: edit it directly, or use `shell-ai config init --stdout`.",
            exit_code=int(ExitCode.CONFIG_ERROR),
        ) from exc
    renderer.text(f"Wrote {written}")
    return int(ExitCode.SUCCESS)


def _cmd_config_schema(args: argparse.Namespace, context: CLIContext) -> int:
    renderer = _get_renderer(args, context)
    values = resolve_values(_cli_overrides(args), context.environ, {})
    if _output_format(values) is OutputFormat.JSON:
        renderer.json(schema_payload())
        return int(ExitCode.SUCCESS)
    for line in format_schema_lines():
        renderer.text(line)
    return int(ExitCode.SUCCESS)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def exit_code_for(outcome: Outcome) -> int:
    """Executed commands that fail map to COMMAND_FAILED; everything else succeeds."""

    if isinstance(outcome, Executed) and outcome.exit_code != 0:
        return int(ExitCode.COMMAND_FAILED)
    return int(ExitCode.SUCCESS)


def read_explain_command(words: Sequence[str], stdin: TextIO) -> str:
    """Join argv words, or read stdin when nothing was given and stdin is piped."""

    if words:
        command = " ".join(words)
    elif _is_tty(stdin):
        command = ""
    else:
        command = stdin.read()
    command = command.strip()
    if not command:
        raise CLIError("Command to explain is empty", exit_code=int(ExitCode.CONFIG_ERROR))
    return command


def _run_async(factory: Callable[[CancellationToken], Awaitable[T]]) -> T:
    async def _runner() -> T:
        token = CancellationToken()
        loop = asyncio.get_running_loop()
        installed = _install_sigint(loop, token)
        try:
            return await factory(token)
        finally:
            if installed:
                loop.remove_signal_handler(signal.SIGINT)

    return asyncio.run(_runner())


def _install_sigint(loop: asyncio.AbstractEventLoop, token: CancellationToken) -> bool:
    try:
        loop.add_signal_handler(signal.SIGINT, token.cancel)
    except (NotImplementedError, RuntimeError, ValueError):
        # Windows event loops and non-main threads keep the default handler.
        return False
    return True


def _cli_overrides(args: argparse.Namespace) -> dict[str, object]:
    return {
        "provider": args.provider,
        "model": args.model,
        "temperature": args.temperature,
        "max_tokens": args.max_tokens,
        "frontend": args.frontend,
        "output_format": args.output_format,
        "debug": args.debug,
    }


def _config_path(args: argparse.Namespace) -> Path | None:
    raw = getattr(args, "config_path", None)
    return Path(raw).expanduser() if raw else None


def _load_configuration(args: argparse.Namespace, context: CLIContext) -> Configuration:
    configuration, _ = load_configuration(
        _cli_overrides(args),
        environ=context.environ,
        is_tty=_is_tty(context.stdin) and _is_tty(context.stdout),
        config_path=_config_path(args),
    )
    return configuration


def _load_config_file(args: argparse.Namespace, context: CLIContext) -> LoadedConfigFile:
    path = _config_path(args)
    if path is None:
        return load_config_file(environ=context.environ)
    if path.suffix.lower() == ".json":
        return load_config_file(json_path=path)
    return load_config_file(toml_path=path)


def _output_format(values: Mapping[str, object]) -> OutputFormat:
    resolved = values.get("output_format")
    raw = getattr(resolved, "value", None)
    return OutputFormat(str(raw)) if raw else OutputFormat.HUMAN


def _configure_logging(debug: DebugLevel | str | None) -> None:
    level = DebugLevel(debug) if isinstance(debug, str) and debug in _DEBUG_LEVELS else debug
    active = level if isinstance(level, DebugLevel) else None
    setup_logging(level_for_debug(active), json_lines=active is DebugLevel.TRACE)


def _no_color(args: argparse.Namespace, context: CLIContext) -> bool:
    return bool(args.no_color) or bool(context.environ.get("NO_COLOR"))


def _get_renderer(args: argparse.Namespace, context: CLIContext) -> CLIRenderer:
    return create_renderer(no_color=_no_color(args, context), stream=context.stdout)


def _is_tty(stream: TextIO) -> bool:
    isatty = getattr(stream, "isatty", None)
    return bool(isatty()) if callable(isatty) else False


__all__ = [
    "CLIContext",
    "CLIError",
    "EMPTY_PROMPT_HINT",
    "build_parser",
    "exit_code_for",
    "main",
    "normalize_argv",
    "read_explain_command",
    "run_cli",
]
