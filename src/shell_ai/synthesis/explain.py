"""
shell-ai - command explanation.

File: src/shell_ai/synthesis/explain.py
Last updated: 2026-10-19

Purpose
- Break a shell command into annotated segments using the active provider,
  grounding the answer in local man pages when they are available.

What should be included in this file
- Command-name extraction from a shell line.
- Man page lookup, section extraction and truncation.
- The ``command_explanation`` response schema and system instructions.
- The request loop that drops the shortest reference on ``RequestTooLarge``.

Functional requirements
- Reference gathering is disabled when ``max_reference_chars`` is 0.
- A missing ``man`` binary or page is not an error; the command is explained without it.

Non-functional requirements
- The man reader is injectable so tests never spawn processes.
- Man pages are read in a worker thread so the event loop keeps running.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import re
import shutil
import subprocess
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Final, TypeAlias

from shell_ai.config.loader import Configuration
from shell_ai.synthesis.providers.base import (
    CompletionRequest,
    JSONValue,
    ProviderAdapter,
    ProviderProfile,
    RequestTooLarge,
    SchemaViolation,
    StructuredOutputDefinition,
    decode_structured_content,
)
from shell_ai.synthesis.providers.profiles import build_profile, create_adapter
from shell_ai.synthesis.retry import RetryPolicy, call_with_retry
from shell_ai.utils.concurrency import CancellationToken

logger = logging.getLogger(__name__)

ManReader: TypeAlias = Callable[[str, int], str | None]

EXPLAIN_SCHEMA_NAME: Final[str] = "command_explanation"
TRUNCATION_MARKER: Final[str] = "...\n[truncated]"
MAN_TIMEOUT_SECONDS: Final[float] = 10.0

_SEGMENT_SPLIT: Final[re.Pattern[str]] = re.compile(r"[|&;()`\n]")


# ---------------------------------------------------------------------------
# Command extraction and man pages
# ---------------------------------------------------------------------------


def extract_command_names(command: str) -> list[str]:
    """Return the first command-like word of every pipeline/list segment."""

    names: list[str] = []
    for segment in _SEGMENT_SPLIT.split(command):
        for word in segment.split():
            if word.startswith("$"):
                continue
            if "=" in word and not word.startswith("-"):
                continue
            if word.startswith(("<", ">")):
                continue
            if word.isdigit():
                continue
            name = word
            while name.startswith("./"):
                name = name[2:]
            if name and not name.startswith("-"):
                names.append(name)
                break

    unique: list[str] = []
    for name in names:
        if name not in unique:
            unique.append(name)
    return unique


def extract_section(man_page: str, section_name: str) -> str | None:
    """Return the body of a man page section, header line included."""

    collected: list[str] = []
    in_section = False
    for line in man_page.splitlines():
        stripped = line.strip()
        is_header = (
            bool(stripped)
            and not line.startswith((" ", "\t"))
            and stripped[0].isascii()
            and stripped[0].isupper()
        )
        if is_header:
            if stripped.startswith(section_name):
                in_section = True
                collected.append(line)
            elif in_section:
                break
        elif in_section:
            collected.append(line)
    return "\n".join(collected) if collected else None


def extract_options_section(man_page: str) -> str | None:
    return extract_section(man_page, "OPTIONS") or extract_section(man_page, "DESCRIPTION")


def truncate_to_limit(text: str, max_chars: int) -> str:
    """Cut ``text`` at the last line break before ``max_chars``."""

    if len(text) <= max_chars:
        return text
    head = text[:max_chars]
    cut = head.rfind("\n")
    if cut >= 0:
        head = text[:cut]
    return f"{head}{TRUNCATION_MARKER}"


def read_man_page(name: str, max_chars: int) -> str | None:
    """Render ``man <name>`` as plain text and keep its OPTIONS (or DESCRIPTION) section."""

    if shutil.which("man") is None:
        return None
    try:
        located = subprocess.run(
            ["man", "-w", name],
            capture_output=True,
            check=False,
            timeout=MAN_TIMEOUT_SECONDS,
        )
    except (OSError, subprocess.SubprocessError) as exc:
        logger.debug("failed to check man page for %r: %s", name, exc)
        return None
    if located.returncode != 0:
        return None

    environment = dict(os.environ)
    environment.update({"MANWIDTH": "100000", "LANG": "C", "LC_ALL": "C", "MANPAGER": "cat"})
    try:
        rendered = subprocess.run(
            ["man", name],
            capture_output=True,
            check=False,
            env=environment,
            timeout=MAN_TIMEOUT_SECONDS,
        )
    except (OSError, subprocess.SubprocessError) as exc:
        logger.debug("failed to run man for %r: %s", name, exc)
        return None
    if rendered.returncode != 0:
        return None

    page = rendered.stdout.decode("utf-8", errors="replace")
    if not page.strip():
        return None
    section = extract_options_section(page) or page
    return f"# {name}(1)\n\n{truncate_to_limit(section, max_chars)}"


@dataclass(frozen=True, slots=True)
class ManReference:
    command: str
    content: str

    @property
    def char_count(self) -> int:
        return len(self.content)


def gather_man_references(
    command: str,
    max_total_chars: int,
    *,
    man_reader: ManReader = read_man_page,
    cancel_token: CancellationToken | None = None,
) -> list[ManReference]:
    """Collect man page excerpts, smallest first, that fit within ``max_total_chars``.

    Blocking: each page spawns ``man``. ``cancel_token`` is checked before
    every page.
    """

    if max_total_chars <= 0:
        return []

    per_page = max_total_chars // 2
    references = []
    for name in extract_command_names(command):
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()
        content = man_reader(name, per_page)
        if content:
            references.append(ManReference(command=name, content=content))
    references.sort(key=lambda reference: reference.char_count)

    kept: list[ManReference] = []
    total = 0
    for reference in references:
        if total + reference.char_count <= max_total_chars:
            total += reference.char_count
            kept.append(reference)
    return kept


# ---------------------------------------------------------------------------
# Request construction
# ---------------------------------------------------------------------------


def explanation_schema(*, with_citations: bool) -> dict[str, JSONValue]:
    properties: dict[str, JSONValue] = {
        "segment": {
            "type": "string",
            "description": "The exact token from the command (direct quote, will be highlighted)",
        },
    }
    required: list[JSONValue] = ["segment", "prefix", "suffix", "children"]
    if with_citations:
        properties["citation"] = {
            "type": ["string", "null"],
            "description": (
                "A verbatim quote from the provided documentation that describes this "
                "segment. Leave null if no documentation was provided or the segment is "
                "not documented."
            ),
        }
        properties["citation_confidence"] = {
            "type": "number",
            "minimum": 0.0,
            "maximum": 1.0,
            "description": (
                "Confidence score (0.0 to 1.0) for the citation accuracy. 1 = exact quote "
                "from docs, 0 = no docs available or pure guess."
            ),
        }
        required.extend(["citation", "citation_confidence"])
    properties["prefix"] = {
        "type": ["string", "null"],
        "description": "Optional text before the segment that forms the start of a sentence",
    }
    properties["suffix"] = {
        "type": ["string", "null"],
        "description": "Text after the segment that completes the sentence",
    }
    properties["children"] = {
        "type": "array",
        "items": {"$ref": "#/$defs/explanation"},
        "description": "Nested explanations for sub-components",
    }
    return {
        "type": "object",
        "properties": {
            "synopsis": {
                "type": "string",
                "description": "A one-line description of what the overall command does",
            },
            "explanations": {
                "type": "array",
                "items": {"$ref": "#/$defs/explanation"},
            },
        },
        "required": ["synopsis", "explanations"],
        "additionalProperties": False,
        "$defs": {
            "explanation": {
                "type": "object",
                "properties": properties,
                "required": required,
                "additionalProperties": False,
            }
        },
    }


def build_system_prompt(*, with_citations: bool) -> str:
    parts = [
        "You are a shell command explainer. The user will provide a shell command, "
        "and you will explain it by breaking it down into its components.\n\n"
    ]
    if with_citations:
        parts.append(
            "For each segment, you MUST:\n"
            "1. First identify the exact segment from the command\n"
            '2. Look up the segment in the provided documentation and quote it VERBATIM in "citation"\n'
            "3. Rate your citation confidence (1.0 = exact quote from docs, 0.0 = no docs or guessing)\n"
            "4. Then write the explanation (prefix + segment + suffix forms a natural sentence)\n\n"
        )
    parts.append('Output format: JSON with "synopsis" and "explanations" array.\n\n')
    parts.append("Each explanation node has these fields:\n")
    parts.append('- "segment": The exact token from the command (will be highlighted)\n')
    if with_citations:
        parts.append(
            '- "citation": Verbatim quote from provided documentation, or null if unavailable\n'
        )
        parts.append('- "citation_confidence": 0.0-1.0 confidence in citation accuracy\n')
    parts.append('- "prefix": Optional text before segment (start of sentence)\n')
    parts.append('- "suffix": Text after segment (completes the sentence)\n')
    parts.append(
        '- "children": Nested explanations for sub-components (combined flags or control flow)\n\n'
    )
    parts.append(
        'The rendered output is: "{prefix} {segment} {suffix}" - this MUST be a natural sentence.\n\n'
    )
    parts.append('IMPORTANT: "segment" must be EXACT characters from the command, no escaping changes.\n')
    if with_citations:
        parts.append(
            '"citation" must be VERBATIM from the documentation, i.e., copy-paste, don\'t paraphrase.\n'
        )
        parts.append("Base your explanation on the citation, not prior knowledge.\n")
    parts.append("\nExample:\n")
    if with_citations:
        parts.append(
            '{\n  "segment": "-x",\n'
            '  "citation": "-x, --example  Description of what this option does.",\n'
            '  "citation_confidence": 1.0,\n'
            '  "prefix": null,\n'
            '  "suffix": "does something specific.",\n'
            '  "children": []\n}\n\n'
        )
    else:
        parts.append(
            '{\n  "segment": "-x",\n'
            '  "prefix": null,\n'
            '  "suffix": "does something specific.",\n'
            '  "children": []\n}\n\n'
        )
    parts.append("Rules:\n")
    parts.append('1. "segment" MUST be an exact substring from the command\n')
    parts.append('2. "{prefix} {segment} {suffix}" must read as a complete sentence\n')
    parts.append(
        '3. Use "children" to break down combined flags (e.g., "-abc" into "-a", "-b", "-c") '
        "or complex control flow (e.g., loops, conditionals, pipelines)\n"
    )
    parts.append("4. Keep explanations concise\n")
    if with_citations:
        parts.append("5. USE the provided documentation - cite verbatim and base explanation on it\n")
    return "".join(parts)


def build_explain_request(
    command: str, references: Sequence[ManReference]
) -> CompletionRequest:
    with_citations = bool(references)
    pairs: list[tuple[str, str]] = [("system", build_system_prompt(with_citations=with_citations))]
    pairs.extend(("system", reference.content) for reference in references)
    pairs.append(("user", command))
    return CompletionRequest.from_pairs(
        pairs,
        structured_output=StructuredOutputDefinition(
            name=EXPLAIN_SCHEMA_NAME,
            json_schema=explanation_schema(with_citations=with_citations),
        ),
    )


# ---------------------------------------------------------------------------
# Result model
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ExplanationSegment:
    segment: str
    prefix: str | None = None
    suffix: str | None = None
    citation: str | None = None
    citation_confidence: float | None = None
    children: tuple[ExplanationSegment, ...] = ()

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {"segment": self.segment}
        if self.citation is not None:
            payload["citation"] = self.citation
        if self.citation_confidence is not None:
            payload["citation_confidence"] = self.citation_confidence
        payload["prefix"] = self.prefix
        payload["suffix"] = self.suffix
        payload["children"] = [child.to_dict() for child in self.children]
        return payload


@dataclass(frozen=True, slots=True)
class ExplanationResult:
    command: str
    synopsis: str
    explanations: tuple[ExplanationSegment, ...] = ()
    references: tuple[str, ...] = field(default=(), compare=False)

    def to_dict(self) -> dict[str, object]:
        return {
            "synopsis": self.synopsis,
            "explanations": [node.to_dict() for node in self.explanations],
        }


def parse_explanation(payload: Mapping[str, object], *, command: str, provider: str) -> ExplanationResult:
    synopsis = payload.get("synopsis")
    nodes = payload.get("explanations")
    if not isinstance(synopsis, str):
        raise SchemaViolation("explanation is missing a string 'synopsis'", provider=provider)
    if not isinstance(nodes, list):
        raise SchemaViolation("explanation is missing an 'explanations' array", provider=provider)
    return ExplanationResult(
        command=command,
        synopsis=synopsis,
        explanations=tuple(_parse_node(node, provider=provider) for node in nodes),
    )


def _parse_node(node: object, *, provider: str) -> ExplanationSegment:
    if not isinstance(node, Mapping):
        raise SchemaViolation("explanation node must be an object", provider=provider)
    segment = node.get("segment")
    if not isinstance(segment, str):
        raise SchemaViolation("explanation node is missing 'segment'", provider=provider)
    children = node.get("children") or []
    if not isinstance(children, list):
        raise SchemaViolation("explanation 'children' must be an array", provider=provider)
    confidence = node.get("citation_confidence")
    return ExplanationSegment(
        segment=segment,
        prefix=_optional_text(node.get("prefix")),
        suffix=_optional_text(node.get("suffix")),
        citation=_optional_text(node.get("citation")),
        citation_confidence=(
            float(confidence)
            if isinstance(confidence, (int, float)) and not isinstance(confidence, bool)
            else None
        ),
        children=tuple(_parse_node(child, provider=provider) for child in children),
    )


def _optional_text(value: object) -> str | None:
    return value if isinstance(value, str) else None


def display_segment(command: str, segment: str) -> str:
    """Undo one level of JSON escaping when the model double-escaped a segment."""

    if segment in command:
        return segment
    try:
        decoded = json.loads(f'"{segment}"')
    except json.JSONDecodeError:
        return segment
    if isinstance(decoded, str) and decoded in command:
        return decoded
    return segment


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


async def explain_command(
    command: str,
    configuration: Configuration,
    *,
    adapter: ProviderAdapter | None = None,
    profile: ProviderProfile | None = None,
    policy: RetryPolicy | None = None,
    man_reader: ManReader | None = None,
    cancel_token: CancellationToken | None = None,
) -> ExplanationResult:
    """Ask the active provider to explain ``command``."""

    if not command.strip():
        raise ValueError("Command to explain is empty")

    active_profile = profile if profile is not None else build_profile(configuration)
    active_adapter = adapter if adapter is not None else create_adapter(active_profile)
    active_policy = policy if policy is not None else RetryPolicy.from_configuration(configuration)

    references = await asyncio.to_thread(
        gather_man_references,
        command,
        configuration.max_reference_chars,
        man_reader=man_reader if man_reader is not None else read_man_page,
        cancel_token=cancel_token,
    )
    if cancel_token is not None:
        cancel_token.raise_if_cancelled()
    logger.debug("extracted commands: %s", extract_command_names(command))
    logger.debug("man page references gathered: %d", len(references))

    while True:
        request = build_explain_request(command, references)
        logger.debug("explain payload size: %d chars", request.payload_size())
        try:
            completion = await call_with_retry(
                lambda: active_adapter.complete(active_profile, request),
                active_policy,
                cancel_token=cancel_token,
            )
        except RequestTooLarge:
            if not references:
                raise
            dropped = references.pop(0)
            logger.info("context too large, dropping man page for %r and retrying", dropped.command)
            continue

        payload = decode_structured_content(completion, provider=active_profile.name)
        result = parse_explanation(payload, command=command, provider=active_profile.name)
        return ExplanationResult(
            command=result.command,
            synopsis=result.synopsis,
            explanations=result.explanations,
            references=tuple(reference.command for reference in references),
        )


__all__ = [
    "EXPLAIN_SCHEMA_NAME",
    "ExplanationResult",
    "ExplanationSegment",
    "ManReader",
    "ManReference",
    "build_explain_request",
    "build_system_prompt",
    "display_segment",
    "explain_command",
    "explanation_schema",
    "extract_command_names",
    "extract_options_section",
    "extract_section",
    "gather_man_references",
    "parse_explanation",
    "read_man_page",
    "truncate_to_limit",
]
