"""Prompt text, response schemas and decoding for suggestion requests."""

from __future__ import annotations

import platform
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Final

from shell_ai.synthesis.providers.base import (
    CompletionRequest,
    JSONValue,
    RawCompletion,
    SchemaViolation,
    StructuredOutputDefinition,
    decode_structured_content,
)

SUGGEST_SCHEMA_NAME: Final[str] = "shell_command_suggestion"
SUGGEST_SCHEMA: Final[Mapping[str, JSONValue]] = {
    "type": "object",
    "properties": {
        "command": {
            "type": "string",
            "description": "A single-line shell command that can be executed directly.",
        }
    },
    "required": ["command"],
    "additionalProperties": False,
}

SUGGEST_SYSTEM_PROMPT: Final[str] = (
    "You are an expert at using shell commands. Respond with a JSON object only, "
    "matching the provided JSON schema. The command will be directly executed "
    "in a shell as a single executable line of code."
)
SUGGEST_USER_TEMPLATE: Final[str] = (
    "Generate a shell command that satisfies this user request: {prompt}"
)
REVISION_SEPARATOR: Final[str] = "\nRevision: "


def suggest_output_definition() -> StructuredOutputDefinition:
    return StructuredOutputDefinition(name=SUGGEST_SCHEMA_NAME, json_schema=SUGGEST_SCHEMA)


def platform_context() -> str:
    """``<os> <arch>`` of the machine the command will run on."""

    system = platform.system().lower() or "unknown"
    if system == "darwin":
        system = "macos"
    machine = platform.machine().lower() or "unknown"
    return f"{system} {machine}"


@dataclass(frozen=True, slots=True)
class Suggestion:
    command_text: str
    ordinal: int


@dataclass(frozen=True, slots=True)
class SuggestionRequest:
    """One generate invocation: the prompt plus how many candidates to ask for."""

    prompt: str
    desired_count: int
    response_schema: StructuredOutputDefinition = field(default_factory=suggest_output_definition)
    platform_context: str = field(default_factory=platform_context)

    def __post_init__(self) -> None:
        if not self.prompt.strip():
            raise ValueError("prompt cannot be empty")
        if self.desired_count < 1:
            raise ValueError("desired_count must be >= 1")

    def to_completion_request(self) -> CompletionRequest:
        system_message = (
            f"{SUGGEST_SYSTEM_PROMPT} The system the shell command will be executed on is "
            f"{self.platform_context}."
        )
        return CompletionRequest.from_pairs(
            (
                ("system", system_message),
                ("user", SUGGEST_USER_TEMPLATE.format(prompt=self.prompt)),
            ),
            structured_output=self.response_schema,
        )


def build_suggestion_request(prompt: str, count: int) -> SuggestionRequest:
    return SuggestionRequest(prompt=prompt, desired_count=count)


def revise_prompt(original: str, correction: str) -> str:
    """Fold a user correction into the prompt for the next generate round."""

    return f"{original}{REVISION_SEPARATOR}{correction.strip()}"


def parse_suggestion(completion: RawCompletion, *, provider: str) -> str | None:
    """Decode ``{"command": ...}``; blank commands decode to ``None``."""

    payload = decode_structured_content(completion, provider=provider)
    command = payload.get("command")
    if not isinstance(command, str):
        raise SchemaViolation("response is missing a string 'command' field", provider=provider)
    stripped = command.strip()
    return stripped or None


__all__ = [
    "REVISION_SEPARATOR",
    "SUGGEST_SCHEMA",
    "SUGGEST_SCHEMA_NAME",
    "SUGGEST_SYSTEM_PROMPT",
    "Suggestion",
    "SuggestionRequest",
    "build_suggestion_request",
    "parse_suggestion",
    "platform_context",
    "revise_prompt",
    "suggest_output_definition",
]
