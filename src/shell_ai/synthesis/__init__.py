"""
shell-ai - synthesis layer.

File: src/shell_ai/synthesis/__init__.py
Last updated: 2026-10-19

Purpose
- Provider adapters, retry policy, the dispatch orchestrator and the
  explanation collaborator.

Functional requirements
- Must stay provider-agnostic through the adapter protocol.
"""

from shell_ai.synthesis.dispatch import AllFailed, OrchestratorError, desired_count, generate
from shell_ai.synthesis.explain import ExplanationResult, ExplanationSegment, explain_command
from shell_ai.synthesis.prompts import (
    Suggestion,
    SuggestionRequest,
    build_suggestion_request,
    revise_prompt,
)
from shell_ai.synthesis.retry import RetryPolicy, call_with_retry, compute_backoff_delay

__all__ = [
    "AllFailed",
    "ExplanationResult",
    "ExplanationSegment",
    "OrchestratorError",
    "RetryPolicy",
    "Suggestion",
    "SuggestionRequest",
    "build_suggestion_request",
    "call_with_retry",
    "compute_backoff_delay",
    "desired_count",
    "explain_command",
    "generate",
    "revise_prompt",
]
