"""
shell-ai - provider base models and shared utilities.

File: src/shell_ai/synthesis/providers/base.py
Last updated: 2026-10-19

Purpose
- Provider-agnostic request/response models, profiles and the error taxonomy
  shared by every backend adapter.

What should be included in this file
- Profile: endpoint, auth scheme, model, sampling and token limits.
- Request: chat messages plus an optional schema-enforced output contract.
- Response: raw message content, finish reason and request metadata.
- Error taxonomy and retryability classification.

Functional requirements
- Adding a backend must not require touching dispatch or retry logic.

Non-functional requirements
- Keys never appear in ``repr`` output, error messages or logs.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Final, Protocol, TypeAlias, runtime_checkable

from shell_ai.config.schema import AuthScheme, ProviderId

JSONScalar: TypeAlias = str | int | float | bool | None
JSONValue: TypeAlias = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]

DEFAULT_TIMEOUT_SECONDS: Final[float] = 60.0
TRUNCATION_HINT: Final[str] = (
    "Response truncated (max_tokens too low). Increase --max-tokens or SHAI_MAX_TOKENS."
)

_CHAT_ROLES: Final[frozenset[str]] = frozenset({"system", "user", "assistant"})


def _validate_non_empty_str(value: str, field_name: str) -> str:
    if not isinstance(value, str):
        raise TypeError(f"{field_name} must be a string")
    normalized = value.strip()
    if not normalized:
        raise ValueError(f"{field_name} cannot be empty")
    return normalized


def _validate_optional_str(value: str | None, field_name: str) -> str | None:
    if value is None:
        return None
    return _validate_non_empty_str(value, field_name)


@dataclass(frozen=True, slots=True)
class ProviderProfile:
    """Everything an adapter needs to reach one backend."""

    id: ProviderId
    endpoint: str
    auth_scheme: AuthScheme
    model: str
    temperature: float
    max_tokens: int | None = None
    api_key: str | None = field(default=None, repr=False)
    organization: str | None = None
    deployment_name: str | None = None
    api_version: str | None = None
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS

    def __post_init__(self) -> None:
        object.__setattr__(self, "endpoint", _validate_non_empty_str(self.endpoint, "endpoint"))
        object.__setattr__(self, "model", _validate_non_empty_str(self.model, "model"))
        if not (0.0 <= self.temperature <= 2.0):
            raise ValueError("temperature must be between 0.0 and 2.0")
        if self.max_tokens is not None and self.max_tokens <= 0:
            raise ValueError("max_tokens must be > 0")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")
        if self.auth_scheme is not AuthScheme.NONE and not self.api_key:
            raise ValueError(f"{self.id.value} requires an API key")
        object.__setattr__(
            self, "organization", _validate_optional_str(self.organization, "organization")
        )
        object.__setattr__(
            self,
            "deployment_name",
            _validate_optional_str(self.deployment_name, "deployment_name"),
        )
        object.__setattr__(
            self, "api_version", _validate_optional_str(self.api_version, "api_version")
        )

    @property
    def name(self) -> str:
        return self.id.value


@dataclass(frozen=True, slots=True)
class ChatMessage:
    role: str
    content: str

    def __post_init__(self) -> None:
        if self.role not in _CHAT_ROLES:
            raise ValueError(f"unsupported chat role: {self.role}")
        if not isinstance(self.content, str):
            raise TypeError("ChatMessage.content must be a string")

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True, slots=True)
class StructuredOutputDefinition:
    """JSON-schema contract the backend must satisfy."""

    name: str
    json_schema: Mapping[str, JSONValue]
    strict: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "name", _validate_non_empty_str(self.name, "name"))

    def to_response_format(self) -> dict[str, object]:
        return {
            "type": "json_schema",
            "json_schema": {
                "name": self.name,
                "strict": self.strict,
                "schema": dict(self.json_schema),
            },
        }


@dataclass(frozen=True, slots=True)
class CompletionRequest:
    """Provider-agnostic chat request."""

    messages: tuple[ChatMessage, ...]
    structured_output: StructuredOutputDefinition | None = None

    def __post_init__(self) -> None:
        if not self.messages:
            raise ValueError("CompletionRequest.messages cannot be empty")

    @classmethod
    def from_pairs(
        cls,
        pairs: Sequence[tuple[str, str]],
        *,
        structured_output: StructuredOutputDefinition | None = None,
    ) -> CompletionRequest:
        return cls(
            messages=tuple(ChatMessage(role=role, content=content) for role, content in pairs),
            structured_output=structured_output,
        )

    def payload_size(self) -> int:
        return sum(len(message.content) for message in self.messages)


@dataclass(frozen=True, slots=True)
class RawCompletion:
    """Normalized provider response before schema decoding."""

    content: str | None
    finish_reason: str | None = None
    model: str | None = None
    request_id: str | None = None

    @property
    def is_truncated(self) -> bool:
        return self.finish_reason == "length"


@runtime_checkable
class ProviderAdapter(Protocol):
    """Uniform interface implemented by every backend adapter."""

    async def complete(
        self, profile: ProviderProfile, request: CompletionRequest
    ) -> RawCompletion: ...

    def supports_structured_output(self, profile: ProviderProfile) -> bool: ...


ProviderFactory: TypeAlias = Callable[[], ProviderAdapter]


# ---------------------------------------------------------------------------
# Error taxonomy
# ---------------------------------------------------------------------------


class ProviderError(RuntimeError):
    """Base normalized provider error with machine-readable fields."""

    def __init__(
        self,
        *,
        provider: str,
        code: str,
        detail: str,
        retryable: bool,
        http_status: int | None = None,
    ) -> None:
        self.provider = _validate_non_empty_str(provider, "provider")
        self.code = _validate_non_empty_str(code, "code")
        self.detail = _normalize_detail(detail)
        self.retryable = bool(retryable)
        self.http_status = http_status
        status = f" (HTTP {http_status})" if http_status is not None else ""
        super().__init__(f"{self.provider}: {self.detail}{status}")


class ProviderUnavailable(ProviderError):
    """Provider SDK or runtime is unavailable."""

    def __init__(self, detail: str, *, provider: str = "provider") -> None:
        super().__init__(provider=provider, code="unavailable", detail=detail, retryable=False)


class AuthError(ProviderError):
    """401/403: credentials rejected."""

    def __init__(
        self, detail: str, *, provider: str = "provider", http_status: int | None = None
    ) -> None:
        super().__init__(
            provider=provider, code="auth", detail=detail, retryable=False, http_status=http_status
        )


class RateLimited(ProviderError):
    """429: rate limited (retryable)."""

    def __init__(
        self, detail: str, *, provider: str = "provider", http_status: int | None = 429
    ) -> None:
        super().__init__(
            provider=provider,
            code="rate_limit",
            detail=detail,
            retryable=True,
            http_status=http_status,
        )


class ServerError(ProviderError):
    """5xx: backend failure (retryable)."""

    def __init__(
        self, detail: str, *, provider: str = "provider", http_status: int | None = None
    ) -> None:
        super().__init__(
            provider=provider,
            code="server",
            detail=detail,
            retryable=True,
            http_status=http_status,
        )


class NetworkError(ProviderError):
    """Connection-level failure or timeout (retryable)."""

    def __init__(self, detail: str, *, provider: str = "provider") -> None:
        super().__init__(provider=provider, code="network", detail=detail, retryable=True)


class SchemaViolation(ProviderError):
    """Response content did not conform to the requested schema."""

    def __init__(self, detail: str, *, provider: str = "provider") -> None:
        super().__init__(
            provider=provider, code="schema_violation", detail=detail, retryable=False
        )


class RequestTooLarge(ProviderError):
    """413: request entity too large."""

    def __init__(
        self, detail: str, *, provider: str = "provider", http_status: int | None = 413
    ) -> None:
        super().__init__(
            provider=provider,
            code="too_large",
            detail=detail,
            retryable=False,
            http_status=http_status,
        )


class InvalidRequest(ProviderError):
    """Any other 4xx: the backend rejected the request shape."""

    def __init__(
        self, detail: str, *, provider: str = "provider", http_status: int | None = None
    ) -> None:
        super().__init__(
            provider=provider,
            code="invalid_request",
            detail=detail,
            retryable=False,
            http_status=http_status,
        )


class RetryExhausted(ProviderError):
    """Every allowed attempt failed with a retryable error."""

    def __init__(self, *, attempts: int, last_error: ProviderError) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            provider=last_error.provider,
            code="retry_exhausted",
            detail=f"gave up after {attempts} attempts: {last_error.detail}",
            retryable=False,
            http_status=last_error.http_status,
        )


RETRYABLE_ERRORS: Final[tuple[type[ProviderError], ...]] = (RateLimited, ServerError, NetworkError)


def is_retryable_error(error: BaseException) -> bool:
    """Only rate limits, server errors and network errors are retried."""

    return isinstance(error, RETRYABLE_ERRORS)


class ProviderRegistry:
    """Registry for provider adapter factories."""

    def __init__(self) -> None:
        self._factories: dict[str, ProviderFactory] = {}

    def register(self, name: str, factory: ProviderFactory, *, overwrite: bool = False) -> None:
        normalized = _validate_non_empty_str(name, "name").lower()
        if normalized in self._factories and not overwrite:
            raise ValueError(f"provider already registered: {normalized}")
        self._factories[normalized] = factory

    def is_registered(self, name: str) -> bool:
        return _validate_non_empty_str(name, "name").lower() in self._factories

    def names(self) -> tuple[str, ...]:
        return tuple(sorted(self._factories))

    def create(self, name: str) -> ProviderAdapter:
        normalized = _validate_non_empty_str(name, "name").lower()
        factory = self._factories.get(normalized)
        if factory is None:
            raise ProviderUnavailable(provider=normalized, detail="provider is not registered")
        adapter = factory()
        if not isinstance(adapter, ProviderAdapter):
            raise TypeError(f"provider factory returned invalid adapter for {normalized}")
        return adapter


def decode_structured_content(completion: RawCompletion, *, provider: str) -> dict[str, object]:
    """Parse message content as a JSON object or raise ``SchemaViolation``."""

    content = completion.content
    if content is None or not content.strip():
        if completion.is_truncated:
            raise SchemaViolation(TRUNCATION_HINT, provider=provider)
        raise SchemaViolation("response contained no message content", provider=provider)
    try:
        parsed = json.loads(content)
    except json.JSONDecodeError as exc:
        if completion.is_truncated:
            raise SchemaViolation(TRUNCATION_HINT, provider=provider) from exc
        raise SchemaViolation(f"response is not valid JSON: {exc.msg}", provider=provider) from exc
    if not isinstance(parsed, dict):
        raise SchemaViolation("response JSON must be an object", provider=provider)
    return parsed


def _normalize_detail(value: object) -> str:
    text = str(value).strip()
    if not text:
        return "unknown error"
    return " ".join(text.split())


__all__ = [
    "DEFAULT_TIMEOUT_SECONDS",
    "RETRYABLE_ERRORS",
    "TRUNCATION_HINT",
    "AuthError",
    "ChatMessage",
    "CompletionRequest",
    "InvalidRequest",
    "JSONValue",
    "NetworkError",
    "ProviderAdapter",
    "ProviderError",
    "ProviderFactory",
    "ProviderProfile",
    "ProviderRegistry",
    "ProviderUnavailable",
    "RateLimited",
    "RawCompletion",
    "RequestTooLarge",
    "RetryExhausted",
    "SchemaViolation",
    "ServerError",
    "StructuredOutputDefinition",
    "decode_structured_content",
    "is_retryable_error",
]
