"""
shell-ai - OpenAI-compatible chat-completions adapters.

File: src/shell_ai/synthesis/providers/openai_adapter.py
Last updated: 2026-10-19

Purpose
- Shape chat-completion requests for OpenAI, Groq, Ollama and Mistral (which
  share the OpenAI wire contract) and for Azure OpenAI deployments.

What should be included in this file
- Lazy ``openai`` SDK client construction with injected-client support.
- Request body assembly including the ``json_schema`` response format.
- Response normalization and SDK exception mapping onto the error taxonomy.

Functional requirements
- ``max_tokens`` is sent only when configured.
- SDK-level retries are disabled; the retry controller owns retries.

Non-functional requirements
- Keys are passed to the SDK only; they are never logged.
"""

from __future__ import annotations

import asyncio
import importlib
import logging
from collections.abc import Callable, Mapping, Sequence
from typing import Final, Protocol, cast
from urllib.parse import parse_qsl, urlsplit

from shell_ai.config.schema import AuthScheme, ProviderId
from shell_ai.synthesis.providers.base import (
    AuthError,
    CompletionRequest,
    InvalidRequest,
    NetworkError,
    ProviderError,
    ProviderProfile,
    ProviderUnavailable,
    RateLimited,
    RawCompletion,
    RequestTooLarge,
    SchemaViolation,
    ServerError,
)

logger = logging.getLogger(__name__)

OLLAMA_PLACEHOLDER_KEY: Final[str] = "ollama"
_CHAT_COMPLETIONS_SUFFIX: Final[str] = "/chat/completions"


class _ChatCompletionsAPI(Protocol):
    async def create(self, **kwargs: object) -> object: ...


class _ChatNamespace(Protocol):
    completions: _ChatCompletionsAPI


class ChatClient(Protocol):
    chat: _ChatNamespace


ClientFactory = Callable[[ProviderProfile], ChatClient]


def chat_base_url(endpoint: str) -> str:
    """Return the SDK ``base_url`` for an ``api_base`` (the SDK appends ``/chat/completions``)."""

    base = endpoint.strip().rstrip("/")
    if _CHAT_COMPLETIONS_SUFFIX in base:
        return base.partition(_CHAT_COMPLETIONS_SUFFIX)[0]
    if base.endswith("/v1"):
        return base
    return f"{base}/v1"


def chat_default_query(endpoint: str) -> dict[str, str]:
    """Query parameters carried by a complete chat-completions URL."""

    base = endpoint.strip()
    if _CHAT_COMPLETIONS_SUFFIX not in base:
        return {}
    return dict(parse_qsl(urlsplit(base).query))


class OpenAICompatibleAdapter:
    """Chat-completions adapter for every backend speaking the OpenAI contract."""

    provider_names: tuple[str, ...] = (
        ProviderId.OPENAI.value,
        ProviderId.GROQ.value,
        ProviderId.OLLAMA.value,
        ProviderId.MISTRAL.value,
    )

    def __init__(self, *, client_factory: ClientFactory | None = None) -> None:
        self._client_factory = client_factory
        self._clients: dict[tuple[str, str, str | None], ChatClient] = {}

    def supports_structured_output(self, profile: ProviderProfile) -> bool:
        _ = profile
        return True

    async def complete(self, profile: ProviderProfile, request: CompletionRequest) -> RawCompletion:
        payload = self.build_payload(profile, request)
        client = self._ensure_client(profile)
        logger.debug(
            "sending chat completion to %s (model=%s, messages=%d, chars=%d)",
            profile.name,
            payload["model"],
            len(request.messages),
            request.payload_size(),
        )
        try:
            raw = await client.chat.completions.create(**payload)
        except ProviderError:
            raise
        except Exception as exc:  # noqa: BLE001 - SDK boundary normalization.
            raise map_exception(exc, provider=profile.name) from exc
        return normalize_response(raw, provider=profile.name)

    def build_payload(self, profile: ProviderProfile, request: CompletionRequest) -> dict[str, object]:
        payload: dict[str, object] = {
            "model": self._request_model(profile),
            "messages": [message.to_dict() for message in request.messages],
            "temperature": profile.temperature,
        }
        if request.structured_output is not None and self.supports_structured_output(profile):
            payload["response_format"] = request.structured_output.to_response_format()
        if profile.max_tokens is not None:
            payload["max_tokens"] = profile.max_tokens
        return payload

    def _request_model(self, profile: ProviderProfile) -> str:
        return profile.model

    def _ensure_client(self, profile: ProviderProfile) -> ChatClient:
        cache_key = (profile.name, profile.endpoint, profile.deployment_name)
        client = self._clients.get(cache_key)
        if client is not None:
            return client
        factory = self._client_factory or self._create_default_client
        client = factory(profile)
        self._clients[cache_key] = client
        return client

    def _create_default_client(self, profile: ProviderProfile) -> ChatClient:
        async_openai = _load_sdk_class("AsyncOpenAI", provider=profile.name)
        init_kwargs: dict[str, object] = {
            "api_key": _api_key_for(profile),
            "base_url": chat_base_url(profile.endpoint),
            "timeout": profile.timeout_seconds,
            "max_retries": 0,
        }
        default_query = chat_default_query(profile.endpoint)
        if default_query:
            init_kwargs["default_query"] = default_query
        if profile.organization is not None and profile.id is ProviderId.OPENAI:
            init_kwargs["organization"] = profile.organization
        return cast("ChatClient", async_openai(**init_kwargs))


class AzureOpenAIAdapter(OpenAICompatibleAdapter):
    """Azure OpenAI deployments: ``api-key`` header, deployment path, ``api-version`` query."""

    provider_names: tuple[str, ...] = (ProviderId.AZURE.value,)

    def _request_model(self, profile: ProviderProfile) -> str:
        return profile.deployment_name or profile.model

    def _create_default_client(self, profile: ProviderProfile) -> ChatClient:
        if profile.deployment_name is None:
            raise InvalidRequest("azure requires deployment_name", provider=profile.name)
        if profile.api_version is None:
            raise InvalidRequest("azure requires api_version", provider=profile.name)
        async_azure = _load_sdk_class("AsyncAzureOpenAI", provider=profile.name)
        return cast(
            "ChatClient",
            async_azure(
                api_key=_api_key_for(profile),
                azure_endpoint=profile.endpoint.rstrip("/"),
                azure_deployment=profile.deployment_name,
                api_version=profile.api_version,
                timeout=profile.timeout_seconds,
                max_retries=0,
            ),
        )


def _load_sdk_class(name: str, *, provider: str) -> Callable[..., object]:
    try:
        openai_module = importlib.import_module("openai")
    except ImportError as exc:
        raise ProviderUnavailable(provider=provider, detail="openai SDK is not installed") from exc
    sdk_class = getattr(openai_module, name, None)
    if sdk_class is None:
        raise ProviderUnavailable(provider=provider, detail=f"openai SDK does not expose {name}")
    return cast("Callable[..., object]", sdk_class)


def _api_key_for(profile: ProviderProfile) -> str:
    if profile.api_key:
        return profile.api_key
    if profile.auth_scheme is AuthScheme.NONE:
        return OLLAMA_PLACEHOLDER_KEY
    raise AuthError(f"missing API key for {profile.name}", provider=profile.name)


def normalize_response(raw: object, *, provider: str) -> RawCompletion:
    """Extract ``choices[0].message.content`` plus metadata from an SDK response."""

    choices = _read_sequence(raw, "choices")
    if not choices:
        raise SchemaViolation("response contained no choices", provider=provider)
    first = choices[0]
    message = _read_value(first, "message")
    refusal = _read_str(message, "refusal")
    if refusal is not None:
        raise SchemaViolation(f"model refused the request: {refusal}", provider=provider)
    content = _read_value(message, "content")
    if content is not None and not isinstance(content, str):
        raise SchemaViolation("message content must be a string", provider=provider)
    return RawCompletion(
        content=content,
        finish_reason=_read_str(first, "finish_reason"),
        model=_read_str(raw, "model"),
        request_id=_read_str(raw, "id"),
    )


def map_exception(exc: Exception, *, provider: str) -> ProviderError:
    """Classify an SDK or transport exception into the provider error taxonomy."""

    if isinstance(exc, ProviderError):
        return exc

    status_code = _read_status_code(exc)
    class_name = exc.__class__.__name__.lower()
    detail = _exception_detail(exc)

    if status_code in {401, 403} or "authentication" in class_name or "permissiondenied" in class_name:
        return AuthError(detail, provider=provider, http_status=status_code)

    if status_code == 429 or "ratelimit" in class_name:
        return RateLimited(detail, provider=provider, http_status=status_code)

    if status_code == 413:
        return RequestTooLarge(detail, provider=provider, http_status=status_code)

    if status_code is not None and status_code >= 500:
        return ServerError(detail, provider=provider, http_status=status_code)

    if status_code is not None and 400 <= status_code < 500:
        return InvalidRequest(detail, provider=provider, http_status=status_code)

    if (
        isinstance(exc, (asyncio.TimeoutError, TimeoutError, ConnectionError))
        or "timeout" in class_name
        or "connection" in class_name
    ):
        return NetworkError(detail, provider=provider)

    if "internalserver" in class_name or "serviceunavailable" in class_name:
        return ServerError(detail, provider=provider, http_status=status_code)

    return ProviderError(provider=provider, code="unexpected", detail=detail, retryable=False)


def _exception_detail(exc: BaseException) -> str:
    text = str(exc).strip()
    if text:
        return " ".join(text.split())
    return exc.__class__.__name__


def _read_status_code(exc: BaseException) -> int | None:
    for key in ("status_code", "status", "http_status"):
        value = getattr(exc, key, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    response = getattr(exc, "response", None)
    if response is not None:
        nested = getattr(response, "status_code", None)
        if isinstance(nested, int):
            return nested
    return None


def _read_value(value: object, key: str) -> object | None:
    if value is None:
        return None
    if isinstance(value, Mapping):
        return cast("object | None", value.get(key))
    return cast("object | None", getattr(value, key, None))


def _read_sequence(value: object, key: str) -> tuple[object, ...]:
    candidate = _read_value(value, key)
    if isinstance(candidate, Sequence) and not isinstance(candidate, (str, bytes, bytearray)):
        return tuple(candidate)
    return ()


def _read_str(value: object, key: str) -> str | None:
    candidate = _read_value(value, key)
    if isinstance(candidate, str) and candidate.strip():
        return candidate
    return None


__all__ = [
    "OLLAMA_PLACEHOLDER_KEY",
    "AzureOpenAIAdapter",
    "ChatClient",
    "ClientFactory",
    "OpenAICompatibleAdapter",
    "chat_base_url",
    "chat_default_query",
    "map_exception",
    "normalize_response",
]
