"""Provider adapters and the shared provider error taxonomy."""

from shell_ai.synthesis.providers.base import (
    AuthError,
    ChatMessage,
    CompletionRequest,
    InvalidRequest,
    NetworkError,
    ProviderAdapter,
    ProviderError,
    ProviderProfile,
    ProviderRegistry,
    ProviderUnavailable,
    RateLimited,
    RawCompletion,
    RequestTooLarge,
    RetryExhausted,
    SchemaViolation,
    ServerError,
    StructuredOutputDefinition,
    decode_structured_content,
    is_retryable_error,
)
from shell_ai.synthesis.providers.openai_adapter import (
    AzureOpenAIAdapter,
    OpenAICompatibleAdapter,
)
from shell_ai.synthesis.providers.profiles import (
    build_profile,
    create_adapter,
    default_registry,
)

__all__ = [
    "AuthError",
    "AzureOpenAIAdapter",
    "ChatMessage",
    "CompletionRequest",
    "InvalidRequest",
    "NetworkError",
    "OpenAICompatibleAdapter",
    "ProviderAdapter",
    "ProviderError",
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
    "build_profile",
    "create_adapter",
    "decode_structured_content",
    "default_registry",
    "is_retryable_error",
]
