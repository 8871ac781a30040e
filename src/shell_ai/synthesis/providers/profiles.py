"""Build the active provider profile and adapter from a resolved configuration."""

from __future__ import annotations

from shell_ai.config.loader import Configuration
from shell_ai.config.schema import PROVIDER_SPECS, ProviderId
from shell_ai.synthesis.providers.base import (
    ProviderAdapter,
    ProviderProfile,
    ProviderRegistry,
)
from shell_ai.synthesis.providers.openai_adapter import (
    AzureOpenAIAdapter,
    OpenAICompatibleAdapter,
)


def build_profile(configuration: Configuration) -> ProviderProfile:
    provider = configuration.provider
    spec = PROVIDER_SPECS[provider]
    api_base = _optional_str(configuration.provider_value("api_base")) or spec.default_api_base
    if api_base is None:
        raise ValueError(f"{provider.value}.api_base is not configured")
    return ProviderProfile(
        id=provider,
        endpoint=api_base,
        auth_scheme=spec.auth_scheme,
        model=configuration.effective_model,
        temperature=configuration.temperature,
        max_tokens=configuration.effective_max_tokens,
        api_key=_optional_str(configuration.provider_value("api_key")),
        organization=_optional_str(configuration.provider_value("organization")),
        deployment_name=_optional_str(configuration.provider_value("deployment_name")),
        api_version=_optional_str(configuration.provider_value("api_version")),
    )


def default_registry() -> ProviderRegistry:
    registry = ProviderRegistry()
    for name in OpenAICompatibleAdapter.provider_names:
        registry.register(name, OpenAICompatibleAdapter)
    registry.register(ProviderId.AZURE.value, AzureOpenAIAdapter)
    return registry


def create_adapter(
    profile: ProviderProfile,
    *,
    registry: ProviderRegistry | None = None,
) -> ProviderAdapter:
    active_registry = registry if registry is not None else default_registry()
    return active_registry.create(profile.name)


def _optional_str(value: object) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


__all__ = ["build_profile", "create_adapter", "default_registry"]
