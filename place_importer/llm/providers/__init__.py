"""LLM provider implementations."""

from typing import Any

from place_importer.core.config import settings
from place_importer.llm.providers.base import BaseLLMProvider
from place_importer.llm.providers.openai import OpenAIConfig, OpenAIProvider
from place_importer.llm.providers.types import GenerateConfig, LLMResponse


def create_provider(
    provider_name: str | None = None,
    model_name: str | None = None,
) -> BaseLLMProvider[Any, Any] | None:
    """Build the configured provider.

    Returns None when no API key is available, so callers can treat the
    language-model path as unconfigured.

    Raises:
        ValueError: If the provider name is not supported
    """
    provider_name = provider_name or settings.LLM_PROVIDER
    if provider_name != "openai":
        raise ValueError(
            f"Unsupported LLM provider: {provider_name}. Supported providers: openai"
        )

    provider = OpenAIProvider(
        OpenAIConfig(
            model_name=model_name or settings.LLM_MODEL_NAME,
            temperature=settings.LLM_TEMPERATURE,
            max_tokens=settings.LLM_MAX_TOKENS,
        )
    )
    if not provider.api_key:
        return None
    return provider


__all__ = [
    "BaseLLMProvider",
    "GenerateConfig",
    "LLMResponse",
    "OpenAIConfig",
    "OpenAIProvider",
    "create_provider",
]
