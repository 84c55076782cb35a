"""LLM providers used for extraction and place generation"""

from place_importer.llm.config import LLMConfig
from place_importer.llm.providers import (
    BaseLLMProvider,
    GenerateConfig,
    LLMResponse,
    OpenAIConfig,
    OpenAIProvider,
    create_provider,
)

__all__ = [
    "LLMConfig",
    "BaseLLMProvider",
    "GenerateConfig",
    "LLMResponse",
    "OpenAIConfig",
    "OpenAIProvider",
    "create_provider",
]
