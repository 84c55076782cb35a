"""Model configuration shared by LLM providers."""

from dataclasses import dataclass


@dataclass
class LLMConfig:
    """Sampling and prompt settings for one chat model.

    Attributes:
        model_name: Model identifier understood by the provider
        temperature: Sampling temperature (0-1)
        max_tokens: Completion token cap, or None for the provider default
        system_prompt: System message prepended to plain-text prompts
        supports_structured: Whether the model honours JSON-schema output
    """

    model_name: str = "google/gemini-2.0-flash-001"
    temperature: float = 0.7
    max_tokens: int | None = None
    system_prompt: str | None = None
    supports_structured: bool = False

    def __post_init__(self) -> None:
        if not self.model_name:
            raise ValueError("Model name is required")
        if not 0 <= self.temperature <= 1:
            raise ValueError("Temperature must be between 0 and 1")
        if self.max_tokens is not None and self.max_tokens <= 0:
            raise ValueError("Max tokens must be positive")
