"""Request and response types shared by LLM providers."""

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, Field, field_validator

# Plain text or a list of chat messages
LLMInput = str | list[dict[str, Any]]


@dataclass
class GenerateConfig:
    """Per-request sampling settings."""

    temperature: float = 0.7
    max_tokens: int = 4096
    stop: list[str] | None = None
    format: dict[str, Any] | None = None

    def __post_init__(self) -> None:
        if not 0 <= self.temperature <= 1:
            raise ValueError("Temperature must be between 0 and 1")
        if self.max_tokens < 1:
            raise ValueError("Max tokens must be positive")
        if self.stop is not None and not all(self.stop):
            raise ValueError("Stop sequences cannot be empty")


class LLMResponse(BaseModel):
    """One completion, with its decoded JSON payload when a schema was used."""

    text: str = Field(min_length=1, description="Generated text content")
    model: str = Field(min_length=1, description="Model that produced the text")
    usage: dict[str, int] = Field(
        default_factory=dict, description="Token counts reported by the API"
    )
    parsed: Any | None = Field(
        default=None, description="Decoded structured output, if requested"
    )

    @field_validator("text", "model")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if v.isspace():
            raise ValueError("Value cannot be blank")
        return v

    @field_validator("usage", mode="before")
    @classmethod
    def whole_token_counts(cls, v: dict[str, Any] | None) -> dict[str, int]:
        counts: dict[str, int] = {}
        for key, value in (v or {}).items():
            if not isinstance(value, int | float) or value < 0 or value != int(value):
                raise ValueError(f"Invalid token count for {key}: {value!r}")
            counts[key] = int(value)
        return counts

    def __str__(self) -> str:
        return self.text
