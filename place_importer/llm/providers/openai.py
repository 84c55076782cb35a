"""OpenAI-compatible chat provider with JSON-schema structured output.

Requests go to OpenRouter unless ``LLM_BASE_URL`` points elsewhere. Every
failure, whether raised by the client or reported inside the response body,
reaches the caller as ``ValueError``.
"""

import json
import os
import re
from typing import Any, cast

from openai import AsyncOpenAI, OpenAIError
from openai.types.chat.chat_completion import ChatCompletion

from place_importer.core.config import settings
from place_importer.core.logging import get_logger
from place_importer.llm.config import LLMConfig
from place_importer.llm.providers.base import BaseLLMProvider
from place_importer.llm.providers.types import GenerateConfig, LLMInput, LLMResponse

logger = get_logger().bind(module="openai_provider")

_FENCED_JSON = re.compile(r"```(?:json)?\s*\n(.*?)\n```", re.DOTALL)
_USAGE_KEYS = ("prompt_tokens", "completion_tokens", "total_tokens")
_PLACEHOLDER_KEYS = frozenset({"", "sk-", "your_api_key_here"})


def _extract_error_message(error: Any) -> str:
    """Pull a readable message out of an error payload.

    OpenRouter nests the upstream error as a JSON string under
    ``metadata.raw``; other servers use ``message`` or ``error.message``.
    """
    if not isinstance(error, dict):
        return str(error)

    metadata = error.get("metadata")
    raw = metadata.get("raw") if isinstance(metadata, dict) else None
    if raw:
        try:
            return str(json.loads(raw)["error"]["message"])
        except (json.JSONDecodeError, KeyError, TypeError):
            logger.debug("Unreadable OpenRouter error metadata", raw=raw)

    if "message" in error:
        return str(error["message"])
    nested = error.get("error")
    if isinstance(nested, dict) and "message" in nested:
        return str(nested["message"])
    return str(error)


def _extract_json_from_markdown(text: str) -> str:
    """Strip a fenced code block around JSON, if there is one."""
    match = _FENCED_JSON.search(text)
    return match.group(1).strip() if match else text


def _usage_counts(usage: Any) -> dict[str, int]:
    if usage is None:
        return dict.fromkeys(_USAGE_KEYS, 0)
    source = usage if isinstance(usage, dict) else None
    counts = {}
    for key in _USAGE_KEYS:
        value = source.get(key) if source is not None else getattr(usage, key, 0)
        counts[key] = int(value or 0)
    return counts


def _response_format(format: dict[str, Any]) -> dict[str, Any]:
    """Accept a bare JSON schema or an already wrapped ``json_schema`` format."""
    if format.get("type") == "json_schema" and "json_schema" in format:
        spec = format["json_schema"]
    else:
        spec = {"name": "response", "schema": format}
    return {
        "type": "json_schema",
        "json_schema": {
            "name": spec.get("name", "response"),
            "schema": spec["schema"],
            "strict": spec.get("strict", True),
        },
    }


class OpenAIConfig(LLMConfig):
    """Configuration for OpenAI-compatible models; structured output is on."""

    def __init__(
        self,
        model_name: str,
        temperature: float = 0.7,
        max_tokens: int | None = None,
        system_prompt: str | None = None,
    ) -> None:
        super().__init__(
            model_name=model_name,
            temperature=temperature,
            max_tokens=max_tokens,
            system_prompt=system_prompt,
            supports_structured=True,
        )


class OpenAIProvider(BaseLLMProvider[AsyncOpenAI, OpenAIConfig]):
    """OpenAI-compatible chat completion provider (OpenRouter by default)."""

    environment_key = "OPENROUTER_API_KEY"

    def __init__(
        self,
        config: OpenAIConfig,
        api_key: str | None = None,
        base_url: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(
            config,
            api_key=api_key,
            base_url=base_url or settings.LLM_BASE_URL,
            headers=headers
            or {
                "X-Title": "Place Importer",
                "X-Provider-Preferences": json.dumps({"require_parameters": True}),
            },
        )
        self._client: AsyncOpenAI | None = None

    @property
    def api_key(self) -> str | None:
        """Explicit key first, then settings, then the raw environment."""
        if self._api_key is not None:
            return self._api_key
        configured = settings.OPENROUTER_API_KEY
        if configured and configured not in _PLACEHOLDER_KEYS:
            return configured
        return os.environ.get(self.environment_key)

    @property
    def model(self) -> AsyncOpenAI:
        if self._client is None:
            api_key = self.api_key
            if not api_key:
                raise ValueError("API key is required")
            self._client = AsyncOpenAI(
                api_key=api_key,
                base_url=self.base_url,
                default_headers=self.headers,
            )
        return self._client

    def _format_messages(self, prompt: LLMInput) -> list[dict[str, Any]]:
        if not isinstance(prompt, str):
            return prompt
        messages = [{"role": "user", "content": prompt}]
        if self.config.system_prompt:
            messages.insert(0, {"role": "system", "content": self.config.system_prompt})
        return messages

    def _request_params(
        self,
        prompt: LLMInput,
        config: GenerateConfig | None,
        format: dict[str, Any] | None,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {
            "model": self.config.model_name,
            "messages": self._format_messages(prompt),
            "temperature": config.temperature if config else self.config.temperature,
        }
        max_tokens = config.max_tokens if config else self.config.max_tokens
        if max_tokens is not None:
            params["max_tokens"] = max_tokens
        if config and config.stop:
            params["stop"] = config.stop
        if format:
            params["response_format"] = _response_format(format)
        return params

    def _to_response(
        self, result: ChatCompletion, format: dict[str, Any] | None
    ) -> LLMResponse:
        error = getattr(result, "error", None)
        if error:
            raise ValueError(
                f"Error generating completion: {_extract_error_message(error)}"
            )

        usage = _usage_counts(result.usage)
        message = result.choices[0].message if result.choices else None
        content = str(message.content or "") if message else ""
        if not content.strip():
            text = (
                "No response from model" if not result.choices else "Empty response from model"
            )
            return LLMResponse(text=text, model=self.config.model_name, usage=usage)

        content = _extract_json_from_markdown(content).strip()
        parsed = None
        if format:
            try:
                parsed = json.loads(content)
            except json.JSONDecodeError:
                lowered = content.lower()
                if "cannot" not in lowered and "refuse" not in lowered:
                    content = "Invalid JSON response"
        return LLMResponse(
            text=content, model=self.config.model_name, usage=usage, parsed=parsed
        )

    async def generate(
        self,
        prompt: LLMInput,
        config: GenerateConfig | None = None,
        format: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> LLMResponse:
        """Complete a prompt, decoding JSON when a schema is given.

        A schema on ``config.format`` is used when ``format`` is not passed.

        Raises:
            ValueError: If the key is missing, the API call fails or the
                response reports an error
        """
        if format is None and config is not None:
            format = config.format
        params = self._request_params(prompt, config, format)
        logger.debug(
            "Chat completion request",
            base_url=self.base_url,
            model=params["model"],
            structured=format is not None,
        )
        client = self.model
        try:
            result = cast(
                ChatCompletion, await client.chat.completions.create(**params, **kwargs)
            )
        except OpenAIError as e:
            logger.error("Chat completion failed", error=str(e))
            raise ValueError(f"Error generating completion: {e}") from e
        return self._to_response(result, format)
