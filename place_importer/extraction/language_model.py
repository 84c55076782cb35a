"""Generative-model address extraction.

This is the higher-cost strategy: page text is sent to the configured LLM
provider with a JSON schema that constrains the reply to a list of address
objects.
"""

import json
from typing import Any

from place_importer.core.config import settings
from place_importer.core.logging import get_logger
from place_importer.extraction.base import ExtractionStrategy, dedupe_candidates
from place_importer.extraction.patterns import format_normalized
from place_importer.llm.providers.base import BaseLLMProvider
from place_importer.llm.providers.types import GenerateConfig
from place_importer.models.address import CandidateAddress

logger = get_logger().bind(module="llm_extraction")

_NULLABLE_STRING = {"type": ["string", "null"]}
ADDRESS_FIELDS = (
    "organization",
    "street",
    "suite",
    "city",
    "state",
    "postal_code",
    "country",
)

EXTRACTION_SCHEMA: dict[str, Any] = {
    "type": "json_schema",
    "json_schema": {
        "name": "extracted_addresses",
        "strict": True,
        "schema": {
            "type": "object",
            "properties": {
                "addresses": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            field: dict(_NULLABLE_STRING) for field in ADDRESS_FIELDS
                        },
                        "required": list(ADDRESS_FIELDS),
                        "additionalProperties": False,
                    },
                }
            },
            "required": ["addresses"],
            "additionalProperties": False,
        },
    },
}

EXTRACTION_PROMPT = """Extract every physical postal address from the text below.
Return one entry per distinct address. Use the organization or office name
printed near the address when there is one. Put suite, floor or unit details
in "suite". Use two-letter state codes for US addresses. Use null for any
field that is not present. Do not invent addresses that are not in the text.

Text:
{text}
"""


def _field(item: dict[str, Any], key: str) -> str | None:
    value = item.get(key)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


class LanguageModelStrategy(ExtractionStrategy):
    """Asks an LLM provider for structured address objects."""

    name = "language_model"
    costly = True

    def __init__(
        self,
        provider: BaseLLMProvider[Any, Any] | None,
        max_chars: int | None = None,
    ) -> None:
        self.provider = provider
        self.max_chars = max_chars or settings.LLM_EXTRACTION_MAX_CHARS

    @property
    def available(self) -> bool:
        return self.provider is not None

    async def extract(self, text: str) -> list[CandidateAddress]:
        if self.provider is None or not text.strip():
            return []

        prompt = EXTRACTION_PROMPT.format(text=text[: self.max_chars])
        response = await self.provider.generate(
            prompt,
            config=GenerateConfig(temperature=settings.LLM_TEMPERATURE),
            format=EXTRACTION_SCHEMA,
        )

        payload = response.parsed
        if payload is None:
            try:
                payload = json.loads(response.text)
            except json.JSONDecodeError:
                logger.warning(
                    "Model reply was not JSON", reply=response.text[:200]
                )
                return []

        items = payload.get("addresses", []) if isinstance(payload, dict) else payload
        if not isinstance(items, list):
            return []

        results: list[CandidateAddress] = []
        for item in items:
            if isinstance(item, dict):
                candidate = self._to_candidate(item)
                if candidate:
                    results.append(candidate)
        return dedupe_candidates(results)

    @staticmethod
    def _to_candidate(item: dict[str, Any]) -> CandidateAddress | None:
        street = _field(item, "street")
        if not street:
            return None
        street_lines = [street]
        suite = _field(item, "suite")
        if suite:
            street_lines.append(suite)
        city = _field(item, "city")
        state = _field(item, "state")
        postal_code = _field(item, "postal_code")

        normalized = format_normalized(
            street_lines, city, state, postal_code, _field(item, "country")
        )
        return CandidateAddress(
            display_name=_field(item, "organization"),
            raw_text=normalized,
            normalized_text=normalized,
            city=city,
            state=state,
            postal_code=postal_code,
        )
