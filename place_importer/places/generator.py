"""Language-model place generation.

Turns a free-form request such as "state capitol buildings" into a list of
place records, using the LLM provider's JSON-schema structured output.
"""

import json
from dataclasses import dataclass
from typing import Any

from place_importer.core.config import settings
from place_importer.core.logging import get_logger
from place_importer.llm.providers.base import BaseLLMProvider
from place_importer.llm.providers.types import GenerateConfig
from place_importer.models.address import GeneratedPlaceRecord

logger = get_logger().bind(module="place_generator")

MAX_PLACES = 100

_OPTIONAL_STRING = {"type": ["string", "null"]}

PLACES_SCHEMA: dict[str, Any] = {
    "type": "json_schema",
    "json_schema": {
        "name": "generated_places",
        "strict": True,
        "schema": {
            "type": "object",
            "properties": {
                "places": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "name": {"type": "string"},
                            "streetAddress1": {"type": "string"},
                            "streetAddress2": dict(_OPTIONAL_STRING),
                            "city": {"type": "string"},
                            "state": dict(_OPTIONAL_STRING),
                            "postalCode": dict(_OPTIONAL_STRING),
                            "country": dict(_OPTIONAL_STRING),
                        },
                        "required": [
                            "name",
                            "streetAddress1",
                            "streetAddress2",
                            "city",
                            "state",
                            "postalCode",
                            "country",
                        ],
                        "additionalProperties": False,
                    },
                }
            },
            "required": ["places"],
            "additionalProperties": False,
        },
    },
}

GENERATION_PROMPT = """Generate realistic, verifiable places for the user's request.
Return between 5 and {max_count} unique places that best satisfy the request.
Each place must include:
- name: the official place or venue name
- streetAddress1: street number and name (required)
- streetAddress2: secondary unit like Suite/Floor if known, else null
- city: city name
- state: two-letter state code if in the US; otherwise the full region name
- postalCode: 5-digit or ZIP+4 if known
- country: full country name, e.g. "United States"
Rules:
- Prefer well-known or authoritative places consistent with the request
- Ensure addresses are in mailable format and not duplicated
- Do not include coordinates; only postal fields
- If the request is regional (e.g. Austin coffee), keep results in that region

User request:
{request}
"""


class PlaceGenerationError(Exception):
    """Place generation failed or returned an unusable response."""


@dataclass
class GeneratedPlaces:
    """Records produced for one request."""

    records: list[GeneratedPlaceRecord]
    used_fallback_compute: bool


class PlaceGenerator:
    """Generates place records with an LLM provider."""

    def __init__(self, provider: BaseLLMProvider[Any, Any] | None) -> None:
        self.provider = provider

    @property
    def is_supported(self) -> bool:
        return self.provider is not None

    async def generate(
        self, request: str, max_count: int | None = None
    ) -> GeneratedPlaces:
        """Generate places for a free-form request.

        Args:
            request: What the user asked for
            max_count: Upper bound on returned places, clamped to 1..100

        Returns:
            The records and whether the remote (higher-cost) path was used

        Raises:
            PlaceGenerationError: If no provider is configured, the provider
                fails, or the response cannot be decoded
        """
        if self.provider is None:
            raise PlaceGenerationError("No language model provider is configured")
        if not request.strip():
            raise PlaceGenerationError("Request is empty")

        bounded = max(1, min(max_count or settings.PLACE_GENERATION_MAX_COUNT, MAX_PLACES))
        prompt = GENERATION_PROMPT.format(max_count=bounded, request=request.strip())

        try:
            response = await self.provider.generate(
                prompt,
                config=GenerateConfig(temperature=settings.LLM_TEMPERATURE),
                format=PLACES_SCHEMA,
            )
        except ValueError as e:
            raise PlaceGenerationError(str(e)) from e

        payload = response.parsed
        if payload is None:
            try:
                payload = json.loads(response.text)
            except json.JSONDecodeError as e:
                raise PlaceGenerationError("Model returned an invalid response") from e

        items = payload.get("places") if isinstance(payload, dict) else payload
        if not isinstance(items, list):
            raise PlaceGenerationError("Model returned an invalid response")

        records: list[GeneratedPlaceRecord] = []
        for item in items[:bounded]:
            if not isinstance(item, dict):
                continue
            cleaned = {
                key: value.strip() if isinstance(value, str) else value
                for key, value in item.items()
            }
            # Blank optional fields are treated as absent
            for key in ("streetAddress2", "state", "postalCode", "country"):
                if cleaned.get(key) == "":
                    cleaned[key] = None
            try:
                records.append(GeneratedPlaceRecord.model_validate(cleaned))
            except ValueError as e:
                logger.warning("Skipping malformed generated place", error=str(e))

        used_fallback_compute = not self.provider.runs_locally
        logger.info(
            "Generated places",
            count=len(records),
            used_fallback_compute=used_fallback_compute,
        )
        return GeneratedPlaces(records=records, used_fallback_compute=used_fallback_compute)
