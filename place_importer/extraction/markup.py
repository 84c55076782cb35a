"""Structured-markup extraction.

Reads schema.org ``PostalAddress`` objects embedded as JSON-LD in page
markup. Addresses found this way are trusted over every other strategy.
"""

import json
import logging
import re
from typing import Any

from bs4 import BeautifulSoup

from place_importer.extraction.base import ExtractionStrategy, dedupe_candidates
from place_importer.extraction.patterns import (
    format_normalized,
    parse_city_state_zip,
)
from place_importer.models.address import CandidateAddress

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r"<[a-zA-Z!/][^>]*>")
_BLOCK_TAGS = ["script", "style", "noscript", "template"]


def looks_like_markup(text: str) -> bool:
    """Whether the input contains HTML tags."""
    return _TAG_RE.search(text) is not None


def html_to_text(html: str) -> str:
    """Reduce markup to plain text lines.

    Scripts and styles are dropped, every tag boundary becomes a line break
    and entities are decoded.
    """
    if not looks_like_markup(html):
        return html
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup.find_all(_BLOCK_TAGS):
        tag.decompose()
    return soup.get_text("\n")


def _string_value(value: Any) -> str:
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, dict):
        name = value.get("name")
        return name.strip() if isinstance(name, str) else ""
    if isinstance(value, list) and value:
        return _string_value(value[0])
    return ""


def _is_postal_address(item: dict[str, Any]) -> bool:
    item_type = item.get("@type", "")
    if isinstance(item_type, str):
        return item_type.lower() == "postaladdress"
    if isinstance(item_type, list):
        return any(str(t).lower() == "postaladdress" for t in item_type)
    return False


class StructuredMarkupStrategy(ExtractionStrategy):
    """Extracts JSON-LD ``PostalAddress`` objects."""

    name = "structured_markup"

    async def extract(self, text: str) -> list[CandidateAddress]:
        if "ld+json" not in text:
            return []
        soup = BeautifulSoup(text, "html.parser")
        results: list[CandidateAddress] = []
        for script in soup.find_all("script", type="application/ld+json"):
            payload = script.string or script.get_text()
            if not payload or not payload.strip():
                continue
            try:
                data = json.loads(payload)
            except json.JSONDecodeError as e:
                logger.debug(f"Failed to parse JSON-LD block: {e}")
                continue
            results.extend(self._collect(data))
        return dedupe_candidates(results)

    def _collect(self, data: Any, owner_name: str | None = None) -> list[CandidateAddress]:
        """Walk a JSON-LD document collecting postal addresses."""
        found: list[CandidateAddress] = []
        if isinstance(data, list):
            for item in data:
                found.extend(self._collect(item, owner_name))
            return found
        if not isinstance(data, dict):
            return found

        name = _string_value(data.get("name")) or None
        if _is_postal_address(data):
            candidate = self._from_schema(data, name or owner_name)
            if candidate:
                found.append(candidate)
            return found

        address = data.get("address")
        if isinstance(address, str) and address.strip():
            found.append(self._from_string(address, name))
        elif isinstance(address, (dict, list)):
            found.extend(self._collect(address, name))

        for key, value in data.items():
            if key == "address":
                continue
            if isinstance(value, (dict, list)):
                found.extend(self._collect(value, owner_name))
        return found

    def _from_string(self, address: str, name: str | None) -> CandidateAddress:
        """Build a candidate from a one-line ``address`` property."""
        parts = [part.strip() for part in address.split(",") if part.strip()]
        parsed = parse_city_state_zip(", ".join(parts[1:])) if len(parts) > 1 else None
        if parsed:
            city, state, postal_code = parsed
            normalized = format_normalized([parts[0]], city, state, postal_code)
            return CandidateAddress(
                raw_text=address.strip(),
                normalized_text=normalized,
                display_name=name,
                city=city,
                state=state,
                postal_code=postal_code,
            )
        return CandidateAddress(
            raw_text=address.strip(),
            normalized_text="\n".join(parts),
            display_name=name,
        )

    def _from_schema(
        self, item: dict[str, Any], name: str | None
    ) -> CandidateAddress | None:
        street = _string_value(item.get("streetAddress"))
        city = _string_value(item.get("addressLocality"))
        state = _string_value(item.get("addressRegion"))
        postal_code = _string_value(item.get("postalCode"))
        country = _string_value(item.get("addressCountry"))

        street_lines = [ln.strip() for ln in street.splitlines() if ln.strip()]
        normalized = format_normalized(street_lines, city, state, postal_code, country)
        if not normalized:
            return None
        return CandidateAddress(
            raw_text=normalized,
            normalized_text=normalized,
            display_name=name,
            city=city or None,
            state=state or None,
            postal_code=postal_code or None,
        )
