"""Geocoding query construction.

A candidate is turned into a structured address (when every component is
known) plus an ordered list of free-text variants, most specific first.
"""

import re
from dataclasses import dataclass, field

from place_importer.core.config import settings
from place_importer.models.address import CandidateAddress

_NOISE_PATTERNS = [
    re.compile(r"(?i)united states"),
    re.compile(r"(?i)phone:?\s*[^,;]+"),
    re.compile(r"(?i)building \d+"),
    re.compile(r"(?i)floors? \d+(?:,\s*\d+)*"),
    re.compile(r"(?i)suites? \d+[A-Za-z-]*"),
    re.compile(r"#\d+"),
]
_ZIP_PLUS4_RE = re.compile(r"(\d{5})-\d{4}")
_ZIP5_RE = re.compile(r"^\d{5}")
_TRAILING_COUNTRY_RE = re.compile(r"(?i),?\s*united states$")

_CSZ_SEARCH_RE = re.compile(r"[A-Za-z]+,?\s*[A-Z]{2}\s*,?\s*\d{5}(?:-\d{4})?")
_CSZ_PARSE_RE = re.compile(r"^\s*([A-Za-z .'-]+),?\s*([A-Z]{2})\s*,?\s*(\d{5}(?:-\d{4})?)?")


@dataclass
class GeocodeInputs:
    """Queries for one candidate, most specific first."""

    structured: dict[str, str] | None = None
    variants: list[str] = field(default_factory=list)


def clean_query(text: str) -> str:
    """Flatten an address to one line and strip geocoder-hostile noise.

    Removes phone labels, suite/floor/building tokens, ``#n`` units and the
    country name, and collapses ZIP+4 to five digits.
    """
    cleaned = text.replace("\n", ", ")
    for pattern in _NOISE_PATTERNS:
        cleaned = pattern.sub("", cleaned)
    cleaned = _ZIP_PLUS4_RE.sub(r"\1", cleaned)
    cleaned = re.sub(r"\s+", " ", cleaned)
    cleaned = re.sub(r"(?:\s*,\s*)+", ", ", cleaned)
    return cleaned.strip(", \t\n")


def _parse_locality(lines: list[str]) -> tuple[str, str, str]:
    """Best-effort ``City, ST[, ZIP]`` parse from lines after the street."""
    for line in lines[1:]:
        if not _CSZ_SEARCH_RE.search(line):
            continue
        match = _CSZ_PARSE_RE.match(line)
        if match:
            return match.group(1).strip(), match.group(2), match.group(3) or ""
    return "", "", ""


def _dedupe(queries: list[str]) -> list[str]:
    seen: set[str] = set()
    unique: list[str] = []
    for query in queries:
        key = query.lower()
        if key in seen:
            continue
        seen.add(key)
        unique.append(query)
    return unique


def build_geocode_inputs(
    candidate: CandidateAddress, default_country: str | None = None
) -> GeocodeInputs:
    """Build the structured address and free-text variants for a candidate."""
    lines = [ln.strip() for ln in candidate.normalized_text.splitlines() if ln.strip()]
    street = lines[0] if lines else ""
    parsed_city, parsed_state, parsed_zip = _parse_locality(lines)

    city = (candidate.city or "").strip() or parsed_city
    state = (candidate.state or "").strip() or parsed_state
    postal_code = (candidate.postal_code or "").strip() or parsed_zip
    zip_match = _ZIP5_RE.match(postal_code)
    zip5 = zip_match.group(0) if zip_match else postal_code

    variants: list[str] = []
    if street and city and state and zip5:
        variants.append(f"{street}, {city}, {state} {zip5}")
    if street and city and state:
        variants.append(f"{street}, {city}, {state}")
    if street and zip5:
        variants.append(f"{street} {zip5}")
    if city and state and zip5:
        variants.append(f"{city}, {state} {zip5}")

    one_line_normalized = clean_query(candidate.normalized_text)
    variants.append(_TRAILING_COUNTRY_RE.sub("", one_line_normalized))
    variants.append(one_line_normalized)
    variants.append(clean_query(candidate.raw_text))

    structured = None
    if street and city and state and postal_code:
        structured = {
            "street": street,
            "city": city,
            "state": state,
            "postalcode": postal_code,
            "country": default_country or settings.GEOCODING_DEFAULT_COUNTRY,
        }

    return GeocodeInputs(
        structured=structured,
        variants=_dedupe([v.strip() for v in variants if v.strip()]),
    )
