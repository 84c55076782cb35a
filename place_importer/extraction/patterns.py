"""Address-shaped text patterns shared by the extraction strategies."""

import re

STREET_TYPES = (
    "street",
    "st",
    "road",
    "rd",
    "avenue",
    "ave",
    "boulevard",
    "blvd",
    "court",
    "ct",
    "parkway",
    "pkwy",
    "drive",
    "dr",
    "place",
    "pl",
    "way",
    "lane",
    "ln",
    "highway",
    "hwy",
    "mall",
    "circle",
    "cir",
    "terrace",
    "ter",
    "plaza",
    "square",
    "sq",
    "trail",
    "trl",
)

_STREET_TYPE_ALT = "|".join(STREET_TYPES)

STREET_TYPE_RE = re.compile(rf"(?i)\b(?:{_STREET_TYPE_ALT})\b\.?")
STREET_NUMBER_RE = re.compile(
    rf"(?i)\b\d{{1,6}}\s+[A-Za-z0-9'.-]+(?:\s+[A-Za-z0-9'.-]+)*?\s+(?:{_STREET_TYPE_ALT})\b"
)
CITY_STATE_RE = re.compile(r"[A-Za-z .'-]+,\s*[A-Z]{2}\b")
ZIP_RE = re.compile(r"\b\d{5}(?:-\d{4})?\b")
ZIP_LINE_RE = re.compile(r"^\d{5}(?:-\d{4})?$")
ZIP_PLUS4_RE = re.compile(r"^(\d{5})-\d{4}$")

CITY_STATE_ZIP_LINE_RE = re.compile(
    r"^\s*([A-Za-z .'()&-]+),\s*([A-Z]{2})(?:\s*,?\s*(\d{5}(?:-\d{4})?))?\s*$"
)
SUITE_OR_FLOOR_RE = re.compile(
    r"(?i)^(?:suite|ste\.?|floor|fl\.?|building|bldg\.?|unit|level|apt\.?|"
    r"apartment|room|rm\.?|#\s*\d+|\d+(?:st|nd|rd|th)\s+floor)\b"
)
HEADER_LINE_RE = re.compile(r"^[A-Za-z .'()&-]+$")

NOISE_LINES = frozenset(
    {
        "united states",
        "usa",
        "view map",
        "get directions",
        "directions",
        "office details",
        "offices in the u.s.",
        "our offices",
        "contact us",
        "search",
        "menu",
        "home",
        "back to top",
        "skip to content",
    }
)
US_COUNTRY_NAMES = frozenset(
    {"united states", "united states of america", "usa", "us", "u.s.", "u.s.a."}
)

NOISE_PREFIX_RE = re.compile(r"(?i)^(?:phone|tel|telephone|fax|email|e-mail)\b\s*[:.]?")


def is_likely_street(line: str) -> bool:
    """Line has a digit and a street-type word."""
    if not re.search(r"\d", line):
        return False
    return STREET_TYPE_RE.search(line) is not None


def is_suite_or_floor(line: str) -> bool:
    """Secondary unit or floor indicator line."""
    return SUITE_OR_FLOOR_RE.search(line.strip()) is not None


def parse_city_state_zip(line: str) -> tuple[str, str, str | None] | None:
    """Parse ``City, ST`` with an optional ZIP on the same line."""
    match = CITY_STATE_ZIP_LINE_RE.match(line)
    if not match:
        return None
    return match.group(1).strip(), match.group(2), match.group(3)


def is_zip_line(line: str) -> bool:
    return ZIP_LINE_RE.match(line.strip()) is not None


def is_noise_line(line: str) -> bool:
    """Boilerplate, navigation and phone-label lines."""
    stripped = line.strip()
    if stripped.lower() in NOISE_LINES:
        return True
    return NOISE_PREFIX_RE.match(stripped) is not None


def is_address_like(text: str) -> bool:
    """Check whether text looks like a mailable address.

    Requires either a street number followed by a street type, or a
    ``City, ST`` pair together with a 5-digit postal code.
    """
    one_line = text.replace("\n", ", ")
    if STREET_NUMBER_RE.search(one_line):
        return True
    return CITY_STATE_RE.search(one_line) is not None and ZIP_RE.search(one_line) is not None


def collapse_zip(postal_code: str) -> str:
    """Collapse ZIP+4 to the 5-digit ZIP."""
    match = ZIP_PLUS4_RE.match(postal_code.strip())
    return match.group(1) if match else postal_code.strip()


def clean_lines(text: str) -> list[str]:
    """Split text into trimmed, non-empty lines without zero-width marks."""
    cleaned = (
        text.replace("\u200b", "")
        .replace("\u200e", "")
        .replace("\xa0", " ")
        .replace("\r", "")
    )
    return [ln.strip() for ln in cleaned.split("\n") if ln.strip()]


def format_normalized(
    street_lines: list[str],
    city: str | None = None,
    state: str | None = None,
    postal_code: str | None = None,
    country: str | None = None,
) -> str:
    """Build the canonical multi-line form of an address.

    Street lines first, then ``City, ST 12345``, then the country. US
    country names are omitted.
    """
    parts = [ln.strip() for ln in street_lines if ln and ln.strip()]
    locality = ", ".join(p.strip() for p in (city, state) if p and p.strip())
    if postal_code and postal_code.strip():
        locality = f"{locality} {postal_code.strip()}".strip()
    if locality:
        parts.append(locality)
    if country and country.strip() and country.strip().lower() not in US_COUNTRY_NAMES:
        parts.append(country.strip())
    return "\n".join(parts)
