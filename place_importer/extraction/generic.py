"""Rule-based last-resort address detection using ``usaddress``."""

import usaddress

from place_importer.core.logging import get_logger
from place_importer.extraction.base import ExtractionStrategy, dedupe_candidates
from place_importer.extraction.patterns import (
    ZIP_RE,
    clean_lines,
    format_normalized,
    is_likely_street,
    is_noise_line,
)
from place_importer.models.address import CandidateAddress

logger = get_logger().bind(module="generic_extraction")

STREET_LABELS = (
    "AddressNumberPrefix",
    "AddressNumber",
    "AddressNumberSuffix",
    "StreetNamePreModifier",
    "StreetNamePreDirectional",
    "StreetNamePreType",
    "StreetName",
    "StreetNamePostType",
    "StreetNamePostDirectional",
)
UNIT_LABELS = (
    "OccupancyType",
    "OccupancyIdentifier",
    "SubaddressType",
    "SubaddressIdentifier",
)

#: Lines considered after a street line when building a window
MAX_FOLLOWING_LINES = 3


def _join_labels(tags: dict[str, str], labels: tuple[str, ...]) -> str:
    parts = [tags[label].strip(" ,;") for label in labels if tags.get(label)]
    return " ".join(p for p in parts if p)


def tag_address(text: str) -> dict[str, str] | None:
    """Tag one address string, returning None when usaddress cannot."""
    try:
        tags, _address_type = usaddress.tag(text)
    except usaddress.RepeatedLabelError as e:
        logger.debug("usaddress could not tag window", text=text, error=str(e))
        return None
    return dict(tags)


class PatternDetectorStrategy(ExtractionStrategy):
    """Tags windows starting at street-number lines.

    A window yields a candidate when it carries a street plus a city or a
    postal code.
    """

    name = "pattern_detector"

    async def extract(self, text: str) -> list[CandidateAddress]:
        lines = [ln for ln in clean_lines(text) if not is_noise_line(ln)]
        results: list[CandidateAddress] = []
        for i, line in enumerate(lines):
            if not is_likely_street(line):
                continue
            window = self._window(lines, i)
            candidate = self._from_window(window)
            if candidate:
                results.append(candidate)
        return dedupe_candidates(results)

    @staticmethod
    def _window(lines: list[str], start: int) -> list[str]:
        window = [lines[start]]
        if ZIP_RE.search(lines[start]):
            return window
        for line in lines[start + 1 : start + 1 + MAX_FOLLOWING_LINES]:
            if is_likely_street(line):
                break
            window.append(line)
            if ZIP_RE.search(line):
                break
        return window

    @staticmethod
    def _from_window(window: list[str]) -> CandidateAddress | None:
        tags = tag_address(", ".join(window))
        if not tags:
            return None

        street = _join_labels(tags, STREET_LABELS)
        if not tags.get("AddressNumber") or not tags.get("StreetName"):
            return None
        city = tags.get("PlaceName", "").strip(" ,;") or None
        state = tags.get("StateName", "").strip(" ,;") or None
        postal_code = tags.get("ZipCode", "").strip(" ,;") or None
        if not city and not postal_code:
            return None

        street_lines = [street]
        unit = _join_labels(tags, UNIT_LABELS)
        if unit:
            street_lines.append(unit)

        normalized = format_normalized(street_lines, city, state, postal_code)
        return CandidateAddress(
            raw_text="\n".join(window),
            normalized_text=normalized,
            city=city,
            state=state,
            postal_code=postal_code,
        )
