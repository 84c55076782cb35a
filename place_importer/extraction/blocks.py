"""Heuristic block parsing for office-directory style pages.

Office listings usually repeat the same block shape::

    Birmingham Office
    420 North 20th Street
    Suite 2400
    Birmingham, AL
    35203-3289

i.e. a header line, a street line, an optional suite/floor line and a
``City, ST`` line with the ZIP either on the same line or the next one.
"""

from place_importer.extraction.base import ExtractionStrategy, dedupe_candidates
from place_importer.extraction.patterns import (
    HEADER_LINE_RE,
    clean_lines,
    format_normalized,
    is_likely_street,
    is_noise_line,
    is_suite_or_floor,
    is_zip_line,
    parse_city_state_zip,
)
from place_importer.models.address import CandidateAddress


def parse_address_block(
    lines: list[str], start: int
) -> tuple[CandidateAddress, int] | None:
    """Parse one address block whose street line is ``lines[start]``.

    Args:
        lines: Cleaned, non-empty lines
        start: Index of the street line

    Returns:
        The candidate (without display name) and the index after the block,
        or None when no city/state line follows
    """
    if start >= len(lines) or not is_likely_street(lines[start]):
        return None

    address_lines = [lines[start]]
    j = start + 1
    if j < len(lines) and is_suite_or_floor(lines[j]):
        address_lines.append(lines[j])
        j += 1

    if j >= len(lines):
        return None
    parsed = parse_city_state_zip(lines[j])
    if not parsed:
        return None
    city, state, postal_code = parsed
    raw_lines = address_lines + [lines[j]]
    j += 1
    if postal_code is None and j < len(lines) and is_zip_line(lines[j]):
        postal_code = lines[j].strip()
        raw_lines.append(lines[j])
        j += 1

    normalized = format_normalized(address_lines, city, state, postal_code)
    candidate = CandidateAddress(
        raw_text="\n".join(raw_lines),
        normalized_text=normalized,
        city=city,
        state=state,
        postal_code=postal_code,
    )
    return candidate, j


class BlockParsingStrategy(ExtractionStrategy):
    """Finds header/street/suite/city-state-zip blocks line by line."""

    name = "block_parsing"

    async def extract(self, text: str) -> list[CandidateAddress]:
        lines = [ln for ln in clean_lines(text) if not is_noise_line(ln)]

        results: list[CandidateAddress] = []
        i = 0
        while i < len(lines) - 1:
            header = lines[i]
            is_header = HEADER_LINE_RE.match(header) is not None and not is_likely_street(
                header
            )
            if is_header:
                block = parse_address_block(lines, i + 1)
                if block:
                    candidate, next_index = block
                    candidate.display_name = header
                    candidate.raw_text = f"{header}\n{candidate.raw_text}"
                    results.append(candidate)
                    i = next_index
                    continue
            i += 1

        return dedupe_candidates(results)
