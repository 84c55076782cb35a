"""Named-entity extraction.

Place and organization entities tagged by spaCy anchor a search for nearby
address-shaped line sequences; the entity text becomes the candidate's
display name.
"""

import asyncio
from typing import Any

import spacy

from place_importer.core.config import settings
from place_importer.core.logging import get_logger
from place_importer.extraction.base import ExtractionStrategy, dedupe_candidates
from place_importer.extraction.blocks import parse_address_block
from place_importer.extraction.patterns import (
    clean_lines,
    is_likely_street,
    is_noise_line,
    is_zip_line,
    parse_city_state_zip,
)
from place_importer.models.address import CandidateAddress

logger = get_logger().bind(module="ner_extraction")

ENTITY_LABELS = frozenset({"ORG", "FAC", "GPE", "LOC"})


def load_entity_model(model_name: str) -> Any | None:
    """Load a spaCy pipeline, returning None when it is not installed."""
    try:
        return spacy.load(model_name)
    except OSError as e:
        logger.warning("spaCy model unavailable", model=model_name, error=str(e))
        return None


class NamedEntityStrategy(ExtractionStrategy):
    """Binds tagged place/organization names to nearby addresses."""

    name = "named_entity"

    def __init__(
        self,
        nlp: Any | None = None,
        model_name: str | None = None,
        window: int | None = None,
    ) -> None:
        """Initialize the strategy.

        Args:
            nlp: A loaded spaCy ``Language``; loaded lazily when omitted
            model_name: spaCy model to load when ``nlp`` is omitted
            window: Lines searched before and after each entity
        """
        self._nlp = nlp
        self._model_name = model_name or settings.NER_MODEL
        self._load_attempted = nlp is not None
        self._load_lock = asyncio.Lock()
        self.window = window or settings.NER_WINDOW_LINES

    @property
    def available(self) -> bool:
        """Configured with a model; a model that failed to load is unavailable."""
        if self._load_attempted:
            return self._nlp is not None
        return bool(self._model_name)

    async def load(self) -> Any | None:
        """Load the spaCy model once, off the event loop."""
        async with self._load_lock:
            if not self._load_attempted:
                self._nlp = await asyncio.to_thread(load_entity_model, self._model_name)
                self._load_attempted = True
        return self._nlp

    async def extract(self, text: str) -> list[CandidateAddress]:
        nlp = await self.load()
        if nlp is None:
            return []

        lines = [ln for ln in clean_lines(text) if not is_noise_line(ln)]
        if not lines:
            return []
        joined = "\n".join(lines)
        doc = await asyncio.to_thread(nlp, joined)

        # Character offset at which each line starts
        offsets: list[int] = []
        position = 0
        for line in lines:
            offsets.append(position)
            position += len(line) + 1

        claimed: set[int] = set()
        results: list[CandidateAddress] = []
        for ent in doc.ents:
            if ent.label_ not in ENTITY_LABELS:
                continue
            line_index = self._line_for_offset(offsets, ent.start_char)
            if self._is_address_line(lines[line_index]):
                continue
            block = self._nearest_block(lines, line_index, claimed)
            if block is None:
                continue
            start, candidate = block
            claimed.add(start)
            candidate.display_name = ent.text.strip()
            results.append(candidate)

        return dedupe_candidates(results)

    @staticmethod
    def _line_for_offset(offsets: list[int], offset: int) -> int:
        index = 0
        for i, line_start in enumerate(offsets):
            if line_start > offset:
                break
            index = i
        return index

    @staticmethod
    def _is_address_line(line: str) -> bool:
        return (
            is_likely_street(line)
            or parse_city_state_zip(line) is not None
            or is_zip_line(line)
        )

    def _nearest_block(
        self, lines: list[str], anchor: int, claimed: set[int]
    ) -> tuple[int, CandidateAddress] | None:
        """Find the unclaimed address block closest to ``anchor``.

        Blocks after the entity win ties over blocks before it.
        """
        low = max(0, anchor - self.window)
        high = min(len(lines), anchor + self.window + 1)
        starts = [i for i in range(low, high) if i != anchor and i not in claimed]
        starts.sort(key=lambda i: (abs(i - anchor), i < anchor))
        for start in starts:
            block = parse_address_block(lines, start)
            if block:
                return start, block[0]
        return None
