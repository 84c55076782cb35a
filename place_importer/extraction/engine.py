"""Extraction engine running the strategy fallback chain."""

from typing import Any

from place_importer.core.config import settings
from place_importer.core.logging import get_logger
from place_importer.core.metrics import CANDIDATES_EXTRACTED
from place_importer.extraction.base import (
    ExtractionResult,
    ExtractionStrategy,
    dedupe_candidates,
)
from place_importer.extraction.blocks import BlockParsingStrategy
from place_importer.extraction.generic import PatternDetectorStrategy
from place_importer.extraction.language_model import LanguageModelStrategy
from place_importer.extraction.markup import StructuredMarkupStrategy, html_to_text
from place_importer.extraction.ner import NamedEntityStrategy
from place_importer.extraction.patterns import is_address_like
from place_importer.llm.providers.base import BaseLLMProvider
from place_importer.models.address import CandidateAddress

logger = get_logger().bind(module="extraction_engine")


def default_strategies(
    provider: BaseLLMProvider[Any, Any] | None = None,
) -> list[ExtractionStrategy]:
    """Build the text strategies that follow structured markup, in order."""
    strategies: list[ExtractionStrategy] = []
    if settings.LLM_EXTRACTION_ENABLED:
        strategies.append(LanguageModelStrategy(provider))
    if settings.NER_ENABLED:
        strategies.append(NamedEntityStrategy())
    strategies.append(BlockParsingStrategy())
    strategies.append(PatternDetectorStrategy())
    return strategies


def _is_address_like(candidate: CandidateAddress) -> bool:
    return is_address_like(candidate.normalized_text) or is_address_like(
        candidate.raw_text
    )


class ExtractionEngine:
    """Runs extraction strategies in priority order.

    Structured markup is tried first on the raw input and short-circuits the
    chain when it finds anything. Otherwise the input is reduced to text and
    every remaining strategy runs; their results are merged, filtered to
    address-like candidates and deduplicated.
    """

    def __init__(
        self,
        strategies: list[ExtractionStrategy] | None = None,
        markup_strategy: ExtractionStrategy | None = None,
        provider: BaseLLMProvider[Any, Any] | None = None,
    ) -> None:
        self.markup_strategy = markup_strategy or StructuredMarkupStrategy()
        self.strategies = (
            strategies if strategies is not None else default_strategies(provider)
        )

    async def extract(
        self, text: str, allow_fallback_compute: bool = True
    ) -> ExtractionResult:
        """Extract deduplicated address candidates.

        Args:
            text: Raw text or markup
            allow_fallback_compute: Whether the costly strategy may run

        Returns:
            The merged result; empty when nothing was found
        """
        result = ExtractionResult()

        markup_found = await self._run(self.markup_strategy, text, result)
        if markup_found:
            result.candidates = dedupe_candidates(markup_found)
            logger.info(
                "Structured markup short-circuited extraction",
                count=len(result.candidates),
            )
            return result

        plain = html_to_text(text)
        merged: list[CandidateAddress] = []
        for strategy in self.strategies:
            if strategy.costly and not allow_fallback_compute:
                logger.debug("Skipping costly strategy", strategy=strategy.name)
                continue
            if not strategy.available:
                logger.debug("Strategy unavailable", strategy=strategy.name)
                continue
            if strategy.costly:
                result.costly_strategy_ran = True
            merged.extend(await self._run(strategy, plain, result))

        filtered = [c for c in merged if _is_address_like(c)]
        result.candidates = dedupe_candidates(filtered)
        result.used_fallback_compute = result.costly_strategy_ran or (
            result.is_empty and allow_fallback_compute
        )
        logger.info(
            "Extraction finished",
            count=len(result.candidates),
            strategies=result.strategies_run,
            used_fallback_compute=result.used_fallback_compute,
        )
        return result

    async def _run(
        self, strategy: ExtractionStrategy, text: str, result: ExtractionResult
    ) -> list[CandidateAddress]:
        """Run one strategy, absorbing its failures."""
        result.strategies_run.append(strategy.name)
        try:
            found = await strategy.extract(text)
        except Exception as e:
            logger.warning(
                "Extraction strategy failed", strategy=strategy.name, error=str(e)
            )
            return []
        CANDIDATES_EXTRACTED.labels(strategy=strategy.name).inc(len(found))
        logger.debug("Strategy finished", strategy=strategy.name, count=len(found))
        return found
