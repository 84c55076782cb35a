"""Address extraction strategies and the engine that chains them."""

from place_importer.extraction.base import (
    ExtractionResult,
    ExtractionStrategy,
    dedupe_candidates,
)
from place_importer.extraction.blocks import BlockParsingStrategy
from place_importer.extraction.engine import ExtractionEngine, default_strategies
from place_importer.extraction.generic import PatternDetectorStrategy
from place_importer.extraction.language_model import LanguageModelStrategy
from place_importer.extraction.markup import StructuredMarkupStrategy, html_to_text
from place_importer.extraction.ner import NamedEntityStrategy

__all__ = [
    "BlockParsingStrategy",
    "ExtractionEngine",
    "ExtractionResult",
    "ExtractionStrategy",
    "LanguageModelStrategy",
    "NamedEntityStrategy",
    "PatternDetectorStrategy",
    "StructuredMarkupStrategy",
    "dedupe_candidates",
    "default_strategies",
    "html_to_text",
]
