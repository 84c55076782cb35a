"""Base classes for address extraction strategies."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from place_importer.models.address import CandidateAddress


class ExtractionStrategy(ABC):
    """One step of the extraction fallback chain.

    Strategies share a single interface and are iterated in priority order
    by :class:`~place_importer.extraction.engine.ExtractionEngine`. A
    strategy may be unavailable (missing model or provider), in which case
    the engine skips it.
    """

    #: Short identifier used in logs and metrics
    name: str = "strategy"
    #: Whether running this strategy uses higher-cost compute
    costly: bool = False

    @property
    def available(self) -> bool:
        """Whether the strategy can run in this environment."""
        return True

    @abstractmethod
    async def extract(self, text: str) -> list[CandidateAddress]:
        """Extract address candidates from text.

        Args:
            text: Raw text or markup

        Returns:
            Candidates found, possibly empty
        """
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}')"


@dataclass
class ExtractionResult:
    """Outcome of one extraction call."""

    candidates: list[CandidateAddress] = field(default_factory=list)
    used_fallback_compute: bool = False
    costly_strategy_ran: bool = False
    strategies_run: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.candidates


def dedupe_candidates(candidates: list[CandidateAddress]) -> list[CandidateAddress]:
    """Drop candidates whose normalized text repeats, keeping the first."""
    seen: set[str] = set()
    unique: list[CandidateAddress] = []
    for candidate in candidates:
        key = candidate.dedup_key
        if key in seen:
            continue
        seen.add(key)
        unique.append(candidate)
    return unique
