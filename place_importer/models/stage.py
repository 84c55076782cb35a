"""Pipeline stages.

Exactly one stage is active at a time. Stages carry a rank so that
transitions within a run can be checked for monotonicity; ``Failed`` ends a
run from any earlier stage and only a reset leaves it.
"""

from dataclasses import dataclass
from enum import Enum
from typing import ClassVar


class StageKind(str, Enum):
    """Discriminator for pipeline stages."""

    IDLE = "idle"
    FETCHING = "fetching"
    EXTRACTING = "extracting"
    GEOCODING = "geocoding"
    REVIEWING = "reviewing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class PipelineStage:
    """Base class for stages."""

    kind: ClassVar[StageKind]
    rank: ClassVar[int]

    @property
    def is_terminal(self) -> bool:
        """Whether the stage is absorbing until reset."""
        return self.kind in (StageKind.COMPLETED, StageKind.FAILED)


@dataclass(frozen=True)
class Idle(PipelineStage):
    kind: ClassVar[StageKind] = StageKind.IDLE
    rank: ClassVar[int] = 0


@dataclass(frozen=True)
class Fetching(PipelineStage):
    kind: ClassVar[StageKind] = StageKind.FETCHING
    rank: ClassVar[int] = 1


@dataclass(frozen=True)
class Extracting(PipelineStage):
    kind: ClassVar[StageKind] = StageKind.EXTRACTING
    rank: ClassVar[int] = 2

    used_fallback_compute: bool = False


@dataclass(frozen=True)
class Geocoding(PipelineStage):
    kind: ClassVar[StageKind] = StageKind.GEOCODING
    rank: ClassVar[int] = 3

    done: int = 0
    total: int = 0


@dataclass(frozen=True)
class Reviewing(PipelineStage):
    kind: ClassVar[StageKind] = StageKind.REVIEWING
    rank: ClassVar[int] = 4


@dataclass(frozen=True)
class Completed(PipelineStage):
    kind: ClassVar[StageKind] = StageKind.COMPLETED
    rank: ClassVar[int] = 5


@dataclass(frozen=True)
class Failed(PipelineStage):
    kind: ClassVar[StageKind] = StageKind.FAILED
    rank: ClassVar[int] = 6

    message: str = ""


def can_advance(current: PipelineStage, new: PipelineStage) -> bool:
    """Check whether a run may move from ``current`` to ``new``.

    Terminal stages only move back to idle. Otherwise a stage may repeat
    (progress updates) or move to a higher rank.
    """
    if isinstance(new, Idle):
        return True
    if current.is_terminal:
        return False
    return new.rank >= current.rank
