"""Observable pipeline state.

All mutations go through :class:`PipelineState`, a single lock-guarded
writer keyed by candidate id. Every write carries the generation token of
the run that issued it; writes from a cancelled or superseded run are
discarded. Observers receive an immutable :class:`PipelineSnapshot` after
every accepted write.
"""

import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from place_importer.core.logging import get_logger
from place_importer.models.address import CandidateAddress
from place_importer.models.stage import Idle, PipelineStage, can_advance

logger = get_logger().bind(module="pipeline_state")


class PipelineStateError(Exception):
    """A write would break the stage ordering of a run."""


@dataclass(frozen=True)
class PipelineSnapshot:
    """Immutable copy of the observable pipeline state."""

    stage: PipelineStage = field(default_factory=Idle)
    candidates: tuple[CandidateAddress, ...] = ()
    used_fallback_compute: bool = False
    debug_logs: Mapping[str, tuple[str, ...]] = field(
        default_factory=lambda: MappingProxyType({})
    )
    generation: int = 0

    def candidate(self, candidate_id: str) -> CandidateAddress | None:
        for candidate in self.candidates:
            if candidate.id == candidate_id:
                return candidate
        return None


Observer = Callable[[PipelineSnapshot], None]


class PipelineState:
    """Serialized writer for stage, candidates, flags and debug logs."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._generation = 0
        self._stage: PipelineStage = Idle()
        self._candidates: dict[str, CandidateAddress] = {}
        self._used_fallback_compute = False
        self._debug_logs: dict[str, list[str]] = {}
        self._observers: list[Observer] = []

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def stage(self) -> PipelineStage:
        return self._stage

    def is_current(self, token: int) -> bool:
        """Whether ``token`` belongs to the active run."""
        return token == self._generation

    def begin_run(self) -> int:
        """Supersede any previous run and clear all state.

        Returns:
            The generation token for the new run
        """
        with self._lock:
            self._generation += 1
            self._clear()
            self._publish()
            return self._generation

    def reset(self) -> int:
        """Return to idle with empty state, invalidating in-flight writers."""
        return self.begin_run()

    def _clear(self) -> None:
        self._stage = Idle()
        self._candidates = {}
        self._used_fallback_compute = False
        self._debug_logs = {}

    def set_stage(self, token: int, stage: PipelineStage) -> bool:
        """Move the run to a new stage.

        Returns:
            False when the token is stale and the write was discarded

        Raises:
            PipelineStateError: If the move would go backwards within a run
        """
        with self._lock:
            if not self.is_current(token):
                return False
            if not can_advance(self._stage, stage):
                raise PipelineStateError(
                    f"Cannot move from {self._stage.kind.value} to {stage.kind.value}"
                )
            self._stage = stage
            self._publish()
            return True

    def set_candidates(self, token: int, candidates: list[CandidateAddress]) -> bool:
        with self._lock:
            if not self.is_current(token):
                return False
            self._candidates = {c.id: c.model_copy(deep=True) for c in candidates}
            self._debug_logs = {
                cid: logs for cid, logs in self._debug_logs.items() if cid in self._candidates
            }
            self._publish()
            return True

    def set_used_fallback_compute(self, token: int, value: bool) -> bool:
        with self._lock:
            if not self.is_current(token):
                return False
            self._used_fallback_compute = value
            self._publish()
            return True

    def update_candidate(self, token: int, candidate: CandidateAddress) -> bool:
        """Replace the stored candidate with the same id.

        Unknown ids are ignored.
        """
        with self._lock:
            if not self.is_current(token) or candidate.id not in self._candidates:
                return False
            self._candidates[candidate.id] = candidate.model_copy(deep=True)
            self._publish()
            return True

    def append_log(self, token: int, candidate_id: str, message: str) -> bool:
        with self._lock:
            if not self.is_current(token) or candidate_id not in self._candidates:
                return False
            self._debug_logs.setdefault(candidate_id, []).append(message)
            self._publish()
            return True

    def candidate(self, candidate_id: str) -> CandidateAddress | None:
        """A private copy of one candidate."""
        with self._lock:
            found = self._candidates.get(candidate_id)
            return found.model_copy(deep=True) if found else None

    def candidates(self) -> list[CandidateAddress]:
        with self._lock:
            return [c.model_copy(deep=True) for c in self._candidates.values()]

    def snapshot(self) -> PipelineSnapshot:
        with self._lock:
            return PipelineSnapshot(
                stage=self._stage,
                candidates=tuple(c.model_copy(deep=True) for c in self._candidates.values()),
                used_fallback_compute=self._used_fallback_compute,
                debug_logs=MappingProxyType(
                    {cid: tuple(logs) for cid, logs in self._debug_logs.items()}
                ),
                generation=self._generation,
            )

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register an observer; it receives the current snapshot at once.

        Returns:
            A function that removes the observer
        """
        with self._lock:
            self._observers.append(observer)
            self._notify(observer, self.snapshot())

        def unsubscribe() -> None:
            with self._lock:
                if observer in self._observers:
                    self._observers.remove(observer)

        return unsubscribe

    def _publish(self) -> None:
        if not self._observers:
            return
        snapshot = self.snapshot()
        for observer in list(self._observers):
            self._notify(observer, snapshot)

    @staticmethod
    def _notify(observer: Observer, snapshot: PipelineSnapshot) -> None:
        try:
            observer(snapshot)
        except Exception as e:
            logger.error("Pipeline observer failed", error=str(e), exc_info=True)
