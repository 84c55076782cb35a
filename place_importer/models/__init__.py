"""Data models for the place importer."""

from place_importer.models.address import (
    CandidateAddress,
    ConfirmedPlace,
    Coordinate,
    GeneratedPlaceRecord,
    InvalidStatusTransition,
    ResolutionStatus,
    dedup_key,
)
from place_importer.models.stage import (
    Completed,
    Extracting,
    Failed,
    Fetching,
    Geocoding,
    Idle,
    PipelineStage,
    Reviewing,
    StageKind,
    can_advance,
)

__all__ = [
    "CandidateAddress",
    "ConfirmedPlace",
    "Coordinate",
    "GeneratedPlaceRecord",
    "InvalidStatusTransition",
    "ResolutionStatus",
    "dedup_key",
    "Completed",
    "Extracting",
    "Failed",
    "Fetching",
    "Geocoding",
    "Idle",
    "PipelineStage",
    "Reviewing",
    "StageKind",
    "can_advance",
]
