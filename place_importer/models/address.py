"""Address models shared by extraction, validation, geocoding and review."""

import uuid
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ResolutionStatus(str, Enum):
    """Geocoding status of a candidate."""

    PENDING = "pending"
    RESOLVING = "resolving"
    RESOLVED = "resolved"
    FAILED = "failed"


# failed -> resolving is the retry path
ALLOWED_TRANSITIONS: dict[ResolutionStatus, frozenset[ResolutionStatus]] = {
    ResolutionStatus.PENDING: frozenset({ResolutionStatus.RESOLVING}),
    ResolutionStatus.RESOLVING: frozenset(
        {ResolutionStatus.RESOLVED, ResolutionStatus.FAILED}
    ),
    ResolutionStatus.RESOLVED: frozenset(),
    ResolutionStatus.FAILED: frozenset({ResolutionStatus.RESOLVING}),
}


class InvalidStatusTransition(ValueError):
    """Raised when a candidate status change is not permitted."""


class Coordinate(BaseModel):
    """A WGS84 point."""

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(..., ge=-90, le=90, description="Latitude in degrees")
    longitude: float = Field(..., ge=-180, le=180, description="Longitude in degrees")


def dedup_key(normalized_text: str) -> str:
    """Key used to detect duplicate candidates."""
    return normalized_text.strip().lower()


class CandidateAddress(BaseModel):
    """An extracted, not-yet-confirmed postal address."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    display_name: str | None = None
    raw_text: str
    normalized_text: str = Field(
        ..., description="Canonical multi-line form, used as the dedup key"
    )
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    coordinate: Coordinate | None = None
    status: ResolutionStatus = ResolutionStatus.PENDING

    @property
    def dedup_key(self) -> str:
        """Case-insensitive, trimmed normalized text."""
        return dedup_key(self.normalized_text)

    @property
    def label(self) -> str:
        """Name shown for the candidate: display name or first address line."""
        if self.display_name and self.display_name.strip():
            return self.display_name.strip()
        lines = [ln.strip() for ln in self.normalized_text.splitlines() if ln.strip()]
        return lines[0] if lines else self.raw_text.strip()

    def transition(self, status: ResolutionStatus) -> None:
        """Move to a new status, enforcing the status machine.

        Raises:
            InvalidStatusTransition: If the change is not permitted
        """
        if status not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidStatusTransition(
                f"Cannot move candidate {self.id} from {self.status.value} to {status.value}"
            )
        self.status = status

    def mark_resolved(self, latitude: float, longitude: float) -> None:
        """Record a coordinate and move to resolved."""
        self.transition(ResolutionStatus.RESOLVED)
        self.coordinate = Coordinate(latitude=latitude, longitude=longitude)


class GeneratedPlaceRecord(BaseModel):
    """A place produced by a template or an AI place generator."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    street1: str = Field(..., alias="streetAddress1")
    street2: str | None = Field(default=None, alias="streetAddress2")
    city: str
    state: str | None = None
    postal_code: str | None = Field(default=None, alias="postalCode")
    country: str | None = None


class ConfirmedPlace(BaseModel):
    """A reviewed candidate handed to persistence."""

    model_config = ConfigDict(frozen=True)

    name: str
    latitude: float
    longitude: float
