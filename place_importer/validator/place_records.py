"""Validation of generated place records.

Templates and language-model generators produce place records that may be
incomplete or padded with placeholder values. Records are screened here,
fail-closed, before they become geocoding candidates.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from place_importer.core.metrics import PLACE_RECORDS_REJECTED
from place_importer.extraction.patterns import format_normalized
from place_importer.models.address import CandidateAddress, GeneratedPlaceRecord
from place_importer.validator.base import BaseValidator

logger = logging.getLogger(__name__)

PLACEHOLDER_VALUES = frozenset({"n/a", "na", "unknown", "tbd", "none", "null"})

_POSTAL_RE = re.compile(r"^\d{5}(?:-\d{4})?$")
_ALNUM_RE = re.compile(r"[A-Za-z0-9]")


def is_placeholder(value: str) -> bool:
    """Whether a trimmed value is a placeholder token, ignoring case."""
    return value.strip().lower() in PLACEHOLDER_VALUES


@dataclass
class RejectedRecord:
    """A record dropped by validation."""

    name: str
    reason: str


@dataclass
class ValidationReport:
    """Outcome of validating a batch of records."""

    candidates: list[CandidateAddress] = field(default_factory=list)
    rejected: list[RejectedRecord] = field(default_factory=list)


class PlaceRecordValidator(BaseValidator[GeneratedPlaceRecord]):
    """Screens generated place records for completeness."""

    def validate(self, record: GeneratedPlaceRecord) -> str | None:
        """Check one record.

        Returns:
            The rejection reason, or None when the record is valid
        """
        street = record.street1.strip()
        if not street:
            return "missing street address"
        if is_placeholder(street):
            return f"placeholder street address '{street}'"
        if not re.search(r"\d", street):
            return f"street address has no number '{street}'"

        city = record.city.strip()
        if not city:
            return "missing city"
        if is_placeholder(city):
            return f"placeholder city '{city}'"

        state = (record.state or "").strip()
        if state:
            if len(state) < 2:
                return f"state too short '{state}'"
            if is_placeholder(state):
                return f"placeholder state '{state}'"

        postal_code = (record.postal_code or "").strip()
        if postal_code:
            if is_placeholder(postal_code):
                return f"placeholder postal code '{postal_code}'"
            # International codes only need to carry some alphanumeric content
            if not _POSTAL_RE.match(postal_code) and not _ALNUM_RE.search(postal_code):
                return f"invalid postal code '{postal_code}'"

        country = (record.country or "").strip()
        if country and is_placeholder(country):
            return f"placeholder country '{country}'"

        return None

    def to_candidate(self, record: GeneratedPlaceRecord) -> CandidateAddress:
        """Convert a valid record into a candidate address.

        The normalized text comes from :func:`format_normalized`, which drops
        US country names; other countries are kept as the last line.
        """
        street_lines = [record.street1.strip()]
        if record.street2 and record.street2.strip():
            street_lines.append(record.street2.strip())
        city = record.city.strip()
        state = (record.state or "").strip() or None
        postal_code = (record.postal_code or "").strip() or None

        normalized = format_normalized(
            street_lines, city, state, postal_code, record.country
        )
        return CandidateAddress(
            display_name=record.name.strip() or None,
            raw_text=normalized,
            normalized_text=normalized,
            city=city,
            state=state,
            postal_code=postal_code,
        )

    def validate_batch(
        self, records: list[GeneratedPlaceRecord | dict[str, Any]]
    ) -> ValidationReport:
        """Validate records, converting the valid ones to candidates.

        Raw dictionaries are parsed into :class:`GeneratedPlaceRecord`
        first; a record that does not parse is rejected like any other.
        """
        report = ValidationReport()
        for item in records:
            if isinstance(item, GeneratedPlaceRecord):
                record = item
            else:
                try:
                    record = GeneratedPlaceRecord.model_validate(item)
                except ValidationError as e:
                    name = str(item.get("name", "")) if isinstance(item, dict) else ""
                    self._reject(report, name, f"malformed record: {e.error_count()} errors")
                    continue

            reason = self.validate(record)
            if reason:
                self._reject(report, record.name, reason)
                continue
            report.candidates.append(self.to_candidate(record))

        logger.info(
            f"Validated {len(records)} place records: "
            f"{len(report.candidates)} accepted, {len(report.rejected)} rejected"
        )
        return report

    @staticmethod
    def _reject(report: ValidationReport, name: str, reason: str) -> None:
        logger.warning(f"Rejected place record '{name}': {reason}")
        PLACE_RECORDS_REJECTED.inc()
        report.rejected.append(RejectedRecord(name=name, reason=reason))


def validate_place_record(record: GeneratedPlaceRecord) -> str | None:
    """Validate a single record with the default validator."""
    return PlaceRecordValidator().validate(record)
