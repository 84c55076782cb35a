"""Validation of generated place records before they enter the pipeline.

Main Components:
- PlaceRecordValidator: fail-closed completeness checks and conversion to
  candidate addresses
- ValidationReport: accepted candidates plus rejected records with reasons

Usage:
    from place_importer.validator import PlaceRecordValidator

    report = PlaceRecordValidator().validate_batch(records)
"""

from place_importer.validator.base import BaseValidator
from place_importer.validator.place_records import (
    PLACEHOLDER_VALUES,
    PlaceRecordValidator,
    RejectedRecord,
    ValidationReport,
    is_placeholder,
    validate_place_record,
)

__all__ = [
    "BaseValidator",
    "PLACEHOLDER_VALUES",
    "PlaceRecordValidator",
    "RejectedRecord",
    "ValidationReport",
    "is_placeholder",
    "validate_place_record",
]
