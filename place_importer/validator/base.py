"""Base class for fail-closed record validators."""

from abc import ABC, abstractmethod
from typing import Generic, TypeVar

RecordType = TypeVar("RecordType")


class BaseValidator(ABC, Generic[RecordType]):
    """Checks one record at a time and explains rejections."""

    @abstractmethod
    def validate(self, record: RecordType) -> str | None:
        """Check a record.

        Returns:
            The reason the record was rejected, or None when it passes
        """

    def accepts(self, record: RecordType) -> bool:
        return self.validate(record) is None
