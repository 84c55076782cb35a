"""Persistence hand-off for confirmed places."""

from abc import ABC, abstractmethod

from place_importer.models.address import ConfirmedPlace


class PlaceSink(ABC):
    """Receives confirmed places for storage."""

    @abstractmethod
    async def save_places(self, places: list[ConfirmedPlace]) -> None:
        """Persist confirmed places.

        Raises:
            Exception: Any failure; the pipeline reports it as a failed run
        """
        raise NotImplementedError


class InMemoryPlaceSink(PlaceSink):
    """Keeps confirmed places in a list."""

    def __init__(self) -> None:
        self.places: list[ConfirmedPlace] = []

    async def save_places(self, places: list[ConfirmedPlace]) -> None:
        self.places.extend(places)
