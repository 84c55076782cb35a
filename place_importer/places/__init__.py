"""Place sources producing generated place records."""

from place_importer.places.generator import (
    GeneratedPlaces,
    PlaceGenerationError,
    PlaceGenerator,
)
from place_importer.places.templates import (
    MapTemplate,
    TemplateLoader,
    TemplateLoaderError,
)

__all__ = [
    "GeneratedPlaces",
    "MapTemplate",
    "PlaceGenerationError",
    "PlaceGenerator",
    "TemplateLoader",
    "TemplateLoaderError",
]
