"""Import pipeline: fetch, extract or validate, geocode, review, confirm.

Usage:
    from place_importer.pipeline import ImportPipeline, InMemoryPlaceSink

    pipeline = ImportPipeline(sink=InMemoryPlaceSink())
    await pipeline.start("https://example.org/locations")
"""

from place_importer.pipeline.coordinator import ImportPipeline
from place_importer.pipeline.fetch import FetchError, PageFetcher
from place_importer.pipeline.sinks import InMemoryPlaceSink, PlaceSink
from place_importer.pipeline.state import (
    PipelineSnapshot,
    PipelineState,
    PipelineStateError,
)

__all__ = [
    "FetchError",
    "ImportPipeline",
    "InMemoryPlaceSink",
    "PageFetcher",
    "PipelineSnapshot",
    "PipelineState",
    "PipelineStateError",
    "PlaceSink",
]
