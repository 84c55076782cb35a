"""Geocoding for candidate addresses.

This package provides:
- Geocoding backends (Nominatim primary, ArcGIS secondary)
- Query-variant construction
- The resolver with retry, backoff and throttle handling
- An optional Redis cache of successful lookups
"""

from place_importer.core.geocoding.backends import (
    ArcGISBackend,
    GeocodeBackend,
    NominatimBackend,
    default_is_throttled,
)
from place_importer.core.geocoding.cache import GeocodeCache
from place_importer.core.geocoding.constants import US_CENTER, US_REGION, Region
from place_importer.core.geocoding.exceptions import (
    GeocodeError,
    GeocodeNotFoundError,
    GeocodeThrottledError,
)
from place_importer.core.geocoding.queries import (
    GeocodeInputs,
    build_geocode_inputs,
    clean_query,
)
from place_importer.core.geocoding.resolver import RATE_LIMIT_MESSAGE, GeocodeResolver

__all__ = [
    "ArcGISBackend",
    "GeocodeBackend",
    "GeocodeCache",
    "GeocodeError",
    "GeocodeInputs",
    "GeocodeNotFoundError",
    "GeocodeResolver",
    "GeocodeThrottledError",
    "NominatimBackend",
    "RATE_LIMIT_MESSAGE",
    "Region",
    "US_CENTER",
    "US_REGION",
    "build_geocode_inputs",
    "clean_query",
    "default_is_throttled",
]
