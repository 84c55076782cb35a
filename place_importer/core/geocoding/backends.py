"""Geocoding backends.

Each backend wraps a geopy geocoder with the geopy ``RateLimiter``, runs the
blocking call in a worker thread and translates provider failures into the
errors in :mod:`place_importer.core.geocoding.exceptions`. Throttle detection
goes through a pluggable classifier so that every backend reports rate
limiting, timeouts and unreachable services as
:class:`GeocodeThrottledError`.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

from geopy.exc import (
    GeocoderQuotaExceeded,
    GeocoderRateLimited,
    GeocoderTimedOut,
    GeocoderUnavailable,
)
from geopy.extra.rate_limiter import RateLimiter
from geopy.geocoders import ArcGIS, Nominatim

from place_importer.core.config import settings
from place_importer.core.geocoding.cache import GeocodeCache
from place_importer.core.geocoding.constants import Region
from place_importer.core.geocoding.exceptions import (
    GeocodeError,
    GeocodeNotFoundError,
    GeocodeThrottledError,
)
from place_importer.core.metrics import GEOCODE_REQUESTS
from place_importer.models.address import Coordinate

logger = logging.getLogger(__name__)

ThrottleClassifier = Callable[[BaseException], bool]


# Rate limits and network-class failures both mean "back off and try the
# secondary source"
THROTTLE_ERRORS = (
    GeocoderRateLimited,
    GeocoderQuotaExceeded,
    GeocoderTimedOut,
    GeocoderUnavailable,
)


def default_is_throttled(error: BaseException) -> bool:
    """Recognize geopy rate-limit and network errors and HTTP 429 responses."""
    if isinstance(error, THROTTLE_ERRORS):
        return True
    message = str(error).lower()
    return "429" in message or "too many requests" in message


class GeocodeBackend(ABC):
    """A geocoding source used by the resolver."""

    name: str = "backend"

    def __init__(
        self,
        cache: GeocodeCache | None = None,
        is_throttled: ThrottleClassifier | None = None,
    ) -> None:
        self.cache = cache
        self._is_throttled = is_throttled or default_is_throttled

    def is_throttled(self, error: BaseException) -> bool:
        """Whether an error means the backend is rate limiting us."""
        return self._is_throttled(error)

    @abstractmethod
    async def geocode_structured(self, components: dict[str, str]) -> Coordinate:
        """Geocode a structured address.

        Args:
            components: ``street``, ``city``, ``state``, ``postalcode`` and
                ``country`` values

        Raises:
            GeocodeThrottledError: If the backend is rate limiting
            GeocodeNotFoundError: If nothing matched
            GeocodeError: For any other failure
        """
        raise NotImplementedError

    @abstractmethod
    async def geocode_query(self, query: str, region: Region | None = None) -> Coordinate:
        """Geocode a free-text query, optionally biased toward a region.

        Raises:
            GeocodeThrottledError: If the backend is rate limiting
            GeocodeNotFoundError: If nothing matched
            GeocodeError: For any other failure
        """
        raise NotImplementedError

    async def _call(
        self, cache_key: str, func: Callable[..., Any], *args: Any, **kwargs: Any
    ) -> Coordinate:
        """Run a blocking geocoder call and translate its outcome."""
        if self.cache:
            cached = await asyncio.to_thread(self.cache.get, cache_key, self.name)
            if cached:
                GEOCODE_REQUESTS.labels(backend=self.name, outcome="cache_hit").inc()
                return cached

        try:
            location = await asyncio.to_thread(func, *args, **kwargs)
        except Exception as e:
            if self.is_throttled(e):
                GEOCODE_REQUESTS.labels(backend=self.name, outcome="throttled").inc()
                logger.warning(f"{self.name} throttled request for '{cache_key[:50]}'")
                raise GeocodeThrottledError(str(e)) from e
            GEOCODE_REQUESTS.labels(backend=self.name, outcome="error").inc()
            logger.warning(f"{self.name} geocoding failed for '{cache_key[:50]}': {e}")
            raise GeocodeError(str(e) or e.__class__.__name__) from e

        if location is None:
            GEOCODE_REQUESTS.labels(backend=self.name, outcome="not_found").inc()
            raise GeocodeNotFoundError(f"No results for '{cache_key}'")

        GEOCODE_REQUESTS.labels(backend=self.name, outcome="success").inc()
        coordinate = Coordinate(latitude=location.latitude, longitude=location.longitude)
        if self.cache:
            await asyncio.to_thread(self.cache.set, cache_key, self.name, coordinate)
        return coordinate

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}')"


class NominatimBackend(GeocodeBackend):
    """OpenStreetMap Nominatim: structured queries and viewbox bias."""

    name = "nominatim"

    def __init__(
        self,
        geocoder: Nominatim | None = None,
        cache: GeocodeCache | None = None,
        is_throttled: ThrottleClassifier | None = None,
        country_codes: list[str] | None = None,
    ) -> None:
        super().__init__(cache=cache, is_throttled=is_throttled)
        self.geocoder = geocoder or Nominatim(
            user_agent=settings.NOMINATIM_USER_AGENT,
            domain=settings.NOMINATIM_DOMAIN,
            timeout=settings.GEOCODING_TIMEOUT,
        )
        self.country_codes = (
            country_codes
            if country_codes is not None
            else settings.GEOCODING_COUNTRY_CODES
        )
        # Retries and backoff belong to the resolver
        self._geocode = RateLimiter(
            self.geocoder.geocode,
            min_delay_seconds=settings.GEOCODING_RATE_LIMIT,
            max_retries=0,
            swallow_exceptions=False,
        )

    async def geocode_structured(self, components: dict[str, str]) -> Coordinate:
        query = {key: value for key, value in components.items() if value}
        cache_key = json.dumps(query, sort_keys=True)
        return await self._call(
            cache_key,
            self._geocode,
            query,
            exactly_one=True,
            country_codes=self.country_codes or None,
        )

    async def geocode_query(self, query: str, region: Region | None = None) -> Coordinate:
        kwargs: dict[str, Any] = {
            "exactly_one": True,
            "country_codes": self.country_codes or None,
        }
        if region is not None:
            kwargs["viewbox"] = list(region.viewbox)
            kwargs["bounded"] = False
        return await self._call(query, self._geocode, query, **kwargs)


class ArcGISBackend(GeocodeBackend):
    """Esri ArcGIS free-text search, used as the secondary source."""

    name = "arcgis"

    def __init__(
        self,
        geocoder: ArcGIS | None = None,
        cache: GeocodeCache | None = None,
        is_throttled: ThrottleClassifier | None = None,
    ) -> None:
        super().__init__(cache=cache, is_throttled=is_throttled)
        self.geocoder = geocoder or ArcGIS(timeout=settings.GEOCODING_TIMEOUT)
        self._geocode = RateLimiter(
            self.geocoder.geocode,
            min_delay_seconds=settings.GEOCODING_RATE_LIMIT,
            max_retries=0,
            swallow_exceptions=False,
        )

    async def geocode_structured(self, components: dict[str, str]) -> Coordinate:
        street = components.get("street", "")
        locality = " ".join(
            part
            for part in (components.get("state", ""), components.get("postalcode", ""))
            if part
        )
        parts = [street, components.get("city", ""), locality, components.get("country", "")]
        return await self.geocode_query(", ".join(p for p in parts if p))

    async def geocode_query(self, query: str, region: Region | None = None) -> Coordinate:
        # ArcGIS has no viewbox parameter; results outside the region are
        # still accepted
        return await self._call(query, self._geocode, query, exactly_one=True)
