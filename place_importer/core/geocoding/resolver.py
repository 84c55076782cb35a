"""Resolve one candidate address to a coordinate.

Resolution order:

1. The structured address on the primary backend, when street, city, state
   and postal code are all known. A throttle here triggers a fixed pause.
2. Each free-text variant on the primary backend with a region bias. The
   first success wins. A throttled variant waits with escalating backoff
   and then tries the secondary backend for the same variant; any other
   failure waits a short fixed delay.

The candidate ends ``resolved`` or ``failed``; failures are local to the
candidate and never raised.
"""

import asyncio
from collections.abc import Awaitable, Callable

from place_importer.core.config import settings
from place_importer.core.geocoding.backends import (
    ArcGISBackend,
    GeocodeBackend,
    NominatimBackend,
)
from place_importer.core.geocoding.cache import GeocodeCache
from place_importer.core.geocoding.constants import US_REGION, Region
from place_importer.core.geocoding.exceptions import (
    GeocodeError,
    GeocodeThrottledError,
)
from place_importer.core.geocoding.queries import GeocodeInputs, build_geocode_inputs
from place_importer.core.logging import get_logger
from place_importer.core.metrics import CANDIDATES_RESOLVED
from place_importer.models.address import CandidateAddress, Coordinate, ResolutionStatus

logger = get_logger().bind(module="geocode_resolver")

RATE_LIMIT_MESSAGE = (
    "Rate limit exceeded - try again in a few minutes or select fewer addresses"
)

Sleep = Callable[[float], Awaitable[None]]
ChangeCallback = Callable[[CandidateAddress], None]
CancelCheck = Callable[[], bool]
LogSink = Callable[[str], None]


class GeocodeResolver:
    """Resolves candidates against a primary and a secondary backend."""

    def __init__(
        self,
        primary: GeocodeBackend,
        secondary: GeocodeBackend | None = None,
        region: Region | None = US_REGION,
        sleep: Sleep = asyncio.sleep,
        throttle_pause: float | None = None,
        backoff_step: float | None = None,
        backoff_cap: float | None = None,
        variant_delay: float | None = None,
    ) -> None:
        self.primary = primary
        self.secondary = secondary
        self.region = region
        self.sleep = sleep
        self.throttle_pause = (
            throttle_pause
            if throttle_pause is not None
            else settings.GEOCODING_THROTTLE_PAUSE
        )
        self.backoff_step = (
            backoff_step if backoff_step is not None else settings.GEOCODING_BACKOFF_STEP
        )
        self.backoff_cap = (
            backoff_cap if backoff_cap is not None else settings.GEOCODING_BACKOFF_CAP
        )
        self.variant_delay = (
            variant_delay
            if variant_delay is not None
            else settings.GEOCODING_VARIANT_DELAY
        )

    @classmethod
    def from_settings(cls) -> "GeocodeResolver":
        """Nominatim primary, ArcGIS secondary, sharing the optional cache."""
        cache = GeocodeCache.from_settings()
        return cls(NominatimBackend(cache=cache), ArcGISBackend(cache=cache))

    def backoff_delay(self, index: int) -> float:
        """Delay after a throttled variant at position ``index``."""
        return min(self.backoff_cap, self.backoff_step * (index + 1))

    async def resolve(
        self,
        candidate: CandidateAddress,
        log: LogSink | None = None,
        on_change: ChangeCallback | None = None,
        is_cancelled: CancelCheck | None = None,
    ) -> None:
        """Geocode ``candidate`` in place.

        Args:
            candidate: The candidate to resolve; its status and coordinate
                are updated
            log: Receives each debug log line for the candidate
            on_change: Called with the candidate after each status change
            is_cancelled: Checked after every awaited call; when it returns
                True the resolution stops with ``asyncio.CancelledError``
        """

        def record(message: str) -> None:
            if log is not None:
                log(message)
            logger.debug(message, candidate_id=candidate.id)

        def check_cancelled() -> None:
            if is_cancelled is not None and is_cancelled():
                raise asyncio.CancelledError()

        def publish() -> None:
            if on_change is not None:
                on_change(candidate)

        candidate.transition(ResolutionStatus.RESOLVING)
        publish()

        inputs = build_geocode_inputs(candidate)
        if inputs.structured:
            s = inputs.structured
            record(
                f"Try structured: {s['street']}, {s['city']}, {s['state']} {s['postalcode']}"
            )
        for query in inputs.variants:
            record(f"Try q: {query}")

        try:
            coordinate = await self._resolve_coordinate(inputs, record, check_cancelled)
        except GeocodeThrottledError:
            candidate.transition(ResolutionStatus.FAILED)
            record(RATE_LIMIT_MESSAGE)
        except GeocodeError as e:
            candidate.transition(ResolutionStatus.FAILED)
            record(f"Failed: {e}")
        except Exception as e:
            logger.warning(
                "Unexpected geocoding error",
                candidate_id=candidate.id,
                error=str(e),
                exc_info=True,
            )
            candidate.transition(ResolutionStatus.FAILED)
            record(f"Failed: {e}")
        else:
            candidate.mark_resolved(coordinate.latitude, coordinate.longitude)
            record(f"Resolved: {coordinate.latitude:.5f}, {coordinate.longitude:.5f}")

        CANDIDATES_RESOLVED.labels(status=candidate.status.value).inc()
        publish()

    async def _resolve_coordinate(
        self,
        inputs: GeocodeInputs,
        record: Callable[[str], None],
        check_cancelled: Callable[[], None],
    ) -> Coordinate:
        last_error: GeocodeError = GeocodeError("No geocodable query")

        if inputs.structured:
            try:
                coordinate = await self.primary.geocode_structured(inputs.structured)
                check_cancelled()
                return coordinate
            except GeocodeThrottledError as e:
                check_cancelled()
                last_error = e
                await self.sleep(self.throttle_pause)
                check_cancelled()
            except GeocodeError as e:
                check_cancelled()
                last_error = e

        for index, query in enumerate(inputs.variants):
            try:
                coordinate = await self.primary.geocode_query(query, self.region)
                check_cancelled()
                return coordinate
            except GeocodeThrottledError as e:
                check_cancelled()
                last_error = e
                await self.sleep(self.backoff_delay(index))
                check_cancelled()
                if self.secondary is not None:
                    try:
                        coordinate = await self.secondary.geocode_query(
                            query, self.region
                        )
                        check_cancelled()
                        return coordinate
                    except GeocodeError as search_error:
                        check_cancelled()
                        record(f"Search fallback failed: {search_error}")
            except GeocodeError as e:
                check_cancelled()
                last_error = e
                await self.sleep(self.variant_delay)
                check_cancelled()

        raise last_error
