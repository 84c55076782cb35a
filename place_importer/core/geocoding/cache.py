"""Redis cache of successful geocode lookups."""

import hashlib
import json
import logging

from redis import Redis
from redis.exceptions import RedisError

from place_importer.core.config import settings
from place_importer.models.address import Coordinate

logger = logging.getLogger(__name__)


class GeocodeCache:
    """Stores coordinates keyed by backend and query text.

    Cache failures are logged and treated as misses.
    """

    def __init__(self, client: Redis, ttl: int | None = None) -> None:
        self.client = client
        self.ttl = ttl if ttl is not None else settings.GEOCODING_CACHE_TTL

    @classmethod
    def from_settings(cls) -> "GeocodeCache | None":
        """Connect to ``REDIS_URL``, or return None when caching is off."""
        if not settings.REDIS_URL:
            return None
        try:
            client = Redis.from_url(settings.REDIS_URL, decode_responses=True)
            client.ping()
        except RedisError as e:
            logger.warning(f"Redis connection failed, geocode caching disabled: {e}")
            return None
        logger.info("Redis caching enabled for geocoding")
        return cls(client)

    @staticmethod
    def key(query: str, backend: str) -> str:
        """Generate cache key for a query."""
        query_hash = hashlib.sha256(query.strip().lower().encode()).hexdigest()
        return f"geocode:{backend}:{query_hash}"

    def get(self, query: str, backend: str) -> Coordinate | None:
        try:
            cached = self.client.get(self.key(query, backend))
        except RedisError as e:
            logger.warning(f"Cache retrieval error: {e}")
            return None
        if not cached:
            return None
        try:
            data = json.loads(cached)
            coordinate = Coordinate(latitude=data["lat"], longitude=data["lon"])
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Discarding unreadable cache entry: {e}")
            return None
        logger.debug(f"Cache hit for query: {query[:50]}...")
        return coordinate

    def set(self, query: str, backend: str, coordinate: Coordinate) -> None:
        value = json.dumps({"lat": coordinate.latitude, "lon": coordinate.longitude})
        try:
            self.client.setex(self.key(query, backend), self.ttl, value)
        except RedisError as e:
            logger.warning(f"Cache storage error: {e}")
