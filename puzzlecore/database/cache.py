"""Cache manager implementation using Redis."""

import logging
import json
from typing import Any, Optional, Dict
import redis

from ..config import settings

logger = logging.getLogger(__name__)

USER_STATS_PREFIX = "user_stats"
POPULATION_STATS_KEY = "population_stats"


class CacheManager:
    """Redis-backed JSON cache for analysis statistics.

    Every Redis failure is logged and reported as a miss (``None``/``False``),
    so callers fall back to recomputing.
    """

    def __init__(self, redis_url: Optional[str] = None, client: Optional[redis.Redis] = None):
        """Initialize Redis connection."""
        self.redis_url = redis_url or settings.redis_url
        self.redis_client = client or redis.from_url(self.redis_url, decode_responses=False)
        self.default_ttl = settings.user_stats_ttl_seconds

    def set_json(self, key: str, value: Dict[str, Any], ttl: Optional[int] = None) -> bool:
        """Set a JSON-serializable value in the cache."""
        try:
            ttl = ttl or self.default_ttl
            json_value = json.dumps(value, default=str)
            result = self.redis_client.setex(key, ttl, json_value)
            return bool(result)

        except Exception as e:
            logger.error(f"Error setting JSON cache key {key}: {e}")
            return False

    def get_json(self, key: str) -> Optional[Dict[str, Any]]:
        """Get a JSON value from the cache."""
        try:
            json_value = self.redis_client.get(key)

            if json_value is None:
                return None

            if isinstance(json_value, bytes):
                json_value = json_value.decode('utf-8')

            return json.loads(json_value)

        except Exception as e:
            logger.error(f"Error getting JSON cache key {key}: {e}")
            return None

    def delete(self, key: str) -> bool:
        """Delete a key from the cache."""
        try:
            return bool(self.redis_client.delete(key))
        except Exception as e:
            logger.error(f"Error deleting cache key {key}: {e}")
            return False

    def get_ttl(self, key: str) -> int:
        """Remaining time-to-live in seconds; negative when missing or unknown."""
        try:
            return self.redis_client.ttl(key)
        except Exception as e:
            logger.error(f"Error getting TTL for key {key}: {e}")
            return -1

    def cache_user_stats(self, user_id: str, stats: Dict[str, Any], ttl: Optional[int] = None) -> bool:
        """Cache a user's statistics summary."""
        return self.set_json(f"{USER_STATS_PREFIX}:{user_id}", stats, ttl or settings.user_stats_ttl_seconds)

    def get_cached_user_stats(self, user_id: str) -> Optional[Dict[str, Any]]:
        return self.get_json(f"{USER_STATS_PREFIX}:{user_id}")

    def user_stats_ttl(self, user_id: str) -> int:
        return self.get_ttl(f"{USER_STATS_PREFIX}:{user_id}")

    def cache_population_stats(self, stats: Dict[str, Any], ttl: Optional[int] = None) -> bool:
        """Cache the population baseline."""
        return self.set_json(POPULATION_STATS_KEY, stats, ttl or settings.population_stats_ttl_seconds)

    def get_cached_population_stats(self) -> Optional[Dict[str, Any]]:
        return self.get_json(POPULATION_STATS_KEY)

    def health_check(self) -> bool:
        """Check if Redis connection is healthy."""
        try:
            self.redis_client.ping()
            return True
        except Exception as e:
            logger.error(f"Redis health check failed: {e}")
            return False

    def close(self):
        """Close Redis connection."""
        try:
            self.redis_client.close()
        except Exception as e:
            logger.error(f"Error closing Redis connection: {e}")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
