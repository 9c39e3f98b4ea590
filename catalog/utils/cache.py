import logging
from typing import Optional

import redis

from catalog.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

# Create Redis client
redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)

PRODUCT_KEY_PREFIX = "product"


class CacheService:
    """
    Redis key/value cache with TTL.

    Used for exchange rate tables and product presentation data.
    Redis failures are logged and treated as a cache miss so callers
    fall back to the source of truth.

    When ``CACHE_PRODUCT_DATA`` is disabled, keys starting with
    ``product`` behave as if they were never stored.
    """

    def __init__(self, client: redis.Redis = None, ttl: int = None, cache_product_data: bool = None):
        self.client = client if client is not None else redis_client
        self.ttl = ttl or settings.CACHE_TTL
        if cache_product_data is None:
            cache_product_data = settings.CACHE_PRODUCT_DATA
        self.cache_product_data = cache_product_data

    def _is_disabled(self, key: str) -> bool:
        return not self.cache_product_data and key.startswith(PRODUCT_KEY_PREFIX)

    def set(self, key: str, value: str, ttl: int = None) -> bool:
        """
        Set a value in cache with TTL.

        Args:
            key: Cache key
            value: Serialized value to store
            ttl: Time to live in seconds (optional, uses default if not provided)

        Returns:
            True if stored, False otherwise
        """
        if self._is_disabled(key):
            return False
        try:
            self.client.set(key, value, ex=ttl or self.ttl)
            return True
        except redis.RedisError as e:
            logger.warning(f"Error saving cache value {key}: {e}")
            return False

    def get(self, key: str) -> Optional[str]:
        """Get a value from cache, None if missing."""
        if self._is_disabled(key):
            return None
        try:
            return self.client.get(key)
        except redis.RedisError as e:
            logger.warning(f"Error reading cache value {key}: {e}")
            return None

    def exists(self, key: str) -> bool:
        if self._is_disabled(key):
            return False
        try:
            return bool(self.client.exists(key))
        except redis.RedisError as e:
            logger.warning(f"Error checking cache value {key}: {e}")
            return False

    def delete(self, key: str) -> bool:
        """
        Delete a value from cache.

        Returns:
            True if the delete was issued, False on error
        """
        if self._is_disabled(key):
            return False
        try:
            self.client.delete(key)
            return True
        except redis.RedisError as e:
            logger.warning(f"Error deleting cache value {key}: {e}")
            return False

    def delete_prefix(self, prefix: str) -> int:
        """
        Delete all keys starting with a prefix.

        Args:
            prefix: Key prefix (e.g., 'product_12_currency_')

        Returns:
            Number of keys deleted
        """
        if self._is_disabled(prefix):
            return 0
        try:
            keys = list(self.client.scan_iter(match=f"{prefix}*"))
            if keys:
                return self.client.delete(*keys)
            return 0
        except redis.RedisError as e:
            logger.warning(f"Error invalidating cache prefix {prefix}: {e}")
            return 0


# Singleton cache service instance
cache_service = CacheService()
