"""
Redis Cache Client
Redis client with connection pooling and JSON values.
"""

import json
import logging
import threading
from typing import Any, Dict, Optional, Set, Union

import redis
from redis.connection import ConnectionPool

from ..config.settings import get_settings

logger = logging.getLogger(__name__)


class RedisCacheError(Exception):
    """Exception raised for Redis cache errors."""

    pass


class RedisCache:
    """
    Redis cache client.

    Values are JSON-encoded. Read and write errors are logged and reported as
    misses/failures so a Redis outage never breaks a sync.
    """

    def __init__(self, url: Optional[str] = None, client: Optional[Any] = None):
        """
        Initialize Redis cache client.

        Args:
            url: Redis URL (defaults to REDIS_URL from settings)
            client: Pre-built client (anything speaking the redis-py API)
        """
        self.client = client
        self.pool = None

        if client is None:
            self.url = url or get_settings().redis_url
            self.pool = ConnectionPool.from_url(
                self.url,
                decode_responses=True,
                max_connections=20,
                socket_timeout=5,
                socket_connect_timeout=5,
            )
            logger.info(f"Redis cache initialized: {self.url.split('@')[-1]}")

    def _get_client(self):
        """
        Get Redis client (lazy initialization).

        Raises:
            RedisCacheError: If connection fails
        """
        if self.client is None:
            try:
                self.client = redis.Redis(connection_pool=self.pool)
                self.client.ping()
                logger.info("Redis connection established")
            except redis.ConnectionError as e:
                self.client = None
                raise RedisCacheError(f"Failed to connect to Redis: {e}")

        return self.client

    def get(self, key: str) -> Optional[Any]:
        """
        Get value from cache.

        Returns:
            Decoded value or None if missing or unreadable
        """
        try:
            data = self._get_client().get(key)
            if data is None:
                return None
            return json.loads(data)
        except (redis.RedisError, RedisCacheError) as e:
            logger.error(f"Redis GET error for key '{key}': {e}")
            return None
        except (TypeError, ValueError) as e:
            logger.error(f"Error decoding cached data for key '{key}': {e}")
            return None

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """
        Set value in cache.

        Args:
            key: Cache key
            value: JSON-serializable value (datetimes are stringified)
            ttl: Time to live in seconds

        Returns:
            True if successful
        """
        try:
            data = json.dumps(value, default=str)
            client = self._get_client()
            if ttl:
                client.setex(key, ttl, data)
            else:
                client.set(key, data)
            return True
        except (redis.RedisError, RedisCacheError) as e:
            logger.error(f"Redis SET error for key '{key}': {e}")
            return False

    def delete(self, key: str) -> bool:
        """Delete a key from cache."""
        try:
            return bool(self._get_client().delete(key))
        except (redis.RedisError, RedisCacheError) as e:
            logger.error(f"Redis DELETE error for key '{key}': {e}")
            return False

    def increment_hash(
        self,
        key: str,
        increments: Dict[str, Union[int, float]],
        fields: Optional[Dict[str, str]] = None,
        ttl: Optional[int] = None,
    ) -> Optional[Dict[str, str]]:
        """
        Atomically increment counters in a hash.

        Integer amounts use HINCRBY and floats HINCRBYFLOAT. Plain `fields`
        are overwritten and the TTL is refreshed in the same MULTI/EXEC block.

        Returns:
            The hash after the update, or None on error
        """
        try:
            pipe = self._get_client().pipeline()
            for field, amount in increments.items():
                if isinstance(amount, float):
                    pipe.hincrbyfloat(key, field, amount)
                else:
                    pipe.hincrby(key, field, amount)
            if fields:
                pipe.hset(key, mapping=fields)
            if ttl:
                pipe.expire(key, ttl)
            pipe.hgetall(key)
            return pipe.execute()[-1]
        except (redis.RedisError, RedisCacheError) as e:
            logger.error(f"Redis HINCRBY error for key '{key}': {e}")
            return None

    def get_hash(self, key: str) -> Optional[Dict[str, str]]:
        """Get all fields of a hash, or None if it is missing or unreadable."""
        try:
            return self._get_client().hgetall(key) or None
        except (redis.RedisError, RedisCacheError) as e:
            logger.error(f"Redis HGETALL error for key '{key}': {e}")
            return None

    def add_to_set(self, key: str, member: Any, ttl: Optional[int] = None) -> Optional[Set[str]]:
        """
        Add a member to a set and refresh its TTL.

        Returns:
            The set's members after the update, or None on error
        """
        try:
            pipe = self._get_client().pipeline()
            pipe.sadd(key, member)
            if ttl:
                pipe.expire(key, ttl)
            pipe.smembers(key)
            return pipe.execute()[-1]
        except (redis.RedisError, RedisCacheError) as e:
            logger.error(f"Redis SADD error for key '{key}': {e}")
            return None

    def get_set(self, key: str) -> Set[str]:
        try:
            return self._get_client().smembers(key) or set()
        except (redis.RedisError, RedisCacheError) as e:
            logger.error(f"Redis SMEMBERS error for key '{key}': {e}")
            return set()

    def ping(self) -> bool:
        """Check that Redis answers."""
        try:
            return bool(self._get_client().ping())
        except (redis.RedisError, RedisCacheError) as e:
            logger.error(f"Redis PING failed: {e}")
            return False


# Global cache instance
_cache: Optional[RedisCache] = None
_cache_lock = threading.Lock()


def get_cache() -> RedisCache:
    """Get global Redis cache (singleton)."""
    global _cache
    if _cache is None:
        with _cache_lock:
            if _cache is None:
                _cache = RedisCache()
    return _cache


def set_cache(cache: Optional[RedisCache]) -> None:
    """Replace the global cache (useful for testing)."""
    global _cache
    _cache = cache
