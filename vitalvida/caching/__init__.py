"""
Caching
Redis-backed caches for zone statistics and sync health reports.
"""

from .redis_cache import RedisCache, RedisCacheError, get_cache, set_cache
from .zone_stats import ZoneStatsStore

__all__ = [
    "RedisCache",
    "RedisCacheError",
    "get_cache",
    "set_cache",
    "ZoneStatsStore",
]
