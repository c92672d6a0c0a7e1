"""
Redis Cache Manager for the optical order pipeline.

Caches read-heavy catalog aggregates (stats, vendor analytics) with graceful
degradation: when Redis is unreachable every call becomes a cache miss.
Uses Redis DB 1 (DB 0 is the Celery broker).
"""

import json
import logging
import os
from functools import wraps
from typing import Any, Callable, Optional

import redis

logger = logging.getLogger(__name__)

# Redis connection singleton
_redis_client: Optional[redis.Redis] = None

# Catalog aggregates change with every processed email; keep them short-lived
DEFAULT_TTL = 300

CATALOG_PREFIX = "catalog"


def cache_enabled() -> bool:
    return os.getenv("CACHE_ENABLED", "true").lower() == "true"


def get_redis_client() -> Optional[redis.Redis]:
    """
    Get Redis client for caching (DB 1).
    Returns None if Redis is unavailable or caching is disabled.
    """
    global _redis_client

    if not cache_enabled():
        return None

    if _redis_client is None:
        try:
            client = redis.Redis(
                host=os.getenv("REDIS_HOST", "localhost"),
                port=int(os.getenv("REDIS_PORT", "6379")),
                db=1,
                decode_responses=True,
                socket_connect_timeout=2,
                socket_timeout=2,
            )
            client.ping()
            _redis_client = client
            logger.info("Redis cache connected (DB 1)")
        except (redis.ConnectionError, redis.TimeoutError) as e:
            logger.warning(f"Redis cache unavailable (graceful degradation): {e}")
            _redis_client = None

    return _redis_client


def cache_get(key: str) -> Optional[Any]:
    """Deserialized value for key, or None on a miss or Redis error."""
    client = get_redis_client()
    if not client:
        return None

    try:
        value = client.get(key)
        if value:
            logger.debug(f"Cache HIT: {key}")
            return json.loads(value)
        logger.debug(f"Cache MISS: {key}")
        return None
    except (redis.RedisError, json.JSONDecodeError) as e:
        logger.warning(f"Cache read error for key '{key}': {e}")
        return None


def cache_set(key: str, value: Any, ttl: int = DEFAULT_TTL) -> bool:
    """
    Set cached value with TTL.

    Returns:
        True if stored, False otherwise
    """
    client = get_redis_client()
    if not client:
        return False

    try:
        client.setex(key, ttl, json.dumps(value, default=str))
        logger.debug(f"Cache SET: {key} (TTL: {ttl}s)")
        return True
    except (redis.RedisError, TypeError, ValueError) as e:
        logger.warning(f"Cache write error for key '{key}': {e}")
        return False


def cache_delete_pattern(pattern: str) -> int:
    """Delete all keys matching a pattern (e.g. "catalog:*"). Returns count."""
    client = get_redis_client()
    if not client:
        return 0

    try:
        keys = list(client.scan_iter(match=pattern))
        if keys:
            deleted = client.delete(*keys)
            logger.debug(f"Cache DELETE pattern '{pattern}': {deleted} keys")
            return deleted
        return 0
    except redis.RedisError as e:
        logger.warning(f"Cache pattern delete error for '{pattern}': {e}")
        return 0


def cache_invalidate_catalog() -> None:
    """Drop cached catalog aggregates after catalog writes."""
    cache_delete_pattern(f"{CATALOG_PREFIX}:*")


def cached(key_prefix: str, ttl: int = DEFAULT_TTL, key_func: Optional[Callable] = None):
    """
    Decorator to cache function results.

    Usage:
        @cached("catalog:stats")
        def get_stats():
            return expensive_query()

        @cached("catalog:vendor", key_func=lambda vendor_id: f"catalog:vendor:{vendor_id}")
        def get_vendor(vendor_id):
            return db.query(vendor_id)

    None results are not cached.
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            cache_key = key_func(*args, **kwargs) if key_func else key_prefix

            cached_value = cache_get(cache_key)
            if cached_value is not None:
                return cached_value

            result = func(*args, **kwargs)
            if result is not None:
                cache_set(cache_key, result, ttl)
            return result

        return wrapper
    return decorator


def get_cache_stats() -> dict:
    client = get_redis_client()
    if not client:
        return {"available": False, "error": "Redis not available"}

    try:
        info = client.info()
        hits = info.get("keyspace_hits", 0)
        misses = info.get("keyspace_misses", 0)
        return {
            "available": True,
            "used_memory": info.get("used_memory_human", "N/A"),
            "total_keys": client.dbsize(),
            "hit_rate": hits / max(1, hits + misses),
        }
    except redis.RedisError as e:
        return {"available": False, "error": str(e)}
