"""
Redis caching service for catalog listings.

CACHING STRATEGY
================

What we cache:
  - Public book listing responses (paginated, JSON-serialized)
  - Cache key pattern: "books:list:availability={availability}&page={page}&size={size}"

Invalidation strategy:
  - Every borrow, return and admin catalog edit changes availability, so
    each of them deletes all book list keys
  - TTL-based expiry as safety net (5 minutes)

  Keys share the "books:list:" prefix so they can be found with SCAN.

Why NOT cache single books or borrow status:
  - Patrons decide whether to borrow from those reads; a stale copy count
    there is misleading even though the engine re-checks at borrow time

Redis is optional. Every failure is logged and treated as a cache miss.
"""

import json
from typing import Optional

import redis.asyncio as redis
from library_lending.core.config import get_settings
from library_lending.core.logging import get_logger
from library_lending.core.metrics import record_cache_operation

logger = get_logger(__name__)
settings = get_settings()

BOOK_LIST_PREFIX = "books:list:"

_redis_client: Optional[redis.Redis] = None


async def get_redis() -> Optional[redis.Redis]:
    """Get or create Redis connection. Returns None if Redis is disabled or down."""
    global _redis_client

    if not settings.REDIS_ENABLED:
        return None

    if _redis_client is None:
        try:
            _redis_client = redis.from_url(
                settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
            )
            await _redis_client.ping()
            logger.info("redis_connected", url=settings.REDIS_URL)
        except Exception as e:
            logger.error("redis_connection_failed", error=str(e))
            _redis_client = None
            return None

    return _redis_client


async def close_redis() -> None:
    """Close Redis connection on shutdown."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


def _make_book_list_key(availability: str, page: int, page_size: int) -> str:
    return f"{BOOK_LIST_PREFIX}availability={availability}&page={page}&size={page_size}"


async def get_cached_books(availability: str, page: int, page_size: int) -> Optional[dict]:
    """Retrieve a cached book list response."""
    client = await get_redis()
    if not client:
        return None

    key = _make_book_list_key(availability, page, page_size)
    try:
        data = await client.get(key)
        record_cache_operation("get", hit=data is not None)
        if data:
            return json.loads(data)
    except Exception as e:
        logger.error("cache_get_error", key=key, error=str(e))

    return None


async def set_cached_books(availability: str, page: int, page_size: int, data: dict) -> None:
    """Cache a book list response with TTL."""
    client = await get_redis()
    if not client:
        return

    key = _make_book_list_key(availability, page, page_size)
    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        record_cache_operation("set", hit=False)
    except Exception as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_book_cache() -> None:
    """Invalidate all cached book listings."""
    client = await get_redis()
    if not client:
        return

    try:
        deleted = 0
        async for key in client.scan_iter(match=f"{BOOK_LIST_PREFIX}*", count=100):
            await client.delete(key)
            deleted += 1
        logger.debug("cache_invalidated", keys_deleted=deleted)
    except Exception as e:
        logger.error("cache_invalidation_error", error=str(e))


async def get_cache_stats() -> dict:
    """Get Redis cache statistics for the health endpoint."""
    client = await get_redis()
    if not client:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
        hits = info.get("keyspace_hits", 0)
        misses = info.get("keyspace_misses", 0)
        return {
            "status": "connected",
            "hits": hits,
            "misses": misses,
            "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
        }
    except Exception as e:
        return {"status": "error", "error": str(e)}
