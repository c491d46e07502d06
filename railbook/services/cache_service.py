"""
Redis caching service for seat availability.

CACHING STRATEGY
================

What we cache:
  - Per-schedule seat availability (seat id, number, status), JSON-serialized
  - Cache key pattern: "availability:schedule={schedule_id}"

Why:
  - Seat maps are the most frequent read while a train is on sale
  - Serving from Redis avoids a full scan of the schedule's seats per page view

Invalidation strategy:
  - Every ledger mutation (hold, confirm, release, sweep) deletes the key of
    the schedules it touched
  - A short TTL is the safety net for anything that slips through

The cache is advisory only. Holds never read from it: the ledger always
decides against the database, so a stale entry can show a seat as free but
can never sell it twice. Redis being down or disabled just means every read
goes to the database.
"""

import json
from typing import Iterable, Optional

import redis.asyncio as redis
from railbook.core.config import get_settings
from railbook.core.logging import get_logger
from railbook.core.metrics import record_cache_operation, redis_connection_errors

logger = get_logger(__name__)
settings = get_settings()

_redis_client: Optional[redis.Redis] = None


async def get_redis() -> Optional[redis.Redis]:
    """Get or create Redis connection. Returns None if Redis is disabled."""
    global _redis_client

    if not get_settings().REDIS_ENABLED:
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
            redis_connection_errors.inc()
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


def _make_availability_key(schedule_id: int) -> str:
    return f"availability:schedule={schedule_id}"


async def get_cached_availability(schedule_id: int) -> Optional[dict]:
    client = await get_redis()
    if not client:
        return None

    key = _make_availability_key(schedule_id)
    try:
        data = await client.get(key)
        record_cache_operation("get", hit=data is not None)
        if data:
            logger.debug("cache_hit", key=key)
            return json.loads(data)
        logger.debug("cache_miss", key=key)
    except Exception as e:
        logger.error("cache_get_error", key=key, error=str(e))

    return None


async def set_cached_availability(schedule_id: int, data: dict) -> None:
    client = await get_redis()
    if not client:
        return

    key = _make_availability_key(schedule_id)
    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        record_cache_operation("set", hit=True)
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except Exception as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_availability(schedule_ids: Iterable[int]) -> None:
    """Drop cached availability for the given schedules."""
    client = await get_redis()
    if not client:
        return

    keys = [_make_availability_key(schedule_id) for schedule_id in set(schedule_ids)]
    if not keys:
        return
    try:
        deleted = await client.delete(*keys)
        logger.debug("cache_invalidated", keys_deleted=deleted)
    except Exception as e:
        logger.error("cache_invalidation_error", error=str(e))


async def get_cache_stats() -> dict:
    """Get Redis cache statistics for monitoring."""
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
