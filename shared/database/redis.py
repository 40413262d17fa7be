"""
Redis Client
============

Async Redis access for the FormaOS services.

Two uses:
- a best-effort JSON cache for dashboard summaries; a Redis outage costs a
  cache miss, never a failed request
- ``redis_lock``, which keeps the cron sweep single-flight across workers

Version: 0.1.0
"""

import json
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import redis.asyncio as aioredis
from redis.asyncio import Redis
from redis.exceptions import LockError, RedisError

from shared.config import settings
from shared.logging import get_logger


logger = get_logger(__name__)


class RedisClient:
    """Process-wide Redis connection pool with cache helpers."""

    _client: Redis | None = None  # type: ignore[type-arg]

    @classmethod
    def get_client(cls) -> Redis:  # type: ignore[type-arg]
        if cls._client is None:
            cls._client = aioredis.from_url(
                settings.redis.url,
                encoding="utf-8",
                decode_responses=True,
                max_connections=settings.redis.max_connections,
            )
            logger.info("redis_client_created", host=settings.redis.host)
        return cls._client

    @classmethod
    async def close(cls) -> None:
        if cls._client is not None:
            await cls._client.aclose()
            cls._client = None
            logger.info("redis_client_closed")

    @classmethod
    async def health_check(cls) -> dict[str, Any]:
        try:
            start = time.perf_counter()
            pong = await cls.get_client().ping()
            latency_ms = (time.perf_counter() - start) * 1000
        except RedisError as e:
            logger.error("redis_health_check_failed", error=str(e))
            return {"status": "unhealthy", "error": str(e)}

        return {
            "status": "healthy" if pong else "unhealthy",
            "latency_ms": round(latency_ms, 2),
        }

    # =========================================================================
    # JSON cache
    # =========================================================================

    @classmethod
    async def get_cached(cls, key: str) -> Any:
        """
        Read a JSON value.

        Returns:
            The decoded value, or None on a miss, a decode error or an outage
        """
        try:
            raw = await cls.get_client().get(key)
        except RedisError as e:
            logger.warning("cache_read_failed", key=key, error=str(e))
            return None

        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("cache_value_corrupt", key=key)
            return None

    @classmethod
    async def set_cached(cls, key: str, value: Any, ttl_seconds: int) -> bool:
        """Store a JSON-serializable value with a TTL; False if Redis is unavailable."""
        try:
            return bool(await cls.get_client().setex(key, ttl_seconds, json.dumps(value)))
        except RedisError as e:
            logger.warning("cache_write_failed", key=key, error=str(e))
            return False

    @classmethod
    async def delete_cached(cls, key: str) -> bool:
        try:
            return await cls.get_client().delete(key) > 0
        except RedisError as e:
            logger.warning("cache_delete_failed", key=key, error=str(e))
            return False


@asynccontextmanager
async def redis_lock(
    key: str,
    timeout_seconds: int = 10,
    blocking: bool = True,
) -> AsyncGenerator[bool, None]:
    """
    Cross-process lock on ``lock:{key}``.

    Yields whether the lock was acquired. With ``blocking=False`` the attempt
    is made once. The lock expires after ``timeout_seconds`` even if the
    holder dies.

    If Redis is unreachable the body runs unlocked (yields True); callers
    must stay correct without the lock.

    Usage:
        async with redis_lock("automation:scheduled", blocking=False) as acquired:
            if not acquired:
                ...
    """
    lock = RedisClient.get_client().lock(
        f"lock:{key}",
        timeout=timeout_seconds,
        blocking=blocking,
        blocking_timeout=timeout_seconds if blocking else None,
    )
    try:
        acquired = bool(await lock.acquire())
    except RedisError as e:
        logger.warning("redis_lock_unavailable", key=key, error=str(e))
        yield True
        return

    try:
        yield acquired
    finally:
        if acquired:
            try:
                await lock.release()
            except LockError:
                # Expired while held; another process may own it now
                logger.warning("redis_lock_expired", key=key, timeout_seconds=timeout_seconds)
