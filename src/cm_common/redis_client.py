"""Redis client factory — used for the settlement scheduler's run guard only.

NOT used for balances, earnings or payout state (those go through PostgreSQL).
"""

import redis.asyncio as aioredis

from config.settings import settings

_redis_pool: aioredis.Redis | None = None


async def get_redis() -> aioredis.Redis:
    """Get or create the Redis connection pool."""
    global _redis_pool  # noqa: PLW0603
    if _redis_pool is None:
        _redis_pool = aioredis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
        )
    return _redis_pool


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _redis_pool  # noqa: PLW0603
    if _redis_pool is not None:
        await _redis_pool.close()
        _redis_pool = None


async def acquire_run_guard(key: str, ttl_seconds: int) -> bool:
    """Claim a named job run across app instances (SET NX EX). False if another holds it."""
    redis = await get_redis()
    return bool(await redis.set(f"runguard:{key}", "1", nx=True, ex=ttl_seconds))


async def release_run_guard(key: str) -> None:
    redis = await get_redis()
    await redis.delete(f"runguard:{key}")
