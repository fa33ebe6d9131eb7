"""Redis connection pool.

Redis backs the tenant lookup cache used by TenantMiddleware
(``tenant:lookup:{tenant_id}`` keys, 5 minute TTL) and is probed by the
readiness check.
"""

from __future__ import annotations

import redis.asyncio as aioredis

from src.app.config import get_settings

# ── Module-level Redis pool (lazy init) ─────────────────────────────────────

_redis_pool: aioredis.Redis | None = None

TENANT_CACHE_TTL_SECONDS = 300


def get_redis_pool() -> aioredis.Redis:
    """Get or create the Redis connection pool singleton."""
    global _redis_pool
    if _redis_pool is None:
        settings = get_settings()
        _redis_pool = aioredis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
        )
    return _redis_pool


def tenant_cache_key(tenant_id: str) -> str:
    return f"tenant:lookup:{tenant_id}"


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _redis_pool
    if _redis_pool:
        await _redis_pool.aclose()
        _redis_pool = None
