"""
Redis Client

Shared async Redis client used by the authentication rate limiter.
Redis is optional: when it is unreachable the limiter falls back to
process-local counters.
"""

import logging

from redis.asyncio import Redis, from_url

from schools_api.core.config import settings

logger = logging.getLogger(__name__)

redis_client: Redis | None = None


async def init_redis() -> Redis:
    """Connect to Redis and verify the connection. Call on startup."""
    global redis_client
    client = from_url(settings.redis_url, encoding="utf-8", decode_responses=True)
    await client.ping()
    redis_client = client
    return client


def get_redis() -> Redis | None:
    """Return the shared client, or None if Redis was never connected."""
    return redis_client


async def close_redis() -> None:
    """Close the shared client."""
    global redis_client
    if redis_client is not None:
        await redis_client.aclose()
        redis_client = None
