"""
Rate Limiting Module

Sliding-window rate limiting for the authentication endpoints, backed by
Redis sorted sets with an in-memory fallback when Redis is unavailable.

SECURITY: login, code verification and code resend are limited per client IP
so a 6-digit code cannot be brute-forced within its validity window and the
resend endpoint cannot be used for email bombing.
"""

import logging
import time
from collections.abc import Callable
from functools import wraps
from typing import Any

from fastapi import HTTPException, Request, status

from schools_api.core.redis import get_redis

logger = logging.getLogger(__name__)

# In-memory fallback storage: {key: [timestamp, ...]}
_memory_store: dict[str, list[float]] = {}


class RateLimitExceeded(HTTPException):
    """Raised when a client exceeds the allowed request rate."""

    def __init__(self, limit: int, window_seconds: int):
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={
                "error": "RATE_LIMIT_EXCEEDED",
                "message": f"Too many requests. Maximum {limit} requests per {window_seconds} seconds.",
                "retry_after_seconds": window_seconds,
            },
            headers={"Retry-After": str(window_seconds)},
        )


async def _check_rate_limit_redis(client, key: str, limit: int, window_seconds: int) -> bool:
    """Sliding window check using a Redis sorted set."""
    now = time.time()

    pipe = client.pipeline()
    pipe.zremrangebyscore(key, 0, now - window_seconds)
    pipe.zcard(key)
    pipe.zadd(key, {f"{now}": now})
    pipe.expire(key, window_seconds)
    results = await pipe.execute()

    return results[1] < limit


def _check_rate_limit_memory(key: str, limit: int, window_seconds: int) -> bool:
    """
    Sliding window check using process-local storage.

    Only limits per worker process; used when Redis is down.
    """
    now = time.time()
    window_start = now - window_seconds

    hits = [ts for ts in _memory_store.get(key, []) if ts > window_start]
    if len(hits) >= limit:
        _memory_store[key] = hits
        return False

    hits.append(now)
    _memory_store[key] = hits
    return True


async def check_rate_limit(key: str, limit: int, window_seconds: int) -> bool:
    """
    Check whether a request under ``key`` is within its limit.

    Returns:
        True if the request is allowed, False if the limit is exceeded
    """
    client = get_redis()

    if client is not None:
        try:
            return await _check_rate_limit_redis(client, key, limit, window_seconds)
        except Exception as e:
            logger.warning(f"Redis rate limit check failed, using memory: {e}")

    return _check_rate_limit_memory(key, limit, window_seconds)


def reset_rate_limits() -> None:
    """Clear the in-memory counters."""
    _memory_store.clear()


def client_ip_key(request: Request) -> str:
    """Default rate limit key: client IP + endpoint path."""
    client_ip = request.client.host if request.client else "unknown"
    return f"rate_limit:{client_ip}:{request.url.path}"


def rate_limit(
    limit: int | Callable[[], int] = 10,
    window_seconds: int | Callable[[], int] = 60,
    key_func: Callable[[Request], str] = client_ip_key,
):
    """
    Rate limiting decorator for FastAPI endpoints.

    The decorated endpoint must accept a ``request: Request`` parameter.
    ``limit`` and ``window_seconds`` may be callables so they are read from
    settings at request time.

    Usage:
        @router.post("/login")
        @rate_limit(limit=10, window_seconds=60)
        async def login(request: Request, ...):
            ...

    Raises:
        RateLimitExceeded: When the limit is exceeded (HTTP 429)
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            request: Request | None = kwargs.get("request")
            if request is None:
                request = next((arg for arg in args if isinstance(arg, Request)), None)

            if request is None:
                logger.warning(f"Rate limit on {func.__name__} couldn't find the Request object")
                return await func(*args, **kwargs)

            max_requests = limit() if callable(limit) else limit
            window = window_seconds() if callable(window_seconds) else window_seconds
            key = key_func(request)

            if not await check_rate_limit(key, max_requests, window):
                logger.warning(f"Rate limit exceeded for {key}: {max_requests}/{window}s")
                raise RateLimitExceeded(max_requests, window)

            return await func(*args, **kwargs)

        return wrapper

    return decorator


__all__ = [
    "RateLimitExceeded",
    "check_rate_limit",
    "client_ip_key",
    "rate_limit",
    "reset_rate_limits",
]
