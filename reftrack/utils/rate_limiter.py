"""
Redis-based rate limiting for the public tracking endpoints and login.

Both limiters fail open: if Redis is unreachable the request is allowed and a
warning is logged. Tracking must never break the embedding site because our
Redis is down.
"""
import logging
import time
from typing import Optional

from reftrack.utils.redis_pool import get_redis

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60
KEY_PREFIX = "reftrack:ratelimit"


async def check_rate_limit(
    key: str,
    limit: int,
    window: int = WINDOW_SECONDS,
) -> tuple[bool, Optional[int]]:
    """
    Sliding-window check for ``key``.

    Returns: (allowed, retry_after_seconds or None)
    """
    try:
        redis = await get_redis()

        redis_key = f"{KEY_PREFIX}:{key}"
        now = time.time()

        pipe = redis.pipeline()
        pipe.zremrangebyscore(redis_key, 0, now - window)
        pipe.zadd(redis_key, {str(now): now})
        pipe.zcard(redis_key)
        pipe.expire(redis_key, window + 1)
        results = await pipe.execute()
        request_count = results[2]

        if request_count > limit:
            logger.warning(
                "Rate limit exceeded: key=%s count=%d limit=%d",
                key, request_count, limit,
            )
            return False, window

        return True, None
    except Exception as e:
        logger.warning("Rate limiter Redis error: %s. Allowing request.", str(e))
        return True, None


async def check_tracking_rate_limit(
    client_ip: str,
    api_key: str,
    limit: int,
) -> tuple[bool, Optional[int]]:
    """Per-IP limit on a given tracking key. Keys are truncated so logs never hold a full key."""
    return await check_rate_limit(f"track:{api_key[:12]}:{client_ip}", limit)


async def check_attempt_limit(
    action: str,
    identifier: str,
    max_attempts: int,
    window_seconds: int,
) -> tuple[bool, Optional[int]]:
    """Fixed-window attempt counter (login and signup)."""
    try:
        redis = await get_redis()
        key = f"{KEY_PREFIX}:{action}:{identifier}"
        count = await redis.incr(key)
        if count == 1:
            await redis.expire(key, window_seconds)
        if count > max_attempts:
            return False, window_seconds
        return True, None
    except Exception as e:
        logger.warning("Attempt limiter unavailable (Redis error): %s", str(e))
        return True, None
