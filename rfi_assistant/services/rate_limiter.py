# =============================================================================
# Rate Limiter — Redis-Based Per-IP Fixed Window
# =============================================================================
#
# Limits POST /api/chat to rate_limit_max_requests per client IP within
# each rate_limit_window_ms window.
#
# Each window has its own counter key:
#   ratelimit:chat:{ip}:{window_index}
# INCR bumps it and PEXPIRE lets Redis delete it once the window is over.
# Both commands go through one pipeline (a single round trip).
#
# DESIGN DECISION: Graceful degradation. If Redis is unavailable,
# rate limiting is bypassed (log a warning, allow the request).
# A Redis outage should not take the chat endpoint down with it.
#
# Uses Redis db 2 by default.
# =============================================================================

from __future__ import annotations

import logging
import math
import time

from rfi_assistant.config import settings

logger = logging.getLogger(__name__)

# Lazy Redis connection
_redis_client = None


class RateLimitExceeded(Exception):
    """The client used up its request budget for the current window."""

    def __init__(self, limit: int, retry_after: int) -> None:
        super().__init__(
            f"Rate limit exceeded. Limit: {limit} requests per "
            f"{settings.rate_limit_window_ms // 1000} seconds."
        )
        self.limit = limit
        self.retry_after = retry_after


def _get_rate_limit_redis():
    """Lazily create and cache the async Redis client for rate limiting."""
    global _redis_client
    if _redis_client is None:
        import redis.asyncio as aioredis
        _redis_client = aioredis.from_url(
            settings.rate_limit_redis_url,
            decode_responses=True,
            socket_connect_timeout=0.5,
        )
    return _redis_client


async def check_rate_limit(client_ip: str | None) -> None:
    """
    Count this request against the caller's fixed window.

    Raises:
        RateLimitExceeded: the window's budget is used up; retry_after is
            the number of seconds until the window resets.

    No-op when:
    - the client address is unknown
    - Redis is unavailable (graceful degradation)
    """
    if not client_ip:
        return

    limit = settings.rate_limit_max_requests
    window_ms = settings.rate_limit_window_ms
    now_ms = int(time.time() * 1000)
    window_index = now_ms // window_ms
    redis_key = f"ratelimit:chat:{client_ip}:{window_index}"

    try:
        r = _get_rate_limit_redis()
        pipe = r.pipeline()
        pipe.incr(redis_key)
        pipe.pexpire(redis_key, window_ms)
        results = await pipe.execute()
    except Exception as e:
        logger.warning(
            "Rate limiter unavailable (Redis error): %s. "
            "Allowing request through.",
            e,
        )
        return

    current_count = int(results[0])
    if current_count > limit:
        window_end_ms = (window_index + 1) * window_ms
        retry_after = max(math.ceil((window_end_ms - now_ms) / 1000), 1)
        logger.info(
            "Rate limit hit for %s (%d/%d), retry in %ds",
            client_ip, current_count, limit, retry_after,
        )
        raise RateLimitExceeded(limit=limit, retry_after=retry_after)
