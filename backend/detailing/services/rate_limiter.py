"""Redis fixed-window rate limiting for auth endpoints."""

import logging
from dataclasses import dataclass
from typing import Dict, Tuple

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from detailing.exceptions import RateLimitError

logger = logging.getLogger(__name__)

# action -> (max attempts, window seconds)
RATE_LIMITS: Dict[str, Tuple[int, int]] = {
    "login": (5, 15 * 60),
    "register": (3, 60 * 60),
    "refresh": (20, 60 * 60),
    "password_reset": (3, 60 * 60),
}


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: int
    retry_after: int = 0


class RateLimiter:
    """Counts attempts per identifier and action in Redis."""

    def __init__(self, redis: aioredis.Redis, prefix: str = "ratelimit"):
        self.redis = redis
        self.prefix = prefix

    def _key(self, action: str, identifier: str) -> str:
        return f"{self.prefix}:{action}:{identifier.lower()}"

    async def hit(self, action: str, identifier: str) -> RateLimitResult:
        """Record an attempt. Redis failures let the request through."""
        limit, window = RATE_LIMITS[action]
        key = self._key(action, identifier)
        try:
            # TTL is set in the same transaction as the first increment
            async with self.redis.pipeline(transaction=True) as pipe:
                pipe.set(key, 0, ex=window, nx=True)
                pipe.incr(key)
                _, count = await pipe.execute()
            if count > limit:
                ttl = await self.redis.ttl(key)
                return RateLimitResult(allowed=False, remaining=0, retry_after=ttl if ttl > 0 else window)
            return RateLimitResult(allowed=True, remaining=limit - count)
        except RedisError as e:
            logger.warning("Rate limiter unavailable, allowing %s for %s: %s", action, identifier, e)
            return RateLimitResult(allowed=True, remaining=limit)

    async def check(self, action: str, identifier: str) -> None:
        """Raise RateLimitError when the identifier is over its limit."""
        result = await self.hit(action, identifier)
        if not result.allowed:
            raise RateLimitError(
                f"Too many {action.replace('_', ' ')} attempts. Try again later.",
                retry_after=result.retry_after,
            )

    async def reset(self, action: str, identifier: str) -> None:
        try:
            await self.redis.delete(self._key(action, identifier))
        except RedisError as e:
            logger.warning("Could not reset rate limit for %s: %s", identifier, e)
