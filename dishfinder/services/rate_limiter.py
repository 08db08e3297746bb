"""
Keyed fixed-window rate limiting for OTP requests.

InMemoryRateLimiter only holds for a single process. Set REDIS_URL to share
the counters across instances; RedisRateLimiter keeps them as TTL'd keys.
"""
import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from dishfinder.config import get_settings

logger = logging.getLogger(__name__)


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_at: float  # epoch seconds


class RateLimiter(ABC):
    """Capability interface: may `key` make another request in this window?"""

    @abstractmethod
    async def check(self, key: str, max_requests: int, window_seconds: int) -> RateLimitResult:
        pass

    @abstractmethod
    async def clear(self, key: str) -> None:
        pass


class InMemoryRateLimiter(RateLimiter):

    def __init__(self, clock=time.time):
        self._clock = clock
        self._entries: Dict[str, Tuple[int, float]] = {}  # key -> (count, reset_at)
        self._lock = asyncio.Lock()

    async def check(self, key: str, max_requests: int, window_seconds: int) -> RateLimitResult:
        async with self._lock:
            now = self._clock()
            count, reset_at = self._entries.get(key, (0, 0.0))

            if now >= reset_at:
                count, reset_at = 0, now + window_seconds

            if count >= max_requests:
                return RateLimitResult(allowed=False, remaining=0, reset_at=reset_at)

            count += 1
            self._entries[key] = (count, reset_at)
            return RateLimitResult(allowed=True, remaining=max_requests - count, reset_at=reset_at)

    async def clear(self, key: str) -> None:
        async with self._lock:
            self._entries.pop(key, None)


class RedisRateLimiter(RateLimiter):

    def __init__(self, client, prefix: str = "ratelimit:", clock=time.time):
        self.client = client
        self.prefix = prefix
        self._clock = clock

    async def check(self, key: str, max_requests: int, window_seconds: int) -> RateLimitResult:
        redis_key = f"{self.prefix}{key}"
        count = await self.client.incr(redis_key)
        if count == 1:
            await self.client.expire(redis_key, window_seconds)

        ttl = await self.client.ttl(redis_key)
        if ttl is None or ttl < 0:
            # key lost its expiry (crash between INCR and EXPIRE)
            await self.client.expire(redis_key, window_seconds)
            ttl = window_seconds

        reset_at = self._clock() + ttl
        if count > max_requests:
            return RateLimitResult(allowed=False, remaining=0, reset_at=reset_at)
        return RateLimitResult(allowed=True, remaining=max_requests - count, reset_at=reset_at)

    async def clear(self, key: str) -> None:
        await self.client.delete(f"{self.prefix}{key}")


def format_reset_time(reset_at: float, now: Optional[float] = None) -> str:
    """Human-readable wait until the window resets"""
    now = time.time() if now is None else now
    minutes_left = int(-(-(reset_at - now) // 60))  # ceil
    if minutes_left <= 0:
        return "now"
    if minutes_left == 1:
        return "1 minute"
    return f"{minutes_left} minutes"


_rate_limiter: Optional[RateLimiter] = None


def get_rate_limiter() -> RateLimiter:
    """Dependency returning the process-wide limiter"""
    global _rate_limiter
    if _rate_limiter is None:
        settings = get_settings()
        if settings.REDIS_URL:
            import redis.asyncio as redis

            _rate_limiter = RedisRateLimiter(redis.from_url(settings.REDIS_URL, decode_responses=True))
            logger.info("Using Redis-backed rate limiter")
        else:
            _rate_limiter = InMemoryRateLimiter()
    return _rate_limiter
