"""
Request rate limiting
速率限制 - Redis 有序集合滑动窗口，Redis 不可用时退回进程内窗口
"""

import time
import logging
from typing import Deque, Dict, Any, Optional
from collections import defaultdict, deque

import redis.asyncio as redis

from app.core.config import settings
from app.core.redis_client import RedisManager, redis_manager

logger = logging.getLogger(__name__)

# Idle identifiers are pruned from the in-process windows this often (seconds)
LOCAL_PRUNE_INTERVAL = 300


def rate_limit_key(identifier: str) -> str:
    return f"rate_limit:{identifier}"


class RateLimiter:
    """Sliding-window limiter; `limit` requests per `window` seconds per identifier"""

    def __init__(self, redis_source: Optional[RedisManager] = None):
        self.redis = redis_source or redis_manager
        self.windows: Dict[str, Deque[float]] = defaultdict(deque)
        self.last_prune = time.time()

    async def is_rate_limited(
        self,
        identifier: str,
        limit: Optional[int] = None,
        window: Optional[int] = None,
    ) -> bool:
        limit = limit or settings.RATE_LIMIT_REQUESTS
        window = window or settings.RATE_LIMIT_WINDOW
        now = time.time()

        if self.redis.usable:
            try:
                return await self._redis_window(identifier, limit, window, now)
            except (RuntimeError, redis.RedisError) as e:
                if isinstance(e, redis.RedisError):
                    self.redis.mark_failed(e)
                logger.debug(f"[RATE_LIMIT] Redis window unavailable, using local window: {e}")
        return self._local_window(identifier, limit, window, now)

    async def _redis_window(self, identifier: str, limit: int, window: int, now: float) -> bool:
        client = await self.redis.get_client()
        key = rate_limit_key(identifier)

        async with client.pipeline(transaction=True) as pipe:
            pipe.zremrangebyscore(key, 0, now - window)
            pipe.zcard(key)
            _, used = await pipe.execute()

        if used >= limit:
            logger.warning(f"[RATE_LIMIT] {identifier} exceeded {limit} requests/{window}s")
            return True

        async with client.pipeline(transaction=True) as pipe:
            pipe.zadd(key, {f"{now:.6f}": now})
            pipe.expire(key, window)
            await pipe.execute()
        return False

    def _local_window(self, identifier: str, limit: int, window: int, now: float) -> bool:
        if now - self.last_prune > LOCAL_PRUNE_INTERVAL:
            self._prune(now, window)

        stamps = self.windows[identifier]
        while stamps and stamps[0] <= now - window:
            stamps.popleft()

        if len(stamps) >= limit:
            logger.warning(f"[RATE_LIMIT] {identifier} exceeded {limit} requests/{window}s (local)")
            return True

        stamps.append(now)
        return False

    def _prune(self, now: float, window: int) -> None:
        for identifier in list(self.windows):
            stamps = self.windows[identifier]
            while stamps and stamps[0] <= now - window:
                stamps.popleft()
            if not stamps:
                del self.windows[identifier]
        self.last_prune = now

    def reset(self) -> None:
        self.windows.clear()

    def status(self, identifier: str) -> Dict[str, Any]:
        """Remaining quota in the local window, reported on 429 responses"""
        limit, window = settings.RATE_LIMIT_REQUESTS, settings.RATE_LIMIT_WINDOW
        cutoff = time.time() - window
        used = sum(1 for stamp in self.windows.get(identifier, ()) if stamp > cutoff)
        return {
            "limit": limit,
            "remaining": max(0, limit - used),
            "window": window,
        }


# Global rate limiter instance
rate_limiter = RateLimiter()
