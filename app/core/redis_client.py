"""
Redis connection management
Redis 连接管理 - 房间事件发布与限流计数

Redis 在本服务中是可选的：不可用时调用方自行降级（事件只走 WebSocket，限流退回进程内窗口）。
请求路径上不做重试等待，失败后进入冷却期，冷却结束后的下一次调用再尝试 ping。
"""

import json
import time
import logging
from typing import Any, Dict, Optional

import redis.asyncio as redis

from app.core.config import settings

logger = logging.getLogger(__name__)

# Seconds before an unreachable Redis is tried again
RECONNECT_COOLDOWN = 15.0


class RedisManager:
    """Owns the Redis client and tracks whether it is currently reachable"""

    def __init__(self, url: Optional[str] = None):
        self.url = url or settings.REDIS_URL
        self.client: Optional[redis.Redis] = None
        self.available = False
        self.last_error: Optional[str] = None
        self._retry_after = 0.0

    async def initialize(self) -> None:
        self.client = redis.Redis.from_url(
            self.url,
            max_connections=settings.REDIS_MAX_CONNECTIONS,
            socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
            socket_connect_timeout=settings.REDIS_SOCKET_CONNECT_TIMEOUT,
            health_check_interval=30,
            decode_responses=True,
        )

        if await self.ping():
            logger.info(f"[REDIS] Connected to {self.url}")
            return

        logger.error(f"[REDIS] Unreachable at startup: {self.last_error}")
        # 非生产环境允许无 Redis 运行
        if settings.ENVIRONMENT == "production":
            raise RuntimeError(f"Redis unavailable: {self.last_error}")

    async def ping(self) -> bool:
        if self.client is None:
            return False
        try:
            await self.client.ping()
        except redis.RedisError as e:
            self.mark_failed(e)
            return False

        if not self.available:
            logger.info("[REDIS] Connection available")
        self.available = True
        self.last_error = None
        return True

    def mark_failed(self, error: Exception) -> None:
        """Stop using Redis until the cooldown passes"""
        if self.available:
            logger.warning(f"[REDIS] Lost connection, next attempt in {RECONNECT_COOLDOWN:.0f}s: {error}")
        self.available = False
        self.last_error = str(error)
        self._retry_after = time.monotonic() + RECONNECT_COOLDOWN

    @property
    def usable(self) -> bool:
        """Worth trying: connected, or the cooldown after a failure has passed"""
        if self.client is None:
            return False
        return self.available or time.monotonic() >= self._retry_after

    async def get_client(self) -> redis.Redis:
        if self.client is None:
            raise RuntimeError("Redis not initialized")
        if not self.available:
            if time.monotonic() < self._retry_after or not await self.ping():
                raise RuntimeError(f"Redis unavailable: {self.last_error}")
        return self.client

    async def publish_message(self, channel: str, message: Dict[str, Any]) -> int:
        """Publish a JSON message; returns the number of subscribers that received it"""
        client = await self.get_client()
        try:
            return await client.publish(channel, json.dumps(message, default=str))
        except redis.RedisError as e:
            self.mark_failed(e)
            raise

    async def close(self) -> None:
        if self.client is not None:
            await self.client.aclose()
            logger.info("[REDIS] Connection closed")
        self.client = None
        self.available = False

    def snapshot(self) -> Dict[str, Any]:
        if self.client is None:
            state = "disabled"
        else:
            state = "healthy" if self.available else "unhealthy"
        return {"status": state, "last_error": self.last_error}


# Global Redis manager instance
redis_manager = RedisManager()


async def init_redis():
    await redis_manager.initialize()


async def close_redis():
    await redis_manager.close()


async def redis_health_check() -> dict:
    """Ping (when configured) and report the connection state"""
    await redis_manager.ping()
    return redis_manager.snapshot()
