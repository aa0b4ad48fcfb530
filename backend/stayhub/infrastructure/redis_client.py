"""
Redis connection used by the distributed listing lock.
Opened and closed by the application lifespan.
"""

from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from stayhub.core.logging import get_logger

logger = get_logger(__name__)


class RedisClient:
    """Owns one connection pool for the process."""

    def __init__(self, url: str, enabled: bool = True):
        self.url = url
        self.enabled = enabled
        self.client: Optional[redis.Redis] = None

    async def connect(self) -> Optional[redis.Redis]:
        """Connect and ping. Returns None when Redis is disabled or unreachable."""
        if not self.enabled:
            return None

        if self.client is None:
            client = redis.from_url(
                self.url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
                health_check_interval=30,
            )
            try:
                await client.ping()
            except RedisError as e:
                logger.error("redis_connection_failed", error=str(e))
                await client.aclose()
                return None
            self.client = client
            logger.info("redis_connected", url=self.url)

        return self.client

    async def close(self) -> None:
        if self.client is not None:
            await self.client.aclose()
            self.client = None

    async def status(self) -> str:
        if self.client is None:
            return "disabled" if not self.enabled else "unavailable"
        try:
            await self.client.ping()
            return "connected"
        except RedisError:
            return "error"
