"""
Redis-backed listing lock for multi-worker deployments.

Every API worker shares the same lock name per listing, so the availability
check and the insert stay serialized across processes.

Circuit Breaker Pattern:
  If Redis is unreachable the lock degrades to the in-process lock. The
  listing row lock and the bookings exclusion constraint are still enforced
  by PostgreSQL, so a Redis outage can cost a Conflict response but can never
  produce an overlapping booking.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import redis.asyncio as redis
from redis.exceptions import LockError, RedisError

from stayhub.core.exceptions import Conflict
from stayhub.core.logging import get_logger
from stayhub.core.metrics import lock_backend_errors
from stayhub.services.interfaces.listing_lock import ListingLock
from stayhub.services.interfaces.local_listing_lock import LocalListingLock

logger = get_logger(__name__)


class RedisListingLock(ListingLock):
    name = "redis"

    def __init__(
        self,
        client: redis.Redis,
        timeout: float = 30.0,
        blocking_timeout: float = 10.0,
        local: Optional[LocalListingLock] = None,
    ):
        self.client = client
        self.timeout = timeout
        self.blocking_timeout = blocking_timeout
        # Same-process callers queue locally first instead of polling Redis
        self.local = local or LocalListingLock()

    @staticmethod
    def key(listing_id: str) -> str:
        return f"booking-lock:{listing_id}"

    @asynccontextmanager
    async def hold(self, listing_id: str) -> AsyncIterator[None]:
        async with self.local.hold(listing_id):
            lock = self.client.lock(
                self.key(listing_id),
                timeout=self.timeout,
                blocking_timeout=self.blocking_timeout,
            )
            acquired = False
            degraded = False
            try:
                acquired = await lock.acquire()
            except RedisError as e:
                lock_backend_errors.inc()
                logger.error("listing_lock_redis_unavailable", listing_id=listing_id, error=str(e))
                degraded = True

            if not acquired and not degraded:
                logger.warning("listing_lock_timeout", listing_id=listing_id)
                raise Conflict()

            try:
                yield
            finally:
                if acquired:
                    try:
                        await lock.release()
                    except LockError:
                        # Held longer than `timeout`; Redis already expired it
                        logger.warning("listing_lock_expired_before_release", listing_id=listing_id)
                    except RedisError as e:
                        logger.error("listing_lock_release_failed", listing_id=listing_id, error=str(e))
