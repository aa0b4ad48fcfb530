"""
In-process listing lock.
Enough for a single API worker; the database exclusion constraint covers the rest.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator

from stayhub.services.interfaces.listing_lock import ListingLock


class LocalListingLock(ListingLock):
    """
    One asyncio.Lock per listing id.

    Locks are created on first use and dropped once nobody holds or waits on
    them, so the registry only grows with the number of listings being booked
    right now.
    """

    name = "local"

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, listing_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(listing_id, asyncio.Lock())
        self._users[listing_id] = self._users.get(listing_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[listing_id] -= 1
            if self._users[listing_id] == 0:
                del self._users[listing_id]
                del self._locks[listing_id]

    def active_listings(self) -> int:
        return len(self._locks)
