"""
Per-listing mutual exclusion strategy.
Covers the availability check and the booking insert as one critical section.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager


class ListingLock(ABC):
    """
    Interface for listing lock strategies.

    Implementations:
    - LocalListingLock: asyncio locks, single process
    - RedisListingLock: Redis locks shared by every API worker
    """

    name: str = "abstract"

    @abstractmethod
    def hold(self, listing_id: str) -> AbstractAsyncContextManager[None]:
        """
        Exclusive section for one listing.

        Must be released on every exit path, including task cancellation.
        Different listing ids never block each other.
        """
        pass

    async def close(self) -> None:
        """Release backend resources on shutdown."""
        return None
