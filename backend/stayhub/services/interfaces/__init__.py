"""
Service interfaces for dependency inversion.
Allows swapping implementations without changing business logic.
"""

from .listing_lock import ListingLock
from .local_listing_lock import LocalListingLock
from .stores import BookingStore, ListingStore

__all__ = ["BookingStore", "ListingLock", "ListingStore", "LocalListingLock"]
