"""
Persistence contracts the booking core depends on.

The core never talks to the ORM directly; it is handed one ListingStore and
one BookingStore bound to the unit of work it runs in.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Optional, Sequence

from stayhub.models.booking import Booking
from stayhub.models.listing import Listing


class ListingStore(ABC):
    @abstractmethod
    async def get_listing(self, listing_id: str, for_update: bool = False) -> Optional[Listing]:
        """
        Read a listing by id.

        Args:
            listing_id: Listing to load
            for_update: Row-lock the listing for the rest of the transaction
        """
        pass


class BookingStore(ABC):
    @abstractmethod
    async def get(self, booking_id: str) -> Optional[Booking]:
        pass

    @abstractmethod
    async def find_by_payment_intent(self, intent_id: str) -> Optional[Booking]:
        pass

    @abstractmethod
    async def find_active_overlapping(self, listing_id: str, check_in: date, check_out: date) -> Sequence[Booking]:
        """PENDING/CONFIRMED bookings of the listing whose [check_in, check_out) overlaps the range."""
        pass

    @abstractmethod
    async def insert(self, booking: Booking) -> Booking:
        """
        Persist a new booking.

        Raises:
            Conflict: a constraint rejected the row (lost availability race)
        """
        pass

    @abstractmethod
    async def update_status(
        self,
        booking_id: str,
        new_status: str,
        expected_status: Optional[str] = None,
    ) -> Optional[Booking]:
        """
        Set a booking's status.

        When expected_status is given the update only applies if the row still
        has that status. Returns None if nothing was updated.
        """
        pass

    @abstractmethod
    async def find_by_user(self, user_id: str) -> Sequence[Booking]:
        pass

    @abstractmethod
    async def find_by_host_listings(self, host_id: str) -> Sequence[Booking]:
        pass

    @abstractmethod
    async def find_stale_pending(self, created_before: datetime) -> Sequence[Booking]:
        pass

    @abstractmethod
    async def find_finished_confirmed(self, today: date) -> Sequence[Booking]:
        pass
