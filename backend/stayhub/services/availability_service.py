"""
Availability checker.

A listing is free for [check_in, check_out) when no PENDING or CONFIRMED
booking overlaps it. Ranges are half-open, so a stay may start on the day the
previous one checks out.
"""

from datetime import date

from stayhub.domain.booking_state import ACTIVE_STATUSES
from stayhub.models.booking import Booking
from stayhub.services.interfaces.stores import BookingStore


def ranges_overlap(check_in: date, check_out: date, other_in: date, other_out: date) -> bool:
    """Half-open interval overlap test. Touching endpoints do not overlap."""
    return check_in < other_out and check_out > other_in


class AvailabilityChecker:
    """
    Must run inside the same listing lock and transaction as the insert it
    guards; on its own it only answers for the instant it was called.
    """

    def __init__(self, bookings: BookingStore):
        self.bookings = bookings

    async def conflicts(self, listing_id: str, check_in: date, check_out: date) -> list[Booking]:
        candidates = await self.bookings.find_active_overlapping(listing_id, check_in, check_out)
        return [
            b for b in candidates
            if b.status in ACTIVE_STATUSES and ranges_overlap(check_in, check_out, b.check_in, b.check_out)
        ]

    async def is_available(self, listing_id: str, check_in: date, check_out: date) -> bool:
        return not await self.conflicts(listing_id, check_in, check_out)
