"""
Booking state machine.

    PENDING ──payment settled──▶ CONFIRMED ──checkout passed──▶ COMPLETED
       │                            │
       └────────▶ CANCELLED ◀───────┘

CANCELLED and COMPLETED are terminal.
"""

from datetime import date
from enum import Enum

from stayhub.core.exceptions import AlreadyCancelled, InvalidTransition, Unauthorized


class BookingStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


# Statuses that occupy the calendar
ACTIVE_STATUSES = (BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value)

BOOKING_TRANSITIONS: dict[str, set[str]] = {
    BookingStatus.PENDING.value: {BookingStatus.CONFIRMED.value, BookingStatus.CANCELLED.value},
    BookingStatus.CONFIRMED.value: {BookingStatus.CANCELLED.value, BookingStatus.COMPLETED.value},
    BookingStatus.CANCELLED.value: set(),
    BookingStatus.COMPLETED.value: set(),
}


def can_transition(current: str, target: str) -> bool:
    return target in BOOKING_TRANSITIONS.get(current, set())


def assert_booking_transition(current: str, target: str) -> None:
    if current == BookingStatus.CANCELLED.value and target == BookingStatus.CANCELLED.value:
        raise AlreadyCancelled()
    if not can_transition(current, target):
        raise InvalidTransition(f"Invalid booking transition: {current} -> {target}")


def assert_guest_can_cancel(status: str, owner_id: str, check_in: date, principal_id: str, today: date) -> None:
    """
    Guard for guest-initiated cancellation.

    PENDING bookings may always be cancelled by their owner. CONFIRMED
    bookings only while the stay has not started (today < check_in).
    """
    if owner_id != principal_id:
        raise Unauthorized("Not authorized to cancel this booking")

    assert_booking_transition(status, BookingStatus.CANCELLED.value)

    if status == BookingStatus.CONFIRMED.value and today >= check_in:
        raise InvalidTransition("Confirmed bookings cannot be cancelled on or after the check-in date")
