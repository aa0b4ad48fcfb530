"""
Booking coordinator: reservation, payment intent and status changes.

CONCURRENCY STRATEGY: Per-listing critical section
==================================================

Problem:
  Two guests request overlapping dates on the same listing at the same time.
  Both run the availability query, both see no conflict, both insert.
  Result: a double booking.

Solution:
  The availability check and the insert run as one unit:

  1. Acquire the listing lock (asyncio lock, or a Redis lock shared by all
     workers) so same-listing requests queue up
  2. SELECT the listing FOR UPDATE inside the transaction (PostgreSQL)
  3. Query overlapping PENDING/CONFIRMED bookings
  4. Create the payment intent
  5. INSERT the booking with its payment_intent_id and COMMIT
  6. Release the lock

  The bookings exclusion constraint is the final safety net: if anything
  slips through, the insert fails, the payment intent is voided and the
  caller gets a Conflict (reported like Unavailable).

  Requests for different listings take different locks and never wait on
  each other.

Status changes (cancel, payment settlement) use a conditional UPDATE
  UPDATE bookings SET status = :new WHERE id = :id AND status = :expected
  and re-read on rowcount == 0, so a cancel racing a settlement webhook
  never overwrites the other's result.
"""

import asyncio
import time
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Callable, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from stayhub.core.config import get_settings
from stayhub.core.exceptions import (
    Conflict,
    GatewayError,
    InvalidRange,
    InvalidTransition,
    NotFound,
    PriceMismatch,
    Unauthorized,
    Unavailable,
)
from stayhub.core.logging import get_logger
from stayhub.core.metrics import (
    booking_latency,
    lock_wait,
    record_booking_attempt,
    record_gateway_call,
    record_transition,
)
from stayhub.core.security import Principal
from stayhub.domain.booking_state import BookingStatus, assert_booking_transition, assert_guest_can_cancel
from stayhub.domain.pricing import nights_between, to_minor_units, total_price
from stayhub.gateways.base import PaymentGateway
from stayhub.infrastructure.sql_store import SqlBookingStore, SqlListingStore
from stayhub.models.booking import Booking
from stayhub.models.listing import Listing
from stayhub.services.availability_service import AvailabilityChecker
from stayhub.services.interfaces.listing_lock import ListingLock
from stayhub.services.interfaces.stores import BookingStore, ListingStore

logger = get_logger(__name__)

MAX_TRANSITION_ATTEMPTS = 3


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


class BookingCoordinator:
    """
    Runs booking operations against one unit of work (AsyncSession).

    The coordinator owns commit and rollback for the operations it performs,
    because the commit has to happen before the listing lock is released.
    """

    def __init__(
        self,
        db: AsyncSession,
        gateway: PaymentGateway,
        lock: ListingLock,
        listings: Optional[ListingStore] = None,
        bookings: Optional[BookingStore] = None,
        currency: Optional[str] = None,
        today: Callable[[], date] = utc_today,
    ):
        self.db = db
        self.gateway = gateway
        self.lock = lock
        self.listings = listings or SqlListingStore(db)
        self.bookings = bookings or SqlBookingStore(db)
        self.availability = AvailabilityChecker(self.bookings)
        self.currency = currency or get_settings().CURRENCY
        self.today = today

    # ------------------------------------------------------------------
    # Reservation
    # ------------------------------------------------------------------

    async def create_booking(
        self,
        principal: Principal,
        listing_id: str,
        check_in: date,
        check_out: date,
        guests: int,
        submitted_total: Optional[Decimal] = None,
    ) -> tuple[Booking, str]:
        """
        Reserve the dates and open a payment intent.

        Returns the PENDING booking and the gateway's client token. On any
        failure nothing is persisted and an already created intent is voided.
        """
        start = time.perf_counter()
        outcome = "error"
        try:
            booking, client_token = await self._create_booking(
                principal, listing_id, check_in, check_out, guests, submitted_total
            )
            outcome = "success"
            return booking, client_token
        except Conflict:
            outcome = "conflict"
            raise
        except Unavailable:
            outcome = "unavailable"
            raise
        except GatewayError:
            outcome = "gateway_error"
            raise
        except (InvalidRange, PriceMismatch, NotFound):
            outcome = "invalid"
            raise
        finally:
            record_booking_attempt(outcome)
            booking_latency.observe(time.perf_counter() - start)

    async def _create_booking(
        self,
        principal: Principal,
        listing_id: str,
        check_in: date,
        check_out: date,
        guests: int,
        submitted_total: Optional[Decimal],
    ) -> tuple[Booking, str]:
        self._validate_range(check_in, check_out)
        if guests < 1:
            raise InvalidRange("At least one guest is required")

        wait_start = time.perf_counter()
        async with self.lock.hold(listing_id):
            lock_wait.labels(backend=self.lock.name).observe(time.perf_counter() - wait_start)
            try:
                return await self._reserve(principal, listing_id, check_in, check_out, guests, submitted_total)
            except BaseException:
                # Drop the row lock and any partial write before the next waiter runs
                await self.db.rollback()
                raise

    async def _reserve(
        self,
        principal: Principal,
        listing_id: str,
        check_in: date,
        check_out: date,
        guests: int,
        submitted_total: Optional[Decimal],
    ) -> tuple[Booking, str]:
        listing = await self.listings.get_listing(listing_id, for_update=True)
        if listing is None:
            raise NotFound("Listing", listing_id)

        if guests > listing.max_guests:
            raise InvalidRange(f"Maximum {listing.max_guests} guests allowed")

        amount = self._price(listing, check_in, check_out, submitted_total)

        conflicts = await self.availability.conflicts(listing_id, check_in, check_out)
        if conflicts:
            logger.info(
                "booking_unavailable",
                listing_id=listing_id,
                check_in=str(check_in),
                check_out=str(check_out),
                conflicting=[b.id for b in conflicts],
            )
            raise Unavailable()

        try:
            intent = await self.gateway.create_intent(
                to_minor_units(amount),
                self.currency,
                metadata={
                    "listing_id": listing_id,
                    "user_id": principal.id,
                    "check_in": check_in.isoformat(),
                    "check_out": check_out.isoformat(),
                },
            )
        except GatewayError:
            record_gateway_call("create", ok=False)
            logger.error("payment_intent_failed", listing_id=listing_id, user_id=principal.id)
            raise
        record_gateway_call("create", ok=True)

        try:
            booking = await self.bookings.insert(
                Booking(
                    listing_id=listing_id,
                    user_id=principal.id,
                    check_in=check_in,
                    check_out=check_out,
                    guests=guests,
                    total_price=amount,
                    currency=self.currency,
                    payment_intent_id=intent.intent_id,
                    status=BookingStatus.PENDING.value,
                )
            )
            await self.db.commit()
        except BaseException:
            # Covers Conflict, database errors and task cancellation alike
            await asyncio.shield(self._void_intent(intent.intent_id))
            raise

        logger.info(
            "booking_created",
            booking_id=booking.id,
            listing_id=listing_id,
            user_id=principal.id,
            check_in=str(check_in),
            check_out=str(check_out),
            nights=booking.nights,
            total_price=str(amount),
            payment_intent_id=intent.intent_id,
        )
        return booking, intent.client_token

    def _validate_range(self, check_in: date, check_out: date) -> None:
        if check_in >= check_out:
            raise InvalidRange("Check-out must be after check-in")
        if check_in < self.today():
            raise InvalidRange("Check-in date cannot be in the past")

    def _price(
        self,
        listing: Listing,
        check_in: date,
        check_out: date,
        submitted_total: Optional[Decimal],
    ) -> Decimal:
        amount = total_price(listing.price, check_in, check_out)
        # Exact match against the cent-rounded server amount; no rounding of the client value
        if submitted_total is not None and Decimal(submitted_total) != amount:
            logger.warning(
                "booking_price_mismatch",
                listing_id=listing.id,
                submitted=str(submitted_total),
                computed=str(amount),
                nights=nights_between(check_in, check_out),
            )
            raise PriceMismatch(f"Total price must be {amount} for {nights_between(check_in, check_out)} nights")
        return amount

    async def _void_intent(self, intent_id: str) -> None:
        """Best effort: an intent that cannot be voided still expires unconfirmed at the gateway."""
        try:
            await self.gateway.cancel_intent(intent_id)
            record_gateway_call("cancel", ok=True)
            logger.info("payment_intent_voided", payment_intent_id=intent_id)
        except GatewayError:
            record_gateway_call("cancel", ok=False)
            logger.warning("payment_intent_void_failed", payment_intent_id=intent_id)

    async def is_available(self, listing_id: str, check_in: date, check_out: date) -> bool:
        """Read-only availability lookup. Not a reservation."""
        if check_in >= check_out:
            raise InvalidRange("Check-out must be after check-in")
        listing = await self.listings.get_listing(listing_id)
        if listing is None:
            raise NotFound("Listing", listing_id)
        return await self.availability.is_available(listing_id, check_in, check_out)

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------

    async def cancel_booking(self, principal: Principal, booking_id: str) -> Booking:
        """
        Guest-initiated cancellation.
        Retries up to MAX_TRANSITION_ATTEMPTS when the status changes underneath.
        """
        for attempt in range(1, MAX_TRANSITION_ATTEMPTS + 1):
            booking = await self.bookings.get(booking_id)
            if booking is None:
                raise NotFound("Booking", booking_id)

            previous = booking.status
            assert_guest_can_cancel(previous, booking.user_id, booking.check_in, principal.id, self.today())

            updated = await self.bookings.update_status(
                booking_id, BookingStatus.CANCELLED.value, expected_status=previous
            )
            if updated is None:
                logger.info("booking_cancel_retry", booking_id=booking_id, attempt=attempt)
                await self.db.rollback()
                continue

            await self.db.commit()
            record_transition(previous, BookingStatus.CANCELLED.value, "guest")
            logger.info(
                "booking_cancelled",
                booking_id=booking_id,
                user_id=principal.id,
                previous_status=previous,
            )

            if previous == BookingStatus.PENDING.value and updated.payment_intent_id:
                await self._void_intent(updated.payment_intent_id)
            return updated

        raise Conflict("Booking was modified concurrently, please try again")

    async def confirm_payment(self, intent_id: str) -> Booking:
        """
        Payment settlement callback: PENDING -> CONFIRMED.

        Idempotent for bookings that are already CONFIRMED. A settlement for a
        booking that was cancelled meanwhile leaves it cancelled.
        """
        for attempt in range(1, MAX_TRANSITION_ATTEMPTS + 1):
            booking = await self.bookings.find_by_payment_intent(intent_id)
            if booking is None:
                raise NotFound("Booking for payment intent", intent_id)

            if booking.status == BookingStatus.CONFIRMED.value:
                return booking
            if booking.status != BookingStatus.PENDING.value:
                logger.warning(
                    "payment_settled_for_inactive_booking",
                    booking_id=booking.id,
                    status=booking.status,
                    payment_intent_id=intent_id,
                )
                return booking

            assert_booking_transition(booking.status, BookingStatus.CONFIRMED.value)
            updated = await self.bookings.update_status(
                booking.id, BookingStatus.CONFIRMED.value, expected_status=BookingStatus.PENDING.value
            )
            if updated is None:
                logger.info("booking_confirm_retry", booking_id=booking.id, attempt=attempt)
                await self.db.rollback()
                continue

            await self.db.commit()
            record_transition(BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value, "payment")
            logger.info("booking_confirmed", booking_id=updated.id, payment_intent_id=intent_id)
            return updated

        raise InvalidTransition("Booking was modified concurrently")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def list_user_bookings(self, principal: Principal) -> Sequence[Booking]:
        """Bookings made by the principal, newest first, with listing and host loaded."""
        return await self.bookings.find_by_user(principal.id)

    async def list_host_bookings(self, principal: Principal) -> Sequence[Booking]:
        """Bookings on the principal's listings, newest first, with listing and guest loaded."""
        if not principal.is_host:
            raise Unauthorized("Only hosts can access this endpoint")
        return await self.bookings.find_by_host_listings(principal.id)
