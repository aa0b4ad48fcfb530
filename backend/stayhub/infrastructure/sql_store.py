"""
SQLAlchemy implementations of the listing and booking stores.
Both are bound to one AsyncSession, i.e. one unit of work.
"""

from datetime import date, datetime
from typing import Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from stayhub.core.exceptions import Conflict, NotFound
from stayhub.core.logging import get_logger
from stayhub.domain.booking_state import ACTIVE_STATUSES, BookingStatus
from stayhub.models.booking import Booking
from stayhub.models.listing import Listing
from stayhub.services.interfaces.stores import BookingStore, ListingStore

logger = get_logger(__name__)

# PostgreSQL SQLSTATE codes
EXCLUSION_VIOLATION = "23P01"
FOREIGN_KEY_VIOLATION = "23503"

OVERLAP_CONSTRAINT = "excl_bookings_active_overlap"


def _sqlstate(error: IntegrityError) -> Optional[str]:
    # asyncpg (through SQLAlchemy) exposes sqlstate, psycopg2 exposes pgcode
    return getattr(error.orig, "sqlstate", None) or getattr(error.orig, "pgcode", None)


def is_overlap_violation(error: IntegrityError) -> bool:
    return _sqlstate(error) == EXCLUSION_VIOLATION or OVERLAP_CONSTRAINT in str(error.orig)


def is_foreign_key_violation(error: IntegrityError) -> bool:
    return _sqlstate(error) == FOREIGN_KEY_VIOLATION or "FOREIGN KEY" in str(error.orig).upper()


class SqlListingStore(ListingStore):
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_listing(self, listing_id: str, for_update: bool = False) -> Optional[Listing]:
        query = select(Listing).where(Listing.id == listing_id)
        if for_update:
            # Serializes bookings of this listing across API workers (no-op on SQLite)
            query = query.with_for_update()
        result = await self.db.execute(query)
        return result.scalar_one_or_none()


class SqlBookingStore(BookingStore):
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, booking_id: str) -> Optional[Booking]:
        result = await self.db.execute(select(Booking).where(Booking.id == booking_id))
        return result.scalar_one_or_none()

    async def find_by_payment_intent(self, intent_id: str) -> Optional[Booking]:
        result = await self.db.execute(select(Booking).where(Booking.payment_intent_id == intent_id))
        return result.scalar_one_or_none()

    async def find_active_overlapping(self, listing_id: str, check_in: date, check_out: date) -> Sequence[Booking]:
        # Half-open overlap: existing.check_in < new.check_out AND existing.check_out > new.check_in
        result = await self.db.execute(
            select(Booking)
            .where(
                Booking.listing_id == listing_id,
                Booking.status.in_(ACTIVE_STATUSES),
                Booking.check_in < check_out,
                Booking.check_out > check_in,
            )
            .order_by(Booking.check_in.asc())
        )
        return list(result.scalars().all())

    async def insert(self, booking: Booking) -> Booking:
        self.db.add(booking)
        try:
            await self.db.flush()
        except IntegrityError as e:
            if is_overlap_violation(e):
                logger.warning(
                    "booking_overlap_rejected",
                    listing_id=booking.listing_id,
                    check_in=str(booking.check_in),
                    check_out=str(booking.check_out),
                )
                raise Conflict()
            if is_foreign_key_violation(e):
                # The listing row is locked, so the missing reference is the guest
                logger.warning("booking_user_unknown", user_id=booking.user_id, error=str(e.orig))
                raise NotFound("User", booking.user_id)
            logger.error("booking_insert_failed", listing_id=booking.listing_id, error=str(e.orig))
            raise
        await self.db.refresh(booking)
        return booking

    async def update_status(
        self,
        booking_id: str,
        new_status: str,
        expected_status: Optional[str] = None,
    ) -> Optional[Booking]:
        # Conditional update: a concurrent transition makes rowcount 0 instead of being overwritten
        stmt = update(Booking).where(Booking.id == booking_id)
        if expected_status is not None:
            stmt = stmt.where(Booking.status == expected_status)
        result = await self.db.execute(
            stmt.values(status=new_status).execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            return None

        refreshed = await self.db.execute(
            select(Booking)
            .where(Booking.id == booking_id)
            .execution_options(populate_existing=True)
        )
        return refreshed.scalar_one()

    async def find_by_user(self, user_id: str) -> Sequence[Booking]:
        result = await self.db.execute(
            select(Booking)
            .where(Booking.user_id == user_id)
            .options(selectinload(Booking.listing).selectinload(Listing.host))
            .order_by(Booking.created_at.desc())
        )
        return list(result.scalars().all())

    async def find_by_host_listings(self, host_id: str) -> Sequence[Booking]:
        result = await self.db.execute(
            select(Booking)
            .join(Listing, Booking.listing_id == Listing.id)
            .where(Listing.host_id == host_id)
            .options(selectinload(Booking.listing), selectinload(Booking.user))
            .order_by(Booking.created_at.desc())
        )
        return list(result.scalars().all())

    async def find_stale_pending(self, created_before: datetime) -> Sequence[Booking]:
        result = await self.db.execute(
            select(Booking).where(
                Booking.status == BookingStatus.PENDING.value,
                Booking.created_at < created_before,
            )
        )
        return list(result.scalars().all())

    async def find_finished_confirmed(self, today: date) -> Sequence[Booking]:
        result = await self.db.execute(
            select(Booking).where(
                Booking.status == BookingStatus.CONFIRMED.value,
                Booking.check_out <= today,
            )
        )
        return list(result.scalars().all())
