"""
Booking model representing a guest's reservation of a listing.

Key design decisions:
- Dates are a half-open [check_in, check_out) range; check_out is not occupied
- total_price is computed at creation and never changes
- payment_intent_id is written in the same insert as the booking row
- Status field allows cancellation without deleting records
- Composite index on (listing_id, status, check_in) serves the overlap query
- On PostgreSQL the migration adds an exclusion constraint so two active
  bookings of one listing can never overlap, whatever the application does
"""

import uuid

from sqlalchemy import CheckConstraint, Column, Date, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import relationship

from stayhub.db.base import Base, TimestampMixin


def _new_booking_id() -> str:
    return str(uuid.uuid4())


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=_new_booking_id)
    listing_id = Column(String(64), ForeignKey("listings.id"), nullable=False)
    user_id = Column(String(64), ForeignKey("users.id"), nullable=False, index=True)
    check_in = Column(Date, nullable=False)
    check_out = Column(Date, nullable=False)
    guests = Column(Integer, nullable=False)
    total_price = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="usd")
    payment_intent_id = Column(String(255), nullable=True, unique=True)
    status = Column(String(20), nullable=False, default="PENDING")

    listing = relationship("Listing", back_populates="bookings")
    user = relationship("User", back_populates="bookings")

    __table_args__ = (
        CheckConstraint("check_in < check_out", name="check_booking_range_positive"),
        CheckConstraint("guests > 0", name="check_booking_guests_positive"),
        CheckConstraint("total_price >= 0", name="check_booking_total_non_negative"),
        CheckConstraint(
            "status IN ('PENDING', 'CONFIRMED', 'CANCELLED', 'COMPLETED')",
            name="check_booking_status",
        ),
        Index("ix_bookings_listing_status_check_in", "listing_id", "status", "check_in"),
    )

    @property
    def nights(self) -> int:
        return (self.check_out - self.check_in).days

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, listing={self.listing_id}, "
            f"{self.check_in}->{self.check_out}, status={self.status})>"
        )
