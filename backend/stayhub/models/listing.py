"""
Listing record owned by the listing catalog.

The booking core reads it (price, capacity, host) and row-locks it while
reserving dates, but never writes to it.
"""

from sqlalchemy import CheckConstraint, Column, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from stayhub.db.base import Base, TimestampMixin


class Listing(Base, TimestampMixin):
    __tablename__ = "listings"

    id = Column(String(64), primary_key=True)
    host_id = Column(String(64), ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    location = Column(String(255), nullable=True)
    price = Column(Numeric(10, 2), nullable=False)  # nightly rate
    max_guests = Column(Integer, nullable=False)

    host = relationship("User", back_populates="listings")
    bookings = relationship("Booking", back_populates="listing")

    __table_args__ = (
        CheckConstraint("price > 0", name="check_listing_price_positive"),
        CheckConstraint("max_guests > 0", name="check_listing_max_guests_positive"),
    )

    def __repr__(self) -> str:
        return f"<Listing(id={self.id}, title={self.title}, price={self.price})>"
