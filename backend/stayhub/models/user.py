"""
User record mirrored from the identity service.
Read-only to the booking core; only used for guest and host summaries.
"""

from sqlalchemy import Boolean, Column, String
from sqlalchemy.orm import relationship

from stayhub.db.base import Base, TimestampMixin


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(String(64), primary_key=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=False)
    is_host = Column(Boolean, default=False, nullable=False)

    listings = relationship("Listing", back_populates="host")
    bookings = relationship("Booking", back_populates="user")

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email})>"
