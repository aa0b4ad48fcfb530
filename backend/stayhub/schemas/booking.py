"""
Pydantic schemas for booking-related request/response validation.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class BookingCreate(BaseModel):
    listing_id: str = Field(..., min_length=1, max_length=64)
    check_in: date
    check_out: date
    # Range and capacity rules depend on the listing and are enforced by the booking service
    guests: int
    # Optional client-side quote; rejected if it differs from the server price
    total_price: Optional[Decimal] = Field(None, ge=0)


class BookingResponse(BaseModel):
    id: str
    listing_id: str
    user_id: str
    check_in: date
    check_out: date
    guests: int
    total_price: Decimal
    currency: str
    status: str
    payment_intent_id: Optional[str]
    created_at: datetime

    model_config = {"from_attributes": True}


class PersonSummary(BaseModel):
    name: str
    email: str

    model_config = {"from_attributes": True}


class ListingSummary(BaseModel):
    id: str
    title: str
    location: Optional[str]

    model_config = {"from_attributes": True}


class ListingWithHost(ListingSummary):
    host: PersonSummary


class UserBookingResponse(BookingResponse):
    listing: ListingWithHost


class HostBookingResponse(BookingResponse):
    listing: ListingSummary
    user: PersonSummary


class BookingCreatedResponse(BaseModel):
    message: str
    booking: BookingResponse
    client_secret: str


class BookingCancelResponse(BaseModel):
    message: str
    booking: BookingResponse
