"""
Pydantic schemas for listing availability lookups.
"""

from datetime import date

from pydantic import BaseModel


class AvailabilityResponse(BaseModel):
    listing_id: str
    check_in: date
    check_out: date
    available: bool
