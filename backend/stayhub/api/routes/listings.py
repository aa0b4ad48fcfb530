"""
Listing availability lookup.
"""

from datetime import date

from fastapi import APIRouter, Depends, Query

from stayhub.api.deps import get_booking_coordinator
from stayhub.schemas.listing import AvailabilityResponse
from stayhub.services.booking_service import BookingCoordinator

router = APIRouter(prefix="/listings", tags=["Listings"])


@router.get("/{listing_id}/availability", response_model=AvailabilityResponse)
async def get_availability(
    listing_id: str,
    check_in: date = Query(...),
    check_out: date = Query(...),
    coordinator: BookingCoordinator = Depends(get_booking_coordinator),
):
    """
    Whether the dates are currently free. Informational only: the dates are
    re-checked under lock when the booking is created.
    """
    available = await coordinator.is_available(listing_id, check_in, check_out)
    return AvailabilityResponse(
        listing_id=listing_id,
        check_in=check_in,
        check_out=check_out,
        available=available,
    )
