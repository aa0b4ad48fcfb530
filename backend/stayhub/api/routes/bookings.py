"""
Booking endpoints with concurrency-safe date reservation.
"""

from fastapi import APIRouter, Depends, status

from stayhub.api.deps import get_booking_coordinator
from stayhub.core.logging import get_logger
from stayhub.core.security import Principal, get_current_principal
from stayhub.schemas.booking import (
    BookingCancelResponse,
    BookingCreate,
    BookingCreatedResponse,
    BookingResponse,
    HostBookingResponse,
    UserBookingResponse,
)
from stayhub.services.booking_service import BookingCoordinator

logger = get_logger(__name__)
router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post("/", response_model=BookingCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    principal: Principal = Depends(get_current_principal),
    coordinator: BookingCoordinator = Depends(get_booking_coordinator),
):
    """
    Reserve a listing for a date range and open a payment intent.

    The booking is created PENDING; the returned client secret is used by the
    client to confirm the payment. Overlapping requests for the same listing
    are serialized, and only the first one gets the dates (409 for the rest).
    """
    booking, client_secret = await coordinator.create_booking(
        principal,
        booking_data.listing_id,
        booking_data.check_in,
        booking_data.check_out,
        booking_data.guests,
        booking_data.total_price,
    )
    return BookingCreatedResponse(
        message="Booking created successfully",
        booking=BookingResponse.model_validate(booking),
        client_secret=client_secret,
    )


@router.get("/my-bookings", response_model=list[UserBookingResponse])
async def list_my_bookings(
    principal: Principal = Depends(get_current_principal),
    coordinator: BookingCoordinator = Depends(get_booking_coordinator),
):
    """Bookings made by the authenticated user, newest first."""
    return await coordinator.list_user_bookings(principal)


@router.get("/host-bookings", response_model=list[HostBookingResponse])
async def list_host_bookings(
    principal: Principal = Depends(get_current_principal),
    coordinator: BookingCoordinator = Depends(get_booking_coordinator),
):
    """Bookings on the authenticated host's listings. Hosts only."""
    return await coordinator.list_host_bookings(principal)


@router.patch("/{booking_id}/cancel", response_model=BookingCancelResponse)
async def cancel_booking(
    booking_id: str,
    principal: Principal = Depends(get_current_principal),
    coordinator: BookingCoordinator = Depends(get_booking_coordinator),
):
    """Cancel one of your own bookings and release its dates."""
    booking = await coordinator.cancel_booking(principal, booking_id)
    return BookingCancelResponse(
        message="Booking cancelled successfully",
        booking=BookingResponse.model_validate(booking),
    )
