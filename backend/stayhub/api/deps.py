"""
Request dependencies wiring process-wide collaborators into the coordinator.
"""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from stayhub.db.session import get_db
from stayhub.gateways.base import PaymentGateway
from stayhub.services.booking_service import BookingCoordinator
from stayhub.services.interfaces.listing_lock import ListingLock


def get_payment_gateway(request: Request) -> PaymentGateway:
    return request.app.state.payment_gateway


def get_listing_lock(request: Request) -> ListingLock:
    return request.app.state.listing_lock


async def get_booking_coordinator(
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    lock: ListingLock = Depends(get_listing_lock),
) -> BookingCoordinator:
    return BookingCoordinator(db, gateway, lock)
