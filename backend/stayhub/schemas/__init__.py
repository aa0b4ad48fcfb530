from stayhub.schemas.booking import (
    BookingCancelResponse,
    BookingCreate,
    BookingCreatedResponse,
    BookingResponse,
    HostBookingResponse,
    UserBookingResponse,
)
from stayhub.schemas.listing import AvailabilityResponse
from stayhub.schemas.payment import WebhookAck

__all__ = [
    "BookingCreate", "BookingResponse", "BookingCreatedResponse", "BookingCancelResponse",
    "UserBookingResponse", "HostBookingResponse",
    "AvailabilityResponse",
    "WebhookAck",
]
