"""
Typed booking errors.

Every error is an HTTPException so services can raise them directly and
FastAPI maps them to the right status code at the request boundary. Callers
inside the process can still catch the concrete type.
"""

from typing import Optional

from fastapi import HTTPException, status


class BookingError(HTTPException):
    """Base class for all recoverable booking-core failures."""

    default_status = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "An unexpected error occurred"

    def __init__(self, detail: Optional[str] = None, headers: Optional[dict[str, str]] = None) -> None:
        super().__init__(
            status_code=self.default_status,
            detail=detail or self.default_detail,
            headers=headers,
        )


class NotFound(BookingError):
    default_status = status.HTTP_404_NOT_FOUND
    default_detail = "Resource not found"

    def __init__(self, resource: str = "Resource", identifier: Optional[str] = None) -> None:
        detail = f"{resource} not found"
        if identifier:
            detail = f"{resource} {identifier} not found"
        super().__init__(detail)


class AuthenticationError(BookingError):
    default_status = status.HTTP_401_UNAUTHORIZED
    default_detail = "Could not validate credentials"

    def __init__(self, detail: Optional[str] = None) -> None:
        super().__init__(detail, headers={"WWW-Authenticate": "Bearer"})


class Unauthorized(BookingError):
    """Acting on another principal's booking, or a non-host calling a host-only operation."""

    default_status = status.HTTP_403_FORBIDDEN
    default_detail = "Not authorized to perform this action"


class InvalidRange(BookingError):
    """Inverted or zero-night range, past check-in, or guest count out of bounds."""

    default_status = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid booking request"


class PriceMismatch(BookingError):
    default_status = status.HTTP_400_BAD_REQUEST
    default_detail = "Submitted total price does not match the listing price"


class Unavailable(BookingError):
    default_status = status.HTTP_409_CONFLICT
    default_detail = "Selected dates are not available"


class Conflict(Unavailable):
    """Lost the race at insert time. Callers see the same message as Unavailable."""


class AlreadyCancelled(BookingError):
    default_status = status.HTTP_400_BAD_REQUEST
    default_detail = "Booking is already cancelled"


class InvalidTransition(BookingError):
    default_status = status.HTTP_400_BAD_REQUEST
    default_detail = "This operation is not allowed for the current booking status"


class GatewayError(BookingError):
    """Payment intent creation failed. Retryable; no booking was created."""

    default_status = status.HTTP_502_BAD_GATEWAY
    default_detail = "Payment provider is unavailable, please try again"
