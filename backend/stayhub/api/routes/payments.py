"""
Payment settlement webhook.
"""

from fastapi import APIRouter, Depends, HTTPException, Request, status

from stayhub.api.deps import get_booking_coordinator, get_payment_gateway
from stayhub.core.exceptions import NotFound
from stayhub.core.logging import get_logger
from stayhub.gateways.base import PaymentGateway
from stayhub.schemas.payment import WebhookAck
from stayhub.services.booking_service import BookingCoordinator

logger = get_logger(__name__)
router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post("/webhook", response_model=WebhookAck)
async def payment_webhook(
    request: Request,
    gateway: PaymentGateway = Depends(get_payment_gateway),
    coordinator: BookingCoordinator = Depends(get_booking_coordinator),
):
    """
    Gateway callback. A settled payment intent confirms its PENDING booking.
    Other event types are acknowledged and ignored.
    """
    payload = await request.body()
    event = gateway.parse_webhook(payload, request.headers.get(gateway.signature_header))
    if event is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid webhook signature",
        )

    if not event.is_settlement:
        logger.info("payment_webhook_ignored", type=event.type, payment_intent_id=event.intent_id)
        return WebhookAck()

    try:
        booking = await coordinator.confirm_payment(event.intent_id)
    except NotFound:
        # Intent not created by this service, or its booking insert was rolled back
        logger.warning("payment_webhook_unknown_intent", payment_intent_id=event.intent_id)
        return WebhookAck()

    return WebhookAck(booking_id=booking.id, status=booking.status)
