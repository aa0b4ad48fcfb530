"""
Stripe payment gateway adapter.

The Stripe SDK is synchronous, so calls run in a worker thread to keep the
event loop free for other listings' bookings.
"""

import asyncio
from typing import Optional

import stripe

from stayhub.core.config import get_settings
from stayhub.core.exceptions import GatewayError
from stayhub.core.logging import get_logger
from stayhub.gateways.base import GatewayType, PaymentGateway, PaymentIntent, WebhookEvent

logger = get_logger(__name__)


class StripeGateway(PaymentGateway):
    """Stripe PaymentIntents implementation."""

    signature_header = "Stripe-Signature"

    def __init__(self, secret_key: Optional[str] = None, webhook_secret: Optional[str] = None):
        settings = get_settings()
        self.secret_key = secret_key if secret_key is not None else settings.STRIPE_SECRET_KEY
        self.webhook_secret = webhook_secret if webhook_secret is not None else settings.STRIPE_WEBHOOK_SECRET

    @property
    def gateway_type(self) -> GatewayType:
        return GatewayType.STRIPE

    async def create_intent(self, amount: int, currency: str, metadata: dict[str, str]) -> PaymentIntent:
        if not self.secret_key:
            raise GatewayError("Stripe is not configured")

        try:
            intent = await asyncio.to_thread(
                stripe.PaymentIntent.create,
                amount=amount,
                currency=currency.lower(),
                metadata=metadata,
                api_key=self.secret_key,
            )
        except stripe.StripeError as e:
            logger.error("stripe_intent_failed", error=str(e), amount=amount)
            raise GatewayError()

        return PaymentIntent(intent_id=intent.id, client_token=intent.client_secret)

    async def cancel_intent(self, intent_id: str) -> None:
        if not self.secret_key:
            raise GatewayError("Stripe is not configured")

        try:
            await asyncio.to_thread(
                stripe.PaymentIntent.cancel,
                intent_id,
                api_key=self.secret_key,
            )
        except stripe.StripeError as e:
            logger.warning("stripe_intent_cancel_failed", intent_id=intent_id, error=str(e))
            raise GatewayError()

    def parse_webhook(self, payload: bytes, signature: Optional[str]) -> Optional[WebhookEvent]:
        if not self.webhook_secret or not signature:
            return None

        try:
            event = stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except (ValueError, stripe.SignatureVerificationError):
            logger.warning("stripe_webhook_rejected")
            return None

        return WebhookEvent(type=event["type"], intent_id=event["data"]["object"]["id"])
