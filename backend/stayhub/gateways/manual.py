"""
Manual payment gateway for development and offline settlement.

Intents never leave the process; an operator (or a test) settles them by
posting a webhook signed with the application secret.
"""

import hashlib
import hmac
import json
import uuid
from typing import Optional

from stayhub.core.config import get_settings
from stayhub.core.logging import get_logger
from stayhub.gateways.base import GatewayType, PaymentGateway, PaymentIntent, WebhookEvent

logger = get_logger(__name__)


def sign_manual_payload(payload: bytes, secret: Optional[str] = None) -> str:
    key = (secret or get_settings().SECRET_KEY).encode("utf-8")
    return hmac.new(key, payload, hashlib.sha256).hexdigest()


class ManualGateway(PaymentGateway):
    def __init__(self, secret: Optional[str] = None):
        self.secret = secret

    @property
    def gateway_type(self) -> GatewayType:
        return GatewayType.MANUAL

    async def create_intent(self, amount: int, currency: str, metadata: dict[str, str]) -> PaymentIntent:
        intent_id = f"manual_{uuid.uuid4().hex}"
        logger.info("manual_intent_created", intent_id=intent_id, amount=amount, currency=currency)
        return PaymentIntent(intent_id=intent_id, client_token=f"{intent_id}_secret")

    async def cancel_intent(self, intent_id: str) -> None:
        logger.info("manual_intent_voided", intent_id=intent_id)

    def parse_webhook(self, payload: bytes, signature: Optional[str]) -> Optional[WebhookEvent]:
        if not signature or not hmac.compare_digest(sign_manual_payload(payload, self.secret), signature):
            return None
        try:
            body = json.loads(payload)
            return WebhookEvent(type=body["type"], intent_id=body["intent_id"])
        except (ValueError, KeyError, TypeError):
            return None
