"""
Payment gateway interface.

The booking core needs exactly three things from a provider: create an
intent for an amount (returning a client-side confirmation token), void an
intent that will never be used, and turn a settlement webhook into an event.
Card data never passes through this service.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class GatewayType(str, Enum):
    STRIPE = "stripe"
    MANUAL = "manual"


@dataclass(frozen=True)
class PaymentIntent:
    intent_id: str
    client_token: str


@dataclass(frozen=True)
class WebhookEvent:
    type: str
    intent_id: str

    @property
    def is_settlement(self) -> bool:
        return self.type == "payment_intent.succeeded"


class PaymentGateway(ABC):
    """Abstract base class for payment gateways."""

    # Header carrying the webhook signature
    signature_header: str = "X-Signature"

    @property
    @abstractmethod
    def gateway_type(self) -> GatewayType:
        pass

    @abstractmethod
    async def create_intent(self, amount: int, currency: str, metadata: dict[str, str]) -> PaymentIntent:
        """
        Create a payment intent.

        Args:
            amount: Amount in the smallest currency unit (cents)
            currency: ISO currency code
            metadata: listing_id / user_id / dates, for auditability

        Raises:
            GatewayError: the provider rejected the request or is unreachable
        """
        pass

    @abstractmethod
    async def cancel_intent(self, intent_id: str) -> None:
        """
        Void an intent that no booking will use.

        Raises:
            GatewayError: the provider could not cancel it (it will still expire)
        """
        pass

    @abstractmethod
    def parse_webhook(self, payload: bytes, signature: Optional[str]) -> Optional[WebhookEvent]:
        """Verify the webhook signature. Returns None if the payload is not authentic."""
        pass
