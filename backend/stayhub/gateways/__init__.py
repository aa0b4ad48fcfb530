"""
Payment gateway adapters.
Business logic stays in the booking service; adapters only talk to the provider.
"""

from .base import GatewayType, PaymentGateway, PaymentIntent, WebhookEvent

__all__ = ["GatewayType", "PaymentGateway", "PaymentIntent", "WebhookEvent"]
