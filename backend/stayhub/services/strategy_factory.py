"""
Strategy factory.
Builds the configured listing lock and payment gateway once per process.
"""

from typing import Optional

import redis.asyncio as redis

from stayhub.core.config import get_settings
from stayhub.gateways.base import GatewayType, PaymentGateway
from stayhub.gateways.manual import ManualGateway
from stayhub.gateways.stripe_gateway import StripeGateway
from stayhub.services.interfaces.listing_lock import ListingLock
from stayhub.services.interfaces.local_listing_lock import LocalListingLock
from stayhub.services.lock_service import RedisListingLock


def build_listing_lock(redis_client: Optional[redis.Redis] = None) -> ListingLock:
    """
    Listing lock selection:
    - local: asyncio locks, one API worker
    - redis: shared lock, several API workers (requires a Redis connection)

    Falls back to the local lock when Redis is requested but not connected.
    """
    settings = get_settings()

    if settings.LISTING_LOCK_BACKEND == "redis" and redis_client is not None:
        return RedisListingLock(
            redis_client,
            timeout=settings.LOCK_TIMEOUT_SECONDS,
            blocking_timeout=settings.LOCK_BLOCKING_TIMEOUT_SECONDS,
        )
    return LocalListingLock()


def build_payment_gateway() -> PaymentGateway:
    settings = get_settings()

    if settings.PAYMENT_GATEWAY == GatewayType.STRIPE.value:
        return StripeGateway()
    return ManualGateway()
