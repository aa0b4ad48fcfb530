"""
Background sweeper for system-driven booking transitions.

- PENDING bookings whose payment never settled are cancelled after
  PENDING_BOOKING_TTL_MINUTES and their payment intents voided, which frees
  the dates for other guests.
- CONFIRMED bookings whose checkout date has passed become COMPLETED.
"""

import asyncio
from datetime import date, datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from stayhub.core.config import get_settings
from stayhub.core.exceptions import GatewayError
from stayhub.core.logging import get_logger
from stayhub.core.metrics import record_gateway_call, record_transition
from stayhub.db.base import utcnow
from stayhub.db.session import Database
from stayhub.domain.booking_state import BookingStatus
from stayhub.gateways.base import PaymentGateway
from stayhub.infrastructure.sql_store import SqlBookingStore
from stayhub.services.booking_service import utc_today

logger = get_logger(__name__)


async def expire_stale_pending(
    db: AsyncSession,
    gateway: PaymentGateway,
    now: datetime,
    ttl_minutes: int,
) -> int:
    """Cancel PENDING bookings created more than ttl_minutes before now. Returns how many."""
    store = SqlBookingStore(db)
    stale = await store.find_stale_pending(now - timedelta(minutes=ttl_minutes))

    expired = 0
    voidable: list[str] = []
    for booking in stale:
        updated = await store.update_status(
            booking.id, BookingStatus.CANCELLED.value, expected_status=BookingStatus.PENDING.value
        )
        if updated is None:
            # Settled or cancelled since we read it
            continue
        expired += 1
        record_transition(BookingStatus.PENDING.value, BookingStatus.CANCELLED.value, "sweeper")
        logger.info("pending_booking_expired", booking_id=updated.id, listing_id=updated.listing_id)
        if updated.payment_intent_id:
            voidable.append(updated.payment_intent_id)

    await db.commit()

    for intent_id in voidable:
        try:
            await gateway.cancel_intent(intent_id)
            record_gateway_call("cancel", ok=True)
        except GatewayError:
            record_gateway_call("cancel", ok=False)
            logger.warning("payment_intent_void_failed", payment_intent_id=intent_id)

    return expired


async def complete_finished_stays(db: AsyncSession, today: date) -> int:
    """Mark CONFIRMED bookings with check_out <= today as COMPLETED. Returns how many."""
    store = SqlBookingStore(db)
    finished = await store.find_finished_confirmed(today)

    completed = 0
    for booking in finished:
        updated = await store.update_status(
            booking.id, BookingStatus.COMPLETED.value, expected_status=BookingStatus.CONFIRMED.value
        )
        if updated is None:
            continue
        completed += 1
        record_transition(BookingStatus.CONFIRMED.value, BookingStatus.COMPLETED.value, "sweeper")

    await db.commit()
    if completed:
        logger.info("stays_completed", count=completed, today=str(today))
    return completed


async def run_sweep(database: Database, gateway: PaymentGateway) -> tuple[int, int]:
    settings = get_settings()
    async with database.session() as db:
        expired = await expire_stale_pending(db, gateway, utcnow(), settings.PENDING_BOOKING_TTL_MINUTES)
    async with database.session() as db:
        completed = await complete_finished_stays(db, utc_today())
    return expired, completed


async def run_booking_sweeper(database: Database, gateway: PaymentGateway, interval_seconds: int) -> None:
    """Main background loop. Started and cancelled by the application lifespan."""
    logger.info("booking_sweeper_started", interval_seconds=interval_seconds)
    try:
        while True:
            try:
                expired, completed = await run_sweep(database, gateway)
                if expired or completed:
                    logger.info("booking_sweep_finished", expired=expired, completed=completed)
            except Exception as e:
                logger.error("booking_sweep_failed", error=str(e))

            await asyncio.sleep(interval_seconds)
    except asyncio.CancelledError:
        logger.info("booking_sweeper_stopped")
        raise
