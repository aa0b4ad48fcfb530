"""
Tests for the booking coordinator: reservation, pricing, payment intents,
cancellation and settlement.
"""

import asyncio
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select, text

from stayhub.core.exceptions import (
    AlreadyCancelled,
    Conflict,
    GatewayError,
    InvalidRange,
    InvalidTransition,
    NotFound,
    PriceMismatch,
    Unauthorized,
    Unavailable,
)
from stayhub.core.security import Principal
from stayhub.infrastructure.sql_store import SqlBookingStore
from stayhub.models.booking import Booking

from conftest import GUEST_ID, HOST_ID, LISTING_100, LISTING_150, OTHER_GUEST_ID, add_booking

guest = Principal(GUEST_ID)
other_guest = Principal(OTHER_GUEST_ID)
host = Principal(HOST_ID, is_host=True)


async def count_bookings(session) -> int:
    result = await session.execute(select(func.count()).select_from(Booking))
    return result.scalar_one()


class RacingBookingStore(SqlBookingStore):
    """Insert fails as if another worker committed the same dates first."""

    async def insert(self, booking):
        raise Conflict()


class CancelledBookingStore(SqlBookingStore):
    """Insert is interrupted by task cancellation."""

    async def insert(self, booking):
        raise asyncio.CancelledError()


# ---------------------------------------------------------------------------
# create_booking
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_create_booking_is_pending_with_payment_intent(coordinator, gateway):
    booking, client_token = await coordinator.create_booking(
        guest, LISTING_150, date(2024, 7, 1), date(2024, 7, 4), guests=2
    )

    assert booking.status == "PENDING"
    assert booking.user_id == GUEST_ID
    assert booking.total_price == Decimal("450.00")
    assert booking.currency == "usd"
    assert booking.payment_intent_id == gateway.created[0].intent_id
    assert client_token == gateway.created[0].client_token


@pytest.mark.asyncio
async def test_submitted_total_matching_server_price_is_accepted(coordinator):
    booking, _ = await coordinator.create_booking(
        guest, LISTING_150, date(2024, 7, 1), date(2024, 7, 4), guests=1, submitted_total=Decimal("450")
    )
    assert booking.total_price == Decimal("450.00")


@pytest.mark.asyncio
async def test_submitted_total_mismatch_is_rejected(coordinator, gateway, db_session):
    with pytest.raises(PriceMismatch):
        await coordinator.create_booking(
            guest, LISTING_150, date(2024, 7, 1), date(2024, 7, 4), guests=1, submitted_total=Decimal("1.00")
        )
    assert gateway.created == []
    assert await count_bookings(db_session) == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("submitted", ["450.004", "449.995", "1e30"])
async def test_submitted_total_must_match_exactly(coordinator, db_session, submitted):
    with pytest.raises(PriceMismatch):
        await coordinator.create_booking(
            guest, LISTING_150, date(2024, 7, 1), date(2024, 7, 4), guests=1, submitted_total=Decimal(submitted)
        )
    assert await count_bookings(db_session) == 0


@pytest.mark.asyncio
async def test_back_to_back_bookings_both_succeed(coordinator):
    first, _ = await coordinator.create_booking(guest, LISTING_100, date(2024, 5, 7), date(2024, 5, 10), guests=1)
    second, _ = await coordinator.create_booking(
        other_guest, LISTING_100, date(2024, 5, 10), date(2024, 5, 12), guests=1
    )
    assert first.check_out == second.check_in


@pytest.mark.asyncio
async def test_overlapping_request_is_unavailable(coordinator, db_session, gateway):
    await add_booking(db_session, LISTING_100, date(2024, 6, 1), date(2024, 6, 5))

    with pytest.raises(Unavailable) as exc:
        await coordinator.create_booking(other_guest, LISTING_100, date(2024, 6, 3), date(2024, 6, 7), guests=1)
    assert exc.value.status_code == 409
    assert gateway.created == []

    booking, _ = await coordinator.create_booking(
        other_guest, LISTING_100, date(2024, 6, 5), date(2024, 6, 8), guests=1
    )
    assert booking.total_price == Decimal("300.00")


@pytest.mark.asyncio
async def test_cancelled_booking_frees_dates(coordinator, db_session):
    await add_booking(db_session, LISTING_100, date(2024, 6, 1), date(2024, 6, 5), status="CANCELLED")

    booking, _ = await coordinator.create_booking(guest, LISTING_100, date(2024, 6, 1), date(2024, 6, 5), guests=1)
    assert booking.status == "PENDING"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "check_in, check_out",
    [
        (date(2024, 6, 5), date(2024, 6, 5)),   # zero nights
        (date(2024, 6, 5), date(2024, 6, 1)),   # inverted
        (date(2023, 12, 30), date(2024, 1, 3)), # starts before today
    ],
)
async def test_invalid_range_is_rejected(coordinator, db_session, check_in, check_out):
    with pytest.raises(InvalidRange):
        await coordinator.create_booking(guest, LISTING_100, check_in, check_out, guests=1)
    assert await count_bookings(db_session) == 0


@pytest.mark.asyncio
async def test_check_in_today_is_allowed(coordinator):
    booking, _ = await coordinator.create_booking(guest, LISTING_100, date(2024, 1, 1), date(2024, 1, 2), guests=1)
    assert booking.nights == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("guests", [0, 3])
async def test_guest_count_outside_listing_capacity(coordinator, guests):
    with pytest.raises(InvalidRange):
        await coordinator.create_booking(guest, LISTING_150, date(2024, 7, 1), date(2024, 7, 4), guests=guests)


@pytest.mark.asyncio
async def test_unknown_listing(coordinator):
    with pytest.raises(NotFound):
        await coordinator.create_booking(guest, "missing", date(2024, 7, 1), date(2024, 7, 4), guests=1)


@pytest.mark.asyncio
async def test_gateway_failure_leaves_no_booking(coordinator, gateway, db_session):
    gateway.fail_create = True

    with pytest.raises(GatewayError) as exc:
        await coordinator.create_booking(guest, LISTING_100, date(2024, 6, 1), date(2024, 6, 5), guests=1)
    assert exc.value.status_code == 502
    assert await count_bookings(db_session) == 0

    # Dates are still free once the gateway recovers
    gateway.fail_create = False
    booking, _ = await coordinator.create_booking(guest, LISTING_100, date(2024, 6, 1), date(2024, 6, 5), guests=1)
    assert booking.status == "PENDING"


@pytest.mark.asyncio
async def test_lost_insert_race_voids_intent(db_session, make_coordinator, gateway):
    coordinator = make_coordinator(db_session, bookings=RacingBookingStore(db_session))

    with pytest.raises(Conflict):
        await coordinator.create_booking(guest, LISTING_100, date(2024, 6, 1), date(2024, 6, 5), guests=1)

    assert len(gateway.created) == 1
    assert gateway.created[0].intent_id in gateway.cancelled
    assert await count_bookings(db_session) == 0


@pytest.mark.asyncio
async def test_task_cancellation_during_insert_voids_intent(db_session, make_coordinator, gateway, listing_lock):
    coordinator = make_coordinator(db_session, bookings=CancelledBookingStore(db_session))

    with pytest.raises(asyncio.CancelledError):
        await coordinator.create_booking(guest, LISTING_100, date(2024, 6, 1), date(2024, 6, 5), guests=1)

    assert gateway.created[0].intent_id in gateway.cancelled
    assert listing_lock.active_listings() == 0


# ---------------------------------------------------------------------------
# cancel_booking
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_cancel_pending_booking_voids_intent(coordinator, gateway):
    booking, _ = await coordinator.create_booking(guest, LISTING_100, date(2024, 6, 1), date(2024, 6, 5), guests=1)

    cancelled = await coordinator.cancel_booking(guest, booking.id)

    assert cancelled.status == "CANCELLED"
    assert booking.payment_intent_id in gateway.cancelled


@pytest.mark.asyncio
async def test_cancel_twice_raises_already_cancelled(coordinator):
    booking, _ = await coordinator.create_booking(guest, LISTING_100, date(2024, 6, 1), date(2024, 6, 5), guests=1)
    await coordinator.cancel_booking(guest, booking.id)

    with pytest.raises(AlreadyCancelled):
        await coordinator.cancel_booking(guest, booking.id)


@pytest.mark.asyncio
async def test_cancel_other_users_booking(coordinator):
    booking, _ = await coordinator.create_booking(guest, LISTING_100, date(2024, 6, 1), date(2024, 6, 5), guests=1)

    with pytest.raises(Unauthorized):
        await coordinator.cancel_booking(other_guest, booking.id)


@pytest.mark.asyncio
async def test_cancel_unknown_booking(coordinator):
    with pytest.raises(NotFound):
        await coordinator.cancel_booking(guest, "no-such-booking")


@pytest.mark.asyncio
async def test_cancel_confirmed_booking_after_check_in_fails(db_session, make_coordinator):
    booking = await add_booking(db_session, LISTING_100, date(2024, 6, 1), date(2024, 6, 5), status="CONFIRMED")
    coordinator = make_coordinator(db_session, today=date(2024, 6, 2))

    with pytest.raises(InvalidTransition):
        await coordinator.cancel_booking(guest, booking.id)


@pytest.mark.asyncio
async def test_cancel_confirmed_booking_before_check_in(db_session, make_coordinator, gateway):
    booking = await add_booking(
        db_session, LISTING_100, date(2024, 6, 1), date(2024, 6, 5), status="CONFIRMED", payment_intent_id="pi_paid"
    )
    coordinator = make_coordinator(db_session, today=date(2024, 5, 20))

    cancelled = await coordinator.cancel_booking(guest, booking.id)

    assert cancelled.status == "CANCELLED"
    # Settled intents are refunded out of band, not voided
    assert "pi_paid" not in gateway.cancelled


@pytest.mark.asyncio
async def test_cancel_pending_booking_after_check_in_is_allowed(db_session, make_coordinator):
    booking = await add_booking(db_session, LISTING_100, date(2024, 6, 1), date(2024, 6, 5), status="PENDING")
    coordinator = make_coordinator(db_session, today=date(2024, 6, 3))

    cancelled = await coordinator.cancel_booking(guest, booking.id)
    assert cancelled.status == "CANCELLED"


# ---------------------------------------------------------------------------
# confirm_payment
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_confirm_payment_confirms_pending_booking(coordinator):
    booking, _ = await coordinator.create_booking(guest, LISTING_100, date(2024, 6, 1), date(2024, 6, 5), guests=1)

    confirmed = await coordinator.confirm_payment(booking.payment_intent_id)
    assert confirmed.status == "CONFIRMED"

    again = await coordinator.confirm_payment(booking.payment_intent_id)
    assert again.status == "CONFIRMED"


@pytest.mark.asyncio
async def test_settlement_after_cancellation_keeps_booking_cancelled(coordinator):
    booking, _ = await coordinator.create_booking(guest, LISTING_100, date(2024, 6, 1), date(2024, 6, 5), guests=1)
    await coordinator.cancel_booking(guest, booking.id)

    result = await coordinator.confirm_payment(booking.payment_intent_id)
    assert result.status == "CANCELLED"


@pytest.mark.asyncio
async def test_confirm_unknown_intent(coordinator):
    with pytest.raises(NotFound):
        await coordinator.confirm_payment("pi_unknown")


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_list_user_bookings_only_returns_own(coordinator):
    mine, _ = await coordinator.create_booking(guest, LISTING_100, date(2024, 6, 1), date(2024, 6, 5), guests=1)
    await coordinator.create_booking(other_guest, LISTING_150, date(2024, 6, 1), date(2024, 6, 5), guests=1)

    bookings = await coordinator.list_user_bookings(guest)

    assert [b.id for b in bookings] == [mine.id]
    assert bookings[0].listing.host.email == "host@example.com"


@pytest.mark.asyncio
async def test_list_host_bookings(coordinator):
    await coordinator.create_booking(guest, LISTING_100, date(2024, 6, 1), date(2024, 6, 5), guests=1)
    await coordinator.create_booking(other_guest, LISTING_150, date(2024, 6, 1), date(2024, 6, 5), guests=1)

    bookings = await coordinator.list_host_bookings(host)

    assert len(bookings) == 2
    assert {b.user.email for b in bookings} == {"guest@example.com", "other@example.com"}


@pytest.mark.asyncio
async def test_list_host_bookings_requires_host(coordinator):
    with pytest.raises(Unauthorized):
        await coordinator.list_host_bookings(guest)


@pytest.mark.asyncio
async def test_is_available(coordinator, db_session):
    await add_booking(db_session, LISTING_100, date(2024, 6, 1), date(2024, 6, 5))

    assert not await coordinator.is_available(LISTING_100, date(2024, 6, 4), date(2024, 6, 6))
    assert await coordinator.is_available(LISTING_100, date(2024, 6, 5), date(2024, 6, 6))
    with pytest.raises(NotFound):
        await coordinator.is_available("missing", date(2024, 6, 5), date(2024, 6, 6))


@pytest.mark.asyncio
async def test_unknown_principal_is_not_reported_as_unavailable(database, make_coordinator, gateway):
    async with database.session() as session:
        await session.execute(text("PRAGMA foreign_keys=ON"))
        coordinator = make_coordinator(session)

        with pytest.raises(NotFound) as exc:
            await coordinator.create_booking(
                Principal("not-mirrored-user"), LISTING_100, date(2024, 6, 1), date(2024, 6, 5), guests=1
            )
        assert not isinstance(exc.value, Unavailable)
        assert gateway.created[0].intent_id in gateway.cancelled
        assert await count_bookings(session) == 0
