"""
Concurrency tests: many guests racing for the same dates.

Each simulated request gets its own session (as separate HTTP requests
would) while sharing the process-wide listing lock and payment gateway.
"""

import asyncio
from datetime import date, timedelta
from itertools import combinations

import pytest
from sqlalchemy import select

from stayhub.core.exceptions import Unavailable
from stayhub.core.security import Principal
from stayhub.models.booking import Booking
from stayhub.services.availability_service import ranges_overlap

from conftest import GUEST_ID, LISTING_100, LISTING_150, OTHER_GUEST_ID


async def attempt(database, make_coordinator, principal, listing_id, check_in, check_out) -> str:
    async with database.session() as session:
        coordinator = make_coordinator(session)
        try:
            await coordinator.create_booking(principal, listing_id, check_in, check_out, guests=1)
            return "success"
        except Unavailable:
            # Conflict is a subclass and reported the same way
            return "unavailable"


async def active_bookings(database, listing_id):
    async with database.session() as session:
        result = await session.execute(
            select(Booking).where(
                Booking.listing_id == listing_id,
                Booking.status.in_(["PENDING", "CONFIRMED"]),
            )
        )
        return list(result.scalars().all())


@pytest.mark.asyncio
async def test_fifty_concurrent_identical_requests_one_wins(database, make_coordinator, gateway, listing_lock):
    """50 simultaneous requests for the same dates: exactly one booking is created."""
    principals = [Principal(GUEST_ID if i % 2 else OTHER_GUEST_ID) for i in range(50)]

    results = await asyncio.gather(*[
        attempt(database, make_coordinator, p, LISTING_100, date(2024, 6, 1), date(2024, 6, 5))
        for p in principals
    ])

    assert results.count("success") == 1
    assert results.count("unavailable") == 49
    assert len(await active_bookings(database, LISTING_100)) == 1
    # Losers never reached the gateway
    assert len(gateway.created) == 1
    assert listing_lock.active_listings() == 0


@pytest.mark.asyncio
async def test_concurrent_shifted_ranges_stay_disjoint(database, make_coordinator):
    """Overlapping but not identical ranges: winners never overlap each other."""
    start = date(2024, 8, 1)
    requests = [
        (start + timedelta(days=i % 10), start + timedelta(days=i % 10 + 3))
        for i in range(40)
    ]

    results = await asyncio.gather(*[
        attempt(database, make_coordinator, Principal(GUEST_ID), LISTING_100, check_in, check_out)
        for check_in, check_out in requests
    ])

    bookings = await active_bookings(database, LISTING_100)
    assert len(bookings) == results.count("success")
    assert len(bookings) >= 1
    for a, b in combinations(bookings, 2):
        assert not ranges_overlap(a.check_in, a.check_out, b.check_in, b.check_out)


@pytest.mark.asyncio
async def test_different_listings_do_not_block_each_other(database, make_coordinator):
    results = await asyncio.gather(
        attempt(database, make_coordinator, Principal(GUEST_ID), LISTING_100, date(2024, 6, 1), date(2024, 6, 5)),
        attempt(database, make_coordinator, Principal(GUEST_ID), LISTING_150, date(2024, 6, 1), date(2024, 6, 5)),
    )
    assert results == ["success", "success"]
