"""
Pytest fixtures for test database, client, payment gateway and authentication.

Every test gets its own file-backed SQLite database (shared by all sessions
and connections of that test), seeded with one host, two guests and two
listings.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from stayhub.core.exceptions import GatewayError
from stayhub.core.security import create_access_token
from stayhub.db.base import Base
from stayhub.db.session import Database
from stayhub.gateways.base import PaymentIntent
from stayhub.gateways.manual import ManualGateway
from stayhub.infrastructure.redis_client import RedisClient
from stayhub.main import app
from stayhub.models import Booking, Listing, User
from stayhub.services.booking_service import BookingCoordinator, utc_today
from stayhub.services.interfaces.local_listing_lock import LocalListingLock

# Every date in the service tests lies after this "today"
FIXED_TODAY = date(2024, 1, 1)

HOST_ID = "host-1"
GUEST_ID = "guest-1"
OTHER_GUEST_ID = "guest-2"
LISTING_100 = "listing-100"  # $100/night, up to 4 guests
LISTING_150 = "listing-150"  # $150/night, up to 2 guests

WEBHOOK_SECRET = "test-webhook-secret"


class ScriptedGateway(ManualGateway):
    """Manual gateway that records created and voided intents and can be told to fail."""

    def __init__(self):
        super().__init__(secret=WEBHOOK_SECRET)
        self.fail_create = False
        self.fail_cancel = False
        self.created: list[PaymentIntent] = []
        self.cancelled: set[str] = set()

    async def create_intent(self, amount: int, currency: str, metadata: dict[str, str]) -> PaymentIntent:
        if self.fail_create:
            raise GatewayError()
        intent = await super().create_intent(amount, currency, metadata)
        self.created.append(intent)
        return intent

    async def cancel_intent(self, intent_id: str) -> None:
        if self.fail_cancel:
            raise GatewayError()
        await super().cancel_intent(intent_id)
        self.cancelled.add(intent_id)


@pytest_asyncio.fixture(scope="function")
async def database(tmp_path) -> AsyncGenerator[Database, None]:
    """Create tables in a fresh SQLite file and seed users and listings."""
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'stayhub_test.db'}")
    db.connect()
    async with db.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with db.session() as session:
        session.add_all([
            User(id=HOST_ID, email="host@example.com", name="Hannah Host", is_host=True),
            User(id=GUEST_ID, email="guest@example.com", name="Gus Guest"),
            User(id=OTHER_GUEST_ID, email="other@example.com", name="Olive Other"),
        ])
        await session.flush()
        session.add_all([
            Listing(
                id=LISTING_100,
                host_id=HOST_ID,
                title="Harbour Loft",
                location="Lisbon",
                price=Decimal("100.00"),
                max_guests=4,
            ),
            Listing(
                id=LISTING_150,
                host_id=HOST_ID,
                title="Garden Cottage",
                location="Porto",
                price=Decimal("150.00"),
                max_guests=2,
            ),
        ])
        await session.commit()

    yield db

    await db.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(database: Database) -> AsyncGenerator[AsyncSession, None]:
    async with database.session() as session:
        yield session


@pytest.fixture
def gateway() -> ScriptedGateway:
    return ScriptedGateway()


@pytest.fixture
def listing_lock() -> LocalListingLock:
    return LocalListingLock()


@pytest.fixture
def make_coordinator(gateway, listing_lock):
    """Build a coordinator on a given session with the clock pinned to FIXED_TODAY."""

    def _make(session: AsyncSession, today: date = FIXED_TODAY, **kwargs) -> BookingCoordinator:
        return BookingCoordinator(session, gateway, listing_lock, today=lambda: today, **kwargs)

    return _make


@pytest.fixture
def coordinator(db_session, make_coordinator) -> BookingCoordinator:
    return make_coordinator(db_session)


async def add_booking(
    session: AsyncSession,
    listing_id: str,
    check_in: date,
    check_out: date,
    status: str = "CONFIRMED",
    user_id: str = GUEST_ID,
    payment_intent_id: Optional[str] = None,
) -> Booking:
    """Insert a booking directly, bypassing the coordinator."""
    booking = Booking(
        listing_id=listing_id,
        user_id=user_id,
        check_in=check_in,
        check_out=check_out,
        guests=1,
        total_price=Decimal("100.00") * (check_out - check_in).days,
        currency="usd",
        payment_intent_id=payment_intent_id,
        status=status,
    )
    session.add(booking)
    await session.commit()
    return booking


@pytest_asyncio.fixture(scope="function")
async def client(database: Database, gateway, listing_lock) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app with the collaborators the lifespan would create."""
    app.state.database = database
    app.state.listing_lock = listing_lock
    app.state.payment_gateway = gateway
    app.state.redis = RedisClient("redis://localhost:6379/0", enabled=False)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac



def bearer(user_id: str, is_host: bool = False) -> dict:
    token = create_access_token(data={"sub": user_id, "is_host": is_host})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def guest_headers() -> dict:
    return bearer(GUEST_ID)


@pytest.fixture
def other_guest_headers() -> dict:
    return bearer(OTHER_GUEST_ID)


@pytest.fixture
def host_headers() -> dict:
    return bearer(HOST_ID, is_host=True)


@pytest.fixture
def future_dates():
    """Relative dates for API tests, which run against the real clock."""
    def _dates(offset: int, nights: int) -> tuple[str, str]:
        start = utc_today() + timedelta(days=offset)
        return start.isoformat(), (start + timedelta(days=nights)).isoformat()

    return _dates
