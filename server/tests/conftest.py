"""Test configuration and fixtures."""

import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./booking-core-test.db")
os.environ.setdefault("MIDTRANS_SERVER_KEY", "test-server-key")
os.environ.setdefault("BEARER_TOKEN_SECRET", "test-secret")

from datetime import timedelta  # noqa: E402
from typing import Optional  # noqa: E402

import jwt  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import select  # noqa: E402

from booking_core.core.actors import Actor, Role  # noqa: E402
from booking_core.core.config import settings  # noqa: E402
from booking_core.core.database import (  # noqa: E402
    Base,
    build_engine,
    build_session_factory,
    get_db,
    get_session_factory,
    utcnow,
)
from booking_core.core.dependencies import get_payment_provider  # noqa: E402
from booking_core.core.exceptions import UpstreamUnavailableError  # noqa: E402
from booking_core.models import DepartureGroup, TripType  # noqa: E402
from booking_core.schemas.booking import CreateBookingRequest, ParticipantInput  # noqa: E402
from booking_core.services.catalog_service import CatalogService  # noqa: E402
from booking_core.services.payment_gateway import compute_signature  # noqa: E402
from booking_core.services.payment_provider import ProviderStatus, ProviderTransaction  # noqa: E402

SERVER_KEY = settings.midtrans_server_key

CUSTOMER = Actor(user_id="customer-1", role=Role.CUSTOMER)
OTHER_CUSTOMER = Actor(user_id="customer-2", role=Role.CUSTOMER)
ADMIN = Actor(user_id="admin-1", role=Role.ADMIN)
GUIDE = Actor(user_id="guide-1", role=Role.TOUR_GUIDE)


class FakeProvider:
    """In-memory stand-in for the Midtrans client."""

    name = "midtrans"

    def __init__(self):
        self.created: list[dict] = []
        self.statuses: dict[str, ProviderStatus] = {}
        self.fail_create = False
        self.fail_status = False

    async def create_transaction(self, order_id, amount, customer, item, callback_url=None):
        if self.fail_create:
            raise UpstreamUnavailableError(detail="Midtrans request failed", provider=self.name)
        self.created.append({
            "order_id": order_id,
            "amount": amount,
            "customer": customer,
            "item": item,
            "callback_url": callback_url,
        })
        return ProviderTransaction(token=f"token-{order_id}", redirect_url=f"https://pay.test/{order_id}")

    async def get_status(self, order_id):
        if self.fail_status:
            raise UpstreamUnavailableError(detail="Midtrans request timed out", provider=self.name)
        return self.statuses.get(order_id)

    def settle(self, order_id: str, transaction_status: str = "settlement", fraud_status: Optional[str] = None):
        self.statuses[order_id] = ProviderStatus(
            order_id=order_id,
            transaction_status=transaction_status,
            fraud_status=fraud_status,
            payment_type="bank_transfer",
        )


def make_token(actor: Actor) -> str:
    return jwt.encode({"sub": actor.user_id, "role": actor.role.value}, settings.bearer_token_secret, algorithm="HS256")


def auth_headers(actor: Actor) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(actor)}"}


def signed_notification(
    order_id: str,
    transaction_status: str = "settlement",
    gross_amount: str = "700000.00",
    status_code: str = "200",
    fraud_status: Optional[str] = None,
    server_key: str = SERVER_KEY,
) -> dict:
    """Notification body as the provider would post it."""
    payload = {
        "order_id": order_id,
        "status_code": status_code,
        "gross_amount": gross_amount,
        "signature_key": compute_signature(order_id, status_code, gross_amount, server_key),
        "transaction_status": transaction_status,
        "payment_type": "bank_transfer",
        "transaction_id": f"tx-{order_id}",
    }
    if fraud_status is not None:
        payload["fraud_status"] = fraud_status
    return payload


def booking_request(departure_id, count: int = 1, group_id=None, prefix: str = "Traveller") -> CreateBookingRequest:
    return CreateBookingRequest(
        departure_id=departure_id,
        group_id=group_id,
        participants=[
            ParticipantInput(full_name=f"{prefix} {i}", email=f"traveller{i}@example.com", phone="0812000000")
            for i in range(count)
        ],
    )


@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path):
    """
    File-backed SQLite engine.

    A file (not :memory:) so that concurrent sessions get their own
    connections and contend for the write lock like real clients.
    """
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")

    # Create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return build_session_factory(test_engine)


@pytest_asyncio.fixture(scope="function")
async def test_session(session_factory):
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest_asyncio.fixture(scope="function")
async def open_departure(session_factory):
    """Open trip departure: 15 seats at 350,000 IDR, thirty days out."""
    async with session_factory() as session:
        catalog = CatalogService(session)
        package = await catalog.create_package("Bromo Sunrise", "bromo-sunrise", TripType.OPEN_TRIP)
        return await catalog.create_departure(
            package_id=package.id,
            departure_date=utcnow() + timedelta(days=30),
            price_per_person=350_000,
            max_participants=15,
        )


@pytest_asyncio.fixture(scope="function")
async def private_departure(session_factory):
    """Private trip departure with two groups."""
    async with session_factory() as session:
        catalog = CatalogService(session)
        package = await catalog.create_package("Komodo Sailing", "komodo-sailing", TripType.PRIVATE_TRIP)
        departure = await catalog.create_departure(
            package_id=package.id,
            departure_date=utcnow() + timedelta(days=45),
        )
        await catalog.add_group(departure.id, group_number=1, price=12_000_000, max_participants=6)
        await catalog.add_group(departure.id, group_number=2, price=18_000_000, max_participants=10)
        return departure


@pytest_asyncio.fixture(scope="function")
async def private_groups(session_factory, private_departure):

    async with session_factory() as session:
        result = await session.execute(
            select(DepartureGroup)
            .where(DepartureGroup.departure_id == private_departure.id)
            .order_by(DepartureGroup.group_number)
        )
        groups = list(result.scalars())
        await session.commit()
        return groups


@pytest_asyncio.fixture(scope="function")
async def test_app(session_factory, fake_provider):
    """Create a test FastAPI application bound to the test database."""
    from booking_core.main import create_app

    app = create_app()

    # Override database dependencies
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_payment_provider] = lambda: fake_provider

    yield app

    # Clean up
    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def test_client(test_app):
    """Create a test HTTP client."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
