"""
Pytest fixtures for test database, services, and authentication.

Each test gets its own SQLite database file, so concurrent sessions serialize
on the file lock the way competing transactions do on PostgreSQL. The booking
orchestrator talks to the inventory and payment routes of the same app through
httpx.ASGITransport; the external catalogs are replaced by a MockTransport.
"""

import os

os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("HOLD_SWEEPER_ENABLED", "false")
os.environ.setdefault("ENVIRONMENT", "test")

import re
from datetime import timedelta
from decimal import Decimal
from typing import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from railbook.main import app
from railbook.clients.registry import Collaborators, build_collaborators, get_collaborators
from railbook.core.config import Settings, get_settings
from railbook.core.security import create_access_token
from railbook.db.base import Base, utcnow
from railbook.db.session import dispose_engine, get_session_factory, init_engine
from railbook.models.booking import Booking
from railbook.models.payment import Payment
from railbook.models.seat import Seat, SeatHold, SeatStatus
from railbook.services.booking_orchestrator import BookingOrchestrator
from railbook.services.booking_store import BookingStore

USER_ID = "user-1"
OTHER_USER_ID = "user-2"
SCHEDULE_ID = 1
OTHER_SCHEDULE_ID = 2
PRICE = Decimal("45.50")

GOOD_CARD = {"card_number": "4242424242424242", "expiry_month": "12", "expiry_year": "2030", "cvc": "123"}
DECLINED_CARD = {**GOOD_CARD, "card_number": "4000000000000002"}
REFUND_FAILS_CARD = {**GOOD_CARD, "card_number": "4000000000005126"}


class FakeCatalog:
    """In-memory user and schedule catalogs served over httpx.MockTransport."""

    def __init__(self):
        self.users = {USER_ID, OTHER_USER_ID}
        self.schedules = {SCHEDULE_ID: PRICE, OTHER_SCHEDULE_ID: Decimal("12.00")}
        self.calls: list[str] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.calls.append(path)

        match = re.search(r"/users/([^/]+)$", path)
        if match:
            user_id = match.group(1)
            if user_id not in self.users:
                return httpx.Response(404, json={"detail": "User not found"})
            return httpx.Response(200, json={"id": user_id, "email": f"{user_id}@example.com", "role": "USER"})

        match = re.search(r"/schedules/(\d+)(/validate|/price)?$", path)
        if match:
            schedule_id = int(match.group(1))
            if schedule_id not in self.schedules:
                return httpx.Response(404, json={"detail": "Schedule not found"})
            if match.group(2) == "/validate":
                return httpx.Response(200, json={"id": schedule_id, "valid": True})
            if match.group(2) == "/price":
                return httpx.Response(200, json={"schedule_id": schedule_id, "price": str(self.schedules[schedule_id])})
            return httpx.Response(200, json={
                "id": schedule_id,
                "departure_station": {"name": "Yangon Central"},
                "arrival_station": {"name": "Mandalay"},
                "departure_time": "2026-11-01T08:00:00Z",
                "arrival_time": "2026-11-01T17:30:00Z",
                "train": {"train_number": "UP-5", "name": "Express 5 Up"},
            })

        return httpx.Response(404, json={"detail": "Not found"})


@pytest.fixture
def settings() -> Settings:
    return get_settings()


@pytest_asyncio.fixture(scope="function")
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Fresh database file per test, wired into the app's engine."""
    engine = init_engine(f"sqlite+aiosqlite:///{tmp_path / 'railbook.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield get_session_factory()

    await dispose_engine()


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def seats(session_factory) -> dict[str, Seat]:
    """Four seats on SCHEDULE_ID and one on OTHER_SCHEDULE_ID, keyed by seat number."""
    async with session_factory() as session:
        created = [
            Seat(schedule_id=SCHEDULE_ID, train_id=5, seat_number=number, status=SeatStatus.AVAILABLE)
            for number in ("A1", "A2", "A3", "A4")
        ]
        created.append(Seat(schedule_id=OTHER_SCHEDULE_ID, train_id=7, seat_number="B1", status=SeatStatus.AVAILABLE))
        session.add_all(created)
        await session.commit()
    return {seat.seat_number: seat for seat in created}


@pytest.fixture
def catalog() -> FakeCatalog:
    return FakeCatalog()


@pytest_asyncio.fixture
async def collaborators(session_factory, catalog, settings) -> AsyncGenerator[Collaborators, None]:
    app_transport = ASGITransport(app=app, raise_app_exceptions=False)
    catalog_transport = httpx.MockTransport(catalog.handler)
    registry = build_collaborators(
        settings,
        transports={
            "inventory": app_transport,
            "payment": app_transport,
            "schedule": catalog_transport,
            "user": catalog_transport,
        },
    )
    yield registry
    await registry.aclose()


@pytest_asyncio.fixture(scope="function")
async def client(collaborators) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app, with collaborators routed in-process."""
    app.dependency_overrides[get_collaborators] = lambda: collaborators

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def make_orchestrator(db_session, collaborators, settings):
    """Build an orchestrator on the test session, optionally with other settings."""

    def _make(**overrides) -> BookingOrchestrator:
        return BookingOrchestrator(
            store=BookingStore(db_session),
            inventory=collaborators.inventory,
            payments=collaborators.payments,
            schedules=collaborators.schedules,
            users=collaborators.users,
            settings=settings.model_copy(update=overrides),
        )

    return _make


@pytest.fixture
def auth_headers() -> dict:
    """Authorization headers with Bearer token."""
    return {"Authorization": f"Bearer {create_access_token(data={'sub': USER_ID})}"}


@pytest.fixture
def other_auth_headers() -> dict:
    return {"Authorization": f"Bearer {create_access_token(data={'sub': OTHER_USER_ID})}"}


@pytest.fixture
def internal_headers(settings) -> dict:
    return {"X-Internal-Token": settings.INTERNAL_API_TOKEN, "X-User-Id": USER_ID}


# Helpers for asserting on stored state from a fresh session


async def load_seat_statuses(session_factory, seat_ids) -> dict[str, SeatStatus]:
    async with session_factory() as session:
        result = await session.execute(select(Seat.id, Seat.status).where(Seat.id.in_(list(seat_ids))))
        return {seat_id: status for seat_id, status in result.all()}


async def load_holds(session_factory) -> list[SeatHold]:
    async with session_factory() as session:
        result = await session.execute(select(SeatHold))
        return list(result.scalars().all())


async def load_booking(session_factory, booking_id) -> Booking:
    async with session_factory() as session:
        return await session.get(Booking, booking_id)


async def load_payment(session_factory, booking_id) -> Payment:
    async with session_factory() as session:
        result = await session.execute(select(Payment).where(Payment.booking_id == booking_id))
        return result.scalar_one_or_none()


async def expire_holds(session_factory, hold_ids=None) -> None:
    """Backdate holds so the sweeper treats them as expired."""
    async with session_factory() as session:
        stmt = select(SeatHold)
        if hold_ids is not None:
            stmt = stmt.where(SeatHold.id.in_(list(hold_ids)))
        for hold in (await session.execute(stmt)).scalars():
            hold.expires_at = utcnow() - timedelta(minutes=1)
        await session.commit()
