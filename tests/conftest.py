"""
Shared test fixtures.

Store-backed tests use the real ORM models and repositories against a
file-backed SQLite database (via aiosqlite), one file per test.  A file
rather than ``:memory:`` so every session gets its own connection and
concurrent dispatches genuinely contend for SQLite's write lock.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
import pytest
import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import create_async_engine

from src.domain.entities import Location, RideRequest
from src.domain.enums import BookingStatus
from src.infrastructure.database import Base, create_session_factory
from src.infrastructure.models import (
    BookingModel,
    RideModel,
    UserModel,
    VehicleModel,
)

T0 = datetime(2023, 10, 27, 10, 0, tzinfo=timezone.utc)

# Bangalore city centre -> Kempegowda airport
CENTRE = (12.9716, 77.5946)
AIRPORT = (13.1986, 77.7066)


def make_request(
    request_id: int,
    pickup: tuple[float, float] = CENTRE,
    dropoff: tuple[float, float] = AIRPORT,
    minutes: float = 0,
    passengers: int = 1,
) -> RideRequest:
    return RideRequest(
        id=request_id,
        user_id=request_id,
        pickup=Location(*pickup),
        dropoff=Location(*dropoff),
        pickup_time=T0 + timedelta(minutes=minutes),
        passengers=passengers,
    )


class Store:
    """Seeds and inspects the test database, one short session per call."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def add_user(self, name: str = "Alice", email: str | None = None) -> int:
        async with self.session_factory() as session:
            user = UserModel(name=name, email=email or f"{name.lower()}@example.com")
            session.add(user)
            await session.commit()
            return user.id

    async def add_vehicles(self, count: int = 1) -> list[int]:
        async with self.session_factory() as session:
            vehicles = [
                VehicleModel(
                    capacity=3,
                    current_lat=CENTRE[0],
                    current_lng=CENTRE[1],
                    is_available=True,
                )
                for _ in range(count)
            ]
            session.add_all(vehicles)
            await session.commit()
            return [v.id for v in vehicles]

    async def add_booking(
        self,
        user_id: int = 1,
        pickup: tuple[float, float] = CENTRE,
        dropoff: tuple[float, float] = AIRPORT,
        minutes: float = 0,
        passengers: int = 1,
    ) -> BookingModel:
        async with self.session_factory() as session:
            booking = BookingModel(
                user_id=user_id,
                pickup_lat=pickup[0],
                pickup_lng=pickup[1],
                dropoff_lat=dropoff[0],
                dropoff_lng=dropoff[1],
                pickup_time=T0 + timedelta(minutes=minutes),
                passengers=passengers,
                status=BookingStatus.PENDING,
                fare=60,
            )
            session.add(booking)
            await session.commit()
            return booking

    async def booking(self, booking_id: int) -> BookingModel:
        async with self.session_factory() as session:
            return await session.get(BookingModel, booking_id)

    async def vehicle(self, vehicle_id: int) -> VehicleModel:
        async with self.session_factory() as session:
            return await session.get(VehicleModel, vehicle_id)

    async def rides(self) -> list[RideModel]:
        async with self.session_factory() as session:
            result = await session.execute(select(RideModel).order_by(RideModel.id))
            return list(result.scalars().all())


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def engine(tmp_path):
    """Create tables in a fresh SQLite file, dispose afterwards."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'pooling.db'}", echo=False
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def store(session_factory) -> Store:
    return Store(session_factory)
