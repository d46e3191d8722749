"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.  None of them commit; the caller owns the
transaction boundary.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import BookingModel, RideModel, UserModel, VehicleModel
from src.domain.entities import Location, RideRequest
from src.domain.enums import BookingStatus, RideStatus, statuses_leading_to


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_ride_request(booking: BookingModel) -> RideRequest:
    return RideRequest(
        id=booking.id,
        user_id=booking.user_id,
        pickup=Location(booking.pickup_lat, booking.pickup_lng),
        dropoff=Location(booking.dropoff_lat, booking.dropoff_lng),
        pickup_time=booking.pickup_time,
        passengers=booking.passengers,
    )


class BookingRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_booking(
        self,
        *,
        user_id: int,
        pickup_lat: float,
        pickup_lng: float,
        dropoff_lat: float,
        dropoff_lng: float,
        pickup_time: datetime,
        fare: int,
        passengers: int = 1,
        idempotency_key: str | None = None,
    ) -> BookingModel:
        booking = BookingModel(
            user_id=user_id,
            pickup_lat=pickup_lat,
            pickup_lng=pickup_lng,
            dropoff_lat=dropoff_lat,
            dropoff_lng=dropoff_lng,
            pickup_time=_as_utc(pickup_time),
            passengers=passengers,
            fare=fare,
            idempotency_key=idempotency_key,
            status=BookingStatus.PENDING,
        )
        self.session.add(booking)
        await self.session.flush()
        return booking

    async def get_by_id(self, booking_id: int) -> Optional[BookingModel]:
        return await self.session.get(BookingModel, booking_id)

    async def get_by_idempotency_key(self, key: str) -> Optional[BookingModel]:
        result = await self.session.execute(
            select(BookingModel).where(BookingModel.idempotency_key == key)
        )
        return result.scalar_one_or_none()

    async def get_pending(self) -> list[BookingModel]:
        result = await self.session.execute(
            select(BookingModel).where(
                BookingModel.status == BookingStatus.PENDING
            )
        )
        return list(result.scalars().all())

    async def get_for_ride(self, ride_id: int) -> list[BookingModel]:
        result = await self.session.execute(
            select(BookingModel)
            .where(BookingModel.ride_id == ride_id)
            .order_by(BookingModel.id)
        )
        return list(result.scalars().all())

    async def count_pending(self) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(BookingModel)
            .where(BookingModel.status == BookingStatus.PENDING)
        )
        return result.scalar() or 0

    async def confirm_pending(
        self, booking_ids: Sequence[int], ride_id: int
    ) -> int:
        """Move *booking_ids* to CONFIRMED.  Returns rows changed.

        Only rows whose current status may legally become CONFIRMED are
        touched, so a short count means another run confirmed some of
        them first.
        """
        result = await self.session.execute(
            update(BookingModel)
            .where(
                BookingModel.id.in_(list(booking_ids)),
                BookingModel.status.in_(
                    list(statuses_leading_to(BookingStatus.CONFIRMED))
                ),
            )
            .values(status=BookingStatus.CONFIRMED, ride_id=ride_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount


class VehicleRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_any_available(self) -> Optional[VehicleModel]:
        # Arbitrary pick; no proximity ranking.
        result = await self.session.execute(
            select(VehicleModel)
            .where(VehicleModel.is_available.is_(True))
            .limit(1)
        )
        return result.scalars().first()

    async def claim(self, vehicle_id: int) -> bool:
        """Compare-and-set ``is_available`` true -> false.

        Returns False when the vehicle was already claimed, i.e. the
        guarded UPDATE matched zero rows.
        """
        result = await self.session.execute(
            update(VehicleModel)
            .where(
                VehicleModel.id == vehicle_id,
                VehicleModel.is_available.is_(True),
            )
            .values(is_available=False)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def count_available(self) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(VehicleModel)
            .where(VehicleModel.is_available.is_(True))
        )
        return result.scalar() or 0


class RideRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_ride(
        self, *, vehicle_id: int, total_distance: float
    ) -> RideModel:
        ride = RideModel(
            vehicle_id=vehicle_id,
            status=RideStatus.MATCHED,
            total_distance=total_distance,
        )
        self.session.add(ride)
        await self.session.flush()
        return ride

    async def list_rides(self, limit: int = 100) -> list[RideModel]:
        result = await self.session.execute(
            select(RideModel).order_by(RideModel.id.desc()).limit(limit)
        )
        return list(result.scalars().all())


class UserRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, user_id: int) -> Optional[UserModel]:
        return await self.session.get(UserModel, user_id)
