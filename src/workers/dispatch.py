"""
Dispatch Coordinator
====================

Turns each ``MatchedGroup`` into a confirmed ride, exactly once, even when
several matching runs (threads, workers, processes) race on the same
vehicles and bookings.

Unit of work per group (one transaction)
----------------------------------------
1. Pick *any* available vehicle.                  -> ``NoVehicleAvailable``
2. ``UPDATE vehicles SET is_available = false
   WHERE id = :id AND is_available = true``      -> 0 rows: ``VehicleClaimLost``
3. ``INSERT`` the ride.
4. ``UPDATE bookings SET status = CONFIRMED, ride_id = :ride
   WHERE id IN (...) AND status = PENDING``       -> short count:
                                                     ``BookingsAlreadyConfirmed``
5. ``COMMIT``.

Steps 1-4 run under ``timeout_seconds``; expiry rolls back and reports
``TIMED_OUT``.  The COMMIT itself is not bounded, so a group reported as
confirmed or timed out really is in that state.

Any exception inside the block rolls the whole transaction back, so a
vehicle is never left claimed without a ride and a ride never exists
without its bookings.  Step 2 is optimistic: no row lock is held between
the lookup and the claim.

Failure isolation
-----------------
Errors are caught per group and turned into a ``DispatchOutcome``; the
next group is still attempted.  Nothing is retried within a run.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.domain.entities import MatchedGroup
from src.domain.enums import DispatchFailureReason
from src.infrastructure.repositories import (
    BookingRepository,
    RideRepository,
    VehicleRepository,
)

logger = logging.getLogger(__name__)


class DispatchError(Exception):
    """A group could not be committed; its bookings stay PENDING."""

    reason = DispatchFailureReason.STORE_ERROR


class NoVehicleAvailable(DispatchError):
    reason = DispatchFailureReason.NO_VEHICLE_AVAILABLE


class VehicleClaimLost(DispatchError):
    reason = DispatchFailureReason.VEHICLE_CLAIM_LOST


class BookingsAlreadyConfirmed(DispatchError):
    reason = DispatchFailureReason.BOOKINGS_ALREADY_CONFIRMED


@dataclass(frozen=True)
class DispatchOutcome:
    booking_ids: tuple[int, ...]
    ride_id: Optional[int] = None
    vehicle_id: Optional[int] = None
    failure: Optional[DispatchFailureReason] = None
    detail: str = ""

    @property
    def succeeded(self) -> bool:
        return self.failure is None


class DispatchCoordinator:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        timeout_seconds: float | None = 5.0,
    ):
        self.session_factory = session_factory
        self.timeout_seconds = timeout_seconds

    async def dispatch_all(
        self, groups: Iterable[MatchedGroup]
    ) -> list[DispatchOutcome]:
        """Commit groups one after another; one outcome per non-empty group."""
        outcomes: list[DispatchOutcome] = []
        for group in groups:
            if not group.requests:
                continue
            outcomes.append(await self.dispatch(group))
        return outcomes

    async def dispatch(self, group: MatchedGroup) -> DispatchOutcome:
        booking_ids = tuple(group.booking_ids)
        try:
            ride_id, vehicle_id = await self._commit_group(group)
        except DispatchError as exc:
            logger.warning(
                "Group %s left pending: %s (%s)",
                list(booking_ids), exc.reason.value, exc,
            )
            return DispatchOutcome(
                booking_ids, failure=exc.reason, detail=str(exc)
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Group %s left pending: staging exceeded %.1fs",
                list(booking_ids), self.timeout_seconds,
            )
            return DispatchOutcome(
                booking_ids,
                failure=DispatchFailureReason.TIMED_OUT,
                detail=f"deadline of {self.timeout_seconds}s exceeded",
            )
        except Exception as exc:
            logger.exception("Group %s left pending: store error", list(booking_ids))
            return DispatchOutcome(
                booking_ids,
                failure=DispatchFailureReason.STORE_ERROR,
                detail=str(exc),
            )

        logger.info(
            "Ride %d on vehicle %d confirmed bookings %s",
            ride_id, vehicle_id, list(booking_ids),
        )
        return DispatchOutcome(booking_ids, ride_id=ride_id, vehicle_id=vehicle_id)

    async def _commit_group(self, group: MatchedGroup) -> tuple[int, int]:
        async with self.session_factory() as session:
            try:
                ride_id, vehicle_id = await asyncio.wait_for(
                    self._stage_group(session, group),
                    timeout=self.timeout_seconds,
                )
            except Exception:
                await session.rollback()
                raise
            # COMMIT is not bounded by the deadline
            await session.commit()
        return ride_id, vehicle_id

    async def _stage_group(
        self, session: AsyncSession, group: MatchedGroup
    ) -> tuple[int, int]:
        booking_ids = group.booking_ids
        vehicles = VehicleRepository(session)

        vehicle = await vehicles.get_any_available()
        if vehicle is None:
            raise NoVehicleAvailable("no vehicle is marked available")

        if not await vehicles.claim(vehicle.id):
            raise VehicleClaimLost(
                f"vehicle {vehicle.id} was claimed by another run"
            )

        ride = await RideRepository(session).create_ride(
            vehicle_id=vehicle.id,
            total_distance=group.reference_distance_km,
        )

        confirmed = await BookingRepository(session).confirm_pending(
            booking_ids, ride.id
        )
        if confirmed != len(booking_ids):
            raise BookingsAlreadyConfirmed(
                f"only {confirmed} of {len(booking_ids)} bookings "
                "were still pending"
            )

        return ride.id, vehicle.id
