"""
Domain entities with business logic.

Patterns used
-------------
- **State Pattern** on ``Booking``: enforces the one-way lifecycle
  PENDING -> CONFIRMED.  A confirmed booking always carries its ride id.
- ``RideRequest`` / ``MatchedGroup`` are immutable snapshots handed to and
  returned by the grouping algorithm.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from .enums import BOOKING_TRANSITIONS, BookingStatus


class InvalidStateTransition(Exception):
    """Raised when a booking status change violates the state machine."""


# ── Value Objects ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class RideRequest:
    """A pending booking as seen by the grouping algorithm."""

    id: int
    user_id: int
    pickup: Location
    dropoff: Location
    pickup_time: datetime
    passengers: int = 1


@dataclass(frozen=True)
class MatchedGroup:
    requests: tuple[RideRequest, ...]
    # direct pickup -> dropoff distance of the first member
    reference_distance_km: float

    @property
    def booking_ids(self) -> list[int]:
        return [r.id for r in self.requests]

    @property
    def passengers(self) -> int:
        return sum(r.passengers for r in self.requests)

    def __len__(self) -> int:
        return len(self.requests)


# ── Entities ──────────────────────────────────────────────────────────


@dataclass
class Booking:
    id: Optional[int] = None
    user_id: int = 0
    pickup: Location = field(default_factory=lambda: Location(0, 0))
    dropoff: Location = field(default_factory=lambda: Location(0, 0))
    status: BookingStatus = BookingStatus.PENDING
    fare: int = 0
    passengers: int = 1
    ride_id: Optional[int] = None

    def transition_to(self, new_status: BookingStatus) -> None:
        """Move to *new_status* if the transition is legal, else raise."""
        allowed = BOOKING_TRANSITIONS.get(self.status, set())
        if new_status not in allowed:
            raise InvalidStateTransition(
                f"Cannot transition from {self.status} to {new_status}"
            )
        self.status = new_status

    def confirm(self, ride_id: int) -> None:
        self.transition_to(BookingStatus.CONFIRMED)
        self.ride_id = ride_id

