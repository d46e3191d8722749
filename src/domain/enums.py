"""Domain enumerations and state-transition rules."""

import enum


class BookingStatus(str, enum.Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"


# State machine: maps current status -> set of valid next statuses
BOOKING_TRANSITIONS: dict[BookingStatus, set[BookingStatus]] = {
    BookingStatus.PENDING: {BookingStatus.CONFIRMED},
    BookingStatus.CONFIRMED: set(),
}


def statuses_leading_to(target: BookingStatus) -> set[BookingStatus]:
    """Statuses from which *target* is a legal next status."""
    return {src for src, nxt in BOOKING_TRANSITIONS.items() if target in nxt}


class RideStatus(str, enum.Enum):
    MATCHED = "MATCHED"


class DispatchFailureReason(str, enum.Enum):
    NO_VEHICLE_AVAILABLE = "NO_VEHICLE_AVAILABLE"
    VEHICLE_CLAIM_LOST = "VEHICLE_CLAIM_LOST"
    BOOKINGS_ALREADY_CONFIRMED = "BOOKINGS_ALREADY_CONFIRMED"
    TIMED_OUT = "TIMED_OUT"
    STORE_ERROR = "STORE_ERROR"
