"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from src.domain.enums import BookingStatus, DispatchFailureReason, RideStatus


# ── Requests ──────────────────────────────────────────────────────────


class Coordinate(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class BookingCreateRequest(BaseModel):
    user_id: int
    pickup: Coordinate
    dropoff: Coordinate
    pickup_time: Optional[datetime] = Field(
        None, description="Requested pickup time; defaults to now (UTC)."
    )
    passengers: int = Field(1, ge=1, description="At most the configured vehicle capacity.")
    idempotency_key: Optional[str] = Field(
        None,
        max_length=64,
        description="Client-generated UUID to prevent double-booking on retries.",
    )


# ── Responses ─────────────────────────────────────────────────────────


class BookingResponse(BaseModel):
    id: int
    user_id: int
    pickup_lat: float
    pickup_lng: float
    dropoff_lat: float
    dropoff_lng: float
    pickup_time: datetime
    passengers: int
    status: BookingStatus
    fare: int
    ride_id: Optional[int] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class BookingCreatedResponse(BaseModel):
    booking_id: int
    estimated_price: int
    distance_km: float
    status: BookingStatus


class MatchedRide(BaseModel):
    ride_id: int
    vehicle_id: int
    bookings: list[int]


class UnmatchedGroup(BaseModel):
    bookings: list[int]
    reason: DispatchFailureReason
    detail: str = ""


class MatchingResponse(BaseModel):
    message: str
    pending: int = 0
    matches_found: int = 0
    details: list[MatchedRide] = []
    unmatched: list[UnmatchedGroup] = []


class RideResponse(BaseModel):
    id: int
    vehicle_id: int
    status: RideStatus
    total_distance: float
    bookings: list[BookingResponse] = []


class HealthResponse(BaseModel):
    status: str = "ok"
