"""
Booking endpoints
=================

POST /api/v1/bookings              -- price and store a PENDING booking (201)
GET  /api/v1/bookings/{booking_id} -- status, fare and assigned ride
POST /api/v1/trigger-matching      -- run one matching cycle now
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.api.dependencies import get_db, get_pricing_engine, get_session_factory
from src.api.middleware import limiter
from src.api.schemas import (
    BookingCreatedResponse,
    BookingCreateRequest,
    BookingResponse,
    MatchedRide,
    MatchingResponse,
    UnmatchedGroup,
)
from src.config import settings
from src.domain.distance import haversine_km
from src.domain.pricing import PricingEngine
from src.infrastructure.repositories import (
    BookingRepository,
    UserRepository,
    VehicleRepository,
)
from src.workers import matcher as _matcher

router = APIRouter(tags=["bookings"])


def _replayed(existing) -> BookingCreatedResponse:
    return BookingCreatedResponse(
        booking_id=existing.id,
        estimated_price=existing.fare,
        distance_km=round(
            haversine_km(
                existing.pickup_lat, existing.pickup_lng,
                existing.dropoff_lat, existing.dropoff_lng,
            ),
            3,
        ),
        status=existing.status,
    )


@router.post(
    "/bookings",
    status_code=201,
    response_model=BookingCreatedResponse,
    summary="Create a booking",
    responses={201: {"description": "Booking stored as PENDING with its fare."}},
)
@limiter.limit("100/minute")
async def create_booking(
    request: Request,
    body: BookingCreateRequest,
    db: AsyncSession = Depends(get_db),
    pricing: PricingEngine = Depends(get_pricing_engine),
):
    repo = BookingRepository(db)

    # ── Idempotency guard ─────────────────────────────────────────
    if body.idempotency_key:
        existing = await repo.get_by_idempotency_key(body.idempotency_key)
        if existing:
            return _replayed(existing)

    if body.passengers > settings.vehicle_capacity:
        raise HTTPException(
            status_code=422,
            detail=f"passengers must be at most {settings.vehicle_capacity}",
        )

    if await UserRepository(db).get_by_id(body.user_id) is None:
        raise HTTPException(status_code=404, detail="User not found")

    # Live demand snapshot; zero vehicles is passed through on purpose so
    # the pricing fallback rule applies.
    active_requests = await repo.count_pending()
    available_vehicles = await VehicleRepository(db).count_available()

    distance, fare = pricing.quote(
        body.pickup.lat, body.pickup.lng,
        body.dropoff.lat, body.dropoff.lng,
        active_requests=active_requests,
        available_vehicles=available_vehicles,
    )

    try:
        booking = await repo.create_booking(
            user_id=body.user_id,
            pickup_lat=body.pickup.lat,
            pickup_lng=body.pickup.lng,
            dropoff_lat=body.dropoff.lat,
            dropoff_lng=body.dropoff.lng,
            pickup_time=body.pickup_time or datetime.now(timezone.utc),
            passengers=body.passengers,
            fare=fare,
            idempotency_key=body.idempotency_key,
        )
    except IntegrityError:
        # a concurrent request with the same key inserted first
        await db.rollback()
        if not body.idempotency_key:
            raise
        existing = await repo.get_by_idempotency_key(body.idempotency_key)
        if existing is None:
            raise
        return _replayed(existing)

    return BookingCreatedResponse(
        booking_id=booking.id,
        estimated_price=fare,
        distance_km=round(distance, 3),
        status=booking.status,
    )


@router.get(
    "/bookings/{booking_id}",
    response_model=BookingResponse,
    summary="Get booking status, fare and ride",
)
@limiter.limit("100/minute")
async def get_booking(
    request: Request,
    booking_id: int,
    db: AsyncSession = Depends(get_db),
):
    booking = await BookingRepository(db).get_by_id(booking_id)
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")
    return booking


@router.post(
    "/trigger-matching",
    response_model=MatchingResponse,
    summary="Run one matching cycle now",
    description=(
        "Groups every PENDING booking and commits each group to a vehicle. "
        "Groups that cannot be committed stay PENDING and are listed under "
        "``unmatched``; they never fail the request."
    ),
)
@limiter.limit("30/minute")
async def trigger_matching(
    request: Request,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    report = await _matcher.run_matching_cycle(session_factory)

    if not report.pending:
        return MatchingResponse(message="No pending bookings to match")

    return MatchingResponse(
        message="Matching completed",
        pending=report.pending,
        matches_found=len(report.confirmed),
        details=[
            MatchedRide(
                ride_id=o.ride_id,
                vehicle_id=o.vehicle_id,
                bookings=list(o.booking_ids),
            )
            for o in report.confirmed
        ],
        unmatched=[
            UnmatchedGroup(
                bookings=list(o.booking_ids), reason=o.failure, detail=o.detail
            )
            for o in report.failed
        ],
    )
