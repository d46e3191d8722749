"""
Admin / observability endpoints
===============================

GET /api/v1/admin/rides  -- most recent rides with their confirmed bookings
GET /api/v1/admin/health -- simple health check
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_db
from src.api.middleware import limiter
from src.api.schemas import BookingResponse, HealthResponse, RideResponse
from src.infrastructure.repositories import BookingRepository, RideRepository

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get(
    "/rides",
    response_model=list[RideResponse],
    summary="List recent rides with their bookings",
)
@limiter.limit("100/minute")
async def list_rides(
    request: Request,
    limit: int = 100,
    db: AsyncSession = Depends(get_db),
):
    booking_repo = BookingRepository(db)

    result: list[RideResponse] = []
    for ride in await RideRepository(db).list_rides(limit=limit):
        bookings = await booking_repo.get_for_ride(ride.id)
        result.append(
            RideResponse(
                id=ride.id,
                vehicle_id=ride.vehicle_id,
                status=ride.status,
                total_distance=ride.total_distance,
                bookings=[BookingResponse.model_validate(b) for b in bookings],
            )
        )
    return result


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health():
    return HealthResponse()
