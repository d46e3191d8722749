"""
FastAPI application factory.

* Registers routes for bookings / matching and admin.
* Starts / stops the background matching worker via lifespan events.
* Applies rate-limiting middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from src.api.middleware import limiter
from src.api.routes import admin, bookings
from src.config import settings
from src.infrastructure.redis_client import close_redis
from src.workers import matcher as _matcher

logging.basicConfig(level=settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the matching worker on startup; stop on shutdown."""
    await _matcher.start_matching_loop()
    yield
    await _matcher.stop_matching_loop()
    await close_redis()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Ride Pooling Dispatch API",
        description=(
            "Batches independently submitted ride requests into shared "
            "vehicles under capacity, time-window and proximity limits, "
            "prices each booking against live demand, and commits every "
            "group to exactly one vehicle even under concurrent matching."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Routers
    app.include_router(bookings.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
