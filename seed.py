"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 5 sample users
  - 6 sample vehicles (Bangalore city centre and Kempegowda airport)
  - 4 PENDING bookings, two of which pool together on the next cycle
"""

import asyncio
from datetime import datetime, timedelta, timezone

from sqlalchemy import text

from src.config import settings
from src.domain.distance import haversine_km
from src.domain.enums import BookingStatus
from src.domain.pricing import PricingEngine
from src.infrastructure.database import async_session_factory, engine
from src.infrastructure.models import BookingModel, UserModel, VehicleModel

CITY_CENTRE = (12.9716, 77.5946)
AIRPORT = (13.1986, 77.7066)


USERS = [
    {"name": "Alice Johnson", "email": "alice@example.com"},
    {"name": "Bob Smith", "email": "bob@example.com"},
    {"name": "Charlie Brown", "email": "charlie@example.com"},
    {"name": "Priya Patel", "email": "priya@example.com"},
    {"name": "Rohan Mehta", "email": "rohan@example.com"},
]

VEHICLES = [
    # City centre
    {"capacity": 3, "lat": 12.9716, "lng": 77.5946},
    {"capacity": 3, "lat": 12.9750, "lng": 77.5990},
    {"capacity": 3, "lat": 12.9680, "lng": 77.5900},
    # Airport
    {"capacity": 3, "lat": 13.1986, "lng": 77.7066},
    {"capacity": 3, "lat": 13.1990, "lng": 77.7100},
    {"capacity": 3, "lat": 13.1950, "lng": 77.7030},
]


async def seed():
    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM users"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        # ── Users ─────────────────────────────────────────────────────
        user_models = []
        for u in USERS:
            m = UserModel(name=u["name"], email=u["email"])
            session.add(m)
            user_models.append(m)
        await session.flush()
        print(f"  Created {len(user_models)} users")

        # ── Vehicles ──────────────────────────────────────────────────
        for v in VEHICLES:
            session.add(
                VehicleModel(
                    capacity=v["capacity"],
                    current_lat=v["lat"],
                    current_lng=v["lng"],
                    is_available=True,
                )
            )
        await session.flush()
        print(f"  Created {len(VEHICLES)} vehicles")

        # ── Bookings ──────────────────────────────────────────────────
        now = datetime.now(timezone.utc)
        bookings_data = [
            # Alice and Bob: centre -> airport, 5 minutes apart (pool)
            {"user": 0, "pickup": CITY_CENTRE, "dropoff": AIRPORT,
             "at": now, "passengers": 1},
            {"user": 1, "pickup": (12.9720, 77.5950), "dropoff": (13.1990, 77.7070),
             "at": now + timedelta(minutes=5), "passengers": 1},
            # Charlie: airport -> centre (opposite direction, rides alone)
            {"user": 2, "pickup": AIRPORT, "dropoff": CITY_CENTRE,
             "at": now, "passengers": 2},
            # Priya: to Mysore, far from everyone else
            {"user": 3, "pickup": CITY_CENTRE, "dropoff": (12.2958, 76.6394),
             "at": now + timedelta(minutes=2), "passengers": 1},
        ]

        pricing = PricingEngine(settings.pricing_rules())
        for i, b in enumerate(bookings_data):
            distance = haversine_km(*b["pickup"], *b["dropoff"])
            session.add(
                BookingModel(
                    user_id=user_models[b["user"]].id,
                    pickup_lat=b["pickup"][0],
                    pickup_lng=b["pickup"][1],
                    dropoff_lat=b["dropoff"][0],
                    dropoff_lng=b["dropoff"][1],
                    pickup_time=b["at"],
                    passengers=b["passengers"],
                    status=BookingStatus.PENDING,
                    fare=pricing.calculate_price(distance, i, len(VEHICLES)),
                )
            )
        await session.flush()
        print(f"  Created {len(bookings_data)} pending bookings")

        await session.commit()
        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
