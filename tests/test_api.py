"""
Integration tests for the REST API endpoints.

Runs the real repositories against the per-test SQLite file; only the
session dependencies are overridden and the background loop is patched
out.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from src.config import settings
from src.domain.distance import haversine_km
from src.infrastructure.repositories import BookingRepository

ALICE = {
    "user_id": 1,
    "pickup": {"lat": 12.9716, "lng": 77.5946},
    "dropoff": {"lat": 13.1986, "lng": 77.7066},
    "passengers": 1,
}
BOB = {
    "user_id": 2,
    "pickup": {"lat": 12.9720, "lng": 77.5950},
    "dropoff": {"lat": 13.1990, "lng": 77.7070},
    "passengers": 1,
}


# ── Fixture ───────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def client(store, session_factory):
    """AsyncClient backed by SQLite, two users and one vehicle."""
    await store.add_user("Alice")
    await store.add_user("Bob")
    await store.add_vehicles(1)

    with (
        patch(
            "src.workers.matcher.start_matching_loop",
            new_callable=AsyncMock,
        ),
        patch(
            "src.workers.matcher.stop_matching_loop",
            new_callable=AsyncMock,
        ),
    ):
        # DB session dependency
        async def _test_db():
            async with session_factory() as session:
                try:
                    yield session
                    await session.commit()
                except Exception:
                    await session.rollback()
                    raise

        from src.api.app import create_app
        from src.api.dependencies import get_db, get_session_factory

        app = create_app()
        app.dependency_overrides[get_db] = _test_db
        app.dependency_overrides[get_session_factory] = lambda: session_factory

        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac


# ── Tests ─────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    resp = await client.get("/api/v1/admin/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_create_booking_returns_201_with_fare(client: AsyncClient):
    resp = await client.post("/api/v1/bookings", json=ALICE)
    assert resp.status_code == 201
    data = resp.json()
    assert data["status"] == "PENDING"
    assert data["booking_id"] is not None

    # no pending bookings, one vehicle -> no surge
    distance = haversine_km(12.9716, 77.5946, 13.1986, 77.7066)
    assert data["estimated_price"] == round(50 + distance * 12)


@pytest.mark.asyncio
async def test_create_booking_unknown_user(client: AsyncClient):
    resp = await client.post("/api/v1/bookings", json={**ALICE, "user_id": 999})
    assert resp.status_code == 404


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "override",
    [
        {"pickup": {"lat": 123.0, "lng": 77.5}},
        {"passengers": 0},
        {"passengers": 4},
    ],
)
async def test_create_booking_rejects_invalid_payload(client: AsyncClient, override):
    resp = await client.post("/api/v1/bookings", json={**ALICE, **override})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_passenger_limit_follows_configured_capacity(client: AsyncClient):
    with patch.object(settings, "vehicle_capacity", 2):
        resp = await client.post("/api/v1/bookings", json={**ALICE, "passengers": 3})
        assert resp.status_code == 422
        resp = await client.post("/api/v1/bookings", json={**ALICE, "passengers": 2})
        assert resp.status_code == 201


@pytest.mark.asyncio
async def test_idempotency_key(client: AsyncClient):
    body = {**ALICE, "idempotency_key": "unique-key-123"}
    resp1 = await client.post("/api/v1/bookings", json=body)
    resp2 = await client.post("/api/v1/bookings", json=body)
    assert resp1.status_code == 201
    assert resp2.status_code == 201
    assert resp1.json()["booking_id"] == resp2.json()["booking_id"]
    assert resp1.json()["estimated_price"] == resp2.json()["estimated_price"]


@pytest.mark.asyncio
async def test_idempotency_key_race_replays_the_winner(client: AsyncClient):
    body = {**ALICE, "idempotency_key": "race-key"}
    winner = (await client.post("/api/v1/bookings", json=body)).json()

    # the second request misses the lookup, as if both arrived together
    original = BookingRepository.get_by_idempotency_key
    calls = 0

    async def late_lookup(self, key):
        nonlocal calls
        calls += 1
        if calls == 1:
            return None
        return await original(self, key)

    with patch.object(BookingRepository, "get_by_idempotency_key", late_lookup):
        resp = await client.post("/api/v1/bookings", json=body)

    assert resp.status_code == 201
    assert resp.json()["booking_id"] == winner["booking_id"]
    assert resp.json()["estimated_price"] == winner["estimated_price"]


@pytest.mark.asyncio
async def test_get_booking(client: AsyncClient):
    booking_id = (await client.post("/api/v1/bookings", json=ALICE)).json()["booking_id"]
    resp = await client.get(f"/api/v1/bookings/{booking_id}")
    assert resp.status_code == 200
    assert resp.json()["id"] == booking_id
    assert resp.json()["ride_id"] is None


@pytest.mark.asyncio
async def test_get_booking_not_found(client: AsyncClient):
    resp = await client.get("/api/v1/bookings/9999")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_trigger_matching_with_nothing_pending(client: AsyncClient):
    resp = await client.post("/api/v1/trigger-matching")
    assert resp.status_code == 200
    assert resp.json()["matches_found"] == 0
    assert resp.json()["message"] == "No pending bookings to match"


@pytest.mark.asyncio
async def test_pooled_bookings_share_a_ride(client: AsyncClient):
    alice = (await client.post("/api/v1/bookings", json=ALICE)).json()["booking_id"]
    bob = (await client.post("/api/v1/bookings", json=BOB)).json()["booking_id"]

    resp = await client.post("/api/v1/trigger-matching")
    assert resp.status_code == 200
    data = resp.json()
    assert data["matches_found"] == 1
    assert sorted(data["details"][0]["bookings"]) == sorted([alice, bob])
    assert data["unmatched"] == []
    ride_id = data["details"][0]["ride_id"]

    for booking_id in (alice, bob):
        booking = (await client.get(f"/api/v1/bookings/{booking_id}")).json()
        assert booking["status"] == "CONFIRMED"
        assert booking["ride_id"] == ride_id

    rides = (await client.get("/api/v1/admin/rides")).json()
    assert [r["id"] for r in rides] == [ride_id]
    assert sorted(b["id"] for b in rides[0]["bookings"]) == sorted([alice, bob])


@pytest.mark.asyncio
async def test_unserved_group_is_reported_not_raised(client: AsyncClient):
    await client.post("/api/v1/bookings", json=ALICE)
    mysore = {**BOB, "dropoff": {"lat": 12.2958, "lng": 76.6394}}
    await client.post("/api/v1/bookings", json=mysore)

    resp = await client.post("/api/v1/trigger-matching")
    assert resp.status_code == 200
    data = resp.json()
    assert data["matches_found"] == 1
    assert len(data["unmatched"]) == 1
    assert data["unmatched"][0]["reason"] == "NO_VEHICLE_AVAILABLE"
