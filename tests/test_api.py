"""
Integration tests for the REST API endpoints.

The app is driven through ``httpx.ASGITransport`` (lifespan is not run),
so the station catalog, maps provider and session registry are placed on
``app.state`` directly, wired to the in-memory fakes.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from rental.api.app import create_app
from rental.api.dependencies import SessionRegistry, make_session_factory
from rental.config import Settings
from rental.domain.entities import Location
from rental.domain.ports import ChargeResult
from rental.domain.ranking import StationCatalog
from rental.workers.recovery import RecoveryMonitor
from tests.conftest import (
    STATIONS,
    FakeMappingProvider,
    FakePaymentGateway,
    FakeVerificationService,
    InMemorySnapshotStore,
)

BASE = "/api/v1"


@pytest_asyncio.fixture
async def api():
    """AsyncClient plus the fakes behind it."""
    app = create_app()
    mapping = FakeMappingProvider()
    mapping.places["Central Pier"] = Location(22.287, 114.161)
    payment = FakePaymentGateway()
    snapshots = InMemorySnapshotStore()
    catalog = StationCatalog(STATIONS)
    config = Settings(route_debounce_seconds=0, trip_tick_seconds=3600)

    factory = make_session_factory(
        config,
        catalog=catalog,
        mapping=mapping,
        payment=payment,
        verification=FakeVerificationService(),
        snapshots=snapshots,
    )
    registry = SessionRegistry(factory, RecoveryMonitor())
    app.state.catalog = catalog
    app.state.mapping = mapping
    app.state.registry = registry

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac, payment, snapshots

    await registry.close_all()


async def _book(client: AsyncClient, user: str = "rider-1") -> None:
    await client.post(f"{BASE}/bookings/{user}/departure", json={"station_id": 1})
    await client.post(f"{BASE}/bookings/{user}/advance", json={"target": 3})
    await client.post(f"{BASE}/bookings/{user}/arrival", json={"station_id": 2})


# ── Stations ──────────────────────────────────────────────────────────


class TestStationsEndpoint:
    @pytest.mark.asyncio
    async def test_ranked_list(self, api):
        client, _, _ = api
        resp = await client.get(f"{BASE}/stations", params={"lat": 22.28, "lng": 114.15})
        assert resp.status_code == 200
        data = resp.json()
        assert data[0]["id"] == 1
        assert data[0]["walk_minutes"] == 0
        distances = [s["distance_km"] for s in data]
        assert distances == sorted(distances)

    @pytest.mark.asyncio
    async def test_limit(self, api):
        client, _, _ = api
        resp = await client.get(
            f"{BASE}/stations", params={"lat": 22.28, "lng": 114.15, "limit": 2}
        )
        assert len(resp.json()) == 2

    @pytest.mark.asyncio
    async def test_invalid_latitude(self, api):
        client, _, _ = api
        resp = await client.get(f"{BASE}/stations", params={"lat": 123, "lng": 114.15})
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_search(self, api):
        client, _, _ = api
        resp = await client.get(f"{BASE}/stations/search", params={"q": "Central Pier"})
        assert resp.status_code == 200
        assert resp.json()[0]["id"] == 1

    @pytest.mark.asyncio
    async def test_search_unknown_address(self, api):
        client, _, _ = api
        resp = await client.get(f"{BASE}/stations/search", params={"q": "Atlantis"})
        assert resp.status_code == 404


# ── Booking flow ──────────────────────────────────────────────────────


class TestBookingEndpoints:
    @pytest.mark.asyncio
    async def test_new_booking_starts_at_step_one(self, api):
        client, _, _ = api
        resp = await client.get(f"{BASE}/bookings/rider-1")
        assert resp.status_code == 200
        data = resp.json()
        assert data["step"] == 1
        assert data["selection_mode"] == "departure"
        assert data["trip"] is None

    @pytest.mark.asyncio
    async def test_select_departure(self, api):
        client, _, snapshots = api
        resp = await client.post(
            f"{BASE}/bookings/rider-1/departure", json={"station_id": 1}
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["booking"]["step"] == 2
        assert body["booking"]["departure_station_id"] == 1
        assert snapshots.data["rider-1"]["step"] == 2

    @pytest.mark.asyncio
    async def test_same_station_conflict(self, api):
        client, _, _ = api
        await client.post(f"{BASE}/bookings/rider-1/departure", json={"station_id": 1})
        await client.post(f"{BASE}/bookings/rider-1/advance", json={"target": 3})

        resp = await client.post(
            f"{BASE}/bookings/rider-1/arrival", json={"station_id": 1}
        )

        assert resp.status_code == 409
        state = (await client.get(f"{BASE}/bookings/rider-1")).json()
        assert state["step"] == 3
        assert state["arrival_station_id"] is None
        assert any(n["level"] == "warning" for n in state["notifications"])

    @pytest.mark.asyncio
    async def test_unknown_station_conflict(self, api):
        client, _, _ = api
        resp = await client.post(
            f"{BASE}/bookings/rider-1/departure", json={"station_id": 404}
        )
        assert resp.status_code == 409

    @pytest.mark.asyncio
    async def test_clear_departure(self, api):
        client, _, _ = api
        await client.post(f"{BASE}/bookings/rider-1/departure", json={"station_id": 1})
        resp = await client.delete(f"{BASE}/bookings/rider-1/departure")
        assert resp.status_code == 200
        assert resp.json()["booking"]["step"] == 1

    @pytest.mark.asyncio
    async def test_date_time(self, api):
        client, _, _ = api
        resp = await client.post(
            f"{BASE}/bookings/rider-1/date-time",
            json={"confirmed": True, "departure_date": "2026-10-20", "departure_time": "09:30"},
        )
        assert resp.status_code == 200
        booking = resp.json()["booking"]
        assert booking["date_time_confirmed"] is True
        assert booking["departure_date"] == "2026-10-20"

    @pytest.mark.asyncio
    async def test_backward_advance_conflict(self, api):
        client, _, _ = api
        await _book(client)
        resp = await client.post(f"{BASE}/bookings/rider-1/advance", json={"target": 2})
        assert resp.status_code == 409

    @pytest.mark.asyncio
    async def test_reset(self, api):
        client, _, _ = api
        await _book(client)
        resp = await client.post(f"{BASE}/bookings/rider-1/reset")
        assert resp.status_code == 200
        assert resp.json()["booking"]["step"] == 1

    @pytest.mark.asyncio
    async def test_users_are_isolated(self, api):
        client, _, _ = api
        await _book(client, "rider-1")
        resp = await client.get(f"{BASE}/bookings/rider-2")
        assert resp.json()["step"] == 1


# ── Trip ──────────────────────────────────────────────────────────────


class TestTripEndpoints:
    @pytest.mark.asyncio
    async def test_full_trip(self, api):
        client, payment, _ = api
        await _book(client)

        begin = await client.post(f"{BASE}/bookings/rider-1/trip")
        assert begin.status_code == 200
        assert begin.json()["booking"]["step"] == 5
        assert begin.json()["transaction_id"] == "txn_1"

        unlock = await client.post(f"{BASE}/bookings/rider-1/trip/unlock")
        assert unlock.status_code == 200
        assert unlock.json()["booking"]["trip"]["timer_running"] is True

        end = await client.post(f"{BASE}/bookings/rider-1/trip/end")
        assert end.status_code == 200
        body = end.json()
        assert body["booking"]["step"] == 1
        assert body["fare"]["starting_fare_cents"] == 5000
        assert payment.calls == [("rider-1", 5000)]

    @pytest.mark.asyncio
    async def test_begin_trip_payment_failure(self, api):
        client, payment, _ = api
        payment.results.append(ChargeResult(success=False, error="Card declined"))
        await _book(client)

        resp = await client.post(f"{BASE}/bookings/rider-1/trip")

        assert resp.status_code == 402
        assert "Card declined" in resp.json()["detail"]
        state = (await client.get(f"{BASE}/bookings/rider-1")).json()
        assert state["step"] == 4

    @pytest.mark.asyncio
    async def test_unlock_requires_verification(self, api):
        client, _, _ = api
        await _book(client)
        await client.post(f"{BASE}/bookings/rider-1/trip")
        await client.put(
            f"{BASE}/bookings/rider-1/verification",
            json={"id_approved": True, "license_approved": False, "address_approved": True},
        )

        resp = await client.post(f"{BASE}/bookings/rider-1/trip/unlock")

        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_end_without_trip(self, api):
        client, _, _ = api
        resp = await client.post(f"{BASE}/bookings/rider-1/trip/end")
        assert resp.status_code == 409


# ── Admin ─────────────────────────────────────────────────────────────


class TestSnapshotRestore:
    @pytest.mark.asyncio
    async def test_malformed_snapshot_still_serves_booking(self, api):
        client, _, snapshots = api
        snapshots.data["rider-1"] = {
            "step": 3,
            "departure_station_id": "1",
            "arrival_station_id": 1,
            "departure_date": "not-a-date",
        }

        resp = await client.get(f"{BASE}/bookings/rider-1")

        assert resp.status_code == 200
        assert resp.json()["departure_station_id"] == 1
        assert resp.json()["arrival_station_id"] is None
        assert resp.json()["departure_date"] is None


class TestSessionRegistry:
    @pytest.mark.asyncio
    async def test_failed_start_is_not_cached(self):
        broken = MagicMock()
        broken.start = AsyncMock(side_effect=RuntimeError("boom"))
        broken.close = AsyncMock()
        healthy = MagicMock()
        healthy.start = AsyncMock()
        factory = MagicMock(side_effect=[broken, healthy])
        registry = SessionRegistry(factory, MagicMock())

        with pytest.raises(RuntimeError):
            await registry.get("rider-1")
        assert len(registry) == 0
        broken.close.assert_awaited_once()

        assert await registry.get("rider-1") is healthy
        assert len(registry) == 1


class TestAdminEndpoints:
    @pytest.mark.asyncio
    async def test_health(self, api):
        client, _, _ = api
        resp = await client.get(f"{BASE}/admin/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok", "stations": len(STATIONS), "sessions": 0}

    @pytest.mark.asyncio
    async def test_sessions(self, api):
        client, _, _ = api
        await _book(client)
        resp = await client.get(f"{BASE}/admin/sessions")
        assert resp.json() == [
            {"user_id": "rider-1", "step": 4, "has_active_trip": False}
        ]
