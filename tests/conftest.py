"""
Shared test fixtures.

Uses an in-memory SQLite database (via aiosqlite) so tests run without
Docker / PostgreSQL / Redis.  PostGIS-specific features (Geometry columns)
are mocked by using plain String columns in the test models.

External collaborators (payment, maps, verification, snapshots) are
replaced by small in-memory fakes that record every call.
"""

from __future__ import annotations

import asyncio
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from sqlalchemy import Boolean, Column, DateTime, Float, Integer, String, func
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from rental.domain.booking import BookingSession
from rental.domain.distance import distance_km
from rental.domain.entities import Location, RouteInfo, Station, VerificationStatus
from rental.domain.enums import ChargeKind
from rental.domain.ports import ChargeResult
from rental.domain.pricing import BillingEngine
from rental.domain.ranking import StationCatalog
from rental.domain.route_cache import RouteCache


# ── Test DB (SQLite in-memory) ────────────────────────────────────────

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"


class TestBase(DeclarativeBase):
    pass


# Same table and column names as the production station model, with the
# PostGIS Geometry column stored as text (SQLite has no spatial types).

class TestStationModel(TestBase):
    __tablename__ = "stations"
    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    address = Column(String(400), nullable=False, default="")
    location = Column(String, nullable=True)  # stub for Geometry
    lat = Column(Float, nullable=False)
    lng = Column(Float, nullable=False)
    wait_time_minutes = Column(Integer, nullable=True)
    available_spots = Column(Integer, nullable=True)
    total_spots = Column(Integer, nullable=True)
    max_power_kw = Column(Float, nullable=True)
    virtual_car = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now())


# ── Sample data ───────────────────────────────────────────────────────

HUB = Location(22.3193, 114.1694)

CENTRAL = Station(1, Location(22.28, 114.15), name="Central Pier")
TSIM_SHA_TSUI = Station(2, Location(22.30, 114.17), name="Tsim Sha Tsui")
MONG_KOK = Station(3, Location(22.32, 114.17), name="Mong Kok")
KENNEDY_TOWN = Station(
    9, Location(22.281, 114.128), name="Kennedy Town", virtual_car=True
)

STATIONS = [CENTRAL, TSIM_SHA_TSUI, MONG_KOK, KENNEDY_TOWN]


# ── Fakes ─────────────────────────────────────────────────────────────


class FakePaymentGateway:
    """Succeeds by default; queued results are returned first."""

    def __init__(self, *results: ChargeResult):
        self.results = list(results)
        self.calls: list[tuple[str, int]] = []

    async def charge(self, user_id: str, amount_cents: int) -> ChargeResult:
        self.calls.append((user_id, amount_cents))
        if self.results:
            return self.results.pop(0)
        return ChargeResult(
            success=True,
            transaction_id=f"txn_{len(self.calls)}",
            card_last4="4242",
        )


class FakeMappingProvider:
    """Derives a route from the straight-line distance."""

    def __init__(self) -> None:
        self.calls: list[tuple[Location, Location]] = []
        self.gate: Optional[asyncio.Event] = None
        self.fail = False
        self.places: dict[str, Location] = {}

    async def fetch_route(
        self, origin: Location, destination: Location
    ) -> Optional[RouteInfo]:
        self.calls.append((origin, destination))
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise RuntimeError("maps unavailable")
        meters = int(distance_km(origin, destination) * 1000)
        return RouteInfo(
            distance_meters=meters,
            duration_seconds=meters // 10,
            polyline=f"poly-{len(self.calls)}",
        )

    async def geocode(self, query: str) -> Optional[Location]:
        return self.places.get(query)


class FakeVerificationService:
    def __init__(self, status: VerificationStatus = VerificationStatus(True, True, True)):
        self.status = status

    async def get_status(self, user_id: str) -> VerificationStatus:
        return self.status


class InMemorySnapshotStore:
    def __init__(self) -> None:
        self.data: dict[str, dict] = {}
        self.saves = 0

    async def load(self, user_id: str) -> Optional[dict]:
        snapshot = self.data.get(user_id)
        return dict(snapshot) if snapshot is not None else None

    async def save(self, user_id: str, snapshot: dict) -> None:
        self.data[user_id] = dict(snapshot)
        self.saves += 1

    async def clear(self, user_id: str) -> None:
        self.data.pop(user_id, None)


class RecordingLedger:
    def __init__(self) -> None:
        self.records: list[tuple[str, ChargeKind, int, ChargeResult]] = []

    async def record(
        self, user_id: str, kind: ChargeKind, amount_cents: int, result: ChargeResult
    ) -> None:
        self.records.append((user_id, kind, amount_cents, result))


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def db_engine():
    """Fresh in-memory engine per test; tables are created by the caller."""
    engine = create_async_engine(
        TEST_DB_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create the test tables, yield a session, then drop everything."""
    async with db_engine.begin() as conn:
        await conn.run_sync(TestBase.metadata.create_all)

    factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session

    async with db_engine.begin() as conn:
        await conn.run_sync(TestBase.metadata.drop_all)


@pytest.fixture
def catalog() -> StationCatalog:
    return StationCatalog(STATIONS)


@pytest.fixture
def mapping() -> FakeMappingProvider:
    return FakeMappingProvider()


@pytest.fixture
def payment() -> FakePaymentGateway:
    return FakePaymentGateway()


@pytest.fixture
def verification() -> FakeVerificationService:
    return FakeVerificationService()


@pytest.fixture
def snapshots() -> InMemorySnapshotStore:
    return InMemorySnapshotStore()


@pytest.fixture
def ledger() -> RecordingLedger:
    return RecordingLedger()


@pytest_asyncio.fixture
async def make_session(catalog, mapping, payment, verification, snapshots, ledger):
    """Factory for booking sessions wired to the fakes; closed on teardown."""
    created: list[BookingSession] = []

    def _make(user_id: str = "rider-1", **overrides) -> BookingSession:
        kwargs = dict(
            catalog=catalog,
            routes=RouteCache(mapping, debounce_seconds=0),
            billing=BillingEngine(
                starting_fare_cents=5_000,
                per_minute_rate_cents=100,
                max_daily_fare_cents=60_000,
            ),
            payment=payment,
            verification=verification,
            snapshots=snapshots,
            dispatch_hub=HUB,
            ledger=ledger,
            tick_seconds=3600,
        )
        kwargs.update(overrides)
        session = BookingSession(user_id, **kwargs)
        created.append(session)
        return session

    yield _make

    for session in created:
        await session.close()


async def booked_to_step_four(session: BookingSession) -> None:
    """Drive a started session to step 4 with stations 1 -> 2."""
    await session.select_departure(CENTRAL.id)
    await session.advance_step(3)
    await session.select_arrival(TSIM_SHA_TSUI.id)
    await session.wait_for_routes()
