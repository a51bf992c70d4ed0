"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.  ``SqlStationSource`` and
``SqlChargeLedger`` adapt them to the domain ports, opening one session
per call.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import defer

from .models import StationModel, TripChargeModel
from rental.domain.entities import Location, Station
from rental.domain.enums import ChargeKind
from rental.domain.ports import ChargeResult

logger = logging.getLogger(__name__)


def to_station(model: StationModel) -> Station:
    return Station(
        id=model.id,
        location=Location(model.lat, model.lng),
        name=model.name,
        address=model.address or "",
        wait_time_minutes=model.wait_time_minutes,
        available_spots=model.available_spots,
        total_spots=model.total_spots,
        max_power_kw=model.max_power_kw,
        virtual_car=bool(model.virtual_car),
    )


class StationRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_station(
        self,
        *,
        name: str,
        lat: float,
        lng: float,
        address: str = "",
        wait_time_minutes: int | None = None,
        available_spots: int | None = None,
        total_spots: int | None = None,
        max_power_kw: float | None = None,
        virtual_car: bool = False,
    ) -> StationModel:
        """Create a station with a proper PostGIS geometry column."""
        from geoalchemy2.functions import ST_MakePoint

        station = StationModel(
            name=name,
            address=address,
            lat=lat,
            lng=lng,
            location=ST_MakePoint(lng, lat),
            wait_time_minutes=wait_time_minutes,
            available_spots=available_spots,
            total_spots=total_spots,
            max_power_kw=max_power_kw,
            virtual_car=virtual_car,
        )
        self.session.add(station)
        await self.session.flush()
        return station

    async def get_active(self) -> list[StationModel]:
        # Reads use the lat / lng floats; the geometry stays in the database.
        result = await self.session.execute(
            select(StationModel)
            .options(defer(StationModel.location))
            .where(StationModel.is_active.is_(True))
            .order_by(StationModel.id)
        )
        return list(result.scalars().all())


class ChargeRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        *,
        user_id: str,
        kind: ChargeKind,
        amount_cents: int,
        result: ChargeResult,
    ) -> TripChargeModel:
        charge = TripChargeModel(
            user_id=user_id,
            kind=kind,
            amount_cents=amount_cents,
            success=result.success,
            transaction_id=result.transaction_id,
            card_last4=result.card_last4,
            error=result.error,
        )
        self.session.add(charge)
        await self.session.flush()
        return charge

    async def get_for_user(self, user_id: str) -> list[TripChargeModel]:
        result = await self.session.execute(
            select(TripChargeModel)
            .where(TripChargeModel.user_id == user_id)
            .order_by(TripChargeModel.created_at, TripChargeModel.id)
        )
        return list(result.scalars().all())


# ── Port adapters ─────────────────────────────────────────────────────


class SqlStationSource:
    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def load_stations(self) -> list[Station]:
        async with self.session_factory() as session:
            models = await StationRepository(session).get_active()
        return [to_station(m) for m in models]


class SqlChargeLedger:
    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def record(
        self,
        user_id: str,
        kind: ChargeKind,
        amount_cents: int,
        result: ChargeResult,
    ) -> None:
        async with self.session_factory() as session:
            await ChargeRepository(session).create(
                user_id=user_id, kind=kind, amount_cents=amount_cents, result=result
            )
            await session.commit()
        logger.debug(
            "Recorded %s charge of %d cents for %s (success=%s)",
            kind.value, amount_cents, user_id, result.success,
        )
