"""FastAPI dependency injection helpers and the per-user session registry."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

from fastapi import Request

from rental.config import Settings
from rental.domain.booking import BookingSession
from rental.domain.entities import Location
from rental.domain.ports import (
    ChargeLedger,
    MappingProvider,
    Notifier,
    PaymentGateway,
    SnapshotStore,
    VerificationService,
)
from rental.domain.pricing import BillingEngine
from rental.domain.ranking import StationCatalog
from rental.domain.route_cache import RouteCache
from rental.workers.recovery import RecoveryMonitor

logger = logging.getLogger(__name__)

SessionFactory = Callable[[str], BookingSession]


def make_session_factory(
    config: Settings,
    *,
    catalog: StationCatalog,
    mapping: MappingProvider,
    payment: PaymentGateway,
    verification: VerificationService,
    snapshots: SnapshotStore,
    ledger: ChargeLedger | None = None,
    notifier: Notifier | None = None,
) -> SessionFactory:
    """Bind the shared collaborators; each session gets its own route cache."""
    billing = BillingEngine(
        starting_fare_cents=config.starting_fare_cents,
        per_minute_rate_cents=config.per_minute_rate_cents,
        max_daily_fare_cents=config.max_daily_fare_cents,
    )
    hub = Location(config.dispatch_hub_lat, config.dispatch_hub_lng)

    def factory(user_id: str) -> BookingSession:
        return BookingSession(
            user_id,
            catalog=catalog,
            routes=RouteCache(mapping, debounce_seconds=config.route_debounce_seconds),
            billing=billing,
            payment=payment,
            verification=verification,
            snapshots=snapshots,
            dispatch_hub=hub,
            ledger=ledger,
            notifier=notifier,
            tick_seconds=config.trip_tick_seconds,
        )

    return factory


class SessionRegistry:
    """Lazily creates, starts and tears down one session per user."""

    def __init__(self, factory: SessionFactory, monitor: RecoveryMonitor):
        self.factory = factory
        self.monitor = monitor
        self._sessions: dict[str, BookingSession] = {}
        self._ready: dict[str, asyncio.Future] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def sessions(self) -> list[BookingSession]:
        return list(self._sessions.values())

    async def get(self, user_id: str) -> BookingSession:
        session = self._sessions.get(user_id)
        if session is None:
            session = self.factory(user_id)
            self.monitor.attach(session)
            self._sessions[user_id] = session
            self._ready[user_id] = asyncio.ensure_future(session.start(signed_in=True))
            logger.info("Started booking session for %s", user_id)
        ready = self._ready[user_id]
        try:
            await asyncio.shield(ready)
        except Exception:
            # A failed start must not pin the user to a broken session.
            if self._sessions.get(user_id) is session:
                self._sessions.pop(user_id)
                self._ready.pop(user_id, None)
                await session.close()
            raise
        return session

    async def close_all(self) -> None:
        for session in self._sessions.values():
            await session.close()
        self._sessions.clear()
        self._ready.clear()


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.registry


def get_catalog(request: Request) -> StationCatalog:
    return request.app.state.catalog


def get_mapping(request: Request) -> MappingProvider:
    return request.app.state.mapping
