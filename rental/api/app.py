"""
FastAPI application factory.

* Registers routes for stations, bookings and admin.
* Wires the booking engine collaborators and starts / stops the station
  refresher via lifespan events.
* Applies rate-limiting middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

import httpx
from fastapi import FastAPI
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from rental.api.dependencies import SessionRegistry, make_session_factory
from rental.api.middleware import limiter
from rental.api.routes import admin, bookings, stations
from rental.config import settings
from rental.domain.ranking import StationCatalog
from rental.infrastructure.database import async_session_factory
from rental.infrastructure.mapping import GoogleMapsProvider
from rental.infrastructure.notifications import LoggingNotifier
from rental.infrastructure.payment import HttpPaymentGateway
from rental.infrastructure.redis_client import close_redis, get_redis
from rental.infrastructure.repositories import SqlChargeLedger, SqlStationSource
from rental.infrastructure.snapshot_store import RedisSnapshotStore
from rental.infrastructure.verification import HttpVerificationService
from rental.workers import station_refresher as _refresher
from rental.workers.recovery import RecoveryMonitor

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the shared collaborators and the station refresher; tear down on exit."""
    maps_client = httpx.AsyncClient(timeout=settings.mapping_timeout_seconds)
    backend_client = httpx.AsyncClient(timeout=settings.payment_timeout_seconds)

    catalog = StationCatalog(
        walk_minutes_per_km=settings.walk_minutes_per_km,
        drive_speed_kmh=settings.drive_speed_kmh,
    )
    mapping = GoogleMapsProvider(
        maps_client,
        api_key=settings.google_maps_api_key,
        directions_url=settings.directions_base_url,
        geocode_url=settings.geocode_base_url,
    )
    factory = make_session_factory(
        settings,
        catalog=catalog,
        mapping=mapping,
        payment=HttpPaymentGateway(
            backend_client,
            settings.payment_gateway_url,
            api_key=settings.payment_api_key,
            currency=settings.currency,
        ),
        verification=HttpVerificationService(
            backend_client, settings.verification_service_url
        ),
        snapshots=RedisSnapshotStore(get_redis(), settings.snapshot_ttl_seconds),
        ledger=SqlChargeLedger(async_session_factory),
        notifier=LoggingNotifier(),
    )
    registry = SessionRegistry(factory, RecoveryMonitor())

    app.state.catalog = catalog
    app.state.mapping = mapping
    app.state.registry = registry

    await _refresher.start_refresh_loop(catalog, SqlStationSource(async_session_factory))
    yield
    await _refresher.stop_refresh_loop()
    await registry.close_all()
    await maps_client.aclose()
    await backend_client.aclose()
    await close_redis()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Station Rental Booking API",
        description=(
            "Guides a rider from departure-station selection through "
            "arrival selection, payment, vehicle unlock and a metered "
            "trip.  Booking progress survives reloads."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Routers
    app.include_router(stations.router, prefix="/api/v1")
    app.include_router(bookings.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
