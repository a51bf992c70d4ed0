"""
Background Station Refresher
============================

Runs every ``STATION_REFRESH_INTERVAL_SECONDS`` (default 1 h).

Stations are immutable within a session; the catalog is replaced
wholesale on each successful refresh.  A failed refresh keeps the
previous list so ranking never blocks on, or breaks with, the data
source.
"""

from __future__ import annotations

import asyncio
import logging

from rental.config import settings
from rental.domain.ports import StationSource
from rental.domain.ranking import StationCatalog

logger = logging.getLogger(__name__)

_task: asyncio.Task | None = None
_stop_event: asyncio.Event | None = None


# ── Public API ────────────────────────────────────────────────────────


async def start_refresh_loop(catalog: StationCatalog, source: StationSource) -> None:
    global _task, _stop_event
    _stop_event = asyncio.Event()
    _task = asyncio.create_task(_loop(catalog, source))
    logger.info(
        "Station refresher started (interval=%ds)",
        settings.station_refresh_interval_seconds,
    )


async def stop_refresh_loop() -> None:
    if _stop_event:
        _stop_event.set()
    if _task:
        _task.cancel()
        try:
            await _task
        except asyncio.CancelledError:
            pass
    logger.info("Station refresher stopped")


async def run_refresh_cycle(catalog: StationCatalog, source: StationSource) -> int:
    """Reload the station list once.  Returns the number of stations loaded."""
    try:
        stations = await source.load_stations()
    except Exception:
        logger.exception("Station refresh failed; keeping %d cached stations", len(catalog))
        return 0

    if not stations:
        logger.warning("Station source returned no stations; keeping cache")
        return 0

    catalog.replace(stations)
    logger.info("Station catalog refreshed: %d stations", len(stations))
    return len(stations)


# ── Internals ─────────────────────────────────────────────────────────


async def _loop(catalog: StationCatalog, source: StationSource) -> None:
    """Periodic loop: refresh the catalog then sleep."""
    assert _stop_event is not None
    while not _stop_event.is_set():
        await run_refresh_cycle(catalog, source)
        try:
            await asyncio.wait_for(
                _stop_event.wait(), timeout=settings.station_refresh_interval_seconds
            )
            break
        except asyncio.TimeoutError:
            pass  # next cycle
