"""Tests for the background station refresher."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from rental.domain.entities import Location, Station
from rental.domain.ranking import StationCatalog
from rental.workers import station_refresher
from tests.conftest import STATIONS


class TestRefreshCycle:
    @pytest.mark.asyncio
    async def test_replaces_catalog(self):
        catalog = StationCatalog()
        source = AsyncMock()
        source.load_stations = AsyncMock(return_value=STATIONS)

        loaded = await station_refresher.run_refresh_cycle(catalog, source)

        assert loaded == len(STATIONS)
        assert len(catalog) == len(STATIONS)

    @pytest.mark.asyncio
    async def test_failure_keeps_previous_stations(self):
        catalog = StationCatalog(STATIONS)
        revision = catalog.revision
        source = AsyncMock()
        source.load_stations = AsyncMock(side_effect=ConnectionError("db down"))

        assert await station_refresher.run_refresh_cycle(catalog, source) == 0
        assert len(catalog) == len(STATIONS)
        assert catalog.revision == revision

    @pytest.mark.asyncio
    async def test_empty_result_keeps_previous_stations(self):
        catalog = StationCatalog(STATIONS)
        source = AsyncMock()
        source.load_stations = AsyncMock(return_value=[])

        assert await station_refresher.run_refresh_cycle(catalog, source) == 0
        assert len(catalog) == len(STATIONS)


class TestRefreshLoop:
    @pytest.mark.asyncio
    async def test_loop_refreshes_then_stops(self):
        catalog = StationCatalog()
        source = AsyncMock()
        source.load_stations = AsyncMock(
            return_value=[Station(1, Location(22.28, 114.15))]
        )

        await station_refresher.start_refresh_loop(catalog, source)
        await asyncio.sleep(0.05)
        await station_refresher.stop_refresh_loop()

        assert source.load_stations.await_count == 1
        assert 1 in catalog
