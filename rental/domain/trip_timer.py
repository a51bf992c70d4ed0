"""
Trip Usage Timer
================

Ticks every ``trip_tick_seconds`` (default 1 s) while the vehicle is
unlocked, adding exactly one second of usage per tick to the
``TripSession``.

Lifecycle
---------
* ``start`` is called once per trip (on the first successful unlock);
  further calls are no-ops.
* ``stop`` is called on ``end_trip`` and on session teardown.  Once
  stopped the counter never moves again; a failed end-of-trip charge does
  not resume it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from .entities import TripSession

logger = logging.getLogger(__name__)


class TripTimer:
    def __init__(self, trip: TripSession, tick_seconds: float = 1.0):
        self.trip = trip
        self.tick_seconds = tick_seconds
        self._ticking = False
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None

    # ── Public API ────────────────────────────────────────────────────

    @property
    def running(self) -> bool:
        return self._ticking

    def start(self) -> bool:
        """Begin ticking.  Returns False if the timer was already started."""
        if self._ticking or self._task is not None:
            return False
        self._ticking = True
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._loop())
        logger.info("Trip timer started (tick=%.1fs)", self.tick_seconds)
        return True

    def tick(self) -> int:
        """Add one second of usage if the timer is running."""
        if self._ticking:
            self.trip.elapsed_seconds += 1
        return self.trip.elapsed_seconds

    async def stop(self) -> None:
        self._ticking = False
        if self._stop_event:
            self._stop_event.set()
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        logger.info("Trip timer stopped at %ds", self.trip.elapsed_seconds)

    # ── Internals ─────────────────────────────────────────────────────

    async def _loop(self) -> None:
        assert self._stop_event is not None
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(
                    self._stop_event.wait(), timeout=self.tick_seconds
                )
                break
            except asyncio.TimeoutError:
                self.tick()
