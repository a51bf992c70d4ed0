"""
Route Cache
===========

Holds the most recently fetched **route** (departure -> arrival) and
**dispatch route** (dispatch hub -> departure), keyed by station pair.

Ordering & cancellation
-----------------------
* **Single flight** -- one in-flight request per key; concurrent callers
  await the same pending result.
* **Tokens** -- every request is issued a token that is monotonically
  increasing per key.  A response is applied only when its token is still
  the latest one for that key, so a slow stale reply can never overwrite
  a newer result.
* **Debounce** -- ``schedule`` waits ``debounce_seconds`` and then checks
  a per-kind generation counter; if a newer schedule for the same kind
  arrived meanwhile, the older one is dropped without touching the
  network.
* **Failures** leave the entry unset.  Entries are removed only by
  ``invalidate``/``invalidate_kind`` (station change), never by age.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from .entities import Location, RouteInfo
from .enums import RouteKind
from .ports import MappingProvider

logger = logging.getLogger(__name__)

DISPATCH_HUB_ID = 0


@dataclass(frozen=True)
class RouteKey:
    kind: RouteKind
    origin_id: int
    destination_id: int

    @classmethod
    def route(cls, departure_id: int, arrival_id: int) -> "RouteKey":
        return cls(RouteKind.ROUTE, departure_id, arrival_id)

    @classmethod
    def dispatch(cls, departure_id: int, origin_id: int = DISPATCH_HUB_ID) -> "RouteKey":
        return cls(RouteKind.DISPATCH, origin_id, departure_id)


@dataclass(frozen=True)
class RouteCacheEntry:
    key: RouteKey
    token: int
    route: RouteInfo


class RouteCache:
    def __init__(
        self,
        provider: MappingProvider,
        debounce_seconds: float = 0.5,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.provider = provider
        self.debounce_seconds = debounce_seconds
        self._sleep = sleep
        self._entries: dict[RouteKey, RouteCacheEntry] = {}
        self._tokens: dict[RouteKey, int] = {}
        self._in_flight: dict[RouteKey, asyncio.Task] = {}
        self._generations: dict[RouteKind, int] = {}
        self.requests_sent = 0

    # ── Reads ─────────────────────────────────────────────────────────

    def entry(self, key: RouteKey) -> Optional[RouteCacheEntry]:
        return self._entries.get(key)

    def get(self, key: RouteKey) -> Optional[RouteInfo]:
        entry = self._entries.get(key)
        return entry.route if entry else None

    def latest_token(self, key: RouteKey) -> int:
        return self._tokens.get(key, 0)

    # ── Token protocol ────────────────────────────────────────────────

    def begin_request(self, key: RouteKey) -> int:
        token = self._tokens.get(key, 0) + 1
        self._tokens[key] = token
        return token

    def apply_response(
        self, key: RouteKey, token: int, route: Optional[RouteInfo]
    ) -> bool:
        """Store *route* if *token* is still current.  Returns True if applied."""
        if token != self._tokens.get(key):
            logger.debug(
                "Discarding stale route response for %s (token %d, latest %d)",
                key, token, self._tokens.get(key, 0),
            )
            return False
        if route is None:
            self._entries.pop(key, None)
        else:
            self._entries[key] = RouteCacheEntry(key=key, token=token, route=route)
        return True

    # ── Fetching ──────────────────────────────────────────────────────

    async def fetch_route(
        self, key: RouteKey, origin: Location, destination: Location
    ) -> Optional[RouteInfo]:
        cached = self._entries.get(key)
        if cached is not None:
            return cached.route

        task = self._in_flight.get(key)
        if task is None:
            token = self.begin_request(key)
            task = asyncio.ensure_future(
                self._request(key, token, origin, destination)
            )
            self._in_flight[key] = task
            task.add_done_callback(lambda t, k=key: self._forget(k, t))
        return await asyncio.shield(task)

    async def schedule(
        self, key: RouteKey, origin: Location, destination: Location
    ) -> Optional[RouteInfo]:
        """Debounced ``fetch_route``; superseded calls return None unsent."""
        generation = self._generations.get(key.kind, 0) + 1
        self._generations[key.kind] = generation

        await self._sleep(self.debounce_seconds)
        if self._generations.get(key.kind) != generation:
            logger.debug("Route fetch for %s superseded before firing", key)
            return None
        return await self.fetch_route(key, origin, destination)

    # ── Invalidation ──────────────────────────────────────────────────

    def cancel_pending(self, kind: RouteKind) -> None:
        """Drop any debounced fetch of *kind* that has not fired yet."""
        self._generations[kind] = self._generations.get(kind, 0) + 1

    def invalidate(self, key: RouteKey) -> None:
        self._entries.pop(key, None)
        self._in_flight.pop(key, None)
        self._tokens[key] = self._tokens.get(key, 0) + 1

    def invalidate_kind(self, kind: RouteKind) -> None:
        self.cancel_pending(kind)
        keys = {k for k in (*self._entries, *self._in_flight) if k.kind is kind}
        for key in keys:
            self.invalidate(key)

    def clear(self) -> None:
        for kind in RouteKind:
            self.invalidate_kind(kind)

    # ── Internals ─────────────────────────────────────────────────────

    async def _request(
        self,
        key: RouteKey,
        token: int,
        origin: Location,
        destination: Location,
    ) -> Optional[RouteInfo]:
        self.requests_sent += 1
        try:
            route = await self.provider.fetch_route(origin, destination)
        except Exception:
            logger.warning("Route request for %s failed", key, exc_info=True)
            route = None

        if self.apply_response(key, token, route):
            return route
        return self.get(key)

    def _forget(self, key: RouteKey, task: asyncio.Task) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
