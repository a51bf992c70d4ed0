"""
Station Ranking
===============

1. **Distance**  -- Haversine distance from the reference point (user
   geolocation fix, geocoded address search, or map centre).
2. **Ordering**  -- ascending distance, ties broken by station id so the
   order is deterministic.
3. **Estimates** -- linear walking (12 min/km) and driving estimates for
   the station list.

``StationCatalog`` keeps the read-mostly station list and memoizes the
last ranking: it is recomputed only when the catalog revision or the
reference point changes.

Complexity
----------
Ranking N stations: O(N log N).  A memo hit is O(1).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from .distance import (
    DRIVE_SPEED_KMH,
    WALK_MINUTES_PER_KM,
    distance_km,
    estimate_drive_minutes,
    estimate_walk_minutes,
)
from .entities import Location, Station

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RankedStation:
    station: Station
    distance_km: float
    walk_minutes: int
    drive_minutes: int


def rank_stations(
    stations: Iterable[Station], reference: Location
) -> list[Station]:
    """Return a new list sorted by distance to *reference*, then by id."""
    return sorted(
        stations, key=lambda s: (distance_km(s.location, reference), s.id)
    )


def rank_with_estimates(
    stations: Iterable[Station],
    reference: Location,
    walk_minutes_per_km: float = WALK_MINUTES_PER_KM,
    drive_speed_kmh: float = DRIVE_SPEED_KMH,
) -> list[RankedStation]:
    ranked: list[RankedStation] = []
    for station in rank_stations(stations, reference):
        d = distance_km(station.location, reference)
        ranked.append(
            RankedStation(
                station=station,
                distance_km=d,
                walk_minutes=estimate_walk_minutes(d, walk_minutes_per_km),
                drive_minutes=estimate_drive_minutes(d, drive_speed_kmh),
            )
        )
    return ranked


class StationCatalog:
    """Read-mostly station list with a memoized nearest-first ranking."""

    def __init__(
        self,
        stations: Sequence[Station] = (),
        walk_minutes_per_km: float = WALK_MINUTES_PER_KM,
        drive_speed_kmh: float = DRIVE_SPEED_KMH,
    ):
        self.walk_minutes_per_km = walk_minutes_per_km
        self.drive_speed_kmh = drive_speed_kmh
        self._stations: dict[int, Station] = {}
        self.revision = 0
        self._memo_key: Optional[tuple[int, Location]] = None
        self._memo: list[RankedStation] = []
        self.replace(stations)

    def replace(self, stations: Sequence[Station]) -> None:
        """Swap in a freshly fetched station list."""
        self._stations = {s.id: s for s in stations}
        self.revision += 1
        logger.debug(
            "Station catalog now holds %d stations (rev %d)",
            len(self._stations),
            self.revision,
        )

    def get(self, station_id: Optional[int]) -> Optional[Station]:
        if station_id is None:
            return None
        return self._stations.get(station_id)

    def all(self) -> list[Station]:
        return sorted(self._stations.values(), key=lambda s: s.id)

    def __len__(self) -> int:
        return len(self._stations)

    def __contains__(self, station_id: object) -> bool:
        return station_id in self._stations

    def ranked(self, reference: Location) -> list[RankedStation]:
        key = (self.revision, reference)
        if key != self._memo_key:
            self._memo = rank_with_estimates(
                self._stations.values(),
                reference,
                self.walk_minutes_per_km,
                self.drive_speed_kmh,
            )
            self._memo_key = key
        return list(self._memo)

    def nearest(self, reference: Location) -> Optional[RankedStation]:
        ranked = self.ranked(reference)
        return ranked[0] if ranked else None
