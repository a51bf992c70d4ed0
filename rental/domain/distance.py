"""
Distance and travel-time estimates using the Haversine formula.

Assumption
----------
Station proximity is great-circle (Haversine) distance, not a routed
distance.  Routed distances come from the mapping provider through the
route cache; this module never performs I/O so that ranking stays
instantaneous on every geolocation fix.

Complexity: O(1) per call.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .entities import Location

EARTH_RADIUS_KM = 6_371.0
WALK_MINUTES_PER_KM = 12.0
DRIVE_SPEED_KMH = 30.0


def haversine_km(
    lat1: float, lng1: float, lat2: float, lng2: float
) -> float:
    """Return the great-circle distance in **km** between two points."""
    lat1_r, lat2_r = math.radians(lat1), math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)

    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_r) * math.cos(lat2_r) * math.sin(dlng / 2) ** 2
    )
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


def distance_km(a: Location, b: Location) -> float:
    return haversine_km(a.latitude, a.longitude, b.latitude, b.longitude)


def estimate_walk_minutes(
    distance: float, minutes_per_km: float = WALK_MINUTES_PER_KM
) -> int:
    """Linear walking estimate (12 min/km pace by default), halves round up."""
    return math.floor(distance * minutes_per_km + 0.5)


def estimate_drive_minutes(
    distance: float, speed_kmh: float = DRIVE_SPEED_KMH
) -> int:
    """Linear driving estimate; never less than one minute for a non-zero hop."""
    if distance <= 0:
        return 0
    return max(1, round(distance / speed_kmh * 60))
