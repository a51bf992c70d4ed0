"""
Google Maps client for driving routes and address search.

Thin async wrapper over the Directions and Geocoding web services.
Returns ``None`` instead of raising for every "no result" or transport
problem; the route cache treats ``None`` as "leave the entry unset".
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from rental.config import settings
from rental.domain.entities import Location, RouteInfo

logger = logging.getLogger(__name__)


def _latlng(location: Location) -> str:
    return f"{location.latitude},{location.longitude}"


class GoogleMapsProvider:
    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str = "",
        directions_url: str = settings.directions_base_url,
        geocode_url: str = settings.geocode_base_url,
    ):
        self.client = client
        self.api_key = api_key
        self.directions_url = directions_url
        self.geocode_url = geocode_url

    async def fetch_route(
        self, origin: Location, destination: Location
    ) -> Optional[RouteInfo]:
        data = await self._get(
            self.directions_url,
            {
                "origin": _latlng(origin),
                "destination": _latlng(destination),
                "mode": "driving",
                "key": self.api_key,
            },
        )
        if data is None:
            return None

        routes = data.get("routes") or []
        if not routes:
            logger.info("No route found between %s and %s", origin, destination)
            return None
        route = routes[0]
        legs = route.get("legs") or [{}]
        distance = (legs[0].get("distance") or {}).get("value")
        duration = (legs[0].get("duration") or {}).get("value")
        if not distance or not duration:
            logger.warning("Incomplete route data between %s and %s", origin, destination)
            return None

        return RouteInfo(
            distance_meters=int(distance),
            duration_seconds=int(duration),
            polyline=(route.get("overview_polyline") or {}).get("points", ""),
        )

    async def geocode(self, query: str) -> Optional[Location]:
        data = await self._get(self.geocode_url, {"address": query, "key": self.api_key})
        if data is None:
            return None

        results = data.get("results") or []
        if not results:
            logger.info("Address not found: %s", query)
            return None
        location = (results[0].get("geometry") or {}).get("location") or {}
        lat, lng = location.get("lat"), location.get("lng")
        if lat is None or lng is None:
            return None
        return Location(float(lat), float(lng))

    async def _get(self, url: str, params: dict[str, str]) -> Optional[dict[str, Any]]:
        try:
            response = await self.client.get(url, params=params)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Maps request to %s failed: %s", url, exc)
            return None

        status = data.get("status", "OK")
        if status not in ("OK", "ZERO_RESULTS"):
            logger.warning(
                "Maps API status %s: %s", status, data.get("error_message", "")
            )
            return None
        return data
