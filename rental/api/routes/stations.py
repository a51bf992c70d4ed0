"""
Station endpoints
=================

GET /api/v1/stations?lat=&lng=   -- stations ranked nearest-first
GET /api/v1/stations/search?q=   -- geocode an address, then rank
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from rental.api.dependencies import get_catalog, get_mapping
from rental.api.middleware import limiter
from rental.api.schemas import StationResponse
from rental.domain.entities import Location
from rental.domain.ports import MappingProvider
from rental.domain.ranking import StationCatalog

router = APIRouter(prefix="/stations", tags=["stations"])


@router.get(
    "",
    response_model=list[StationResponse],
    summary="List stations ranked by distance",
)
@limiter.limit("100/minute")
async def list_stations(
    request: Request,
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    limit: int = Query(50, ge=1, le=500),
    catalog: StationCatalog = Depends(get_catalog),
):
    ranked = catalog.ranked(Location(lat, lng))
    return [StationResponse.from_ranked(r) for r in ranked[:limit]]


@router.get(
    "/search",
    response_model=list[StationResponse],
    summary="Rank stations around a searched address",
)
@limiter.limit("30/minute")
async def search_stations(
    request: Request,
    q: str = Query(..., min_length=1, max_length=200),
    limit: int = Query(50, ge=1, le=500),
    catalog: StationCatalog = Depends(get_catalog),
    mapping: MappingProvider = Depends(get_mapping),
):
    location = await mapping.geocode(q)
    if location is None:
        raise HTTPException(status_code=404, detail="Address not found")
    ranked = catalog.ranked(location)
    return [StationResponse.from_ranked(r) for r in ranked[:limit]]
