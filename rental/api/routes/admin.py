"""
Admin / observability endpoints
===============================

GET /api/v1/admin/sessions -- list live booking sessions
GET /api/v1/admin/health   -- simple health check
"""

from fastapi import APIRouter, Depends, Request

from rental.api.dependencies import SessionRegistry, get_catalog, get_registry
from rental.api.middleware import limiter
from rental.api.schemas import HealthResponse, SessionSummary
from rental.domain.ranking import StationCatalog

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get(
    "/sessions",
    response_model=list[SessionSummary],
    summary="List all live booking sessions",
)
@limiter.limit("100/minute")
async def get_sessions(
    request: Request,
    registry: SessionRegistry = Depends(get_registry),
):
    return [
        SessionSummary(
            user_id=s.user_id,
            step=int(s.step),
            has_active_trip=s.has_active_trip,
        )
        for s in registry.sessions()
    ]


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health(
    registry: SessionRegistry = Depends(get_registry),
    catalog: StationCatalog = Depends(get_catalog),
):
    return HealthResponse(stations=len(catalog), sessions=len(registry))
