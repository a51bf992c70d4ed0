"""
Booking endpoints
=================

GET    /api/v1/bookings/{user_id}               -- state + pending toasts
POST   /api/v1/bookings/{user_id}/departure     -- select departure station
DELETE /api/v1/bookings/{user_id}/departure     -- clear departure
POST   /api/v1/bookings/{user_id}/arrival       -- select arrival station
DELETE /api/v1/bookings/{user_id}/arrival       -- clear arrival
POST   /api/v1/bookings/{user_id}/date-time     -- departure date / time
POST   /api/v1/bookings/{user_id}/advance       -- forward step change
POST   /api/v1/bookings/{user_id}/reset         -- back to step 1
POST   /api/v1/bookings/{user_id}/trip          -- pay starting fare, start trip
POST   /api/v1/bookings/{user_id}/trip/unlock   -- unlock vehicle, start meter
POST   /api/v1/bookings/{user_id}/trip/end      -- charge usage, finish trip
PUT    /api/v1/bookings/{user_id}/verification  -- update verification gates

Rejected operations map to 409, payment failures to 402 and missing
verification to 403.
"""

from fastapi import APIRouter, Depends, HTTPException, Request

from rental.api.dependencies import SessionRegistry, get_registry
from rental.api.middleware import limiter
from rental.api.schemas import (
    AdvanceRequest,
    BookingResponse,
    DateTimeRequest,
    OperationResponse,
    StationSelectRequest,
    VerificationRequest,
)
from rental.domain.booking import BookingSession, OperationResult
from rental.domain.entities import VerificationStatus

router = APIRouter(prefix="/bookings", tags=["bookings"])

_ERROR_STATUS = {
    "rejected": 409,
    "payment_failed": 402,
    "verification_required": 403,
}


def _respond(result: OperationResult, session: BookingSession) -> OperationResponse:
    status = _ERROR_STATUS.get(result.code)
    if status is not None:
        raise HTTPException(status_code=status, detail=result.message)
    return OperationResponse.build(result, session)


@router.get(
    "/{user_id}",
    response_model=BookingResponse,
    summary="Get booking state and pending notifications",
)
@limiter.limit("100/minute")
async def get_booking(
    request: Request,
    user_id: str,
    registry: SessionRegistry = Depends(get_registry),
):
    session = await registry.get(user_id)
    return BookingResponse.from_session(session)


# ── Station selection ─────────────────────────────────────────────────


@router.post(
    "/{user_id}/departure",
    response_model=OperationResponse,
    summary="Select the departure station",
)
@limiter.limit("100/minute")
async def select_departure(
    request: Request,
    body: StationSelectRequest,
    user_id: str,
    registry: SessionRegistry = Depends(get_registry),
):
    session = await registry.get(user_id)
    return _respond(await session.select_departure(body.station_id), session)


@router.delete(
    "/{user_id}/departure",
    response_model=OperationResponse,
    summary="Clear the departure station",
)
@limiter.limit("100/minute")
async def clear_departure(
    request: Request,
    user_id: str,
    registry: SessionRegistry = Depends(get_registry),
):
    session = await registry.get(user_id)
    return _respond(await session.clear_departure(), session)


@router.post(
    "/{user_id}/arrival",
    response_model=OperationResponse,
    summary="Select the arrival station",
)
@limiter.limit("100/minute")
async def select_arrival(
    request: Request,
    body: StationSelectRequest,
    user_id: str,
    registry: SessionRegistry = Depends(get_registry),
):
    session = await registry.get(user_id)
    return _respond(await session.select_arrival(body.station_id), session)


@router.delete(
    "/{user_id}/arrival",
    response_model=OperationResponse,
    summary="Clear the arrival station",
)
@limiter.limit("100/minute")
async def clear_arrival(
    request: Request,
    user_id: str,
    registry: SessionRegistry = Depends(get_registry),
):
    session = await registry.get(user_id)
    return _respond(await session.clear_arrival(), session)


@router.post(
    "/{user_id}/date-time",
    response_model=OperationResponse,
    summary="Set the departure date / time confirmation",
)
@limiter.limit("100/minute")
async def confirm_date_time(
    request: Request,
    body: DateTimeRequest,
    user_id: str,
    registry: SessionRegistry = Depends(get_registry),
):
    session = await registry.get(user_id)
    result = await session.confirm_date_time(
        body.confirmed, body.departure_date, body.departure_time
    )
    return _respond(result, session)


# ── Step control ──────────────────────────────────────────────────────


@router.post(
    "/{user_id}/advance",
    response_model=OperationResponse,
    summary="Advance the booking to a later step",
    description=(
        "Forward-only.  Step 5 charges the starting fare; step 6 ends the "
        "active trip and charges the usage fare."
    ),
)
@limiter.limit("100/minute")
async def advance(
    request: Request,
    body: AdvanceRequest,
    user_id: str,
    registry: SessionRegistry = Depends(get_registry),
):
    session = await registry.get(user_id)
    return _respond(await session.advance_step(body.target), session)


@router.post(
    "/{user_id}/reset",
    response_model=OperationResponse,
    summary="Reset the booking to step 1",
)
@limiter.limit("100/minute")
async def reset(
    request: Request,
    user_id: str,
    registry: SessionRegistry = Depends(get_registry),
):
    session = await registry.get(user_id)
    return _respond(await session.reset_booking_flow(), session)


# ── Trip ──────────────────────────────────────────────────────────────


@router.post(
    "/{user_id}/trip",
    response_model=OperationResponse,
    summary="Pay the starting fare and begin the trip",
    responses={402: {"description": "Starting-fare charge failed."}},
)
@limiter.limit("20/minute")
async def begin_trip(
    request: Request,
    user_id: str,
    registry: SessionRegistry = Depends(get_registry),
):
    session = await registry.get(user_id)
    return _respond(await session.begin_trip(), session)


@router.post(
    "/{user_id}/trip/unlock",
    response_model=OperationResponse,
    summary="Unlock the vehicle and start the trip meter",
    responses={403: {"description": "Verification incomplete."}},
)
@limiter.limit("20/minute")
async def unlock(
    request: Request,
    user_id: str,
    registry: SessionRegistry = Depends(get_registry),
):
    session = await registry.get(user_id)
    return _respond(await session.unlock(), session)


@router.post(
    "/{user_id}/trip/end",
    response_model=OperationResponse,
    summary="End the trip and charge the usage fare",
    responses={402: {"description": "Usage charge failed; trip stays active."}},
)
@limiter.limit("20/minute")
async def end_trip(
    request: Request,
    user_id: str,
    registry: SessionRegistry = Depends(get_registry),
):
    session = await registry.get(user_id)
    return _respond(await session.end_trip(), session)


@router.put(
    "/{user_id}/verification",
    response_model=OperationResponse,
    summary="Update the verification gates of the active trip",
)
@limiter.limit("20/minute")
async def update_verification(
    request: Request,
    body: VerificationRequest,
    user_id: str,
    registry: SessionRegistry = Depends(get_registry),
):
    session = await registry.get(user_id)
    status = VerificationStatus(
        id_approved=body.id_approved,
        license_approved=body.license_approved,
        address_approved=body.address_approved,
    )
    return _respond(await session.update_verification(status), session)
