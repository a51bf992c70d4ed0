"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import date, datetime, time
from typing import Optional

from pydantic import BaseModel, Field

from rental.domain.booking import BookingSession, OperationResult
from rental.domain.ranking import RankedStation


# ── Requests ──────────────────────────────────────────────────────────


class StationSelectRequest(BaseModel):
    station_id: int = Field(..., ge=0)


class DateTimeRequest(BaseModel):
    confirmed: bool
    departure_date: Optional[date] = None
    departure_time: Optional[time] = None


class AdvanceRequest(BaseModel):
    target: int = Field(..., ge=1, le=6)


class VerificationRequest(BaseModel):
    id_approved: bool = False
    license_approved: bool = False
    address_approved: bool = False


# ── Responses ─────────────────────────────────────────────────────────


class StationResponse(BaseModel):
    id: int
    name: str
    address: str
    lat: float
    lng: float
    wait_time_minutes: Optional[int] = None
    available_spots: Optional[int] = None
    virtual_car: bool = False
    distance_km: Optional[float] = None
    walk_minutes: Optional[int] = None
    drive_minutes: Optional[int] = None

    @classmethod
    def from_ranked(cls, ranked: RankedStation) -> "StationResponse":
        s = ranked.station
        return cls(
            id=s.id,
            name=s.name,
            address=s.address,
            lat=s.location.latitude,
            lng=s.location.longitude,
            wait_time_minutes=s.wait_time_minutes,
            available_spots=s.available_spots,
            virtual_car=s.virtual_car,
            distance_km=round(ranked.distance_km, 3),
            walk_minutes=ranked.walk_minutes,
            drive_minutes=ranked.drive_minutes,
        )


class RouteResponse(BaseModel):
    distance_meters: int
    duration_seconds: int
    polyline: str


class NotificationResponse(BaseModel):
    level: str
    message: str
    created_at: datetime


class FareResponse(BaseModel):
    elapsed_seconds: int
    minutes_used: int
    starting_fare_cents: int
    additional_fare_cents: int
    total_cents: int


class TripResponse(BaseModel):
    unlocked_at: Optional[datetime] = None
    elapsed_seconds: int
    timer_running: bool
    fully_verified: bool
    fare: FareResponse


class BookingResponse(BaseModel):
    user_id: str
    step: int
    selection_mode: str
    departure_station_id: Optional[int] = None
    arrival_station_id: Optional[int] = None
    departure_date: Optional[date] = None
    departure_time: Optional[time] = None
    date_time_confirmed: bool
    route: Optional[RouteResponse] = None
    dispatch_route: Optional[RouteResponse] = None
    trip: Optional[TripResponse] = None
    notifications: list[NotificationResponse] = []

    @classmethod
    def from_session(cls, session: BookingSession) -> "BookingResponse":
        state = session.state
        trip = session.trip
        trip_dto = None
        if trip is not None:
            fare = session.fare_quote()
            trip_dto = TripResponse(
                unlocked_at=trip.unlocked_at,
                elapsed_seconds=trip.elapsed_seconds,
                timer_running=session.timer_running,
                fully_verified=trip.verification.fully_verified,
                fare=_fare(fare),
            )
        return cls(
            user_id=session.user_id,
            step=int(state.step),
            selection_mode=session.selection_mode.value,
            departure_station_id=state.departure_station_id,
            arrival_station_id=state.arrival_station_id,
            departure_date=state.departure_date,
            departure_time=state.departure_time,
            date_time_confirmed=state.date_time_confirmed,
            route=_route(state.route),
            dispatch_route=_route(state.dispatch_route),
            trip=trip_dto,
            notifications=[
                NotificationResponse(
                    level=n.level.value, message=n.message, created_at=n.created_at
                )
                for n in session.drain_notifications()
            ],
        )


class OperationResponse(BaseModel):
    success: bool
    code: str
    message: str
    fare: Optional[FareResponse] = None
    transaction_id: Optional[str] = None
    booking: BookingResponse

    @classmethod
    def build(
        cls, result: OperationResult, session: BookingSession
    ) -> "OperationResponse":
        return cls(
            success=result.success,
            code=result.code,
            message=result.message,
            fare=_fare(result.fare) if result.fare else None,
            transaction_id=result.charge.transaction_id if result.charge else None,
            booking=BookingResponse.from_session(session),
        )


class SessionSummary(BaseModel):
    user_id: str
    step: int
    has_active_trip: bool


class HealthResponse(BaseModel):
    status: str = "ok"
    stations: int = 0
    sessions: int = 0


class ErrorResponse(BaseModel):
    detail: str


def _route(route) -> Optional[RouteResponse]:
    if route is None:
        return None
    return RouteResponse(
        distance_meters=route.distance_meters,
        duration_seconds=route.duration_seconds,
        polyline=route.polyline,
    )


def _fare(fare) -> FareResponse:
    return FareResponse(
        elapsed_seconds=fare.elapsed_seconds,
        minutes_used=fare.minutes_used,
        starting_fare_cents=fare.starting_fare_cents,
        additional_fare_cents=fare.additional_fare_cents,
        total_cents=fare.total_cents,
    )
