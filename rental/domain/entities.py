"""
Domain entities with business logic.

Patterns used
-------------
- **State Pattern** on ``BookingState``: every mutation goes through a
  named operation that checks the current step and the cross-field
  invariant (departure and arrival stations always differ) before it
  writes anything.
- ``TripSession`` carries the verification gates and the usage counter
  for the single active trip of a booking.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Any, Callable, Optional

from .enums import (
    ARRIVAL_CLEAR_STEPS,
    ARRIVAL_SELECT_STEPS,
    DEPARTURE_CLEAR_STEPS,
    DEPARTURE_SELECT_STEPS,
    BookingStep,
    RouteKind,
)


class BookingError(Exception):
    """Base class for rejected booking operations."""


class InvalidStateTransition(BookingError):
    """Raised when an operation is not legal in the current step."""


class UnknownStationError(BookingError):
    """Raised when a station id is not in the loaded catalog."""

    def __init__(self, station_id: int):
        super().__init__(f"Station {station_id} does not exist")
        self.station_id = station_id


class SameStationError(BookingError):
    """Raised when departure and arrival would be the same station."""

    def __init__(self, station_id: int):
        super().__init__(
            f"Station {station_id} is already selected for the other leg"
        )
        self.station_id = station_id


# ── Value Objects ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class Station:
    id: int
    location: Location
    name: str = ""
    address: str = ""
    wait_time_minutes: Optional[int] = None
    available_spots: Optional[int] = None
    total_spots: Optional[int] = None
    max_power_kw: Optional[float] = None
    virtual_car: bool = False


@dataclass(frozen=True)
class RouteInfo:
    distance_meters: int
    duration_seconds: int
    polyline: str = ""


@dataclass(frozen=True)
class VerificationStatus:
    id_approved: bool = False
    license_approved: bool = False
    address_approved: bool = False

    @property
    def fully_verified(self) -> bool:
        return self.id_approved and self.license_approved and self.address_approved


# ── Entities ──────────────────────────────────────────────────────────


@dataclass
class BookingState:
    step: BookingStep = BookingStep.SELECT_DEPARTURE
    departure_station_id: Optional[int] = None
    arrival_station_id: Optional[int] = None
    departure_date: Optional[date] = None
    departure_time: Optional[time] = None
    date_time_confirmed: bool = False
    route: Optional[RouteInfo] = None
    dispatch_route: Optional[RouteInfo] = None
    revision: int = 0

    # -- station selection -------------------------------------------------

    def select_departure(self, station_id: int) -> None:
        self._require_step(DEPARTURE_SELECT_STEPS, "select a departure station")
        if station_id == self.arrival_station_id:
            raise SameStationError(station_id)

        if station_id != self.departure_station_id:
            self.dispatch_route = None
            self.route = None
        self.departure_station_id = station_id
        if self.step == BookingStep.SELECT_DEPARTURE:
            self.step = BookingStep.CONFIRM_DEPARTURE
        self._touch()

    def select_arrival(self, station_id: int) -> None:
        self._require_step(ARRIVAL_SELECT_STEPS, "select an arrival station")
        if station_id == self.departure_station_id:
            raise SameStationError(station_id)

        if station_id != self.arrival_station_id:
            self.route = None
        self.arrival_station_id = station_id
        if self.step == BookingStep.SELECT_ARRIVAL:
            self.step = BookingStep.CONFIRM_ARRIVAL
        self._touch()

    def clear_departure(self) -> None:
        self._require_step(DEPARTURE_CLEAR_STEPS, "clear the departure station")
        self.departure_station_id = None
        self.dispatch_route = None
        self.route = None
        self.step = BookingStep.SELECT_DEPARTURE
        self._touch()

    def clear_arrival(self) -> None:
        self._require_step(ARRIVAL_CLEAR_STEPS, "clear the arrival station")
        self.arrival_station_id = None
        self.route = None
        self.step = BookingStep.SELECT_ARRIVAL
        self._touch()

    # -- date / time -------------------------------------------------------

    def confirm_date_time(
        self,
        confirmed: bool,
        departure_date: Optional[date] = None,
        departure_time: Optional[time] = None,
    ) -> None:
        if departure_date is not None:
            self.departure_date = departure_date
        if departure_time is not None:
            self.departure_time = departure_time
        self.date_time_confirmed = confirmed
        self._touch()

    # -- step control ------------------------------------------------------

    def advance_to(self, target: int) -> None:
        """Move forward to *target* if the transition is legal, else raise."""
        self.step = self.check_advance(target)
        self._touch()

    def check_advance(self, target: int) -> BookingStep:
        """Validate a forward move without applying it."""
        try:
            target_step = BookingStep(target)
        except ValueError:
            raise InvalidStateTransition(f"Unknown booking step {target}") from None

        if target_step <= self.step:
            raise InvalidStateTransition(
                f"Cannot go back from step {int(self.step)} to {int(target_step)}"
            )
        if target_step >= BookingStep.CONFIRM_DEPARTURE and self.departure_station_id is None:
            raise InvalidStateTransition("A departure station must be selected first")
        if target_step >= BookingStep.CONFIRM_ARRIVAL and self.arrival_station_id is None:
            raise InvalidStateTransition("An arrival station must be selected first")
        return target_step

    def reset(self) -> None:
        """Return to step 1 and clear every station, route and date field."""
        self.step = BookingStep.SELECT_DEPARTURE
        self.departure_station_id = None
        self.arrival_station_id = None
        self.departure_date = None
        self.departure_time = None
        self.date_time_confirmed = False
        self.route = None
        self.dispatch_route = None
        self._touch()

    # -- routes ------------------------------------------------------------

    def apply_route(self, kind: RouteKind, route: Optional[RouteInfo]) -> None:
        if kind is RouteKind.ROUTE:
            self.route = route
        else:
            self.dispatch_route = route
        self._touch()

    # -- persistence -------------------------------------------------------

    def to_snapshot(self) -> dict[str, Any]:
        return {
            "step": int(self.step),
            "departure_station_id": self.departure_station_id,
            "arrival_station_id": self.arrival_station_id,
            "date_time_confirmed": self.date_time_confirmed,
            "departure_date": (
                self.departure_date.isoformat() if self.departure_date else None
            ),
            "departure_time": (
                self.departure_time.isoformat() if self.departure_time else None
            ),
        }

    @classmethod
    def from_snapshot(cls, data: dict[str, Any]) -> "BookingState":
        """Rebuild a state from a persisted snapshot.

        Unknown steps fall back to step 1.  Station ids are coerced to
        int and dropped when they cannot be; a snapshot that violates the
        distinct-stations invariant drops its arrival station.  Malformed
        dates and times are dropped.
        """
        try:
            step = BookingStep(int(data.get("step") or 1))
        except (TypeError, ValueError):
            step = BookingStep.SELECT_DEPARTURE

        departure = _coerce_station_id(data.get("departure_station_id"))
        arrival = _coerce_station_id(data.get("arrival_station_id"))
        if departure is not None and departure == arrival:
            arrival = None

        return cls(
            step=step,
            departure_station_id=departure,
            arrival_station_id=arrival,
            date_time_confirmed=bool(data.get("date_time_confirmed", False)),
            departure_date=_parse_iso(date, data.get("departure_date")),
            departure_time=_parse_iso(time, data.get("departure_time")),
        )

    def drop_unknown_stations(self, is_known: Callable[[int], bool]) -> bool:
        """Clear any selected station ``is_known`` rejects.  Returns True if one was cleared."""
        dropped = False
        if self.departure_station_id is not None and not is_known(self.departure_station_id):
            self.departure_station_id = None
            self.dispatch_route = None
            self.route = None
            dropped = True
        if self.arrival_station_id is not None and not is_known(self.arrival_station_id):
            self.arrival_station_id = None
            self.route = None
            dropped = True
        return dropped

    # -- internals ---------------------------------------------------------

    def _require_step(self, allowed: frozenset[BookingStep], action: str) -> None:
        if self.step not in allowed:
            raise InvalidStateTransition(
                f"Cannot {action} at step {int(self.step)}"
            )

    def _touch(self) -> None:
        self.revision += 1


def _coerce_station_id(raw: Any) -> Optional[int]:
    if raw is None or isinstance(raw, bool):
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def _parse_iso(kind: type, raw: Any) -> Any:
    if not raw or not isinstance(raw, str):
        return None
    try:
        return kind.fromisoformat(raw)
    except ValueError:
        return None


@dataclass
class TripSession:
    verification: VerificationStatus = field(default_factory=VerificationStatus)
    unlocked_at: Optional[datetime] = None
    elapsed_seconds: int = 0
    starting_charge_id: Optional[str] = None

    @property
    def is_unlocked(self) -> bool:
        return self.unlocked_at is not None

    def mark_unlocked(self, now: datetime) -> bool:
        """Record the unlock time once.  Returns False if already unlocked."""
        if self.unlocked_at is not None:
            return False
        self.unlocked_at = now
        return True
