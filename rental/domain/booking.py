"""
Booking Session Controller
==========================

One ``BookingSession`` per signed-in user.  It owns the ``BookingState``,
the optional ``TripSession`` and its ``TripTimer``, and is the only code
path that mutates them.  Callers get read-only copies.

Every public operation:

1. runs under the session lock, so two operations never interleave
   across an ``await``;
2. applies the state change synchronously through the entity, which
   checks the step and the distinct-stations invariant first;
3. persists the snapshot (signed-in users only);
4. notifies observers (the recovery monitor) after the lock is released.

Rejections are converted into a warning notification plus a failed
``OperationResult``; nothing is raised to the caller.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections import deque
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Any, Awaitable, Callable, Coroutine, Optional

from .entities import (
    BookingError,
    BookingState,
    InvalidStateTransition,
    Location,
    Station,
    TripSession,
    UnknownStationError,
    VerificationStatus,
)
from .enums import (
    BookingStep,
    ChargeKind,
    NotificationLevel,
    RouteKind,
    SelectionMode,
    selection_mode_for,
)
from .ports import (
    ChargeLedger,
    ChargeResult,
    Notification,
    Notifier,
    PaymentGateway,
    SnapshotStore,
    VerificationService,
)
from .pricing import BillingEngine, FareBreakdown
from .ranking import StationCatalog
from .route_cache import RouteCache, RouteKey
from .trip_timer import TripTimer

logger = logging.getLogger(__name__)

Observer = Callable[["BookingSession"], Awaitable[None]]


@dataclass(frozen=True)
class OperationResult:
    success: bool
    message: str = ""
    code: str = "ok"  # ok | noop | rejected | payment_failed | verification_required
    fare: Optional[FareBreakdown] = None
    charge: Optional[ChargeResult] = None


class BookingSession:
    def __init__(
        self,
        user_id: str,
        *,
        catalog: StationCatalog,
        routes: RouteCache,
        billing: BillingEngine,
        payment: PaymentGateway,
        verification: VerificationService,
        snapshots: SnapshotStore,
        dispatch_hub: Location,
        ledger: Optional[ChargeLedger] = None,
        notifier: Optional[Notifier] = None,
        tick_seconds: float = 1.0,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.user_id = user_id
        self.catalog = catalog
        self.routes = routes
        self.billing = billing
        self.dispatch_hub = dispatch_hub
        self.is_signed_in = False
        self.notifications: deque[Notification] = deque(maxlen=50)

        self._payment = payment
        self._verification = verification
        self._snapshots = snapshots
        self._ledger = ledger
        self._notifier = notifier
        self._tick_seconds = tick_seconds
        self._clock = clock

        self._state = BookingState()
        self._trip: Optional[TripSession] = None
        self._timer: Optional[TripTimer] = None
        self._lock = asyncio.Lock()
        self._observers: list[Observer] = []
        self._route_tasks: set[asyncio.Task] = set()
        self._memo: dict[str, tuple[tuple[int, int], Any]] = {}

    # ── Read-only views ───────────────────────────────────────────────

    @property
    def state(self) -> BookingState:
        return dataclasses.replace(self._state)

    @property
    def step(self) -> BookingStep:
        return self._state.step

    @property
    def trip(self) -> Optional[TripSession]:
        return dataclasses.replace(self._trip) if self._trip else None

    @property
    def has_active_trip(self) -> bool:
        return self._trip is not None

    @property
    def timer_running(self) -> bool:
        return self._timer is not None and self._timer.running

    @property
    def selection_mode(self) -> SelectionMode:
        return self._memoized(
            "selection_mode", lambda: selection_mode_for(self._state.step)
        )

    @property
    def departure_station(self) -> Optional[Station]:
        return self._memoized(
            "departure_station",
            lambda: self.catalog.get(self._state.departure_station_id),
        )

    @property
    def arrival_station(self) -> Optional[Station]:
        return self._memoized(
            "arrival_station",
            lambda: self.catalog.get(self._state.arrival_station_id),
        )

    def fare_quote(self) -> FareBreakdown:
        elapsed = self._trip.elapsed_seconds if self._trip else 0
        return self.billing.breakdown(elapsed)

    def drain_notifications(self) -> list[Notification]:
        drained = list(self.notifications)
        self.notifications.clear()
        return drained

    def add_observer(self, observer: Observer) -> None:
        self._observers.append(observer)

    # ── Lifecycle ─────────────────────────────────────────────────────

    async def start(self, signed_in: bool = True) -> None:
        """Load the persisted snapshot (if any) and run the observers."""
        self.is_signed_in = signed_in
        if signed_in:
            snapshot = await self._load_snapshot()
            if snapshot:
                self._state = self._restore(snapshot)
                logger.info(
                    "Restored booking for %s at step %d",
                    self.user_id, self._state.step,
                )
                self._refresh_dispatch_route(invalidate=True)
                self._refresh_route(invalidate=True)
        await self._notify_observers()

    async def sign_in(self) -> None:
        self.is_signed_in = True
        await self._notify_observers()

    async def sign_out(self) -> None:
        self.is_signed_in = False
        await self._notify_observers()

    async def close(self) -> None:
        """Stop the trip timer and drop any pending route work."""
        if self._timer:
            await self._timer.stop()
        for task in list(self._route_tasks):
            task.cancel()
        if self._route_tasks:
            await asyncio.gather(*self._route_tasks, return_exceptions=True)
        self._route_tasks.clear()

    async def wait_for_routes(self) -> None:
        """Block until every scheduled route refresh has settled."""
        while self._route_tasks:
            await asyncio.gather(*list(self._route_tasks), return_exceptions=True)

    # ── Station selection ─────────────────────────────────────────────

    async def select_departure(self, station_id: int) -> OperationResult:
        async with self._lock:
            previous = self._state.departure_station_id
            try:
                self._require_station(station_id)
                self._state.select_departure(station_id)
            except BookingError as exc:
                return self._reject(exc)

            changed = previous != station_id
            self._refresh_dispatch_route(invalidate=changed)
            if changed and self._state.arrival_station_id is not None:
                self._refresh_route(invalidate=True)
            await self._persist()
            self._notify(
                NotificationLevel.SUCCESS,
                "Departure station selected!" if previous is None
                else "Departure station re-selected!",
            )
        await self._notify_observers()
        return OperationResult(True, f"Departure station {station_id} selected")

    async def select_arrival(self, station_id: int) -> OperationResult:
        async with self._lock:
            previous = self._state.arrival_station_id
            try:
                self._require_station(station_id)
                self._state.select_arrival(station_id)
            except BookingError as exc:
                return self._reject(exc)

            self._refresh_route(invalidate=previous != station_id)
            await self._persist()
            self._notify(
                NotificationLevel.SUCCESS,
                "Arrival station selected!" if previous is None
                else "Arrival station re-selected!",
            )
        await self._notify_observers()
        return OperationResult(True, f"Arrival station {station_id} selected")

    async def clear_departure(self) -> OperationResult:
        async with self._lock:
            try:
                self._state.clear_departure()
            except BookingError as exc:
                return self._reject(exc)
            self.routes.invalidate_kind(RouteKind.DISPATCH)
            self.routes.invalidate_kind(RouteKind.ROUTE)
            await self._persist()
        await self._notify_observers()
        return OperationResult(True, "Departure station cleared")

    async def clear_arrival(self) -> OperationResult:
        async with self._lock:
            try:
                self._state.clear_arrival()
            except BookingError as exc:
                return self._reject(exc)
            self.routes.invalidate_kind(RouteKind.ROUTE)
            await self._persist()
        await self._notify_observers()
        return OperationResult(True, "Arrival station cleared")

    async def confirm_date_time(
        self,
        confirmed: bool,
        departure_date: Optional[date] = None,
        departure_time: Optional[time] = None,
    ) -> OperationResult:
        async with self._lock:
            self._state.confirm_date_time(confirmed, departure_date, departure_time)
            await self._persist()
        await self._notify_observers()
        return OperationResult(True, "Date and time updated")

    # ── Step control ──────────────────────────────────────────────────

    async def advance_step(self, target: int) -> OperationResult:
        """Forward-only step change.

        Step 5 requires the starting-fare charge, so it is routed through
        ``begin_trip``.  Step 6 is the legacy completion step; it is
        treated as ``end_trip`` so a trip always ends by charging and
        resetting to step 1.
        """
        if target == BookingStep.TRIP_ACTIVE:
            return await self.begin_trip()
        if target == BookingStep.TRIP_COMPLETED:
            if self._trip is not None:
                return await self.end_trip()
            return self._reject(
                InvalidStateTransition("There is no active trip to complete")
            )

        async with self._lock:
            try:
                self._state.advance_to(target)
            except BookingError as exc:
                return self._reject(exc)
            await self._persist()
            if self._state.step == BookingStep.SELECT_ARRIVAL:
                self._notify(
                    NotificationLevel.SUCCESS,
                    "Departure confirmed! Now choose your arrival station.",
                )
        await self._notify_observers()
        return OperationResult(True, f"Advanced to step {target}")

    async def reset_booking_flow(self, notify: bool = True) -> OperationResult:
        async with self._lock:
            await self._reset_locked()
            if notify:
                self._notify(NotificationLevel.INFO, "Booking reset")
        await self._notify_observers()
        return OperationResult(True, "Booking reset")

    # ── Trip ──────────────────────────────────────────────────────────

    async def begin_trip(self) -> OperationResult:
        """Charge the starting fare and enter step 5."""
        async with self._lock:
            if self._trip is not None:
                return OperationResult(True, "Trip already active", code="noop")
            try:
                self._state.check_advance(BookingStep.TRIP_ACTIVE)
                if self._state.step != BookingStep.CONFIRM_ARRIVAL:
                    raise InvalidStateTransition(
                        f"Cannot start a trip from step {int(self._state.step)}"
                    )
            except BookingError as exc:
                return self._reject(exc)

            amount = self.billing.starting_fare_cents
            charge = await self._charge(ChargeKind.STARTING_FARE, amount)
            if not charge.success:
                message = f"Payment failed: {charge.error or 'unknown error'}"
                self._notify(NotificationLevel.ERROR, message)
                return OperationResult(
                    False, message, code="payment_failed", charge=charge
                )

            verification = await self._fetch_verification()
            self._trip = TripSession(
                verification=verification,
                starting_charge_id=charge.transaction_id,
            )
            self._timer = TripTimer(self._trip, self._tick_seconds)
            self._state.advance_to(BookingStep.TRIP_ACTIVE)
            await self._persist()
            self._notify(NotificationLevel.SUCCESS, "Payment successful, enjoy your trip!")
        await self._notify_observers()
        return OperationResult(True, "Trip started", charge=charge)

    async def update_verification(self, status: VerificationStatus) -> OperationResult:
        async with self._lock:
            if self._trip is None:
                return OperationResult(True, "No active trip", code="noop")
            self._trip.verification = status
        return OperationResult(True, "Verification updated")

    async def unlock(self) -> OperationResult:
        async with self._lock:
            if self._trip is None or self._timer is None:
                return self._reject(InvalidStateTransition("There is no active trip to unlock"))
            if not self._trip.verification.fully_verified:
                return OperationResult(
                    False,
                    "Complete verification to unlock the vehicle",
                    code="verification_required",
                )
            if not self._trip.mark_unlocked(self._clock()):
                return OperationResult(True, "Vehicle already unlocked", code="noop")
            self._timer.start()
            self._notify(NotificationLevel.SUCCESS, "Vehicle unlocked")
        return OperationResult(True, "Vehicle unlocked")

    async def end_trip(self) -> OperationResult:
        """Stop the timer, charge the usage fare and reset on success."""
        async with self._lock:
            if self._trip is None or self._timer is None:
                return self._reject(InvalidStateTransition("There is no active trip to end"))

            await self._timer.stop()
            fare = self.billing.breakdown(self._trip.elapsed_seconds)

            charge = ChargeResult(success=True)
            if fare.additional_fare_cents > 0:
                charge = await self._charge(ChargeKind.USAGE, fare.additional_fare_cents)
            if not charge.success:
                message = (
                    f"Could not charge {fare.additional_fare_cents} cents: "
                    f"{charge.error or 'unknown error'}. Please try again."
                )
                self._notify(NotificationLevel.ERROR, message)
                return OperationResult(
                    False, message, code="payment_failed", fare=fare, charge=charge
                )

            logger.info(
                "Trip for %s ended: %d min, %d cents",
                self.user_id, fare.minutes_used, fare.additional_fare_cents,
            )
            await self._reset_locked()
            self._notify(NotificationLevel.SUCCESS, "Trip completed successfully!")
        await self._notify_observers()
        return OperationResult(True, "Trip completed", fare=fare, charge=charge)

    # ── Notifications ─────────────────────────────────────────────────

    def notify(self, level: NotificationLevel, message: str) -> None:
        self._notify(level, message)

    def _notify(self, level: NotificationLevel, message: str) -> None:
        notification = Notification(level=level, message=message)
        self.notifications.append(notification)
        if self._notifier:
            self._notifier.notify(self.user_id, notification)

    def _reject(self, exc: Exception) -> OperationResult:
        message = str(exc)
        logger.info("Rejected booking operation for %s: %s", self.user_id, message)
        self._notify(NotificationLevel.WARNING, message)
        return OperationResult(False, message, code="rejected")

    # ── Internals ─────────────────────────────────────────────────────

    def _require_station(self, station_id: int) -> None:
        if station_id not in self.catalog:
            raise UnknownStationError(station_id)

    async def _reset_locked(self) -> None:
        if self._timer:
            await self._timer.stop()
        self._timer = None
        self._trip = None
        self._state.reset()
        self.routes.clear()
        await self._persist()

    async def _charge(self, kind: ChargeKind, amount_cents: int) -> ChargeResult:
        try:
            result = await self._payment.charge(self.user_id, amount_cents)
        except Exception as exc:
            logger.warning("Payment gateway error for %s", self.user_id, exc_info=True)
            result = ChargeResult(success=False, error=str(exc) or type(exc).__name__)

        if self._ledger:
            try:
                await self._ledger.record(self.user_id, kind, amount_cents, result)
            except Exception:
                logger.exception("Failed to record %s charge for %s", kind.value, self.user_id)
        return result

    async def _fetch_verification(self) -> VerificationStatus:
        try:
            return await self._verification.get_status(self.user_id)
        except Exception:
            logger.warning("Verification lookup failed for %s", self.user_id, exc_info=True)
            return VerificationStatus()

    async def _load_snapshot(self) -> Optional[dict[str, Any]]:
        try:
            return await self._snapshots.load(self.user_id)
        except Exception:
            logger.warning("Could not load booking snapshot for %s", self.user_id, exc_info=True)
            return None

    def _restore(self, snapshot: dict[str, Any]) -> BookingState:
        try:
            state = BookingState.from_snapshot(snapshot)
        except Exception:
            logger.warning(
                "Discarding unreadable booking snapshot for %s", self.user_id, exc_info=True
            )
            return BookingState()
        # An empty catalog has not loaded yet; keep the ids until it has.
        if len(self.catalog) and state.drop_unknown_stations(lambda sid: sid in self.catalog):
            logger.warning("Dropped unknown stations from booking of %s", self.user_id)
        return state

    async def _persist(self) -> None:
        if not self.is_signed_in:
            return
        try:
            await self._snapshots.save(self.user_id, self._state.to_snapshot())
        except Exception:
            logger.warning("Could not persist booking snapshot for %s", self.user_id, exc_info=True)

    async def _notify_observers(self) -> None:
        for observer in list(self._observers):
            await observer(self)

    def _memoized(self, name: str, compute: Callable[[], Any]) -> Any:
        key = (self._state.revision, self.catalog.revision)
        cached = self._memo.get(name)
        if cached is None or cached[0] != key:
            cached = (key, compute())
            self._memo[name] = cached
        return cached[1]

    # -- route refresh -----------------------------------------------------

    def _refresh_dispatch_route(self, invalidate: bool) -> None:
        if invalidate:
            self.routes.invalidate_kind(RouteKind.DISPATCH)
        departure = self.catalog.get(self._state.departure_station_id)
        if departure is None or departure.virtual_car:
            return
        if not invalidate and self._state.dispatch_route is not None:
            return
        key = RouteKey.dispatch(departure.id)
        self._spawn(self._load_route(key, self.dispatch_hub, departure.location))

    def _refresh_route(self, invalidate: bool) -> None:
        if invalidate:
            self.routes.invalidate_kind(RouteKind.ROUTE)
        departure = self.catalog.get(self._state.departure_station_id)
        arrival = self.catalog.get(self._state.arrival_station_id)
        if departure is None or arrival is None:
            return
        if not invalidate and self._state.route is not None:
            return
        key = RouteKey.route(departure.id, arrival.id)
        self._spawn(self._load_route(key, departure.location, arrival.location))

    def _current_route_key(self, kind: RouteKind) -> Optional[RouteKey]:
        departure = self._state.departure_station_id
        arrival = self._state.arrival_station_id
        if departure is None:
            return None
        if kind is RouteKind.DISPATCH:
            return RouteKey.dispatch(departure)
        if arrival is None:
            return None
        return RouteKey.route(departure, arrival)

    async def _load_route(
        self, key: RouteKey, origin: Location, destination: Location
    ) -> None:
        route = await self.routes.schedule(key, origin, destination)
        if route is None:
            return
        if self._current_route_key(key.kind) != key:
            logger.debug("Ignoring route for %s: stations changed", key)
            return
        self._state.apply_route(key.kind, route)

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._route_tasks.add(task)
        task.add_done_callback(self._route_tasks.discard)
