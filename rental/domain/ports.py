"""
Ports to the external collaborators of the booking engine.

Every call across these boundaries returns an explicit result shape or
``None``; adapters translate transport errors so that nothing raised by
a third party escapes into the booking session.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, Protocol

from .entities import Location, RouteInfo, Station, VerificationStatus
from .enums import ChargeKind, NotificationLevel


@dataclass(frozen=True)
class ChargeResult:
    success: bool
    transaction_id: Optional[str] = None
    card_last4: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class Notification:
    level: NotificationLevel
    message: str
    created_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )


class PaymentGateway(Protocol):
    """Port for charging the rider's stored payment method."""

    async def charge(self, user_id: str, amount_cents: int) -> ChargeResult: ...


class MappingProvider(Protocol):
    """Port for routed distances and address search."""

    async def fetch_route(
        self, origin: Location, destination: Location
    ) -> Optional[RouteInfo]:
        """Return the route, or None when no route exists."""
        ...

    async def geocode(self, query: str) -> Optional[Location]: ...


class VerificationService(Protocol):
    """Port for identity, licence and address verification gates."""

    async def get_status(self, user_id: str) -> VerificationStatus: ...


class SnapshotStore(Protocol):
    """Port for the persisted booking snapshot of a user."""

    async def load(self, user_id: str) -> Optional[dict[str, Any]]: ...

    async def save(self, user_id: str, snapshot: dict[str, Any]) -> None: ...

    async def clear(self, user_id: str) -> None: ...


class StationSource(Protocol):
    """Port for (re)loading the station list."""

    async def load_stations(self) -> list[Station]: ...


class ChargeLedger(Protocol):
    """Port for recording every gateway charge attempt."""

    async def record(
        self,
        user_id: str,
        kind: ChargeKind,
        amount_cents: int,
        result: ChargeResult,
    ) -> None: ...


class Notifier(Protocol):
    """Port for user-facing toasts."""

    def notify(self, user_id: str, notification: Notification) -> None: ...
