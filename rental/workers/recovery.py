"""
Recovery Monitor
================

Observes ``(step, is_signed_in)`` of every booking session, at session
start and after each state change.

A signed-in session sitting at step 5 or 6 without an active
``TripSession`` cannot be continued: the trip-active marker was lost
(typically a stale persisted snapshot after a reload, or the legacy
completion step).  The monitor resets the booking to step 1, which also
persists the cleared snapshot, and tells the user their previous trip
has been completed.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from rental.domain.enums import TRIP_STEPS, NotificationLevel

if TYPE_CHECKING:
    from rental.domain.booking import BookingSession

logger = logging.getLogger(__name__)

PREVIOUS_TRIP_MESSAGE = "Your previous trip has been completed."


class RecoveryMonitor:
    def __init__(self) -> None:
        self.corrections = 0

    @staticmethod
    def needs_reset(step: int, is_signed_in: bool, has_active_trip: bool) -> bool:
        return is_signed_in and step in TRIP_STEPS and not has_active_trip

    def attach(self, session: BookingSession) -> None:
        session.add_observer(self.check)

    async def check(self, session: BookingSession) -> bool:
        """Reset *session* if it is in an unreachable trip step."""
        if not self.needs_reset(
            session.step, session.is_signed_in, session.has_active_trip
        ):
            return False

        logger.warning(
            "Booking for %s at step %d has no active trip; resetting",
            session.user_id,
            session.step,
        )
        await session.reset_booking_flow(notify=False)
        session.notify(NotificationLevel.INFO, PREVIOUS_TRIP_MESSAGE)
        self.corrections += 1
        return True
