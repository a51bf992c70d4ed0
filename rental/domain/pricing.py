"""
Trip Billing Engine  (Strategy Pattern)
=======================================

Formula
-------
Minutes_Used    = ceil(Elapsed_Seconds / 60)
Additional_Fare = Minutes_Used x Per_Minute_Rate

* A flat **Starting_Fare** is charged when the trip begins (step 4 -> 5).
* **DailyCapPricing** keeps Starting_Fare + Additional_Fare at or below
  the daily maximum times the number of started 24-hour periods.

All amounts are integer cents.  Complexity: O(1) per calculation.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

MINUTES_PER_DAY = 24 * 60


def minutes_used(elapsed_seconds: int) -> int:
    """Every started minute is billed."""
    if elapsed_seconds <= 0:
        return 0
    return math.ceil(elapsed_seconds / 60)


# ── Strategy hierarchy ────────────────────────────────────────────────


class UsagePricingStrategy(ABC):
    @abstractmethod
    def additional_fare(
        self, minutes: int, per_minute_rate_cents: int, starting_fare_cents: int
    ) -> int: ...


class PerMinutePricing(UsagePricingStrategy):
    def additional_fare(
        self, minutes: int, per_minute_rate_cents: int, starting_fare_cents: int
    ) -> int:
        return minutes * per_minute_rate_cents


class DailyCapPricing(UsagePricingStrategy):
    """Per-minute pricing capped at the daily max for each started day of the trip."""

    def __init__(self, max_daily_fare_cents: int):
        self.max_daily_fare_cents = max_daily_fare_cents

    def additional_fare(
        self, minutes: int, per_minute_rate_cents: int, starting_fare_cents: int
    ) -> int:
        raw = minutes * per_minute_rate_cents
        days = max(1, math.ceil(minutes / MINUTES_PER_DAY))
        headroom = max(0, self.max_daily_fare_cents * days - starting_fare_cents)
        return min(raw, headroom)


# ── Engine facade ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class FareBreakdown:
    elapsed_seconds: int
    minutes_used: int
    starting_fare_cents: int
    additional_fare_cents: int

    @property
    def total_cents(self) -> int:
        return self.starting_fare_cents + self.additional_fare_cents


class BillingEngine:
    """High-level API used by the booking session and the API layer."""

    def __init__(
        self,
        starting_fare_cents: int = 5_000,
        per_minute_rate_cents: int = 100,
        max_daily_fare_cents: Optional[int] = None,
    ):
        self.starting_fare_cents = starting_fare_cents
        self.per_minute_rate_cents = per_minute_rate_cents
        self.strategy: UsagePricingStrategy = (
            DailyCapPricing(max_daily_fare_cents)
            if max_daily_fare_cents is not None
            else PerMinutePricing()
        )

    def breakdown(self, elapsed_seconds: int) -> FareBreakdown:
        minutes = minutes_used(elapsed_seconds)
        return FareBreakdown(
            elapsed_seconds=elapsed_seconds,
            minutes_used=minutes,
            starting_fare_cents=self.starting_fare_cents,
            additional_fare_cents=self.strategy.additional_fare(
                minutes, self.per_minute_rate_cents, self.starting_fare_cents
            ),
        )

    def additional_fare_cents(self, elapsed_seconds: int) -> int:
        return self.breakdown(elapsed_seconds).additional_fare_cents
