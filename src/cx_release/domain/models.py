"""Domain models for cx_release: pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal


@dataclass
class Phase:
    index: int  # 1-based, strictly increasing activation order
    base_rate_cents: Decimal  # cents per score point
    capacity: int
    sold: int
    duration_seconds: int
    start_time: datetime | None = None
    is_active: bool = False
    is_paused: bool = False
    paused_at: datetime | None = None
    paused_seconds: Decimal = Decimal(0)  # pause time already credited back, to the microsecond
    increase_percent_at_creation: Decimal = Decimal("0")
    version: int = 0

    @property
    def remaining_capacity(self) -> int:
        return self.capacity - self.sold

    @property
    def end_time(self) -> datetime | None:
        """start + duration + cumulative paused time."""
        if self.start_time is None:
            return None
        credit = timedelta(microseconds=int(self.paused_seconds * 1_000_000))
        return self.start_time + timedelta(seconds=self.duration_seconds) + credit

    def seconds_remaining(self, now: datetime) -> int:
        end = self.end_time
        if end is None:
            return self.duration_seconds
        # While paused the countdown is frozen at the pause instant
        reference = self.paused_at if self.is_paused and self.paused_at else now
        return max(0, int((end - reference).total_seconds()))


@dataclass
class ReleaseSettings:
    increase_percent: Decimal
    version: int = 0


@dataclass
class PriceQuote:
    score: int
    phase_index: int
    base_rate_cents: Decimal
    multiplier: Decimal
    price_cents: int
