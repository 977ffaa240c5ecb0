"""Pydantic schemas for cx_release API requests/responses.

Multipliers are rendered with 4 decimals; money as both cents and display string.
"""

from decimal import Decimal

from pydantic import BaseModel, Field

from src.cx_common.money import cents_to_display
from src.cx_release.domain.models import Phase, PriceQuote
from src.cx_release.domain.pricing import display_multiplier

# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class IncreasePercentRequest(BaseModel):
    percent: Decimal = Field(..., ge=0, le=100)


class PhaseDurationRequest(BaseModel):
    duration_seconds: int = Field(..., gt=0)


class PhaseSpec(BaseModel):
    index: int = Field(..., ge=1)
    base_rate_cents: Decimal = Field(..., gt=0, description="Cents per score point")
    capacity: int = Field(..., ge=0)
    duration_seconds: int = Field(..., gt=0)


class CreateScheduleRequest(BaseModel):
    phases: list[PhaseSpec] = Field(..., min_length=1)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class CurrentPhaseResponse(BaseModel):
    phase_index: int
    multiplier: str
    base_rate_cents: str
    capacity: int
    sold: int
    remaining_capacity: int
    start_time: str | None
    end_time: str | None
    duration_seconds: int
    time_remaining_seconds: int
    is_paused: bool
    paused_at: str | None
    increase_percent: str

    @classmethod
    def from_phase(
        cls, phase: Phase, multiplier: Decimal, remaining: int, increase_percent: Decimal
    ) -> "CurrentPhaseResponse":
        end = phase.end_time
        return cls(
            phase_index=phase.index,
            multiplier=display_multiplier(multiplier),
            base_rate_cents=str(phase.base_rate_cents),
            capacity=phase.capacity,
            sold=phase.sold,
            remaining_capacity=phase.remaining_capacity,
            start_time=phase.start_time.isoformat() if phase.start_time else None,
            end_time=end.isoformat() if end else None,
            duration_seconds=phase.duration_seconds,
            time_remaining_seconds=remaining,
            is_paused=phase.is_paused,
            paused_at=phase.paused_at.isoformat() if phase.paused_at else None,
            increase_percent=str(increase_percent),
        )


class PhaseSummary(BaseModel):
    phase_index: int
    multiplier: str
    base_rate_cents: str
    capacity: int
    sold: int
    duration_seconds: int
    start_time: str | None
    is_active: bool


class PhaseScheduleResponse(BaseModel):
    increase_percent: str
    active_phase_index: int | None
    phases: list[PhaseSummary]


class PriceQuoteResponse(BaseModel):
    score: int
    phase_index: int
    base_rate_cents: str
    multiplier: str
    price_cents: int
    price_display: str

    @classmethod
    def from_quote(cls, quote: PriceQuote) -> "PriceQuoteResponse":
        return cls(
            score=quote.score,
            phase_index=quote.phase_index,
            base_rate_cents=str(quote.base_rate_cents),
            multiplier=display_multiplier(quote.multiplier),
            price_cents=quote.price_cents,
            price_display=cents_to_display(quote.price_cents),
        )


class AdvanceResponse(BaseModel):
    from_phase_index: int | None
    to_phase_index: int
    multiplier: str


class IncreasePercentResponse(BaseModel):
    increase_percent: str
    active_multiplier: str | None
