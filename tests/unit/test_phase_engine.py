# tests/unit/test_phase_engine.py
"""Unit tests for PhaseEngine: state machine, countdown and pricing."""
from datetime import timedelta
from decimal import Decimal

import pytest

from src.cx_common.clock import ManualClock
from src.cx_common.errors import (
    CapacityExhaustedError,
    InvalidAmountError,
    InvalidTransitionError,
    NoActivePhaseError,
    PhaseNotFoundError,
    ScheduleExhaustedError,
)
from src.cx_release.domain.engine import PhaseEngine, validate_schedule
from src.cx_release.domain.models import Phase, ReleaseSettings

DAY = 24 * 3600


def _schedule(n: int = 3, capacity: int = 2, rate: str = "10") -> list[Phase]:
    return [
        Phase(
            index=i,
            base_rate_cents=Decimal(rate),
            capacity=capacity,
            sold=0,
            duration_seconds=14 * DAY,
            increase_percent_at_creation=Decimal("10"),
        )
        for i in range(1, n + 1)
    ]


def _engine(clock: ManualClock, n: int = 3, capacity: int = 2, percent: str = "10") -> PhaseEngine:
    return PhaseEngine(_schedule(n, capacity), ReleaseSettings(Decimal(percent)), clock)


def _active_count(engine: PhaseEngine) -> int:
    return sum(1 for p in engine.phases if p.is_active)


class TestConstruction:
    def test_no_active_phase_initially(self, clock) -> None:
        engine = _engine(clock)
        assert engine.active_phase is None
        with pytest.raises(NoActivePhaseError):
            engine.require_active()

    def test_phases_sorted_by_index(self, clock) -> None:
        phases = list(reversed(_schedule(3)))
        engine = PhaseEngine(phases, ReleaseSettings(Decimal("10")), clock)
        assert [p.index for p in engine.phases] == [1, 2, 3]

    def test_get_phase_unknown_index(self, clock) -> None:
        with pytest.raises(PhaseNotFoundError):
            _engine(clock).get_phase(9)


class TestAdvance:
    def test_first_advance_activates_phase_one(self, clock) -> None:
        engine = _engine(clock)
        deactivated, activated = engine.advance()
        assert deactivated is None
        assert activated.index == 1
        assert activated.is_active
        assert activated.start_time == clock.now()
        assert activated.version == 1

    def test_advance_moves_pointer(self, clock) -> None:
        engine = _engine(clock)
        engine.advance()
        clock.advance(hours=1)
        deactivated, activated = engine.advance()
        assert deactivated is not None and deactivated.index == 1
        assert not deactivated.is_active
        assert activated.index == 2
        assert activated.start_time == clock.now()

    def test_at_most_one_active_after_every_advance(self, clock) -> None:
        engine = _engine(clock, n=5)
        for _ in range(5):
            engine.advance()
            assert _active_count(engine) == 1

    def test_n_plus_one_advance_exhausts_without_side_effects(self, clock) -> None:
        engine = _engine(clock, n=3)
        for _ in range(3):
            engine.advance()
        before = engine.phases
        with pytest.raises(ScheduleExhaustedError):
            engine.advance()
        assert engine.phases == before
        assert engine.active_phase is not None and engine.active_phase.index == 3

    def test_empty_schedule_is_exhausted(self, clock) -> None:
        engine = PhaseEngine([], ReleaseSettings(Decimal("10")), clock)
        with pytest.raises(ScheduleExhaustedError):
            engine.advance()

    def test_advance_refused_while_paused(self, clock) -> None:
        engine = _engine(clock)
        engine.advance()
        engine.pause()
        with pytest.raises(InvalidTransitionError):
            engine.advance()
        assert engine.active_phase.index == 1


class TestPauseResume:
    def test_pause_without_active_phase(self, clock) -> None:
        with pytest.raises(InvalidTransitionError):
            _engine(clock).pause()

    def test_double_pause(self, clock) -> None:
        engine = _engine(clock)
        engine.advance()
        engine.pause()
        with pytest.raises(InvalidTransitionError):
            engine.pause()

    def test_resume_when_not_paused(self, clock) -> None:
        engine = _engine(clock)
        engine.advance()
        with pytest.raises(InvalidTransitionError):
            engine.resume()

    def test_pause_records_paused_at(self, clock) -> None:
        engine = _engine(clock)
        engine.advance()
        clock.advance(hours=2)
        paused = engine.pause()
        assert paused.is_paused
        assert paused.paused_at == clock.now()

    def test_pause_then_resume_keeps_remaining_time(self, clock) -> None:
        engine = _engine(clock)
        engine.advance()
        clock.advance(days=3)
        before = engine.seconds_remaining()
        engine.pause()
        engine.resume()
        assert engine.seconds_remaining() == before

    def test_paused_time_is_credited_back(self, clock) -> None:
        engine = _engine(clock)
        _, phase = engine.advance()
        original_end = phase.end_time
        clock.advance(days=1)
        engine.pause()
        clock.advance(hours=5)
        resumed = engine.resume()
        assert resumed.paused_seconds == 5 * 3600
        assert resumed.end_time == original_end + timedelta(hours=5)
        assert not resumed.is_paused and resumed.paused_at is None

    def test_sub_second_pauses_accumulate_exactly(self, clock) -> None:
        phases = _schedule(1)
        phases[0].duration_seconds = 3600
        engine = PhaseEngine(phases, ReleaseSettings(Decimal("10")), clock)
        _, phase = engine.advance()
        planned_end = phase.end_time
        for _ in range(10):
            engine.pause()
            clock.advance(0.9)
            engine.resume()
        resumed = engine.active_phase
        assert resumed.paused_seconds == Decimal("9")
        assert resumed.end_time == planned_end + timedelta(seconds=9)

    def test_countdown_frozen_while_paused(self, clock) -> None:
        engine = _engine(clock)
        engine.advance()
        clock.advance(days=1)
        engine.pause()
        frozen = engine.seconds_remaining()
        clock.advance(days=2)
        assert engine.seconds_remaining() == frozen

    def test_remaining_never_negative(self, clock) -> None:
        engine = _engine(clock)
        engine.advance()
        clock.advance(days=30)
        assert engine.seconds_remaining() == 0


class TestResetTimer:
    def test_reset_restarts_countdown(self, clock) -> None:
        engine = _engine(clock)
        engine.advance()
        clock.advance(days=2)
        engine.pause()
        clock.advance(hours=3)
        engine.resume()
        clock.advance(days=1)
        reset = engine.reset_timer()
        assert reset.start_time == clock.now()
        assert reset.paused_seconds == 0
        assert engine.seconds_remaining() == 14 * DAY

    def test_reset_while_paused_keeps_pause(self, clock) -> None:
        engine = _engine(clock)
        engine.advance()
        engine.pause()
        clock.advance(days=1)
        reset = engine.reset_timer()
        assert reset.is_paused
        assert reset.paused_at == clock.now()
        assert engine.seconds_remaining() == 14 * DAY

    def test_reset_without_active_phase(self, clock) -> None:
        with pytest.raises(InvalidTransitionError):
            _engine(clock).reset_timer()


class TestPricingScenario:
    def test_capacity_then_advance_reprices(self, clock) -> None:
        engine = _engine(clock, n=2, capacity=2, percent="10")
        engine.advance()
        assert engine.current_price(400) == 4000

        engine.record_sale()
        engine.record_sale()
        with pytest.raises(CapacityExhaustedError, match="capacity exhausted"):
            engine.record_sale()

        engine.advance()
        assert engine.current_price(400) == 4400

    def test_current_price_is_pure(self, clock) -> None:
        engine = _engine(clock)
        engine.advance()
        snapshot = engine.phases
        assert engine.current_price(250) == engine.current_price(250)
        assert engine.phases == snapshot

    def test_record_sale_does_not_bump_version(self, clock) -> None:
        engine = _engine(clock)
        _, active = engine.advance()
        sold = engine.record_sale()
        assert sold.sold == 1
        assert sold.version == active.version

    def test_quote_breakdown(self, clock) -> None:
        engine = _engine(clock)
        engine.advance()
        engine.advance()
        quote = engine.quote(100)
        assert quote.phase_index == 2
        assert quote.multiplier == Decimal("1.1")
        assert quote.price_cents == 1100


class TestSetIncreaseRate:
    def test_reprices_unsold_immediately(self, clock) -> None:
        engine = _engine(clock)
        engine.advance()
        engine.advance()
        assert engine.current_price(400) == 4400
        updated = engine.set_increase_rate(Decimal("20"))
        assert updated.version == 1
        assert engine.current_price(400) == 4800

    @pytest.mark.parametrize("percent", ["-0.1", "100.5"])
    def test_out_of_range(self, clock, percent: str) -> None:
        with pytest.raises(InvalidAmountError):
            _engine(clock).set_increase_rate(Decimal(percent))

    def test_bounds_accepted(self, clock) -> None:
        engine = _engine(clock)
        engine.set_increase_rate(Decimal("0"))
        engine.set_increase_rate(Decimal("100"))
        assert engine.settings.increase_percent == Decimal("100")


class TestUpdateDuration:
    def test_extends_end_time(self, clock) -> None:
        engine = _engine(clock)
        _, phase = engine.advance()
        updated = engine.update_duration(1, 20 * DAY)
        assert updated.end_time == phase.start_time + timedelta(days=20)
        assert updated.version == phase.version + 1

    def test_non_positive_rejected(self, clock) -> None:
        with pytest.raises(InvalidAmountError):
            _engine(clock).update_duration(1, 0)


class TestValidateSchedule:
    def test_valid(self) -> None:
        validate_schedule(_schedule(3))

    def test_gap_in_indexes(self) -> None:
        phases = _schedule(3)
        phases[2].index = 5
        with pytest.raises(InvalidAmountError):
            validate_schedule(phases)

    def test_negative_capacity(self) -> None:
        phases = _schedule(1)
        phases[0].capacity = -1
        with pytest.raises(InvalidAmountError):
            validate_schedule(phases)

    def test_empty(self) -> None:
        with pytest.raises(InvalidAmountError):
            validate_schedule([])
