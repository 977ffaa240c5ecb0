"""PhaseEngine: the single authority over the release schedule.

State machine:

    NoActivePhase --advance--> Phase N active <--pause/resume--> Phase N active
    Phase N active --advance--> Phase N+1 active --> ... --> ScheduleExhausted

The engine is pure: it works on a snapshot of the schedule loaded by the
application layer, raises typed errors when a precondition fails, and returns
the Phase rows it changed with `version` bumped. Persisting those rows with a
version-checked UPDATE is the caller's job; the engine never touches I/O.

advance() is the only operation that moves the active pointer. Wall-clock
expiry of a phase does not advance anything by itself.
"""

from dataclasses import replace
from decimal import Decimal

from src.cx_common.clock import Clock, seconds_between
from src.cx_common.errors import (
    CapacityExhaustedError,
    InvalidAmountError,
    InvalidTransitionError,
    NoActivePhaseError,
    PhaseNotFoundError,
    ScheduleExhaustedError,
)
from src.cx_release.domain.models import Phase, PriceQuote, ReleaseSettings
from src.cx_release.domain.pricing import phase_multiplier, price_cents


class PhaseEngine:
    def __init__(self, phases: list[Phase], settings: ReleaseSettings, clock: Clock) -> None:
        self._phases: list[Phase] = sorted(phases, key=lambda p: p.index)
        self._settings = settings
        self._clock = clock
        active = [p.index for p in self._phases if p.is_active]
        assert len(active) <= 1, f"Multiple active phases: {active}"
        indexes = [p.index for p in self._phases]
        assert len(set(indexes)) == len(indexes), f"Duplicate phase indexes: {indexes}"

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def phases(self) -> list[Phase]:
        return list(self._phases)

    @property
    def settings(self) -> ReleaseSettings:
        return self._settings

    @property
    def active_phase(self) -> Phase | None:
        for phase in self._phases:
            if phase.is_active:
                return phase
        return None

    def require_active(self) -> Phase:
        phase = self.active_phase
        if phase is None:
            raise NoActivePhaseError()
        return phase

    def get_phase(self, index: int) -> Phase:
        for phase in self._phases:
            if phase.index == index:
                return phase
        raise PhaseNotFoundError(index)

    def multiplier_for(self, phase: Phase) -> Decimal:
        return phase_multiplier(phase.index, self._settings.increase_percent)

    def quote(self, score: int, phase: Phase | None = None) -> PriceQuote:
        target = phase or self.require_active()
        multiplier = self.multiplier_for(target)
        return PriceQuote(
            score=score,
            phase_index=target.index,
            base_rate_cents=target.base_rate_cents,
            multiplier=multiplier,
            price_cents=price_cents(target.base_rate_cents, score, multiplier),
        )

    def current_price(self, score: int) -> int:
        """Price in cents of an unsold item with `score` under the active phase."""
        return self.quote(score).price_cents

    def seconds_remaining(self) -> int:
        return self.require_active().seconds_remaining(self._clock.now())

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def pause(self) -> Phase:
        phase = self.active_phase
        if phase is None:
            raise InvalidTransitionError("cannot pause: no active phase")
        if phase.is_paused:
            raise InvalidTransitionError(f"phase {phase.index} is already paused")
        return self._store(replace(phase, is_paused=True, paused_at=self._clock.now()))

    def resume(self) -> Phase:
        phase = self.active_phase
        if phase is None or not phase.is_paused:
            raise InvalidTransitionError("cannot resume: timer is not paused")
        now = self._clock.now()
        paused_at = phase.paused_at or now
        credited = max(Decimal(0), seconds_between(paused_at, now))
        return self._store(
            replace(
                phase,
                is_paused=False,
                paused_at=None,
                paused_seconds=phase.paused_seconds + credited,
            )
        )

    def advance(self) -> tuple[Phase | None, Phase]:
        """Deactivate the current phase and activate the next one by index.

        Returns (deactivated, activated); deactivated is None when starting
        the schedule from NoActivePhase.
        """
        current = self.active_phase
        if current is not None and current.is_paused:
            raise InvalidTransitionError(f"phase {current.index} is paused; resume before advancing")

        upcoming = [
            p for p in self._phases if current is None or p.index > current.index
        ]
        if not upcoming:
            raise ScheduleExhaustedError(current.index if current else None)

        deactivated: Phase | None = None
        if current is not None:
            deactivated = self._store(
                replace(current, is_active=False, is_paused=False, paused_at=None)
            )
        activated = self._store(
            replace(
                upcoming[0],
                is_active=True,
                is_paused=False,
                paused_at=None,
                paused_seconds=Decimal(0),
                start_time=self._clock.now(),
            )
        )
        return deactivated, activated

    def reset_timer(self) -> Phase:
        phase = self.active_phase
        if phase is None:
            raise InvalidTransitionError("cannot reset timer: no active phase")
        now = self._clock.now()
        return self._store(
            replace(
                phase,
                start_time=now,
                paused_seconds=Decimal(0),
                paused_at=now if phase.is_paused else None,
            )
        )

    def set_increase_rate(self, percent: Decimal) -> ReleaseSettings:
        percent = Decimal(percent)
        if not (Decimal(0) <= percent <= Decimal(100)):
            raise InvalidAmountError(f"increase percent must be between 0 and 100, got {percent}")
        self._settings = ReleaseSettings(
            increase_percent=percent, version=self._settings.version + 1
        )
        return self._settings

    def update_duration(self, index: int, duration_seconds: int) -> Phase:
        if duration_seconds <= 0:
            raise InvalidAmountError(f"duration must be positive, got {duration_seconds}")
        phase = self.get_phase(index)
        return self._store(replace(phase, duration_seconds=duration_seconds))

    def record_sale(self) -> Phase:
        """Count one sale against the active phase; fails once capacity is used up."""
        phase = self.require_active()
        if phase.sold >= phase.capacity:
            raise CapacityExhaustedError(phase.index)
        # sold is guarded by its own capacity predicate, not by version
        return self._store(replace(phase, sold=phase.sold + 1), bump=False)

    # ------------------------------------------------------------------

    def _store(self, updated: Phase, bump: bool = True) -> Phase:
        if bump:
            updated = replace(updated, version=updated.version + 1)
        self._phases = [updated if p.index == updated.index else p for p in self._phases]
        return updated


def validate_schedule(phases: list[Phase]) -> None:
    """Structural checks for a freshly created schedule skeleton."""
    if not phases:
        raise InvalidAmountError("schedule must contain at least one phase")
    expected = list(range(1, len(phases) + 1))
    indexes = sorted(p.index for p in phases)
    if indexes != expected:
        raise InvalidAmountError(f"phase indexes must be 1..{len(phases)}, got {indexes}")
    for p in phases:
        if p.capacity < 0 or p.sold != 0:
            raise InvalidAmountError(f"phase {p.index}: capacity must be >= 0 and sold must be 0")
        if p.duration_seconds <= 0:
            raise InvalidAmountError(f"phase {p.index}: duration must be positive")
        if p.base_rate_cents <= 0:
            raise InvalidAmountError(f"phase {p.index}: base rate must be positive")
        if p.is_active:
            raise InvalidAmountError(f"phase {p.index}: new schedules start with no active phase")

