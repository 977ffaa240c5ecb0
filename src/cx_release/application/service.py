"""ReleaseApplicationService: orchestration around PhaseEngine.

Each admin transition follows the same shape:
  1. load the schedule snapshot (phases + release settings)
  2. let PhaseEngine validate and compute the changed rows
  3. write each row with a version-checked UPDATE; any miss -> ConcurrencyConflictError
  4. commit, then publish a notification (fire-and-forget)

Read paths (current phase, schedule, price quote) run without an explicit
transaction and tolerate a slightly stale multiplier; the sale path re-reads
authoritative state inside its own transaction.
"""

import logging
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from src.cx_common.clock import Clock, SystemClock
from src.cx_common.errors import (
    ConcurrencyConflictError,
    NoActivePhaseError,
    ScheduleAlreadyExistsError,
)
from src.cx_common.notifier import NotifierProtocol, RedisNotifier
from src.cx_release.application.schemas import (
    AdvanceResponse,
    CreateScheduleRequest,
    CurrentPhaseResponse,
    IncreasePercentResponse,
    PhaseScheduleResponse,
    PhaseSummary,
    PriceQuoteResponse,
)
from src.cx_release.domain.engine import PhaseEngine, validate_schedule
from src.cx_release.domain.models import Phase
from src.cx_release.domain.pricing import display_multiplier, validate_score
from src.cx_release.domain.repository import PhaseRepositoryProtocol
from src.cx_release.infrastructure.persistence import PhaseRepository

logger = logging.getLogger(__name__)


class ReleaseApplicationService:
    def __init__(
        self,
        repo: PhaseRepositoryProtocol | None = None,
        clock: Clock | None = None,
        notifier: NotifierProtocol | None = None,
    ) -> None:
        self._repo: PhaseRepositoryProtocol = repo or PhaseRepository()
        self._clock: Clock = clock or SystemClock()
        self._notifier: NotifierProtocol = notifier or RedisNotifier()

    async def load_engine(self, db: AsyncSession) -> PhaseEngine:
        phases = await self._repo.list_phases(db)
        release_settings = await self._repo.get_settings(db)
        return PhaseEngine(phases, release_settings, self._clock)

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    async def get_current_phase(self, db: AsyncSession) -> CurrentPhaseResponse:
        engine = await self.load_engine(db)
        phase = engine.require_active()
        return CurrentPhaseResponse.from_phase(
            phase,
            multiplier=engine.multiplier_for(phase),
            remaining=engine.seconds_remaining(),
            increase_percent=engine.settings.increase_percent,
        )

    async def list_phases(self, db: AsyncSession) -> PhaseScheduleResponse:
        engine = await self.load_engine(db)
        active = engine.active_phase
        return PhaseScheduleResponse(
            increase_percent=str(engine.settings.increase_percent),
            active_phase_index=active.index if active else None,
            phases=[
                PhaseSummary(
                    phase_index=p.index,
                    multiplier=display_multiplier(engine.multiplier_for(p)),
                    base_rate_cents=str(p.base_rate_cents),
                    capacity=p.capacity,
                    sold=p.sold,
                    duration_seconds=p.duration_seconds,
                    start_time=p.start_time.isoformat() if p.start_time else None,
                    is_active=p.is_active,
                )
                for p in engine.phases
            ],
        )

    async def quote_price(self, db: AsyncSession, score: int) -> PriceQuoteResponse:
        validate_score(score)
        engine = await self.load_engine(db)
        return PriceQuoteResponse.from_quote(engine.quote(score))

    # ------------------------------------------------------------------
    # Admin transitions
    # ------------------------------------------------------------------

    async def pause(self, db: AsyncSession, actor_ref: str) -> CurrentPhaseResponse:
        engine = await self.load_engine(db)
        changed = engine.pause()
        await self._persist(db, [changed])
        logger.info("Phase %d paused by %s", changed.index, actor_ref)
        await self._notifier.publish(
            "phase.paused", {"phase_index": changed.index, "paused_at": changed.paused_at}
        )
        return self._current(engine)

    async def resume(self, db: AsyncSession, actor_ref: str) -> CurrentPhaseResponse:
        engine = await self.load_engine(db)
        changed = engine.resume()
        await self._persist(db, [changed])
        logger.info(
            "Phase %d resumed by %s (paused total %ss)",
            changed.index, actor_ref, changed.paused_seconds,
        )
        await self._notifier.publish(
            "phase.resumed",
            {"phase_index": changed.index, "end_time": changed.end_time},
        )
        return self._current(engine)

    async def advance(self, db: AsyncSession, actor_ref: str) -> AdvanceResponse:
        engine = await self.load_engine(db)
        deactivated, activated = engine.advance()
        # Deactivate first: the partial unique index allows one active row at a time
        await self._persist(db, [p for p in (deactivated, activated) if p is not None])
        multiplier = display_multiplier(engine.multiplier_for(activated))
        logger.info(
            "Phase advanced %s -> %d (multiplier %s) by %s",
            deactivated.index if deactivated else "-", activated.index, multiplier, actor_ref,
        )
        await self._notifier.publish(
            "phase.advanced",
            {
                "from_phase_index": deactivated.index if deactivated else None,
                "to_phase_index": activated.index,
                "multiplier": multiplier,
            },
        )
        return AdvanceResponse(
            from_phase_index=deactivated.index if deactivated else None,
            to_phase_index=activated.index,
            multiplier=multiplier,
        )

    async def reset_timer(self, db: AsyncSession, actor_ref: str) -> CurrentPhaseResponse:
        engine = await self.load_engine(db)
        changed = engine.reset_timer()
        await self._persist(db, [changed])
        logger.info("Phase %d timer reset by %s", changed.index, actor_ref)
        await self._notifier.publish(
            "phase.timer_reset", {"phase_index": changed.index, "start_time": changed.start_time}
        )
        return self._current(engine)

    async def set_increase_rate(
        self, db: AsyncSession, actor_ref: str, percent: Decimal
    ) -> IncreasePercentResponse:
        engine = await self.load_engine(db)
        previous = engine.settings
        updated = engine.set_increase_rate(percent)
        try:
            ok = await self._repo.update_increase_percent(
                db, updated.increase_percent, expected_version=previous.version
            )
            if not ok:
                raise ConcurrencyConflictError("release settings")
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Increase percent %s -> %s by %s",
            previous.increase_percent, updated.increase_percent, actor_ref,
        )
        active = engine.active_phase
        active_multiplier = display_multiplier(engine.multiplier_for(active)) if active else None
        await self._notifier.publish(
            "phase.rate_changed",
            {"increase_percent": str(updated.increase_percent), "active_multiplier": active_multiplier},
        )
        return IncreasePercentResponse(
            increase_percent=str(updated.increase_percent),
            active_multiplier=active_multiplier,
        )

    async def update_duration(
        self, db: AsyncSession, actor_ref: str, index: int, duration_seconds: int
    ) -> PhaseSummary:
        engine = await self.load_engine(db)
        changed = engine.update_duration(index, duration_seconds)
        await self._persist(db, [changed])
        logger.info("Phase %d duration set to %ds by %s", index, duration_seconds, actor_ref)
        return PhaseSummary(
            phase_index=changed.index,
            multiplier=display_multiplier(engine.multiplier_for(changed)),
            base_rate_cents=str(changed.base_rate_cents),
            capacity=changed.capacity,
            sold=changed.sold,
            duration_seconds=changed.duration_seconds,
            start_time=changed.start_time.isoformat() if changed.start_time else None,
            is_active=changed.is_active,
        )

    async def create_schedule(
        self, db: AsyncSession, actor_ref: str, req: CreateScheduleRequest
    ) -> PhaseScheduleResponse:
        if await self._repo.list_phases(db):
            raise ScheduleAlreadyExistsError()
        release_settings = await self._repo.get_settings(db)
        phases = [
            Phase(
                index=entry.index,
                base_rate_cents=entry.base_rate_cents,
                capacity=entry.capacity,
                sold=0,
                duration_seconds=entry.duration_seconds,
                increase_percent_at_creation=release_settings.increase_percent,
            )
            for entry in req.phases
        ]
        validate_schedule(phases)
        try:
            await self._repo.insert_phases(db, phases)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Release schedule of %d phases created by %s", len(phases), actor_ref)
        return await self.list_phases(db)

    # ------------------------------------------------------------------

    async def _persist(self, db: AsyncSession, changed: list[Phase]) -> None:
        try:
            for phase in changed:
                ok = await self._repo.update_phase(db, phase, expected_version=phase.version - 1)
                if not ok:
                    logger.warning(
                        "Lost version race on phase %d (expected v%d)",
                        phase.index, phase.version - 1,
                    )
                    raise ConcurrencyConflictError(f"phase {phase.index}")
            await db.commit()
        except Exception:
            await db.rollback()
            raise

    def _current(self, engine: PhaseEngine) -> CurrentPhaseResponse:
        phase = engine.active_phase
        if phase is None:
            raise NoActivePhaseError()
        return CurrentPhaseResponse.from_phase(
            phase,
            multiplier=engine.multiplier_for(phase),
            remaining=engine.seconds_remaining(),
            increase_percent=engine.settings.increase_percent,
        )
