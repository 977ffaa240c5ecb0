"""PhaseRepository: concrete implementation of PhaseRepositoryProtocol.

All queries use raw text() SQL (no ORM).
Every write is a conditional UPDATE ... RETURNING; no returned row means the
precondition (expected version, or remaining capacity) did not hold.

Transaction ownership: the CALLER (application service) commits or rolls back.
"""

from decimal import Decimal
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.cx_release.domain.models import Phase, ReleaseSettings

# ---------------------------------------------------------------------------
# SQL
# ---------------------------------------------------------------------------

_PHASE_COLUMNS = """
    phase_index, base_rate_cents, capacity, sold, duration_seconds,
    start_time, is_active, is_paused, paused_at, paused_seconds,
    increase_percent_at_creation, version
"""

_LIST_PHASES_SQL = text(f"""
    SELECT {_PHASE_COLUMNS}
    FROM release_phases
    ORDER BY phase_index
""")

_GET_ACTIVE_PHASE_SQL = text(f"""
    SELECT {_PHASE_COLUMNS}
    FROM release_phases
    WHERE is_active
""")

_INSERT_PHASE_SQL = text("""
    INSERT INTO release_phases (
        phase_index, base_rate_cents, capacity, sold, duration_seconds,
        is_active, is_paused, paused_seconds, increase_percent_at_creation, version)
    VALUES (
        :phase_index, :base_rate_cents, :capacity, 0, :duration_seconds,
        FALSE, FALSE, 0, :increase_percent_at_creation, 0)
""")

_UPDATE_PHASE_SQL = text("""
    UPDATE release_phases
    SET start_time = :start_time,
        duration_seconds = :duration_seconds,
        is_active = :is_active,
        is_paused = :is_paused,
        paused_at = :paused_at,
        paused_seconds = :paused_seconds,
        version = :version,
        updated_at = NOW()
    WHERE phase_index = :phase_index AND version = :expected_version
    RETURNING phase_index
""")

_INCREMENT_SOLD_SQL = text(f"""
    UPDATE release_phases
    SET sold = sold + 1,
        updated_at = NOW()
    WHERE phase_index = :phase_index
      AND is_active
      AND sold < capacity
    RETURNING {_PHASE_COLUMNS}
""")

_GET_SETTINGS_SQL = text("""
    SELECT increase_percent, version
    FROM release_settings
    WHERE id = 'main'
""")

_UPSERT_INCREASE_PERCENT_SQL = text("""
    INSERT INTO release_settings (id, increase_percent, version)
    VALUES ('main', :percent, :expected_version + 1)
    ON CONFLICT (id) DO UPDATE
        SET increase_percent = EXCLUDED.increase_percent,
            version = EXCLUDED.version,
            updated_at = NOW()
        WHERE release_settings.version = :expected_version
    RETURNING version
""")

# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------


def _row_to_phase(row: Any) -> Phase:
    return Phase(
        index=row.phase_index,
        base_rate_cents=Decimal(row.base_rate_cents),
        capacity=row.capacity,
        sold=row.sold,
        duration_seconds=row.duration_seconds,
        start_time=row.start_time,
        is_active=row.is_active,
        is_paused=row.is_paused,
        paused_at=row.paused_at,
        paused_seconds=Decimal(row.paused_seconds),
        increase_percent_at_creation=Decimal(row.increase_percent_at_creation),
        version=row.version,
    )


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class PhaseRepository:
    async def list_phases(self, db: AsyncSession) -> list[Phase]:
        result = await db.execute(_LIST_PHASES_SQL)
        return [_row_to_phase(row) for row in result.fetchall()]

    async def get_active_phase(self, db: AsyncSession) -> Phase | None:
        result = await db.execute(_GET_ACTIVE_PHASE_SQL)
        row = result.fetchone()
        return _row_to_phase(row) if row else None

    async def get_settings(self, db: AsyncSession) -> ReleaseSettings:
        row = (await db.execute(_GET_SETTINGS_SQL)).fetchone()
        if row is None:
            # No row yet: version 0 lets the first write insert it
            return ReleaseSettings(increase_percent=settings.DEFAULT_INCREASE_PERCENT, version=0)
        return ReleaseSettings(increase_percent=Decimal(row.increase_percent), version=row.version)

    async def insert_phases(self, db: AsyncSession, phases: list[Phase]) -> None:
        for phase in phases:
            await db.execute(
                _INSERT_PHASE_SQL,
                {
                    "phase_index": phase.index,
                    "base_rate_cents": phase.base_rate_cents,
                    "capacity": phase.capacity,
                    "duration_seconds": phase.duration_seconds,
                    "increase_percent_at_creation": phase.increase_percent_at_creation,
                },
            )

    async def update_phase(
        self, db: AsyncSession, phase: Phase, expected_version: int
    ) -> bool:
        result = await db.execute(
            _UPDATE_PHASE_SQL,
            {
                "phase_index": phase.index,
                "start_time": phase.start_time,
                "duration_seconds": phase.duration_seconds,
                "is_active": phase.is_active,
                "is_paused": phase.is_paused,
                "paused_at": phase.paused_at,
                "paused_seconds": phase.paused_seconds,
                "version": phase.version,
                "expected_version": expected_version,
            },
        )
        return result.fetchone() is not None

    async def update_increase_percent(
        self, db: AsyncSession, percent: Decimal, expected_version: int
    ) -> bool:
        result = await db.execute(
            _UPSERT_INCREASE_PERCENT_SQL,
            {"percent": percent, "expected_version": expected_version},
        )
        return result.fetchone() is not None

    async def increment_sold(self, db: AsyncSession, phase_index: int) -> Phase | None:
        result = await db.execute(_INCREMENT_SOLD_SQL, {"phase_index": phase_index})
        row = result.fetchone()
        return _row_to_phase(row) if row else None
