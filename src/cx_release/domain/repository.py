# src/cx_release/domain/repository.py
"""Repository Protocol: dependency inversion for testability.

Unit tests inject a mock that conforms to this Protocol.
Infrastructure layer provides the real implementation.
"""

from decimal import Decimal
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.cx_release.domain.models import Phase, ReleaseSettings


class PhaseRepositoryProtocol(Protocol):
    async def list_phases(self, db: AsyncSession) -> list[Phase]: ...

    async def get_active_phase(self, db: AsyncSession) -> Phase | None: ...

    async def get_settings(self, db: AsyncSession) -> ReleaseSettings: ...

    async def insert_phases(self, db: AsyncSession, phases: list[Phase]) -> None: ...

    async def update_phase(
        self, db: AsyncSession, phase: Phase, expected_version: int
    ) -> bool: ...

    async def update_increase_percent(
        self, db: AsyncSession, percent: Decimal, expected_version: int
    ) -> bool: ...

    async def increment_sold(self, db: AsyncSession, phase_index: int) -> Phase | None: ...
