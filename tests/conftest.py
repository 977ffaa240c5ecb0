"""Shared test fixtures."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.cx_common.clock import ManualClock

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(T0)


@pytest.fixture
def db() -> MagicMock:
    """AsyncSession stand-in: services only await commit/rollback on it directly."""
    session = MagicMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.execute = AsyncMock()
    return session


@pytest.fixture
def notifier() -> MagicMock:
    n = MagicMock()
    n.publish = AsyncMock()
    return n
