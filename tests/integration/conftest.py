"""Integration-test fixtures.

All integration tests share a single event-loop so that the module-level
SQLAlchemy async engine pool and Redis pool (both created at import time)
remain valid across the entire test session.

Requires PostgreSQL with migrations applied (seeded schedule and catalog);
the whole directory is skipped when the database is unreachable.
"""

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from config.settings import settings
from src.cx_common.database import engine
from src.main import app
from tests.integration.helpers import ADMIN_REF


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def client() -> AsyncClient:  # type: ignore[override]
    """Session-scoped async HTTP client: keeps the engine pool alive."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1 FROM release_settings"))
    except (SQLAlchemyError, OSError) as exc:
        pytest.skip(f"database not available: {exc}")
    settings.ADMIN_ACTOR_REFS = [*settings.ADMIN_ACTOR_REFS, ADMIN_REF]
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
