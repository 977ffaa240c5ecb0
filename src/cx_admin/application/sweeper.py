# src/cx_admin/application/sweeper.py
"""Background sweeper started from the app lifespan.

Runs AdminService.sweep() every SWEEP_INTERVAL_SECONDS with a fresh session.
A failed pass is logged and the loop carries on, whatever it raised;
cancellation stops it.
"""
import asyncio
import logging

from sqlalchemy.exc import SQLAlchemyError

from src.cx_admin.application.service import AdminService
from src.cx_common.database import async_session_factory

logger = logging.getLogger(__name__)


async def run_sweeper(interval_seconds: float, service: AdminService | None = None) -> None:
    service = service or AdminService()
    logger.info("Sweeper started (every %ss)", interval_seconds)
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            async with async_session_factory() as db:
                await service.sweep(db)
        except (SQLAlchemyError, OSError) as exc:
            logger.warning("Sweep pass failed: %s", exc)
        except Exception:
            logger.exception("Unexpected error in sweep pass")


def start_sweeper(interval_seconds: float) -> asyncio.Task[None] | None:
    if interval_seconds <= 0:
        logger.info("Sweeper disabled")
        return None
    return asyncio.create_task(run_sweeper(interval_seconds), name="cx-sweeper")


async def stop_sweeper(task: asyncio.Task[None] | None) -> None:
    if task is None:
        return
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
