# tests/unit/test_admin_sweep.py
"""AdminService.sweep and the background sweeper loop."""
import asyncio
import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from src.cx_admin.application.schemas import SweepResponse
from src.cx_admin.application.service import AdminService
from src.cx_admin.application.sweeper import run_sweeper, start_sweeper, stop_sweeper


class TestAdminSweep:
    @pytest.mark.asyncio
    async def test_runs_every_sweep(self, db):
        offers = MagicMock()
        offers.expire_sweep = AsyncMock(return_value=["off-1"])
        catalog = MagicMock()
        catalog.release_expired_reservations = AsyncMock(return_value=["CX-00007"])
        auctions = MagicMock()
        auctions.finalize_due = AsyncMock(return_value=["auc-1"])

        resp = await AdminService(offers=offers, catalog=catalog, auctions=auctions).sweep(db)

        assert resp == SweepResponse(
            expired_offer_ids=["off-1"],
            released_item_ids=["CX-00007"],
            finalized_auction_ids=["auc-1"],
        )
        offers.expire_sweep.assert_awaited_once_with(db)
        auctions.finalize_due.assert_awaited_once_with(db)


def _session_factory(db):
    factory = MagicMock()
    factory.return_value.__aenter__ = AsyncMock(return_value=db)
    factory.return_value.__aexit__ = AsyncMock(return_value=False)
    return factory


class TestSweeperLoop:
    @pytest.mark.asyncio
    async def test_failed_pass_does_not_stop_loop(self, db):
        done = asyncio.Event()
        calls = []

        async def sweep(session):
            calls.append(session)
            if len(calls) == 1:
                raise OperationalError("SELECT 1", {}, Exception("db down"))
            done.set()
            return SweepResponse(expired_offer_ids=[], released_item_ids=[])

        service = MagicMock()
        service.sweep = sweep
        with patch("src.cx_admin.application.sweeper.async_session_factory", _session_factory(db)):
            task = asyncio.create_task(run_sweeper(0.001, service))
            await asyncio.wait_for(done.wait(), timeout=2)
            await stop_sweeper(task)

        assert len(calls) >= 2
        assert task.cancelled()

    @pytest.mark.asyncio
    async def test_unexpected_error_is_logged_and_loop_continues(self, db, caplog):
        done = asyncio.Event()
        calls = []

        async def sweep(session):
            calls.append(session)
            if len(calls) == 1:
                raise RuntimeError("boom")
            done.set()
            return SweepResponse(expired_offer_ids=[], released_item_ids=[])

        service = MagicMock()
        service.sweep = sweep
        with caplog.at_level(logging.ERROR, logger="src.cx_admin.application.sweeper"):
            with patch("src.cx_admin.application.sweeper.async_session_factory", _session_factory(db)):
                task = asyncio.create_task(run_sweeper(0.001, service))
                await asyncio.wait_for(done.wait(), timeout=2)
                await stop_sweeper(task)

        assert len(calls) >= 2
        assert task.cancelled()
        assert any(r.exc_info and "boom" in str(r.exc_info[1]) for r in caplog.records)

    @pytest.mark.asyncio
    async def test_disabled_when_interval_not_positive(self):
        assert start_sweeper(0) is None
        await stop_sweeper(None)
