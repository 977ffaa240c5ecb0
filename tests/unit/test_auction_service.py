# tests/unit/test_auction_service.py
"""Unit tests for AuctionApplicationService.

An in-memory repository reproduces the conditional UPDATE semantics of
AuctionRepository (status + version + end_time predicates), so a bid
racing another bid or the finalizing sweep runs without a database.
"""
from dataclasses import replace
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from config.settings import settings
from src.cx_auction.application.schemas import CreateAuctionRequest
from src.cx_auction.application.service import AuctionApplicationService
from src.cx_auction.domain.models import Auction, Bid
from src.cx_catalog.domain.models import Item
from src.cx_common.errors import (
    ActorBannedError,
    AuctionEndedError,
    AuctionNotActiveError,
    AuctionNotEndedError,
    AuctionNotFoundError,
    BidTooLowError,
    FeatureDisabledError,
    InternalError,
    ItemNotAvailableError,
    SelfDealingError,
)

ADMIN = "ops@example.com"
BIDDER = "alice@example.com"
RIVAL = "bob@example.com"
ITEM_ID = "CX-00001"


class InMemoryAuctionRepository:
    def __init__(self) -> None:
        self.rows: dict[str, Auction] = {}
        self.bids: list[Bid] = []

    async def insert(self, db, auction: Auction) -> None:
        self.rows[auction.id] = auction

    async def get_by_id(self, db, auction_id: str) -> Auction | None:
        return self.rows.get(auction_id)

    async def list_active(self, db, limit: int) -> list[Auction]:
        active = [a for a in self.rows.values() if a.is_active]
        return sorted(active, key=lambda a: a.end_time)[:limit]

    async def list_due(self, db, now: datetime, limit: int) -> list[Auction]:
        due = [a for a in self.rows.values() if a.is_active and a.end_time <= now]
        return sorted(due, key=lambda a: a.end_time)[:limit]

    async def list_bids(self, db, auction_id: str, limit: int) -> list[Bid]:
        mine = [b for b in self.bids if b.auction_id == auction_id]
        return sorted(mine, key=lambda b: b.amount_cents, reverse=True)[:limit]

    async def record_bid(self, db, auction, bid, expected_version, now) -> bool:
        row = self.rows.get(auction.id)
        if (
            row is None
            or not row.is_active
            or row.version != expected_version
            or not row.end_time > now
        ):
            return False
        self.rows[auction.id] = auction
        self.bids.append(bid)
        return True

    async def close(self, db, auction, now) -> bool:
        row = self.rows.get(auction.id)
        if row is None or not row.is_active or row.end_time > now:
            return False
        self.rows[auction.id] = auction
        return True


def _item(**kwargs) -> Item:
    defaults = dict(id=ITEM_ID, score=400, status="AVAILABLE")
    defaults.update(kwargs)
    return Item(**defaults)


@pytest.fixture
def repo() -> InMemoryAuctionRepository:
    return InMemoryAuctionRepository()


@pytest.fixture
def catalog():
    c = MagicMock()
    c.get_item = AsyncMock(return_value=_item())
    c.set_auctioned = AsyncMock(return_value=_item(status="AUCTIONED"))
    c.award_auction = AsyncMock(return_value=_item(status="SOLD", owner_ref=BIDDER))
    c.release_auctioned = AsyncMock(return_value=_item())
    return c


@pytest.fixture
def service(repo, catalog, clock, notifier) -> AuctionApplicationService:
    return AuctionApplicationService(
        repo=repo, catalog_repo=catalog, clock=clock, notifier=notifier
    )


async def _create(service, db, item_id: str = ITEM_ID, starting: int = 10000, hours: int = 24):
    req = CreateAuctionRequest(item_id=item_id, starting_bid_cents=starting, duration_hours=hours)
    return await service.create(db, ADMIN, req)


class TestCreate:
    @pytest.mark.asyncio
    async def test_moves_item_to_auction(self, service, db, repo, catalog, clock, notifier):
        resp = await _create(service, db)

        assert resp.status == "ACTIVE"
        assert resp.min_next_bid_cents == 10000
        assert repo.rows[resp.id].created_by == ADMIN
        catalog.set_auctioned.assert_awaited_once_with(db, ITEM_ID, clock.now())
        db.commit.assert_awaited_once()
        assert notifier.publish.call_args.args[0] == "auction.created"

    @pytest.mark.asyncio
    async def test_owned_item(self, service, db, repo, catalog):
        catalog.get_item = AsyncMock(return_value=_item(status="SOLD", owner_ref=BIDDER))
        with pytest.raises(ItemNotAvailableError):
            await _create(service, db)
        catalog.set_auctioned.assert_not_awaited()
        assert repo.rows == {}

    @pytest.mark.asyncio
    async def test_item_reserved_meanwhile(self, service, db, repo, catalog, clock):
        held = _item(status="RESERVED", reserved_by=BIDDER, reserved_until=clock.now())
        catalog.get_item = AsyncMock(side_effect=[_item(), held])
        catalog.set_auctioned = AsyncMock(return_value=None)
        with pytest.raises(ItemNotAvailableError, match="RESERVED"):
            await _create(service, db)
        assert repo.rows == {}
        db.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_switch_off(self, service, db, catalog, monkeypatch):
        monkeypatch.setattr(settings, "AUCTIONS_ENABLED", False)
        with pytest.raises(FeatureDisabledError):
            await _create(service, db)
        catalog.get_item.assert_not_awaited()


class TestBid:
    @pytest.mark.asyncio
    async def test_raises_minimum(self, service, db, repo, notifier):
        auction = await _create(service, db)

        resp = await service.place_bid(db, auction.id, BIDDER, 10000)

        assert resp.highest_bidder_ref == BIDDER
        assert resp.min_next_bid_cents == 12500
        assert notifier.publish.call_args.args[0] == "auction.bid"
        with pytest.raises(BidTooLowError, match="12500"):
            await service.place_bid(db, auction.id, RIVAL, 12000)
        outbid = await service.place_bid(db, auction.id, RIVAL, 12500)
        assert outbid.bid_count == 2
        assert notifier.publish.call_args.args[1]["outbid_ref"] == BIDDER

    @pytest.mark.asyncio
    async def test_creator_cannot_bid(self, service, db):
        auction = await _create(service, db)
        with pytest.raises(SelfDealingError):
            await service.place_bid(db, auction.id, ADMIN, 10000)

    @pytest.mark.asyncio
    async def test_banned_bidder(self, service, db, repo, monkeypatch):
        auction = await _create(service, db)
        monkeypatch.setattr(settings, "BANNED_ACTOR_REFS", [BIDDER])
        with pytest.raises(ActorBannedError):
            await service.place_bid(db, auction.id, BIDDER, 10000)
        assert repo.bids == []

    @pytest.mark.asyncio
    async def test_after_end_time(self, service, db, clock):
        auction = await _create(service, db)
        clock.advance(hours=24)
        with pytest.raises(AuctionEndedError):
            await service.place_bid(db, auction.id, BIDDER, 10000)

    @pytest.mark.asyncio
    async def test_unknown_auction(self, service, db):
        with pytest.raises(AuctionNotFoundError):
            await service.place_bid(db, "nope", BIDDER, 10000)

    @pytest.mark.asyncio
    async def test_outbid_meanwhile_reports_new_minimum(self, service, db, repo):
        auction = await _create(service, db)
        original = repo.record_bid

        async def rival_lands_first(session, updated, bid, expected_version, now):
            row = repo.rows[updated.id]
            repo.rows[updated.id] = replace(
                row,
                current_bid_cents=20000,
                highest_bidder_ref=RIVAL,
                bid_count=row.bid_count + 1,
                version=row.version + 1,
            )
            return await original(session, updated, bid, expected_version, now)

        repo.record_bid = rival_lands_first
        with pytest.raises(BidTooLowError, match="22500"):
            await service.place_bid(db, auction.id, BIDDER, 10000)
        assert repo.rows[auction.id].highest_bidder_ref == RIVAL
        db.rollback.assert_awaited()

    @pytest.mark.asyncio
    async def test_closed_meanwhile(self, service, db, repo):
        auction = await _create(service, db)
        original = repo.record_bid

        async def closed_first(session, updated, bid, expected_version, now):
            repo.rows[updated.id] = replace(repo.rows[updated.id], status="ENDED", finalized_at=now)
            return await original(session, updated, bid, expected_version, now)

        repo.record_bid = closed_first
        with pytest.raises(AuctionNotActiveError, match="ENDED"):
            await service.place_bid(db, auction.id, BIDDER, 10000)


class TestFinalize:
    @pytest.mark.asyncio
    async def test_awards_item_to_highest_bidder(self, service, db, catalog, clock, notifier):
        auction = await _create(service, db)
        await service.place_bid(db, auction.id, BIDDER, 15000)
        clock.advance(hours=24)

        with patch(
            "src.cx_auction.application.service.write_settlement_event", new_callable=AsyncMock
        ) as settle:
            resp = await service.finalize(db, auction.id)

        assert resp.auction.status == "FINALIZED"
        assert (resp.winner_ref, resp.sale_price_cents) == (BIDDER, 15000)
        assert resp.auction.min_next_bid_cents is None
        catalog.award_auction.assert_awaited_once_with(db, ITEM_ID, BIDDER, 15000)
        kwargs = settle.call_args.kwargs
        assert kwargs["event_type"] == "AUCTION_SALE"
        assert (kwargs["buyer_ref"], kwargs["seller_ref"]) == (BIDDER, None)
        assert kwargs["amount_cents"] == 15000
        assert notifier.publish.call_args.args[0] == "auction.finalized"

    @pytest.mark.asyncio
    async def test_no_bids_returns_item(self, service, db, catalog, clock, notifier):
        auction = await _create(service, db)
        clock.advance(hours=24)

        with patch(
            "src.cx_auction.application.service.write_settlement_event", new_callable=AsyncMock
        ) as settle:
            resp = await service.finalize(db, auction.id)

        assert resp.auction.status == "ENDED"
        assert (resp.winner_ref, resp.sale_price_cents) == (None, None)
        catalog.release_auctioned.assert_awaited_once_with(db, ITEM_ID)
        settle.assert_not_awaited()
        assert notifier.publish.call_args.args[0] == "auction.ended"

    @pytest.mark.asyncio
    async def test_before_end_time(self, service, db):
        auction = await _create(service, db)
        with pytest.raises(AuctionNotEndedError):
            await service.finalize(db, auction.id)

    @pytest.mark.asyncio
    async def test_item_out_of_sync_rolls_back(self, service, db, catalog, clock):
        auction = await _create(service, db)
        await service.place_bid(db, auction.id, BIDDER, 15000)
        clock.advance(hours=24)
        catalog.award_auction = AsyncMock(return_value=None)
        db.commit.reset_mock()

        with pytest.raises(InternalError):
            await service.finalize(db, auction.id)
        db.rollback.assert_awaited()
        db.commit.assert_not_awaited()


class TestFinalizeDue:
    @pytest.mark.asyncio
    async def test_one_failure_skips_one_auction(self, service, db, repo, catalog, clock):
        won = await _create(service, db, item_id="CX-00001")
        unsold = await _create(service, db, item_id="CX-00002")
        later = await _create(service, db, item_id="CX-00003", hours=72)
        await service.place_bid(db, won.id, BIDDER, 15000)
        catalog.award_auction = AsyncMock(return_value=None)
        clock.advance(hours=25)

        closed = await service.finalize_due(db)

        assert closed == [unsold.id]
        assert repo.rows[unsold.id].status == "ENDED"
        assert repo.rows[later.id].status == "ACTIVE"


class TestReads:
    @pytest.mark.asyncio
    async def test_get_lists_bids_highest_first(self, service, db, clock):
        auction = await _create(service, db)
        await service.place_bid(db, auction.id, BIDDER, 10000)
        await service.place_bid(db, auction.id, RIVAL, 12500)

        resp = await service.get_auction(db, auction.id)

        assert [b.amount_cents for b in resp.bids] == [12500, 10000]
        assert resp.min_next_bid_cents == 15000

        clock.advance(hours=24)
        assert (await service.get_auction(db, auction.id)).min_next_bid_cents is None

    @pytest.mark.asyncio
    async def test_list_active(self, service, db, clock):
        first = await _create(service, db, item_id="CX-00001", hours=48)
        second = await _create(service, db, item_id="CX-00002", hours=24)
        resp = await service.list_active(db)
        assert [a.id for a in resp.auctions] == [second.id, first.id]
