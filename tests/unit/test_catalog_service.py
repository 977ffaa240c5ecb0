# tests/unit/test_catalog_service.py
"""Unit tests for CatalogApplicationService using mock repositories."""
from dataclasses import replace
from datetime import timedelta
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from config.settings import settings
from src.cx_catalog.application.schemas import CreateListingRequest
from src.cx_catalog.application.service import CatalogApplicationService
from src.cx_catalog.domain.models import Item, Listing
from src.cx_common.errors import (
    ActorBannedError,
    CapacityExhaustedError,
    ConcurrencyConflictError,
    DuplicateListingError,
    FeatureDisabledError,
    InvalidAmountError,
    InternalError,
    ItemNotAvailableError,
    ItemNotFoundError,
    ItemNotOwnedError,
    ListingNotActiveError,
    NoActivePhaseError,
    SelfDealingError,
    UnauthorizedError,
)
from src.cx_release.domain.models import Phase, ReleaseSettings

BUYER = "buyer@example.com"
SELLER = "seller@example.com"


def _phase(index: int = 1, sold: int = 0, capacity: int = 1000) -> Phase:
    return Phase(
        index=index,
        base_rate_cents=Decimal("10"),
        capacity=capacity,
        sold=sold,
        duration_seconds=14 * 24 * 3600,
        is_active=True,
    )


def _item(**kwargs) -> Item:
    defaults = dict(id="CX-00001", score=400, status="AVAILABLE")
    defaults.update(kwargs)
    return Item(**defaults)


def _listing(**kwargs) -> Listing:
    defaults = dict(id="lst-1", item_id="CX-00001", seller_ref=SELLER, price_cents=10000)
    defaults.update(kwargs)
    return Listing(**defaults)


@pytest.fixture
def repo():
    r = MagicMock()
    r.get_item = AsyncMock(return_value=_item())
    r.mark_sold = AsyncMock(
        side_effect=lambda db, item_id, buyer, price, phase_index, now: _item(
            status="SOLD", owner_ref=buyer, current_price_cents=price, sold_phase_index=phase_index
        )
    )
    r.reserve_item = AsyncMock()
    r.get_listing = AsyncMock(return_value=_listing())
    r.close_listing = AsyncMock(
        side_effect=lambda db, listing_id, status, now: _listing(status=status, closed_at=now)
    )
    r.transfer_ownership = AsyncMock(return_value=_item(status="SOLD", owner_ref=BUYER))
    r.set_listed = AsyncMock(return_value=_item(status="LISTED", owner_ref=SELLER))
    r.unset_listed = AsyncMock(return_value=_item(status="SOLD", owner_ref=SELLER))
    r.insert_listing = AsyncMock()
    r.release_expired_reservations = AsyncMock(return_value=[])
    return r


@pytest.fixture
def phase_repo():
    r = MagicMock()
    r.get_active_phase = AsyncMock(return_value=_phase(sold=10))
    r.increment_sold = AsyncMock(return_value=_phase(sold=11))
    r.get_settings = AsyncMock(return_value=ReleaseSettings(Decimal("10")))
    r.list_phases = AsyncMock(return_value=[_phase(sold=10)])
    return r


@pytest.fixture
def offer_repo():
    r = MagicMock()
    r.reject_open_for_item = AsyncMock(return_value=["off-1", "off-2"])
    return r


@pytest.fixture
def service(repo, phase_repo, offer_repo, clock, notifier):
    return CatalogApplicationService(
        repo=repo, phase_repo=phase_repo, offer_repo=offer_repo, clock=clock, notifier=notifier
    )


class TestGetItem:
    @pytest.mark.asyncio
    async def test_unsold_item_carries_live_quote(self, service, db):
        resp = await service.get_item(db, "CX-00001")
        assert resp.quote is not None
        assert resp.quote.price_cents == 4000

    @pytest.mark.asyncio
    async def test_sold_item_has_no_quote(self, service, repo, db):
        repo.get_item = AsyncMock(
            return_value=_item(status="SOLD", owner_ref=BUYER, current_price_cents=4000)
        )
        resp = await service.get_item(db, "CX-00001")
        assert resp.quote is None
        assert resp.last_price_display == "$40.00"

    @pytest.mark.asyncio
    async def test_missing_item(self, service, repo, db):
        repo.get_item = AsyncMock(return_value=None)
        with pytest.raises(ItemNotFoundError):
            await service.get_item(db, "CX-99999")


class TestReserve:
    @pytest.mark.asyncio
    async def test_reserve_sets_hold(self, service, repo, db, clock):
        until = clock.now() + timedelta(seconds=900)
        repo.reserve_item = AsyncMock(
            return_value=_item(status="RESERVED", reserved_by=BUYER, reserved_until=until)
        )
        resp = await service.reserve(db, "CX-00001", BUYER)
        assert resp.reserved_by == BUYER
        repo.reserve_item.assert_awaited_once_with(db, "CX-00001", BUYER, until, clock.now())
        db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_live_hold_by_someone_else(self, service, repo, db, clock):
        repo.get_item = AsyncMock(return_value=_item(
            status="RESERVED", reserved_by="other@example.com",
            reserved_until=clock.now() + timedelta(minutes=5),
        ))
        with pytest.raises(ItemNotAvailableError):
            await service.reserve(db, "CX-00001", BUYER)
        repo.reserve_item.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_lapsed_hold_can_be_taken_over(self, service, repo, db, clock):
        repo.get_item = AsyncMock(return_value=_item(
            status="RESERVED", reserved_by="other@example.com",
            reserved_until=clock.now() - timedelta(seconds=1),
        ))
        repo.reserve_item = AsyncMock(return_value=_item(status="RESERVED", reserved_by=BUYER))
        resp = await service.reserve(db, "CX-00001", BUYER)
        assert resp.status == "RESERVED"


class TestPurchase:
    @pytest.mark.asyncio
    async def test_price_from_active_phase(self, service, repo, db, notifier):
        resp = await service.purchase(db, "CX-00001", BUYER)

        assert resp.price_cents == 4000
        assert resp.price_display == "$40.00"
        assert (resp.phase_sold, resp.phase_capacity) == (11, 1000)
        repo.mark_sold.assert_awaited_once()
        db.execute.assert_awaited_once()  # settlement event
        db.commit.assert_awaited_once()
        assert notifier.publish.call_args.args[0] == "item.sold"

    @pytest.mark.asyncio
    async def test_next_phase_prices_higher(self, service, phase_repo, db):
        phase_repo.get_active_phase = AsyncMock(return_value=_phase(index=2))
        phase_repo.increment_sold = AsyncMock(return_value=_phase(index=2, sold=1))
        resp = await service.purchase(db, "CX-00001", BUYER)
        assert resp.price_cents == 4400
        assert resp.phase_index == 2

    @pytest.mark.asyncio
    async def test_no_active_phase(self, service, phase_repo, db):
        phase_repo.get_active_phase = AsyncMock(return_value=None)
        with pytest.raises(NoActivePhaseError):
            await service.purchase(db, "CX-00001", BUYER)
        db.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_capacity_exhausted(self, service, phase_repo, repo, db):
        full = _phase(sold=1000)
        phase_repo.get_active_phase = AsyncMock(return_value=full)
        phase_repo.increment_sold = AsyncMock(return_value=None)

        with pytest.raises(CapacityExhaustedError):
            await service.purchase(db, "CX-00001", BUYER)
        repo.mark_sold.assert_not_awaited()
        db.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_phase_advanced_mid_sale(self, service, phase_repo, db):
        phase_repo.get_active_phase = AsyncMock(side_effect=[_phase(index=1), _phase(index=2)])
        phase_repo.increment_sold = AsyncMock(return_value=None)
        with pytest.raises(ConcurrencyConflictError):
            await service.purchase(db, "CX-00001", BUYER)

    @pytest.mark.asyncio
    async def test_item_taken_meanwhile_rolls_back_sold_count(self, service, repo, db):
        repo.get_item = AsyncMock(side_effect=[_item(), _item(status="SOLD", owner_ref="x@example.com")])
        repo.mark_sold = AsyncMock(return_value=None)

        with pytest.raises(ItemNotAvailableError, match="SOLD"):
            await service.purchase(db, "CX-00001", BUYER)
        db.rollback.assert_awaited_once()
        db.commit.assert_not_awaited()
        db.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_already_sold(self, service, repo, phase_repo, db):
        repo.get_item = AsyncMock(return_value=_item(status="SOLD", owner_ref=SELLER))
        with pytest.raises(ItemNotAvailableError):
            await service.purchase(db, "CX-00001", BUYER)
        phase_repo.increment_sold.assert_not_awaited()


class TestListings:
    @pytest.mark.asyncio
    async def test_create(self, service, repo, db, notifier):
        repo.get_item = AsyncMock(return_value=_item(status="SOLD", owner_ref=SELLER))
        resp = await service.create_listing(
            db, SELLER, CreateListingRequest(item_id="CX-00001", price_cents=10000)
        )
        assert resp.status == "ACTIVE"
        assert resp.price_display == "$100.00"
        repo.insert_listing.assert_awaited_once()
        assert notifier.publish.call_args.args[0] == "listing.created"

    @pytest.mark.asyncio
    async def test_create_requires_ownership(self, service, repo, db):
        repo.get_item = AsyncMock(return_value=_item(status="SOLD", owner_ref="other@example.com"))
        with pytest.raises(ItemNotOwnedError):
            await service.create_listing(
                db, SELLER, CreateListingRequest(item_id="CX-00001", price_cents=10000)
            )

    @pytest.mark.asyncio
    async def test_create_twice(self, service, repo, db):
        repo.get_item = AsyncMock(return_value=_item(status="LISTED", owner_ref=SELLER))
        with pytest.raises(DuplicateListingError):
            await service.create_listing(
                db, SELLER, CreateListingRequest(item_id="CX-00001", price_cents=10000)
            )

    @pytest.mark.asyncio
    async def test_create_with_past_expiry(self, service, db, clock):
        req = CreateListingRequest(
            item_id="CX-00001", price_cents=10000, expires_at=clock.now() - timedelta(hours=1)
        )
        with pytest.raises(InvalidAmountError):
            await service.create_listing(db, SELLER, req)

    @pytest.mark.asyncio
    async def test_cancel_by_stranger(self, service, db):
        with pytest.raises(UnauthorizedError):
            await service.cancel_listing(db, "lst-1", BUYER)

    @pytest.mark.asyncio
    async def test_cancel_returns_item_to_owner(self, service, repo, db):
        resp = await service.cancel_listing(db, "lst-1", SELLER)
        assert resp.status == "CANCELLED"
        repo.unset_listed.assert_awaited_once_with(db, "CX-00001", SELLER)

    @pytest.mark.asyncio
    async def test_cancel_with_item_out_of_sync(self, service, repo, db):
        repo.unset_listed = AsyncMock(return_value=None)
        with pytest.raises(InternalError):
            await service.cancel_listing(db, "lst-1", SELLER)
        db.rollback.assert_awaited_once()
        db.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_buy_splits_royalty(self, service, repo, offer_repo, db, clock):
        resp = await service.buy_listing(db, "lst-1", BUYER)

        assert resp.listing.status == "SOLD"
        assert (resp.royalty_cents, resp.seller_proceeds_cents) == (2000, 8000)
        assert resp.rejected_offer_ids == ["off-1", "off-2"]
        repo.transfer_ownership.assert_awaited_once_with(db, "CX-00001", SELLER, BUYER, 10000)
        offer_repo.reject_open_for_item.assert_awaited_once_with(db, "CX-00001", None, clock.now())
        db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_seller_cannot_buy_own_listing(self, service, db):
        with pytest.raises(SelfDealingError):
            await service.buy_listing(db, "lst-1", SELLER)

    @pytest.mark.asyncio
    async def test_buy_expired_listing(self, service, repo, db, clock):
        repo.get_listing = AsyncMock(return_value=_listing(expires_at=clock.now()))
        with pytest.raises(ListingNotActiveError, match="EXPIRED"):
            await service.buy_listing(db, "lst-1", BUYER)
        repo.close_listing.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_buy_lost_race(self, service, repo, db):
        repo.get_listing = AsyncMock(side_effect=[_listing(), replace(_listing(), status="SOLD")])
        repo.close_listing = AsyncMock(return_value=None)
        with pytest.raises(ListingNotActiveError, match="SOLD"):
            await service.buy_listing(db, "lst-1", BUYER)
        repo.transfer_ownership.assert_not_awaited()
        db.rollback.assert_awaited_once()


class TestReservationSweep:
    @pytest.mark.asyncio
    async def test_release(self, service, repo, db):
        repo.release_expired_reservations = AsyncMock(return_value=["CX-00002"])
        assert await service.release_expired_reservations(db) == ["CX-00002"]
        db.commit.assert_awaited_once()


class TestMarketplaceGuards:
    @pytest.mark.asyncio
    async def test_listing_switch_off(self, service, repo, db, monkeypatch):
        monkeypatch.setattr(settings, "LISTINGS_ENABLED", False)
        with pytest.raises(FeatureDisabledError):
            await service.create_listing(
                db, SELLER, CreateListingRequest(item_id="CX-00001", price_cents=10000)
            )
        repo.set_listed.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_banned_seller_cannot_list(self, service, repo, db, monkeypatch):
        monkeypatch.setattr(settings, "BANNED_ACTOR_REFS", [SELLER])
        with pytest.raises(ActorBannedError):
            await service.create_listing(
                db, SELLER, CreateListingRequest(item_id="CX-00001", price_cents=10000)
            )
        repo.insert_listing.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_trading_switch_off(self, service, repo, db, monkeypatch):
        monkeypatch.setattr(settings, "TRADING_ENABLED", False)
        with pytest.raises(FeatureDisabledError):
            await service.buy_listing(db, "lst-1", BUYER)
        repo.close_listing.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_banned_buyer_cannot_buy(self, service, repo, db, monkeypatch):
        monkeypatch.setattr(settings, "BANNED_ACTOR_REFS", [BUYER])
        with pytest.raises(ActorBannedError):
            await service.buy_listing(db, "lst-1", BUYER)
        repo.transfer_ownership.assert_not_awaited()
