# src/cx_auction/application/service.py
"""AuctionApplicationService: orchestration around AuctionEngine.

Auctions sell unsold catalog items outside the phased release. Opening one
moves the item AVAILABLE -> AUCTIONED in the same transaction as the auction
insert. A bid is a compare-and-swap on (status, version, end_time > now);
a swap that finds no row is explained by re-reading the auction:

    auction closed meanwhile  -> AuctionNotActiveError
    deadline passed meanwhile -> AuctionEndedError
    outbid meanwhile          -> BidTooLowError with the new minimum
    only version moved        -> ConcurrencyConflictError

Finalizing awards the item to the highest bidder and writes an AUCTION_SALE
settlement event, or returns the item to AVAILABLE when nobody bid.
"""

import logging
import uuid
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.cx_auction.application.schemas import (
    AuctionListResponse,
    AuctionResponse,
    CreateAuctionRequest,
    FinalizeAuctionResponse,
)
from src.cx_auction.domain.engine import AuctionEngine
from src.cx_auction.domain.models import Auction, Bid
from src.cx_auction.domain.repository import AuctionRepositoryProtocol
from src.cx_auction.infrastructure.persistence import AuctionRepository
from src.cx_catalog.domain.repository import CatalogRepositoryProtocol
from src.cx_catalog.infrastructure.persistence import CatalogRepository
from src.cx_catalog.infrastructure.settlement import write_settlement_event
from src.cx_common.clock import Clock, SystemClock
from src.cx_common.enums import AuctionStatus, SettlementEventType
from src.cx_common.errors import (
    AppError,
    AuctionEndedError,
    AuctionNotActiveError,
    AuctionNotFoundError,
    BidTooLowError,
    ConcurrencyConflictError,
    InternalError,
    ItemNotAvailableError,
    ItemNotFoundError,
    SelfDealingError,
)
from src.cx_common.guards import require_enabled, require_not_banned
from src.cx_common.money import cents_to_display
from src.cx_common.notifier import NotifierProtocol, RedisNotifier

logger = logging.getLogger(__name__)

SWEEP_BATCH_SIZE = 100
RECENT_BIDS = 20
LIST_LIMIT = 100


class AuctionApplicationService:
    def __init__(
        self,
        repo: AuctionRepositoryProtocol | None = None,
        catalog_repo: CatalogRepositoryProtocol | None = None,
        clock: Clock | None = None,
        notifier: NotifierProtocol | None = None,
    ) -> None:
        self._repo: AuctionRepositoryProtocol = repo or AuctionRepository()
        self._catalog: CatalogRepositoryProtocol = catalog_repo or CatalogRepository()
        self._clock: Clock = clock or SystemClock()
        self._notifier: NotifierProtocol = notifier or RedisNotifier()
        self._engine = AuctionEngine(
            self._clock,
            min_increment_bps=settings.AUCTION_MIN_INCREMENT_BPS,
            min_increment_cents=settings.AUCTION_MIN_INCREMENT_CENTS,
            default_duration=timedelta(hours=settings.AUCTION_DEFAULT_DURATION_HOURS),
        )

    @property
    def engine(self) -> AuctionEngine:
        return self._engine

    # ------------------------------------------------------------------
    # Admin
    # ------------------------------------------------------------------

    async def create(
        self, db: AsyncSession, admin_ref: str, req: CreateAuctionRequest
    ) -> AuctionResponse:
        require_enabled("auctions")
        duration = timedelta(hours=req.duration_hours) if req.duration_hours is not None else None
        auction = self._engine.open(
            uuid.uuid4().hex, req.item_id, admin_ref, req.starting_bid_cents, duration
        )
        now = auction.created_at or self._clock.now()

        item = await self._catalog.get_item(db, req.item_id)
        if item is None:
            raise ItemNotFoundError(req.item_id)
        if not item.can_be_auctioned(now):
            raise ItemNotAvailableError(req.item_id, item.status)
        try:
            if await self._catalog.set_auctioned(db, req.item_id, now) is None:
                fresh = await self._catalog.get_item(db, req.item_id)
                raise ItemNotAvailableError(req.item_id, fresh.status if fresh else "UNKNOWN")
            await self._repo.insert(db, auction)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Auction %s opened on item %s by %s from %s, ends %s",
            auction.id, auction.item_id, admin_ref,
            cents_to_display(auction.starting_bid_cents), auction.end_time.isoformat(),
        )
        await self._notifier.publish(
            "auction.created",
            {
                "auction_id": auction.id,
                "item_id": auction.item_id,
                "starting_bid_cents": auction.starting_bid_cents,
                "end_time": auction.end_time,
            },
        )
        return self._response(auction)

    async def finalize(self, db: AsyncSession, auction_id: str) -> FinalizeAuctionResponse:
        closed = await self._finalize(db, await self._require(db, auction_id))
        return FinalizeAuctionResponse(
            auction=self._response(closed),
            winner_ref=closed.highest_bidder_ref,
            sale_price_cents=closed.current_bid_cents if closed.bid_count else None,
        )

    async def finalize_due(self, db: AsyncSession, limit: int = SWEEP_BATCH_SIZE) -> list[str]:
        """Close every active auction past its end time; one failure skips one auction."""
        due = await self._repo.list_due(db, self._clock.now(), limit)
        closed: list[str] = []
        for auction in due:
            try:
                await self._finalize(db, auction)
            except AppError as exc:
                logger.warning("Could not finalize auction %s: %s", auction.id, exc.message)
                continue
            closed.append(auction.id)
        if closed:
            logger.info("Auction sweep closed %d auctions", len(closed))
        return closed

    # ------------------------------------------------------------------
    # Bidders and reads
    # ------------------------------------------------------------------

    async def place_bid(
        self, db: AsyncSession, auction_id: str, bidder_ref: str, amount_cents: int
    ) -> AuctionResponse:
        require_enabled("auctions")
        require_not_banned(bidder_ref)
        current = await self._require(db, auction_id)
        if bidder_ref == current.created_by:
            raise SelfDealingError()
        updated, bid = self._engine.bid(current, uuid.uuid4().hex, bidder_ref, amount_cents)
        now = bid.created_at or self._clock.now()

        try:
            ok = await self._repo.record_bid(db, updated, bid, current.version, now)
            if ok:
                await db.commit()
            else:
                await db.rollback()
        except Exception:
            await db.rollback()
            raise
        if not ok:
            raise await self._explain_lost_bid(db, current, amount_cents, now)

        logger.info(
            "Bid of %s on auction %s by %s (%d bids)",
            cents_to_display(amount_cents), auction_id, bidder_ref, updated.bid_count,
        )
        await self._notifier.publish(
            "auction.bid",
            {
                "auction_id": auction_id,
                "item_id": updated.item_id,
                "bidder_ref": bidder_ref,
                "amount_cents": amount_cents,
                "outbid_ref": current.highest_bidder_ref,
            },
        )
        return self._response(updated)

    async def get_auction(self, db: AsyncSession, auction_id: str) -> AuctionResponse:
        auction = await self._require(db, auction_id)
        bids = await self._repo.list_bids(db, auction_id, RECENT_BIDS)
        return self._response(auction, bids)

    async def list_active(self, db: AsyncSession, limit: int = LIST_LIMIT) -> AuctionListResponse:
        auctions = await self._repo.list_active(db, limit)
        return AuctionListResponse(auctions=[self._response(a) for a in auctions])

    # ------------------------------------------------------------------

    async def _finalize(self, db: AsyncSession, current: Auction) -> Auction:
        closed = self._engine.finalize(current)
        now = closed.finalized_at or self._clock.now()
        won = closed.status == AuctionStatus.FINALIZED
        try:
            ok = await self._repo.close(db, closed, now)
            if ok:
                if won:
                    item = await self._catalog.award_auction(
                        db, closed.item_id, closed.highest_bidder_ref, closed.current_bid_cents
                    )
                else:
                    item = await self._catalog.release_auctioned(db, closed.item_id)
                if item is None:
                    raise InternalError(
                        f"item {closed.item_id} was not AUCTIONED under auction {closed.id}"
                    )
                if won:
                    await write_settlement_event(
                        db,
                        event_type=SettlementEventType.AUCTION_SALE.value,
                        item_id=closed.item_id,
                        reference_id=closed.id,
                        buyer_ref=closed.highest_bidder_ref,
                        seller_ref=None,
                        amount_cents=closed.current_bid_cents,
                        payload={
                            "bid_count": closed.bid_count,
                            "starting_bid_cents": closed.starting_bid_cents,
                        },
                    )
                await db.commit()
            else:
                await db.rollback()
        except Exception:
            await db.rollback()
            raise
        if not ok:
            fresh = await self._require(db, current.id)
            if not fresh.is_active:
                raise AuctionNotActiveError(current.id, fresh.status)
            raise ConcurrencyConflictError(f"auction {current.id}")

        if won:
            logger.info(
                "Auction %s finalized: item %s -> %s for %s",
                closed.id, closed.item_id, closed.highest_bidder_ref,
                cents_to_display(closed.current_bid_cents),
            )
            await self._notifier.publish(
                "auction.finalized",
                {
                    "auction_id": closed.id,
                    "item_id": closed.item_id,
                    "winner_ref": closed.highest_bidder_ref,
                    "price_cents": closed.current_bid_cents,
                },
            )
        else:
            logger.info(
                "Auction %s ended without bids; item %s available", closed.id, closed.item_id
            )
            await self._notifier.publish(
                "auction.ended", {"auction_id": closed.id, "item_id": closed.item_id}
            )
        return closed

    async def _explain_lost_bid(
        self, db: AsyncSession, seen: Auction, amount_cents: int, now: datetime
    ) -> Exception:
        fresh = await self._require(db, seen.id)
        logger.warning(
            "Lost bid swap on auction %s: saw v%d, now %s v%d",
            seen.id, seen.version, fresh.status, fresh.version,
        )
        if not fresh.is_active:
            return AuctionNotActiveError(seen.id, fresh.status)
        if fresh.has_ended(now):
            return AuctionEndedError(seen.id)
        minimum = self._engine.min_next_bid(fresh)
        if amount_cents < minimum:
            return BidTooLowError(minimum)
        return ConcurrencyConflictError(f"auction {seen.id}")

    async def _require(self, db: AsyncSession, auction_id: str) -> Auction:
        auction = await self._repo.get_by_id(db, auction_id)
        if auction is None:
            raise AuctionNotFoundError(auction_id)
        return auction

    def _response(self, auction: Auction, bids: list[Bid] | None = None) -> AuctionResponse:
        open_for_bids = auction.is_active and not auction.has_ended(self._clock.now())
        minimum = self._engine.min_next_bid(auction) if open_for_bids else None
        return AuctionResponse.from_auction(auction, minimum, bids)
