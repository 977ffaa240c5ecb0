"""AuctionEngine: timed ascending-bid auctions of unsold items.

    ACTIVE --bid--> ACTIVE                       (while now < end_time)
    ACTIVE --finalize, no bids--> ENDED          (item back to AVAILABLE)
    ACTIVE --finalize, bids--> FINALIZED         (item to the highest bidder)

ENDED and FINALIZED are terminal. The first bid may meet the starting bid;
every later bid must beat the current one by the larger of a share of it
and a fixed floor. The engine is pure; the compare-and-swap on
(status, version, end_time) is the repository's job.
"""

from dataclasses import replace
from datetime import datetime, timedelta

from src.cx_auction.domain.models import Auction, Bid
from src.cx_common.clock import Clock
from src.cx_common.enums import AuctionStatus
from src.cx_common.errors import (
    AuctionEndedError,
    AuctionNotActiveError,
    AuctionNotEndedError,
    BidTooLowError,
    InvalidAmountError,
)


class AuctionEngine:
    def __init__(
        self,
        clock: Clock,
        min_increment_bps: int = 500,
        min_increment_cents: int = 2500,
        default_duration: timedelta = timedelta(days=7),
    ) -> None:
        self._clock = clock
        self._min_increment_bps = min_increment_bps
        self._min_increment_cents = max(1, min_increment_cents)
        self._default_duration = default_duration

    def now(self) -> datetime:
        return self._clock.now()

    def open(
        self,
        auction_id: str,
        item_id: str,
        created_by: str,
        starting_bid_cents: int,
        duration: timedelta | None = None,
    ) -> Auction:
        if starting_bid_cents <= 0:
            raise InvalidAmountError(f"starting bid must be positive, got {starting_bid_cents}")
        duration = self._default_duration if duration is None else duration
        if duration <= timedelta(0):
            raise InvalidAmountError(f"auction duration must be positive, got {duration}")
        now = self.now()
        return Auction(
            id=auction_id,
            item_id=item_id,
            created_by=created_by,
            starting_bid_cents=starting_bid_cents,
            current_bid_cents=starting_bid_cents,
            end_time=now + duration,
            created_at=now,
            updated_at=now,
        )

    def min_increment(self, auction: Auction) -> int:
        share = auction.current_bid_cents * self._min_increment_bps // 10_000
        return max(share, self._min_increment_cents)

    def min_next_bid(self, auction: Auction) -> int:
        if auction.bid_count == 0:
            return auction.starting_bid_cents
        return auction.current_bid_cents + self.min_increment(auction)

    def bid(
        self, auction: Auction, bid_id: str, bidder_ref: str, amount_cents: int
    ) -> tuple[Auction, Bid]:
        if not auction.is_active:
            raise AuctionNotActiveError(auction.id, auction.status)
        now = self.now()
        if auction.has_ended(now):
            raise AuctionEndedError(auction.id)
        minimum = self.min_next_bid(auction)
        if amount_cents < minimum:
            raise BidTooLowError(minimum)
        updated = replace(
            auction,
            current_bid_cents=amount_cents,
            highest_bidder_ref=bidder_ref,
            bid_count=auction.bid_count + 1,
            updated_at=now,
            version=auction.version + 1,
        )
        return updated, Bid(
            id=bid_id,
            auction_id=auction.id,
            bidder_ref=bidder_ref,
            amount_cents=amount_cents,
            created_at=now,
        )

    def finalize(self, auction: Auction) -> Auction:
        if not auction.is_active:
            raise AuctionNotActiveError(auction.id, auction.status)
        now = self.now()
        if not auction.has_ended(now):
            raise AuctionNotEndedError(auction.id)
        status = AuctionStatus.FINALIZED if auction.bid_count else AuctionStatus.ENDED
        return replace(
            auction,
            status=status.value,
            finalized_at=now,
            updated_at=now,
            version=auction.version + 1,
        )
