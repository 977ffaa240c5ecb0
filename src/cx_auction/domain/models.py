"""Auction domain models: pure dataclasses, no SQLAlchemy dependency."""
from dataclasses import dataclass
from datetime import datetime

from src.cx_common.enums import AuctionStatus


@dataclass
class Auction:
    id: str
    item_id: str
    created_by: str
    starting_bid_cents: int
    # Equals starting_bid_cents until the first bid lands
    current_bid_cents: int
    end_time: datetime
    highest_bidder_ref: str | None = None
    bid_count: int = 0
    status: str = AuctionStatus.ACTIVE.value
    created_at: datetime | None = None
    updated_at: datetime | None = None
    finalized_at: datetime | None = None
    version: int = 0

    @property
    def is_active(self) -> bool:
        return self.status == AuctionStatus.ACTIVE

    def has_ended(self, now: datetime) -> bool:
        return now >= self.end_time


@dataclass
class Bid:
    id: str
    auction_id: str
    bidder_ref: str
    amount_cents: int
    created_at: datetime | None = None
