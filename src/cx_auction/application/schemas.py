# src/cx_auction/application/schemas.py
from datetime import datetime

from pydantic import BaseModel

from src.cx_auction.domain.models import Auction, Bid
from src.cx_common.money import cents_to_display


class CreateAuctionRequest(BaseModel):
    item_id: str
    starting_bid_cents: int
    duration_hours: int | None = None


class PlaceBidRequest(BaseModel):
    amount_cents: int


class BidResponse(BaseModel):
    id: str
    bidder_ref: str
    amount_cents: int
    amount_display: str
    created_at: datetime | None = None

    @classmethod
    def from_bid(cls, bid: Bid) -> "BidResponse":
        return cls(
            id=bid.id,
            bidder_ref=bid.bidder_ref,
            amount_cents=bid.amount_cents,
            amount_display=cents_to_display(bid.amount_cents),
            created_at=bid.created_at,
        )


class AuctionResponse(BaseModel):
    id: str
    item_id: str
    status: str
    starting_bid_cents: int
    current_bid_cents: int
    current_bid_display: str
    highest_bidder_ref: str | None
    bid_count: int
    # None once the auction no longer takes bids
    min_next_bid_cents: int | None
    end_time: datetime
    finalized_at: datetime | None = None
    bids: list[BidResponse] = []

    @classmethod
    def from_auction(
        cls, auction: Auction, min_next_bid_cents: int | None, bids: list[Bid] | None = None
    ) -> "AuctionResponse":
        return cls(
            id=auction.id,
            item_id=auction.item_id,
            status=auction.status,
            starting_bid_cents=auction.starting_bid_cents,
            current_bid_cents=auction.current_bid_cents,
            current_bid_display=cents_to_display(auction.current_bid_cents),
            highest_bidder_ref=auction.highest_bidder_ref,
            bid_count=auction.bid_count,
            min_next_bid_cents=min_next_bid_cents,
            end_time=auction.end_time,
            finalized_at=auction.finalized_at,
            bids=[BidResponse.from_bid(b) for b in bids or []],
        )


class FinalizeAuctionResponse(BaseModel):
    auction: AuctionResponse
    winner_ref: str | None
    sale_price_cents: int | None


class AuctionListResponse(BaseModel):
    auctions: list[AuctionResponse]
