"""AuctionRepository: concrete implementation of AuctionRepositoryProtocol.

All queries use raw text() SQL (no ORM).

Transaction ownership: the CALLER (application service) commits or rolls back.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.cx_auction.domain.models import Auction, Bid

# ---------------------------------------------------------------------------
# SQL
# ---------------------------------------------------------------------------

_AUCTION_COLUMNS = """
    id, item_id, created_by, starting_bid_cents, current_bid_cents,
    highest_bidder_ref, bid_count, status, end_time, created_at, updated_at,
    finalized_at, version
"""

_INSERT_SQL = text("""
    INSERT INTO auctions (
        id, item_id, created_by, starting_bid_cents, current_bid_cents,
        highest_bidder_ref, bid_count, status, end_time, created_at, updated_at, version)
    VALUES (
        :id, :item_id, :created_by, :starting_bid_cents, :starting_bid_cents,
        NULL, 0, 'ACTIVE', :end_time, :created_at, :created_at, 0)
""")

_GET_BY_ID_SQL = text(f"""
    SELECT {_AUCTION_COLUMNS}
    FROM auctions
    WHERE id = :auction_id
""")

_LIST_ACTIVE_SQL = text(f"""
    SELECT {_AUCTION_COLUMNS}
    FROM auctions
    WHERE status = 'ACTIVE'
    ORDER BY end_time
    LIMIT :limit
""")

_LIST_DUE_SQL = text(f"""
    SELECT {_AUCTION_COLUMNS}
    FROM auctions
    WHERE status = 'ACTIVE'
      AND end_time <= :now
    ORDER BY end_time
    LIMIT :limit
""")

_RECORD_BID_SQL = text("""
    UPDATE auctions
    SET current_bid_cents = :amount_cents,
        highest_bidder_ref = :bidder_ref,
        bid_count = bid_count + 1,
        updated_at = :now,
        version = :version
    WHERE id = :auction_id
      AND status = 'ACTIVE'
      AND version = :expected_version
      AND end_time > :now
    RETURNING id
""")

_INSERT_BID_SQL = text("""
    INSERT INTO auction_bids (id, auction_id, bidder_ref, amount_cents, created_at)
    VALUES (:id, :auction_id, :bidder_ref, :amount_cents, :created_at)
""")

_LIST_BIDS_SQL = text("""
    SELECT id, auction_id, bidder_ref, amount_cents, created_at
    FROM auction_bids
    WHERE auction_id = :auction_id
    ORDER BY amount_cents DESC
    LIMIT :limit
""")

_CLOSE_SQL = text("""
    UPDATE auctions
    SET status = :status,
        finalized_at = :now,
        updated_at = :now,
        version = version + 1
    WHERE id = :auction_id
      AND status = 'ACTIVE'
      AND end_time <= :now
    RETURNING id
""")

# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _row_to_auction(row: Any) -> Auction:
    return Auction(
        id=row.id,
        item_id=row.item_id,
        created_by=row.created_by,
        starting_bid_cents=row.starting_bid_cents,
        current_bid_cents=row.current_bid_cents,
        highest_bidder_ref=row.highest_bidder_ref,
        bid_count=row.bid_count,
        status=row.status,
        end_time=row.end_time,
        created_at=row.created_at,
        updated_at=row.updated_at,
        finalized_at=row.finalized_at,
        version=row.version,
    )


def _row_to_bid(row: Any) -> Bid:
    return Bid(
        id=row.id,
        auction_id=row.auction_id,
        bidder_ref=row.bidder_ref,
        amount_cents=row.amount_cents,
        created_at=row.created_at,
    )


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class AuctionRepository:
    async def insert(self, db: AsyncSession, auction: Auction) -> None:
        await db.execute(
            _INSERT_SQL,
            {
                "id": auction.id,
                "item_id": auction.item_id,
                "created_by": auction.created_by,
                "starting_bid_cents": auction.starting_bid_cents,
                "end_time": auction.end_time,
                "created_at": auction.created_at,
            },
        )

    async def get_by_id(self, db: AsyncSession, auction_id: str) -> Auction | None:
        row = (await db.execute(_GET_BY_ID_SQL, {"auction_id": auction_id})).fetchone()
        return _row_to_auction(row) if row else None

    async def list_active(self, db: AsyncSession, limit: int) -> list[Auction]:
        result = await db.execute(_LIST_ACTIVE_SQL, {"limit": limit})
        return [_row_to_auction(row) for row in result.fetchall()]

    async def list_due(self, db: AsyncSession, now: datetime, limit: int) -> list[Auction]:
        result = await db.execute(_LIST_DUE_SQL, {"now": now, "limit": limit})
        return [_row_to_auction(row) for row in result.fetchall()]

    async def list_bids(self, db: AsyncSession, auction_id: str, limit: int) -> list[Bid]:
        result = await db.execute(_LIST_BIDS_SQL, {"auction_id": auction_id, "limit": limit})
        return [_row_to_bid(row) for row in result.fetchall()]

    async def record_bid(
        self, db: AsyncSession, auction: Auction, bid: Bid, expected_version: int, now: datetime
    ) -> bool:
        result = await db.execute(
            _RECORD_BID_SQL,
            {
                "auction_id": auction.id,
                "amount_cents": bid.amount_cents,
                "bidder_ref": bid.bidder_ref,
                "version": auction.version,
                "expected_version": expected_version,
                "now": now,
            },
        )
        if result.fetchone() is None:
            return False
        await db.execute(
            _INSERT_BID_SQL,
            {
                "id": bid.id,
                "auction_id": bid.auction_id,
                "bidder_ref": bid.bidder_ref,
                "amount_cents": bid.amount_cents,
                "created_at": bid.created_at,
            },
        )
        return True

    async def close(self, db: AsyncSession, auction: Auction, now: datetime) -> bool:
        result = await db.execute(
            _CLOSE_SQL, {"auction_id": auction.id, "status": auction.status, "now": now}
        )
        return result.fetchone() is not None
