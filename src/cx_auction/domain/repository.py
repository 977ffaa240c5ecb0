# src/cx_auction/domain/repository.py
"""Repository Protocol: dependency inversion for testability.

record_bid() and close() are the compare-and-swap points of an auction.
Their deadline predicates are complementary: a bid only lands while
end_time > now, a close only once end_time <= now, so a last-second bid and
the finalizing sweep can never both commit.
"""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.cx_auction.domain.models import Auction, Bid


class AuctionRepositoryProtocol(Protocol):
    async def insert(self, db: AsyncSession, auction: Auction) -> None: ...

    async def get_by_id(self, db: AsyncSession, auction_id: str) -> Auction | None: ...

    async def list_active(self, db: AsyncSession, limit: int) -> list[Auction]: ...

    async def list_due(self, db: AsyncSession, now: datetime, limit: int) -> list[Auction]: ...

    async def list_bids(self, db: AsyncSession, auction_id: str, limit: int) -> list[Bid]: ...

    async def record_bid(
        self, db: AsyncSession, auction: Auction, bid: Bid, expected_version: int, now: datetime
    ) -> bool: ...

    async def close(self, db: AsyncSession, auction: Auction, now: datetime) -> bool: ...
