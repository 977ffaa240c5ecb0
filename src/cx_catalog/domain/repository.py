# src/cx_catalog/domain/repository.py
"""Repository Protocol: dependency inversion for testability.

Every mutating method is a conditional write: it returns the updated row,
or None when the row no longer satisfied the precondition.
"""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.cx_catalog.domain.models import Item, Listing


class CatalogRepositoryProtocol(Protocol):
    # Items
    async def get_item(self, db: AsyncSession, item_id: str) -> Item | None: ...

    async def reserve_item(
        self, db: AsyncSession, item_id: str, buyer_ref: str, until: datetime, now: datetime
    ) -> Item | None: ...

    async def mark_sold(
        self,
        db: AsyncSession,
        item_id: str,
        buyer_ref: str,
        price_cents: int,
        phase_index: int,
        now: datetime,
    ) -> Item | None: ...

    async def release_expired_reservations(self, db: AsyncSession, now: datetime) -> list[str]: ...

    async def transfer_ownership(
        self, db: AsyncSession, item_id: str, from_ref: str, to_ref: str, price_cents: int
    ) -> Item | None: ...

    async def set_listed(self, db: AsyncSession, item_id: str, seller_ref: str) -> Item | None: ...

    async def unset_listed(self, db: AsyncSession, item_id: str, seller_ref: str) -> Item | None: ...

    # Auctions: AVAILABLE (or a lapsed hold) -> AUCTIONED -> SOLD | AVAILABLE
    async def set_auctioned(self, db: AsyncSession, item_id: str, now: datetime) -> Item | None: ...

    async def release_auctioned(self, db: AsyncSession, item_id: str) -> Item | None: ...

    async def award_auction(
        self, db: AsyncSession, item_id: str, winner_ref: str, price_cents: int
    ) -> Item | None: ...

    # Listings
    async def insert_listing(self, db: AsyncSession, listing: Listing) -> None: ...

    async def get_listing(self, db: AsyncSession, listing_id: str) -> Listing | None: ...

    async def get_active_listing_for_item(
        self, db: AsyncSession, item_id: str
    ) -> Listing | None: ...

    async def close_listing(
        self, db: AsyncSession, listing_id: str, status: str, now: datetime
    ) -> Listing | None: ...

    async def close_active_listing_for_item(
        self, db: AsyncSession, item_id: str, status: str, now: datetime
    ) -> Listing | None: ...
