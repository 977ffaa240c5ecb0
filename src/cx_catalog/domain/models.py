"""Catalog domain models: pure dataclasses, no SQLAlchemy dependency."""
from dataclasses import dataclass
from datetime import datetime

from src.cx_common.enums import ItemStatus, ListingStatus


@dataclass
class Item:
    id: str
    score: int  # 0-500, immutable once seeded
    status: str  # ItemStatus value
    owner_ref: str | None = None
    # Last price paid; a cache, the live price comes from the release schedule
    current_price_cents: int | None = None
    sold_phase_index: int | None = None
    reserved_by: str | None = None
    reserved_until: datetime | None = None
    version: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def hold_active(self, now: datetime) -> bool:
        return (
            self.status == ItemStatus.RESERVED
            and self.reserved_until is not None
            and self.reserved_until > now
        )

    def can_be_reserved_by(self, buyer_ref: str, now: datetime) -> bool:
        if self.status == ItemStatus.AVAILABLE:
            return True
        if self.status == ItemStatus.RESERVED:
            return self.reserved_by == buyer_ref or not self.hold_active(now)
        return False

    def can_be_purchased_by(self, buyer_ref: str, now: datetime) -> bool:
        # Same rule as reserving: nobody else may hold a live reservation
        return self.can_be_reserved_by(buyer_ref, now)

    def can_be_auctioned(self, now: datetime) -> bool:
        if self.status == ItemStatus.AVAILABLE:
            return True
        return self.status == ItemStatus.RESERVED and not self.hold_active(now)

    @property
    def in_primary_sale(self) -> bool:
        return self.status in (ItemStatus.AVAILABLE, ItemStatus.RESERVED)


@dataclass
class Listing:
    id: str
    item_id: str
    seller_ref: str
    price_cents: int
    status: str = ListingStatus.ACTIVE.value
    expires_at: datetime | None = None
    created_at: datetime | None = None
    closed_at: datetime | None = None
    version: int = 0

    def is_open(self, now: datetime) -> bool:
        if self.status != ListingStatus.ACTIVE:
            return False
        return self.expires_at is None or self.expires_at > now
