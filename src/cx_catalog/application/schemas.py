# src/cx_catalog/application/schemas.py
from datetime import datetime

from pydantic import BaseModel, Field

from src.cx_catalog.domain.models import Item, Listing
from src.cx_common.money import cents_to_display
from src.cx_release.application.schemas import PriceQuoteResponse


class CreateListingRequest(BaseModel):
    item_id: str
    price_cents: int = Field(..., gt=0)
    expires_at: datetime | None = None


class ItemResponse(BaseModel):
    id: str
    score: int
    status: str
    owner_ref: str | None
    last_price_cents: int | None
    last_price_display: str | None
    sold_phase_index: int | None
    reserved_by: str | None = None
    reserved_until: datetime | None = None
    # Live price while the item is still in primary sale
    quote: PriceQuoteResponse | None = None

    @classmethod
    def from_item(cls, item: Item, quote: PriceQuoteResponse | None = None) -> "ItemResponse":
        return cls(
            id=item.id,
            score=item.score,
            status=item.status,
            owner_ref=item.owner_ref,
            last_price_cents=item.current_price_cents,
            last_price_display=(
                cents_to_display(item.current_price_cents)
                if item.current_price_cents is not None
                else None
            ),
            sold_phase_index=item.sold_phase_index,
            reserved_by=item.reserved_by,
            reserved_until=item.reserved_until,
            quote=quote,
        )


class PurchaseResponse(BaseModel):
    item_id: str
    owner_ref: str
    phase_index: int
    price_cents: int
    price_display: str
    phase_sold: int
    phase_capacity: int


class ListingResponse(BaseModel):
    id: str
    item_id: str
    seller_ref: str
    price_cents: int
    price_display: str
    status: str
    expires_at: datetime | None = None
    created_at: datetime | None = None
    closed_at: datetime | None = None

    @classmethod
    def from_listing(cls, listing: Listing) -> "ListingResponse":
        return cls(
            id=listing.id,
            item_id=listing.item_id,
            seller_ref=listing.seller_ref,
            price_cents=listing.price_cents,
            price_display=cents_to_display(listing.price_cents),
            status=listing.status,
            expires_at=listing.expires_at,
            created_at=listing.created_at,
            closed_at=listing.closed_at,
        )


class ListingSaleResponse(BaseModel):
    listing: ListingResponse
    buyer_ref: str
    royalty_cents: int
    seller_proceeds_cents: int
    rejected_offer_ids: list[str]
