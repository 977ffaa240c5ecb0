# src/cx_offer/application/schemas.py
from datetime import datetime

from pydantic import BaseModel

from src.cx_common.money import cents_to_display
from src.cx_offer.domain.models import Offer


class ProposeOfferRequest(BaseModel):
    item_id: str
    # Optional: defaults to the item's active listing, if any
    listing_id: str | None = None
    amount_cents: int
    ttl_hours: int | None = None


class CounterOfferRequest(BaseModel):
    counter_amount_cents: int


class OfferResponse(BaseModel):
    id: str
    item_id: str
    listing_id: str | None
    buyer_ref: str
    seller_ref: str
    amount_cents: int
    amount_display: str
    counter_amount_cents: int | None
    status: str
    expires_at: datetime
    created_at: datetime | None = None
    updated_at: datetime | None = None
    resolved_at: datetime | None = None

    @classmethod
    def from_offer(cls, offer: Offer) -> "OfferResponse":
        return cls(
            id=offer.id,
            item_id=offer.item_id,
            listing_id=offer.listing_id,
            buyer_ref=offer.buyer_ref,
            seller_ref=offer.seller_ref,
            amount_cents=offer.amount_cents,
            amount_display=cents_to_display(offer.amount_cents),
            counter_amount_cents=offer.counter_amount_cents,
            status=offer.status,
            expires_at=offer.expires_at,
            created_at=offer.created_at,
            updated_at=offer.updated_at,
            resolved_at=offer.resolved_at,
        )


class AcceptOfferResponse(BaseModel):
    offer: OfferResponse
    settlement_amount_cents: int
    royalty_cents: int
    seller_proceeds_cents: int
    closed_listing_id: str | None
    rejected_offer_ids: list[str]
