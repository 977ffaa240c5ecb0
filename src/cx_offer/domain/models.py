"""Offer domain model: pure dataclass, no SQLAlchemy dependency."""
from dataclasses import dataclass
from datetime import datetime

from src.cx_common.enums import OPEN_OFFER_STATUSES, TERMINAL_OFFER_STATUSES, OfferStatus


@dataclass
class Offer:
    id: str
    item_id: str
    buyer_ref: str
    # Owner of the item when the offer was made; the only party who may answer it
    seller_ref: str
    amount_cents: int
    expires_at: datetime
    listing_id: str | None = None
    counter_amount_cents: int | None = None
    status: str = OfferStatus.PENDING.value
    created_at: datetime | None = None
    updated_at: datetime | None = None
    resolved_at: datetime | None = None
    version: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_OFFER_STATUSES

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_OFFER_STATUSES

    def is_past_deadline(self, now: datetime) -> bool:
        return now >= self.expires_at

    @property
    def settlement_amount_cents(self) -> int:
        """Price the sale closes at: the seller's counter if one was made."""
        if self.counter_amount_cents is not None:
            return self.counter_amount_cents
        return self.amount_cents


@dataclass(frozen=True)
class OfferTarget:
    """What an offer is made against, resolved from the catalog at proposal time."""
    item_id: str
    owner_ref: str
    listing_id: str | None = None
