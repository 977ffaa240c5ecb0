"""Global enums: must match DB CHECK constraints exactly."""

from enum import Enum


class ItemStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    RESERVED = "RESERVED"
    SOLD = "SOLD"
    LISTED = "LISTED"
    AUCTIONED = "AUCTIONED"


class ListingStatus(str, Enum):
    """SOLD is the closed-by-sale state, reached via buy-now or an accepted offer."""
    ACTIVE = "ACTIVE"
    SOLD = "SOLD"
    CANCELLED = "CANCELLED"


class AuctionStatus(str, Enum):
    """ENDED closes an auction nobody bid on; FINALIZED one that found a winner."""
    ACTIVE = "ACTIVE"
    ENDED = "ENDED"
    FINALIZED = "FINALIZED"


class OfferStatus(str, Enum):
    PENDING = "PENDING"
    COUNTERED = "COUNTERED"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"


OPEN_OFFER_STATUSES: frozenset[str] = frozenset(
    {OfferStatus.PENDING.value, OfferStatus.COUNTERED.value}
)
TERMINAL_OFFER_STATUSES: frozenset[str] = frozenset(
    {
        OfferStatus.ACCEPTED.value,
        OfferStatus.REJECTED.value,
        OfferStatus.EXPIRED.value,
        OfferStatus.CANCELLED.value,
    }
)


class SettlementEventType(str, Enum):
    """Events handed to the payment/settlement service through the outbox."""
    PRIMARY_SALE = "PRIMARY_SALE"
    LISTING_SALE = "LISTING_SALE"
    OFFER_ACCEPTED = "OFFER_ACCEPTED"
    AUCTION_SALE = "AUCTION_SALE"
