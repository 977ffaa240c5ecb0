"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Caller identity
  2xxx: Catalog / Listing
  3xxx: Release schedule
  4xxx: Offer
  5xxx: Auction
  6xxx: State machine (shared by release + offer engines)
  9xxx: System
"""


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


# --- 1xxx: Caller identity ---

class ActorRequiredError(AppError):
    def __init__(self) -> None:
        super().__init__(1001, "Caller identity header X-Actor-Ref is required", 401)


class AdminRequiredError(AppError):
    def __init__(self) -> None:
        super().__init__(1002, "Admin privileges required", 403)


class ActorBannedError(AppError):
    def __init__(self) -> None:
        super().__init__(1003, "Caller is banned from marketplace actions", 403)


# --- 2xxx: Catalog / Listing ---

class ItemNotFoundError(AppError):
    def __init__(self, item_id: str) -> None:
        super().__init__(2001, f"Item not found: {item_id}", 404)


class ItemNotAvailableError(AppError):
    def __init__(self, item_id: str, status: str) -> None:
        super().__init__(2002, f"Item {item_id} is not available (status={status})", 409)


class ItemNotOwnedError(AppError):
    def __init__(self, item_id: str) -> None:
        super().__init__(2003, f"Caller does not own item {item_id}", 403)


class ListingNotFoundError(AppError):
    def __init__(self, listing_id: str) -> None:
        super().__init__(2004, f"Listing not found: {listing_id}", 404)


class ListingNotActiveError(AppError):
    def __init__(self, listing_id: str, status: str) -> None:
        super().__init__(2005, f"Listing {listing_id} is not active (status={status})", 409)


class DuplicateListingError(AppError):
    def __init__(self, item_id: str) -> None:
        super().__init__(2006, f"Item {item_id} already has an active listing", 409)


class InvalidScoreError(AppError):
    def __init__(self, score: int) -> None:
        super().__init__(2007, f"Score must be between 0 and 500, got {score}", 422)


# --- 3xxx: Release schedule ---

class NoActivePhaseError(AppError):
    def __init__(self) -> None:
        super().__init__(3001, "No release phase is active", 409)


class ScheduleExhaustedError(AppError):
    def __init__(self, last_index: int | None) -> None:
        super().__init__(3002, f"Release schedule exhausted after phase {last_index}", 409)


class CapacityExhaustedError(AppError):
    def __init__(self, phase_index: int) -> None:
        super().__init__(3003, f"Phase {phase_index} capacity exhausted", 409)


class PhaseNotFoundError(AppError):
    def __init__(self, phase_index: int) -> None:
        super().__init__(3004, f"Phase not found: {phase_index}", 404)


class ScheduleAlreadyExistsError(AppError):
    def __init__(self) -> None:
        super().__init__(3005, "Release schedule already exists", 409)


# --- 4xxx: Offer ---

class OfferNotFoundError(AppError):
    def __init__(self, offer_id: str) -> None:
        super().__init__(4001, f"Offer not found: {offer_id}", 404)


class SelfDealingError(AppError):
    def __init__(self) -> None:
        super().__init__(4002, "Buyer and owner must be different parties", 422)


class ExpiredError(AppError):
    def __init__(self, offer_id: str) -> None:
        super().__init__(4003, f"Offer {offer_id} has expired", 410)


class DuplicateOfferError(AppError):
    def __init__(self, item_id: str, offer_id: str) -> None:
        super().__init__(
            4004, f"An open offer ({offer_id}) already exists for item {item_id}", 409
        )


# --- 5xxx: Auction ---

class AuctionNotFoundError(AppError):
    def __init__(self, auction_id: str) -> None:
        super().__init__(5001, f"Auction not found: {auction_id}", 404)


class AuctionNotActiveError(AppError):
    def __init__(self, auction_id: str, status: str) -> None:
        super().__init__(5002, f"Auction {auction_id} is not active (status={status})", 409)


class BidTooLowError(AppError):
    def __init__(self, min_bid_cents: int) -> None:
        super().__init__(5003, f"Bid must be at least {min_bid_cents} cents", 422)


class AuctionEndedError(AppError):
    def __init__(self, auction_id: str) -> None:
        super().__init__(5004, f"Auction {auction_id} has ended", 410)


class AuctionNotEndedError(AppError):
    def __init__(self, auction_id: str) -> None:
        super().__init__(5005, f"Auction {auction_id} is still running", 409)


# --- 6xxx: State machine ---

class InvalidTransitionError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(6001, f"Invalid transition: {detail}", 409)


class ConcurrencyConflictError(AppError):
    def __init__(self, entity: str) -> None:
        super().__init__(6002, f"Concurrent modification of {entity}, retry with fresh state", 409)


class InvalidAmountError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(6003, f"Invalid amount: {detail}", 422)


class UnauthorizedError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(6004, f"Unauthorized: {detail}", 403)


# --- 9xxx: System ---

class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)


class FeatureDisabledError(AppError):
    def __init__(self, feature: str) -> None:
        super().__init__(9003, f"Marketplace feature '{feature}' is temporarily disabled", 503)
