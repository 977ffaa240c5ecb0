"""OfferEngine: negotiation state machine for offers.

    PENDING --counter--> COUNTERED
    PENDING | COUNTERED --accept--> ACCEPTED
    PENDING | COUNTERED --reject--> REJECTED
    PENDING | COUNTERED --cancel--> CANCELLED   (buyer)
    PENDING | COUNTERED --expire--> EXPIRED     (time)

ACCEPTED, REJECTED, EXPIRED and CANCELLED are terminal and immutable.

Every action checks, in order: terminal status, caller, deadline, source
status. The engine is pure; it returns the next Offer with version bumped and
leaves the compare-and-swap on (status, version, deadline) to the repository.
"""

from dataclasses import replace
from datetime import datetime, timedelta

from src.cx_common.clock import Clock
from src.cx_common.enums import OfferStatus
from src.cx_common.errors import (
    ExpiredError,
    InvalidAmountError,
    InvalidTransitionError,
    SelfDealingError,
    UnauthorizedError,
)
from src.cx_offer.domain.models import Offer, OfferTarget

_RESOLVABLE = (OfferStatus.PENDING.value, OfferStatus.COUNTERED.value)


class OfferEngine:
    def __init__(
        self,
        clock: Clock,
        min_amount_cents: int = 1,
        default_ttl: timedelta = timedelta(days=7),
        max_ttl: timedelta = timedelta(days=30),
    ) -> None:
        self._clock = clock
        self._min_amount_cents = max(1, min_amount_cents)
        self._default_ttl = default_ttl
        self._max_ttl = max_ttl

    def now(self) -> datetime:
        return self._clock.now()

    # ------------------------------------------------------------------
    # Buyer side
    # ------------------------------------------------------------------

    def propose(
        self,
        offer_id: str,
        target: OfferTarget,
        buyer_ref: str,
        amount_cents: int,
        ttl: timedelta | None = None,
    ) -> Offer:
        if buyer_ref == target.owner_ref:
            raise SelfDealingError()
        self._check_amount(amount_cents, "offer")
        ttl = self._default_ttl if ttl is None else ttl
        if ttl <= timedelta(0) or ttl > self._max_ttl:
            raise InvalidAmountError(
                f"offer lifetime must be within (0, {self._max_ttl}], got {ttl}"
            )
        now = self.now()
        return Offer(
            id=offer_id,
            item_id=target.item_id,
            listing_id=target.listing_id,
            buyer_ref=buyer_ref,
            seller_ref=target.owner_ref,
            amount_cents=amount_cents,
            expires_at=now + ttl,
            status=OfferStatus.PENDING.value,
            created_at=now,
            updated_at=now,
            version=0,
        )

    def cancel(self, offer: Offer, buyer_ref: str) -> Offer:
        self._check_actionable(offer, buyer_ref, offer.buyer_ref, "cancel")
        return self._move(offer, OfferStatus.CANCELLED, _RESOLVABLE)

    # ------------------------------------------------------------------
    # Seller side
    # ------------------------------------------------------------------

    def counter(self, offer: Offer, seller_ref: str, counter_amount_cents: int) -> Offer:
        self._check_actionable(offer, seller_ref, offer.seller_ref, "counter")
        if offer.status != OfferStatus.PENDING:
            raise InvalidTransitionError(f"cannot counter offer {offer.id} in {offer.status}")
        self._check_amount(counter_amount_cents, "counter")
        return self._move(
            offer,
            OfferStatus.COUNTERED,
            (OfferStatus.PENDING.value,),
            counter_amount_cents=counter_amount_cents,
        )

    def accept(self, offer: Offer, seller_ref: str) -> Offer:
        self._check_actionable(offer, seller_ref, offer.seller_ref, "accept")
        return self._move(offer, OfferStatus.ACCEPTED, _RESOLVABLE)

    def reject(self, offer: Offer, seller_ref: str) -> Offer:
        self._check_actionable(offer, seller_ref, offer.seller_ref, "reject")
        return self._move(offer, OfferStatus.REJECTED, _RESOLVABLE)

    # ------------------------------------------------------------------
    # Time
    # ------------------------------------------------------------------

    def expire(self, offer: Offer) -> Offer:
        if offer.is_terminal:
            raise InvalidTransitionError(f"offer {offer.id} is already {offer.status}")
        if not offer.is_past_deadline(self.now()):
            raise InvalidTransitionError(f"offer {offer.id} is not past its deadline")
        return self._move(offer, OfferStatus.EXPIRED, _RESOLVABLE)

    def expire_sweep(self, offers: list[Offer]) -> list[Offer]:
        """Expired copies of every open offer whose deadline has passed."""
        now = self.now()
        return [
            self._move(o, OfferStatus.EXPIRED, _RESOLVABLE)
            for o in offers
            if o.is_open and o.is_past_deadline(now)
        ]

    # ------------------------------------------------------------------

    def _check_amount(self, amount_cents: int, what: str) -> None:
        if amount_cents <= 0:
            raise InvalidAmountError(f"{what} amount must be positive, got {amount_cents}")
        if amount_cents < self._min_amount_cents:
            raise InvalidAmountError(
                f"{what} amount {amount_cents} is below the minimum of {self._min_amount_cents}"
            )

    def _check_actionable(self, offer: Offer, caller_ref: str, party_ref: str, action: str) -> None:
        if offer.is_terminal:
            raise InvalidTransitionError(
                f"cannot {action} offer {offer.id}: already {offer.status}"
            )
        if caller_ref != party_ref:
            raise UnauthorizedError(f"caller may not {action} offer {offer.id}")
        if offer.is_past_deadline(self.now()):
            raise ExpiredError(offer.id)

    def _move(
        self,
        offer: Offer,
        to: OfferStatus,
        allowed_from: tuple[str, ...],
        **changes: object,
    ) -> Offer:
        if offer.status not in allowed_from:
            raise InvalidTransitionError(f"offer {offer.id}: {offer.status} -> {to.value}")
        now = self.now()
        terminal = to not in (OfferStatus.PENDING, OfferStatus.COUNTERED)
        return replace(
            offer,
            status=to.value,
            updated_at=now,
            resolved_at=now if terminal else None,
            version=offer.version + 1,
            **changes,
        )
