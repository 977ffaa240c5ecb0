# src/cx_offer/application/service.py
"""OfferApplicationService: orchestration around OfferEngine.

Every action is: load offer -> engine decides -> compare-and-swap on
(status, version, expires_at > now) -> commit -> notify. A swap that finds no
row is explained by re-reading the offer:

    status moved on          -> InvalidTransitionError
    deadline passed meanwhile -> offer persisted EXPIRED, ExpiredError
    only version moved       -> ConcurrencyConflictError

accept() is the one path that touches the catalog. Ownership transfer,
listing close, rejection of competing offers and the settlement event commit
in the same transaction as the ACCEPTED swap.
"""

import logging
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.cx_catalog.domain.repository import CatalogRepositoryProtocol
from src.cx_catalog.infrastructure.persistence import CatalogRepository
from src.cx_catalog.infrastructure.settlement import write_settlement_event
from src.cx_common.clock import Clock, SystemClock
from src.cx_common.enums import ItemStatus, ListingStatus, SettlementEventType
from src.cx_common.errors import (
    ConcurrencyConflictError,
    DuplicateOfferError,
    ExpiredError,
    InvalidTransitionError,
    ItemNotAvailableError,
    ItemNotFoundError,
    ItemNotOwnedError,
    ListingNotActiveError,
    ListingNotFoundError,
    OfferNotFoundError,
    UnauthorizedError,
)
from src.cx_common.guards import require_enabled, require_not_banned
from src.cx_common.money import cents_to_display, split_royalty
from src.cx_common.notifier import NotifierProtocol, RedisNotifier
from src.cx_offer.application.schemas import (
    AcceptOfferResponse,
    OfferResponse,
    ProposeOfferRequest,
)
from src.cx_offer.domain.engine import OfferEngine
from src.cx_offer.domain.models import Offer, OfferTarget
from src.cx_offer.domain.repository import OfferRepositoryProtocol
from src.cx_offer.infrastructure.persistence import OfferRepository

logger = logging.getLogger(__name__)

SWEEP_BATCH_SIZE = 500


class OfferApplicationService:
    def __init__(
        self,
        repo: OfferRepositoryProtocol | None = None,
        catalog_repo: CatalogRepositoryProtocol | None = None,
        clock: Clock | None = None,
        notifier: NotifierProtocol | None = None,
    ) -> None:
        self._repo: OfferRepositoryProtocol = repo or OfferRepository()
        self._catalog: CatalogRepositoryProtocol = catalog_repo or CatalogRepository()
        self._clock: Clock = clock or SystemClock()
        self._notifier: NotifierProtocol = notifier or RedisNotifier()
        self._engine = OfferEngine(
            self._clock,
            min_amount_cents=settings.OFFER_MIN_AMOUNT_CENTS,
            default_ttl=timedelta(hours=settings.OFFER_DEFAULT_TTL_HOURS),
            max_ttl=timedelta(hours=settings.OFFER_MAX_TTL_HOURS),
        )

    @property
    def engine(self) -> OfferEngine:
        return self._engine

    # ------------------------------------------------------------------
    # Buyer side
    # ------------------------------------------------------------------

    async def propose(
        self, db: AsyncSession, buyer_ref: str, req: ProposeOfferRequest
    ) -> OfferResponse:
        require_enabled("offers")
        require_not_banned(buyer_ref)
        target = await self._resolve_target(db, req.item_id, req.listing_id)
        ttl = timedelta(hours=req.ttl_hours) if req.ttl_hours is not None else None
        offer = self._engine.propose(uuid.uuid4().hex, target, buyer_ref, req.amount_cents, ttl)
        now = offer.created_at or self._clock.now()

        try:
            existing = await self._repo.find_open_by_buyer(db, target.item_id, buyer_ref)
            if existing is not None:
                if not existing.is_past_deadline(now):
                    raise DuplicateOfferError(target.item_id, existing.id)
                # A stale open offer must not block a fresh one
                await self._repo.expire(db, existing.id, now)
            await self._repo.insert(db, offer)
            await db.commit()
        except IntegrityError:
            await db.rollback()
            logger.warning("Concurrent duplicate offer on item %s by %s", target.item_id, buyer_ref)
            raise DuplicateOfferError(target.item_id, "concurrent") from None
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Offer %s proposed on item %s by %s: %s, expires %s",
            offer.id, offer.item_id, buyer_ref, cents_to_display(offer.amount_cents),
            offer.expires_at.isoformat(),
        )
        await self._publish("offer.proposed", offer)
        return OfferResponse.from_offer(offer)

    async def cancel(self, db: AsyncSession, offer_id: str, buyer_ref: str) -> OfferResponse:
        offer = await self._apply(
            db, offer_id, lambda o: self._engine.cancel(o, buyer_ref)
        )
        logger.info("Offer %s cancelled by buyer %s", offer_id, buyer_ref)
        await self._publish("offer.cancelled", offer)
        return OfferResponse.from_offer(offer)

    # ------------------------------------------------------------------
    # Seller side
    # ------------------------------------------------------------------

    async def counter(
        self, db: AsyncSession, offer_id: str, seller_ref: str, counter_amount_cents: int
    ) -> OfferResponse:
        offer = await self._apply(
            db, offer_id, lambda o: self._engine.counter(o, seller_ref, counter_amount_cents)
        )
        logger.info(
            "Offer %s countered by %s at %s",
            offer_id, seller_ref, cents_to_display(counter_amount_cents),
        )
        await self._publish("offer.countered", offer)
        return OfferResponse.from_offer(offer)

    async def reject(self, db: AsyncSession, offer_id: str, seller_ref: str) -> OfferResponse:
        offer = await self._apply(
            db, offer_id, lambda o: self._engine.reject(o, seller_ref)
        )
        logger.info("Offer %s rejected by %s", offer_id, seller_ref)
        await self._publish("offer.rejected", offer)
        return OfferResponse.from_offer(offer)

    async def accept(
        self, db: AsyncSession, offer_id: str, seller_ref: str
    ) -> AcceptOfferResponse:
        require_enabled("trading")
        current = await self._require(db, offer_id)
        accepted = await self._decide(db, current, lambda o: self._engine.accept(o, seller_ref))
        now = accepted.updated_at or self._clock.now()
        amount = accepted.settlement_amount_cents
        royalty, proceeds = split_royalty(amount, settings.CREATOR_ROYALTY_BPS)

        try:
            ok = await self._repo.transition(db, accepted, current.status, current.version, now)
            if ok:
                moved = await self._catalog.transfer_ownership(
                    db, accepted.item_id, accepted.seller_ref, accepted.buyer_ref, amount
                )
                if moved is None:
                    raise ItemNotOwnedError(accepted.item_id)
                listing = await self._catalog.close_active_listing_for_item(
                    db, accepted.item_id, ListingStatus.SOLD.value, now
                )
                rejected = await self._repo.reject_open_for_item(
                    db, accepted.item_id, accepted.id, now
                )
                await write_settlement_event(
                    db,
                    event_type=SettlementEventType.OFFER_ACCEPTED.value,
                    item_id=accepted.item_id,
                    reference_id=accepted.id,
                    buyer_ref=accepted.buyer_ref,
                    seller_ref=accepted.seller_ref,
                    amount_cents=amount,
                    royalty_cents=royalty,
                    payload={"listing_id": listing.id if listing else None},
                )
                await db.commit()
            else:
                await db.rollback()
        except Exception:
            await db.rollback()
            raise
        if not ok:
            raise await self._explain_lost_swap(db, current, now)

        logger.info(
            "Offer %s accepted by %s: item %s -> %s for %s (royalty %s, %d competing rejected)",
            offer_id, seller_ref, accepted.item_id, accepted.buyer_ref,
            cents_to_display(amount), cents_to_display(royalty), len(rejected),
        )
        await self._publish(
            "offer.accepted",
            accepted,
            settlement_amount_cents=amount,
            rejected_offer_ids=rejected,
        )
        return AcceptOfferResponse(
            offer=OfferResponse.from_offer(accepted),
            settlement_amount_cents=amount,
            royalty_cents=royalty,
            seller_proceeds_cents=proceeds,
            closed_listing_id=listing.id if listing else None,
            rejected_offer_ids=rejected,
        )

    # ------------------------------------------------------------------
    # Reads and time
    # ------------------------------------------------------------------

    async def get_offer(self, db: AsyncSession, offer_id: str, actor_ref: str) -> OfferResponse:
        offer = await self._require(db, offer_id)
        if actor_ref not in (offer.buyer_ref, offer.seller_ref):
            raise UnauthorizedError(f"caller is not a party to offer {offer_id}")
        now = self._clock.now()
        if offer.is_open and offer.is_past_deadline(now):
            await self._expire_lazily(db, offer, now)
            offer = await self._require(db, offer_id)
        return OfferResponse.from_offer(offer)

    async def expire_sweep(self, db: AsyncSession, limit: int = SWEEP_BATCH_SIZE) -> list[str]:
        """Persist EXPIRED on every open offer past its deadline."""
        now = self._clock.now()
        due = await self._repo.list_due(db, now, limit)
        expired: list[str] = []
        for offer in self._engine.expire_sweep(due):
            if await self._expire_lazily(db, offer, now):
                expired.append(offer.id)
        if expired:
            logger.info("Expiry sweep closed %d offers", len(expired))
        return expired

    # ------------------------------------------------------------------

    async def _resolve_target(
        self, db: AsyncSession, item_id: str, listing_id: str | None
    ) -> OfferTarget:
        now = self._clock.now()
        item = await self._catalog.get_item(db, item_id)
        if item is None:
            raise ItemNotFoundError(item_id)
        if item.owner_ref is None or item.status not in (ItemStatus.SOLD, ItemStatus.LISTED):
            raise ItemNotAvailableError(item_id, item.status)

        if listing_id is not None:
            listing = await self._catalog.get_listing(db, listing_id)
            if listing is None:
                raise ListingNotFoundError(listing_id)
            if listing.item_id != item_id or not listing.is_open(now):
                raise ListingNotActiveError(listing_id, listing.status)
        else:
            listing = await self._catalog.get_active_listing_for_item(db, item_id)
            if listing is not None and not listing.is_open(now):
                listing = None
        return OfferTarget(
            item_id=item_id,
            owner_ref=item.owner_ref,
            listing_id=listing.id if listing else None,
        )

    async def _require(self, db: AsyncSession, offer_id: str) -> Offer:
        offer = await self._repo.get_by_id(db, offer_id)
        if offer is None:
            raise OfferNotFoundError(offer_id)
        return offer

    async def _decide(
        self, db: AsyncSession, offer: Offer, action: Callable[[Offer], Offer]
    ) -> Offer:
        try:
            return action(offer)
        except ExpiredError:
            await self._expire_lazily(db, offer, self._clock.now())
            raise

    async def _apply(
        self, db: AsyncSession, offer_id: str, action: Callable[[Offer], Offer]
    ) -> Offer:
        current = await self._require(db, offer_id)
        updated = await self._decide(db, current, action)
        now = updated.updated_at or self._clock.now()
        try:
            ok = await self._repo.transition(db, updated, current.status, current.version, now)
            if ok:
                await db.commit()
            else:
                await db.rollback()
        except Exception:
            await db.rollback()
            raise
        if not ok:
            raise await self._explain_lost_swap(db, current, now)
        return updated

    async def _explain_lost_swap(
        self, db: AsyncSession, seen: Offer, now: datetime
    ) -> Exception:
        fresh = await self._require(db, seen.id)
        logger.warning(
            "Lost swap on offer %s: saw %s v%d, now %s v%d",
            seen.id, seen.status, seen.version, fresh.status, fresh.version,
        )
        if fresh.status != seen.status and fresh.is_terminal:
            return InvalidTransitionError(f"offer {seen.id} is already {fresh.status}")
        if fresh.is_open and fresh.is_past_deadline(now):
            await self._expire_lazily(db, fresh, now)
            return ExpiredError(seen.id)
        if fresh.status != seen.status:
            return InvalidTransitionError(f"offer {seen.id} moved to {fresh.status}")
        return ConcurrencyConflictError(f"offer {seen.id}")

    async def _expire_lazily(self, db: AsyncSession, offer: Offer, now: datetime) -> bool:
        try:
            ok = await self._repo.expire(db, offer.id, now)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        if ok:
            logger.info("Offer %s expired (deadline %s)", offer.id, offer.expires_at.isoformat())
            await self._notifier.publish(
                "offer.expired", {"offer_id": offer.id, "item_id": offer.item_id}
            )
        return ok

    async def _publish(self, event: str, offer: Offer, **extra: object) -> None:
        await self._notifier.publish(
            event,
            {
                "offer_id": offer.id,
                "item_id": offer.item_id,
                "buyer_ref": offer.buyer_ref,
                "seller_ref": offer.seller_ref,
                "status": offer.status,
                **extra,
            },
        )
