# src/cx_catalog/application/service.py
"""CatalogApplicationService: primary sale, checkout holds and fixed-price resale.

Primary sale is a single transaction:
  1. conditional sold += 1 on the active phase (sold < capacity)
  2. conditional item move AVAILABLE/RESERVED -> SOLD with owner + price snapshot
  3. PRIMARY_SALE settlement event
Any miss rolls the whole thing back, so a phase can never be oversold and
sold never counts an item that did not change hands.

The price is computed from the phase row returned by step 1 and the release
settings read inside the same transaction, never from the caller's quote.
"""

import logging
import uuid
from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.cx_catalog.application.schemas import (
    CreateListingRequest,
    ItemResponse,
    ListingResponse,
    ListingSaleResponse,
    PurchaseResponse,
)
from src.cx_catalog.domain.models import Item, Listing
from src.cx_catalog.domain.repository import CatalogRepositoryProtocol
from src.cx_catalog.infrastructure.persistence import CatalogRepository
from src.cx_catalog.infrastructure.settlement import write_settlement_event
from src.cx_common.clock import Clock, SystemClock
from src.cx_common.enums import ItemStatus, ListingStatus, SettlementEventType
from src.cx_common.errors import (
    CapacityExhaustedError,
    ConcurrencyConflictError,
    DuplicateListingError,
    InvalidAmountError,
    InternalError,
    ItemNotAvailableError,
    ItemNotFoundError,
    ItemNotOwnedError,
    ListingNotActiveError,
    ListingNotFoundError,
    NoActivePhaseError,
    SelfDealingError,
    UnauthorizedError,
)
from src.cx_common.guards import require_enabled, require_not_banned
from src.cx_common.money import cents_to_display, split_royalty
from src.cx_common.notifier import NotifierProtocol, RedisNotifier
from src.cx_offer.domain.repository import OfferRepositoryProtocol
from src.cx_offer.infrastructure.persistence import OfferRepository
from src.cx_release.application.schemas import PriceQuoteResponse
from src.cx_release.domain.engine import PhaseEngine
from src.cx_release.domain.pricing import phase_multiplier, price_cents
from src.cx_release.domain.repository import PhaseRepositoryProtocol
from src.cx_release.infrastructure.persistence import PhaseRepository

logger = logging.getLogger(__name__)


class CatalogApplicationService:
    def __init__(
        self,
        repo: CatalogRepositoryProtocol | None = None,
        phase_repo: PhaseRepositoryProtocol | None = None,
        offer_repo: OfferRepositoryProtocol | None = None,
        clock: Clock | None = None,
        notifier: NotifierProtocol | None = None,
    ) -> None:
        self._repo: CatalogRepositoryProtocol = repo or CatalogRepository()
        self._phase_repo: PhaseRepositoryProtocol = phase_repo or PhaseRepository()
        self._offer_repo: OfferRepositoryProtocol = offer_repo or OfferRepository()
        self._clock: Clock = clock or SystemClock()
        self._notifier: NotifierProtocol = notifier or RedisNotifier()

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    async def get_item(self, db: AsyncSession, item_id: str) -> ItemResponse:
        item = await self._require_item(db, item_id)
        quote = None
        if item.in_primary_sale:
            engine = PhaseEngine(
                await self._phase_repo.list_phases(db),
                await self._phase_repo.get_settings(db),
                self._clock,
            )
            if engine.active_phase is not None:
                quote = PriceQuoteResponse.from_quote(engine.quote(item.score))
        return ItemResponse.from_item(item, quote)

    async def reserve(self, db: AsyncSession, item_id: str, buyer_ref: str) -> ItemResponse:
        now = self._clock.now()
        item = await self._require_item(db, item_id)
        if not item.can_be_reserved_by(buyer_ref, now):
            raise ItemNotAvailableError(item_id, item.status)
        until = now + timedelta(seconds=settings.RESERVATION_TTL_SECONDS)
        try:
            reserved = await self._repo.reserve_item(db, item_id, buyer_ref, until, now)
            if reserved is None:
                raise await self._unavailable(db, item_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Item %s reserved by %s until %s", item_id, buyer_ref, until.isoformat())
        return ItemResponse.from_item(reserved)

    async def purchase(self, db: AsyncSession, item_id: str, buyer_ref: str) -> PurchaseResponse:
        now = self._clock.now()
        item = await self._require_item(db, item_id)
        if not item.can_be_purchased_by(buyer_ref, now):
            raise ItemNotAvailableError(item_id, item.status)

        try:
            active = await self._phase_repo.get_active_phase(db)
            if active is None:
                raise NoActivePhaseError()
            phase = await self._phase_repo.increment_sold(db, active.index)
            if phase is None:
                raise await self._sale_miss(db, active.index)

            release_settings = await self._phase_repo.get_settings(db)
            multiplier = phase_multiplier(phase.index, release_settings.increase_percent)
            amount = price_cents(phase.base_rate_cents, item.score, multiplier)

            sold = await self._repo.mark_sold(db, item_id, buyer_ref, amount, phase.index, now)
            if sold is None:
                raise await self._unavailable(db, item_id)

            await write_settlement_event(
                db,
                event_type=SettlementEventType.PRIMARY_SALE.value,
                item_id=item_id,
                reference_id=item_id,
                buyer_ref=buyer_ref,
                seller_ref=None,
                amount_cents=amount,
                payload={"phase_index": phase.index, "score": item.score},
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Item %s sold to %s for %s in phase %d (%d/%d)",
            item_id, buyer_ref, cents_to_display(amount), phase.index, phase.sold, phase.capacity,
        )
        await self._notifier.publish(
            "item.sold",
            {
                "item_id": item_id,
                "owner_ref": buyer_ref,
                "price_cents": amount,
                "phase_index": phase.index,
            },
        )
        return PurchaseResponse(
            item_id=item_id,
            owner_ref=buyer_ref,
            phase_index=phase.index,
            price_cents=amount,
            price_display=cents_to_display(amount),
            phase_sold=phase.sold,
            phase_capacity=phase.capacity,
        )

    async def release_expired_reservations(self, db: AsyncSession) -> list[str]:
        now = self._clock.now()
        try:
            released = await self._repo.release_expired_reservations(db, now)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        if released:
            logger.info("Released %d lapsed reservations", len(released))
        return released

    # ------------------------------------------------------------------
    # Listings
    # ------------------------------------------------------------------

    async def get_listing(self, db: AsyncSession, listing_id: str) -> ListingResponse:
        return ListingResponse.from_listing(await self._require_listing(db, listing_id))

    async def create_listing(
        self, db: AsyncSession, seller_ref: str, req: CreateListingRequest
    ) -> ListingResponse:
        require_enabled("listings")
        require_not_banned(seller_ref)
        now = self._clock.now()
        if req.price_cents <= 0:
            raise InvalidAmountError(f"listing price must be positive, got {req.price_cents}")
        if req.expires_at is not None and req.expires_at <= now:
            raise InvalidAmountError("listing expiry must be in the future")

        item = await self._require_item(db, req.item_id)
        if item.owner_ref != seller_ref:
            raise ItemNotOwnedError(req.item_id)
        if item.status == ItemStatus.LISTED:
            raise DuplicateListingError(req.item_id)
        if item.status != ItemStatus.SOLD:
            raise ItemNotAvailableError(req.item_id, item.status)

        listing = Listing(
            id=uuid.uuid4().hex,
            item_id=req.item_id,
            seller_ref=seller_ref,
            price_cents=req.price_cents,
            expires_at=req.expires_at,
            created_at=now,
        )
        try:
            listed = await self._repo.set_listed(db, req.item_id, seller_ref)
            if listed is None:
                fresh = await self._repo.get_item(db, req.item_id)
                if fresh is not None and fresh.status == ItemStatus.LISTED:
                    raise DuplicateListingError(req.item_id)
                raise ItemNotOwnedError(req.item_id)
            await self._repo.insert_listing(db, listing)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Listing %s created for item %s by %s at %s",
            listing.id, req.item_id, seller_ref, cents_to_display(req.price_cents),
        )
        await self._notifier.publish(
            "listing.created",
            {"listing_id": listing.id, "item_id": req.item_id, "price_cents": req.price_cents},
        )
        return ListingResponse.from_listing(listing)

    async def cancel_listing(
        self, db: AsyncSession, listing_id: str, seller_ref: str
    ) -> ListingResponse:
        now = self._clock.now()
        listing = await self._require_listing(db, listing_id)
        if listing.seller_ref != seller_ref:
            raise UnauthorizedError(f"only the seller may cancel listing {listing_id}")
        if listing.status != ListingStatus.ACTIVE:
            raise ListingNotActiveError(listing_id, listing.status)
        try:
            closed = await self._repo.close_listing(
                db, listing_id, ListingStatus.CANCELLED.value, now
            )
            if closed is None:
                raise await self._listing_gone(db, listing_id)
            if await self._repo.unset_listed(db, listing.item_id, seller_ref) is None:
                raise InternalError(
                    f"item {listing.item_id} was not LISTED under active listing {listing_id}"
                )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info("Listing %s cancelled by %s", listing_id, seller_ref)
        await self._notifier.publish(
            "listing.cancelled", {"listing_id": listing_id, "item_id": listing.item_id}
        )
        return ListingResponse.from_listing(closed)

    async def buy_listing(
        self, db: AsyncSession, listing_id: str, buyer_ref: str
    ) -> ListingSaleResponse:
        require_enabled("trading")
        require_not_banned(buyer_ref)
        now = self._clock.now()
        listing = await self._require_listing(db, listing_id)
        if listing.seller_ref == buyer_ref:
            raise SelfDealingError()
        if not listing.is_open(now):
            status = listing.status if listing.status != ListingStatus.ACTIVE else "EXPIRED"
            raise ListingNotActiveError(listing_id, status)

        royalty, proceeds = split_royalty(listing.price_cents, settings.CREATOR_ROYALTY_BPS)
        try:
            closed = await self._repo.close_listing(db, listing_id, ListingStatus.SOLD.value, now)
            if closed is None:
                raise await self._listing_gone(db, listing_id)
            moved = await self._repo.transfer_ownership(
                db, listing.item_id, listing.seller_ref, buyer_ref, listing.price_cents
            )
            if moved is None:
                raise ItemNotOwnedError(listing.item_id)
            rejected = await self._offer_repo.reject_open_for_item(
                db, listing.item_id, None, now
            )
            await write_settlement_event(
                db,
                event_type=SettlementEventType.LISTING_SALE.value,
                item_id=listing.item_id,
                reference_id=listing_id,
                buyer_ref=buyer_ref,
                seller_ref=listing.seller_ref,
                amount_cents=listing.price_cents,
                royalty_cents=royalty,
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Listing %s sold to %s for %s (royalty %s, %d offers rejected)",
            listing_id, buyer_ref, cents_to_display(listing.price_cents),
            cents_to_display(royalty), len(rejected),
        )
        await self._notifier.publish(
            "listing.sold",
            {
                "listing_id": listing_id,
                "item_id": listing.item_id,
                "buyer_ref": buyer_ref,
                "price_cents": listing.price_cents,
                "rejected_offer_ids": rejected,
            },
        )
        return ListingSaleResponse(
            listing=ListingResponse.from_listing(closed),
            buyer_ref=buyer_ref,
            royalty_cents=royalty,
            seller_proceeds_cents=proceeds,
            rejected_offer_ids=rejected,
        )

    # ------------------------------------------------------------------

    async def _require_item(self, db: AsyncSession, item_id: str) -> Item:
        item = await self._repo.get_item(db, item_id)
        if item is None:
            raise ItemNotFoundError(item_id)
        return item

    async def _require_listing(self, db: AsyncSession, listing_id: str) -> Listing:
        listing = await self._repo.get_listing(db, listing_id)
        if listing is None:
            raise ListingNotFoundError(listing_id)
        return listing

    async def _unavailable(self, db: AsyncSession, item_id: str) -> Exception:
        fresh = await self._repo.get_item(db, item_id)
        logger.warning("Lost race on item %s (now %s)", item_id, fresh.status if fresh else None)
        return ItemNotAvailableError(item_id, fresh.status if fresh else "MISSING")

    async def _sale_miss(self, db: AsyncSession, phase_index: int) -> Exception:
        current = await self._phase_repo.get_active_phase(db)
        if current is None:
            return NoActivePhaseError()
        if current.index == phase_index and current.sold >= current.capacity:
            return CapacityExhaustedError(phase_index)
        logger.warning("Phase moved from %d to %d during sale", phase_index, current.index)
        return ConcurrencyConflictError("release phase")

    async def _listing_gone(self, db: AsyncSession, listing_id: str) -> Exception:
        fresh = await self._repo.get_listing(db, listing_id)
        logger.warning(
            "Lost race on listing %s (now %s)", listing_id, fresh.status if fresh else None
        )
        return ListingNotActiveError(listing_id, fresh.status if fresh else "MISSING")
