"""Maintenance sweeps: offer expiry, lapsed checkout holds, due auctions.

Every sweep is idempotent: each row moves through its own conditional
update, so running them concurrently with user actions or with another
sweeper process is safe.
"""
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.cx_admin.application.schemas import SweepResponse
from src.cx_auction.application.service import AuctionApplicationService
from src.cx_catalog.application.service import CatalogApplicationService
from src.cx_offer.application.service import OfferApplicationService

logger = logging.getLogger(__name__)


class AdminService:
    def __init__(
        self,
        offers: OfferApplicationService | None = None,
        catalog: CatalogApplicationService | None = None,
        auctions: AuctionApplicationService | None = None,
    ) -> None:
        self._offers = offers or OfferApplicationService()
        self._catalog = catalog or CatalogApplicationService()
        self._auctions = auctions or AuctionApplicationService()

    async def sweep(self, db: AsyncSession) -> SweepResponse:
        expired = await self._offers.expire_sweep(db)
        released = await self._catalog.release_expired_reservations(db)
        finalized = await self._auctions.finalize_due(db)
        if expired or released or finalized:
            logger.info(
                "Sweep: %d offers expired, %d reservations released, %d auctions closed",
                len(expired), len(released), len(finalized),
            )
        return SweepResponse(
            expired_offer_ids=expired,
            released_item_ids=released,
            finalized_auction_ids=finalized,
        )
