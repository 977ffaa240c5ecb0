# src/cx_offer/domain/repository.py
"""Repository Protocol: dependency inversion for testability.

transition() and expire() are the compare-and-swap points of the offer
lifecycle. Their deadline predicates are complementary: a resolution only
lands while expires_at > now, an expiry only once expires_at <= now, so an
accept and a sweep can never both commit.
"""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.cx_offer.domain.models import Offer


class OfferRepositoryProtocol(Protocol):
    async def insert(self, db: AsyncSession, offer: Offer) -> None: ...

    async def get_by_id(self, db: AsyncSession, offer_id: str) -> Offer | None: ...

    async def find_open_by_buyer(
        self, db: AsyncSession, item_id: str, buyer_ref: str
    ) -> Offer | None: ...

    async def transition(
        self,
        db: AsyncSession,
        offer: Offer,
        expected_status: str,
        expected_version: int,
        now: datetime,
    ) -> bool: ...

    async def expire(self, db: AsyncSession, offer_id: str, now: datetime) -> bool: ...

    async def list_due(self, db: AsyncSession, now: datetime, limit: int) -> list[Offer]: ...

    async def reject_open_for_item(
        self, db: AsyncSession, item_id: str, exclude_id: str | None, now: datetime
    ) -> list[str]: ...
