"""OfferRepository: concrete implementation of OfferRepositoryProtocol.

All queries use raw text() SQL (no ORM).

Transaction ownership: the CALLER (application service) commits or rolls back.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.cx_offer.domain.models import Offer

# ---------------------------------------------------------------------------
# SQL
# ---------------------------------------------------------------------------

_OFFER_COLUMNS = """
    id, item_id, listing_id, buyer_ref, seller_ref, amount_cents,
    counter_amount_cents, status, expires_at, created_at, updated_at,
    resolved_at, version
"""

_INSERT_SQL = text("""
    INSERT INTO offers (
        id, item_id, listing_id, buyer_ref, seller_ref, amount_cents,
        counter_amount_cents, status, expires_at, created_at, updated_at, version)
    VALUES (
        :id, :item_id, :listing_id, :buyer_ref, :seller_ref, :amount_cents,
        NULL, :status, :expires_at, :created_at, :created_at, 0)
""")

_GET_BY_ID_SQL = text(f"""
    SELECT {_OFFER_COLUMNS}
    FROM offers
    WHERE id = :offer_id
""")

_FIND_OPEN_BY_BUYER_SQL = text(f"""
    SELECT {_OFFER_COLUMNS}
    FROM offers
    WHERE item_id = :item_id
      AND buyer_ref = :buyer_ref
      AND status IN ('PENDING', 'COUNTERED')
    LIMIT 1
""")

_TRANSITION_SQL = text("""
    UPDATE offers
    SET status = :status,
        counter_amount_cents = :counter_amount_cents,
        resolved_at = :resolved_at,
        updated_at = :now,
        version = :version
    WHERE id = :offer_id
      AND status = :expected_status
      AND version = :expected_version
      AND expires_at > :now
    RETURNING id
""")

_EXPIRE_SQL = text("""
    UPDATE offers
    SET status = 'EXPIRED',
        resolved_at = :now,
        updated_at = :now,
        version = version + 1
    WHERE id = :offer_id
      AND status IN ('PENDING', 'COUNTERED')
      AND expires_at <= :now
    RETURNING id
""")

_LIST_DUE_SQL = text(f"""
    SELECT {_OFFER_COLUMNS}
    FROM offers
    WHERE status IN ('PENDING', 'COUNTERED')
      AND expires_at <= :now
    ORDER BY expires_at
    LIMIT :limit
""")

_REJECT_OPEN_FOR_ITEM_SQL = text("""
    UPDATE offers
    SET status = 'REJECTED',
        resolved_at = :now,
        updated_at = :now,
        version = version + 1
    WHERE item_id = :item_id
      AND status IN ('PENDING', 'COUNTERED')
      AND expires_at > :now
      AND (CAST(:exclude_id AS VARCHAR) IS NULL OR id <> :exclude_id)
    RETURNING id
""")

# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------


def _row_to_offer(row: Any) -> Offer:
    return Offer(
        id=row.id,
        item_id=row.item_id,
        listing_id=row.listing_id,
        buyer_ref=row.buyer_ref,
        seller_ref=row.seller_ref,
        amount_cents=row.amount_cents,
        counter_amount_cents=row.counter_amount_cents,
        status=row.status,
        expires_at=row.expires_at,
        created_at=row.created_at,
        updated_at=row.updated_at,
        resolved_at=row.resolved_at,
        version=row.version,
    )


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class OfferRepository:
    async def insert(self, db: AsyncSession, offer: Offer) -> None:
        await db.execute(
            _INSERT_SQL,
            {
                "id": offer.id,
                "item_id": offer.item_id,
                "listing_id": offer.listing_id,
                "buyer_ref": offer.buyer_ref,
                "seller_ref": offer.seller_ref,
                "amount_cents": offer.amount_cents,
                "status": offer.status,
                "expires_at": offer.expires_at,
                "created_at": offer.created_at,
            },
        )

    async def get_by_id(self, db: AsyncSession, offer_id: str) -> Offer | None:
        row = (await db.execute(_GET_BY_ID_SQL, {"offer_id": offer_id})).fetchone()
        return _row_to_offer(row) if row else None

    async def find_open_by_buyer(
        self, db: AsyncSession, item_id: str, buyer_ref: str
    ) -> Offer | None:
        result = await db.execute(
            _FIND_OPEN_BY_BUYER_SQL, {"item_id": item_id, "buyer_ref": buyer_ref}
        )
        row = result.fetchone()
        return _row_to_offer(row) if row else None

    async def transition(
        self,
        db: AsyncSession,
        offer: Offer,
        expected_status: str,
        expected_version: int,
        now: datetime,
    ) -> bool:
        result = await db.execute(
            _TRANSITION_SQL,
            {
                "offer_id": offer.id,
                "status": offer.status,
                "counter_amount_cents": offer.counter_amount_cents,
                "resolved_at": offer.resolved_at,
                "version": offer.version,
                "expected_status": expected_status,
                "expected_version": expected_version,
                "now": now,
            },
        )
        return result.fetchone() is not None

    async def expire(self, db: AsyncSession, offer_id: str, now: datetime) -> bool:
        result = await db.execute(_EXPIRE_SQL, {"offer_id": offer_id, "now": now})
        return result.fetchone() is not None

    async def list_due(self, db: AsyncSession, now: datetime, limit: int) -> list[Offer]:
        result = await db.execute(_LIST_DUE_SQL, {"now": now, "limit": limit})
        return [_row_to_offer(row) for row in result.fetchall()]

    async def reject_open_for_item(
        self, db: AsyncSession, item_id: str, exclude_id: str | None, now: datetime
    ) -> list[str]:
        result = await db.execute(
            _REJECT_OPEN_FOR_ITEM_SQL,
            {"item_id": item_id, "exclude_id": exclude_id, "now": now},
        )
        return [row.id for row in result.fetchall()]
