"""CatalogRepository: concrete implementation of CatalogRepositoryProtocol.

All queries use raw text() SQL (no ORM). Status moves are conditional
UPDATE ... RETURNING statements; the caller treats a missing row as
"precondition no longer holds" and re-reads to decide which error to raise.

Transaction ownership: the CALLER (application service) commits or rolls back.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.cx_catalog.domain.models import Item, Listing

# ---------------------------------------------------------------------------
# SQL: items
# ---------------------------------------------------------------------------

_ITEM_COLUMNS = """
    id, score, status, owner_ref, current_price_cents, sold_phase_index,
    reserved_by, reserved_until, version, created_at, updated_at
"""

_GET_ITEM_SQL = text(f"""
    SELECT {_ITEM_COLUMNS}
    FROM items
    WHERE id = :item_id
""")

_RESERVE_ITEM_SQL = text(f"""
    UPDATE items
    SET status = 'RESERVED',
        reserved_by = :buyer_ref,
        reserved_until = :until,
        version = version + 1,
        updated_at = NOW()
    WHERE id = :item_id
      AND (status = 'AVAILABLE'
           OR (status = 'RESERVED'
               AND (reserved_by = :buyer_ref OR reserved_until <= :now)))
    RETURNING {_ITEM_COLUMNS}
""")

_MARK_SOLD_SQL = text(f"""
    UPDATE items
    SET status = 'SOLD',
        owner_ref = :buyer_ref,
        current_price_cents = :price_cents,
        sold_phase_index = :phase_index,
        reserved_by = NULL,
        reserved_until = NULL,
        version = version + 1,
        updated_at = NOW()
    WHERE id = :item_id
      AND (status = 'AVAILABLE'
           OR (status = 'RESERVED'
               AND (reserved_by = :buyer_ref OR reserved_until <= :now)))
    RETURNING {_ITEM_COLUMNS}
""")

_RELEASE_EXPIRED_SQL = text("""
    UPDATE items
    SET status = 'AVAILABLE',
        reserved_by = NULL,
        reserved_until = NULL,
        version = version + 1,
        updated_at = NOW()
    WHERE status = 'RESERVED' AND reserved_until <= :now
    RETURNING id
""")

_TRANSFER_SQL = text(f"""
    UPDATE items
    SET status = 'SOLD',
        owner_ref = :to_ref,
        current_price_cents = :price_cents,
        version = version + 1,
        updated_at = NOW()
    WHERE id = :item_id
      AND owner_ref = :from_ref
      AND status IN ('SOLD', 'LISTED')
    RETURNING {_ITEM_COLUMNS}
""")

_SET_LISTED_SQL = text(f"""
    UPDATE items
    SET status = 'LISTED', version = version + 1, updated_at = NOW()
    WHERE id = :item_id AND owner_ref = :seller_ref AND status = 'SOLD'
    RETURNING {_ITEM_COLUMNS}
""")

_UNSET_LISTED_SQL = text(f"""
    UPDATE items
    SET status = 'SOLD', version = version + 1, updated_at = NOW()
    WHERE id = :item_id AND owner_ref = :seller_ref AND status = 'LISTED'
    RETURNING {_ITEM_COLUMNS}
""")

_SET_AUCTIONED_SQL = text(f"""
    UPDATE items
    SET status = 'AUCTIONED',
        reserved_by = NULL,
        reserved_until = NULL,
        version = version + 1,
        updated_at = NOW()
    WHERE id = :item_id
      AND (status = 'AVAILABLE' OR (status = 'RESERVED' AND reserved_until <= :now))
    RETURNING {_ITEM_COLUMNS}
""")

_RELEASE_AUCTIONED_SQL = text(f"""
    UPDATE items
    SET status = 'AVAILABLE', version = version + 1, updated_at = NOW()
    WHERE id = :item_id AND status = 'AUCTIONED'
    RETURNING {_ITEM_COLUMNS}
""")

_AWARD_AUCTION_SQL = text(f"""
    UPDATE items
    SET status = 'SOLD',
        owner_ref = :winner_ref,
        current_price_cents = :price_cents,
        version = version + 1,
        updated_at = NOW()
    WHERE id = :item_id AND status = 'AUCTIONED'
    RETURNING {_ITEM_COLUMNS}
""")

# ---------------------------------------------------------------------------
# SQL: listings
# ---------------------------------------------------------------------------

_LISTING_COLUMNS = """
    id, item_id, seller_ref, price_cents, status, expires_at,
    created_at, closed_at, version
"""

_INSERT_LISTING_SQL = text("""
    INSERT INTO listings (id, item_id, seller_ref, price_cents, status, expires_at, version)
    VALUES (:id, :item_id, :seller_ref, :price_cents, 'ACTIVE', :expires_at, 0)
""")

_GET_LISTING_SQL = text(f"""
    SELECT {_LISTING_COLUMNS}
    FROM listings
    WHERE id = :listing_id
""")

_GET_ACTIVE_LISTING_FOR_ITEM_SQL = text(f"""
    SELECT {_LISTING_COLUMNS}
    FROM listings
    WHERE item_id = :item_id AND status = 'ACTIVE'
""")

_CLOSE_LISTING_SQL = text(f"""
    UPDATE listings
    SET status = :status, closed_at = :now, version = version + 1
    WHERE id = :listing_id
      AND status = 'ACTIVE'
      AND (:status = 'CANCELLED' OR expires_at IS NULL OR expires_at > :now)
    RETURNING {_LISTING_COLUMNS}
""")

_CLOSE_ACTIVE_LISTING_FOR_ITEM_SQL = text(f"""
    UPDATE listings
    SET status = :status, closed_at = :now, version = version + 1
    WHERE item_id = :item_id AND status = 'ACTIVE'
    RETURNING {_LISTING_COLUMNS}
""")

# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _row_to_item(row: Any) -> Item:
    return Item(
        id=row.id,
        score=row.score,
        status=row.status,
        owner_ref=row.owner_ref,
        current_price_cents=row.current_price_cents,
        sold_phase_index=row.sold_phase_index,
        reserved_by=row.reserved_by,
        reserved_until=row.reserved_until,
        version=row.version,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_listing(row: Any) -> Listing:
    return Listing(
        id=row.id,
        item_id=row.item_id,
        seller_ref=row.seller_ref,
        price_cents=row.price_cents,
        status=row.status,
        expires_at=row.expires_at,
        created_at=row.created_at,
        closed_at=row.closed_at,
        version=row.version,
    )


def _one_item(result: Any) -> Item | None:
    row = result.fetchone()
    return _row_to_item(row) if row else None


def _one_listing(result: Any) -> Listing | None:
    row = result.fetchone()
    return _row_to_listing(row) if row else None


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class CatalogRepository:
    async def get_item(self, db: AsyncSession, item_id: str) -> Item | None:
        return _one_item(await db.execute(_GET_ITEM_SQL, {"item_id": item_id}))

    async def reserve_item(
        self, db: AsyncSession, item_id: str, buyer_ref: str, until: datetime, now: datetime
    ) -> Item | None:
        result = await db.execute(
            _RESERVE_ITEM_SQL,
            {"item_id": item_id, "buyer_ref": buyer_ref, "until": until, "now": now},
        )
        return _one_item(result)

    async def mark_sold(
        self,
        db: AsyncSession,
        item_id: str,
        buyer_ref: str,
        price_cents: int,
        phase_index: int,
        now: datetime,
    ) -> Item | None:
        result = await db.execute(
            _MARK_SOLD_SQL,
            {
                "item_id": item_id,
                "buyer_ref": buyer_ref,
                "price_cents": price_cents,
                "phase_index": phase_index,
                "now": now,
            },
        )
        return _one_item(result)

    async def release_expired_reservations(self, db: AsyncSession, now: datetime) -> list[str]:
        result = await db.execute(_RELEASE_EXPIRED_SQL, {"now": now})
        return [row.id for row in result.fetchall()]

    async def transfer_ownership(
        self, db: AsyncSession, item_id: str, from_ref: str, to_ref: str, price_cents: int
    ) -> Item | None:
        result = await db.execute(
            _TRANSFER_SQL,
            {
                "item_id": item_id,
                "from_ref": from_ref,
                "to_ref": to_ref,
                "price_cents": price_cents,
            },
        )
        return _one_item(result)

    async def set_listed(self, db: AsyncSession, item_id: str, seller_ref: str) -> Item | None:
        result = await db.execute(
            _SET_LISTED_SQL, {"item_id": item_id, "seller_ref": seller_ref}
        )
        return _one_item(result)

    async def unset_listed(self, db: AsyncSession, item_id: str, seller_ref: str) -> Item | None:
        result = await db.execute(
            _UNSET_LISTED_SQL, {"item_id": item_id, "seller_ref": seller_ref}
        )
        return _one_item(result)

    async def set_auctioned(self, db: AsyncSession, item_id: str, now: datetime) -> Item | None:
        return _one_item(
            await db.execute(_SET_AUCTIONED_SQL, {"item_id": item_id, "now": now})
        )

    async def release_auctioned(self, db: AsyncSession, item_id: str) -> Item | None:
        return _one_item(await db.execute(_RELEASE_AUCTIONED_SQL, {"item_id": item_id}))

    async def award_auction(
        self, db: AsyncSession, item_id: str, winner_ref: str, price_cents: int
    ) -> Item | None:
        result = await db.execute(
            _AWARD_AUCTION_SQL,
            {"item_id": item_id, "winner_ref": winner_ref, "price_cents": price_cents},
        )
        return _one_item(result)

    async def insert_listing(self, db: AsyncSession, listing: Listing) -> None:
        await db.execute(
            _INSERT_LISTING_SQL,
            {
                "id": listing.id,
                "item_id": listing.item_id,
                "seller_ref": listing.seller_ref,
                "price_cents": listing.price_cents,
                "expires_at": listing.expires_at,
            },
        )

    async def get_listing(self, db: AsyncSession, listing_id: str) -> Listing | None:
        return _one_listing(await db.execute(_GET_LISTING_SQL, {"listing_id": listing_id}))

    async def get_active_listing_for_item(
        self, db: AsyncSession, item_id: str
    ) -> Listing | None:
        return _one_listing(
            await db.execute(_GET_ACTIVE_LISTING_FOR_ITEM_SQL, {"item_id": item_id})
        )

    async def close_listing(
        self, db: AsyncSession, listing_id: str, status: str, now: datetime
    ) -> Listing | None:
        result = await db.execute(
            _CLOSE_LISTING_SQL, {"listing_id": listing_id, "status": status, "now": now}
        )
        return _one_listing(result)

    async def close_active_listing_for_item(
        self, db: AsyncSession, item_id: str, status: str, now: datetime
    ) -> Listing | None:
        result = await db.execute(
            _CLOSE_ACTIVE_LISTING_FOR_ITEM_SQL, {"item_id": item_id, "status": status, "now": now}
        )
        return _one_listing(result)
