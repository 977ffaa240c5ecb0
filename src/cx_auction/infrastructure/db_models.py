# src/cx_auction/infrastructure/db_models.py
"""SQLAlchemy ORM models for auctions / auction_bids.

DDL reference only: persistence.py uses raw text() SQL.
Alembic migration 008_create_auctions.py is the authoritative DDL source.
"""

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from src.cx_common.database import Base


class AuctionORM(Base):
    __tablename__ = "auctions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    item_id: Mapped[str] = mapped_column(String(64), nullable=False)
    created_by: Mapped[str] = mapped_column(String(128), nullable=False)
    starting_bid_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    current_bid_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    highest_bidder_ref: Mapped[str | None] = mapped_column(String(128))
    bid_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="ACTIVE")
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    finalized_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class AuctionBidORM(Base):
    __tablename__ = "auction_bids"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    auction_id: Mapped[str] = mapped_column(ForeignKey("auctions.id"), nullable=False)
    bidder_ref: Mapped[str] = mapped_column(String(128), nullable=False)
    amount_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
