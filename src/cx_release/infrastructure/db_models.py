# src/cx_release/infrastructure/db_models.py
"""SQLAlchemy ORM models for release_phases / release_settings.

DDL reference only: persistence.py uses raw text() SQL.
Alembic migrations (002_create_release_tables.py) are the authoritative DDL source.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, Integer, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column

from src.cx_common.database import Base


class ReleasePhaseORM(Base):
    __tablename__ = "release_phases"

    phase_index: Mapped[int] = mapped_column(Integer, primary_key=True)
    base_rate_cents: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    sold: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    duration_seconds: Mapped[int] = mapped_column(Integer, nullable=False)
    start_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_paused: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    paused_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    paused_seconds: Mapped[Decimal] = mapped_column(Numeric(14, 6), nullable=False, default=0)
    increase_percent_at_creation: Mapped[Decimal] = mapped_column(Numeric(6, 3), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class ReleaseSettingsORM(Base):
    __tablename__ = "release_settings"

    id: Mapped[str] = mapped_column(String(16), primary_key=True, default="main")
    increase_percent: Mapped[Decimal] = mapped_column(Numeric(6, 3), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
