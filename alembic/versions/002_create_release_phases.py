"""002: create release_phases table

Revision ID: 002
Revises: 001
Create Date: 2026-10-01
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE release_phases (
            phase_index                     INT             PRIMARY KEY,
            base_rate_cents                 NUMERIC(12, 4)  NOT NULL,
            capacity                        INT             NOT NULL,
            sold                            INT             NOT NULL DEFAULT 0,
            duration_seconds                INT             NOT NULL,
            start_time                      TIMESTAMPTZ,
            is_active                       BOOLEAN         NOT NULL DEFAULT FALSE,
            is_paused                       BOOLEAN         NOT NULL DEFAULT FALSE,
            paused_at                       TIMESTAMPTZ,
            paused_seconds                  NUMERIC(14, 6)  NOT NULL DEFAULT 0,
            increase_percent_at_creation    NUMERIC(6, 3)   NOT NULL,
            version                         INT             NOT NULL DEFAULT 0,
            created_at                      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at                      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_release_phases_index      CHECK (phase_index >= 1),
            CONSTRAINT ck_release_phases_rate       CHECK (base_rate_cents > 0),
            CONSTRAINT ck_release_phases_capacity   CHECK (capacity >= 0),
            CONSTRAINT ck_release_phases_sold       CHECK (sold >= 0 AND sold <= capacity),
            CONSTRAINT ck_release_phases_duration   CHECK (duration_seconds > 0),
            CONSTRAINT ck_release_phases_paused_sec CHECK (paused_seconds >= 0),
            CONSTRAINT ck_release_phases_pause_only_active CHECK (NOT is_paused OR is_active),
            CONSTRAINT ck_release_phases_paused_at  CHECK (is_paused = (paused_at IS NOT NULL))
        );
    """)
    # At most one active phase, enforced by the database
    op.execute("""
        CREATE UNIQUE INDEX uq_release_phases_single_active
        ON release_phases ((TRUE))
        WHERE is_active;
    """)
    op.execute("""
        CREATE TRIGGER trg_release_phases_updated_at
            BEFORE UPDATE ON release_phases
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS release_phases;")
