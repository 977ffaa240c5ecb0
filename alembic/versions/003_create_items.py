"""003: create items table

Revision ID: 003
Revises: 002
Create Date: 2026-10-01
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE items (
            id                  VARCHAR(64)     PRIMARY KEY,
            score               SMALLINT        NOT NULL,
            status              VARCHAR(16)     NOT NULL DEFAULT 'AVAILABLE',
            owner_ref           VARCHAR(128),
            current_price_cents BIGINT,
            sold_phase_index    INT             REFERENCES release_phases (phase_index),
            reserved_by         VARCHAR(128),
            reserved_until      TIMESTAMPTZ,
            version             INT             NOT NULL DEFAULT 0,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_items_score   CHECK (score BETWEEN 0 AND 500),
            CONSTRAINT ck_items_status  CHECK (
                status IN ('AVAILABLE', 'RESERVED', 'SOLD', 'LISTED', 'AUCTIONED')
            ),
            CONSTRAINT ck_items_price   CHECK (current_price_cents IS NULL OR current_price_cents >= 0),
            CONSTRAINT ck_items_owned   CHECK (
                status IN ('AVAILABLE', 'RESERVED') OR owner_ref IS NOT NULL
            ),
            CONSTRAINT ck_items_hold    CHECK (
                (status = 'RESERVED') = (reserved_by IS NOT NULL AND reserved_until IS NOT NULL)
            )
        );
    """)
    op.execute("CREATE INDEX idx_items_owner ON items (owner_ref) WHERE owner_ref IS NOT NULL;")
    op.execute("""
        CREATE INDEX idx_items_reserved_until
        ON items (reserved_until)
        WHERE status = 'RESERVED';
    """)
    # Score is immutable once seeded
    op.execute("""
        CREATE OR REPLACE FUNCTION fn_items_score_immutable()
        RETURNS TRIGGER AS $$
        BEGIN
            IF NEW.score <> OLD.score THEN
                RAISE EXCEPTION 'items.score is immutable';
            END IF;
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
    """)
    op.execute("""
        CREATE TRIGGER trg_items_score_immutable
            BEFORE UPDATE ON items
            FOR EACH ROW EXECUTE FUNCTION fn_items_score_immutable();
    """)
    op.execute("""
        CREATE TRIGGER trg_items_updated_at
            BEFORE UPDATE ON items
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS items;")
    op.execute("DROP FUNCTION IF EXISTS fn_items_score_immutable();")
