"""005: create offers table

Revision ID: 005
Revises: 004
Create Date: 2026-10-01
"""
from typing import Sequence, Union
from alembic import op

revision: str = "005"
down_revision: Union[str, None] = "004"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE offers (
            id                      VARCHAR(64)     PRIMARY KEY,
            item_id                 VARCHAR(64)     NOT NULL REFERENCES items (id),
            listing_id              VARCHAR(64)     REFERENCES listings (id),
            buyer_ref               VARCHAR(128)    NOT NULL,
            seller_ref              VARCHAR(128)    NOT NULL,
            amount_cents            BIGINT          NOT NULL,
            counter_amount_cents    BIGINT,
            status                  VARCHAR(16)     NOT NULL DEFAULT 'PENDING',
            expires_at              TIMESTAMPTZ     NOT NULL,
            resolved_at             TIMESTAMPTZ,
            version                 INT             NOT NULL DEFAULT 0,
            created_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_offers_amount         CHECK (amount_cents > 0),
            CONSTRAINT ck_offers_counter        CHECK (counter_amount_cents IS NULL OR counter_amount_cents > 0),
            CONSTRAINT ck_offers_parties        CHECK (buyer_ref <> seller_ref),
            CONSTRAINT ck_offers_status         CHECK (
                status IN ('PENDING', 'COUNTERED', 'ACCEPTED', 'REJECTED', 'EXPIRED', 'CANCELLED')
            ),
            CONSTRAINT ck_offers_resolved       CHECK (
                (status IN ('PENDING', 'COUNTERED')) = (resolved_at IS NULL)
            )
        );
    """)
    # One open offer per buyer per item
    op.execute("""
        CREATE UNIQUE INDEX uq_offers_open_buyer_item
        ON offers (item_id, buyer_ref)
        WHERE status IN ('PENDING', 'COUNTERED');
    """)
    op.execute("""
        CREATE INDEX idx_offers_due
        ON offers (expires_at)
        WHERE status IN ('PENDING', 'COUNTERED');
    """)
    op.execute("CREATE INDEX idx_offers_item_status ON offers (item_id, status);")
    # Terminal offers are immutable
    op.execute("""
        CREATE OR REPLACE FUNCTION fn_offers_terminal_immutable()
        RETURNS TRIGGER AS $$
        BEGIN
            IF OLD.status IN ('ACCEPTED', 'REJECTED', 'EXPIRED', 'CANCELLED') THEN
                RAISE EXCEPTION 'offer % is terminal (%)', OLD.id, OLD.status;
            END IF;
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
    """)
    op.execute("""
        CREATE TRIGGER trg_offers_terminal_immutable
            BEFORE UPDATE ON offers
            FOR EACH ROW EXECUTE FUNCTION fn_offers_terminal_immutable();
    """)
    op.execute("""
        CREATE TRIGGER trg_offers_updated_at
            BEFORE UPDATE ON offers
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS offers;")
    op.execute("DROP FUNCTION IF EXISTS fn_offers_terminal_immutable();")
