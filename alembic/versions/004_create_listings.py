"""004: create listings table

Revision ID: 004
Revises: 003
Create Date: 2026-10-01
"""
from typing import Sequence, Union
from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE listings (
            id              VARCHAR(64)     PRIMARY KEY,
            item_id         VARCHAR(64)     NOT NULL REFERENCES items (id),
            seller_ref      VARCHAR(128)    NOT NULL,
            price_cents     BIGINT          NOT NULL,
            status          VARCHAR(16)     NOT NULL DEFAULT 'ACTIVE',
            expires_at      TIMESTAMPTZ,
            closed_at       TIMESTAMPTZ,
            version         INT             NOT NULL DEFAULT 0,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_listings_price    CHECK (price_cents > 0),
            CONSTRAINT ck_listings_status   CHECK (status IN ('ACTIVE', 'SOLD', 'CANCELLED')),
            CONSTRAINT ck_listings_closed   CHECK ((status = 'ACTIVE') = (closed_at IS NULL))
        );
    """)
    # One ACTIVE listing per item
    op.execute("""
        CREATE UNIQUE INDEX uq_listings_active_item
        ON listings (item_id)
        WHERE status = 'ACTIVE';
    """)
    op.execute("CREATE INDEX idx_listings_seller ON listings (seller_ref, created_at DESC);")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS listings;")
