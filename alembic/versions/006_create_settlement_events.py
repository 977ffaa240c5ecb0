"""006: create settlement_events table (append-only outbox)

Revision ID: 006
Revises: 005
Create Date: 2026-10-01
"""
from typing import Sequence, Union
from alembic import op

revision: str = "006"
down_revision: Union[str, None] = "005"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE settlement_events (
            id                      BIGSERIAL       PRIMARY KEY,
            event_type              VARCHAR(32)     NOT NULL,
            item_id                 VARCHAR(64)     NOT NULL REFERENCES items (id),
            reference_id            VARCHAR(64)     NOT NULL,
            buyer_ref               VARCHAR(128)    NOT NULL,
            seller_ref              VARCHAR(128),
            amount_cents            BIGINT          NOT NULL,
            royalty_cents           BIGINT          NOT NULL DEFAULT 0,
            seller_proceeds_cents   BIGINT          NOT NULL,
            payload                 JSONB           NOT NULL DEFAULT '{}'::jsonb,
            created_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_settlement_event_type CHECK (
                event_type IN ('PRIMARY_SALE', 'LISTING_SALE', 'OFFER_ACCEPTED')
            ),
            CONSTRAINT ck_settlement_amounts    CHECK (
                amount_cents >= 0 AND royalty_cents >= 0
                AND royalty_cents + seller_proceeds_cents = amount_cents
            )
        );
    """)
    op.execute("CREATE INDEX idx_settlement_events_item ON settlement_events (item_id, created_at);")
    op.execute("""
        CREATE UNIQUE INDEX uq_settlement_events_reference
        ON settlement_events (event_type, reference_id);
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS settlement_events;")
