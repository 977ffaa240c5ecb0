"""008: create auctions and auction_bids, admit AUCTION_SALE settlements

Items under auction have no owner yet, so ck_items_owned is widened to let
AUCTIONED rows carry a NULL owner_ref.

Revision ID: 008
Revises: 007
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "008"
down_revision: Union[str, None] = "007"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE auctions (
            id                  VARCHAR(64)     PRIMARY KEY,
            item_id             VARCHAR(64)     NOT NULL REFERENCES items (id),
            created_by          VARCHAR(128)    NOT NULL,
            starting_bid_cents  BIGINT          NOT NULL,
            current_bid_cents   BIGINT          NOT NULL,
            highest_bidder_ref  VARCHAR(128),
            bid_count           INT             NOT NULL DEFAULT 0,
            status              VARCHAR(16)     NOT NULL DEFAULT 'ACTIVE',
            end_time            TIMESTAMPTZ     NOT NULL,
            finalized_at        TIMESTAMPTZ,
            version             INT             NOT NULL DEFAULT 0,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_auctions_starting_bid CHECK (starting_bid_cents > 0),
            CONSTRAINT ck_auctions_current_bid  CHECK (current_bid_cents >= starting_bid_cents),
            CONSTRAINT ck_auctions_status       CHECK (status IN ('ACTIVE', 'ENDED', 'FINALIZED')),
            CONSTRAINT ck_auctions_leader       CHECK ((bid_count = 0) = (highest_bidder_ref IS NULL)),
            CONSTRAINT ck_auctions_finalized    CHECK ((status = 'ACTIVE') = (finalized_at IS NULL)),
            CONSTRAINT ck_auctions_winner       CHECK (status <> 'FINALIZED' OR bid_count > 0)
        );
    """)
    # One running auction per item
    op.execute("""
        CREATE UNIQUE INDEX uq_auctions_active_item
        ON auctions (item_id)
        WHERE status = 'ACTIVE';
    """)
    op.execute("""
        CREATE INDEX idx_auctions_due
        ON auctions (end_time)
        WHERE status = 'ACTIVE';
    """)
    op.execute("""
        CREATE TRIGGER trg_auctions_updated_at
            BEFORE UPDATE ON auctions
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("""
        CREATE TABLE auction_bids (
            id              VARCHAR(64)     PRIMARY KEY,
            auction_id      VARCHAR(64)     NOT NULL REFERENCES auctions (id),
            bidder_ref      VARCHAR(128)    NOT NULL,
            amount_cents    BIGINT          NOT NULL,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_auction_bids_amount CHECK (amount_cents > 0)
        );
    """)
    op.execute("CREATE INDEX idx_auction_bids_auction ON auction_bids (auction_id, amount_cents DESC);")

    op.execute("ALTER TABLE items DROP CONSTRAINT ck_items_owned;")
    op.execute("""
        ALTER TABLE items ADD CONSTRAINT ck_items_owned CHECK (
            status IN ('AVAILABLE', 'RESERVED', 'AUCTIONED') OR owner_ref IS NOT NULL
        );
    """)
    op.execute("ALTER TABLE settlement_events DROP CONSTRAINT ck_settlement_event_type;")
    op.execute("""
        ALTER TABLE settlement_events ADD CONSTRAINT ck_settlement_event_type CHECK (
            event_type IN ('PRIMARY_SALE', 'LISTING_SALE', 'OFFER_ACCEPTED', 'AUCTION_SALE')
        );
    """)


def downgrade() -> None:
    op.execute("DELETE FROM settlement_events WHERE event_type = 'AUCTION_SALE';")
    op.execute("ALTER TABLE settlement_events DROP CONSTRAINT ck_settlement_event_type;")
    op.execute("""
        ALTER TABLE settlement_events ADD CONSTRAINT ck_settlement_event_type CHECK (
            event_type IN ('PRIMARY_SALE', 'LISTING_SALE', 'OFFER_ACCEPTED')
        );
    """)
    op.execute("UPDATE items SET status = 'AVAILABLE' WHERE status = 'AUCTIONED';")
    op.execute("ALTER TABLE items DROP CONSTRAINT ck_items_owned;")
    op.execute("""
        ALTER TABLE items ADD CONSTRAINT ck_items_owned CHECK (
            status IN ('AVAILABLE', 'RESERVED') OR owner_ref IS NOT NULL
        );
    """)
    op.execute("DROP TABLE IF EXISTS auction_bids;")
    op.execute("DROP TABLE IF EXISTS auctions;")
