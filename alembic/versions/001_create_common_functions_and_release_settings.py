"""001: create common functions and release_settings

Revision ID: 001
Revises: 
Create Date: 2026-10-01
"""
from typing import Sequence, Union
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE OR REPLACE FUNCTION fn_update_timestamp()
        RETURNS TRIGGER AS $$
        BEGIN
            NEW.updated_at = NOW();
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
    """)
    op.execute("""
        CREATE TABLE release_settings (
            id                  VARCHAR(16)     PRIMARY KEY DEFAULT 'main',
            increase_percent    NUMERIC(6, 3)   NOT NULL,
            version             INT             NOT NULL DEFAULT 0,
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_release_settings_singleton CHECK (id = 'main'),
            CONSTRAINT ck_release_settings_percent   CHECK (increase_percent BETWEEN 0 AND 100)
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_release_settings_updated_at
            BEFORE UPDATE ON release_settings
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS release_settings;")
    op.execute("DROP FUNCTION IF EXISTS fn_update_timestamp();")
