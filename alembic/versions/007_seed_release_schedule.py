"""007: seed release settings, the phase schedule and the item catalog

20 phases x 1,000 items = 20,000 collectibles, 10 cents per score point,
14-day phases. Scores are spread deterministically over 0-500.

Revision ID: 007
Revises: 006
Create Date: 2026-10-01
"""

from typing import Sequence, Union

from alembic import op

revision: str = "007"
down_revision: Union[str, None] = "006"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

PHASE_COUNT = 20
ITEMS_PER_PHASE = 1000
PHASE_DURATION_SECONDS = 14 * 24 * 3600


def upgrade() -> None:
    op.execute("""
        INSERT INTO release_settings (id, increase_percent, version)
        VALUES ('main', 7.5, 0);
    """)
    op.execute(f"""
        INSERT INTO release_phases (
            phase_index, base_rate_cents, capacity, sold, duration_seconds,
            is_active, is_paused, paused_seconds, increase_percent_at_creation, version
        )
        SELECT i, 10, {ITEMS_PER_PHASE}, 0, {PHASE_DURATION_SECONDS},
               FALSE, FALSE, 0, 7.5, 0
        FROM generate_series(1, {PHASE_COUNT}) AS i;
    """)
    op.execute(f"""
        INSERT INTO items (id, score, status, version)
        SELECT 'CX-' || LPAD(i::text, 5, '0'), (i * 37) % 501, 'AVAILABLE', 0
        FROM generate_series(1, {PHASE_COUNT * ITEMS_PER_PHASE}) AS i;
    """)


def downgrade() -> None:
    op.execute("DELETE FROM items WHERE id LIKE 'CX-%' AND status = 'AVAILABLE';")
    op.execute("DELETE FROM release_phases WHERE sold = 0 AND NOT is_active;")
    op.execute("DELETE FROM release_settings WHERE id = 'main';")
