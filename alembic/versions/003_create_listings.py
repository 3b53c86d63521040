"""003: create listings table

Revision ID: 003
Revises: 002
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE listings (
            id              VARCHAR(64)     PRIMARY KEY,
            seller_id       VARCHAR(64)     NOT NULL REFERENCES users (id),
            title           VARCHAR(255)    NOT NULL,
            price           BIGINT          NOT NULL,
            status          VARCHAR(20)     NOT NULL DEFAULT 'ACTIVE',
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_listings_price_gt_0   CHECK (price > 0),
            CONSTRAINT ck_listings_status       CHECK (status IN ('ACTIVE', 'SOLD', 'WITHDRAWN'))
        );
    """)
    op.execute("CREATE INDEX idx_listings_seller ON listings (seller_id);")
    op.execute("""
        CREATE TRIGGER trg_listings_updated_at
            BEFORE UPDATE ON listings
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS listings CASCADE;")
