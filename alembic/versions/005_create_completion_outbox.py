"""005: create seller sales counters and order completion events

Revision ID: 005
Revises: 004
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "005"
down_revision: Union[str, None] = "004"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE seller_sales_counters (
            seller_id           VARCHAR(64)     PRIMARY KEY REFERENCES users (id),
            completed_sales     INT             NOT NULL DEFAULT 0,
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_seller_sales_gte_0 CHECK (completed_sales >= 0)
        );
    """)
    op.execute("""
        CREATE TABLE order_completion_events (
            order_id            VARCHAR(32)     PRIMARY KEY REFERENCES orders (id),
            seller_id           VARCHAR(64)     NOT NULL,
            item_price          BIGINT          NOT NULL,
            seller_sale_number  INT             NOT NULL,
            processed_at        TIMESTAMPTZ,
            attempts            INT             NOT NULL DEFAULT 0,
            last_error          TEXT,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_completion_sale_number_gt_0 CHECK (seller_sale_number > 0)
        );
    """)
    op.execute("""
        CREATE INDEX idx_completion_events_unprocessed
        ON order_completion_events (created_at)
        WHERE processed_at IS NULL;
    """)
    op.execute("""
        CREATE INDEX idx_completion_events_first_sale
        ON order_completion_events (seller_id)
        WHERE seller_sale_number = 1;
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS order_completion_events CASCADE;")
    op.execute("DROP TABLE IF EXISTS seller_sales_counters CASCADE;")
