"""004: create orders table

Revision ID: 004
Revises: 003
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE orders (
            id                  VARCHAR(32)     PRIMARY KEY,
            listing_id          VARCHAR(64)     NOT NULL REFERENCES listings (id),
            buyer_id            VARCHAR(64)     NOT NULL REFERENCES users (id),
            seller_id           VARCHAR(64)     NOT NULL REFERENCES users (id),
            item_price          BIGINT          NOT NULL,
            platform_fee        BIGINT          NOT NULL,
            gateway_fee         BIGINT          NOT NULL,
            total               BIGINT          NOT NULL,
            status              VARCHAR(20)     NOT NULL DEFAULT 'PENDING',
            payment_reference   VARCHAR(128),
            meeting_location    VARCHAR(255)    NOT NULL,
            meeting_time        TIMESTAMPTZ,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            completed_at        TIMESTAMPTZ,
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_orders_item_price_gt_0    CHECK (item_price > 0),
            CONSTRAINT ck_orders_fees_gte_0         CHECK (platform_fee >= 0 AND gateway_fee >= 0),
            CONSTRAINT ck_orders_total              CHECK (total = item_price + platform_fee + gateway_fee),
            CONSTRAINT ck_orders_buyer_not_seller   CHECK (buyer_id <> seller_id),
            CONSTRAINT ck_orders_status             CHECK (
                status IN ('PENDING', 'ESCROWED', 'COMPLETED', 'REFUNDED')
            ),
            CONSTRAINT ck_orders_completed_at       CHECK (status <> 'COMPLETED' OR completed_at IS NOT NULL)
        );
    """)
    op.execute("CREATE INDEX idx_orders_buyer ON orders (buyer_id, id DESC);")
    op.execute("CREATE INDEX idx_orders_seller ON orders (seller_id, id DESC);")
    op.execute("""
        CREATE TRIGGER trg_orders_updated_at
            BEFORE UPDATE ON orders
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("COMMENT ON TABLE orders IS 'Purchase attempts against one listing; amounts in paise';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS orders CASCADE;")
