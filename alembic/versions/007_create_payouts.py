"""007: create payouts table

Revision ID: 007
Revises: 006
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "007"
down_revision: Union[str, None] = "006"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE payouts (
            id                  VARCHAR(32)     PRIMARY KEY,
            user_id             VARCHAR(64)     NOT NULL REFERENCES users (id),
            payout_type         VARCHAR(20)     NOT NULL,
            status              VARCHAR(20)     NOT NULL DEFAULT 'PAYABLE',
            amount              BIGINT          NOT NULL,
            order_id            VARCHAR(32)     REFERENCES orders (id),
            scout_id            VARCHAR(32)     REFERENCES scouts (id),
            payment_reference   VARCHAR(128),
            failure_reason      TEXT,
            processed_at        TIMESTAMPTZ,
            completed_at        TIMESTAMPTZ,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_payouts_amount_gt_0   CHECK (amount > 0),
            CONSTRAINT ck_payouts_type          CHECK (payout_type IN ('REFERRAL_BOUNTY', 'SELLER_PAYOUT')),
            CONSTRAINT ck_payouts_status        CHECK (
                status IN ('PAYABLE', 'PENDING', 'PROCESSING', 'COMPLETED', 'FAILED', 'CANCELLED')
            ),
            CONSTRAINT ck_payouts_seller_order  CHECK (payout_type <> 'SELLER_PAYOUT' OR order_id IS NOT NULL),
            CONSTRAINT ck_payouts_bounty_scout  CHECK (payout_type <> 'REFERRAL_BOUNTY' OR scout_id IS NOT NULL)
        );
    """)
    op.execute("""
        CREATE UNIQUE INDEX uq_payouts_seller_order
        ON payouts (order_id)
        WHERE payout_type = 'SELLER_PAYOUT';
    """)
    op.execute("CREATE INDEX idx_payouts_status_created ON payouts (status, created_at);")
    op.execute("CREATE INDEX idx_payouts_user_status ON payouts (user_id, status);")
    op.execute("CREATE INDEX idx_payouts_scout ON payouts (scout_id) WHERE scout_id IS NOT NULL;")
    op.execute("""
        CREATE TRIGGER trg_payouts_updated_at
            BEFORE UPDATE ON payouts
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("COMMENT ON TABLE payouts IS 'Scheduled disbursements; amounts in paise';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS payouts CASCADE;")
