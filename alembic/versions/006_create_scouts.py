"""006: create scouts and scout earning entries

Revision ID: 006
Revises: 005
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "006"
down_revision: Union[str, None] = "005"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE scouts (
            id                  VARCHAR(32)     PRIMARY KEY,
            user_id             VARCHAR(64)     NOT NULL REFERENCES users (id),
            status              VARCHAR(20)     NOT NULL DEFAULT 'ACTIVE',
            recruits_count      INT             NOT NULL DEFAULT 0,
            earnings            BIGINT          NOT NULL DEFAULT 0,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_scouts_user           UNIQUE (user_id),
            CONSTRAINT ck_scouts_status         CHECK (status IN ('ACTIVE', 'INACTIVE')),
            CONSTRAINT ck_scouts_recruits_gte_0 CHECK (recruits_count >= 0),
            CONSTRAINT ck_scouts_earnings_gte_0 CHECK (earnings >= 0)
        );
    """)
    op.execute("CREATE INDEX idx_scouts_leaderboard ON scouts (earnings DESC) WHERE status = 'ACTIVE';")
    op.execute("""
        CREATE TRIGGER trg_scouts_updated_at
            BEFORE UPDATE ON scouts
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("""
        CREATE TABLE scout_earning_entries (
            id                  BIGSERIAL       PRIMARY KEY,
            scout_id            VARCHAR(32)     NOT NULL REFERENCES scouts (id),
            entry_type          VARCHAR(20)     NOT NULL,
            amount              BIGINT          NOT NULL,
            earnings_after      BIGINT          NOT NULL,
            reference_type      VARCHAR(20)     NOT NULL,
            reference_id        VARCHAR(64)     NOT NULL,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_scout_entries_reference   UNIQUE (entry_type, reference_type, reference_id),
            CONSTRAINT ck_scout_entries_type        CHECK (entry_type IN ('BOUNTY_CREDIT', 'PAYOUT_DEBIT')),
            CONSTRAINT ck_scout_entries_sign        CHECK (
                (entry_type = 'BOUNTY_CREDIT' AND amount > 0) OR
                (entry_type = 'PAYOUT_DEBIT' AND amount <= 0)
            ),
            CONSTRAINT ck_scout_entries_after_gte_0 CHECK (earnings_after >= 0)
        );
    """)
    op.execute("CREATE INDEX idx_scout_entries_scout ON scout_earning_entries (scout_id, created_at);")
    op.execute("COMMENT ON TABLE scout_earning_entries IS 'Append-only; scouts.earnings is its running balance';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS scout_earning_entries CASCADE;")
    op.execute("DROP TABLE IF EXISTS scouts CASCADE;")
