"""002: create users table

Revision ID: 002
Revises: 001
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE users (
            id              VARCHAR(64)     PRIMARY KEY,
            name            VARCHAR(128)    NOT NULL,
            email           VARCHAR(255)    NOT NULL,
            recruiter_id    VARCHAR(64)     REFERENCES users (id),
            is_admin        BOOLEAN         NOT NULL DEFAULT FALSE,
            is_active       BOOLEAN         NOT NULL DEFAULT TRUE,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_users_email           UNIQUE (email),
            CONSTRAINT ck_users_not_self_recruited CHECK (recruiter_id IS NULL OR recruiter_id <> id)
        );
    """)
    op.execute("CREATE INDEX idx_users_recruiter ON users (recruiter_id) WHERE recruiter_id IS NOT NULL;")
    op.execute("""
        CREATE TRIGGER trg_users_updated_at
            BEFORE UPDATE ON users
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("COMMENT ON TABLE users IS 'Marketplace users, managed by the auth/admin services';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS users CASCADE;")
