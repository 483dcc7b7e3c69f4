"""Public profile columns on users and idempotency keys on transactions.

Revision ID: 002_profile_and_payout_keys
Revises: 001_arena_schema
Create Date: 2026-10-19

The unique index on ``transactions.idempotency_key`` is what stops two
concurrent prize distributions from crediting the same rank twice.
NULLs are not compared, so user-requested rows are unaffected.
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "002_profile_and_payout_keys"
down_revision = "001_arena_schema"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column("users", sa.Column("full_name", sa.String(100), nullable=True))
    op.add_column(
        "users",
        sa.Column("phone", sa.String(15), nullable=True, comment="10-digit mobile number"),
    )
    op.add_column("users", sa.Column("gaming_id", sa.String(50), nullable=True))
    op.add_column("users", sa.Column("avatar_url", sa.String(500), nullable=True))

    op.add_column(
        "transactions",
        sa.Column(
            "idempotency_key",
            sa.String(100),
            nullable=True,
            comment="One row per system movement, e.g. prize:<tournament>:<rank>",
        ),
    )
    op.create_index(
        "ix_transactions_idempotency_key",
        "transactions",
        ["idempotency_key"],
        unique=True,
    )


def downgrade() -> None:
    op.drop_index("ix_transactions_idempotency_key", table_name="transactions")
    op.drop_column("transactions", "idempotency_key")

    op.drop_column("users", "avatar_url")
    op.drop_column("users", "gaming_id")
    op.drop_column("users", "phone")
    op.drop_column("users", "full_name")
