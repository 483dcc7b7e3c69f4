"""Arena schema: users, wallet ledger, tournaments, registrations, rooms,
winner declarations and announcements.

Revision ID: 001_arena_schema
Revises:
Create Date: 2026-03-01

Money columns are BIGINT paise. Enum columns are VARCHAR holding the enum
value so new members need no DDL.
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "001_arena_schema"
down_revision = None
branch_labels = None
depends_on = None


def _id() -> sa.Column:
    return sa.Column("id", sa.String(36), primary_key=True)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    # ===========================================================
    # 1. Accounts
    # ===========================================================
    op.create_table(
        "users",
        _id(),
        sa.Column("username", sa.String(50), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "is_active",
            sa.Boolean(),
            nullable=False,
            server_default=sa.true(),
            comment="Inactive users are excluded from announcement fan-out",
        ),
        *_timestamps(),
    )
    op.create_index("ix_users_username", "users", ["username"], unique=True)
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    # ===========================================================
    # 2. Wallet ledger
    # ===========================================================
    op.create_table(
        "wallets",
        _id(),
        sa.Column(
            "user_id",
            sa.String(36),
            sa.ForeignKey("users.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column(
            "main_balance",
            sa.BigInteger(),
            nullable=False,
            server_default="0",
            comment="Deposited funds in paise",
        ),
        sa.Column(
            "winning_balance",
            sa.BigInteger(),
            nullable=False,
            server_default="0",
            comment="Prize funds in paise (withdrawable)",
        ),
        sa.Column("total_deposited", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("total_withdrawn", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("total_winnings", sa.BigInteger(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.CheckConstraint("main_balance >= 0", name="ck_wallets_main_non_negative"),
        sa.CheckConstraint("winning_balance >= 0", name="ck_wallets_winning_non_negative"),
    )
    op.create_index("ix_wallets_user_id", "wallets", ["user_id"], unique=True)

    op.create_table(
        "transactions",
        _id(),
        sa.Column("transaction_id", sa.String(40), nullable=False),
        sa.Column("reference_id", sa.String(40), nullable=True, unique=True),
        sa.Column(
            "user_id",
            sa.String(36),
            sa.ForeignKey("users.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("tx_type", sa.String(20), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("amount", sa.BigInteger(), nullable=False, comment="Gross amount in paise"),
        sa.Column("tax_amount", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("net_amount", sa.BigInteger(), nullable=True),
        sa.Column("description", sa.String(500), nullable=True),
        sa.Column("upi_transaction_id", sa.String(100), nullable=True),
        sa.Column("screenshot_path", sa.String(500), nullable=True),
        sa.Column("upi_id", sa.String(100), nullable=True),
        sa.Column("bank_details", sa.JSON(), nullable=True),
        sa.Column("tournament_id", sa.String(36), nullable=True),
        sa.Column("registration_id", sa.String(36), nullable=True),
        sa.Column("meta", sa.JSON(), nullable=True),
        sa.Column("admin_notes", sa.Text(), nullable=True),
        sa.Column("approved_by", sa.String(36), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "integrity_hash",
            sa.String(64),
            nullable=False,
            comment="SHA-256 over the immutable fields",
        ),
        *_timestamps(),
        sa.CheckConstraint("amount > 0", name="ck_transactions_amount_positive"),
    )
    op.create_index(
        "ix_transactions_transaction_id", "transactions", ["transaction_id"], unique=True
    )
    op.create_index("ix_transactions_user_id", "transactions", ["user_id"])
    op.create_index("ix_transactions_tx_type", "transactions", ["tx_type"])
    op.create_index("ix_transactions_status", "transactions", ["status"])
    op.create_index("ix_transactions_tournament_id", "transactions", ["tournament_id"])
    # Pending review queues and the withdrawal throttle probe
    op.create_index(
        "ix_transactions_user_type_status",
        "transactions",
        ["user_id", "tx_type", "status"],
    )

    # ===========================================================
    # 3. Tournaments and registrations
    # ===========================================================
    op.create_table(
        "tournaments",
        _id(),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("tournament_type", sa.String(20), nullable=False),
        sa.Column("game", sa.String(20), nullable=False),
        sa.Column("entry_fee", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("prize_pool", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("max_players", sa.Integer(), nullable=False),
        sa.Column(
            "registered_players",
            sa.Integer(),
            nullable=False,
            server_default="0",
            comment="Confirmed (paid) registrations",
        ),
        sa.Column("status", sa.String(20), nullable=False, server_default="open"),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rules", sa.Text(), nullable=True),
        sa.Column("how_to_play", sa.Text(), nullable=True),
        sa.Column("prize_distribution", sa.JSON(), nullable=True),
        sa.Column("created_by", sa.String(36), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("registered_players <= max_players", name="ck_tournaments_capacity"),
        sa.CheckConstraint(
            "registered_players >= 0", name="ck_tournaments_registered_non_negative"
        ),
        sa.CheckConstraint("entry_fee >= 0", name="ck_tournaments_entry_fee_non_negative"),
        sa.CheckConstraint("prize_pool >= 0", name="ck_tournaments_prize_pool_non_negative"),
    )
    op.create_index("ix_tournaments_tournament_type", "tournaments", ["tournament_type"])
    op.create_index("ix_tournaments_game", "tournaments", ["game"])
    op.create_index("ix_tournaments_status", "tournaments", ["status"])
    op.create_index("ix_tournaments_start_time", "tournaments", ["start_time"])

    op.create_table(
        "registrations",
        _id(),
        sa.Column(
            "tournament_id",
            sa.String(36),
            sa.ForeignKey("tournaments.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column(
            "user_id",
            sa.String(36),
            sa.ForeignKey("users.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("player_id", sa.String(50), nullable=False, comment="In-game player id"),
        sa.Column("player_name", sa.String(100), nullable=False),
        sa.Column("team_type", sa.String(20), nullable=False, server_default="solo"),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("entry_fee_paid", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("transaction_id", sa.String(40), nullable=True),
        sa.Column("registered_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("tournament_id", "user_id", name="uq_registrations_tournament_user"),
        sa.UniqueConstraint(
            "tournament_id", "player_id", name="uq_registrations_tournament_player"
        ),
    )
    op.create_index("ix_registrations_tournament_id", "registrations", ["tournament_id"])
    op.create_index("ix_registrations_user_id", "registrations", ["user_id"])
    op.create_index("ix_registrations_status", "registrations", ["status"])

    # ===========================================================
    # 4. Room credentials and winners
    # ===========================================================
    op.create_table(
        "room_details",
        _id(),
        sa.Column(
            "tournament_id",
            sa.String(36),
            sa.ForeignKey("tournaments.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("rooms", sa.JSON(), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("auto_publish", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_published", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(36), nullable=True),
        *_timestamps(),
    )
    op.create_index(
        "ix_room_details_tournament_id", "room_details", ["tournament_id"], unique=True
    )
    op.create_index("ix_room_details_is_published", "room_details", ["is_published"])

    op.create_table(
        "winner_declarations",
        _id(),
        sa.Column(
            "tournament_id",
            sa.String(36),
            sa.ForeignKey("tournaments.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("winners", sa.JSON(), nullable=False),
        sa.Column("total_prize", sa.BigInteger(), nullable=False),
        sa.Column("declared_by", sa.String(36), nullable=True),
        sa.Column("declared_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("payment_processed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index(
        "ix_winner_declarations_tournament_id",
        "winner_declarations",
        ["tournament_id"],
        unique=True,
    )
    op.create_index(
        "ix_winner_declarations_payment_status", "winner_declarations", ["payment_status"]
    )

    # ===========================================================
    # 5. Announcements
    # ===========================================================
    op.create_table(
        "announcements",
        _id(),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("announcement_type", sa.String(20), nullable=False, server_default="general"),
        sa.Column("target", sa.String(20), nullable=False, server_default="all"),
        sa.Column("tournament_id", sa.String(36), nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("sent_by", sa.String(36), nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("scheduled_for", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="draft"),
        sa.Column("sent_to", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("read_by", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_error", sa.String(500), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_announcements_tournament_id", "announcements", ["tournament_id"])
    op.create_index("ix_announcements_scheduled_for", "announcements", ["scheduled_for"])
    op.create_index("ix_announcements_status", "announcements", ["status"])


def downgrade() -> None:
    op.drop_table("announcements")
    op.drop_table("winner_declarations")
    op.drop_table("room_details")
    op.drop_table("registrations")
    op.drop_table("tournaments")
    op.drop_table("transactions")
    op.drop_table("wallets")
    op.drop_table("users")
