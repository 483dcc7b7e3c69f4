"""Wallet (ledger store) and Transaction (transaction log) models.

Balances are integer paise. The wallet is split into ``main`` (approved
deposits) and ``winning`` (prize credits); only ``winning`` can be withdrawn.
Every balance change is paired with exactly one ``Transaction`` row written in
the same database transaction.
"""

import hashlib
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from sqlalchemy import JSON, BigInteger, CheckConstraint, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, TimestampMixin, UTCDateTime, UUIDMixin, str_enum
from app.utils.json_utils import canonical_json

if TYPE_CHECKING:
    from app.models.user import User


class TransactionType(str, Enum):
    """Balance-affecting event types."""

    ADD_CASH = "add_cash"
    WITHDRAW = "withdraw"
    ENTRY_FEE = "entry_fee"
    PRIZE_WIN = "prize_win"
    REFUND = "refund"


class TransactionStatus(str, Enum):
    """Transaction status.

    ``add_cash`` and ``withdraw`` start ``pending`` and are approved or
    rejected by an admin. System-initiated types are ``completed`` at once.
    """

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"


CREDIT_TYPES = frozenset({
    TransactionType.ADD_CASH,
    TransactionType.PRIZE_WIN,
    TransactionType.REFUND,
})

USER_REQUESTED_TYPES = frozenset({
    TransactionType.ADD_CASH,
    TransactionType.WITHDRAW,
})


class Wallet(Base, UUIDMixin, TimestampMixin):
    """Per-user balance record. Created lazily, never deleted."""

    __tablename__ = "wallets"
    __table_args__ = (
        CheckConstraint("main_balance >= 0", name="ck_wallets_main_non_negative"),
        CheckConstraint("winning_balance >= 0", name="ck_wallets_winning_non_negative"),
    )

    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="RESTRICT"),
        unique=True,
        nullable=False,
        index=True,
    )
    main_balance: Mapped[int] = mapped_column(
        BigInteger,
        default=0,
        nullable=False,
        comment="Deposited funds in paise",
    )
    winning_balance: Mapped[int] = mapped_column(
        BigInteger,
        default=0,
        nullable=False,
        comment="Prize funds in paise (withdrawable)",
    )
    total_deposited: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    total_withdrawn: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    total_winnings: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)

    user: Mapped["User"] = relationship("User", back_populates="wallet")

    @property
    def total_balance(self) -> int:
        return self.main_balance + self.winning_balance

    def __repr__(self) -> str:
        return (
            f"<Wallet user={self.user_id[:8]}... "
            f"main={self.main_balance} winning={self.winning_balance}>"
        )


class Transaction(Base, UUIDMixin, TimestampMixin):
    """Immutable audit record of one balance-affecting event.

    ``amount`` is always positive; direction comes from ``tx_type``.
    """

    __tablename__ = "transactions"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_transactions_amount_positive"),
    )

    transaction_id: Mapped[str] = mapped_column(
        String(40),
        unique=True,
        nullable=False,
        index=True,
        comment="Externally visible id (TX...)",
    )
    reference_id: Mapped[str | None] = mapped_column(
        String(40),
        unique=True,
        nullable=True,
        comment="Withdrawal reference (REF...)",
    )
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    tx_type: Mapped[TransactionType] = mapped_column(
        str_enum(TransactionType),
        nullable=False,
        index=True,
    )
    status: Mapped[TransactionStatus] = mapped_column(
        str_enum(TransactionStatus),
        nullable=False,
        index=True,
    )

    amount: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        comment="Gross amount in paise",
    )
    tax_amount: Mapped[int] = mapped_column(
        BigInteger,
        default=0,
        nullable=False,
        comment="Withheld tax in paise (withdrawals)",
    )
    net_amount: Mapped[int | None] = mapped_column(
        BigInteger,
        nullable=True,
        comment="Amount paid out after tax (withdrawals)",
    )
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # Deposit proof
    upi_transaction_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    screenshot_path: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # Withdrawal payout target
    upi_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    bank_details: Mapped[dict[str, Any] | None] = mapped_column(
        JSON,
        nullable=True,
        comment="account_number, ifsc_code, account_name",
    )

    # Domain links
    tournament_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    registration_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    meta: Mapped[dict[str, Any] | None] = mapped_column(
        JSON,
        nullable=True,
        comment="Entry fee records the main/winning split it drew from",
    )
    idempotency_key: Mapped[str | None] = mapped_column(
        String(100),
        unique=True,
        index=True,
        nullable=True,
        comment="One row per system movement, e.g. prize:<tournament>:<rank>",
    )

    # Admin audit
    admin_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    approved_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    integrity_hash: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="SHA-256 over the immutable fields",
    )

    @property
    def is_credit(self) -> bool:
        return self.tx_type in CREDIT_TYPES

    @property
    def signed_amount(self) -> int:
        return self.amount if self.is_credit else -self.amount

    def compute_integrity_hash(self) -> str:
        """Hash of the fields that must never change after insert."""
        payload = {
            "transaction_id": self.transaction_id,
            "user_id": self.user_id,
            "tx_type": self.tx_type.value,
            "amount": self.amount,
            "tax_amount": self.tax_amount or 0,
            "tournament_id": self.tournament_id,
            "registration_id": self.registration_id,
        }
        return hashlib.sha256(canonical_json(payload)).hexdigest()

    def verify_integrity(self) -> bool:
        return self.integrity_hash == self.compute_integrity_hash()

    def __repr__(self) -> str:
        return (
            f"<Transaction {self.transaction_id} "
            f"type={self.tx_type.value} status={self.status.value} amount={self.amount}>"
        )
