"""Registration model: a user's enrollment in a tournament."""

from datetime import datetime
from enum import Enum

from sqlalchemy import BigInteger, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, TimestampMixin, UTCDateTime, UUIDMixin, str_enum, utcnow


class TeamType(str, Enum):
    SOLO = "solo"
    DUO = "duo"
    SQUAD = "squad"


class RegistrationStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"


class Registration(Base, UUIDMixin, TimestampMixin):
    """Enrollment record.

    ``status`` and ``payment_status`` are independent axes. A registration is
    confirmed only after payment succeeds, and a refund is only valid for a
    cancelled + paid registration.
    """

    __tablename__ = "registrations"
    __table_args__ = (
        UniqueConstraint("tournament_id", "user_id", name="uq_registrations_tournament_user"),
        UniqueConstraint("tournament_id", "player_id", name="uq_registrations_tournament_player"),
    )

    tournament_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("tournaments.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    player_id: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="In-game player id",
    )
    player_name: Mapped[str] = mapped_column(String(100), nullable=False)
    team_type: Mapped[TeamType] = mapped_column(
        str_enum(TeamType),
        default=TeamType.SOLO,
        nullable=False,
    )

    status: Mapped[RegistrationStatus] = mapped_column(
        str_enum(RegistrationStatus),
        default=RegistrationStatus.PENDING,
        nullable=False,
        index=True,
    )
    payment_status: Mapped[PaymentStatus] = mapped_column(
        str_enum(PaymentStatus),
        default=PaymentStatus.PENDING,
        nullable=False,
    )
    entry_fee_paid: Mapped[int] = mapped_column(
        BigInteger,
        default=0,
        nullable=False,
        comment="Fee charged at payment time (paise), independent of later fee edits",
    )
    transaction_id: Mapped[str | None] = mapped_column(
        String(40),
        nullable=True,
        comment="External id of the entry fee transaction",
    )
    registered_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        default=utcnow,
        nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"<Registration {self.id[:8]}... player={self.player_id} "
            f"status={self.status.value} payment={self.payment_status.value}>"
        )
