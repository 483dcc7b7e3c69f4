"""Winner declaration model."""

from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import JSON, BigInteger, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, TimestampMixin, UTCDateTime, UUIDMixin, str_enum, utcnow


class SettlementStatus(str, Enum):
    """Prize distribution progress across all listed winners."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"


MAX_RANK = 3


class WinnerDeclaration(Base, UUIDMixin, TimestampMixin):
    """Ranked prize record for one tournament.

    ``winners`` is an ordered list of entries::

        {"rank": 1, "player_id": "...", "player_name": "...", "prize": 50000,
         "user_id": "...", "paid": False, "transaction_id": None}

    ``paid``/``transaction_id`` are filled per winner by settlement so a retry
    only touches the outstanding entries.
    """

    __tablename__ = "winner_declarations"

    tournament_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("tournaments.id", ondelete="RESTRICT"),
        unique=True,
        nullable=False,
        index=True,
    )
    winners: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False)
    total_prize: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        comment="Sum of prizes in paise, bounded by tournament prize pool",
    )
    declared_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    declared_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow, nullable=False)

    payment_status: Mapped[SettlementStatus] = mapped_column(
        str_enum(SettlementStatus),
        default=SettlementStatus.PENDING,
        nullable=False,
        index=True,
    )
    payment_processed_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    @property
    def outstanding(self) -> list[dict[str, Any]]:
        return [w for w in self.winners if not w.get("paid")]

    @property
    def paid_total(self) -> int:
        return sum(w["prize"] for w in self.winners if w.get("paid"))

    def __repr__(self) -> str:
        return (
            f"<WinnerDeclaration tournament={self.tournament_id[:8]}... "
            f"winners={len(self.winners)} status={self.payment_status.value}>"
        )
