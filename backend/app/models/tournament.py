"""Tournament model."""

from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import JSON, BigInteger, CheckConstraint, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, TimestampMixin, UTCDateTime, UUIDMixin, str_enum


class TournamentType(str, Enum):
    SOLO_CUSTOM = "solo-custom"
    DUO_CUSTOM = "duo-custom"
    SQUAD_CUSTOM = "squad-custom"
    LONE_WOLF = "lone-wolf"
    SOLO_KILL = "solo-kill"
    SQUAD_BOOYAH = "squad-booyah"
    DUO_TOP2 = "duo-top2"
    SOLO_TOP3 = "solo-top3"
    LOOSER_REWARD = "looser-reward"
    NO_KILL = "no-kill"
    LANDMINE = "landmine"


class Game(str, Enum):
    FREEFIRE = "freefire"
    BGMI = "bgmi"
    COD = "cod"


class TournamentStatus(str, Enum):
    """Lifecycle status. Transitions live in ``app.models.transitions``."""

    OPEN = "open"
    UPCOMING = "upcoming"
    LIVE = "live"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


ACTIVE_STATUSES = (
    TournamentStatus.OPEN,
    TournamentStatus.UPCOMING,
    TournamentStatus.LIVE,
)

MIN_PLAYERS = 2
MAX_PLAYERS = 1000


class Tournament(Base, UUIDMixin, TimestampMixin):
    """Tournament with entry fee, prize pool and a bounded seat counter."""

    __tablename__ = "tournaments"
    __table_args__ = (
        CheckConstraint(
            "registered_players <= max_players",
            name="ck_tournaments_capacity",
        ),
        CheckConstraint("registered_players >= 0", name="ck_tournaments_registered_non_negative"),
        CheckConstraint("entry_fee >= 0", name="ck_tournaments_entry_fee_non_negative"),
        CheckConstraint("prize_pool >= 0", name="ck_tournaments_prize_pool_non_negative"),
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    tournament_type: Mapped[TournamentType] = mapped_column(
        str_enum(TournamentType),
        nullable=False,
        index=True,
    )
    game: Mapped[Game] = mapped_column(str_enum(Game), nullable=False, index=True)

    entry_fee: Mapped[int] = mapped_column(
        BigInteger,
        default=0,
        nullable=False,
        comment="Entry fee in paise",
    )
    prize_pool: Mapped[int] = mapped_column(
        BigInteger,
        default=0,
        nullable=False,
        comment="Prize pool in paise",
    )
    max_players: Mapped[int] = mapped_column(Integer, nullable=False)
    registered_players: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
        comment="Confirmed (paid) registrations",
    )

    status: Mapped[TournamentStatus] = mapped_column(
        str_enum(TournamentStatus),
        default=TournamentStatus.OPEN,
        nullable=False,
        index=True,
    )
    start_time: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, index=True)
    end_time: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    rules: Mapped[str | None] = mapped_column(Text, nullable=True)
    how_to_play: Mapped[str | None] = mapped_column(Text, nullable=True)
    prize_distribution: Mapped[dict[str, Any] | None] = mapped_column(
        JSON,
        nullable=True,
        comment="first/second/third prize in paise",
    )
    created_by: Mapped[str | None] = mapped_column(String(36), nullable=True)

    @property
    def seats_left(self) -> int:
        return self.max_players - self.registered_players

    @property
    def is_full(self) -> bool:
        return self.registered_players >= self.max_players

    def __repr__(self) -> str:
        return (
            f"<Tournament {self.id[:8]}... {self.name} "
            f"status={self.status.value} {self.registered_players}/{self.max_players}>"
        )
