"""Match room credentials for a tournament."""

from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import JSON, Boolean, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, TimestampMixin, UTCDateTime, UUIDMixin


class GameMap(str, Enum):
    BERMUDA = "bermuda"
    PURGATORY = "purgatory"
    KALAHARI = "kalahari"
    NEXTERRA = "nexterra"
    ALPINE = "alpine"


class RoomStatus(str, Enum):
    ACTIVE = "active"
    FULL = "full"
    CLOSED = "closed"


DEFAULT_ROOM_CAPACITY = 50


class RoomDetails(Base, UUIDMixin, TimestampMixin):
    """Room credential sets plus the publish gate.

    ``rooms`` entries::

        {"room_id": "...", "password": "...", "map": "bermuda",
         "max_players": 50, "current_players": 0, "room_status": "active",
         "notes": None}
    """

    __tablename__ = "room_details"

    tournament_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("tournaments.id", ondelete="RESTRICT"),
        unique=True,
        nullable=False,
        index=True,
    )
    rooms: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    start_time: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        comment="Match start; the publish gate opens a few minutes before",
    )
    auto_publish: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_published: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    published_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(36), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<RoomDetails tournament={self.tournament_id[:8]}... "
            f"rooms={len(self.rooms)} published={self.is_published}>"
        )
