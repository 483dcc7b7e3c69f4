"""Database models."""

from app.models.announcement import (
    Announcement,
    AnnouncementStatus,
    AnnouncementTarget,
    AnnouncementType,
)
from app.models.base import Base, TimestampMixin, UUIDMixin, utcnow
from app.models.registration import (
    PaymentStatus,
    Registration,
    RegistrationStatus,
    TeamType,
)
from app.models.room_details import GameMap, RoomDetails, RoomStatus
from app.models.tournament import (
    Game,
    Tournament,
    TournamentStatus,
    TournamentType,
)
from app.models.user import User
from app.models.wallet import (
    Transaction,
    TransactionStatus,
    TransactionType,
    Wallet,
)
from app.models.winner import SettlementStatus, WinnerDeclaration

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "UUIDMixin",
    "utcnow",
    # User
    "User",
    # Ledger
    "Wallet",
    "Transaction",
    "TransactionType",
    "TransactionStatus",
    # Tournament
    "Tournament",
    "TournamentStatus",
    "TournamentType",
    "Game",
    # Registration
    "Registration",
    "RegistrationStatus",
    "PaymentStatus",
    "TeamType",
    # Settlement
    "WinnerDeclaration",
    "SettlementStatus",
    # Rooms
    "RoomDetails",
    "GameMap",
    "RoomStatus",
    # Announcements
    "Announcement",
    "AnnouncementStatus",
    "AnnouncementTarget",
    "AnnouncementType",
]
