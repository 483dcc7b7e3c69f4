"""Business logic services."""

from app.services.announcement import AnnouncementError, AnnouncementService
from app.services.auth import AuthService, Principal
from app.services.notifications import (
    LoggingNotifier,
    NotificationError,
    Notifier,
    WebhookNotifier,
    get_notifier,
)
from app.services.password_reset import PasswordResetError, PasswordResetService
from app.services.registration import RegistrationError, RegistrationService
from app.services.room_details import RoomDetailsError, RoomDetailsService
from app.services.settlement import SettlementError, SettlementService
from app.services.storage import LocalFileStorage, StorageError, get_storage
from app.services.tournament import TournamentError, TournamentService
from app.services.user import UserError, UserService
from app.services.wallet import WalletError, WalletService

__all__ = [
    # Auth
    "AuthService",
    "Principal",
    "PasswordResetService",
    "PasswordResetError",
    # Users
    "UserService",
    "UserError",
    # Wallet
    "WalletService",
    "WalletError",
    # Tournament
    "TournamentService",
    "TournamentError",
    "RegistrationService",
    "RegistrationError",
    "RoomDetailsService",
    "RoomDetailsError",
    "SettlementService",
    "SettlementError",
    # Announcements
    "AnnouncementService",
    "AnnouncementError",
    # Delivery
    "Notifier",
    "LoggingNotifier",
    "WebhookNotifier",
    "NotificationError",
    "get_notifier",
    # Storage
    "LocalFileStorage",
    "StorageError",
    "get_storage",
]
