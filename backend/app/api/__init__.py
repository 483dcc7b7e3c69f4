"""API routers."""

from app.api.admin_wallet import router as admin_wallet_router
from app.api.announcements import router as announcements_router
from app.api.auth import router as auth_router
from app.api.registrations import router as registrations_router
from app.api.rooms import router as rooms_router
from app.api.tournaments import router as tournaments_router
from app.api.users import router as users_router
from app.api.wallet import router as wallet_router
from app.api.winners import router as winners_router

__all__ = [
    "admin_wallet_router",
    "announcements_router",
    "auth_router",
    "registrations_router",
    "rooms_router",
    "tournaments_router",
    "users_router",
    "wallet_router",
    "winners_router",
]
