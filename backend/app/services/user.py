"""User service: profile edits, public profiles and the admin user list.

Public stats are computed from the ledger and registrations on read; nothing
is copied onto the user row.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.registration import Registration, RegistrationStatus
from app.models.user import User
from app.models.wallet import Transaction, TransactionStatus, TransactionType
from app.services.auth import Principal
from app.utils.errors import ErrorCode, ServiceError
from app.utils.money import to_rupees

logger = logging.getLogger(__name__)

MOBILE_PATTERN = re.compile(r"^[0-9]{10}$")

# field -> max length, matching the users table
PROFILE_FIELDS = {
    "full_name": 100,
    "phone": 15,
    "gaming_id": 50,
    "avatar_url": 500,
}


class UserError(ServiceError):
    """User operation error."""


@dataclass
class PublicProfile:
    """What any signed-in user may see about another."""

    user_id: str
    username: str
    full_name: str | None
    gaming_id: str | None
    avatar_url: str | None
    joined_at: datetime
    tournaments_played: int
    tournaments_won: int
    total_earnings: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.user_id,
            "username": self.username,
            "full_name": self.full_name,
            "gaming_id": self.gaming_id,
            "avatar_url": self.avatar_url,
            "joined_at": self.joined_at,
            "stats": {
                "tournaments_played": self.tournaments_played,
                "tournaments_won": self.tournaments_won,
                "total_earnings": to_rupees(self.total_earnings),
            },
        }


class UserService:
    """Service for user profile operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_user(self, user_id: str) -> User:
        """Get user by ID.

        Raises:
            UserError: USER_NOT_FOUND
        """
        user = await self.session.get(User, user_id)
        if user is None:
            raise UserError(ErrorCode.USER_NOT_FOUND, "User not found", {"user_id": user_id})
        return user

    async def update_profile(self, user_id: str, changes: dict[str, Any]) -> User:
        """Update profile fields.

        Only keys present in ``changes`` are touched. An empty string clears
        the field.

        Args:
            user_id: User ID
            changes: Subset of full_name, phone, gaming_id, avatar_url

        Returns:
            Updated User object

        Raises:
            UserError: USER_NOT_FOUND, INVALID_INPUT
        """
        user = await self.get_user(user_id)

        unknown = set(changes) - set(PROFILE_FIELDS)
        if unknown:
            raise UserError(
                ErrorCode.INVALID_INPUT,
                "Unknown profile fields",
                {"fields": sorted(unknown)},
            )

        cleaned: dict[str, str | None] = {}
        for name, value in changes.items():
            value = (value or "").strip() or None
            if value is not None and len(value) > PROFILE_FIELDS[name]:
                raise UserError(
                    ErrorCode.INVALID_INPUT,
                    f"{name} is too long",
                    {"field": name, "max_length": PROFILE_FIELDS[name]},
                )
            cleaned[name] = value

        phone = cleaned.get("phone")
        if phone is not None and not MOBILE_PATTERN.match(phone):
            raise UserError(
                ErrorCode.INVALID_INPUT,
                "Please enter a valid 10-digit mobile number",
                {"field": "phone"},
            )

        for name, value in cleaned.items():
            setattr(user, name, value)
        await self.session.flush()

        logger.info(f"Profile updated: {user.id[:8]}... fields={sorted(cleaned)}")
        return user

    async def get_public_profile(self, user_id: str) -> PublicProfile:
        """Public view of a user with tournament stats.

        ``tournaments_played`` counts confirmed registrations,
        ``tournaments_won`` counts distinct tournaments with a prize credit.

        Raises:
            UserError: USER_NOT_FOUND
        """
        user = await self.get_user(user_id)

        played = await self.session.scalar(
            select(func.count()).select_from(Registration).where(
                Registration.user_id == user_id,
                Registration.status == RegistrationStatus.CONFIRMED,
            )
        )
        prizes = (
            await self.session.execute(
                select(
                    func.count(func.distinct(Transaction.tournament_id)),
                    func.coalesce(func.sum(Transaction.amount), 0),
                ).where(
                    Transaction.user_id == user_id,
                    Transaction.tx_type == TransactionType.PRIZE_WIN,
                    Transaction.status == TransactionStatus.COMPLETED,
                )
            )
        ).one()

        return PublicProfile(
            user_id=user.id,
            username=user.username,
            full_name=user.full_name,
            gaming_id=user.gaming_id,
            avatar_url=user.avatar_url,
            joined_at=user.created_at,
            tournaments_played=played or 0,
            tournaments_won=prizes[0] or 0,
            total_earnings=prizes[1] or 0,
        )

    async def list_users(
        self,
        admin: Principal,
        *,
        search: str | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[User], int]:
        """All accounts, newest first. ``search`` matches username or email."""
        admin.require_admin()
        filters = []
        if search:
            pattern = f"%{search.strip()}%"
            filters.append(or_(User.username.ilike(pattern), User.email.ilike(pattern)))

        page = max(page, 1)
        limit = min(max(limit, 1), 100)
        total = await self.session.scalar(
            select(func.count()).select_from(User).where(*filters)
        )
        result = await self.session.execute(
            select(User)
            .where(*filters)
            .order_by(User.created_at.desc(), User.id)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result.scalars().all()), total or 0
