"""Password reset with single-use tokens kept in Redis.

Tokens live under ``password_reset:{token}`` with a TTL; Redis expiry
replaces any in-process cleanup.
"""

import logging

from redis.asyncio import Redis
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings, get_settings
from app.models.user import User
from app.services.notifications import NotificationError, Notifier
from app.utils.errors import ErrorCode, ServiceError
from app.utils.security import generate_reset_token, hash_password

logger = logging.getLogger(__name__)

TOKEN_KEY_PREFIX = "password_reset:"


class PasswordResetError(ServiceError):
    """Password reset error."""


class PasswordResetService:
    def __init__(
        self,
        session: AsyncSession,
        redis: Redis,
        notifier: Notifier,
        settings: Settings | None = None,
    ):
        self.session = session
        self.redis = redis
        self.notifier = notifier
        self.settings = settings or get_settings()

    def reset_link(self, token: str) -> str:
        return f"{self.settings.frontend_url.rstrip('/')}/reset-password/{token}"

    async def request_reset(self, email: str) -> str | None:
        """Issue a reset token for ``email`` and send the link.

        Unknown or inactive accounts are a silent no-op so the endpoint does
        not reveal which emails are registered.

        Returns:
            The issued token, or None when nothing was sent
        """
        result = await self.session.execute(
            select(User).where(User.email == email.strip())
        )
        user = result.scalar_one_or_none()
        if user is None or not user.is_active:
            logger.info("Password reset requested for unknown account")
            return None

        token = generate_reset_token()
        await self.redis.setex(
            f"{TOKEN_KEY_PREFIX}{token}",
            self.settings.password_reset_ttl_seconds,
            user.id,
        )
        try:
            await self.notifier.send(
                [user.id],
                "Password reset",
                f"Reset your password: {self.reset_link(token)}",
                {"kind": "password_reset", "email": user.email},
            )
        except NotificationError as e:
            await self.redis.delete(f"{TOKEN_KEY_PREFIX}{token}")
            logger.error(f"Password reset delivery failed: user={user.id[:8]}... error={e}")
            raise PasswordResetError(
                ErrorCode.INTERNAL_ERROR,
                "Could not send the password reset link",
            ) from e

        logger.info(f"Password reset issued: user={user.id[:8]}...")
        return token

    async def reset_password(self, token: str, new_password: str) -> None:
        """Consume ``token`` and set a new password.

        Raises:
            PasswordResetError: WEAK_PASSWORD, INVALID_TOKEN
        """
        if len(new_password) < self.settings.password_min_length:
            raise PasswordResetError(
                ErrorCode.WEAK_PASSWORD,
                f"Password must be at least {self.settings.password_min_length} characters",
            )

        user_id = await self.redis.getdel(f"{TOKEN_KEY_PREFIX}{token}")
        if not user_id:
            raise PasswordResetError(
                ErrorCode.INVALID_TOKEN,
                "Reset token is invalid or has expired",
            )

        user = await self.session.get(User, user_id)
        if user is None or not user.is_active:
            raise PasswordResetError(
                ErrorCode.INVALID_TOKEN,
                "Reset token is invalid or has expired",
            )

        user.password_hash = hash_password(new_password)
        await self.session.flush()
        logger.info(f"Password reset completed: user={user.id[:8]}...")
