"""Authentication service and the request principal."""

from dataclasses import dataclass
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User
from app.utils.errors import AuthError, ErrorCode
from app.utils.security import create_access_token, hash_password, verify_password


@dataclass(frozen=True)
class Principal:
    """Verified caller identity supplied by the auth layer."""

    user_id: str
    is_admin: bool = False

    def require_admin(self) -> None:
        if not self.is_admin:
            raise AuthError(ErrorCode.UNAUTHORIZED, "Admin access required")


class AuthService:
    """Service for account registration and login."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def register(self, email: str, password: str, username: str) -> dict[str, Any]:
        """Register a new user.

        Raises:
            AuthError: If email or username already exists
        """
        existing = await self.db.execute(select(User).where(User.email == email))
        if existing.scalar_one_or_none():
            raise AuthError(ErrorCode.EMAIL_EXISTS, "Email already registered")

        existing = await self.db.execute(select(User).where(User.username == username))
        if existing.scalar_one_or_none():
            raise AuthError(ErrorCode.USERNAME_EXISTS, "Username already taken")

        user = User(
            email=email,
            username=username,
            password_hash=hash_password(password),
        )
        self.db.add(user)
        await self.db.flush()

        return self._token_response(user)

    async def login(self, email: str, password: str) -> dict[str, Any]:
        """Authenticate by email and password.

        Raises:
            AuthError: INVALID_CREDENTIALS for unknown email, wrong password or
                a deactivated account
        """
        result = await self.db.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()

        if not user or not verify_password(password, user.password_hash):
            raise AuthError(ErrorCode.INVALID_CREDENTIALS, "Invalid email or password")
        if not user.is_active:
            raise AuthError(ErrorCode.INVALID_CREDENTIALS, "Account is deactivated")

        return self._token_response(user)

    async def get_user_by_id(self, user_id: str) -> User | None:
        return await self.db.get(User, user_id)

    @staticmethod
    def _token_response(user: User) -> dict[str, Any]:
        return {
            "user": {
                "id": user.id,
                "username": user.username,
                "email": user.email,
                "is_admin": user.is_admin,
            },
            "access_token": create_access_token(user.id, is_admin=user.is_admin),
            "token_type": "bearer",
        }
