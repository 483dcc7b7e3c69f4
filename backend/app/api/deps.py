"""API dependencies for authentication and common utilities."""

from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from app.logging_config import bind_context
from app.middleware.sentry import set_user_context
from app.models.user import User
from app.services.auth import Principal
from app.services.notifications import Notifier, get_notifier
from app.services.storage import LocalFileStorage, get_storage
from app.utils.db import get_db
from app.utils.errors import AuthError, ErrorCode
from app.utils.redis_client import get_redis
from app.utils.security import verify_access_token

# HTTP Bearer security scheme
security = HTTPBearer(auto_error=False)


async def get_current_principal(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Principal:
    """Resolve the bearer token into a verified principal.

    The admin tier is read from the user row, not trusted from the token,
    so revoking admin rights takes effect immediately.

    Raises:
        AuthError: AUTH_REQUIRED for a missing/invalid token or unknown,
            deactivated user
    """
    if not credentials:
        raise AuthError(ErrorCode.AUTH_REQUIRED, "Authentication required")

    payload = verify_access_token(credentials.credentials)
    user = await db.get(User, payload["sub"])
    if user is None or not user.is_active:
        raise AuthError(ErrorCode.AUTH_REQUIRED, "Account not found or deactivated")

    bind_context(user_id=user.id)
    set_user_context(user.id, is_admin=user.is_admin)
    return Principal(user_id=user.id, is_admin=user.is_admin)


async def get_admin_principal(
    principal: Annotated[Principal, Depends(get_current_principal)],
) -> Principal:
    """Require the elevated admin tier.

    Raises:
        AuthError: UNAUTHORIZED for regular users
    """
    principal.require_admin()
    return principal


# Type aliases for cleaner annotations
DbSession = Annotated[AsyncSession, Depends(get_db)]
CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]
AdminPrincipal = Annotated[Principal, Depends(get_admin_principal)]
RedisClient = Annotated[Redis, Depends(get_redis)]
Storage = Annotated[LocalFileStorage, Depends(get_storage)]
NotifierDep = Annotated[Notifier, Depends(get_notifier)]
