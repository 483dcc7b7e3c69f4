"""Test fixtures for API integration tests.

Requests run against the real application with the database, Redis, notifier
and upload storage dependencies overridden. Each request gets its own session
that commits or rolls back exactly like production ``get_db``.
"""

from collections.abc import AsyncGenerator, Callable
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.user import User
from app.services.notifications import LoggingNotifier, get_notifier
from app.services.storage import LocalFileStorage, get_storage
from app.utils.db import get_db
from app.utils.redis_client import get_redis
from app.utils.security import create_access_token


# =============================================================================
# FastAPI App & Client Fixtures
# =============================================================================


@pytest.fixture
def fake_redis() -> AsyncMock:
    return AsyncMock()


@pytest_asyncio.fixture
async def test_app(
    session_factory: async_sessionmaker[AsyncSession],
    fake_redis: AsyncMock,
    tmp_path,
):
    """The production app with infrastructure dependencies overridden."""
    from app.main import app

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def override_get_redis():
        yield fake_redis

    upload_root = tmp_path / "uploads"
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis
    app.dependency_overrides[get_notifier] = LoggingNotifier
    app.dependency_overrides[get_storage] = lambda: LocalFileStorage(upload_root)

    yield app

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def test_client(test_app) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client for testing."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


# =============================================================================
# User & Auth Fixtures
# =============================================================================


@pytest.fixture
def auth_headers() -> Callable[[User], dict[str, str]]:
    """Build bearer headers for a user."""

    def _headers(user: User) -> dict[str, str]:
        token = create_access_token(user.id, is_admin=user.is_admin)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest_asyncio.fixture
async def api_admin(db_session: AsyncSession, admin_user: User) -> User:
    """Committed admin account (visible to request sessions)."""
    await db_session.commit()
    return admin_user


@pytest_asyncio.fixture
async def api_player(db_session: AsyncSession, player: User) -> User:
    """Committed player account."""
    await db_session.commit()
    return player


@pytest.fixture
def admin_headers(api_admin: User, auth_headers) -> dict[str, str]:
    return auth_headers(api_admin)


@pytest.fixture
def player_headers(api_player: User, auth_headers) -> dict[str, str]:
    return auth_headers(api_player)