"""Shared test fixtures.

Every test gets its own SQLite database file so SAVEPOINT handling and
conditional UPDATEs run against a real engine.
"""

import os

# Settings are read at import time by app.utils.db; set them before any app import.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")
os.environ.setdefault("JWT_SECRET_KEY", "arena-test-signing-key-7f3a9c2e4b1d8f6a0e5c")
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from itertools import count
from typing import Any

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from app.models.tournament import Game, Tournament, TournamentType
from app.models.user import User
from app.services.auth import Principal
from app.services.tournament import TournamentService
from app.services.wallet import WalletService
from app.utils.db import build_engine, build_session_factory, create_all
from app.utils.security import hash_password

_sequence = count(1)


class FakeClock:
    """Mutable UTC clock for time-dependent services."""

    def __init__(self, now: datetime | None = None):
        self.now = now or datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: Any) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def db_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'arena.db'}")
    await create_all(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return build_session_factory(db_engine)


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """A session used like one request: tests flush, and may commit."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# =============================================================================
# Users
# =============================================================================


@pytest.fixture
def make_user(db_session: AsyncSession) -> Callable[..., Awaitable[User]]:
    async def _make_user(*, is_admin: bool = False, is_active: bool = True, **fields: Any) -> User:
        n = next(_sequence)
        user = User(
            username=fields.pop("username", f"player{n}"),
            email=fields.pop("email", f"player{n}@example.com"),
            password_hash=hash_password(fields.pop("password", "Passw0rd!")),
            is_admin=is_admin,
            is_active=is_active,
        )
        db_session.add(user)
        await db_session.flush()
        return user

    return _make_user


@pytest_asyncio.fixture
async def admin_user(make_user) -> User:
    return await make_user(is_admin=True, username="arena_admin", email="admin@example.com")


@pytest.fixture
def admin(admin_user: User) -> Principal:
    return Principal(user_id=admin_user.id, is_admin=True)


@pytest_asyncio.fixture
async def player(make_user) -> User:
    return await make_user()


# =============================================================================
# Money helpers
# =============================================================================


@pytest.fixture
def fund_wallet(
    db_session: AsyncSession,
    admin: Principal,
) -> Callable[..., Awaitable[None]]:
    """Credit a wallet through the ledger so reconciliation stays balanced.

    ``main`` goes through deposit approval, ``winning`` through a prize
    credit. Amounts are rupees.
    """

    async def _fund(user_id: str, *, main: int = 0, winning: int = 0) -> None:
        wallet = WalletService(db_session)
        await wallet.get_or_create_wallet(user_id)
        remaining = main
        while remaining > 0:
            chunk = min(remaining, 1000)
            tx = await wallet.request_deposit(user_id, chunk * 100, f"UPI{next(_sequence):08d}")
            await wallet.approve_deposit(tx.transaction_id, admin)
            remaining -= chunk
        if winning:
            await wallet.credit_prize(
                user_id, winning * 100, tournament_id="seed-tournament", rank=1
            )

    return _fund


# =============================================================================
# Tournaments
# =============================================================================


@pytest.fixture
def make_tournament(
    db_session: AsyncSession,
    admin: Principal,
) -> Callable[..., Awaitable[Tournament]]:
    """Create an open tournament. Fees and prize pool are rupees."""

    async def _make_tournament(
        *,
        entry_fee: int | Decimal = 50,
        prize_pool: int | Decimal = 500,
        max_players: int = 10,
        start_in: timedelta = timedelta(hours=2),
        clock: Callable[[], datetime] | None = None,
    ) -> Tournament:
        now = clock() if clock else datetime.now(timezone.utc)
        service = TournamentService(db_session, clock=clock) if clock else TournamentService(db_session)
        return await service.create(
            {
                "name": f"Weekend Cup {next(_sequence)}",
                "tournament_type": TournamentType.SOLO_CUSTOM,
                "game": Game.FREEFIRE,
                "entry_fee": int(Decimal(entry_fee) * 100),
                "prize_pool": int(Decimal(prize_pool) * 100),
                "max_players": max_players,
                "start_time": now + start_in,
            },
            admin,
        )

    return _make_tournament
