"""Property tests: wallet operation sequences keep the ledger balanced, and
concurrent seat claims never overfill a tournament.

Each example builds its own database; hypothesis does not mix with
function-scoped fixtures. The concurrency property needs a database file so
every session holds its own connection.
"""

import asyncio
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from app.models.registration import Registration, RegistrationStatus
from app.models.tournament import Game, Tournament, TournamentType
from app.models.user import User
from app.models.wallet import Transaction, TransactionType
from app.services.auth import Principal
from app.services.registration import RegistrationError, RegistrationService
from app.services.tournament import TournamentService
from app.services.wallet import WalletError, WalletService
from app.utils.db import build_engine, build_session_factory, create_all

ADMIN = Principal(user_id="ledger-admin", is_admin=True)

operations = st.one_of(
    st.tuples(st.just("deposit"), st.integers(min_value=1_000, max_value=100_000)),
    st.tuples(st.just("approve_deposit"), st.none()),
    st.tuples(st.just("reject_deposit"), st.none()),
    st.tuples(st.just("withdraw"), st.integers(min_value=1_000, max_value=5_000)),
    st.tuples(st.just("approve_withdrawal"), st.none()),
    st.tuples(st.just("reject_withdrawal"), st.none()),
    st.tuples(st.just("entry_fee"), st.integers(min_value=1, max_value=30_000)),
    st.tuples(st.just("refund"), st.none()),
    st.tuples(st.just("prize"), st.integers(min_value=1, max_value=50_000)),
)


class SteppingClock:
    """Advances a day per call so the withdrawal throttle never interferes."""

    def __init__(self):
        self.now = datetime(2026, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now += timedelta(hours=25)
        return self.now


async def _apply(
    service: WalletService,
    user_id: str,
    op: str,
    amount: int | None,
    pending_deposits: list[Transaction],
    pending_withdrawals: list[Transaction],
    fees: list[Transaction],
) -> None:
    if op == "deposit":
        pending_deposits.append(await service.request_deposit(user_id, amount, "UPI-PROP"))
    elif op == "approve_deposit" and pending_deposits:
        await service.approve_deposit(pending_deposits.pop().transaction_id, ADMIN)
    elif op == "reject_deposit" and pending_deposits:
        await service.reject_deposit(pending_deposits.pop().transaction_id, ADMIN)
    elif op == "withdraw":
        pending_withdrawals.append(
            await service.request_withdrawal(user_id, amount, upi_id="prop@upi")
        )
    elif op == "approve_withdrawal" and pending_withdrawals:
        await service.approve_withdrawal(pending_withdrawals.pop().transaction_id, ADMIN)
    elif op == "reject_withdrawal" and pending_withdrawals:
        await service.reject_withdrawal(pending_withdrawals.pop().transaction_id, ADMIN)
    elif op == "entry_fee":
        fees.append(
            await service.debit_entry_fee(
                user_id, amount, tournament_id="prop-t", registration_id="prop-r"
            )
        )
    elif op == "refund" and fees:
        fee = fees.pop()
        await service.credit_refund(
            user_id, fee.amount, tournament_id="prop-t", registration_id="prop-r", original=fee
        )
    elif op == "prize":
        await service.credit_prize(user_id, amount, tournament_id="prop-t", rank=1)


@pytest.mark.asyncio
@settings(
    max_examples=30,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow],
)
@given(ops=st.lists(operations, max_size=20))
async def test_ledger_sum_equals_wallet_after_any_operation_sequence(ops):
    engine = build_engine("sqlite+aiosqlite://")
    await create_all(engine)
    try:
        async with build_session_factory(engine)() as session:
            user = User(username="prop_player", email="prop@example.com", password_hash="x")
            session.add(user)
            await session.flush()

            service = WalletService(session, clock=SteppingClock())
            await service.get_or_create_wallet(user.id)
            pending_deposits: list[Transaction] = []
            pending_withdrawals: list[Transaction] = []
            fees: list[Transaction] = []

            for op, amount in ops:
                try:
                    await _apply(
                        service, user.id, op, amount,
                        pending_deposits, pending_withdrawals, fees,
                    )
                except WalletError:
                    # Rejected operations must leave no trace.
                    pass

                wallet = await service.find_wallet(user.id)
                assert wallet.main_balance >= 0
                assert wallet.winning_balance >= 0
                assert (await service.reconcile(user.id)).balanced
    finally:
        await engine.dispose()


async def _seed_contest(session, players: int, seats: int, fee: int) -> tuple[str, list[tuple[str, str]]]:
    """An open tournament plus ``players`` funded users with pending registrations."""
    tournament = await TournamentService(session).create(
        {
            "name": "Concurrency Cup",
            "tournament_type": TournamentType.SOLO_CUSTOM,
            "game": Game.FREEFIRE,
            "entry_fee": fee,
            "prize_pool": fee * seats,
            "max_players": seats,
            "start_time": datetime.now(timezone.utc) + timedelta(hours=2),
        },
        ADMIN,
    )
    wallets = WalletService(session)
    registrations = RegistrationService(session)
    pending = []
    for n in range(players):
        user = User(username=f"racer{n}", email=f"racer{n}@example.com", password_hash="x")
        session.add(user)
        await session.flush()
        deposit = await wallets.request_deposit(user.id, fee, f"UPI-RACE-{n}")
        await wallets.approve_deposit(deposit.transaction_id, ADMIN)
        registration = await registrations.register(tournament.id, user.id, f"FF{n}", f"Racer {n}")
        pending.append((registration.id, user.id))
    await session.commit()
    return tournament.id, pending


async def _pay_in_own_session(factory, registration_id: str, user_id: str) -> bool:
    async with factory() as session:
        try:
            await RegistrationService(session).process_payment(registration_id, user_id)
            await session.commit()
        except (RegistrationError, WalletError, OperationalError):
            # Refused, or lost the SQLite write lock: either way nothing applied.
            await session.rollback()
            return False
    return True


@pytest.mark.asyncio
@settings(
    max_examples=10,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow],
)
@given(
    seats=st.integers(min_value=2, max_value=4),
    extra=st.integers(min_value=1, max_value=4),
    fee=st.integers(min_value=1_000, max_value=50_000),
)
async def test_concurrent_payments_never_exceed_capacity(seats, extra, fee):
    with tempfile.TemporaryDirectory() as tmp:
        engine = build_engine(f"sqlite+aiosqlite:///{Path(tmp) / 'race.db'}")
        await create_all(engine)
        factory = build_session_factory(engine)
        try:
            async with factory() as session:
                tournament_id, pending = await _seed_contest(session, seats + extra, seats, fee)

            outcomes = await asyncio.gather(
                *(_pay_in_own_session(factory, reg_id, user_id) for reg_id, user_id in pending)
            )

            async with factory() as session:
                tournament = await session.get(Tournament, tournament_id)
                confirmed = await session.scalar(
                    select(func.count()).select_from(Registration).where(
                        Registration.tournament_id == tournament_id,
                        Registration.status == RegistrationStatus.CONFIRMED,
                    )
                )
                debited = await session.scalar(
                    select(func.coalesce(func.sum(Transaction.amount), 0)).where(
                        Transaction.tournament_id == tournament_id,
                        Transaction.tx_type == TransactionType.ENTRY_FEE,
                    )
                )

                assert tournament.registered_players <= tournament.max_players
                assert tournament.registered_players == confirmed == sum(outcomes)
                assert debited == fee * confirmed
                service = WalletService(session)
                for _, user_id in pending:
                    assert (await service.reconcile(user_id)).balanced
        finally:
            await engine.dispose()
