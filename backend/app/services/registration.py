"""Registration Engine.

Two-phase enrollment: ``register`` records intent without touching money or
capacity, ``process_payment`` charges the fee and claims a seat in one unit of
work. Abandoned registrations therefore never hold seats.
"""

import logging
from typing import Any

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.base import utcnow
from app.models.registration import (
    PaymentStatus,
    Registration,
    RegistrationStatus,
    TeamType,
)
from app.models.tournament import Tournament, TournamentStatus
from app.models.transitions import PAYMENT, REGISTRATION
from app.services.auth import Principal
from app.services.wallet import WalletService
from app.utils.errors import ErrorCode, ServiceError
from app.utils.money import to_rupees

logger = logging.getLogger(__name__)


class RegistrationError(ServiceError):
    """Registration operation error."""


class RegistrationService:
    """Service for tournament registrations."""

    def __init__(self, session: AsyncSession, wallet: WalletService | None = None):
        self.session = session
        self.wallet = wallet or WalletService(session)

    async def get(self, registration_id: str) -> Registration:
        result = await self.session.execute(
            select(Registration)
            .where(Registration.id == registration_id)
            .execution_options(populate_existing=True)
        )
        registration = result.scalar_one_or_none()
        if registration is None:
            raise RegistrationError(
                ErrorCode.REGISTRATION_NOT_FOUND,
                f"Registration not found: {registration_id}",
            )
        return registration

    async def _get_tournament(self, tournament_id: str) -> Tournament:
        result = await self.session.execute(
            select(Tournament)
            .where(Tournament.id == tournament_id)
            .execution_options(populate_existing=True)
        )
        tournament = result.scalar_one_or_none()
        if tournament is None:
            raise RegistrationError(
                ErrorCode.TOURNAMENT_NOT_FOUND,
                f"Tournament not found: {tournament_id}",
            )
        return tournament

    async def register(
        self,
        tournament_id: str,
        user_id: str,
        player_id: str,
        player_name: str,
        team_type: TeamType = TeamType.SOLO,
    ) -> Registration:
        """Create a pending registration.

        Raises:
            RegistrationError: TOURNAMENT_NOT_FOUND, TOURNAMENT_CLOSED,
                TOURNAMENT_FULL, ALREADY_REGISTERED, INSUFFICIENT_BALANCE
        """
        player_id = player_id.strip()
        player_name = player_name.strip()
        if not player_id or not player_name:
            raise RegistrationError(
                ErrorCode.INVALID_INPUT,
                "Player id and player name are required",
            )

        tournament = await self._get_tournament(tournament_id)
        if tournament.status != TournamentStatus.OPEN:
            raise RegistrationError(
                ErrorCode.TOURNAMENT_CLOSED,
                "Tournament is not open for registration",
                {"status": tournament.status.value},
            )
        if tournament.is_full:
            raise RegistrationError(ErrorCode.TOURNAMENT_FULL, "Tournament is full")

        existing = await self.session.execute(
            select(Registration).where(
                Registration.tournament_id == tournament_id,
                or_(
                    Registration.user_id == user_id,
                    Registration.player_id == player_id,
                ),
            )
        )
        if existing.scalars().first() is not None:
            raise RegistrationError(
                ErrorCode.ALREADY_REGISTERED,
                "Already registered for this tournament",
            )

        balance = await self.wallet.get_balance(user_id)
        if balance.total < tournament.entry_fee:
            raise RegistrationError(
                ErrorCode.INSUFFICIENT_BALANCE,
                "Insufficient wallet balance for entry fee",
                {"required": to_rupees(tournament.entry_fee), "available": to_rupees(balance.total)},
            )

        registration = Registration(
            tournament_id=tournament_id,
            user_id=user_id,
            player_id=player_id,
            player_name=player_name,
            team_type=TeamType(team_type),
            status=RegistrationStatus.PENDING,
            payment_status=PaymentStatus.PENDING,
            entry_fee_paid=0,
        )
        try:
            async with self.session.begin_nested():
                self.session.add(registration)
        except IntegrityError:
            raise RegistrationError(
                ErrorCode.ALREADY_REGISTERED,
                "Already registered for this tournament",
            ) from None

        logger.info(
            f"Registration created: {registration.id[:8]}... "
            f"tournament={tournament_id[:8]}... user={user_id[:8]}..."
        )
        return registration

    async def _claim_seat(self, tournament_id: str) -> None:
        """Atomic bounded increment of the seat counter."""
        result = await self.session.execute(
            update(Tournament)
            .where(
                Tournament.id == tournament_id,
                Tournament.status == TournamentStatus.OPEN,
                Tournament.registered_players < Tournament.max_players,
            )
            .values(registered_players=Tournament.registered_players + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            return

        tournament = await self._get_tournament(tournament_id)
        if tournament.status != TournamentStatus.OPEN:
            raise RegistrationError(
                ErrorCode.TOURNAMENT_CLOSED,
                "Tournament is not open for registration",
            )
        raise RegistrationError(ErrorCode.TOURNAMENT_FULL, "Tournament is full")

    async def _release_seat(self, tournament_id: str) -> None:
        await self.session.execute(
            update(Tournament)
            .where(Tournament.id == tournament_id, Tournament.registered_players > 0)
            .values(registered_players=Tournament.registered_players - 1)
            .execution_options(synchronize_session=False)
        )

    async def process_payment(self, registration_id: str, user_id: str) -> Registration:
        """Charge the entry fee, claim a seat and confirm the registration.

        Seat claim, wallet debit, fee transaction and status flip happen in
        one SAVEPOINT; any failure leaves none of them applied.

        Raises:
            RegistrationError: FORBIDDEN, TOURNAMENT_FULL, TOURNAMENT_CLOSED,
                INVALID_STATE
            WalletError: INSUFFICIENT_BALANCE
        """
        registration = await self.get(registration_id)
        if registration.user_id != user_id:
            raise RegistrationError(
                ErrorCode.FORBIDDEN,
                "Registration belongs to another user",
            )
        next_status = REGISTRATION.next(registration.status, "confirm")
        next_payment = PAYMENT.next(registration.payment_status, "pay")

        tournament = await self._get_tournament(registration.tournament_id)
        fee = tournament.entry_fee

        async with self.session.begin_nested():
            await self._claim_seat(tournament.id)

            tx_ref = None
            if fee > 0:
                tx = await self.wallet.debit_entry_fee(
                    user_id,
                    fee,
                    tournament_id=tournament.id,
                    registration_id=registration.id,
                )
                tx_ref = tx.transaction_id

            result = await self.session.execute(
                update(Registration)
                .where(
                    Registration.id == registration.id,
                    Registration.status.in_(REGISTRATION.sources("confirm")),
                    Registration.payment_status.in_(PAYMENT.sources("pay")),
                )
                .values(
                    status=next_status,
                    payment_status=next_payment,
                    entry_fee_paid=fee,
                    transaction_id=tx_ref,
                    updated_at=utcnow(),
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise RegistrationError(
                    ErrorCode.INVALID_STATE,
                    "Registration was processed concurrently",
                )

        await self.session.refresh(registration)
        logger.info(
            f"Registration paid: {registration.id[:8]}... fee={fee} "
            f"tx={registration.transaction_id}"
        )
        return registration

    async def cancel(self, registration_id: str, admin: Principal) -> Registration:
        """Cancel a registration; frees its seat only if it held one."""
        admin.require_admin()
        registration = await self.get(registration_id)
        if registration.status == RegistrationStatus.CANCELLED:
            raise RegistrationError(
                ErrorCode.ALREADY_CANCELLED,
                "Registration is already cancelled",
            )

        previous = registration.status
        target = REGISTRATION.next(previous, "cancel")

        async with self.session.begin_nested():
            result = await self.session.execute(
                update(Registration)
                .where(
                    Registration.id == registration.id,
                    Registration.status == previous,
                )
                .values(status=target, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise RegistrationError(
                    ErrorCode.INVALID_STATE,
                    "Registration was modified concurrently",
                )
            if previous == RegistrationStatus.CONFIRMED:
                await self._release_seat(registration.tournament_id)

        await self.session.refresh(registration)
        logger.info(
            f"Registration cancelled: {registration.id[:8]}... was={previous.value}"
        )
        return registration

    async def refund(self, registration_id: str, admin: Principal) -> Registration:
        """Return ``entry_fee_paid`` for a cancelled, paid registration. Once.

        Raises:
            RegistrationError: NOT_CANCELLED, NOTHING_TO_REFUND
        """
        admin.require_admin()
        registration = await self.get(registration_id)
        if registration.status != RegistrationStatus.CANCELLED:
            raise RegistrationError(
                ErrorCode.NOT_CANCELLED,
                "Only cancelled registrations can be refunded",
            )
        if not PAYMENT.can(registration.payment_status, "refund"):
            raise RegistrationError(
                ErrorCode.NOTHING_TO_REFUND,
                "No payment to refund",
                {"payment_status": registration.payment_status.value},
            )

        async with self.session.begin_nested():
            result = await self.session.execute(
                update(Registration)
                .where(
                    Registration.id == registration.id,
                    Registration.payment_status.in_(PAYMENT.sources("refund")),
                )
                .values(
                    payment_status=PAYMENT.next(registration.payment_status, "refund"),
                    updated_at=utcnow(),
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise RegistrationError(
                    ErrorCode.NOTHING_TO_REFUND,
                    "Registration was refunded concurrently",
                )

            if registration.entry_fee_paid > 0:
                original = None
                if registration.transaction_id:
                    original = await self.wallet.get_transaction(registration.transaction_id)
                await self.wallet.credit_refund(
                    registration.user_id,
                    registration.entry_fee_paid,
                    tournament_id=registration.tournament_id,
                    registration_id=registration.id,
                    original=original,
                )

        await self.session.refresh(registration)
        logger.info(
            f"Registration refunded: {registration.id[:8]}... "
            f"amount={registration.entry_fee_paid}"
        )
        return registration

    # =========================================================================
    # Queries
    # =========================================================================

    async def my_registrations(self, user_id: str) -> list[tuple[Registration, Tournament]]:
        result = await self.session.execute(
            select(Registration, Tournament)
            .join(Tournament, Tournament.id == Registration.tournament_id)
            .where(Registration.user_id == user_id)
            .order_by(Registration.registered_at.desc())
        )
        return [(r, t) for r, t in result.all()]

    async def check_registration(self, tournament_id: str, user_id: str) -> Registration | None:
        result = await self.session.execute(
            select(Registration).where(
                Registration.tournament_id == tournament_id,
                Registration.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def is_confirmed(self, tournament_id: str, user_id: str) -> bool:
        registration = await self.check_registration(tournament_id, user_id)
        return (
            registration is not None
            and registration.status == RegistrationStatus.CONFIRMED
        )

    async def confirmed_by_player(self, tournament_id: str) -> dict[str, Registration]:
        """Confirmed registrations keyed by player id."""
        result = await self.session.execute(
            select(Registration).where(
                Registration.tournament_id == tournament_id,
                Registration.status == RegistrationStatus.CONFIRMED,
            )
        )
        return {r.player_id: r for r in result.scalars().all()}

    async def confirmed_user_ids(self, tournament_id: str) -> list[str]:
        result = await self.session.execute(
            select(Registration.user_id).where(
                Registration.tournament_id == tournament_id,
                Registration.status == RegistrationStatus.CONFIRMED,
            )
        )
        return list(result.scalars().all())

    async def list_registrations(
        self,
        admin: Principal,
        *,
        tournament_id: str | None = None,
        status: RegistrationStatus | None = None,
        payment_status: PaymentStatus | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[Registration], int]:
        admin.require_admin()
        filters = []
        if tournament_id is not None:
            filters.append(Registration.tournament_id == tournament_id)
        if status is not None:
            filters.append(Registration.status == status)
        if payment_status is not None:
            filters.append(Registration.payment_status == payment_status)

        page = max(page, 1)
        limit = min(max(limit, 1), 100)
        total = await self.session.scalar(
            select(func.count()).select_from(Registration).where(*filters)
        )
        result = await self.session.execute(
            select(Registration)
            .where(*filters)
            .order_by(Registration.registered_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result.scalars().all()), total or 0

    async def stats(self, admin: Principal) -> dict[str, Any]:
        admin.require_admin()
        result = await self.session.execute(
            select(Registration.status, func.count()).group_by(Registration.status)
        )
        by_status = {status: count for status, count in result.all()}

        revenue = await self.session.scalar(
            select(func.coalesce(func.sum(Registration.entry_fee_paid), 0)).where(
                Registration.status == RegistrationStatus.CONFIRMED,
                Registration.payment_status == PaymentStatus.PAID,
            )
        )
        return {
            "total": sum(by_status.values()),
            "confirmed": by_status.get(RegistrationStatus.CONFIRMED, 0),
            "pending": by_status.get(RegistrationStatus.PENDING, 0),
            "cancelled": by_status.get(RegistrationStatus.CANCELLED, 0),
            "total_revenue": to_rupees(int(revenue or 0)),
        }
