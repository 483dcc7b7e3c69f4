"""Winner Settlement Engine.

Declares ranked winners for a completed tournament and pays them out through
the wallet ledger. Distribution is independent per winner: each payout runs
in its own SAVEPOINT, a failure is recorded in the summary instead of being
raised, and paid entries are marked on the declaration so a retry only
touches the outstanding ones.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.base import utcnow
from app.models.tournament import Tournament, TournamentStatus
from app.models.transitions import SETTLEMENT
from app.models.wallet import Transaction, TransactionStatus, TransactionType
from app.models.winner import MAX_RANK, SettlementStatus, WinnerDeclaration
from app.services.auth import Principal
from app.services.registration import RegistrationService
from app.services.wallet import WalletService
from app.utils.errors import ErrorCode, ServiceError
from app.utils.money import to_rupees

logger = logging.getLogger(__name__)


class SettlementError(ServiceError):
    """Winner settlement error."""


def payout_key(tournament_id: str, rank: int) -> str:
    """Idempotency key of the prize transaction for one rank."""
    return f"prize:{tournament_id}:{rank}"


@dataclass
class PayoutResult:
    """Outcome of one winner's payout attempt."""

    rank: int
    player_id: str
    user_id: str
    prize: int
    success: bool
    transaction_id: str | None = None
    error_code: str | None = None
    error: str | None = None
    already_paid: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "rank": self.rank,
            "player_id": self.player_id,
            "user_id": self.user_id,
            "prize": to_rupees(self.prize),
            "success": self.success,
            "transaction_id": self.transaction_id,
            "error_code": self.error_code,
            "error": self.error,
            "already_paid": self.already_paid,
        }


@dataclass
class SettlementSummary:
    tournament_id: str
    status: SettlementStatus
    results: list[PayoutResult] = field(default_factory=list)

    @property
    def all_paid(self) -> bool:
        return all(r.success for r in self.results)

    @property
    def paid_amount(self) -> int:
        return sum(r.prize for r in self.results if r.success and not r.already_paid)

    @property
    def failures(self) -> list[PayoutResult]:
        return [r for r in self.results if not r.success]

    def to_dict(self) -> dict[str, Any]:
        return {
            "tournament_id": self.tournament_id,
            "status": self.status.value,
            "all_paid": self.all_paid,
            "paid_amount": to_rupees(self.paid_amount),
            "results": [r.to_dict() for r in self.results],
        }


class SettlementService:
    """Winner declarations and prize distribution."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        wallet: WalletService | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session = session
        self.wallet = wallet or WalletService(session, clock=clock)
        self.registrations = RegistrationService(session, self.wallet)
        self._clock = clock

    # =========================================================================
    # Lookups
    # =========================================================================

    async def get_by_tournament(
        self,
        tournament_id: str,
        *,
        for_update: bool = False,
    ) -> WinnerDeclaration:
        stmt = (
            select(WinnerDeclaration)
            .where(WinnerDeclaration.tournament_id == tournament_id)
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        declaration = result.scalar_one_or_none()
        if declaration is None:
            raise SettlementError(
                ErrorCode.WINNER_NOT_FOUND,
                "No winners declared for this tournament yet",
            )
        return declaration

    async def get(self, declaration_id: str, admin: Principal) -> WinnerDeclaration:
        admin.require_admin()
        declaration = await self.session.get(
            WinnerDeclaration, declaration_id, populate_existing=True
        )
        if declaration is None:
            raise SettlementError(
                ErrorCode.WINNER_NOT_FOUND,
                f"Winner declaration not found: {declaration_id}",
            )
        return declaration

    async def _get_tournament(self, tournament_id: str) -> Tournament:
        tournament = await self.session.get(Tournament, tournament_id, populate_existing=True)
        if tournament is None:
            raise SettlementError(
                ErrorCode.TOURNAMENT_NOT_FOUND,
                f"Tournament not found: {tournament_id}",
            )
        return tournament

    # =========================================================================
    # Validation
    # =========================================================================

    async def _validate_winners(
        self,
        tournament: Tournament,
        winners: list[dict[str, Any]],
        total_prize: int | None,
    ) -> tuple[list[dict[str, Any]], int]:
        """Check ranks, prizes and registrations; resolve user ids.

        Returns:
            (normalized winner entries sorted by rank, total prize)
        """
        if not winners:
            raise SettlementError(ErrorCode.EMPTY_WINNERS, "At least one winner is required")

        ranks = [w.get("rank") for w in winners]
        if any(not isinstance(r, int) or not 1 <= r <= MAX_RANK for r in ranks):
            raise SettlementError(
                ErrorCode.INVALID_INPUT,
                f"Ranks must be between 1 and {MAX_RANK}",
            )
        if len(set(ranks)) != len(ranks):
            raise SettlementError(ErrorCode.INVALID_INPUT, "Ranks must be unique")

        player_ids = [str(w.get("player_id") or "").strip() for w in winners]
        if not all(player_ids) or len(set(player_ids)) != len(player_ids):
            raise SettlementError(
                ErrorCode.INVALID_INPUT,
                "Each winner needs a distinct player id",
            )

        prizes = [w.get("prize") for w in winners]
        if any(not isinstance(p, int) or p <= 0 for p in prizes):
            raise SettlementError(ErrorCode.INVALID_INPUT, "Prizes must be positive")

        prize_sum = sum(prizes)
        if total_prize is None:
            total_prize = prize_sum
        elif total_prize != prize_sum:
            raise SettlementError(
                ErrorCode.INVALID_INPUT,
                "Total prize must equal the sum of winner prizes",
                {"total_prize": to_rupees(total_prize), "sum": to_rupees(prize_sum)},
            )
        if total_prize > tournament.prize_pool:
            raise SettlementError(
                ErrorCode.PRIZE_EXCEEDS_POOL,
                "Total prize amount exceeds tournament prize pool",
                {
                    "total_prize": to_rupees(total_prize),
                    "prize_pool": to_rupees(tournament.prize_pool),
                },
            )

        confirmed = await self.registrations.confirmed_by_player(tournament.id)
        entries = []
        for winner, player_id in zip(winners, player_ids):
            registration = confirmed.get(player_id)
            if registration is None:
                raise SettlementError(
                    ErrorCode.PLAYER_NOT_REGISTERED,
                    f"Player {player_id} is not registered for this tournament",
                    {"player_id": player_id},
                )
            entries.append({
                "rank": winner["rank"],
                "player_id": player_id,
                "player_name": winner.get("player_name") or registration.player_name,
                "prize": winner["prize"],
                "user_id": registration.user_id,
                "paid": False,
                "transaction_id": None,
            })
        entries.sort(key=lambda e: e["rank"])
        return entries, total_prize

    # =========================================================================
    # Declaration
    # =========================================================================

    async def declare_winners(
        self,
        tournament_id: str,
        winners: list[dict[str, Any]],
        admin: Principal,
        total_prize: int | None = None,
    ) -> WinnerDeclaration:
        """Record the ranked winners of a completed tournament.

        Raises:
            SettlementError: TOURNAMENT_NOT_FOUND, TOURNAMENT_NOT_COMPLETED,
                ALREADY_DECLARED, EMPTY_WINNERS, PRIZE_EXCEEDS_POOL,
                PLAYER_NOT_REGISTERED, INVALID_INPUT
        """
        admin.require_admin()
        tournament = await self._get_tournament(tournament_id)
        if tournament.status != TournamentStatus.COMPLETED:
            raise SettlementError(
                ErrorCode.TOURNAMENT_NOT_COMPLETED,
                "Winners can only be declared for completed tournaments",
                {"status": tournament.status.value},
            )

        existing = await self.session.scalar(
            select(func.count())
            .select_from(WinnerDeclaration)
            .where(WinnerDeclaration.tournament_id == tournament_id)
        )
        if existing:
            raise SettlementError(
                ErrorCode.ALREADY_DECLARED,
                "Winners already declared for this tournament",
            )

        entries, total = await self._validate_winners(tournament, winners, total_prize)
        declaration = WinnerDeclaration(
            tournament_id=tournament_id,
            winners=entries,
            total_prize=total,
            declared_by=admin.user_id,
            declared_at=self._clock(),
            payment_status=SettlementStatus.PENDING,
        )
        try:
            async with self.session.begin_nested():
                self.session.add(declaration)
        except IntegrityError:
            raise SettlementError(
                ErrorCode.ALREADY_DECLARED,
                "Winners already declared for this tournament",
            ) from None

        logger.info(
            f"Winners declared: tournament={tournament_id[:8]}... "
            f"winners={len(entries)} total={total}"
        )
        return declaration

    async def update_declaration(
        self,
        tournament_id: str,
        winners: list[dict[str, Any]],
        admin: Principal,
        total_prize: int | None = None,
    ) -> WinnerDeclaration:
        """Replace the winner list of an unsettled declaration.

        Winners that were already paid must be kept unchanged.

        Raises:
            SettlementError: DECLARATION_LOCKED once settlement completed
        """
        admin.require_admin()
        declaration = await self.get_by_tournament(tournament_id)
        if not SETTLEMENT.can(declaration.payment_status, "edit"):
            raise SettlementError(
                ErrorCode.DECLARATION_LOCKED,
                "Cannot update winner declaration after prizes are distributed",
            )

        tournament = await self._get_tournament(tournament_id)
        entries, total = await self._validate_winners(tournament, winners, total_prize)

        by_key = {(e["rank"], e["player_id"]): e for e in entries}
        for paid in (w for w in declaration.winners if w.get("paid")):
            entry = by_key.get((paid["rank"], paid["player_id"]))
            if entry is None or entry["prize"] != paid["prize"]:
                raise SettlementError(
                    ErrorCode.INVALID_STATE,
                    f"Winner at rank {paid['rank']} was already paid and cannot change",
                    {"rank": paid["rank"], "player_id": paid["player_id"]},
                )
            entry["paid"] = True
            entry["transaction_id"] = paid.get("transaction_id")

        declaration.winners = entries
        declaration.total_prize = total
        declaration.payment_status = SETTLEMENT.next(declaration.payment_status, "edit")
        await self.session.flush()

        logger.info(
            f"Winner declaration updated: tournament={tournament_id[:8]}... "
            f"winners={len(entries)} total={total}"
        )
        return declaration

    # =========================================================================
    # Distribution
    # =========================================================================

    async def _existing_payout(self, tournament_id: str, winner: dict[str, Any]) -> Transaction | None:
        """The prize transaction already written for this rank, if any."""
        return await self.wallet.find_by_idempotency_key(
            payout_key(tournament_id, winner["rank"])
        )

    async def _pay(self, tournament_id: str, winner: dict[str, Any]) -> PayoutResult:
        result = PayoutResult(
            rank=winner["rank"],
            player_id=winner["player_id"],
            user_id=winner["user_id"],
            prize=winner["prize"],
            success=False,
        )
        existing = await self._existing_payout(tournament_id, winner)
        if existing is not None:
            result.success = True
            result.already_paid = True
            result.transaction_id = existing.transaction_id
            return result

        try:
            tx = await self.wallet.credit_prize(
                winner["user_id"],
                winner["prize"],
                tournament_id=tournament_id,
                rank=winner["rank"],
                idempotency_key=payout_key(tournament_id, winner["rank"]),
            )
        except ServiceError as e:
            if e.code == ErrorCode.DUPLICATE_TRANSACTION:
                # Paid by a concurrent distribution; our credit was rolled back
                existing = await self.wallet.find_by_idempotency_key(
                    payout_key(tournament_id, winner["rank"])
                )
                result.success = True
                result.already_paid = True
                result.transaction_id = existing.transaction_id if existing else None
                return result
            logger.warning(
                f"Prize payout failed: tournament={tournament_id[:8]}... "
                f"rank={winner['rank']} user={winner['user_id'][:8]}... code={e.code.value}"
            )
            result.error_code = e.code.value
            result.error = e.message
            return result

        result.success = True
        result.transaction_id = tx.transaction_id
        return result

    async def distribute_prizes(self, tournament_id: str, admin: Principal) -> SettlementSummary:
        """Pay every outstanding winner independently.

        Ends ``completed`` when every winner is paid, otherwise ``processing``.
        Per-winner failures are reported in the summary, never raised.

        Raises:
            SettlementError: WINNER_NOT_FOUND, ALREADY_COMPLETED
        """
        admin.require_admin()
        # Row lock: a concurrent distribution waits here, then sees the result
        declaration = await self.get_by_tournament(tournament_id, for_update=True)
        if declaration.payment_status == SettlementStatus.COMPLETED:
            raise SettlementError(ErrorCode.ALREADY_COMPLETED, "Prizes already distributed")

        summary = SettlementSummary(tournament_id, declaration.payment_status)
        updated = []
        for winner in declaration.winners:
            entry = dict(winner)
            if entry.get("paid"):
                summary.results.append(PayoutResult(
                    rank=entry["rank"],
                    player_id=entry["player_id"],
                    user_id=entry["user_id"],
                    prize=entry["prize"],
                    success=True,
                    transaction_id=entry.get("transaction_id"),
                    already_paid=True,
                ))
            else:
                result = await self._pay(tournament_id, entry)
                if result.success:
                    entry["paid"] = True
                    entry["transaction_id"] = result.transaction_id
                summary.results.append(result)
            updated.append(entry)

        event = "complete" if summary.all_paid else "partial"
        declaration.winners = updated
        declaration.payment_status = SETTLEMENT.next(declaration.payment_status, event)
        if summary.all_paid:
            declaration.payment_processed_at = self._clock()
        await self.session.flush()
        summary.status = declaration.payment_status

        if summary.failures:
            logger.error(
                f"Prize distribution incomplete: tournament={tournament_id[:8]}... "
                f"outstanding_ranks={[r.rank for r in summary.failures]}"
            )

        logger.info(
            f"Prizes distributed: tournament={tournament_id[:8]}... "
            f"status={summary.status.value} paid={summary.paid_amount} "
            f"failures={len(summary.failures)}"
        )
        return summary

    # =========================================================================
    # Reads
    # =========================================================================

    async def recent(self, limit: int = 10) -> list[tuple[WinnerDeclaration, Tournament]]:
        result = await self.session.execute(
            select(WinnerDeclaration, Tournament)
            .join(Tournament, Tournament.id == WinnerDeclaration.tournament_id)
            .order_by(WinnerDeclaration.declared_at.desc())
            .limit(min(max(limit, 1), 50))
        )
        return [(d, t) for d, t in result.all()]

    async def history(
        self,
        admin: Principal,
        *,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[WinnerDeclaration], int]:
        admin.require_admin()
        page = max(page, 1)
        limit = min(max(limit, 1), 100)
        total = await self.session.scalar(select(func.count()).select_from(WinnerDeclaration))
        result = await self.session.execute(
            select(WinnerDeclaration)
            .order_by(WinnerDeclaration.declared_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result.scalars().all()), total or 0

    async def stats(self, admin: Principal) -> dict[str, Any]:
        admin.require_admin()
        declarations, total_prize = (await self.session.execute(
            select(
                func.count(WinnerDeclaration.id),
                func.coalesce(func.sum(WinnerDeclaration.total_prize), 0),
            )
        )).one()
        completed = await self.session.scalar(
            select(func.count())
            .select_from(WinnerDeclaration)
            .where(WinnerDeclaration.payment_status == SettlementStatus.COMPLETED)
        )
        paid_out = await self.session.scalar(
            select(func.coalesce(func.sum(Transaction.amount), 0)).where(
                Transaction.tx_type == TransactionType.PRIZE_WIN,
                Transaction.status == TransactionStatus.COMPLETED,
            )
        )
        return {
            "declarations": declarations,
            "completed_payouts": completed or 0,
            "total_prize": to_rupees(int(total_prize)),
            "paid_out": to_rupees(int(paid_out or 0)),
        }

    async def user_winnings(self, user_id: str) -> dict[str, Any]:
        """Prize transactions credited to ``user_id``."""
        result = await self.session.execute(
            select(Transaction)
            .where(
                Transaction.user_id == user_id,
                Transaction.tx_type == TransactionType.PRIZE_WIN,
                Transaction.status == TransactionStatus.COMPLETED,
            )
            .order_by(Transaction.created_at.desc())
        )
        prizes = list(result.scalars().all())
        return {
            "total": to_rupees(sum(tx.amount for tx in prizes)),
            "count": len(prizes),
            "prizes": [
                {
                    "transaction_id": tx.transaction_id,
                    "tournament_id": tx.tournament_id,
                    "rank": (tx.meta or {}).get("rank"),
                    "amount": to_rupees(tx.amount),
                    "created_at": tx.created_at,
                }
                for tx in prizes
            ],
        }
