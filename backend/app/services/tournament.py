"""Tournament lifecycle service.

Creation, edits and admin-driven transitions (open → upcoming/live →
completed, or → cancelled). Every transition is looked up in
``app.models.transitions.TOURNAMENT``.
"""

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.base import utcnow
from app.models.registration import Registration, RegistrationStatus
from app.models.tournament import (
    ACTIVE_STATUSES,
    MAX_PLAYERS,
    MIN_PLAYERS,
    Game,
    Tournament,
    TournamentStatus,
    TournamentType,
)
from app.models.transitions import TOURNAMENT
from app.services.auth import Principal
from app.utils.errors import ErrorCode, ServiceError
from app.utils.money import to_rupees

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset({
    "name",
    "tournament_type",
    "game",
    "entry_fee",
    "prize_pool",
    "max_players",
    "start_time",
    "rules",
    "how_to_play",
    "prize_distribution",
})


class TournamentError(ServiceError):
    """Tournament operation error."""


class TournamentService:
    """Service for tournament management."""

    def __init__(
        self,
        session: AsyncSession,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session = session
        self._clock = clock

    async def get(self, tournament_id: str) -> Tournament:
        """Get tournament by id, fresh from the database.

        Raises:
            TournamentError: TOURNAMENT_NOT_FOUND
        """
        result = await self.session.execute(
            select(Tournament)
            .where(Tournament.id == tournament_id)
            .execution_options(populate_existing=True)
        )
        tournament = result.scalar_one_or_none()
        if tournament is None:
            raise TournamentError(
                ErrorCode.TOURNAMENT_NOT_FOUND,
                f"Tournament not found: {tournament_id}",
            )
        return tournament

    def _validate(self, data: dict[str, Any], *, creating: bool) -> None:
        if "entry_fee" in data and data["entry_fee"] < 0:
            raise TournamentError(ErrorCode.INVALID_INPUT, "Entry fee cannot be negative")
        if "prize_pool" in data and data["prize_pool"] < 0:
            raise TournamentError(ErrorCode.INVALID_INPUT, "Prize pool cannot be negative")
        if "max_players" in data and not MIN_PLAYERS <= data["max_players"] <= MAX_PLAYERS:
            raise TournamentError(
                ErrorCode.INVALID_INPUT,
                f"Max players must be between {MIN_PLAYERS} and {MAX_PLAYERS}",
            )
        if "start_time" in data and data["start_time"] <= self._clock():
            raise TournamentError(
                ErrorCode.START_TIME_IN_PAST,
                "Start time must be in the future",
            )
        if creating:
            for required in ("name", "tournament_type", "game", "max_players", "start_time"):
                if data.get(required) in (None, ""):
                    raise TournamentError(
                        ErrorCode.INVALID_INPUT,
                        f"Missing required field: {required}",
                    )

    async def create(self, data: dict[str, Any], admin: Principal) -> Tournament:
        """Create an open tournament."""
        admin.require_admin()
        self._validate(data, creating=True)

        tournament = Tournament(
            name=data["name"],
            tournament_type=TournamentType(data["tournament_type"]),
            game=Game(data["game"]),
            entry_fee=data.get("entry_fee", 0),
            prize_pool=data.get("prize_pool", 0),
            max_players=data["max_players"],
            registered_players=0,
            status=TournamentStatus.OPEN,
            start_time=data["start_time"],
            rules=data.get("rules"),
            how_to_play=data.get("how_to_play"),
            prize_distribution=data.get("prize_distribution"),
            created_by=admin.user_id,
        )
        self.session.add(tournament)
        await self.session.flush()

        logger.info(
            f"Tournament created: {tournament.id[:8]}... name={tournament.name!r} "
            f"fee={tournament.entry_fee} seats={tournament.max_players}"
        )
        return tournament

    async def update(
        self,
        tournament_id: str,
        data: dict[str, Any],
        admin: Principal,
    ) -> Tournament:
        """Edit whitelisted fields. Status only moves through transitions."""
        admin.require_admin()
        tournament = await self.get(tournament_id)
        if tournament.status in (TournamentStatus.COMPLETED, TournamentStatus.CANCELLED):
            raise TournamentError(
                ErrorCode.INVALID_STATE,
                f"Cannot edit a {tournament.status.value} tournament",
            )

        changes = {k: v for k, v in data.items() if k in UPDATABLE_FIELDS and v is not None}
        self._validate(changes, creating=False)
        if "max_players" in changes and changes["max_players"] < tournament.registered_players:
            raise TournamentError(
                ErrorCode.INVALID_INPUT,
                "Max players cannot be lower than confirmed registrations",
                {"registered_players": tournament.registered_players},
            )

        for key, value in changes.items():
            if key == "tournament_type":
                value = TournamentType(value)
            elif key == "game":
                value = Game(value)
            setattr(tournament, key, value)
        await self.session.flush()

        logger.info(f"Tournament updated: {tournament.id[:8]}... fields={sorted(changes)}")
        return tournament

    async def _transition(
        self,
        tournament_id: str,
        event: str,
        admin: Principal,
        **values: Any,
    ) -> Tournament:
        admin.require_admin()
        tournament = await self.get(tournament_id)
        target = TOURNAMENT.next(tournament.status, event)

        result = await self.session.execute(
            update(Tournament)
            .where(
                Tournament.id == tournament_id,
                Tournament.status.in_(TOURNAMENT.sources(event)),
            )
            .values(status=target, updated_at=self._clock(), **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise TournamentError(
                ErrorCode.INVALID_STATE,
                "Tournament status changed concurrently",
            )

        tournament = await self.get(tournament_id)
        logger.info(f"Tournament {event}: {tournament_id[:8]}... -> {target.value}")
        return tournament

    async def close_registration(self, tournament_id: str, admin: Principal) -> Tournament:
        return await self._transition(tournament_id, "close_registration", admin)

    async def reopen_registration(self, tournament_id: str, admin: Principal) -> Tournament:
        return await self._transition(tournament_id, "reopen_registration", admin)

    async def start(self, tournament_id: str, admin: Principal) -> Tournament:
        """open/upcoming → live."""
        return await self._transition(tournament_id, "start", admin)

    async def end(self, tournament_id: str, admin: Principal) -> Tournament:
        """live → completed; stamps ``end_time``."""
        return await self._transition(tournament_id, "end", admin, end_time=self._clock())

    async def cancel(self, tournament_id: str, admin: Principal) -> Tournament:
        """Any state before completed → cancelled."""
        return await self._transition(tournament_id, "cancel", admin)

    async def delete(self, tournament_id: str, admin: Principal) -> None:
        """Delete a tournament nobody has registered for."""
        admin.require_admin()
        tournament = await self.get(tournament_id)

        registrations = await self.session.scalar(
            select(func.count())
            .select_from(Registration)
            .where(Registration.tournament_id == tournament_id)
        )
        if registrations:
            raise TournamentError(
                ErrorCode.TOURNAMENT_HAS_REGISTRATIONS,
                "Cannot delete a tournament with registrations",
                {"registrations": registrations},
            )

        await self.session.delete(tournament)
        await self.session.flush()
        logger.info(f"Tournament deleted: {tournament_id[:8]}...")

    async def list_tournaments(
        self,
        *,
        status: TournamentStatus | None = None,
        game: Game | None = None,
        tournament_type: TournamentType | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[Tournament], int]:
        filters = []
        if status is not None:
            filters.append(Tournament.status == status)
        if game is not None:
            filters.append(Tournament.game == game)
        if tournament_type is not None:
            filters.append(Tournament.tournament_type == tournament_type)

        page = max(page, 1)
        limit = min(max(limit, 1), 100)
        total = await self.session.scalar(
            select(func.count()).select_from(Tournament).where(*filters)
        )
        result = await self.session.execute(
            select(Tournament)
            .where(*filters)
            .order_by(Tournament.start_time.asc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result.scalars().all()), total or 0

    async def active(self) -> list[Tournament]:
        """Open, upcoming and live tournaments by start time."""
        result = await self.session.execute(
            select(Tournament)
            .where(Tournament.status.in_(ACTIVE_STATUSES))
            .order_by(Tournament.start_time.asc())
        )
        return list(result.scalars().all())

    async def dashboard_stats(self, admin: Principal) -> dict[str, Any]:
        admin.require_admin()
        result = await self.session.execute(
            select(Tournament.status, func.count()).group_by(Tournament.status)
        )
        by_status = {status.value: count for status, count in result.all()}

        revenue = await self.session.scalar(
            select(func.coalesce(func.sum(Registration.entry_fee_paid), 0)).where(
                Registration.status == RegistrationStatus.CONFIRMED
            )
        )
        return {
            "total": sum(by_status.values()),
            "by_status": {s.value: by_status.get(s.value, 0) for s in TournamentStatus},
            "confirmed_entry_fees": to_rupees(int(revenue or 0)),
        }
