"""Room Publication Scheduler.

Room credentials stay hidden until ``start_time - room_publish_lead_minutes``.
At or after that gate, details with ``auto_publish`` are published on the
first read (or by the periodic sweep in ``app.tasks.room_publisher``);
explicitly published details are readable at any time. Only players with a
confirmed registration can read them.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings, get_settings
from app.models.base import utcnow
from app.models.room_details import (
    DEFAULT_ROOM_CAPACITY,
    GameMap,
    RoomDetails,
    RoomStatus,
)
from app.models.tournament import Tournament
from app.services.auth import Principal
from app.services.registration import RegistrationService
from app.utils.errors import ErrorCode, ServiceError

logger = logging.getLogger(__name__)


class RoomDetailsError(ServiceError):
    """Room details operation error."""


@dataclass
class RoomAccess:
    """What a confirmed player sees."""

    available: bool
    start_time: datetime
    publish_time: datetime
    rooms: list[dict[str, Any]] = field(default_factory=list)
    published_at: datetime | None = None
    notes: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "available": self.available,
            "start_time": self.start_time,
            "publish_time": self.publish_time,
        }
        if self.available:
            data.update(
                rooms=self.rooms,
                published_at=self.published_at,
                notes=self.notes,
            )
        return data


def normalize_room(room: dict[str, Any]) -> dict[str, Any]:
    """Validate one credential set and fill defaults."""
    room_id = str(room.get("room_id") or "").strip()
    password = str(room.get("password") or "").strip()
    if not room_id or not password or not room.get("map"):
        raise RoomDetailsError(
            ErrorCode.INVALID_INPUT,
            "Each room must have room_id, password and map",
        )
    try:
        game_map = GameMap(room["map"])
        room_status = RoomStatus(room.get("room_status") or RoomStatus.ACTIVE)
    except ValueError as e:
        raise RoomDetailsError(ErrorCode.INVALID_INPUT, str(e)) from None

    max_players = int(room.get("max_players") or DEFAULT_ROOM_CAPACITY)
    current_players = int(room.get("current_players") or 0)
    if max_players < 1 or not 0 <= current_players <= max_players:
        raise RoomDetailsError(
            ErrorCode.INVALID_INPUT,
            "Room player counts are out of range",
            {"room_id": room_id},
        )
    return {
        "room_id": room_id,
        "password": password,
        "map": game_map.value,
        "max_players": max_players,
        "current_players": current_players,
        "room_status": room_status.value,
        "notes": room.get("notes"),
    }


def normalize_rooms(rooms: list[dict[str, Any]] | None) -> list[dict[str, Any]]:
    if not rooms:
        raise RoomDetailsError(ErrorCode.INVALID_INPUT, "At least one room is required")
    normalized = [normalize_room(r) for r in rooms]
    seen: set[str] = set()
    for room in normalized:
        if room["room_id"] in seen:
            raise RoomDetailsError(
                ErrorCode.DUPLICATE_ROOM,
                f"Duplicate room id: {room['room_id']}",
            )
        seen.add(room["room_id"])
    return normalized


class RoomDetailsService:
    """Service for room credentials and their publish gate."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self._clock = clock
        self.registrations = RegistrationService(session)

    def publish_time(self, details: RoomDetails) -> datetime:
        return details.start_time - timedelta(minutes=self.settings.room_publish_lead_minutes)

    async def _find(self, **criteria: Any) -> RoomDetails | None:
        stmt = select(RoomDetails).execution_options(populate_existing=True)
        for key, value in criteria.items():
            stmt = stmt.where(getattr(RoomDetails, key) == value)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get(self, details_id: str, admin: Principal) -> RoomDetails:
        admin.require_admin()
        details = await self._find(id=details_id)
        if details is None:
            raise RoomDetailsError(
                ErrorCode.ROOM_DETAILS_NOT_FOUND,
                f"Room details not found: {details_id}",
            )
        return details

    async def _mark_published(self, details: RoomDetails, now: datetime) -> bool:
        """Flip the gate once; concurrent readers race on ``is_published``."""
        result = await self.session.execute(
            update(RoomDetails)
            .where(RoomDetails.id == details.id, RoomDetails.is_published.is_(False))
            .values(is_published=True, published_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        await self.session.refresh(details)
        return result.rowcount == 1

    async def get_for_player(
        self,
        tournament_id: str,
        user_id: str,
        now: datetime | None = None,
    ) -> RoomAccess:
        """Room credentials for a confirmed registrant.

        Raises:
            RoomDetailsError: FORBIDDEN, ROOM_DETAILS_NOT_FOUND
        """
        if not await self.registrations.is_confirmed(tournament_id, user_id):
            raise RoomDetailsError(
                ErrorCode.FORBIDDEN,
                "You are not registered for this tournament",
            )
        details = await self._find(tournament_id=tournament_id)
        if details is None:
            raise RoomDetailsError(
                ErrorCode.ROOM_DETAILS_NOT_FOUND,
                "Room details not available yet",
            )

        now = now or self._clock()
        gate = self.publish_time(details)
        if not details.is_published and now >= gate and details.auto_publish:
            if await self._mark_published(details, now):
                logger.info(f"Room details auto-published on read: {details.id[:8]}...")

        return RoomAccess(
            available=details.is_published,
            start_time=details.start_time,
            publish_time=gate,
            rooms=list(details.rooms),
            published_at=details.published_at,
            notes=details.notes,
        )

    async def create(self, data: dict[str, Any], admin: Principal) -> RoomDetails:
        """Create the room details of a tournament (one per tournament)."""
        admin.require_admin()
        tournament_id = data.get("tournament_id")
        tournament = await self.session.get(Tournament, tournament_id) if tournament_id else None
        if tournament is None:
            raise RoomDetailsError(
                ErrorCode.TOURNAMENT_NOT_FOUND,
                f"Tournament not found: {tournament_id}",
            )
        if await self._find(tournament_id=tournament_id) is not None:
            raise RoomDetailsError(
                ErrorCode.ROOM_DETAILS_EXISTS,
                "Room details already exist for this tournament",
            )

        details = RoomDetails(
            tournament_id=tournament_id,
            rooms=normalize_rooms(data.get("rooms")),
            start_time=data.get("start_time") or tournament.start_time,
            auto_publish=data.get("auto_publish", True) is not False,
            is_published=False,
            notes=data.get("notes"),
            created_by=admin.user_id,
        )
        try:
            async with self.session.begin_nested():
                self.session.add(details)
        except IntegrityError:
            raise RoomDetailsError(
                ErrorCode.ROOM_DETAILS_EXISTS,
                "Room details already exist for this tournament",
            ) from None

        logger.info(
            f"Room details created: {details.id[:8]}... "
            f"tournament={tournament_id[:8]}... rooms={len(details.rooms)}"
        )
        return details

    async def update(
        self,
        details_id: str,
        data: dict[str, Any],
        admin: Principal,
    ) -> RoomDetails:
        details = await self.get(details_id, admin)
        if data.get("rooms") is not None:
            details.rooms = normalize_rooms(data["rooms"])
        if data.get("start_time") is not None:
            details.start_time = data["start_time"]
        if data.get("auto_publish") is not None:
            details.auto_publish = bool(data["auto_publish"])
        if "notes" in data:
            details.notes = data["notes"]
        await self.session.flush()
        logger.info(f"Room details updated: {details.id[:8]}...")
        return details

    async def delete(self, details_id: str, admin: Principal) -> None:
        details = await self.get(details_id, admin)
        await self.session.delete(details)
        await self.session.flush()
        logger.info(f"Room details deleted: {details_id[:8]}...")

    async def add_room(
        self,
        details_id: str,
        room: dict[str, Any],
        admin: Principal,
    ) -> RoomDetails:
        details = await self.get(details_id, admin)
        new_room = normalize_room(room)
        if any(r["room_id"] == new_room["room_id"] for r in details.rooms):
            raise RoomDetailsError(
                ErrorCode.DUPLICATE_ROOM,
                f"Room {new_room['room_id']} already exists",
            )
        # JSON columns only track reassignment
        details.rooms = [*details.rooms, new_room]
        await self.session.flush()
        return details

    async def remove_room(
        self,
        details_id: str,
        room_index: int,
        admin: Principal,
    ) -> RoomDetails:
        details = await self.get(details_id, admin)
        if not 0 <= room_index < len(details.rooms):
            raise RoomDetailsError(
                ErrorCode.ROOM_NOT_FOUND,
                f"No room at index {room_index}",
                {"rooms": len(details.rooms)},
            )
        details.rooms = [r for i, r in enumerate(details.rooms) if i != room_index]
        await self.session.flush()
        return details

    async def publish(self, details_id: str, admin: Principal) -> RoomDetails:
        """Publish now, regardless of the gate."""
        details = await self.get(details_id, admin)
        await self._mark_published(details, self._clock())
        logger.info(f"Room details published: {details.id[:8]}... by={admin.user_id[:8]}...")
        return details

    async def unpublish(self, details_id: str, admin: Principal) -> RoomDetails:
        details = await self.get(details_id, admin)
        details.is_published = False
        details.published_at = None
        await self.session.flush()
        logger.info(f"Room details unpublished: {details.id[:8]}...")
        return details

    async def recent(self, admin: Principal, limit: int = 10) -> list[RoomDetails]:
        admin.require_admin()
        result = await self.session.execute(
            select(RoomDetails)
            .order_by(RoomDetails.created_at.desc())
            .limit(min(max(limit, 1), 100))
        )
        return list(result.scalars().all())

    async def publish_due(self, now: datetime | None = None) -> int:
        """Publish every auto-publish set whose gate has opened.

        Returns:
            Number of room details published
        """
        now = now or self._clock()
        cutoff = now + timedelta(minutes=self.settings.room_publish_lead_minutes)
        result = await self.session.execute(
            update(RoomDetails)
            .where(
                RoomDetails.is_published.is_(False),
                RoomDetails.auto_publish.is_(True),
                RoomDetails.start_time <= cutoff,
            )
            .values(is_published=True, published_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            logger.info(f"Room publish sweep: published={result.rowcount}")
        return result.rowcount
