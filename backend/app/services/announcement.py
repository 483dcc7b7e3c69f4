"""Announcement Dispatch.

Best-effort fan-out of messages to a user cohort. Delivery failures mark the
announcement ``failed``; they never touch wallet or registration state.
"""

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.announcement import (
    Announcement,
    AnnouncementStatus,
    AnnouncementTarget,
    AnnouncementType,
)
from app.models.base import utcnow
from app.models.tournament import Tournament
from app.models.transitions import ANNOUNCEMENT
from app.models.user import User
from app.models.winner import WinnerDeclaration
from app.services.auth import Principal
from app.services.notifications import NotificationError, Notifier
from app.services.registration import RegistrationService
from app.utils.errors import ErrorCode, ServiceError

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("title", "announcement_type", "target", "tournament_id", "content", "is_active")


class AnnouncementError(ServiceError):
    """Announcement operation error."""


class AnnouncementService:
    """Service for creating and dispatching announcements."""

    def __init__(
        self,
        session: AsyncSession,
        notifier: Notifier,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session = session
        self.notifier = notifier
        self._clock = clock

    async def get(self, announcement_id: str) -> Announcement:
        announcement = await self.session.get(
            Announcement, announcement_id, populate_existing=True
        )
        if announcement is None:
            raise AnnouncementError(
                ErrorCode.ANNOUNCEMENT_NOT_FOUND,
                f"Announcement not found: {announcement_id}",
            )
        return announcement

    async def _check_target(
        self,
        target: AnnouncementTarget,
        tournament_id: str | None,
    ) -> None:
        if target == AnnouncementTarget.TOURNAMENT and not tournament_id:
            raise AnnouncementError(
                ErrorCode.INVALID_INPUT,
                "Tournament id is required for tournament announcements",
            )
        if tournament_id and await self.session.get(Tournament, tournament_id) is None:
            raise AnnouncementError(
                ErrorCode.TOURNAMENT_NOT_FOUND,
                f"Tournament not found: {tournament_id}",
            )

    async def create(self, data: dict[str, Any], admin: Principal) -> Announcement:
        """Create a draft, a scheduled announcement, or send right away."""
        admin.require_admin()
        title = (data.get("title") or "").strip()
        content = (data.get("content") or "").strip()
        if not title or not content:
            raise AnnouncementError(ErrorCode.INVALID_INPUT, "Title and content are required")

        try:
            target = AnnouncementTarget(data.get("target") or AnnouncementTarget.ALL)
            announcement_type = AnnouncementType(
                data.get("announcement_type") or AnnouncementType.GENERAL
            )
        except ValueError as e:
            raise AnnouncementError(ErrorCode.INVALID_INPUT, str(e)) from None
        tournament_id = data.get("tournament_id")
        await self._check_target(target, tournament_id)

        send_now = bool(data.get("send_immediately"))
        scheduled_for = data.get("scheduled_for")
        if not send_now and scheduled_for is not None and scheduled_for <= self._clock():
            raise AnnouncementError(
                ErrorCode.INVALID_INPUT,
                "Scheduled time must be in the future",
            )

        announcement = Announcement(
            title=title,
            content=content,
            announcement_type=announcement_type,
            target=target,
            tournament_id=tournament_id,
            sent_by=admin.user_id,
            scheduled_for=None if send_now else scheduled_for,
            status=AnnouncementStatus.DRAFT,
            sent_to=0,
            read_by=0,
            is_active=True,
        )
        if not send_now and scheduled_for is not None:
            announcement.status = ANNOUNCEMENT.next(announcement.status, "schedule")
        self.session.add(announcement)
        await self.session.flush()
        logger.info(
            f"Announcement created: {announcement.id[:8]}... "
            f"target={target.value} status={announcement.status.value}"
        )

        if send_now:
            await self._send(announcement)
        return announcement

    async def audience(self, announcement: Announcement) -> list[str]:
        """Resolve recipient user ids."""
        if announcement.target == AnnouncementTarget.TOURNAMENT:
            return await RegistrationService(self.session).confirmed_user_ids(
                announcement.tournament_id
            )

        if announcement.target == AnnouncementTarget.WINNERS:
            stmt = select(WinnerDeclaration.winners)
            if announcement.tournament_id:
                stmt = stmt.where(WinnerDeclaration.tournament_id == announcement.tournament_id)
            result = await self.session.execute(stmt)
            user_ids: dict[str, None] = {}
            for winners in result.scalars().all():
                for winner in winners:
                    user_ids.setdefault(winner["user_id"])
            return list(user_ids)

        result = await self.session.execute(
            select(User.id).where(User.is_active.is_(True)).order_by(User.created_at)
        )
        return list(result.scalars().all())

    async def _send(self, announcement: Announcement) -> Announcement:
        recipients = await self.audience(announcement)
        try:
            reached = await self.notifier.send(
                recipients,
                announcement.title,
                announcement.content,
                {
                    "announcement_id": announcement.id,
                    "type": announcement.announcement_type.value,
                    "tournament_id": announcement.tournament_id,
                },
            )
        except NotificationError as e:
            announcement.status = ANNOUNCEMENT.next(announcement.status, "fail")
            announcement.last_error = str(e)[:500]
            await self.session.flush()
            logger.warning(f"Announcement delivery failed: {announcement.id[:8]}... error={e}")
            return announcement

        announcement.status = ANNOUNCEMENT.next(announcement.status, "send")
        announcement.sent_at = self._clock()
        announcement.sent_to = reached
        announcement.last_error = None
        await self.session.flush()
        logger.info(f"Announcement sent: {announcement.id[:8]}... reached={reached}")
        return announcement

    async def dispatch(self, announcement_id: str) -> Announcement:
        """Deliver an announcement to its audience now."""
        announcement = await self.get(announcement_id)
        if not ANNOUNCEMENT.can(announcement.status, "send"):
            raise AnnouncementError(
                ErrorCode.INVALID_STATE,
                f"Cannot send announcement in state '{announcement.status.value}'",
            )
        return await self._send(announcement)

    async def dispatch_due(self, now: datetime | None = None) -> int:
        """Send scheduled announcements whose time has come.

        Returns:
            Number of announcements delivered
        """
        now = now or self._clock()
        result = await self.session.execute(
            select(Announcement)
            .where(
                Announcement.status == AnnouncementStatus.SCHEDULED,
                Announcement.scheduled_for <= now,
                Announcement.is_active.is_(True),
            )
            .order_by(Announcement.scheduled_for)
        )
        sent = 0
        for announcement in result.scalars().all():
            await self._send(announcement)
            if announcement.status == AnnouncementStatus.SENT:
                sent += 1
        return sent

    async def resend(self, announcement_id: str, admin: Principal) -> Announcement:
        admin.require_admin()
        return await self.dispatch(announcement_id)

    async def update(
        self,
        announcement_id: str,
        data: dict[str, Any],
        admin: Principal,
    ) -> Announcement:
        """Edit an announcement that has not been sent yet."""
        admin.require_admin()
        announcement = await self.get(announcement_id)
        if not ANNOUNCEMENT.can(announcement.status, "edit"):
            raise AnnouncementError(
                ErrorCode.ALREADY_SENT,
                "Sent announcements cannot be edited",
            )

        changes = {k: data[k] for k in EDITABLE_FIELDS if data.get(k) is not None}
        try:
            if "target" in changes:
                changes["target"] = AnnouncementTarget(changes["target"])
            if "announcement_type" in changes:
                changes["announcement_type"] = AnnouncementType(changes["announcement_type"])
        except ValueError as e:
            raise AnnouncementError(ErrorCode.INVALID_INPUT, str(e)) from None
        await self._check_target(
            changes.get("target", announcement.target),
            changes.get("tournament_id", announcement.tournament_id),
        )

        for key, value in changes.items():
            setattr(announcement, key, value)
        if data.get("scheduled_for") is not None:
            if data["scheduled_for"] <= self._clock():
                raise AnnouncementError(
                    ErrorCode.INVALID_INPUT,
                    "Scheduled time must be in the future",
                )
            announcement.scheduled_for = data["scheduled_for"]
            announcement.status = ANNOUNCEMENT.next(announcement.status, "schedule")
        await self.session.flush()
        return announcement

    async def delete(self, announcement_id: str, admin: Principal) -> None:
        admin.require_admin()
        announcement = await self.get(announcement_id)
        await self.session.delete(announcement)
        await self.session.flush()
        logger.info(f"Announcement deleted: {announcement_id[:8]}...")

    async def list_active(self, limit: int = 5) -> list[Announcement]:
        """Latest sent, active announcements."""
        result = await self.session.execute(
            select(Announcement)
            .where(
                Announcement.status == AnnouncementStatus.SENT,
                Announcement.is_active.is_(True),
            )
            .order_by(Announcement.sent_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def list_sent(
        self,
        *,
        announcement_type: AnnouncementType | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[Announcement], int]:
        filters = [
            Announcement.status == AnnouncementStatus.SENT,
            Announcement.is_active.is_(True),
        ]
        if announcement_type is not None:
            filters.append(Announcement.announcement_type == announcement_type)
        return await self._paginate(filters, page, limit, Announcement.sent_at.desc())

    async def list_for_admin(
        self,
        admin: Principal,
        *,
        status: AnnouncementStatus | None = None,
        announcement_type: AnnouncementType | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[Announcement], int]:
        admin.require_admin()
        filters = []
        if status is not None:
            filters.append(Announcement.status == status)
        if announcement_type is not None:
            filters.append(Announcement.announcement_type == announcement_type)
        return await self._paginate(filters, page, limit, Announcement.created_at.desc())

    async def _paginate(
        self,
        filters: list[Any],
        page: int,
        limit: int,
        order: Any,
    ) -> tuple[list[Announcement], int]:
        page = max(page, 1)
        limit = min(max(limit, 1), 100)
        total = await self.session.scalar(
            select(func.count()).select_from(Announcement).where(*filters)
        )
        result = await self.session.execute(
            select(Announcement)
            .where(*filters)
            .order_by(order)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result.scalars().all()), total or 0

    async def stats(self, admin: Principal) -> dict[str, Any]:
        admin.require_admin()
        result = await self.session.execute(
            select(
                Announcement.status,
                func.count(),
                func.coalesce(func.sum(Announcement.sent_to), 0),
            ).group_by(Announcement.status)
        )
        by_status: dict[str, int] = {s.value: 0 for s in AnnouncementStatus}
        reach = 0
        for status, count, sent_to in result.all():
            by_status[status.value] = count
            reach += int(sent_to)
        return {
            "total": sum(by_status.values()),
            "by_status": by_status,
            "total_reach": reach,
        }
