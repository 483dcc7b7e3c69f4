"""Announcement model."""

from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, TimestampMixin, UTCDateTime, UUIDMixin, str_enum


class AnnouncementType(str, Enum):
    TOURNAMENT = "tournament"
    WINNER = "winner"
    MAINTENANCE = "maintenance"
    GENERAL = "general"


class AnnouncementTarget(str, Enum):
    ALL = "all"
    TOURNAMENT = "tournament"
    WINNERS = "winners"


class AnnouncementStatus(str, Enum):
    DRAFT = "draft"
    SCHEDULED = "scheduled"
    SENT = "sent"
    FAILED = "failed"


class Announcement(Base, UUIDMixin, TimestampMixin):
    """Message fanned out to a user cohort."""

    __tablename__ = "announcements"

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    announcement_type: Mapped[AnnouncementType] = mapped_column(
        str_enum(AnnouncementType),
        default=AnnouncementType.GENERAL,
        nullable=False,
    )
    target: Mapped[AnnouncementTarget] = mapped_column(
        str_enum(AnnouncementTarget),
        default=AnnouncementTarget.ALL,
        nullable=False,
    )
    tournament_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)

    sent_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    sent_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    scheduled_for: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True, index=True)
    status: Mapped[AnnouncementStatus] = mapped_column(
        str_enum(AnnouncementStatus),
        default=AnnouncementStatus.DRAFT,
        nullable=False,
        index=True,
    )
    sent_to: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
        comment="Reach count of the last dispatch",
    )
    read_by: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_error: Mapped[str | None] = mapped_column(String(500), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Announcement {self.id[:8]}... {self.title!r} status={self.status.value}>"
