"""Tests for the Celery beat sweeps (room publication, scheduled announcements)."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest
from celery.exceptions import Retry

from app.models.announcement import AnnouncementStatus
from app.services.announcement import AnnouncementService
from app.services.notifications import LoggingNotifier
from app.services.room_details import RoomDetailsService
from app.tasks import announcements as announcement_tasks
from app.tasks import room_publisher
from app.tasks.celery_app import celery_app
from app.tasks.schedules import CELERY_BEAT_SCHEDULE

ROOM = {"room_id": "5550001", "password": "sweep", "map": "purgatory"}


class TestPublishDueRooms:
    @pytest.mark.asyncio
    async def test_publishes_once_gate_opens(
        self, db_session, session_factory, admin, make_tournament
    ):
        tournament = await make_tournament(start_in=timedelta(hours=1))
        details = await RoomDetailsService(db_session).create(
            {"tournament_id": tournament.id, "rooms": [ROOM]}, admin
        )
        await db_session.commit()

        early = await room_publisher.publish_due_rooms(
            now=tournament.start_time - timedelta(minutes=6), session_factory=session_factory
        )
        due = await room_publisher.publish_due_rooms(
            now=tournament.start_time - timedelta(minutes=4), session_factory=session_factory
        )

        assert early["published"] == 0
        assert due["status"] == "success"
        assert due["published"] == 1
        await db_session.refresh(details)
        assert details.is_published

    def test_celery_task_wraps_sweep(self):
        summary = {"status": "success", "published": 2, "processed_at": "now"}
        with patch.object(room_publisher, "publish_due_rooms", AsyncMock(return_value=summary)):
            result = room_publisher.publish_due_rooms_task.apply().get()

        assert result == summary

    def test_failed_sweep_is_retried(self):
        failure = RuntimeError("database unavailable")
        task = room_publisher.publish_due_rooms_task
        with patch.object(
            room_publisher, "publish_due_rooms", AsyncMock(side_effect=failure)
        ), patch.object(task, "retry", side_effect=Retry()) as retry:
            with pytest.raises(Retry):
                task()

        retry.assert_called_once_with(exc=failure)


class TestDispatchDueAnnouncements:
    @pytest.mark.asyncio
    async def test_sends_due_announcements(self, db_session, session_factory, admin, player):
        now = datetime.now(timezone.utc)
        announcement = await AnnouncementService(db_session, LoggingNotifier()).create(
            {"title": "Finals", "content": "Tonight 9pm", "scheduled_for": now + timedelta(hours=1)},
            admin,
        )
        await db_session.commit()
        notifier = AsyncMock()
        notifier.send.side_effect = lambda user_ids, title, content, data=None: len(user_ids)

        result = await announcement_tasks.dispatch_due_announcements(
            now=now + timedelta(hours=2),
            session_factory=session_factory,
            notifier=notifier,
        )

        assert result["sent"] == 1
        notifier.send.assert_awaited_once()
        await db_session.refresh(announcement)
        assert announcement.status == AnnouncementStatus.SENT
        assert announcement.sent_to == 2

    def test_failed_sweep_is_retried(self):
        failure = RuntimeError("database unavailable")
        task = announcement_tasks.dispatch_due_announcements_task
        with patch.object(
            announcement_tasks, "dispatch_due_announcements", AsyncMock(side_effect=failure)
        ), patch.object(task, "retry", side_effect=Retry()) as retry:
            with pytest.raises(Retry):
                task()

        retry.assert_called_once_with(exc=failure)


def test_beat_schedule_targets_registered_tasks():
    for entry in CELERY_BEAT_SCHEDULE.values():
        assert entry["task"] in celery_app.tasks
