"""Tests for AnnouncementService: audiences, scheduling and failed delivery."""

from datetime import timedelta
from unittest.mock import AsyncMock

import httpx
import pytest

from app.models.announcement import AnnouncementStatus, AnnouncementTarget
from app.services.announcement import AnnouncementError, AnnouncementService
from app.services.notifications import LoggingNotifier, NotificationError, WebhookNotifier
from app.services.registration import RegistrationService
from app.utils.errors import ErrorCode
from app.utils.http_client import AsyncHttpClient


@pytest.fixture
def notifier():
    mock = AsyncMock()
    mock.send.side_effect = lambda user_ids, title, content, data=None: len(user_ids)
    return mock


class TestCreate:
    @pytest.mark.asyncio
    async def test_draft_is_not_sent(self, db_session, admin, notifier, clock):
        service = AnnouncementService(db_session, notifier, clock)

        announcement = await service.create(
            {"title": "Maintenance", "content": "Down at 2am"}, admin
        )

        assert announcement.status == AnnouncementStatus.DRAFT
        assert announcement.target == AnnouncementTarget.ALL
        notifier.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_send_immediately_reaches_all_active_users(
        self, db_session, admin, player, make_user, notifier, clock
    ):
        await make_user(is_active=False)
        service = AnnouncementService(db_session, notifier, clock)

        announcement = await service.create(
            {"title": "Hello", "content": "Welcome", "send_immediately": True}, admin
        )

        assert announcement.status == AnnouncementStatus.SENT
        assert announcement.sent_at == clock()
        # admin + player; the inactive account is skipped
        assert announcement.sent_to == 2
        recipients = notifier.send.await_args.args[0]
        assert player.id in recipients

    @pytest.mark.asyncio
    async def test_relay_with_plain_text_reply_marks_sent(self, db_session, admin, player, clock):
        relay = AsyncHttpClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(202, text="queued"))
        )
        notifier = WebhookNotifier("https://relay.example.com/notify", http_client=relay)

        announcement = await AnnouncementService(db_session, notifier, clock).create(
            {"title": "Hello", "content": "Welcome", "send_immediately": True}, admin
        )

        assert announcement.status == AnnouncementStatus.SENT
        assert announcement.sent_to == 2
        assert announcement.last_error is None

    @pytest.mark.asyncio
    async def test_tournament_target_needs_tournament(self, db_session, admin, notifier):
        with pytest.raises(AnnouncementError) as exc_info:
            await AnnouncementService(db_session, notifier).create(
                {"title": "T", "content": "C", "target": "tournament"}, admin
            )

        assert exc_info.value.code == ErrorCode.INVALID_INPUT

    @pytest.mark.asyncio
    async def test_schedule_in_past_rejected(self, db_session, admin, notifier, clock):
        with pytest.raises(AnnouncementError) as exc_info:
            await AnnouncementService(db_session, notifier, clock).create(
                {"title": "T", "content": "C", "scheduled_for": clock() - timedelta(minutes=1)},
                admin,
            )

        assert exc_info.value.code == ErrorCode.INVALID_INPUT


class TestAudience:
    @pytest.mark.asyncio
    async def test_tournament_audience_is_confirmed_registrants(
        self, db_session, admin, player, make_user, fund_wallet, make_tournament, notifier
    ):
        tournament = await make_tournament(entry_fee=10)
        await fund_wallet(player.id, main=20)
        bystander = await make_user()
        await fund_wallet(bystander.id, main=20)
        registrations = RegistrationService(db_session)
        reg = await registrations.register(tournament.id, player.id, "FF1", "Ace")
        await registrations.process_payment(reg.id, player.id)
        await registrations.register(tournament.id, bystander.id, "FF2", "Bee")

        announcement = await AnnouncementService(db_session, notifier).create(
            {
                "title": "Room soon",
                "content": "Get ready",
                "target": "tournament",
                "tournament_id": tournament.id,
                "send_immediately": True,
            },
            admin,
        )

        assert announcement.sent_to == 1
        assert notifier.send.await_args.args[0] == [player.id]


class TestDispatch:
    @pytest.mark.asyncio
    async def test_scheduled_announcement_sent_when_due(self, db_session, admin, notifier, clock):
        service = AnnouncementService(db_session, notifier, clock)
        announcement = await service.create(
            {"title": "Later", "content": "C", "scheduled_for": clock() + timedelta(hours=1)},
            admin,
        )
        assert announcement.status == AnnouncementStatus.SCHEDULED

        assert await service.dispatch_due(clock() + timedelta(minutes=59)) == 0
        assert await service.dispatch_due(clock() + timedelta(hours=1)) == 1

        assert (await service.get(announcement.id)).status == AnnouncementStatus.SENT
        assert await service.dispatch_due(clock() + timedelta(hours=2)) == 0

    @pytest.mark.asyncio
    async def test_delivery_failure_marks_failed_and_resend_recovers(
        self, db_session, admin, clock
    ):
        notifier = AsyncMock()
        notifier.send.side_effect = NotificationError("relay unreachable")
        service = AnnouncementService(db_session, notifier, clock)

        announcement = await service.create(
            {"title": "T", "content": "C", "send_immediately": True}, admin
        )

        assert announcement.status == AnnouncementStatus.FAILED
        assert announcement.last_error == "relay unreachable"

        notifier.send.side_effect = None
        notifier.send.return_value = 1
        resent = await service.resend(announcement.id, admin)

        assert resent.status == AnnouncementStatus.SENT
        assert resent.last_error is None

    @pytest.mark.asyncio
    async def test_sent_announcement_cannot_be_edited(self, db_session, admin, clock):
        service = AnnouncementService(db_session, LoggingNotifier(), clock)
        announcement = await service.create(
            {"title": "T", "content": "C", "send_immediately": True}, admin
        )

        with pytest.raises(AnnouncementError) as exc_info:
            await service.update(announcement.id, {"title": "New"}, admin)

        assert exc_info.value.code == ErrorCode.ALREADY_SENT

    @pytest.mark.asyncio
    async def test_lists_and_stats(self, db_session, admin, clock):
        service = AnnouncementService(db_session, LoggingNotifier(), clock)
        await service.create({"title": "Sent", "content": "C", "send_immediately": True}, admin)
        await service.create({"title": "Draft", "content": "C"}, admin)

        sent, total = await service.list_sent()
        stats = await service.stats(admin)

        assert total == 1
        assert sent[0].title == "Sent"
        assert [a.title for a in await service.list_active()] == ["Sent"]
        assert stats["by_status"]["draft"] == 1
        assert stats["by_status"]["sent"] == 1
        assert stats["total_reach"] == 1
