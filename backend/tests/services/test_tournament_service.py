"""Tests for TournamentService lifecycle and edits."""

from datetime import timedelta

import pytest

from app.models.tournament import Game, TournamentStatus
from app.models.transitions import InvalidTransition
from app.services.auth import Principal
from app.services.registration import RegistrationService
from app.services.tournament import TournamentError, TournamentService
from app.utils.errors import AuthError, ErrorCode


class TestCreate:
    @pytest.mark.asyncio
    async def test_created_open_with_no_seats_taken(self, make_tournament):
        tournament = await make_tournament(entry_fee=25, prize_pool=400, max_players=50)

        assert tournament.status == TournamentStatus.OPEN
        assert tournament.entry_fee == 2_500
        assert tournament.prize_pool == 40_000
        assert tournament.registered_players == 0
        assert tournament.seats_left == 50

    @pytest.mark.asyncio
    async def test_start_time_must_be_future(self, make_tournament, clock):
        with pytest.raises(TournamentError) as exc_info:
            await make_tournament(start_in=timedelta(minutes=-1), clock=clock)

        assert exc_info.value.code == ErrorCode.START_TIME_IN_PAST

    @pytest.mark.asyncio
    @pytest.mark.parametrize("max_players", [1, 1001])
    async def test_capacity_bounds(self, make_tournament, max_players):
        with pytest.raises(TournamentError) as exc_info:
            await make_tournament(max_players=max_players)

        assert exc_info.value.code == ErrorCode.INVALID_INPUT

    @pytest.mark.asyncio
    async def test_players_cannot_create(self, db_session, player, clock):
        with pytest.raises(AuthError):
            await TournamentService(db_session, clock).create(
                {"name": "X", "tournament_type": "solo-custom", "game": "bgmi",
                 "max_players": 10, "start_time": clock() + timedelta(hours=1)},
                Principal(player.id),
            )


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_full_lifecycle(self, db_session, admin, make_tournament, clock):
        tournament = await make_tournament(clock=clock)
        service = TournamentService(db_session, clock)

        assert (await service.close_registration(tournament.id, admin)).status == TournamentStatus.UPCOMING
        assert (await service.reopen_registration(tournament.id, admin)).status == TournamentStatus.OPEN
        assert (await service.start(tournament.id, admin)).status == TournamentStatus.LIVE

        ended = await service.end(tournament.id, admin)
        assert ended.status == TournamentStatus.COMPLETED
        assert ended.end_time == clock()

    @pytest.mark.asyncio
    async def test_completed_is_terminal(self, db_session, admin, make_tournament):
        tournament = await make_tournament()
        service = TournamentService(db_session)
        await service.start(tournament.id, admin)
        await service.end(tournament.id, admin)

        for event in (service.cancel, service.start, service.reopen_registration):
            with pytest.raises(InvalidTransition):
                await event(tournament.id, admin)

    @pytest.mark.asyncio
    async def test_cannot_end_before_start(self, db_session, admin, make_tournament):
        tournament = await make_tournament()

        with pytest.raises(InvalidTransition) as exc_info:
            await TournamentService(db_session).end(tournament.id, admin)

        assert exc_info.value.details == {
            "entity": "tournament",
            "state": "open",
            "event": "end",
        }

    @pytest.mark.asyncio
    async def test_live_tournament_can_be_cancelled(self, db_session, admin, make_tournament):
        tournament = await make_tournament()
        service = TournamentService(db_session)
        await service.start(tournament.id, admin)

        assert (await service.cancel(tournament.id, admin)).status == TournamentStatus.CANCELLED


class TestEditAndDelete:
    @pytest.mark.asyncio
    async def test_update_whitelisted_fields_only(self, db_session, admin, make_tournament):
        tournament = await make_tournament()

        updated = await TournamentService(db_session).update(
            tournament.id,
            {"name": "Renamed", "game": "cod", "status": "completed", "registered_players": 9},
            admin,
        )

        assert updated.name == "Renamed"
        assert updated.game == Game.COD
        assert updated.status == TournamentStatus.OPEN
        assert updated.registered_players == 0

    @pytest.mark.asyncio
    async def test_capacity_cannot_drop_below_confirmed(
        self, db_session, admin, player, make_user, fund_wallet, make_tournament
    ):
        tournament = await make_tournament(entry_fee=10, max_players=5)
        registrations = RegistrationService(db_session)
        for user in (player, await make_user(), await make_user()):
            await fund_wallet(user.id, main=20)
            reg = await registrations.register(tournament.id, user.id, user.id[:8], user.username)
            await registrations.process_payment(reg.id, user.id)

        with pytest.raises(TournamentError) as exc_info:
            await TournamentService(db_session).update(tournament.id, {"max_players": 2}, admin)

        assert exc_info.value.details == {"registered_players": 3}

    @pytest.mark.asyncio
    async def test_cancelled_tournament_is_read_only(self, db_session, admin, make_tournament):
        tournament = await make_tournament()
        service = TournamentService(db_session)
        await service.cancel(tournament.id, admin)

        with pytest.raises(TournamentError) as exc_info:
            await service.update(tournament.id, {"name": "Again"}, admin)

        assert exc_info.value.code == ErrorCode.INVALID_STATE

    @pytest.mark.asyncio
    async def test_delete_only_without_registrations(
        self, db_session, admin, player, fund_wallet, make_tournament
    ):
        empty = await make_tournament()
        busy = await make_tournament(entry_fee=10)
        await fund_wallet(player.id, main=20)
        await RegistrationService(db_session).register(busy.id, player.id, "FF1", "Ace")
        service = TournamentService(db_session)

        await service.delete(empty.id, admin)
        with pytest.raises(TournamentError) as exc_info:
            await service.delete(busy.id, admin)

        assert exc_info.value.code == ErrorCode.TOURNAMENT_HAS_REGISTRATIONS
        with pytest.raises(TournamentError) as exc_info:
            await service.get(empty.id)
        assert exc_info.value.code == ErrorCode.TOURNAMENT_NOT_FOUND


class TestQueries:
    @pytest.mark.asyncio
    async def test_listing_filters_and_active(self, db_session, admin, make_tournament):
        first = await make_tournament(start_in=timedelta(hours=1))
        second = await make_tournament(start_in=timedelta(hours=3))
        service = TournamentService(db_session)
        await service.cancel(second.id, admin)

        open_ones, total = await service.list_tournaments(status=TournamentStatus.OPEN)
        active = await service.active()
        stats = await service.dashboard_stats(admin)

        assert total == 1
        assert open_ones[0].id == first.id
        assert [t.id for t in active] == [first.id]
        assert stats["by_status"]["cancelled"] == 1
        assert stats["total"] == 2
