"""Tests for RegistrationService: two-phase enrollment, capacity and refunds."""

import pytest

from app.models.registration import PaymentStatus, RegistrationStatus
from app.models.transitions import InvalidTransition
from app.models.wallet import TransactionType
from app.services.auth import Principal
from app.services.registration import RegistrationError, RegistrationService
from app.services.tournament import TournamentService
from app.services.wallet import WalletError, WalletService
from app.utils.errors import AuthError, ErrorCode


class TestRegister:
    @pytest.mark.asyncio
    async def test_register_records_intent_without_money_or_seat(
        self, db_session, player, fund_wallet, make_tournament
    ):
        await fund_wallet(player.id, main=100)
        tournament = await make_tournament(entry_fee=50)
        service = RegistrationService(db_session)

        registration = await service.register(tournament.id, player.id, " FF123 ", " Ace ")

        assert registration.status == RegistrationStatus.PENDING
        assert registration.payment_status == PaymentStatus.PENDING
        assert registration.player_id == "FF123"
        assert registration.player_name == "Ace"
        assert (await WalletService(db_session).get_balance(player.id)).main == 10_000
        assert (await TournamentService(db_session).get(tournament.id)).registered_players == 0

    @pytest.mark.asyncio
    async def test_balance_must_cover_fee_at_registration(
        self, db_session, player, make_tournament
    ):
        tournament = await make_tournament(entry_fee=50)

        with pytest.raises(RegistrationError) as exc_info:
            await RegistrationService(db_session).register(tournament.id, player.id, "FF1", "Ace")

        assert exc_info.value.code == ErrorCode.INSUFFICIENT_BALANCE
        # The wallet is created on the way.
        assert await WalletService(db_session).find_wallet(player.id) is not None

    @pytest.mark.asyncio
    async def test_same_user_cannot_register_twice(
        self, db_session, player, fund_wallet, make_tournament
    ):
        await fund_wallet(player.id, main=100)
        tournament = await make_tournament()
        service = RegistrationService(db_session)
        await service.register(tournament.id, player.id, "FF1", "Ace")

        with pytest.raises(RegistrationError) as exc_info:
            await service.register(tournament.id, player.id, "FF2", "Ace Two")

        assert exc_info.value.code == ErrorCode.ALREADY_REGISTERED

    @pytest.mark.asyncio
    async def test_player_id_is_unique_per_tournament(
        self, db_session, make_user, fund_wallet, make_tournament
    ):
        first, second = await make_user(), await make_user()
        await fund_wallet(first.id, main=100)
        await fund_wallet(second.id, main=100)
        tournament = await make_tournament()
        service = RegistrationService(db_session)
        await service.register(tournament.id, first.id, "FF1", "Ace")

        with pytest.raises(RegistrationError) as exc_info:
            await service.register(tournament.id, second.id, "FF1", "Copycat")

        assert exc_info.value.code == ErrorCode.ALREADY_REGISTERED

    @pytest.mark.asyncio
    async def test_closed_tournament_refuses_registrations(
        self, db_session, player, admin, fund_wallet, make_tournament
    ):
        await fund_wallet(player.id, main=100)
        tournament = await make_tournament()
        await TournamentService(db_session).close_registration(tournament.id, admin)

        with pytest.raises(RegistrationError) as exc_info:
            await RegistrationService(db_session).register(tournament.id, player.id, "FF1", "Ace")

        assert exc_info.value.code == ErrorCode.TOURNAMENT_CLOSED

    @pytest.mark.asyncio
    async def test_full_tournament_refuses_new_registrations(
        self, db_session, make_user, fund_wallet, make_tournament
    ):
        seated, late = await make_user(), await make_user()
        await fund_wallet(seated.id, main=100)
        await fund_wallet(late.id, main=100)
        tournament = await make_tournament(entry_fee=50, max_players=1)
        service = RegistrationService(db_session)
        registration = await service.register(tournament.id, seated.id, "FF1", "Ace")
        await service.process_payment(registration.id, seated.id)

        with pytest.raises(RegistrationError) as exc_info:
            await service.register(tournament.id, late.id, "FF2", "Late")

        assert exc_info.value.code == ErrorCode.TOURNAMENT_FULL
        assert await service.check_registration(tournament.id, late.id) is None
        assert (await WalletService(db_session).get_balance(late.id)).main == 10_000

    @pytest.mark.asyncio
    async def test_blank_player_fields_rejected(self, db_session, player, make_tournament):
        tournament = await make_tournament()

        with pytest.raises(RegistrationError) as exc_info:
            await RegistrationService(db_session).register(tournament.id, player.id, "  ", "Ace")

        assert exc_info.value.code == ErrorCode.INVALID_INPUT


class TestPayment:
    @pytest.mark.asyncio
    async def test_payment_debits_fee_claims_seat_and_confirms(
        self, db_session, player, fund_wallet, make_tournament
    ):
        await fund_wallet(player.id, main=100)
        tournament = await make_tournament(entry_fee=50)
        service = RegistrationService(db_session)
        registration = await service.register(tournament.id, player.id, "FF1", "Ace")

        paid = await service.process_payment(registration.id, player.id)

        assert paid.status == RegistrationStatus.CONFIRMED
        assert paid.payment_status == PaymentStatus.PAID
        assert paid.entry_fee_paid == 5_000
        assert paid.transaction_id.startswith("TX")
        fee_tx = await WalletService(db_session).get_transaction(paid.transaction_id)
        assert fee_tx.tx_type == TransactionType.ENTRY_FEE
        assert (await WalletService(db_session).get_balance(player.id)).main == 5_000
        assert (await TournamentService(db_session).get(tournament.id)).registered_players == 1

    @pytest.mark.asyncio
    async def test_second_payment_is_invalid_state_and_charges_once(
        self, db_session, player, fund_wallet, make_tournament
    ):
        await fund_wallet(player.id, main=100)
        tournament = await make_tournament(entry_fee=50)
        service = RegistrationService(db_session)
        registration = await service.register(tournament.id, player.id, "FF1", "Ace")
        await service.process_payment(registration.id, player.id)

        with pytest.raises(InvalidTransition) as exc_info:
            await service.process_payment(registration.id, player.id)

        assert exc_info.value.code == ErrorCode.INVALID_STATE
        assert (await WalletService(db_session).get_balance(player.id)).main == 5_000

    @pytest.mark.asyncio
    async def test_other_user_cannot_pay(
        self, db_session, player, make_user, fund_wallet, make_tournament
    ):
        await fund_wallet(player.id, main=100)
        intruder = await make_user()
        tournament = await make_tournament()
        service = RegistrationService(db_session)
        registration = await service.register(tournament.id, player.id, "FF1", "Ace")

        with pytest.raises(RegistrationError) as exc_info:
            await service.process_payment(registration.id, intruder.id)

        assert exc_info.value.code == ErrorCode.FORBIDDEN

    @pytest.mark.asyncio
    async def test_capacity_is_never_exceeded(
        self, db_session, make_user, fund_wallet, make_tournament
    ):
        players = [await make_user() for _ in range(3)]
        for p in players:
            await fund_wallet(p.id, main=100)
        tournament = await make_tournament(entry_fee=50, max_players=2)
        service = RegistrationService(db_session)
        registrations = [
            await service.register(tournament.id, p.id, f"FF{i}", f"Player {i}")
            for i, p in enumerate(players)
        ]

        await service.process_payment(registrations[0].id, players[0].id)
        await service.process_payment(registrations[1].id, players[1].id)
        with pytest.raises(RegistrationError) as exc_info:
            await service.process_payment(registrations[2].id, players[2].id)

        assert exc_info.value.code == ErrorCode.TOURNAMENT_FULL
        assert (await TournamentService(db_session).get(tournament.id)).registered_players == 2
        # The failed payment left no debit behind.
        assert (await WalletService(db_session).get_balance(players[2].id)).main == 10_000
        assert (await service.get(registrations[2].id)).status == RegistrationStatus.PENDING

    @pytest.mark.asyncio
    async def test_balance_spent_elsewhere_fails_payment_atomically(
        self, db_session, player, fund_wallet, make_tournament
    ):
        await fund_wallet(player.id, main=60)
        first = await make_tournament(entry_fee=50)
        second = await make_tournament(entry_fee=50)
        service = RegistrationService(db_session)
        reg_a = await service.register(first.id, player.id, "FF1", "Ace")
        reg_b = await service.register(second.id, player.id, "FF1", "Ace")
        await service.process_payment(reg_a.id, player.id)

        with pytest.raises(WalletError) as exc_info:
            await service.process_payment(reg_b.id, player.id)

        assert exc_info.value.code == ErrorCode.INSUFFICIENT_BALANCE
        assert (await TournamentService(db_session).get(second.id)).registered_players == 0

    @pytest.mark.asyncio
    async def test_free_tournament_confirms_without_transaction(
        self, db_session, player, make_tournament
    ):
        tournament = await make_tournament(entry_fee=0)
        service = RegistrationService(db_session)
        registration = await service.register(tournament.id, player.id, "FF1", "Ace")

        paid = await service.process_payment(registration.id, player.id)

        assert paid.status == RegistrationStatus.CONFIRMED
        assert paid.transaction_id is None
        assert paid.entry_fee_paid == 0


class TestCancelAndRefund:
    async def _confirmed(self, db_session, player, fund_wallet, make_tournament):
        await fund_wallet(player.id, main=100)
        tournament = await make_tournament(entry_fee=50, max_players=2)
        service = RegistrationService(db_session)
        registration = await service.register(tournament.id, player.id, "FF1", "Ace")
        await service.process_payment(registration.id, player.id)
        return service, tournament, registration

    @pytest.mark.asyncio
    async def test_cancel_confirmed_releases_seat(
        self, db_session, player, admin, fund_wallet, make_tournament
    ):
        service, tournament, registration = await self._confirmed(
            db_session, player, fund_wallet, make_tournament
        )

        cancelled = await service.cancel(registration.id, admin)

        assert cancelled.status == RegistrationStatus.CANCELLED
        assert cancelled.payment_status == PaymentStatus.PAID
        assert (await TournamentService(db_session).get(tournament.id)).registered_players == 0

    @pytest.mark.asyncio
    async def test_cancel_pending_keeps_seat_count(
        self, db_session, player, make_user, admin, fund_wallet, make_tournament
    ):
        service, tournament, _ = await self._confirmed(
            db_session, player, fund_wallet, make_tournament
        )
        other = await make_user()
        await fund_wallet(other.id, main=100)
        pending = await service.register(tournament.id, other.id, "FF2", "Bee")

        await service.cancel(pending.id, admin)

        assert (await TournamentService(db_session).get(tournament.id)).registered_players == 1

    @pytest.mark.asyncio
    async def test_cancel_twice_fails(
        self, db_session, player, admin, fund_wallet, make_tournament
    ):
        service, _, registration = await self._confirmed(
            db_session, player, fund_wallet, make_tournament
        )
        await service.cancel(registration.id, admin)

        with pytest.raises(RegistrationError) as exc_info:
            await service.cancel(registration.id, admin)

        assert exc_info.value.code == ErrorCode.ALREADY_CANCELLED

    @pytest.mark.asyncio
    async def test_refund_requires_cancellation(
        self, db_session, player, admin, fund_wallet, make_tournament
    ):
        service, _, registration = await self._confirmed(
            db_session, player, fund_wallet, make_tournament
        )

        with pytest.raises(RegistrationError) as exc_info:
            await service.refund(registration.id, admin)

        assert exc_info.value.code == ErrorCode.NOT_CANCELLED

    @pytest.mark.asyncio
    async def test_refund_credits_fee_once(
        self, db_session, player, admin, fund_wallet, make_tournament
    ):
        service, _, registration = await self._confirmed(
            db_session, player, fund_wallet, make_tournament
        )
        await service.cancel(registration.id, admin)

        refunded = await service.refund(registration.id, admin)

        assert refunded.payment_status == PaymentStatus.REFUNDED
        wallet = WalletService(db_session)
        assert (await wallet.get_balance(player.id)).main == 10_000
        assert (await wallet.reconcile(player.id)).balanced

        with pytest.raises(RegistrationError) as exc_info:
            await service.refund(registration.id, admin)
        assert exc_info.value.code == ErrorCode.NOTHING_TO_REFUND
        assert (await wallet.get_balance(player.id)).main == 10_000

    @pytest.mark.asyncio
    async def test_unpaid_cancellation_has_nothing_to_refund(
        self, db_session, player, admin, fund_wallet, make_tournament
    ):
        await fund_wallet(player.id, main=100)
        tournament = await make_tournament()
        service = RegistrationService(db_session)
        registration = await service.register(tournament.id, player.id, "FF1", "Ace")
        await service.cancel(registration.id, admin)

        with pytest.raises(RegistrationError) as exc_info:
            await service.refund(registration.id, admin)

        assert exc_info.value.code == ErrorCode.NOTHING_TO_REFUND

    @pytest.mark.asyncio
    async def test_players_cannot_cancel(self, db_session, player, fund_wallet, make_tournament):
        service, _, registration = await self._confirmed(
            db_session, player, fund_wallet, make_tournament
        )

        with pytest.raises(AuthError):
            await service.cancel(registration.id, Principal(player.id))


class TestQueries:
    @pytest.mark.asyncio
    async def test_my_registrations_and_stats(
        self, db_session, player, admin, fund_wallet, make_tournament
    ):
        await fund_wallet(player.id, main=100)
        tournament = await make_tournament(entry_fee=50)
        service = RegistrationService(db_session)
        registration = await service.register(tournament.id, player.id, "FF1", "Ace")
        await service.process_payment(registration.id, player.id)

        mine = await service.my_registrations(player.id)
        stats = await service.stats(admin)

        assert [(r.id, t.id) for r, t in mine] == [(registration.id, tournament.id)]
        assert await service.is_confirmed(tournament.id, player.id)
        assert stats["confirmed"] == 1
        assert str(stats["total_revenue"]) == "50.00"
