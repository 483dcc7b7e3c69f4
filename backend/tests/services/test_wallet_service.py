"""Tests for WalletService.

Deposits, withdrawals with reservation, the 24h throttle, system movements
and reconciliation, all against a real SQLite database.
"""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from app.config import get_settings
from app.models.wallet import TransactionStatus, TransactionType
from app.services.auth import Principal
from app.services.wallet import WalletError, WalletService
from app.utils.errors import AuthError, ErrorCode


class TestWalletCreation:
    @pytest.mark.asyncio
    async def test_wallet_created_lazily_with_zero_balances(self, db_session, player):
        service = WalletService(db_session)

        balance = await service.get_balance(player.id)

        assert balance.main == 0
        assert balance.winning == 0
        assert balance.total == 0
        assert balance.to_dict() == {
            "total": Decimal("0.00"),
            "main": Decimal("0.00"),
            "winning": Decimal("0.00"),
        }

    @pytest.mark.asyncio
    async def test_get_or_create_is_idempotent(self, db_session, player):
        service = WalletService(db_session)

        first = await service.get_or_create_wallet(player.id)
        second = await service.get_or_create_wallet(player.id)

        assert first.id == second.id

    @pytest.mark.asyncio
    async def test_unknown_user_has_no_wallet(self, db_session):
        with pytest.raises(WalletError) as exc_info:
            await WalletService(db_session).get_or_create_wallet("missing-user")

        assert exc_info.value.code == ErrorCode.USER_NOT_FOUND


class TestDeposits:
    @pytest.mark.asyncio
    async def test_request_creates_pending_transaction_without_credit(self, db_session, player):
        service = WalletService(db_session)

        tx = await service.request_deposit(player.id, 50_000, "UPI123456")

        assert tx.tx_type == TransactionType.ADD_CASH
        assert tx.status == TransactionStatus.PENDING
        assert tx.transaction_id.startswith("TX")
        assert (await service.get_balance(player.id)).main == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [999, 100_001])
    async def test_amount_outside_bounds_rejected(self, db_session, player, amount):
        with pytest.raises(WalletError) as exc_info:
            await WalletService(db_session).request_deposit(player.id, amount, "UPI1")

        assert exc_info.value.code == ErrorCode.INVALID_AMOUNT
        assert exc_info.value.details["min_amount"] == Decimal("10.00")
        assert exc_info.value.details["max_amount"] == Decimal("1000.00")

    @pytest.mark.asyncio
    async def test_missing_upi_reference_rejected(self, db_session, player):
        with pytest.raises(WalletError) as exc_info:
            await WalletService(db_session).request_deposit(player.id, 10_000, "   ")

        assert exc_info.value.code == ErrorCode.PAYMENT_PROOF_REQUIRED

    @pytest.mark.asyncio
    async def test_rejected_request_deletes_uploaded_screenshot(self, db_session, player):
        storage = AsyncMock()
        service = WalletService(db_session, storage=storage)

        with pytest.raises(WalletError):
            await service.request_deposit(
                player.id, 500, "UPI1", screenshot_path="payment-abc.png"
            )

        storage.delete.assert_awaited_once_with("payment-abc.png")

    @pytest.mark.asyncio
    async def test_approve_credits_main_exactly_once(self, db_session, player, admin):
        service = WalletService(db_session)
        tx = await service.request_deposit(player.id, 25_000, "UPI42")

        approved = await service.approve_deposit(tx.transaction_id, admin, notes="ok")

        assert approved.status == TransactionStatus.APPROVED
        assert approved.approved_by == admin.user_id
        assert approved.admin_notes == "ok"

        with pytest.raises(WalletError) as exc_info:
            await service.approve_deposit(tx.transaction_id, admin)
        assert exc_info.value.code == ErrorCode.ALREADY_PROCESSED

        wallet = await service.find_wallet(player.id)
        assert wallet.main_balance == 25_000
        assert wallet.total_deposited == 25_000

    @pytest.mark.asyncio
    async def test_approval_from_a_stale_session_is_refused(
        self, session_factory, db_session, player, admin
    ):
        service = WalletService(db_session)
        tx = await service.request_deposit(player.id, 10_000, "UPI7")
        await db_session.commit()

        async with session_factory() as first, session_factory() as second:
            stale = await WalletService(second).get_transaction(tx.transaction_id)
            assert stale.status == TransactionStatus.PENDING
            await second.commit()

            await WalletService(first).approve_deposit(tx.transaction_id, admin)
            await first.commit()

            with pytest.raises(WalletError) as exc_info:
                await WalletService(second).approve_deposit(tx.transaction_id, admin)
            assert exc_info.value.code == ErrorCode.ALREADY_PROCESSED

        async with session_factory() as check:
            wallet = await WalletService(check).find_wallet(player.id)
            assert wallet.main_balance == 10_000

    @pytest.mark.asyncio
    async def test_reject_leaves_balance_untouched(self, db_session, player, admin):
        service = WalletService(db_session)
        tx = await service.request_deposit(player.id, 10_000, "UPI8")

        rejected = await service.reject_deposit(tx.transaction_id, admin, notes="bad proof")

        assert rejected.status == TransactionStatus.REJECTED
        assert (await service.get_balance(player.id)).main == 0
        with pytest.raises(WalletError) as exc_info:
            await service.approve_deposit(tx.transaction_id, admin)
        assert exc_info.value.code == ErrorCode.ALREADY_PROCESSED

    @pytest.mark.asyncio
    async def test_non_admin_cannot_approve(self, db_session, player):
        service = WalletService(db_session)
        tx = await service.request_deposit(player.id, 10_000, "UPI9")

        with pytest.raises(AuthError) as exc_info:
            await service.approve_deposit(tx.transaction_id, Principal(player.id))

        assert exc_info.value.code == ErrorCode.UNAUTHORIZED

    @pytest.mark.asyncio
    async def test_approving_a_withdrawal_as_deposit_fails(
        self, db_session, player, admin, fund_wallet
    ):
        await fund_wallet(player.id, winning=40)
        service = WalletService(db_session)
        tx = await service.request_withdrawal(player.id, 2_000, upi_id="player@upi")

        with pytest.raises(WalletError) as exc_info:
            await service.approve_deposit(tx.transaction_id, admin)

        assert exc_info.value.code == ErrorCode.WRONG_TRANSACTION_TYPE


class TestWithdrawals:
    @pytest.mark.asyncio
    async def test_request_reserves_from_winning_with_tax(
        self, db_session, player, fund_wallet
    ):
        await fund_wallet(player.id, main=100, winning=40)
        service = WalletService(db_session)

        tx = await service.request_withdrawal(player.id, 3_000, upi_id="player@upi")

        assert tx.status == TransactionStatus.PENDING
        assert tx.reference_id.startswith("REF")
        assert tx.tax_amount == 300
        assert tx.net_amount == 2_700
        balance = await service.get_balance(player.id)
        assert balance.winning == 1_000
        assert balance.main == 10_000

    @pytest.mark.asyncio
    async def test_main_balance_cannot_be_withdrawn(self, db_session, player, fund_wallet):
        await fund_wallet(player.id, main=500)

        with pytest.raises(WalletError) as exc_info:
            await WalletService(db_session).request_withdrawal(
                player.id, 2_000, upi_id="player@upi"
            )

        assert exc_info.value.code == ErrorCode.INSUFFICIENT_BALANCE

    @pytest.mark.asyncio
    async def test_payout_target_required(self, db_session, player, fund_wallet):
        await fund_wallet(player.id, winning=40)

        with pytest.raises(WalletError) as exc_info:
            await WalletService(db_session).request_withdrawal(player.id, 2_000)

        assert exc_info.value.code == ErrorCode.PAYOUT_DETAILS_REQUIRED

    @pytest.mark.asyncio
    async def test_amount_above_max_rejected(self, db_session, player, fund_wallet):
        await fund_wallet(player.id, winning=100)

        with pytest.raises(WalletError) as exc_info:
            await WalletService(db_session).request_withdrawal(
                player.id, 5_100, upi_id="player@upi"
            )

        assert exc_info.value.code == ErrorCode.INVALID_AMOUNT

    @pytest.mark.asyncio
    async def test_reject_restores_reservation(self, db_session, player, admin, fund_wallet):
        await fund_wallet(player.id, winning=40)
        service = WalletService(db_session)
        tx = await service.request_withdrawal(player.id, 4_000, upi_id="player@upi")
        assert (await service.get_balance(player.id)).winning == 0

        await service.reject_withdrawal(tx.transaction_id, admin)

        assert (await service.get_balance(player.id)).winning == 4_000
        assert (await service.reconcile(player.id)).balanced

    @pytest.mark.asyncio
    async def test_approve_finalizes_without_second_debit(
        self, db_session, player, admin, fund_wallet
    ):
        await fund_wallet(player.id, winning=40)
        service = WalletService(db_session)
        tx = await service.request_withdrawal(player.id, 4_000, upi_id="player@upi")

        await service.approve_withdrawal(tx.transaction_id, admin)

        wallet = await service.find_wallet(player.id)
        assert wallet.winning_balance == 0
        assert wallet.total_withdrawn == 4_000
        assert (await service.reconcile(player.id)).balanced

    @pytest.mark.asyncio
    async def test_throttle_blocks_second_withdrawal_for_24_hours(
        self, db_session, player, admin, fund_wallet, clock
    ):
        await fund_wallet(player.id, winning=100)
        service = WalletService(db_session, clock=clock)
        first = await service.request_withdrawal(player.id, 2_000, upi_id="player@upi")
        await service.approve_withdrawal(first.transaction_id, admin)

        clock.advance(hours=23)
        limit = await service.check_withdrawal_limit(player.id)
        assert limit.blocked
        assert limit.hours_left == 1.0

        with pytest.raises(WalletError) as exc_info:
            await service.request_withdrawal(player.id, 2_000, upi_id="player@upi")
        assert exc_info.value.code == ErrorCode.THROTTLE_ACTIVE

        clock.advance(hours=1)
        assert not (await service.check_withdrawal_limit(player.id)).blocked
        second = await service.request_withdrawal(player.id, 2_000, upi_id="player@upi")
        assert second.status == TransactionStatus.PENDING

    @pytest.mark.asyncio
    async def test_pending_withdrawal_does_not_start_throttle(
        self, db_session, player, fund_wallet, clock
    ):
        await fund_wallet(player.id, winning=100)
        service = WalletService(db_session, clock=clock)

        await service.request_withdrawal(player.id, 2_000, upi_id="player@upi")

        assert not (await service.check_withdrawal_limit(player.id)).blocked

    @pytest.mark.asyncio
    async def test_second_pending_withdrawal_cannot_be_approved_within_window(
        self, db_session, player, admin, fund_wallet, clock
    ):
        await fund_wallet(player.id, winning=100)
        service = WalletService(db_session, clock=clock)
        first = await service.request_withdrawal(player.id, 2_000, upi_id="player@upi")
        second = await service.request_withdrawal(player.id, 2_000, upi_id="player@upi")
        await service.approve_withdrawal(first.transaction_id, admin)

        clock.advance(minutes=1)
        with pytest.raises(WalletError) as exc_info:
            await service.approve_withdrawal(second.transaction_id, admin)

        assert exc_info.value.code == ErrorCode.THROTTLE_ACTIVE
        assert exc_info.value.details["transaction_id"] == second.transaction_id
        assert (await service.get_transaction(second.transaction_id)).status == (
            TransactionStatus.PENDING
        )

        # still reviewable: a reject hands the reservation back
        await service.reject_withdrawal(second.transaction_id, admin)
        wallet = await service.find_wallet(player.id)
        assert wallet.winning_balance == 8_000
        assert wallet.total_withdrawn == 2_000
        assert (await service.reconcile(player.id)).balanced

    @pytest.mark.asyncio
    async def test_held_withdrawal_approvable_after_window(
        self, db_session, player, admin, fund_wallet, clock
    ):
        await fund_wallet(player.id, winning=100)
        service = WalletService(db_session, clock=clock)
        first = await service.request_withdrawal(player.id, 2_000, upi_id="player@upi")
        second = await service.request_withdrawal(player.id, 2_000, upi_id="player@upi")
        await service.approve_withdrawal(first.transaction_id, admin)

        clock.advance(hours=24)
        approved = await service.approve_withdrawal(second.transaction_id, admin)

        assert approved.status == TransactionStatus.APPROVED


class TestSystemMovements:
    @pytest.mark.asyncio
    async def test_entry_fee_draws_main_before_winning(self, db_session, player, fund_wallet):
        await fund_wallet(player.id, main=20, winning=40)
        service = WalletService(db_session)

        tx = await service.debit_entry_fee(
            player.id, 3_000, tournament_id="t-1", registration_id="r-1"
        )

        assert tx.status == TransactionStatus.COMPLETED
        assert tx.meta == {"from_main": 2_000, "from_winning": 1_000}
        balance = await service.get_balance(player.id)
        assert (balance.main, balance.winning) == (0, 3_000)

    @pytest.mark.asyncio
    async def test_entry_fee_never_overdraws(self, db_session, player, fund_wallet):
        await fund_wallet(player.id, main=10)

        with pytest.raises(WalletError) as exc_info:
            await WalletService(db_session).debit_entry_fee(
                player.id, 1_500, tournament_id="t-1", registration_id="r-1"
            )

        assert exc_info.value.code == ErrorCode.INSUFFICIENT_BALANCE
        assert exc_info.value.details["required"] == Decimal("15.00")

    @pytest.mark.asyncio
    async def test_refund_returns_to_original_sub_balances(
        self, db_session, player, fund_wallet
    ):
        await fund_wallet(player.id, main=20, winning=40)
        service = WalletService(db_session)
        fee = await service.debit_entry_fee(
            player.id, 3_000, tournament_id="t-1", registration_id="r-1"
        )

        refund = await service.credit_refund(
            player.id, 3_000, tournament_id="t-1", registration_id="r-1", original=fee
        )

        assert refund.tx_type == TransactionType.REFUND
        balance = await service.get_balance(player.id)
        assert (balance.main, balance.winning) == (2_000, 4_000)

    @pytest.mark.asyncio
    async def test_prize_requires_existing_wallet(self, db_session, player):
        with pytest.raises(WalletError) as exc_info:
            await WalletService(db_session).credit_prize(
                player.id, 10_000, tournament_id="t-1", rank=1
            )

        assert exc_info.value.code == ErrorCode.WALLET_NOT_FOUND

    @pytest.mark.asyncio
    async def test_prize_credits_winning_and_lifetime_total(self, db_session, player):
        service = WalletService(db_session)
        await service.get_or_create_wallet(player.id)

        tx = await service.credit_prize(player.id, 10_000, tournament_id="t-1", rank=2)

        assert tx.meta == {"rank": 2}
        wallet = await service.find_wallet(player.id)
        assert wallet.winning_balance == 10_000
        assert wallet.total_winnings == 10_000

    @pytest.mark.asyncio
    async def test_keyed_prize_is_credited_once(self, db_session, player):
        service = WalletService(db_session)
        await service.get_or_create_wallet(player.id)
        first = await service.credit_prize(
            player.id, 10_000, tournament_id="t-1", rank=1, idempotency_key="prize:t-1:1"
        )

        with pytest.raises(WalletError) as exc_info:
            await service.credit_prize(
                player.id, 10_000, tournament_id="t-1", rank=1, idempotency_key="prize:t-1:1"
            )

        assert exc_info.value.code == ErrorCode.DUPLICATE_TRANSACTION
        assert exc_info.value.status_code == 409
        wallet = await service.find_wallet(player.id)
        assert wallet.winning_balance == 10_000
        assert (await service.find_by_idempotency_key("prize:t-1:1")).id == first.id
        assert (await service.reconcile(player.id)).balanced

    @pytest.mark.asyncio
    async def test_transactions_carry_valid_integrity_hash(self, db_session, player, fund_wallet):
        await fund_wallet(player.id, main=50)

        transactions, total = await WalletService(db_session).list_transactions(player.id)

        assert total == 1
        assert transactions[0].verify_integrity()


class TestQueries:
    @pytest.mark.asyncio
    async def test_history_filters_by_type(self, db_session, player, fund_wallet):
        await fund_wallet(player.id, main=30, winning=20)
        service = WalletService(db_session)

        deposits, total = await service.list_transactions(
            player.id, tx_type=TransactionType.ADD_CASH
        )

        assert total == 1
        assert deposits[0].tx_type == TransactionType.ADD_CASH

    @pytest.mark.asyncio
    async def test_pending_queue_lists_only_pending(self, db_session, player, admin):
        service = WalletService(db_session)
        open_tx = await service.request_deposit(player.id, 10_000, "UPI-A")
        done_tx = await service.request_deposit(player.id, 10_000, "UPI-B")
        await service.approve_deposit(done_tx.transaction_id, admin)

        pending, total = await service.list_pending(TransactionType.ADD_CASH, admin)

        assert total == 1
        assert pending[0].id == open_tx.id

    @pytest.mark.asyncio
    async def test_dashboard_stats(self, db_session, player, admin, fund_wallet):
        await fund_wallet(player.id, main=100)
        await WalletService(db_session).request_deposit(player.id, 5_000, "UPI-C")

        stats = await WalletService(db_session).dashboard_stats(admin)

        assert stats["pending_deposits"] == {"count": 1, "amount": Decimal("50.00")}
        assert stats["approved_deposits"] == {"count": 1, "amount": Decimal("100.00")}
        assert stats["main_balance_total"] == Decimal("100.00")

    @pytest.mark.asyncio
    async def test_reconcile_detects_direct_balance_edit(self, db_session, player, fund_wallet):
        await fund_wallet(player.id, main=100)
        service = WalletService(db_session)
        wallet = await service.find_wallet(player.id)
        wallet.main_balance += 1
        await db_session.flush()

        result = await service.reconcile(player.id)

        assert not result.balanced
        assert result.ledger_total == 10_000
        assert result.wallet_total == 10_001


def test_default_bounds_match_configuration():
    settings = get_settings()
    assert settings.deposit_min_amount == Decimal("10")
    assert settings.withdraw_max_amount == Decimal("50")
    assert settings.withdraw_tax_percent == 10
