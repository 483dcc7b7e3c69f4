"""Wallet Service: ledger store and transaction log.

Features:
- Lazy wallet creation
- Deposit requests with admin approval (credits ``main``)
- Withdrawal requests that reserve from ``winning`` at request time
- 24-hour throttle between approved withdrawals
- System-initiated entry fee / prize / refund movements
- Ledger reconciliation

Every balance change runs in the same database transaction (SAVEPOINT) as its
``Transaction`` row, and every balance change is a conditional UPDATE so a
wallet can never go negative and a pending request is approved at most once.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings, get_settings
from app.models.base import utcnow
from app.models.transitions import TRANSACTION
from app.models.user import User
from app.models.wallet import (
    Transaction,
    TransactionStatus,
    TransactionType,
    USER_REQUESTED_TYPES,
    Wallet,
)
from app.services.auth import Principal
from app.services.storage import LocalFileStorage
from app.utils import ids
from app.utils.errors import ErrorCode, ServiceError
from app.utils.money import percent_of, to_paise, to_rupees

logger = logging.getLogger(__name__)


class WalletError(ServiceError):
    """Wallet operation error."""


@dataclass
class BalanceView:
    main: int
    winning: int

    @property
    def total(self) -> int:
        return self.main + self.winning

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": to_rupees(self.total),
            "main": to_rupees(self.main),
            "winning": to_rupees(self.winning),
        }


@dataclass
class WithdrawalLimit:
    blocked: bool
    next_withdrawal_time: datetime | None = None
    hours_left: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "blocked": self.blocked,
            "next_withdrawal_time": self.next_withdrawal_time,
            "hours_left": self.hours_left,
        }


@dataclass
class Reconciliation:
    user_id: str
    ledger_total: int
    wallet_total: int

    @property
    def balanced(self) -> bool:
        return self.ledger_total == self.wallet_total

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "ledger_total": to_rupees(self.ledger_total),
            "wallet_total": to_rupees(self.wallet_total),
            "balanced": self.balanced,
        }


def affects_balance(tx: Transaction) -> bool:
    """Whether ``tx`` is currently reflected in the wallet.

    A pending withdrawal already holds its reservation; a pending deposit has
    not been credited yet.
    """
    if tx.tx_type == TransactionType.ADD_CASH:
        return tx.status == TransactionStatus.APPROVED
    if tx.tx_type == TransactionType.WITHDRAW:
        return tx.status in (TransactionStatus.PENDING, TransactionStatus.APPROVED)
    return tx.status == TransactionStatus.COMPLETED


class WalletService:
    """Ledger operations for one database session.

    The service never commits; the caller's unit of work does.
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        settings: Settings | None = None,
        storage: LocalFileStorage | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.session = session
        self.settings = settings or get_settings()
        self._storage = storage
        self._clock = clock

    # =========================================================================
    # Wallet records
    # =========================================================================

    async def find_wallet(self, user_id: str) -> Wallet | None:
        """Load the wallet fresh from the database (no stale identity-map values)."""
        result = await self.session.execute(
            select(Wallet)
            .where(Wallet.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_or_create_wallet(self, user_id: str) -> Wallet:
        """Return the user's wallet, creating an empty one on first access."""
        wallet = await self.find_wallet(user_id)
        if wallet is not None:
            return wallet

        user = await self.session.get(User, user_id)
        if user is None:
            raise WalletError(ErrorCode.USER_NOT_FOUND, f"User not found: {user_id}")

        wallet = Wallet(
            user_id=user_id,
            main_balance=0,
            winning_balance=0,
            total_deposited=0,
            total_withdrawn=0,
            total_winnings=0,
        )
        try:
            async with self.session.begin_nested():
                self.session.add(wallet)
        except IntegrityError:
            # Lost a first-access race; the other request's row is authoritative.
            wallet = await self.find_wallet(user_id)
            if wallet is None:
                raise
            return wallet

        logger.info(f"Wallet created: user={user_id[:8]}...")
        return wallet

    async def get_balance(self, user_id: str) -> BalanceView:
        wallet = await self.get_or_create_wallet(user_id)
        return BalanceView(main=wallet.main_balance, winning=wallet.winning_balance)

    async def _adjust(
        self,
        user_id: str,
        *,
        main: int = 0,
        winning: int = 0,
        deposited: int = 0,
        withdrawn: int = 0,
        winnings: int = 0,
    ) -> bool:
        """Apply deltas in one conditional UPDATE.

        Negative balance deltas only match if the balance covers them.

        Returns:
            False when no row matched (no wallet, or insufficient balance)
        """
        stmt = update(Wallet).where(Wallet.user_id == user_id)
        if main < 0:
            stmt = stmt.where(Wallet.main_balance >= -main)
        if winning < 0:
            stmt = stmt.where(Wallet.winning_balance >= -winning)

        values: dict[str, Any] = {}
        if main:
            values["main_balance"] = Wallet.main_balance + main
        if winning:
            values["winning_balance"] = Wallet.winning_balance + winning
        if deposited:
            values["total_deposited"] = Wallet.total_deposited + deposited
        if withdrawn:
            values["total_withdrawn"] = Wallet.total_withdrawn + withdrawn
        if winnings:
            values["total_winnings"] = Wallet.total_winnings + winnings
        values["updated_at"] = self._clock()

        result = await self.session.execute(
            stmt.values(**values).execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    # =========================================================================
    # Transaction log
    # =========================================================================

    async def record_transaction(
        self,
        user_id: str,
        tx_type: TransactionType,
        amount: int,
        **fields: Any,
    ) -> Transaction:
        """Append a transaction row.

        ``add_cash``/``withdraw`` start ``pending``; system-initiated types are
        ``completed`` immediately. External ids are regenerated on a unique
        collision.

        Raises:
            WalletError: INVALID_AMOUNT for non-positive amounts,
                DUPLICATE_TRANSACTION when ``idempotency_key`` is already taken,
                ID_GENERATION_FAILED if no unique id could be allocated
        """
        if amount <= 0:
            raise WalletError(ErrorCode.INVALID_AMOUNT, "Amount must be positive")

        status = (
            TransactionStatus.PENDING
            if tx_type in USER_REQUESTED_TYPES
            else TransactionStatus.COMPLETED
        )
        fields.setdefault("tax_amount", 0)

        for attempt in range(1, ids.MAX_ID_ATTEMPTS + 1):
            tx = Transaction(
                transaction_id=ids.transaction_id(),
                reference_id=ids.reference_id() if tx_type == TransactionType.WITHDRAW else None,
                user_id=user_id,
                tx_type=tx_type,
                status=status,
                amount=amount,
                **fields,
            )
            tx.integrity_hash = tx.compute_integrity_hash()
            try:
                async with self.session.begin_nested():
                    self.session.add(tx)
            except IntegrityError:
                key = fields.get("idempotency_key")
                if key and await self.find_by_idempotency_key(key) is not None:
                    raise WalletError(
                        ErrorCode.DUPLICATE_TRANSACTION,
                        "This movement was already recorded",
                        {"idempotency_key": key},
                    ) from None
                logger.warning(
                    f"Transaction id collision: {tx.transaction_id} (attempt {attempt})"
                )
                continue
            return tx

        raise WalletError(
            ErrorCode.ID_GENERATION_FAILED,
            "Could not allocate a unique transaction id",
        )

    async def find_by_idempotency_key(self, key: str) -> Transaction | None:
        result = await self.session.execute(
            select(Transaction).where(Transaction.idempotency_key == key)
        )
        return result.scalar_one_or_none()

    async def get_transaction(self, ref: str) -> Transaction:
        """Find by internal id or external ``TX…`` id."""
        result = await self.session.execute(
            select(Transaction)
            .where(or_(Transaction.id == ref, Transaction.transaction_id == ref))
            .execution_options(populate_existing=True)
        )
        tx = result.scalar_one_or_none()
        if tx is None:
            raise WalletError(ErrorCode.TRANSACTION_NOT_FOUND, f"Transaction not found: {ref}")
        return tx

    async def _settle_request(
        self,
        tx: Transaction,
        event: str,
        admin: Principal,
        notes: str | None,
    ) -> None:
        """Move a pending request to approved/rejected exactly once."""
        if not TRANSACTION.can(tx.status, event):
            raise WalletError(
                ErrorCode.ALREADY_PROCESSED,
                f"Transaction already {tx.status.value}",
                {"transaction_id": tx.transaction_id, "status": tx.status.value},
            )
        target = TRANSACTION.next(tx.status, event)

        result = await self.session.execute(
            update(Transaction)
            .where(
                Transaction.id == tx.id,
                Transaction.status.in_(TRANSACTION.sources(event)),
            )
            .values(
                status=target,
                approved_by=admin.user_id,
                approved_at=self._clock(),
                admin_notes=notes,
                updated_at=self._clock(),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise WalletError(
                ErrorCode.ALREADY_PROCESSED,
                "Transaction was processed concurrently",
                {"transaction_id": tx.transaction_id},
            )
        await self.session.refresh(tx)

    @staticmethod
    def _require_type(tx: Transaction, tx_type: TransactionType) -> None:
        if tx.tx_type != tx_type:
            raise WalletError(
                ErrorCode.WRONG_TRANSACTION_TYPE,
                f"Expected a {tx_type.value} transaction, got {tx.tx_type.value}",
            )

    def _check_bounds(self, amount: int, low: int, high: int) -> None:
        if not low <= amount <= high:
            raise WalletError(
                ErrorCode.INVALID_AMOUNT,
                f"Amount must be between ₹{to_rupees(low)} and ₹{to_rupees(high)}",
                {
                    "amount": to_rupees(amount),
                    "min_amount": to_rupees(low),
                    "max_amount": to_rupees(high),
                },
            )

    # =========================================================================
    # Deposits
    # =========================================================================

    async def request_deposit(
        self,
        user_id: str,
        amount: int,
        upi_transaction_id: str | None,
        screenshot_path: str | None = None,
    ) -> Transaction:
        """Create a pending add-cash request.

        The uploaded screenshot is deleted if the request is rejected by
        validation, so no orphaned proof files are left behind.
        """
        try:
            self._check_bounds(
                amount,
                to_paise(self.settings.deposit_min_amount),
                to_paise(self.settings.deposit_max_amount),
            )
            if not upi_transaction_id or not upi_transaction_id.strip():
                raise WalletError(
                    ErrorCode.PAYMENT_PROOF_REQUIRED,
                    "UPI transaction id is required",
                )
            await self.get_or_create_wallet(user_id)
        except ServiceError:
            if screenshot_path and self._storage is not None:
                await self._storage.delete(screenshot_path)
            raise

        tx = await self.record_transaction(
            user_id,
            TransactionType.ADD_CASH,
            amount,
            upi_transaction_id=upi_transaction_id.strip(),
            screenshot_path=screenshot_path,
            description="Add cash request",
        )
        logger.info(
            f"Deposit requested: user={user_id[:8]}... tx={tx.transaction_id} amount={amount}"
        )
        return tx

    async def approve_deposit(
        self,
        transaction_id: str,
        admin: Principal,
        notes: str | None = None,
    ) -> Transaction:
        """Approve a pending deposit and credit ``main`` exactly once.

        Raises:
            WalletError: ALREADY_PROCESSED if the request is no longer pending
        """
        admin.require_admin()
        tx = await self.get_transaction(transaction_id)
        self._require_type(tx, TransactionType.ADD_CASH)

        async with self.session.begin_nested():
            await self._settle_request(tx, "approve", admin, notes)
            credited = await self._adjust(tx.user_id, main=tx.amount, deposited=tx.amount)
            if not credited:
                raise WalletError(
                    ErrorCode.WALLET_NOT_FOUND,
                    f"Wallet not found for user {tx.user_id}",
                )

        logger.info(
            f"Deposit approved: tx={tx.transaction_id} user={tx.user_id[:8]}... "
            f"amount={tx.amount} by={admin.user_id[:8]}..."
        )
        return tx

    async def reject_deposit(
        self,
        transaction_id: str,
        admin: Principal,
        notes: str | None = None,
    ) -> Transaction:
        """Reject a pending deposit. No balance change."""
        admin.require_admin()
        tx = await self.get_transaction(transaction_id)
        self._require_type(tx, TransactionType.ADD_CASH)

        await self._settle_request(tx, "reject", admin, notes)
        logger.info(f"Deposit rejected: tx={tx.transaction_id} by={admin.user_id[:8]}...")
        return tx

    # =========================================================================
    # Withdrawals
    # =========================================================================

    async def check_withdrawal_limit(self, user_id: str) -> WithdrawalLimit:
        """Throttle check: one approved withdrawal per rolling cooldown window."""
        result = await self.session.execute(
            select(Transaction.approved_at)
            .where(
                Transaction.user_id == user_id,
                Transaction.tx_type == TransactionType.WITHDRAW,
                Transaction.status == TransactionStatus.APPROVED,
                Transaction.approved_at.is_not(None),
            )
            .order_by(Transaction.approved_at.desc())
            .limit(1)
        )
        last_approved = result.scalar_one_or_none()
        if last_approved is None:
            return WithdrawalLimit(blocked=False)

        next_time = last_approved + timedelta(hours=self.settings.withdraw_cooldown_hours)
        now = self._clock()
        if now >= next_time:
            return WithdrawalLimit(blocked=False)

        hours_left = round((next_time - now).total_seconds() / 3600, 1)
        return WithdrawalLimit(
            blocked=True,
            next_withdrawal_time=next_time,
            hours_left=hours_left,
        )

    async def request_withdrawal(
        self,
        user_id: str,
        amount: int,
        *,
        upi_id: str | None = None,
        bank_details: dict[str, str] | None = None,
    ) -> Transaction:
        """Create a pending withdrawal and reserve the gross amount from ``winning``.

        Raises:
            WalletError: INVALID_AMOUNT, PAYOUT_DETAILS_REQUIRED, THROTTLE_ACTIVE,
                INSUFFICIENT_BALANCE
        """
        self._check_bounds(
            amount,
            to_paise(self.settings.withdraw_min_amount),
            to_paise(self.settings.withdraw_max_amount),
        )
        if not upi_id and not bank_details:
            raise WalletError(
                ErrorCode.PAYOUT_DETAILS_REQUIRED,
                "A UPI id or bank details are required",
            )

        limit = await self.check_withdrawal_limit(user_id)
        if limit.blocked:
            raise WalletError(
                ErrorCode.THROTTLE_ACTIVE,
                f"You can withdraw again in {limit.hours_left:.1f} hours",
                limit.to_dict(),
            )

        wallet = await self.get_or_create_wallet(user_id)
        if wallet.winning_balance < amount:
            raise WalletError(
                ErrorCode.INSUFFICIENT_BALANCE,
                "Insufficient winning balance",
                {
                    "required": to_rupees(amount),
                    "available": to_rupees(wallet.winning_balance),
                },
            )

        tax = percent_of(amount, self.settings.withdraw_tax_percent)
        async with self.session.begin_nested():
            tx = await self.record_transaction(
                user_id,
                TransactionType.WITHDRAW,
                amount,
                tax_amount=tax,
                net_amount=amount - tax,
                upi_id=upi_id,
                bank_details=bank_details,
                description="Withdrawal request",
            )
            reserved = await self._adjust(user_id, winning=-amount)
            if not reserved:
                raise WalletError(
                    ErrorCode.INSUFFICIENT_BALANCE,
                    "Insufficient winning balance",
                )

        logger.info(
            f"Withdrawal requested: user={user_id[:8]}... tx={tx.transaction_id} "
            f"amount={amount} tax={tax}"
        )
        return tx

    async def approve_withdrawal(
        self,
        transaction_id: str,
        admin: Principal,
        notes: str | None = None,
    ) -> Transaction:
        """Finalize a withdrawal. The reservation already debited the wallet.

        The throttle is checked again here: several requests may be pending
        at once, but only one of them can be approved per cooldown window.

        Raises:
            WalletError: ALREADY_PROCESSED, WRONG_TRANSACTION_TYPE, THROTTLE_ACTIVE
        """
        admin.require_admin()
        tx = await self.get_transaction(transaction_id)
        self._require_type(tx, TransactionType.WITHDRAW)

        async with self.session.begin_nested():
            # Serializes approvals for one user (no-op on SQLite)
            await self.session.execute(
                select(Wallet.id).where(Wallet.user_id == tx.user_id).with_for_update()
            )
            if TRANSACTION.can(tx.status, "approve"):
                limit = await self.check_withdrawal_limit(tx.user_id)
                if limit.blocked:
                    raise WalletError(
                        ErrorCode.THROTTLE_ACTIVE,
                        f"User already has an approved withdrawal; next in "
                        f"{limit.hours_left:.1f} hours",
                        {"transaction_id": tx.transaction_id, **limit.to_dict()},
                    )
            await self._settle_request(tx, "approve", admin, notes)
            await self._adjust(tx.user_id, withdrawn=tx.amount)

        logger.info(
            f"Withdrawal approved: tx={tx.transaction_id} user={tx.user_id[:8]}... "
            f"amount={tx.amount} net={tx.net_amount}"
        )
        return tx

    async def reject_withdrawal(
        self,
        transaction_id: str,
        admin: Principal,
        notes: str | None = None,
    ) -> Transaction:
        """Reject a withdrawal and restore the reservation to ``winning``."""
        admin.require_admin()
        tx = await self.get_transaction(transaction_id)
        self._require_type(tx, TransactionType.WITHDRAW)

        async with self.session.begin_nested():
            await self._settle_request(tx, "reject", admin, notes)
            restored = await self._adjust(tx.user_id, winning=tx.amount)
            if not restored:
                raise WalletError(
                    ErrorCode.WALLET_NOT_FOUND,
                    f"Wallet not found for user {tx.user_id}",
                )

        logger.info(
            f"Withdrawal rejected: tx={tx.transaction_id} restored={tx.amount} "
            f"user={tx.user_id[:8]}..."
        )
        return tx

    # =========================================================================
    # System-initiated movements
    # =========================================================================

    async def debit_entry_fee(
        self,
        user_id: str,
        amount: int,
        *,
        tournament_id: str,
        registration_id: str,
    ) -> Transaction:
        """Charge an entry fee, drawing on ``main`` first and then ``winning``."""
        wallet = await self.find_wallet(user_id)
        if wallet is None or wallet.total_balance < amount:
            raise WalletError(
                ErrorCode.INSUFFICIENT_BALANCE,
                "Insufficient wallet balance for entry fee",
                {
                    "required": to_rupees(amount),
                    "available": to_rupees(wallet.total_balance if wallet else 0),
                },
            )

        from_main = min(wallet.main_balance, amount)
        from_winning = amount - from_main

        async with self.session.begin_nested():
            debited = await self._adjust(user_id, main=-from_main, winning=-from_winning)
            if not debited:
                raise WalletError(
                    ErrorCode.INSUFFICIENT_BALANCE,
                    "Insufficient wallet balance for entry fee",
                )
            tx = await self.record_transaction(
                user_id,
                TransactionType.ENTRY_FEE,
                amount,
                tournament_id=tournament_id,
                registration_id=registration_id,
                meta={"from_main": from_main, "from_winning": from_winning},
                description="Tournament entry fee",
            )

        logger.info(
            f"Entry fee debited: user={user_id[:8]}... amount={amount} "
            f"main={from_main} winning={from_winning}"
        )
        return tx

    async def credit_refund(
        self,
        user_id: str,
        amount: int,
        *,
        tournament_id: str,
        registration_id: str,
        original: Transaction | None = None,
    ) -> Transaction:
        """Return an entry fee to the sub-balances it was drawn from."""
        meta = (original.meta or {}) if original is not None else {}
        to_winning = min(int(meta.get("from_winning", 0)), amount)
        to_main = amount - to_winning

        await self.get_or_create_wallet(user_id)
        async with self.session.begin_nested():
            await self._adjust(user_id, main=to_main, winning=to_winning)
            tx = await self.record_transaction(
                user_id,
                TransactionType.REFUND,
                amount,
                tournament_id=tournament_id,
                registration_id=registration_id,
                meta={"to_main": to_main, "to_winning": to_winning},
                description="Entry fee refund",
            )

        logger.info(f"Refund credited: user={user_id[:8]}... amount={amount}")
        return tx

    async def credit_prize(
        self,
        user_id: str,
        amount: int,
        *,
        tournament_id: str,
        rank: int,
        idempotency_key: str | None = None,
    ) -> Transaction:
        """Credit a prize to ``winning``. The wallet must already exist.

        With ``idempotency_key`` a second credit for the same key is refused
        by the unique index and the balance change is rolled back.

        Raises:
            WalletError: WALLET_NOT_FOUND when the winner has no wallet,
                DUPLICATE_TRANSACTION when the key was already credited
        """
        async with self.session.begin_nested():
            credited = await self._adjust(user_id, winning=amount, winnings=amount)
            if not credited:
                raise WalletError(
                    ErrorCode.WALLET_NOT_FOUND,
                    f"Wallet not found for user {user_id}",
                    {"user_id": user_id},
                )
            tx = await self.record_transaction(
                user_id,
                TransactionType.PRIZE_WIN,
                amount,
                tournament_id=tournament_id,
                meta={"rank": rank},
                idempotency_key=idempotency_key,
                description=f"Prize for rank {rank}",
            )
        return tx

    # =========================================================================
    # Queries
    # =========================================================================

    async def list_transactions(
        self,
        user_id: str,
        *,
        page: int = 1,
        limit: int = 20,
        tx_type: TransactionType | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> tuple[list[Transaction], int]:
        """User transaction history, newest first, with total count."""
        filters = [Transaction.user_id == user_id]
        if tx_type is not None:
            filters.append(Transaction.tx_type == tx_type)
        if start is not None:
            filters.append(Transaction.created_at >= start)
        if end is not None:
            filters.append(Transaction.created_at <= end)
        return await self._paginate(filters, page, limit)

    async def list_pending(
        self,
        tx_type: TransactionType,
        admin: Principal,
        *,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[Transaction], int]:
        """Pending deposits or withdrawals awaiting an admin."""
        admin.require_admin()
        filters = [
            Transaction.tx_type == tx_type,
            Transaction.status == TransactionStatus.PENDING,
        ]
        return await self._paginate(filters, page, limit)

    async def _paginate(
        self,
        filters: list[Any],
        page: int,
        limit: int,
    ) -> tuple[list[Transaction], int]:
        page = max(page, 1)
        limit = min(max(limit, 1), 100)

        total = await self.session.scalar(
            select(func.count()).select_from(Transaction).where(*filters)
        )
        result = await self.session.execute(
            select(Transaction)
            .where(*filters)
            .order_by(Transaction.created_at.desc(), Transaction.transaction_id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result.scalars().all()), total or 0

    async def reconcile(self, user_id: str) -> Reconciliation:
        """Compare the signed ledger sum with the stored wallet balance."""
        result = await self.session.execute(
            select(Transaction)
            .where(Transaction.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        ledger_total = sum(
            tx.signed_amount for tx in result.scalars().all() if affects_balance(tx)
        )
        wallet = await self.find_wallet(user_id)
        wallet_total = wallet.total_balance if wallet else 0

        reconciliation = Reconciliation(user_id, ledger_total, wallet_total)
        if not reconciliation.balanced:
            logger.error(
                f"Ledger mismatch: user={user_id[:8]}... "
                f"ledger={ledger_total} wallet={wallet_total}"
            )
        return reconciliation

    async def dashboard_stats(self, admin: Principal) -> dict[str, Any]:
        """Admin totals by transaction type and status."""
        admin.require_admin()
        result = await self.session.execute(
            select(
                Transaction.tx_type,
                Transaction.status,
                func.count(),
                func.coalesce(func.sum(Transaction.amount), 0),
            ).group_by(Transaction.tx_type, Transaction.status)
        )
        breakdown: dict[str, dict[str, Any]] = {}
        for tx_type, status, count, amount in result.all():
            breakdown.setdefault(tx_type.value, {})[status.value] = {
                "count": count,
                "amount": to_rupees(int(amount)),
            }

        totals = (await self.session.execute(
            select(
                func.count(Wallet.id),
                func.coalesce(func.sum(Wallet.main_balance), 0),
                func.coalesce(func.sum(Wallet.winning_balance), 0),
            )
        )).one()
        users = await self.session.scalar(select(func.count()).select_from(User))

        def bucket(tx_type: TransactionType, status: TransactionStatus) -> dict[str, Any]:
            return breakdown.get(tx_type.value, {}).get(
                status.value, {"count": 0, "amount": to_rupees(0)}
            )

        return {
            "users": users or 0,
            "wallets": totals[0],
            "main_balance_total": to_rupees(int(totals[1])),
            "winning_balance_total": to_rupees(int(totals[2])),
            "pending_deposits": bucket(TransactionType.ADD_CASH, TransactionStatus.PENDING),
            "approved_deposits": bucket(TransactionType.ADD_CASH, TransactionStatus.APPROVED),
            "pending_withdrawals": bucket(TransactionType.WITHDRAW, TransactionStatus.PENDING),
            "approved_withdrawals": bucket(TransactionType.WITHDRAW, TransactionStatus.APPROVED),
            "breakdown": breakdown,
        }
