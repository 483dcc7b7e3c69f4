"""Wallet API endpoints for add-cash and withdrawal requests.

Endpoints:
- GET /wallet/balance - Main, winning and total balance
- GET /wallet/withdrawal-limit - 24h withdrawal throttle state
- POST /wallet/deposit - Add-cash request with UPI reference and screenshot
- POST /wallet/withdraw - Withdrawal request (reserves winning balance)
- GET /wallet/transactions - Transaction history
- GET /wallet/reconcile - Ledger vs. wallet check for the current user
"""

from datetime import datetime
from decimal import Decimal

from fastapi import APIRouter, File, Form, Query, UploadFile, status

from app.api.deps import CurrentPrincipal, DbSession, Storage
from app.logging_config import get_logger
from app.middleware.prometheus import record_deposit, record_withdrawal
from app.models.wallet import TransactionType
from app.schemas.common import ErrorResponse, PaginatedResponse, PaginationMeta
from app.schemas.requests import WithdrawRequest
from app.schemas.responses import (
    BalanceResponse,
    ReconciliationResponse,
    TransactionResponse,
    WithdrawalLimitResponse,
)
from app.services.storage import StorageError
from app.services.wallet import WalletService
from app.utils.errors import ErrorCode, ServiceError
from app.utils.money import to_paise

logger = get_logger(__name__)

router = APIRouter(prefix="/wallet", tags=["Wallet"])


@router.get("/balance", response_model=BalanceResponse)
async def get_balance(principal: CurrentPrincipal, db: DbSession) -> BalanceResponse:
    """Get the user's wallet balance."""
    balance = await WalletService(db).get_balance(principal.user_id)
    return BalanceResponse(**balance.to_dict())


@router.get("/withdrawal-limit", response_model=WithdrawalLimitResponse)
async def get_withdrawal_limit(
    principal: CurrentPrincipal,
    db: DbSession,
) -> WithdrawalLimitResponse:
    limit = await WalletService(db).check_withdrawal_limit(principal.user_id)
    return WithdrawalLimitResponse(**limit.to_dict())


@router.post(
    "/deposit",
    response_model=TransactionResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse, "description": "Invalid amount or proof"}},
)
async def request_deposit(
    principal: CurrentPrincipal,
    db: DbSession,
    storage: Storage,
    amount: Decimal = Form(..., gt=0, max_digits=12, decimal_places=2),
    upi_transaction_id: str = Form(..., max_length=100),
    screenshot: UploadFile | None = File(None),
) -> TransactionResponse:
    """Submit an add-cash request for admin review.

    The payment screenshot is optional; when present it is stored first and
    removed again if the request fails validation.
    """
    screenshot_path = None
    if screenshot is not None and screenshot.filename:
        try:
            screenshot_path = await storage.save(screenshot.filename, await screenshot.read())
        except StorageError as e:
            raise ServiceError(ErrorCode.INVALID_INPUT, str(e)) from None

    service = WalletService(db, storage=storage)
    tx = await service.request_deposit(
        principal.user_id,
        to_paise(amount),
        upi_transaction_id,
        screenshot_path=screenshot_path,
    )
    record_deposit("requested")
    logger.info("deposit_requested", transaction_id=tx.transaction_id, amount=str(amount))
    return TransactionResponse.from_tx(tx)


@router.post(
    "/withdraw",
    response_model=TransactionResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse, "description": "Insufficient balance or invalid amount"},
        429: {"model": ErrorResponse, "description": "One withdrawal per 24 hours"},
    },
)
async def request_withdrawal(
    request_data: WithdrawRequest,
    principal: CurrentPrincipal,
    db: DbSession,
) -> TransactionResponse:
    """Request a payout from the winning balance."""
    tx = await WalletService(db).request_withdrawal(
        principal.user_id,
        to_paise(request_data.amount),
        upi_id=request_data.upi_id,
        bank_details=(
            request_data.bank_details.model_dump(exclude_none=True)
            if request_data.bank_details
            else None
        ),
    )
    record_withdrawal("requested")
    logger.info("withdrawal_requested", transaction_id=tx.transaction_id)
    return TransactionResponse.from_tx(tx)


@router.get("/transactions", response_model=PaginatedResponse[TransactionResponse])
async def get_transactions(
    principal: CurrentPrincipal,
    db: DbSession,
    tx_type: TransactionType | None = Query(None, alias="type"),
    start_date: datetime | None = Query(None, alias="startDate"),
    end_date: datetime | None = Query(None, alias="endDate"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    """Get the user's transaction history, newest first."""
    transactions, total = await WalletService(db).list_transactions(
        principal.user_id,
        page=page,
        limit=limit,
        tx_type=tx_type,
        start=start_date,
        end=end_date,
    )
    return PaginatedResponse[TransactionResponse](
        items=[TransactionResponse.from_tx(tx) for tx in transactions],
        pagination=PaginationMeta.build(page, limit, total),
    )


@router.get("/reconcile", response_model=ReconciliationResponse)
async def reconcile_wallet(principal: CurrentPrincipal, db: DbSession):
    result = await WalletService(db).reconcile(principal.user_id)
    return ReconciliationResponse(**result.to_dict())
