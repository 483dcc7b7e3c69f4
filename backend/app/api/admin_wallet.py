"""Admin wallet API endpoints.

Approve/reject of add-cash and withdrawal requests. Every approval is a
conditional transition out of ``pending``, so a double click or two admins
racing on the same request settle it exactly once.
"""

from fastapi import APIRouter, Query

from app.api.deps import AdminPrincipal, DbSession
from app.logging_config import get_logger
from app.middleware.prometheus import record_deposit, record_withdrawal
from app.models.wallet import TransactionType
from app.schemas.common import ErrorResponse, PaginatedResponse, PaginationMeta
from app.schemas.requests import TransactionDecisionRequest
from app.schemas.responses import ReconciliationResponse, TransactionResponse
from app.services.wallet import WalletService
from app.utils.json_utils import ORJSONResponse

logger = get_logger(__name__)

router = APIRouter(prefix="/admin/wallet", tags=["Admin Wallet"])

_DECISION_RESPONSES = {
    403: {"model": ErrorResponse, "description": "Admin only"},
    404: {"model": ErrorResponse, "description": "Transaction not found"},
    409: {"model": ErrorResponse, "description": "Already processed"},
}


async def _pending(
    db: DbSession,
    admin: AdminPrincipal,
    tx_type: TransactionType,
    page: int,
    limit: int,
) -> PaginatedResponse[TransactionResponse]:
    transactions, total = await WalletService(db).list_pending(
        tx_type, admin, page=page, limit=limit
    )
    return PaginatedResponse[TransactionResponse](
        items=[TransactionResponse.from_tx(tx) for tx in transactions],
        pagination=PaginationMeta.build(page, limit, total),
    )


@router.get("/deposits/pending", response_model=PaginatedResponse[TransactionResponse])
async def list_pending_deposits(
    admin: AdminPrincipal,
    db: DbSession,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    return await _pending(db, admin, TransactionType.ADD_CASH, page, limit)


@router.get("/withdrawals/pending", response_model=PaginatedResponse[TransactionResponse])
async def list_pending_withdrawals(
    admin: AdminPrincipal,
    db: DbSession,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    return await _pending(db, admin, TransactionType.WITHDRAW, page, limit)


@router.post(
    "/deposits/{transaction_id}/approve",
    response_model=TransactionResponse,
    responses=_DECISION_RESPONSES,
)
async def approve_deposit(
    transaction_id: str,
    admin: AdminPrincipal,
    db: DbSession,
    body: TransactionDecisionRequest | None = None,
):
    """Approve an add-cash request and credit the main balance."""
    tx = await WalletService(db).approve_deposit(
        transaction_id, admin, notes=body.notes if body else None
    )
    record_deposit("approved", tx.amount)
    logger.info("deposit_approved", transaction_id=tx.transaction_id, admin_id=admin.user_id)
    return TransactionResponse.from_tx(tx)


@router.post(
    "/deposits/{transaction_id}/reject",
    response_model=TransactionResponse,
    responses=_DECISION_RESPONSES,
)
async def reject_deposit(
    transaction_id: str,
    admin: AdminPrincipal,
    db: DbSession,
    body: TransactionDecisionRequest | None = None,
):
    tx = await WalletService(db).reject_deposit(
        transaction_id, admin, notes=body.notes if body else None
    )
    record_deposit("rejected")
    logger.info("deposit_rejected", transaction_id=tx.transaction_id, admin_id=admin.user_id)
    return TransactionResponse.from_tx(tx)


@router.post(
    "/withdrawals/{transaction_id}/approve",
    response_model=TransactionResponse,
    responses=_DECISION_RESPONSES,
)
async def approve_withdrawal(
    transaction_id: str,
    admin: AdminPrincipal,
    db: DbSession,
    body: TransactionDecisionRequest | None = None,
):
    """Mark a withdrawal as paid out. The balance was reserved at request time."""
    tx = await WalletService(db).approve_withdrawal(
        transaction_id, admin, notes=body.notes if body else None
    )
    record_withdrawal("approved", tx.amount)
    logger.info("withdrawal_approved", transaction_id=tx.transaction_id, admin_id=admin.user_id)
    return TransactionResponse.from_tx(tx)


@router.post(
    "/withdrawals/{transaction_id}/reject",
    response_model=TransactionResponse,
    responses=_DECISION_RESPONSES,
)
async def reject_withdrawal(
    transaction_id: str,
    admin: AdminPrincipal,
    db: DbSession,
    body: TransactionDecisionRequest | None = None,
):
    """Reject a withdrawal; the reservation returns to the winning balance."""
    tx = await WalletService(db).reject_withdrawal(
        transaction_id, admin, notes=body.notes if body else None
    )
    record_withdrawal("rejected")
    logger.info("withdrawal_rejected", transaction_id=tx.transaction_id, admin_id=admin.user_id)
    return TransactionResponse.from_tx(tx)


@router.get("/stats")
async def get_wallet_stats(admin: AdminPrincipal, db: DbSession):
    stats = await WalletService(db).dashboard_stats(admin)
    return ORJSONResponse(content=stats)


@router.get("/reconcile/{user_id}", response_model=ReconciliationResponse)
async def reconcile_user(user_id: str, admin: AdminPrincipal, db: DbSession):
    """Compare a user's ledger sum with their stored balance."""
    result = await WalletService(db).reconcile(user_id)
    return ReconciliationResponse(**result.to_dict())
