"""Tournament registration API endpoints.

Registration is two steps: ``POST /registrations/{tournament_id}`` creates a
pending entry, ``POST /registrations/{id}/pay`` debits the entry fee and
confirms the seat.
"""

from fastapi import APIRouter, Query, status

from app.api.deps import AdminPrincipal, CurrentPrincipal, DbSession
from app.logging_config import get_logger
from app.middleware.prometheus import record_entry_fee, record_refund
from app.models.registration import PaymentStatus, RegistrationStatus
from app.schemas.common import ErrorResponse, PaginatedResponse, PaginationMeta
from app.schemas.requests import RegisterPlayerRequest
from app.schemas.responses import RegistrationResponse
from app.services.registration import RegistrationService
from app.utils.json_utils import ORJSONResponse

logger = get_logger(__name__)

router = APIRouter(prefix="/registrations", tags=["Registrations"])


@router.get("/me", response_model=list[RegistrationResponse])
async def get_my_registrations(principal: CurrentPrincipal, db: DbSession):
    """Current user's registrations with their tournaments, newest first."""
    rows = await RegistrationService(db).my_registrations(principal.user_id)
    return [RegistrationResponse.from_model(reg, tournament) for reg, tournament in rows]


@router.get("/check/{tournament_id}")
async def check_registration(
    tournament_id: str,
    principal: CurrentPrincipal,
    db: DbSession,
):
    registration = await RegistrationService(db).check_registration(
        tournament_id, principal.user_id
    )
    if registration is None:
        return ORJSONResponse(content={"registered": False, "registration": None})
    return ORJSONResponse(content={
        "registered": True,
        "registration": RegistrationResponse.from_model(registration).model_dump(mode="json"),
    })


@router.get("/admin/stats")
async def get_registration_stats(admin: AdminPrincipal, db: DbSession):
    stats = await RegistrationService(db).stats(admin)
    return ORJSONResponse(content=stats)


@router.get("/admin", response_model=PaginatedResponse[RegistrationResponse])
async def list_registrations(
    admin: AdminPrincipal,
    db: DbSession,
    tournament_id: str | None = Query(None, alias="tournamentId"),
    status_filter: RegistrationStatus | None = Query(None, alias="status"),
    payment_status: PaymentStatus | None = Query(None, alias="paymentStatus"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    registrations, total = await RegistrationService(db).list_registrations(
        admin,
        tournament_id=tournament_id,
        status=status_filter,
        payment_status=payment_status,
        page=page,
        limit=limit,
    )
    return PaginatedResponse[RegistrationResponse](
        items=[RegistrationResponse.from_model(r) for r in registrations],
        pagination=PaginationMeta.build(page, limit, total),
    )


@router.post(
    "/{tournament_id}",
    response_model=RegistrationResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse, "description": "Insufficient balance"},
        404: {"model": ErrorResponse, "description": "Tournament not found"},
        409: {"model": ErrorResponse, "description": "Already registered, full or closed"},
    },
)
async def register_for_tournament(
    tournament_id: str,
    request_body: RegisterPlayerRequest,
    principal: CurrentPrincipal,
    db: DbSession,
):
    """Create a pending registration. No money moves until payment."""
    registration = await RegistrationService(db).register(
        tournament_id,
        principal.user_id,
        request_body.player_id,
        request_body.player_name,
        request_body.team_type,
    )
    logger.info("registration_created", registration_id=registration.id, tournament_id=tournament_id)
    return RegistrationResponse.from_model(registration)


@router.post(
    "/{registration_id}/pay",
    response_model=RegistrationResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Insufficient balance"},
        403: {"model": ErrorResponse, "description": "Not your registration"},
        409: {"model": ErrorResponse, "description": "Tournament full or already paid"},
    },
)
async def pay_registration(
    registration_id: str,
    principal: CurrentPrincipal,
    db: DbSession,
):
    """Pay the entry fee from the wallet and confirm the seat."""
    registration = await RegistrationService(db).process_payment(
        registration_id, principal.user_id
    )
    record_entry_fee(registration.entry_fee_paid)
    logger.info(
        "registration_confirmed",
        registration_id=registration.id,
        transaction_id=registration.transaction_id,
    )
    return RegistrationResponse.from_model(registration)


@router.post("/{registration_id}/cancel", response_model=RegistrationResponse)
async def cancel_registration(
    registration_id: str,
    admin: AdminPrincipal,
    db: DbSession,
):
    registration = await RegistrationService(db).cancel(registration_id, admin)
    return RegistrationResponse.from_model(registration)


@router.post(
    "/{registration_id}/refund",
    response_model=RegistrationResponse,
    responses={409: {"model": ErrorResponse, "description": "Not cancelled or nothing to refund"}},
)
async def refund_registration(
    registration_id: str,
    admin: AdminPrincipal,
    db: DbSession,
):
    """Refund the entry fee of a cancelled registration to the main balance."""
    registration = await RegistrationService(db).refund(registration_id, admin)
    record_refund(registration.entry_fee_paid)
    logger.info("registration_refunded", registration_id=registration.id, admin_id=admin.user_id)
    return RegistrationResponse.from_model(registration)
