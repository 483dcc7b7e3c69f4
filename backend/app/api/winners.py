"""Winner declaration and prize distribution API endpoints.

Declaring winners records who won; distributing prizes credits each winner's
winning balance independently. A failed payout leaves the declaration in
``processing`` and can be retried without paying anyone twice.
"""

from fastapi import APIRouter, Query, status

from app.api.deps import AdminPrincipal, DbSession
from app.logging_config import get_logger
from app.middleware.prometheus import record_prize_payout
from app.schemas.common import ErrorResponse, PaginatedResponse, PaginationMeta
from app.schemas.requests import (
    DeclareWinnersRequest,
    DistributePrizesRequest,
    UpdateWinnersRequest,
    WinnerEntry,
)
from app.schemas.responses import (
    PayoutResultResponse,
    SettlementResponse,
    WinnerDeclarationResponse,
)
from app.services.settlement import SettlementService
from app.utils.json_utils import ORJSONResponse
from app.utils.money import to_paise

logger = get_logger(__name__)

router = APIRouter(prefix="/winners", tags=["Winners"])


def _winner_dicts(winners: list[WinnerEntry]) -> list[dict]:
    return [
        {
            "rank": w.rank,
            "player_id": w.player_id,
            "player_name": w.player_name,
            "prize": to_paise(w.prize),
        }
        for w in winners
    ]


@router.get("/recent", response_model=list[WinnerDeclarationResponse])
async def list_recent_winners(
    db: DbSession,
    limit: int = Query(10, ge=1, le=50),
):
    rows = await SettlementService(db).recent(limit)
    return [WinnerDeclarationResponse.from_model(d, t) for d, t in rows]


@router.get(
    "/tournament/{tournament_id}",
    response_model=WinnerDeclarationResponse,
    responses={404: {"model": ErrorResponse, "description": "Winners not declared"}},
)
async def get_tournament_winners(tournament_id: str, db: DbSession):
    declaration = await SettlementService(db).get_by_tournament(tournament_id)
    return WinnerDeclarationResponse.from_model(declaration)


@router.get("/admin/history", response_model=PaginatedResponse[WinnerDeclarationResponse])
async def get_declaration_history(
    admin: AdminPrincipal,
    db: DbSession,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
):
    declarations, total = await SettlementService(db).history(admin, page=page, limit=limit)
    return PaginatedResponse[WinnerDeclarationResponse](
        items=[WinnerDeclarationResponse.from_model(d) for d in declarations],
        pagination=PaginationMeta.build(page, limit, total),
    )


@router.get("/admin/stats")
async def get_winner_stats(admin: AdminPrincipal, db: DbSession):
    stats = await SettlementService(db).stats(admin)
    return ORJSONResponse(content=stats)


@router.get("/admin/{declaration_id}", response_model=WinnerDeclarationResponse)
async def get_declaration(declaration_id: str, admin: AdminPrincipal, db: DbSession):
    declaration = await SettlementService(db).get(declaration_id, admin)
    return WinnerDeclarationResponse.from_model(declaration)


@router.post(
    "/declare",
    response_model=WinnerDeclarationResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid winners or prizes"},
        409: {"model": ErrorResponse, "description": "Already declared or not completed"},
    },
)
async def declare_winners(
    request_body: DeclareWinnersRequest,
    admin: AdminPrincipal,
    db: DbSession,
):
    """Declare up to three ranked winners of a completed tournament."""
    declaration = await SettlementService(db).declare_winners(
        request_body.tournament_id,
        _winner_dicts(request_body.winners),
        admin,
        total_prize=to_paise(request_body.total_prize) if request_body.total_prize else None,
    )
    logger.info(
        "winners_declared",
        tournament_id=request_body.tournament_id,
        winners=len(declaration.winners),
    )
    return WinnerDeclarationResponse.from_model(declaration)


@router.put(
    "/tournament/{tournament_id}",
    response_model=WinnerDeclarationResponse,
    responses={409: {"model": ErrorResponse, "description": "Declaration already settled"}},
)
async def update_winners(
    tournament_id: str,
    request_body: UpdateWinnersRequest,
    admin: AdminPrincipal,
    db: DbSession,
):
    declaration = await SettlementService(db).update_declaration(
        tournament_id,
        _winner_dicts(request_body.winners),
        admin,
        total_prize=to_paise(request_body.total_prize) if request_body.total_prize else None,
    )
    return WinnerDeclarationResponse.from_model(declaration)


@router.post(
    "/distribute-prizes",
    response_model=SettlementResponse,
    responses={
        404: {"model": ErrorResponse, "description": "Winners not declared"},
        409: {"model": ErrorResponse, "description": "Prizes already distributed"},
    },
)
async def distribute_prizes(
    request_body: DistributePrizesRequest,
    admin: AdminPrincipal,
    db: DbSession,
):
    """Credit every unpaid winner. Safe to call again after a partial failure."""
    summary = await SettlementService(db).distribute_prizes(request_body.tournament_id, admin)
    for result in summary.results:
        if result.already_paid:
            record_prize_payout("already_paid")
        elif result.success:
            record_prize_payout("paid", result.prize)
        else:
            record_prize_payout("failed")

    return SettlementResponse(
        tournament_id=summary.tournament_id,
        status=summary.status,
        all_paid=summary.all_paid,
        paid_amount=summary.to_dict()["paid_amount"],
        results=[PayoutResultResponse(**r.to_dict()) for r in summary.results],
    )
