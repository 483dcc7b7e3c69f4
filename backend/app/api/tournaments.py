"""Tournament API endpoints.

Public listing plus admin lifecycle controls. Entry fee and prize pool are
accepted and returned in rupees; the service works in paise.
"""

from typing import Any

from fastapi import APIRouter, Query, status

from app.api.deps import AdminPrincipal, DbSession
from app.logging_config import get_logger
from app.models.tournament import Game, TournamentStatus, TournamentType
from app.schemas.common import ErrorResponse, PaginatedResponse, PaginationMeta, SuccessResponse
from app.schemas.requests import CreateTournamentRequest, UpdateTournamentRequest
from app.schemas.responses import TournamentResponse
from app.services.tournament import TournamentService
from app.utils.json_utils import ORJSONResponse
from app.utils.money import to_paise

logger = get_logger(__name__)

router = APIRouter(prefix="/tournaments", tags=["Tournaments"])

MONEY_FIELDS = ("entry_fee", "prize_pool")


def _to_service_data(data: dict[str, Any]) -> dict[str, Any]:
    for key in MONEY_FIELDS:
        if data.get(key) is not None:
            data[key] = to_paise(data[key])
    return data


@router.get("", response_model=PaginatedResponse[TournamentResponse])
async def list_tournaments(
    db: DbSession,
    status_filter: TournamentStatus | None = Query(None, alias="status"),
    game: Game | None = Query(None),
    tournament_type: TournamentType | None = Query(None, alias="type"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
):
    """List tournaments, soonest first."""
    tournaments, total = await TournamentService(db).list_tournaments(
        status=status_filter,
        game=game,
        tournament_type=tournament_type,
        page=page,
        limit=limit,
    )
    return PaginatedResponse[TournamentResponse](
        items=[TournamentResponse.from_model(t) for t in tournaments],
        pagination=PaginationMeta.build(page, limit, total),
    )


@router.get("/active", response_model=list[TournamentResponse])
async def list_active_tournaments(db: DbSession):
    tournaments = await TournamentService(db).active()
    return [TournamentResponse.from_model(t) for t in tournaments]


@router.get("/admin/stats")
async def get_tournament_stats(admin: AdminPrincipal, db: DbSession):
    stats = await TournamentService(db).dashboard_stats(admin)
    return ORJSONResponse(content=stats)


@router.get(
    "/{tournament_id}",
    response_model=TournamentResponse,
    responses={404: {"model": ErrorResponse, "description": "Tournament not found"}},
)
async def get_tournament(tournament_id: str, db: DbSession):
    tournament = await TournamentService(db).get(tournament_id)
    return TournamentResponse.from_model(tournament)


@router.post(
    "",
    response_model=TournamentResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid tournament data"},
        403: {"model": ErrorResponse, "description": "Admin only"},
    },
)
async def create_tournament(
    request_body: CreateTournamentRequest,
    admin: AdminPrincipal,
    db: DbSession,
):
    """Create a tournament open for registration."""
    data = _to_service_data(request_body.model_dump())
    tournament = await TournamentService(db).create(data, admin)
    logger.info("tournament_created", tournament_id=tournament.id, admin_id=admin.user_id)
    return TournamentResponse.from_model(tournament)


@router.patch(
    "/{tournament_id}",
    response_model=TournamentResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid tournament data"},
        409: {"model": ErrorResponse, "description": "Tournament already finished"},
    },
)
async def update_tournament(
    tournament_id: str,
    request_body: UpdateTournamentRequest,
    admin: AdminPrincipal,
    db: DbSession,
):
    data = _to_service_data(request_body.model_dump(exclude_unset=True))
    tournament = await TournamentService(db).update(tournament_id, data, admin)
    return TournamentResponse.from_model(tournament)


@router.post("/{tournament_id}/close-registration", response_model=TournamentResponse)
async def close_registration(tournament_id: str, admin: AdminPrincipal, db: DbSession):
    tournament = await TournamentService(db).close_registration(tournament_id, admin)
    return TournamentResponse.from_model(tournament)


@router.post("/{tournament_id}/reopen-registration", response_model=TournamentResponse)
async def reopen_registration(tournament_id: str, admin: AdminPrincipal, db: DbSession):
    tournament = await TournamentService(db).reopen_registration(tournament_id, admin)
    return TournamentResponse.from_model(tournament)


@router.post("/{tournament_id}/start", response_model=TournamentResponse)
async def start_tournament(tournament_id: str, admin: AdminPrincipal, db: DbSession):
    tournament = await TournamentService(db).start(tournament_id, admin)
    logger.info("tournament_started", tournament_id=tournament_id)
    return TournamentResponse.from_model(tournament)


@router.post("/{tournament_id}/end", response_model=TournamentResponse)
async def end_tournament(tournament_id: str, admin: AdminPrincipal, db: DbSession):
    """Mark a live tournament completed so winners can be declared."""
    tournament = await TournamentService(db).end(tournament_id, admin)
    logger.info("tournament_completed", tournament_id=tournament_id)
    return TournamentResponse.from_model(tournament)


@router.post("/{tournament_id}/cancel", response_model=TournamentResponse)
async def cancel_tournament(tournament_id: str, admin: AdminPrincipal, db: DbSession):
    """Cancel a tournament. Entry fees are refunded per registration."""
    tournament = await TournamentService(db).cancel(tournament_id, admin)
    logger.info("tournament_cancelled", tournament_id=tournament_id)
    return TournamentResponse.from_model(tournament)


@router.delete(
    "/{tournament_id}",
    response_model=SuccessResponse,
    responses={409: {"model": ErrorResponse, "description": "Tournament has registrations"}},
)
async def delete_tournament(tournament_id: str, admin: AdminPrincipal, db: DbSession):
    await TournamentService(db).delete(tournament_id, admin)
    return SuccessResponse(message="Tournament deleted")
