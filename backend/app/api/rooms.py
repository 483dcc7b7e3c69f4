"""Room details API endpoints.

Players with a confirmed registration read room credentials once the
publish gate has opened; admins manage the credential sets.
"""

from fastapi import APIRouter, Query, status

from app.api.deps import AdminPrincipal, CurrentPrincipal, DbSession
from app.logging_config import get_logger
from app.schemas.common import ErrorResponse, SuccessResponse
from app.schemas.requests import (
    CreateRoomDetailsRequest,
    RoomCredentials,
    UpdateRoomDetailsRequest,
)
from app.schemas.responses import RoomAccessResponse, RoomDetailsResponse
from app.services.room_details import RoomDetailsService

logger = get_logger(__name__)

router = APIRouter(prefix="/rooms", tags=["Rooms"])


@router.get("/admin/recent", response_model=list[RoomDetailsResponse])
async def list_recent_room_details(
    admin: AdminPrincipal,
    db: DbSession,
    limit: int = Query(10, ge=1, le=100),
):
    details = await RoomDetailsService(db).recent(admin, limit)
    return [RoomDetailsResponse.model_validate(d) for d in details]


@router.get(
    "/admin/{details_id}",
    response_model=RoomDetailsResponse,
    responses={404: {"model": ErrorResponse, "description": "Room details not found"}},
)
async def get_room_details(details_id: str, admin: AdminPrincipal, db: DbSession):
    details = await RoomDetailsService(db).get(details_id, admin)
    return RoomDetailsResponse.model_validate(details)


@router.get(
    "/{tournament_id}",
    response_model=RoomAccessResponse,
    response_model_exclude_none=True,
    responses={
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        403: {"model": ErrorResponse, "description": "Not registered for this tournament"},
        404: {"model": ErrorResponse, "description": "Room details not available"},
    },
)
async def get_room_access(
    tournament_id: str,
    principal: CurrentPrincipal,
    db: DbSession,
):
    """Room credentials for a confirmed player.

    Before the publish gate only the timing fields are returned, with
    ``available: false``.
    """
    access = await RoomDetailsService(db).get_for_player(tournament_id, principal.user_id)
    return RoomAccessResponse(**access.to_dict())


@router.post(
    "",
    response_model=RoomDetailsResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid rooms"},
        404: {"model": ErrorResponse, "description": "Tournament not found"},
        409: {"model": ErrorResponse, "description": "Room details already exist"},
    },
)
async def create_room_details(
    request_body: CreateRoomDetailsRequest,
    admin: AdminPrincipal,
    db: DbSession,
):
    data = request_body.model_dump(mode="json")
    data["start_time"] = request_body.start_time
    details = await RoomDetailsService(db).create(data, admin)
    logger.info("room_details_created", details_id=details.id, tournament_id=details.tournament_id)
    return RoomDetailsResponse.model_validate(details)


@router.patch("/admin/{details_id}", response_model=RoomDetailsResponse)
async def update_room_details(
    details_id: str,
    request_body: UpdateRoomDetailsRequest,
    admin: AdminPrincipal,
    db: DbSession,
):
    data = request_body.model_dump(mode="json", exclude_unset=True)
    if "start_time" in data:
        data["start_time"] = request_body.start_time
    details = await RoomDetailsService(db).update(details_id, data, admin)
    return RoomDetailsResponse.model_validate(details)


@router.delete("/admin/{details_id}", response_model=SuccessResponse)
async def delete_room_details(details_id: str, admin: AdminPrincipal, db: DbSession):
    await RoomDetailsService(db).delete(details_id, admin)
    return SuccessResponse(message="Room details deleted")


@router.post(
    "/admin/{details_id}/rooms",
    response_model=RoomDetailsResponse,
    responses={409: {"model": ErrorResponse, "description": "Duplicate room id"}},
)
async def add_room(
    details_id: str,
    room: RoomCredentials,
    admin: AdminPrincipal,
    db: DbSession,
):
    details = await RoomDetailsService(db).add_room(
        details_id, room.model_dump(mode="json"), admin
    )
    return RoomDetailsResponse.model_validate(details)


@router.delete(
    "/admin/{details_id}/rooms/{room_index}",
    response_model=RoomDetailsResponse,
    responses={404: {"model": ErrorResponse, "description": "No room at that index"}},
)
async def remove_room(
    details_id: str,
    room_index: int,
    admin: AdminPrincipal,
    db: DbSession,
):
    details = await RoomDetailsService(db).remove_room(details_id, room_index, admin)
    return RoomDetailsResponse.model_validate(details)


@router.post("/admin/{details_id}/publish", response_model=RoomDetailsResponse)
async def publish_room_details(details_id: str, admin: AdminPrincipal, db: DbSession):
    """Publish immediately, ahead of the gate."""
    details = await RoomDetailsService(db).publish(details_id, admin)
    return RoomDetailsResponse.model_validate(details)


@router.post("/admin/{details_id}/unpublish", response_model=RoomDetailsResponse)
async def unpublish_room_details(details_id: str, admin: AdminPrincipal, db: DbSession):
    details = await RoomDetailsService(db).unpublish(details_id, admin)
    return RoomDetailsResponse.model_validate(details)
