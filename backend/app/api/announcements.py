"""Announcements API.

Players read sent announcements; admins draft, schedule, send and resend
them. Delivery goes through the configured notifier.
"""

from fastapi import APIRouter, Query, status

from app.api.deps import AdminPrincipal, DbSession, NotifierDep
from app.logging_config import get_logger
from app.middleware.prometheus import record_announcement
from app.models.announcement import Announcement, AnnouncementStatus, AnnouncementType
from app.schemas.common import ErrorResponse, PaginatedResponse, PaginationMeta, SuccessResponse
from app.schemas.requests import CreateAnnouncementRequest, UpdateAnnouncementRequest
from app.schemas.responses import AnnouncementResponse
from app.services.announcement import AnnouncementService
from app.utils.json_utils import ORJSONResponse

logger = get_logger(__name__)

router = APIRouter(prefix="/announcements", tags=["Announcements"])


def _record_delivery(announcement: Announcement) -> None:
    if announcement.status in (AnnouncementStatus.SENT, AnnouncementStatus.FAILED):
        record_announcement(announcement.status.value)


@router.get("", response_model=PaginatedResponse[AnnouncementResponse])
async def list_announcements(
    db: DbSession,
    notifier: NotifierDep,
    announcement_type: AnnouncementType | None = Query(None, alias="type"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
):
    """Sent announcements, newest first."""
    items, total = await AnnouncementService(db, notifier).list_sent(
        announcement_type=announcement_type, page=page, limit=limit
    )
    return PaginatedResponse[AnnouncementResponse](
        items=[AnnouncementResponse.from_model(a) for a in items],
        pagination=PaginationMeta.build(page, limit, total),
    )


@router.get("/active", response_model=list[AnnouncementResponse])
async def list_active_announcements(
    db: DbSession,
    notifier: NotifierDep,
    limit: int = Query(5, ge=1, le=20),
):
    items = await AnnouncementService(db, notifier).list_active(limit)
    return [AnnouncementResponse.from_model(a) for a in items]


@router.get("/admin/all", response_model=PaginatedResponse[AnnouncementResponse])
async def list_all_announcements(
    admin: AdminPrincipal,
    db: DbSession,
    notifier: NotifierDep,
    status_filter: AnnouncementStatus | None = Query(None, alias="status"),
    announcement_type: AnnouncementType | None = Query(None, alias="type"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
):
    items, total = await AnnouncementService(db, notifier).list_for_admin(
        admin,
        status=status_filter,
        announcement_type=announcement_type,
        page=page,
        limit=limit,
    )
    return PaginatedResponse[AnnouncementResponse](
        items=[AnnouncementResponse.from_model(a) for a in items],
        pagination=PaginationMeta.build(page, limit, total),
    )


@router.get("/admin/stats")
async def get_announcement_stats(admin: AdminPrincipal, db: DbSession, notifier: NotifierDep):
    stats = await AnnouncementService(db, notifier).stats(admin)
    return ORJSONResponse(content=stats)


@router.post(
    "",
    response_model=AnnouncementResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid announcement"},
        403: {"model": ErrorResponse, "description": "Admin only"},
    },
)
async def create_announcement(
    request_body: CreateAnnouncementRequest,
    admin: AdminPrincipal,
    db: DbSession,
    notifier: NotifierDep,
):
    """Create a draft, schedule it, or send it immediately."""
    announcement = await AnnouncementService(db, notifier).create(
        request_body.model_dump(), admin
    )
    _record_delivery(announcement)
    logger.info(
        "announcement_created",
        announcement_id=announcement.id,
        status=announcement.status.value,
    )
    return AnnouncementResponse.from_model(announcement)


@router.patch(
    "/{announcement_id}",
    response_model=AnnouncementResponse,
    responses={409: {"model": ErrorResponse, "description": "Already sent"}},
)
async def update_announcement(
    announcement_id: str,
    request_body: UpdateAnnouncementRequest,
    admin: AdminPrincipal,
    db: DbSession,
    notifier: NotifierDep,
):
    announcement = await AnnouncementService(db, notifier).update(
        announcement_id, request_body.model_dump(exclude_unset=True), admin
    )
    return AnnouncementResponse.from_model(announcement)


@router.delete("/{announcement_id}", response_model=SuccessResponse)
async def delete_announcement(
    announcement_id: str,
    admin: AdminPrincipal,
    db: DbSession,
    notifier: NotifierDep,
):
    await AnnouncementService(db, notifier).delete(announcement_id, admin)
    return SuccessResponse(message="Announcement deleted")


@router.post(
    "/{announcement_id}/resend",
    response_model=AnnouncementResponse,
    responses={409: {"model": ErrorResponse, "description": "Cannot be sent in its current state"}},
)
async def resend_announcement(
    announcement_id: str,
    admin: AdminPrincipal,
    db: DbSession,
    notifier: NotifierDep,
):
    """Send a draft, scheduled or failed announcement now."""
    announcement = await AnnouncementService(db, notifier).resend(announcement_id, admin)
    _record_delivery(announcement)
    return AnnouncementResponse.from_model(announcement)
