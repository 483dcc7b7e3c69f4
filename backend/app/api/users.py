"""User profile API endpoints."""

from fastapi import APIRouter, Query

from app.api.deps import AdminPrincipal, CurrentPrincipal, DbSession
from app.schemas.common import ErrorResponse, PaginatedResponse, PaginationMeta
from app.schemas.requests import UpdateProfileRequest
from app.schemas.responses import AdminUserResponse, PublicProfileResponse, UserProfileResponse
from app.services.settlement import SettlementService
from app.services.user import UserService
from app.utils.json_utils import ORJSONResponse

router = APIRouter(prefix="/users", tags=["Users"])


@router.get(
    "/me",
    response_model=UserProfileResponse,
    responses={401: {"model": ErrorResponse, "description": "Not authenticated"}},
)
async def get_current_user_profile(principal: CurrentPrincipal, db: DbSession):
    """Current user's profile.

    ``wallet_balance`` is read through from the wallet; there is no second
    copy of the balance on the user row.
    """
    user = await UserService(db).get_user(principal.user_id)
    return UserProfileResponse.from_user(user)


@router.put(
    "/me",
    response_model=UserProfileResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid profile field"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
    },
)
async def update_current_user_profile(
    request: UpdateProfileRequest,
    principal: CurrentPrincipal,
    db: DbSession,
):
    """Update full name, mobile number, gaming id or avatar."""
    user = await UserService(db).update_profile(
        principal.user_id, request.model_dump(exclude_unset=True)
    )
    return UserProfileResponse.from_user(user)


@router.get("/me/winnings")
async def get_my_winnings(principal: CurrentPrincipal, db: DbSession):
    winnings = await SettlementService(db).user_winnings(principal.user_id)
    return ORJSONResponse(content=winnings)


@router.get("/admin", response_model=PaginatedResponse[AdminUserResponse])
async def list_users(
    admin: AdminPrincipal,
    db: DbSession,
    search: str | None = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    users, total = await UserService(db).list_users(admin, search=search, page=page, limit=limit)
    return PaginatedResponse[AdminUserResponse](
        items=[AdminUserResponse.from_user(u) for u in users],
        pagination=PaginationMeta.build(page, limit, total),
    )


@router.get(
    "/{user_id}",
    response_model=PublicProfileResponse,
    responses={404: {"model": ErrorResponse, "description": "User not found"}},
)
async def get_public_profile(user_id: str, principal: CurrentPrincipal, db: DbSession):
    profile = await UserService(db).get_public_profile(user_id)
    return profile.to_dict()
