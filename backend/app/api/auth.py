"""Authentication API endpoints.

- Registration and login issue a bearer access token
- Password reset tokens are single use and expire with their Redis TTL
"""

from fastapi import APIRouter, status

from app.api.deps import DbSession, NotifierDep, RedisClient
from app.logging_config import get_logger
from app.schemas.common import ErrorResponse, SuccessResponse
from app.schemas.requests import (
    ForgotPasswordRequest,
    LoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
)
from app.schemas.responses import AuthResponse, UserBasicResponse
from app.services.auth import AuthService
from app.services.password_reset import PasswordResetService

router = APIRouter(prefix="/auth", tags=["Authentication"])
logger = get_logger(__name__)


def _auth_response(result: dict) -> AuthResponse:
    return AuthResponse(
        user=UserBasicResponse(**result["user"]),
        access_token=result["access_token"],
        token_type=result["token_type"],
    )


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse, "description": "Validation error"},
        409: {"model": ErrorResponse, "description": "Email or username exists"},
    },
)
async def register(request_body: RegisterRequest, db: DbSession):
    """Register a new account and return an access token."""
    result = await AuthService(db).register(
        email=request_body.email,
        password=request_body.password,
        username=request_body.username,
    )
    logger.info("user_registered", user_id=result["user"]["id"])
    return _auth_response(result)


@router.post(
    "/login",
    response_model=AuthResponse,
    responses={401: {"model": ErrorResponse, "description": "Invalid credentials"}},
)
async def login(request_body: LoginRequest, db: DbSession):
    result = await AuthService(db).login(request_body.email, request_body.password)
    logger.info("user_logged_in", user_id=result["user"]["id"])
    return _auth_response(result)


@router.post("/forgot-password", response_model=SuccessResponse)
async def forgot_password(
    request_body: ForgotPasswordRequest,
    db: DbSession,
    redis: RedisClient,
    notifier: NotifierDep,
):
    """Send a reset link. The response never reveals whether the email exists."""
    await PasswordResetService(db, redis, notifier).request_reset(request_body.email)
    return SuccessResponse(message="If the email is registered, a reset link has been sent")


@router.post(
    "/reset-password",
    response_model=SuccessResponse,
    responses={400: {"model": ErrorResponse, "description": "Invalid token or weak password"}},
)
async def reset_password(
    request_body: ResetPasswordRequest,
    db: DbSession,
    redis: RedisClient,
    notifier: NotifierDep,
):
    await PasswordResetService(db, redis, notifier).reset_password(
        request_body.token,
        request_body.password,
    )
    return SuccessResponse(message="Password has been reset")
