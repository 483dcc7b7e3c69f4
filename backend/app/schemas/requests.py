"""API request schemas."""

import re
from typing import Any

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from app.models.announcement import AnnouncementTarget, AnnouncementType
from app.models.registration import TeamType
from app.models.room_details import DEFAULT_ROOM_CAPACITY, GameMap, RoomStatus
from app.models.tournament import MAX_PLAYERS, MIN_PLAYERS, Game, TournamentType
from app.models.winner import MAX_RANK
from app.schemas.common import Rupees, RupeesOrZero, UTCDatetime

RESERVED_USERNAMES = {
    "admin", "administrator", "system", "moderator", "mod",
    "support", "help", "official", "staff", "bot", "root",
}


# =============================================================================
# Auth Requests
# =============================================================================


class RegisterRequest(BaseModel):
    """User registration request."""

    email: EmailStr = Field(..., description="User email address")
    password: str = Field(..., min_length=6, max_length=100)
    username: str = Field(..., min_length=3, max_length=30, description="Display name")

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        if v.lower() in RESERVED_USERNAMES:
            raise ValueError("This username is reserved and cannot be used")
        if not re.match(r"^[a-zA-Z0-9_]+$", v):
            raise ValueError("Username can only contain letters, numbers, and underscores")
        return v


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str = Field(..., min_length=1, max_length=128)
    password: str = Field(..., max_length=100)


# =============================================================================
# Profile Requests
# =============================================================================


class UpdateProfileRequest(BaseModel):
    """Partial profile update. Omitted fields are left alone; "" clears one."""

    full_name: str | None = Field(None, max_length=100)
    phone: str | None = Field(None, max_length=15)
    gaming_id: str | None = Field(None, max_length=50)
    avatar_url: str | None = Field(None, max_length=500)

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: str | None) -> str | None:
        if v and not re.match(r"^[0-9]{10}$", v.strip()):
            raise ValueError("Please enter a valid 10-digit mobile number")
        return v


# =============================================================================
# Wallet Requests
# =============================================================================


class BankDetails(BaseModel):
    account_holder: str = Field(..., min_length=1, max_length=100)
    account_number: str = Field(..., min_length=6, max_length=30)
    ifsc_code: str = Field(..., pattern=r"^[A-Z]{4}0[A-Z0-9]{6}$")
    bank_name: str | None = Field(None, max_length=100)


class WithdrawRequest(BaseModel):
    """Withdrawal request; the payout goes to a UPI id or a bank account."""

    amount: Rupees
    upi_id: str | None = Field(None, max_length=100)
    bank_details: BankDetails | None = None

    @model_validator(mode="after")
    def require_payout_target(self) -> "WithdrawRequest":
        if not self.upi_id and self.bank_details is None:
            raise ValueError("A UPI id or bank details are required")
        return self


class TransactionDecisionRequest(BaseModel):
    """Admin approve/reject body."""

    notes: str | None = Field(None, max_length=500)


# =============================================================================
# Tournament Requests
# =============================================================================


class CreateTournamentRequest(BaseModel):
    name: str = Field(..., min_length=3, max_length=100)
    tournament_type: TournamentType
    game: Game
    entry_fee: RupeesOrZero = Field(default=0)
    prize_pool: RupeesOrZero = Field(default=0)
    max_players: int = Field(..., ge=MIN_PLAYERS, le=MAX_PLAYERS)
    start_time: UTCDatetime
    rules: str | None = None
    how_to_play: str | None = None
    prize_distribution: dict[str, Any] | None = None


class UpdateTournamentRequest(BaseModel):
    name: str | None = Field(None, min_length=3, max_length=100)
    tournament_type: TournamentType | None = None
    game: Game | None = None
    entry_fee: RupeesOrZero | None = None
    prize_pool: RupeesOrZero | None = None
    max_players: int | None = Field(None, ge=MIN_PLAYERS, le=MAX_PLAYERS)
    start_time: UTCDatetime | None = None
    rules: str | None = None
    how_to_play: str | None = None
    prize_distribution: dict[str, Any] | None = None


# =============================================================================
# Registration Requests
# =============================================================================


class RegisterPlayerRequest(BaseModel):
    player_id: str = Field(..., min_length=1, max_length=50)
    player_name: str = Field(..., min_length=1, max_length=100)
    team_type: TeamType = TeamType.SOLO


# =============================================================================
# Room Requests
# =============================================================================


class RoomCredentials(BaseModel):
    room_id: str = Field(..., min_length=1, max_length=50)
    password: str = Field(..., min_length=1, max_length=50)
    map: GameMap
    max_players: int = Field(default=DEFAULT_ROOM_CAPACITY, ge=1)
    current_players: int = Field(default=0, ge=0)
    room_status: RoomStatus = RoomStatus.ACTIVE
    notes: str | None = None


class CreateRoomDetailsRequest(BaseModel):
    tournament_id: str
    rooms: list[RoomCredentials] = Field(..., min_length=1)
    start_time: UTCDatetime | None = None
    auto_publish: bool = True
    notes: str | None = None


class UpdateRoomDetailsRequest(BaseModel):
    rooms: list[RoomCredentials] | None = Field(None, min_length=1)
    start_time: UTCDatetime | None = None
    auto_publish: bool | None = None
    notes: str | None = None


# =============================================================================
# Winner Requests
# =============================================================================


class WinnerEntry(BaseModel):
    rank: int = Field(..., ge=1, le=MAX_RANK)
    player_id: str = Field(..., min_length=1, max_length=50)
    player_name: str | None = Field(None, max_length=100)
    prize: Rupees


class DeclareWinnersRequest(BaseModel):
    tournament_id: str
    winners: list[WinnerEntry]
    total_prize: Rupees | None = None


class UpdateWinnersRequest(BaseModel):
    winners: list[WinnerEntry]
    total_prize: Rupees | None = None


class DistributePrizesRequest(BaseModel):
    tournament_id: str


# =============================================================================
# Announcement Requests
# =============================================================================


class CreateAnnouncementRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1)
    announcement_type: AnnouncementType = AnnouncementType.GENERAL
    target: AnnouncementTarget = AnnouncementTarget.ALL
    tournament_id: str | None = None
    send_immediately: bool = False
    scheduled_for: UTCDatetime | None = None


class UpdateAnnouncementRequest(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=200)
    content: str | None = Field(None, min_length=1)
    announcement_type: AnnouncementType | None = None
    target: AnnouncementTarget | None = None
    tournament_id: str | None = None
    is_active: bool | None = None
    scheduled_for: UTCDatetime | None = None
