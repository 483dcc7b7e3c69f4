"""API response schemas.

Amounts are stored in paise; every response converts them to rupees.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field

from app.models.announcement import (
    Announcement,
    AnnouncementStatus,
    AnnouncementTarget,
    AnnouncementType,
)
from app.models.registration import PaymentStatus, Registration, RegistrationStatus, TeamType
from app.models.room_details import RoomDetails
from app.models.tournament import Game, Tournament, TournamentStatus, TournamentType
from app.models.user import User
from app.models.wallet import Transaction, TransactionStatus, TransactionType
from app.models.winner import SettlementStatus, WinnerDeclaration
from app.schemas.common import BaseSchema
from app.utils.money import to_rupees


# =============================================================================
# Auth / User Responses
# =============================================================================


class UserBasicResponse(BaseSchema):
    id: str
    username: str
    email: str
    is_admin: bool = False


class AuthResponse(BaseModel):
    user: UserBasicResponse
    access_token: str
    token_type: str = "bearer"


class UserProfileResponse(BaseSchema):
    """Profile with the wallet balance projection."""

    id: str
    username: str
    email: str
    is_admin: bool
    full_name: str | None = None
    phone: str | None = None
    gaming_id: str | None = None
    avatar_url: str | None = None
    wallet_balance: Decimal = Field(..., description="Wallet total, read through")
    created_at: datetime

    @classmethod
    def from_user(cls, user: User) -> "UserProfileResponse":
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            is_admin=user.is_admin,
            full_name=user.full_name,
            phone=user.phone,
            gaming_id=user.gaming_id,
            avatar_url=user.avatar_url,
            wallet_balance=to_rupees(user.wallet_balance),
            created_at=user.created_at,
        )


class PublicStatsResponse(BaseModel):
    tournaments_played: int
    tournaments_won: int
    total_earnings: Decimal


class PublicProfileResponse(BaseModel):
    """Another player's profile; no email, phone or balance."""

    id: str
    username: str
    full_name: str | None = None
    gaming_id: str | None = None
    avatar_url: str | None = None
    joined_at: datetime
    stats: PublicStatsResponse


class AdminUserResponse(UserProfileResponse):
    is_active: bool

    @classmethod
    def from_user(cls, user: User) -> "AdminUserResponse":
        return cls(
            **UserProfileResponse.from_user(user).model_dump(),
            is_active=user.is_active,
        )


# =============================================================================
# Wallet Responses
# =============================================================================


class BalanceResponse(BaseModel):
    total: Decimal
    main: Decimal
    winning: Decimal


class WithdrawalLimitResponse(BaseModel):
    blocked: bool
    next_withdrawal_time: datetime | None = None
    hours_left: float = 0.0


class TransactionResponse(BaseModel):
    id: str
    transaction_id: str
    reference_id: str | None = None
    user_id: str
    tx_type: TransactionType
    status: TransactionStatus
    amount: Decimal
    tax_amount: Decimal
    net_amount: Decimal | None = None
    description: str | None = None
    upi_transaction_id: str | None = None
    upi_id: str | None = None
    tournament_id: str | None = None
    admin_notes: str | None = None
    approved_at: datetime | None = None
    created_at: datetime

    @classmethod
    def from_tx(cls, tx: Transaction) -> "TransactionResponse":
        return cls(
            id=tx.id,
            transaction_id=tx.transaction_id,
            reference_id=tx.reference_id,
            user_id=tx.user_id,
            tx_type=tx.tx_type,
            status=tx.status,
            amount=to_rupees(tx.amount),
            tax_amount=to_rupees(tx.tax_amount),
            net_amount=to_rupees(tx.net_amount) if tx.net_amount is not None else None,
            description=tx.description,
            upi_transaction_id=tx.upi_transaction_id,
            upi_id=tx.upi_id,
            tournament_id=tx.tournament_id,
            admin_notes=tx.admin_notes,
            approved_at=tx.approved_at,
            created_at=tx.created_at,
        )


class ReconciliationResponse(BaseModel):
    user_id: str
    ledger_total: Decimal
    wallet_total: Decimal
    balanced: bool


# =============================================================================
# Tournament Responses
# =============================================================================


class TournamentResponse(BaseModel):
    id: str
    name: str
    tournament_type: TournamentType
    game: Game
    entry_fee: Decimal
    prize_pool: Decimal
    max_players: int
    registered_players: int
    seats_left: int
    status: TournamentStatus
    start_time: datetime
    end_time: datetime | None = None
    rules: str | None = None
    how_to_play: str | None = None
    prize_distribution: dict[str, Any] | None = None

    @classmethod
    def from_model(cls, tournament: Tournament) -> "TournamentResponse":
        return cls(
            id=tournament.id,
            name=tournament.name,
            tournament_type=tournament.tournament_type,
            game=tournament.game,
            entry_fee=to_rupees(tournament.entry_fee),
            prize_pool=to_rupees(tournament.prize_pool),
            max_players=tournament.max_players,
            registered_players=tournament.registered_players,
            seats_left=tournament.seats_left,
            status=tournament.status,
            start_time=tournament.start_time,
            end_time=tournament.end_time,
            rules=tournament.rules,
            how_to_play=tournament.how_to_play,
            prize_distribution=tournament.prize_distribution,
        )


class RegistrationResponse(BaseModel):
    id: str
    tournament_id: str
    user_id: str
    player_id: str
    player_name: str
    team_type: TeamType
    status: RegistrationStatus
    payment_status: PaymentStatus
    entry_fee_paid: Decimal
    transaction_id: str | None = None
    registered_at: datetime
    tournament: TournamentResponse | None = None

    @classmethod
    def from_model(
        cls,
        registration: Registration,
        tournament: Tournament | None = None,
    ) -> "RegistrationResponse":
        return cls(
            id=registration.id,
            tournament_id=registration.tournament_id,
            user_id=registration.user_id,
            player_id=registration.player_id,
            player_name=registration.player_name,
            team_type=registration.team_type,
            status=registration.status,
            payment_status=registration.payment_status,
            entry_fee_paid=to_rupees(registration.entry_fee_paid),
            transaction_id=registration.transaction_id,
            registered_at=registration.registered_at,
            tournament=TournamentResponse.from_model(tournament) if tournament else None,
        )


# =============================================================================
# Room Responses
# =============================================================================


class RoomDetailsResponse(BaseSchema):
    """Admin view of room details."""

    id: str
    tournament_id: str
    rooms: list[dict[str, Any]]
    start_time: datetime
    auto_publish: bool
    is_published: bool
    published_at: datetime | None = None
    notes: str | None = None
    created_at: datetime


class RoomAccessResponse(BaseModel):
    """Player view; rooms are only present once available."""

    available: bool
    start_time: datetime
    publish_time: datetime
    rooms: list[dict[str, Any]] | None = None
    published_at: datetime | None = None
    notes: str | None = None


# =============================================================================
# Winner Responses
# =============================================================================


class WinnerEntryResponse(BaseModel):
    rank: int
    player_id: str
    player_name: str | None = None
    user_id: str
    prize: Decimal
    paid: bool = False
    transaction_id: str | None = None


class WinnerDeclarationResponse(BaseModel):
    id: str
    tournament_id: str
    winners: list[WinnerEntryResponse]
    total_prize: Decimal
    declared_by: str | None = None
    declared_at: datetime
    payment_status: SettlementStatus
    payment_processed_at: datetime | None = None
    tournament_name: str | None = None

    @classmethod
    def from_model(
        cls,
        declaration: WinnerDeclaration,
        tournament: Tournament | None = None,
    ) -> "WinnerDeclarationResponse":
        return cls(
            id=declaration.id,
            tournament_id=declaration.tournament_id,
            winners=[
                WinnerEntryResponse(
                    rank=w["rank"],
                    player_id=w["player_id"],
                    player_name=w.get("player_name"),
                    user_id=w["user_id"],
                    prize=to_rupees(w["prize"]),
                    paid=bool(w.get("paid")),
                    transaction_id=w.get("transaction_id"),
                )
                for w in declaration.winners
            ],
            total_prize=to_rupees(declaration.total_prize),
            declared_by=declaration.declared_by,
            declared_at=declaration.declared_at,
            payment_status=declaration.payment_status,
            payment_processed_at=declaration.payment_processed_at,
            tournament_name=tournament.name if tournament else None,
        )


class PayoutResultResponse(BaseModel):
    rank: int
    player_id: str
    user_id: str
    prize: Decimal
    success: bool
    transaction_id: str | None = None
    error_code: str | None = None
    error: str | None = None
    already_paid: bool = False


class SettlementResponse(BaseModel):
    tournament_id: str
    status: SettlementStatus
    all_paid: bool
    paid_amount: Decimal
    results: list[PayoutResultResponse]


# =============================================================================
# Announcement Responses
# =============================================================================


class AnnouncementResponse(BaseSchema):
    id: str
    title: str
    content: str
    announcement_type: AnnouncementType
    target: AnnouncementTarget
    tournament_id: str | None = None
    status: AnnouncementStatus
    sent_at: datetime | None = None
    scheduled_for: datetime | None = None
    sent_to: int = 0
    last_error: str | None = None
    is_active: bool = True
    created_at: datetime

    @classmethod
    def from_model(cls, announcement: Announcement) -> "AnnouncementResponse":
        return cls.model_validate(announcement)


# =============================================================================
# Health
# =============================================================================


class HealthCheckResponse(BaseModel):
    status: str = Field(..., description="healthy, degraded or unhealthy")
    version: str
    timestamp: datetime
    services: dict[str, str] = Field(default_factory=dict)
