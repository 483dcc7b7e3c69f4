"""Service error taxonomy.

Every domain failure is a ``ServiceError`` carrying an ``ErrorCode``. Each code
belongs to one ``ErrorKind`` and the kind decides the HTTP status, so the API
layer never has to guess from the message.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Broad error categories."""

    NOT_FOUND = "NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"
    UNAUTHORIZED = "UNAUTHORIZED"
    INVALID_STATE = "INVALID_STATE"
    INVALID_INPUT = "INVALID_INPUT"
    CONFLICT = "CONFLICT"
    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"
    THROTTLE_ACTIVE = "THROTTLE_ACTIVE"
    INTERNAL = "INTERNAL"


HTTP_STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.INVALID_STATE: 409,
    ErrorKind.INVALID_INPUT: 400,
    ErrorKind.CONFLICT: 409,
    ErrorKind.INSUFFICIENT_FUNDS: 400,
    ErrorKind.THROTTLE_ACTIVE: 429,
    ErrorKind.INTERNAL: 500,
}


class ErrorCode(str, Enum):
    """Concrete error codes returned to clients."""

    # General
    INTERNAL_ERROR = "INTERNAL_ERROR"
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_STATE = "INVALID_STATE"
    FORBIDDEN = "FORBIDDEN"
    UNAUTHORIZED = "UNAUTHORIZED"
    AUTH_REQUIRED = "AUTH_REQUIRED"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    EMAIL_EXISTS = "EMAIL_EXISTS"
    USERNAME_EXISTS = "USERNAME_EXISTS"

    # Lookups
    USER_NOT_FOUND = "USER_NOT_FOUND"
    WALLET_NOT_FOUND = "WALLET_NOT_FOUND"
    TRANSACTION_NOT_FOUND = "TRANSACTION_NOT_FOUND"
    TOURNAMENT_NOT_FOUND = "TOURNAMENT_NOT_FOUND"
    REGISTRATION_NOT_FOUND = "REGISTRATION_NOT_FOUND"
    WINNER_NOT_FOUND = "WINNER_NOT_FOUND"
    ROOM_DETAILS_NOT_FOUND = "ROOM_DETAILS_NOT_FOUND"
    ROOM_NOT_FOUND = "ROOM_NOT_FOUND"
    ANNOUNCEMENT_NOT_FOUND = "ANNOUNCEMENT_NOT_FOUND"

    # Wallet
    INVALID_AMOUNT = "INVALID_AMOUNT"
    INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"
    THROTTLE_ACTIVE = "THROTTLE_ACTIVE"
    ALREADY_PROCESSED = "ALREADY_PROCESSED"
    WRONG_TRANSACTION_TYPE = "WRONG_TRANSACTION_TYPE"
    PAYMENT_PROOF_REQUIRED = "PAYMENT_PROOF_REQUIRED"
    PAYOUT_DETAILS_REQUIRED = "PAYOUT_DETAILS_REQUIRED"
    DUPLICATE_TRANSACTION = "DUPLICATE_TRANSACTION"
    ID_GENERATION_FAILED = "ID_GENERATION_FAILED"

    # Tournament
    TOURNAMENT_CLOSED = "TOURNAMENT_CLOSED"
    TOURNAMENT_FULL = "TOURNAMENT_FULL"
    TOURNAMENT_HAS_REGISTRATIONS = "TOURNAMENT_HAS_REGISTRATIONS"
    TOURNAMENT_NOT_COMPLETED = "TOURNAMENT_NOT_COMPLETED"
    START_TIME_IN_PAST = "START_TIME_IN_PAST"

    # Registration
    ALREADY_REGISTERED = "ALREADY_REGISTERED"
    ALREADY_CANCELLED = "ALREADY_CANCELLED"
    NOT_CANCELLED = "NOT_CANCELLED"
    NOTHING_TO_REFUND = "NOTHING_TO_REFUND"
    NOT_REGISTERED = "NOT_REGISTERED"

    # Settlement
    ALREADY_DECLARED = "ALREADY_DECLARED"
    ALREADY_COMPLETED = "ALREADY_COMPLETED"
    DECLARATION_LOCKED = "DECLARATION_LOCKED"
    EMPTY_WINNERS = "EMPTY_WINNERS"
    PRIZE_EXCEEDS_POOL = "PRIZE_EXCEEDS_POOL"
    PLAYER_NOT_REGISTERED = "PLAYER_NOT_REGISTERED"

    # Rooms
    ROOM_DETAILS_EXISTS = "ROOM_DETAILS_EXISTS"
    DUPLICATE_ROOM = "DUPLICATE_ROOM"

    # Announcements
    ALREADY_SENT = "ALREADY_SENT"

    # Password reset
    INVALID_TOKEN = "INVALID_TOKEN"
    WEAK_PASSWORD = "WEAK_PASSWORD"


ERROR_KINDS: dict[ErrorCode, ErrorKind] = {
    ErrorCode.INTERNAL_ERROR: ErrorKind.INTERNAL,
    ErrorCode.INVALID_INPUT: ErrorKind.INVALID_INPUT,
    ErrorCode.INVALID_STATE: ErrorKind.INVALID_STATE,
    ErrorCode.FORBIDDEN: ErrorKind.FORBIDDEN,
    ErrorCode.UNAUTHORIZED: ErrorKind.FORBIDDEN,
    ErrorCode.AUTH_REQUIRED: ErrorKind.UNAUTHORIZED,
    ErrorCode.INVALID_CREDENTIALS: ErrorKind.UNAUTHORIZED,
    ErrorCode.EMAIL_EXISTS: ErrorKind.CONFLICT,
    ErrorCode.USERNAME_EXISTS: ErrorKind.CONFLICT,
    ErrorCode.USER_NOT_FOUND: ErrorKind.NOT_FOUND,
    ErrorCode.WALLET_NOT_FOUND: ErrorKind.NOT_FOUND,
    ErrorCode.TRANSACTION_NOT_FOUND: ErrorKind.NOT_FOUND,
    ErrorCode.TOURNAMENT_NOT_FOUND: ErrorKind.NOT_FOUND,
    ErrorCode.REGISTRATION_NOT_FOUND: ErrorKind.NOT_FOUND,
    ErrorCode.WINNER_NOT_FOUND: ErrorKind.NOT_FOUND,
    ErrorCode.ROOM_DETAILS_NOT_FOUND: ErrorKind.NOT_FOUND,
    ErrorCode.ROOM_NOT_FOUND: ErrorKind.NOT_FOUND,
    ErrorCode.ANNOUNCEMENT_NOT_FOUND: ErrorKind.NOT_FOUND,
    ErrorCode.INVALID_AMOUNT: ErrorKind.INVALID_INPUT,
    ErrorCode.INSUFFICIENT_BALANCE: ErrorKind.INSUFFICIENT_FUNDS,
    ErrorCode.THROTTLE_ACTIVE: ErrorKind.THROTTLE_ACTIVE,
    ErrorCode.ALREADY_PROCESSED: ErrorKind.INVALID_STATE,
    ErrorCode.WRONG_TRANSACTION_TYPE: ErrorKind.INVALID_INPUT,
    ErrorCode.PAYMENT_PROOF_REQUIRED: ErrorKind.INVALID_INPUT,
    ErrorCode.PAYOUT_DETAILS_REQUIRED: ErrorKind.INVALID_INPUT,
    ErrorCode.DUPLICATE_TRANSACTION: ErrorKind.CONFLICT,
    ErrorCode.ID_GENERATION_FAILED: ErrorKind.INTERNAL,
    ErrorCode.TOURNAMENT_CLOSED: ErrorKind.INVALID_STATE,
    ErrorCode.TOURNAMENT_FULL: ErrorKind.CONFLICT,
    ErrorCode.TOURNAMENT_HAS_REGISTRATIONS: ErrorKind.CONFLICT,
    ErrorCode.TOURNAMENT_NOT_COMPLETED: ErrorKind.INVALID_STATE,
    ErrorCode.START_TIME_IN_PAST: ErrorKind.INVALID_INPUT,
    ErrorCode.ALREADY_REGISTERED: ErrorKind.CONFLICT,
    ErrorCode.ALREADY_CANCELLED: ErrorKind.INVALID_STATE,
    ErrorCode.NOT_CANCELLED: ErrorKind.INVALID_STATE,
    ErrorCode.NOTHING_TO_REFUND: ErrorKind.INVALID_STATE,
    ErrorCode.NOT_REGISTERED: ErrorKind.FORBIDDEN,
    ErrorCode.ALREADY_DECLARED: ErrorKind.CONFLICT,
    ErrorCode.ALREADY_COMPLETED: ErrorKind.INVALID_STATE,
    ErrorCode.DECLARATION_LOCKED: ErrorKind.INVALID_STATE,
    ErrorCode.EMPTY_WINNERS: ErrorKind.INVALID_INPUT,
    ErrorCode.PRIZE_EXCEEDS_POOL: ErrorKind.INVALID_INPUT,
    ErrorCode.PLAYER_NOT_REGISTERED: ErrorKind.INVALID_INPUT,
    ErrorCode.ROOM_DETAILS_EXISTS: ErrorKind.CONFLICT,
    ErrorCode.DUPLICATE_ROOM: ErrorKind.CONFLICT,
    ErrorCode.ALREADY_SENT: ErrorKind.INVALID_STATE,
    ErrorCode.INVALID_TOKEN: ErrorKind.INVALID_INPUT,
    ErrorCode.WEAK_PASSWORD: ErrorKind.INVALID_INPUT,
}


class ServiceError(Exception):
    """Base exception for domain errors.

    Attributes:
        code: Error code for programmatic handling
        message: User-facing message
        details: Additional structured context
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: dict[str, Any] | None = None,
    ):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    @property
    def kind(self) -> ErrorKind:
        return ERROR_KINDS.get(self.code, ErrorKind.INTERNAL)

    @property
    def status_code(self) -> int:
        return HTTP_STATUS_BY_KIND[self.kind]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "code": self.code.value,
            "kind": self.kind.value,
            "message": self.message,
            "details": self.details,
        }


class AuthError(ServiceError):
    """Authentication or authorization failure."""
