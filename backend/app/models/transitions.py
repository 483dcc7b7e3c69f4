"""Lifecycle transition tables.

Each entity's legal moves are one table of ``(state, event) -> next state``.
Services consult these tables before every status write; the same tables also
give the source states for atomic ``UPDATE ... WHERE status IN (...)``
statements.
"""

from collections.abc import Hashable, Mapping
from typing import Generic, TypeVar

from app.models.announcement import AnnouncementStatus
from app.models.registration import PaymentStatus, RegistrationStatus
from app.models.tournament import TournamentStatus
from app.models.wallet import TransactionStatus
from app.models.winner import SettlementStatus
from app.utils.errors import ErrorCode, ServiceError

S = TypeVar("S", bound=Hashable)


class InvalidTransition(ServiceError):
    """Raised when an event is not legal from the current state."""

    def __init__(self, machine: str, state: Hashable, event: str):
        state_value = getattr(state, "value", state)
        super().__init__(
            ErrorCode.INVALID_STATE,
            f"Cannot {event} {machine} in state '{state_value}'",
            {"entity": machine, "state": state_value, "event": event},
        )


class StateMachine(Generic[S]):
    """A transition table with lookup helpers."""

    def __init__(self, name: str, transitions: Mapping[tuple[S, str], S]):
        self.name = name
        self._transitions = dict(transitions)

    def can(self, state: S, event: str) -> bool:
        return (state, event) in self._transitions

    def next(self, state: S, event: str) -> S:
        """Target state for ``event`` from ``state``.

        Raises:
            InvalidTransition: when the pair is not in the table
        """
        try:
            return self._transitions[(state, event)]
        except KeyError:
            raise InvalidTransition(self.name, state, event) from None

    def sources(self, event: str) -> tuple[S, ...]:
        """States from which ``event`` is legal."""
        return tuple(s for (s, e) in self._transitions if e == event)

    @property
    def events(self) -> set[str]:
        return {e for (_, e) in self._transitions}

    @property
    def states(self) -> set[S]:
        """Every state that appears in the table, as a source or a target."""
        return {s for (s, _) in self._transitions} | set(self._transitions.values())


T = TournamentStatus
TOURNAMENT = StateMachine[TournamentStatus]("tournament", {
    (T.OPEN, "close_registration"): T.UPCOMING,
    (T.UPCOMING, "reopen_registration"): T.OPEN,
    (T.OPEN, "start"): T.LIVE,
    (T.UPCOMING, "start"): T.LIVE,
    (T.LIVE, "end"): T.COMPLETED,
    (T.OPEN, "cancel"): T.CANCELLED,
    (T.UPCOMING, "cancel"): T.CANCELLED,
    (T.LIVE, "cancel"): T.CANCELLED,
})

R = RegistrationStatus
REGISTRATION = StateMachine[RegistrationStatus]("registration", {
    (R.PENDING, "confirm"): R.CONFIRMED,
    (R.PENDING, "cancel"): R.CANCELLED,
    (R.CONFIRMED, "cancel"): R.CANCELLED,
})

P = PaymentStatus
PAYMENT = StateMachine[PaymentStatus]("payment", {
    (P.PENDING, "pay"): P.PAID,
    (P.PAID, "refund"): P.REFUNDED,
})

X = TransactionStatus
TRANSACTION = StateMachine[TransactionStatus]("transaction", {
    (X.PENDING, "approve"): X.APPROVED,
    (X.PENDING, "reject"): X.REJECTED,
})

W = SettlementStatus
SETTLEMENT = StateMachine[SettlementStatus]("winner declaration", {
    (W.PENDING, "complete"): W.COMPLETED,
    (W.PROCESSING, "complete"): W.COMPLETED,
    (W.PENDING, "partial"): W.PROCESSING,
    (W.PROCESSING, "partial"): W.PROCESSING,
    (W.PENDING, "edit"): W.PENDING,
    (W.PROCESSING, "edit"): W.PROCESSING,
})

A = AnnouncementStatus
ANNOUNCEMENT = StateMachine[AnnouncementStatus]("announcement", {
    (A.DRAFT, "schedule"): A.SCHEDULED,
    (A.SCHEDULED, "schedule"): A.SCHEDULED,
    (A.DRAFT, "send"): A.SENT,
    (A.SCHEDULED, "send"): A.SENT,
    (A.FAILED, "send"): A.SENT,
    (A.SENT, "send"): A.SENT,
    (A.DRAFT, "fail"): A.FAILED,
    (A.SCHEDULED, "fail"): A.FAILED,
    (A.FAILED, "fail"): A.FAILED,
    (A.SENT, "fail"): A.FAILED,
    (A.DRAFT, "edit"): A.DRAFT,
    (A.SCHEDULED, "edit"): A.SCHEDULED,
    (A.FAILED, "edit"): A.FAILED,
})

del T, R, P, X, W, A
