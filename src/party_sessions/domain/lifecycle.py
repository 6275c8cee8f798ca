"""Session lifecycle state machine."""

from party_sessions.domain.sessions import (
    PARTY_CAPACITY,
    TERMINAL_STATUSES,
    SessionStatus,
)

_TRANSITIONS: dict[SessionStatus, frozenset[SessionStatus]] = {
    SessionStatus.SCHEDULED: frozenset(
        {SessionStatus.FULL, SessionStatus.ACTIVE, SessionStatus.CANCELED}
    ),
    SessionStatus.FULL: frozenset({SessionStatus.ACTIVE, SessionStatus.CANCELED}),
    SessionStatus.ACTIVE: frozenset(
        {SessionStatus.COMPLETED, SessionStatus.CANCELED}
    ),
    SessionStatus.COMPLETED: frozenset(),
    SessionStatus.CANCELED: frozenset(),
}


def is_terminal(status: SessionStatus) -> bool:
    """Return True for statuses that can never change again."""
    return status in TERMINAL_STATUSES


def can_transition(current: SessionStatus, target: SessionStatus) -> bool:
    """Return True when ``current -> target`` is a legal transition."""
    return target in _TRANSITIONS[current]


def allowed_targets(current: SessionStatus) -> frozenset[SessionStatus]:
    return _TRANSITIONS[current]


def is_party_full(party_size: int, capacity: int = PARTY_CAPACITY) -> bool:
    return party_size >= capacity


def fill_deadline_outcome(
    party_size: int, capacity: int = PARTY_CAPACITY
) -> SessionStatus:
    """Status a pending session moves to when its fill deadline is reached."""
    if is_party_full(party_size, capacity):
        return SessionStatus.ACTIVE
    return SessionStatus.CANCELED


def shortfall_reason(party_size: int, capacity: int = PARTY_CAPACITY) -> str:
    return f"Insufficient players ({party_size}/{capacity})"
