"""Role selection rules for session parties."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from party_sessions.domain.sessions import (
    PartyMember,
    SessionStatus,
    SessionWithParty,
)
from party_sessions.domain.timing import is_future


class RoleSelectionStatus(str, Enum):
    """Outcome of a role selection request."""

    LOCKED = "LOCKED"
    EXPIRED = "EXPIRED"
    INVALID = "INVALID"
    REMOVED_FROM_PARTY = "REMOVED_FROM_PARTY"
    ROLE_CHANGED = "ROLE_CHANGED"
    ALREADY_IN_SESSION = "ALREADY_IN_SESSION"
    HOSTING_SAME_DAY = "HOSTING_SAME_DAY"
    ADDED_TO_PARTY = "ADDED_TO_PARTY"
    PARTY_FULL = "PARTY_FULL"


class RosterAction(Enum):
    """What a role selection request does to the party."""

    REJECT = "reject"
    REMOVE = "remove"
    CHANGE_ROLE = "change_role"
    JOIN = "join"


@dataclass(frozen=True)
class RoleSelectionDecision:
    """Result of evaluating a request against the current session state."""

    action: RosterAction
    status: RoleSelectionStatus
    existing: PartyMember | None = None


def decide_role_selection(
    session: SessionWithParty, request: PartyMember, now: datetime
) -> RoleSelectionDecision:
    """Evaluate a role request against a freshly loaded session.

    Only ``SCHEDULED`` sessions accept changes; a ``FULL`` session is locked
    too. A member picking the role they already hold leaves the party, picking
    another role switches in place. Newcomers get ``JOIN`` carrying the
    outcome of a successful admit; they still have to pass the cross-session
    checks and the atomic admit.
    """
    if session.status is not SessionStatus.SCHEDULED:
        return RoleSelectionDecision(RosterAction.REJECT, RoleSelectionStatus.LOCKED)
    if not is_future(session.date, now):
        return RoleSelectionDecision(RosterAction.REJECT, RoleSelectionStatus.EXPIRED)
    if request.role.is_exclusive:
        return RoleSelectionDecision(RosterAction.REJECT, RoleSelectionStatus.INVALID)

    existing = session.find_member(request.user_id)
    if existing is None:
        return RoleSelectionDecision(
            RosterAction.JOIN, RoleSelectionStatus.ADDED_TO_PARTY
        )
    if existing.role.is_exclusive:
        # The game master is seeded at creation and never leaves through here.
        return RoleSelectionDecision(
            RosterAction.REJECT, RoleSelectionStatus.INVALID, existing
        )
    if existing.role is request.role:
        return RoleSelectionDecision(
            RosterAction.REMOVE, RoleSelectionStatus.REMOVED_FROM_PARTY, existing
        )
    return RoleSelectionDecision(
        RosterAction.CHANGE_ROLE, RoleSelectionStatus.ROLE_CHANGED, existing
    )
