"""Domain models for scheduled party sessions."""

import re
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum

PARTY_CAPACITY = 6


class SessionStatus(str, Enum):
    """Lifecycle status of a session."""

    SCHEDULED = "SCHEDULED"
    FULL = "FULL"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELED = "CANCELED"


PENDING_STATUSES = frozenset(
    {SessionStatus.SCHEDULED, SessionStatus.FULL, SessionStatus.ACTIVE}
)
TERMINAL_STATUSES = frozenset({SessionStatus.COMPLETED, SessionStatus.CANCELED})


class RoleType(str, Enum):
    """Party roles. GAME_MASTER is the exclusive leader role."""

    GAME_MASTER = "GAME_MASTER"
    TANK = "TANK"
    HEALER = "HEALER"
    DPS = "DPS"
    SUPPORT = "SUPPORT"
    FACE = "FACE"

    @property
    def is_exclusive(self) -> bool:
        return self is RoleType.GAME_MASTER


@dataclass(frozen=True)
class PartyMember:
    """A user holding a role in a session's party."""

    user_id: str
    username: str
    role: RoleType


@dataclass(frozen=True)
class SessionRecord:
    """Represents a persisted session.

    ``id`` is the Discord message id of the session post. ``date`` is the
    scheduled start as an aware UTC instant; ``timezone`` only affects
    calendar-day comparisons and formatting.
    """

    id: str
    name: str
    date: datetime
    timezone: str
    campaign_id: str
    guild_id: str
    status: SessionStatus
    event_id: str | None = None

    def with_status(self, status: SessionStatus) -> "SessionRecord":
        return replace(self, status=status)


@dataclass(frozen=True)
class SessionWithParty(SessionRecord):
    """A session together with its current party."""

    party: list[PartyMember] = field(default_factory=list)

    @property
    def party_size(self) -> int:
        return len(self.party)

    def find_member(self, user_id: str) -> PartyMember | None:
        for member in self.party:
            if member.user_id == user_id:
                return member
        return None

    @property
    def game_master(self) -> PartyMember | None:
        for member in self.party:
            if member.role is RoleType.GAME_MASTER:
                return member
        return None


@dataclass(frozen=True)
class Campaign:
    """A Discord channel that hosts sessions; the scheduling scope."""

    id: str
    guild_id: str
    name: str


_TRAILING_NUMBER = re.compile(r"^(?P<stem>.*?)(?P<number>\d+)$")


def next_session_name(previous: str) -> str:
    """Derive the follow-up name: 'Session 4' -> 'Session 5', 'Heist' -> 'Heist 2'."""
    stripped = previous.strip()
    match = _TRAILING_NUMBER.match(stripped)
    if match is None:
        return f"{stripped} 2"
    return f"{match.group('stem')}{int(match.group('number')) + 1}"
