"""Party admission and role selection."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from party_sessions.domain.roster import (
    RoleSelectionStatus,
    RosterAction,
    decide_role_selection,
)
from party_sessions.domain.sessions import (
    PARTY_CAPACITY,
    PartyMember,
    RoleType,
    SessionWithParty,
)
from party_sessions.domain.timing import utc_now

logger = logging.getLogger(__name__)


class PartyRepository(Protocol):
    """Persistence interface for party membership."""

    def add_party_member_if_not_full(
        self, session_id: str, member: PartyMember, capacity: int
    ) -> bool:
        """Atomically add the member only while the party is below capacity."""

    def update_party_member_role(
        self, session_id: str, user_id: str, role: RoleType
    ) -> None:
        """Change the role of an existing member."""

    def remove_party_member(self, session_id: str, user_id: str) -> None:
        """Remove a member from the party."""

    def is_user_in_active_session(
        self, user_id: str, exclude_session_id: str, campaign_id: str
    ) -> bool:
        """Return True if the user belongs to another pending session in the campaign."""

    def is_user_hosting_on_date(
        self, user_id: str, date: datetime, campaign_id: str, timezone: str
    ) -> bool:
        """Return True if the user leads a pending session that calendar day."""

    def is_user_member_on_date(
        self, user_id: str, date: datetime, campaign_id: str, timezone: str
    ) -> bool:
        """Return True if the user plays in a pending session that calendar day."""


class SessionLoader(Protocol):
    """Read access to sessions with their party."""

    def get_session_with_party(self, session_id: str) -> SessionWithParty | None:
        """Return the session and its party, if present."""


class RosterLifecycle(Protocol):
    """Lifecycle hooks the role selection flow needs."""

    async def mark_full(self, session_id: str) -> bool:
        """Move a scheduled session to FULL."""

    async def regenerate_session_message(
        self, session_id: str, description_override: str | None = None
    ) -> None:
        """Rebuild the public session post."""


_MUTATING_OUTCOMES = {
    RoleSelectionStatus.ADDED_TO_PARTY,
    RoleSelectionStatus.ROLE_CHANGED,
    RoleSelectionStatus.REMOVED_FROM_PARTY,
}


@dataclass
class RoleSelectionService:
    """Applies role button presses to a session party."""

    session_repository: SessionLoader
    party_repository: PartyRepository
    lifecycle: RosterLifecycle
    capacity: int = PARTY_CAPACITY
    clock: Callable[[], datetime] = utc_now

    async def process_role_selection(
        self, session_id: str, member: PartyMember
    ) -> RoleSelectionStatus:
        """Join, switch role or leave; returns the outcome, never raises for rejections."""
        session = self.session_repository.get_session_with_party(session_id)
        if session is None:
            logger.info("Role selection for unknown session %s", session_id)
            return RoleSelectionStatus.LOCKED

        status = self._apply(session, member)
        logger.info(
            "Role selection for session %s by user %s (%s): %s",
            session_id,
            member.user_id,
            member.role.value,
            status.value,
        )
        if status is RoleSelectionStatus.ADDED_TO_PARTY and (
            await self._mark_full_if_at_capacity(session_id)
        ):
            return status
        if status in _MUTATING_OUTCOMES:
            await self._regenerate(session_id)
        return status

    def _apply(
        self, session: SessionWithParty, member: PartyMember
    ) -> RoleSelectionStatus:
        decision = decide_role_selection(session, member, self.clock())
        if decision.action is RosterAction.REJECT:
            return decision.status
        if decision.action is RosterAction.REMOVE:
            self.party_repository.remove_party_member(session.id, member.user_id)
            return decision.status
        if decision.action is RosterAction.CHANGE_ROLE:
            self.party_repository.update_party_member_role(
                session.id, member.user_id, member.role
            )
            return decision.status

        if self.party_repository.is_user_hosting_on_date(
            member.user_id, session.date, session.campaign_id, session.timezone
        ):
            return RoleSelectionStatus.HOSTING_SAME_DAY
        if self.party_repository.is_user_in_active_session(
            member.user_id, session.id, session.campaign_id
        ):
            return RoleSelectionStatus.ALREADY_IN_SESSION
        # Only the atomic insert decides capacity; the party we read may be stale.
        if not self.party_repository.add_party_member_if_not_full(
            session.id, member, self.capacity
        ):
            return RoleSelectionStatus.PARTY_FULL
        return decision.status

    async def _mark_full_if_at_capacity(self, session_id: str) -> bool:
        session = self.session_repository.get_session_with_party(session_id)
        if session is None or session.party_size < self.capacity:
            return False
        try:
            return await self.lifecycle.mark_full(session_id)
        except Exception:
            # The fill-deadline check still activates a full party.
            logger.exception("Failed to mark session %s as full", session_id)
            return False

    async def _regenerate(self, session_id: str) -> None:
        try:
            await self.lifecycle.regenerate_session_message(session_id)
        except Exception:
            logger.exception("Failed to regenerate session message for %s", session_id)
