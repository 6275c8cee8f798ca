"""Admin service for operating the scheduler."""

from dataclasses import dataclass
from typing import Protocol

from party_sessions.domain.lifecycle import allowed_targets
from party_sessions.domain.sessions import SessionRecord, SessionStatus
from party_sessions.services.sessions import SessionNotFoundError, SessionService

MANUAL_CANCEL_REASON = "Canceled by an administrator"


class TransitionRejectedError(RuntimeError):
    """Raised when a manual transition is not allowed from the current status."""


class SchedulerStatus(Protocol):
    def get_scheduled_task_count(self) -> int:
        """Number of sessions with pending timers."""

    def snapshot(self) -> list[dict[str, object]]:
        """Registry contents."""


def _session_summary(session: SessionRecord) -> dict[str, object]:
    return {
        "id": session.id,
        "name": session.name,
        "date": session.date.isoformat(),
        "timezone": session.timezone,
        "campaign_id": session.campaign_id,
        "status": session.status.value,
        "event_id": session.event_id,
    }


@dataclass
class AdminService:
    """Service behind the admin API."""

    session_service: SessionService
    scheduler: SchedulerStatus

    def scheduler_status(self) -> dict[str, object]:
        return {
            "scheduled_task_count": self.scheduler.get_scheduled_task_count(),
            "sessions": self.scheduler.snapshot(),
        }

    def list_sessions(
        self, campaign_id: str | None = None, status: SessionStatus | None = None
    ) -> list[dict[str, object]]:
        """Return sessions, optionally filtered by channel and status."""
        statuses = [status] if status is not None else None
        sessions = self.session_service.list_sessions(campaign_id, statuses)
        return [_session_summary(session) for session in sessions]

    def get_session(self, session_id: str) -> dict[str, object]:
        session = self.session_service.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        summary = _session_summary(session)
        summary["party"] = [
            {
                "user_id": member.user_id,
                "username": member.username,
                "role": member.role.value,
            }
            for member in session.party
        ]
        return summary

    async def regenerate_session(self, session_id: str) -> None:
        await self.session_service.regenerate_session_message(session_id)

    async def cancel_session(self, session_id: str, reason: str | None = None) -> None:
        """Cancel a pending session on behalf of an administrator."""
        self._require_transition(session_id, SessionStatus.CANCELED)
        await self.session_service.cancel_session(
            session_id, reason or MANUAL_CANCEL_REASON
        )

    async def end_session(self, session_id: str) -> None:
        """Complete an active session ahead of its completion timer."""
        self._require_transition(session_id, SessionStatus.COMPLETED)
        await self.session_service.end_session(session_id)

    def _require_transition(self, session_id: str, target: SessionStatus) -> None:
        session = self.session_service.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        if target not in allowed_targets(session.status):
            raise TransitionRejectedError(
                f"Session {session_id} is {session.status.value}; "
                f"cannot move to {target.value}"
            )
