"""Rebuild timers for sessions that were pending when the process stopped."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from party_sessions.domain.lifecycle import is_party_full, shortfall_reason
from party_sessions.domain.sessions import (
    PARTY_CAPACITY,
    PENDING_STATUSES,
    SessionRecord,
    SessionStatus,
    SessionWithParty,
)
from party_sessions.domain.timing import (
    completion_time,
    fill_deadline,
    is_future,
    utc_now,
)
from party_sessions.services.scheduler import LifecycleActions
from party_sessions.services.sessions import SessionTaskRegistry

logger = logging.getLogger(__name__)


class PendingSessionSource(Protocol):
    def list_sessions(
        self, campaign_id: str | None = None, statuses=None
    ) -> list[SessionRecord]:
        """Return sessions filtered by status."""

    def get_session_with_party(self, session_id: str) -> SessionWithParty | None:
        """Return a session and its party, if present."""


@dataclass
class ReconciliationReport:
    scheduled: int = 0
    activated: int = 0
    completed: int = 0
    canceled: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        return (
            self.scheduled + self.activated + self.completed + self.canceled + self.failed
        )


@dataclass
class StartupReconciler:
    """Applies missed fill-deadline and completion effects, then re-arms timers.

    Reminders whose instant passed while the process was down are not sent.
    """

    session_repository: PendingSessionSource
    task_registry: SessionTaskRegistry
    actions: LifecycleActions
    capacity: int = PARTY_CAPACITY
    clock: Callable[[], datetime] = utc_now

    async def initialize_existing_sessions(self) -> ReconciliationReport:
        """Reconcile every non-terminal session; one failure never stops the rest."""
        report = ReconciliationReport()
        try:
            sessions = self.session_repository.list_sessions(statuses=PENDING_STATUSES)
        except Exception:
            logger.exception("Failed to load existing sessions")
            raise
        logger.info("Reconciling %d existing sessions", len(sessions))

        for session in sessions:
            try:
                await self._reconcile(session, report)
            except Exception:
                report.failed += 1
                logger.exception("Failed to reconcile session %s", session.id)

        logger.info(
            "Reconciliation done: scheduled=%d activated=%d completed=%d "
            "canceled=%d failed=%d",
            report.scheduled,
            report.activated,
            report.completed,
            report.canceled,
            report.failed,
        )
        return report

    async def _reconcile(
        self, session: SessionRecord, report: ReconciliationReport
    ) -> None:
        now = self.clock()
        if is_future(fill_deadline(session.date), now):
            self.task_registry.schedule_session_tasks(session.id, session.date)
            report.scheduled += 1
            return

        if session.status is SessionStatus.ACTIVE:
            await self._resume_active(session, now, report)
            return

        current = self.session_repository.get_session_with_party(session.id)
        if current is None:
            logger.warning("Session %s disappeared during reconciliation", session.id)
            return

        if is_party_full(current.party_size, self.capacity):
            logger.info(
                "Session %s missed its fill deadline with a full party; activating",
                session.id,
            )
            if await self.actions.activate_session(session.id):
                report.activated += 1
                await self._resume_active(current, now, report, count_schedule=False)
            return

        reason = shortfall_reason(current.party_size, self.capacity)
        logger.info(
            "Session %s missed its fill deadline with %d/%d players; canceling",
            session.id,
            current.party_size,
            self.capacity,
        )
        if await self.actions.cancel_session(session.id, reason):
            report.canceled += 1

    async def _resume_active(
        self,
        session: SessionRecord,
        now: datetime,
        report: ReconciliationReport,
        count_schedule: bool = True,
    ) -> None:
        if is_future(completion_time(session.date), now):
            self.task_registry.schedule_session_tasks(session.id, session.date)
            if count_schedule:
                report.scheduled += 1
            return
        if await self.actions.end_session(session.id):
            report.completed += 1
