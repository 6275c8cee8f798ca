"""In-process timers that drive session lifecycles.

Every pending session owns at most one ``ScheduledTaskSet`` holding up to three
one-shot timers:

- ``reminder`` (start - 1h): direct-message the party.
- ``fill_deadline`` (start - 5min): activate a full party, cancel otherwise.
- ``completion`` (start + 5h): complete a session that is still active.

Timers are ``asyncio`` tasks sleeping until their instant. Handlers always
re-read the store because the session may have changed while they slept.
A timer that already started running is never cancelled from outside; only
its effect is guarded by the re-read state.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Protocol

from party_sessions.domain.lifecycle import (
    fill_deadline_outcome,
    is_terminal,
    shortfall_reason,
)
from party_sessions.domain.sessions import (
    PARTY_CAPACITY,
    SessionStatus,
    SessionWithParty,
)
from party_sessions.domain.timing import (
    completion_time,
    ensure_utc,
    fill_deadline,
    is_future,
    reminder_time,
    utc_now,
)
from party_sessions.services.notifications import NotificationService
from party_sessions.services.presentation import reminder_message
from party_sessions.services.users import UserService

logger = logging.getLogger(__name__)

_MAX_SLEEP_SECONDS = 60.0


class TaskSlot(str, Enum):
    """The timers a session can own."""

    REMINDER = "reminder"
    FILL_DEADLINE = "fill_deadline"
    COMPLETION = "completion"


class LifecycleActions(Protocol):
    """Transitions shared by timers and manual commands."""

    async def activate_session(self, session_id: str) -> bool:
        """Move a full pending session to ACTIVE."""

    async def cancel_session(self, session_id: str, reason: str) -> bool:
        """Cancel a session."""

    async def end_session(self, session_id: str) -> bool:
        """Complete an active session."""


class SessionSource(Protocol):
    """Read access to persisted sessions."""

    def get_session_with_party(self, session_id: str) -> SessionWithParty | None:
        """Return a session and its party, if present."""


@dataclass
class _Timer:
    target: datetime
    task: asyncio.Task | None = None
    fired: bool = False


@dataclass
class ScheduledTaskSet:
    """Timers currently installed for one session."""

    session_id: str
    timers: dict[TaskSlot, _Timer] = field(default_factory=dict)

    def stop(self) -> None:
        """Cancel timers that are still sleeping and forget all of them."""
        for timer in self.timers.values():
            if timer.task is not None and not timer.fired and not timer.task.done():
                timer.task.cancel()
        self.timers.clear()


@dataclass
class SessionScheduler:
    """Owns the timer registry; one instance per process."""

    session_repository: SessionSource
    notification_service: NotificationService
    user_service: UserService
    actions: LifecycleActions | None = None
    capacity: int = PARTY_CAPACITY
    clock: Callable[[], datetime] = utc_now
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    _registry: dict[str, ScheduledTaskSet] = field(default_factory=dict, init=False)

    def bind_actions(self, actions: LifecycleActions) -> None:
        """Attach the lifecycle implementation the timers call into."""
        self.actions = actions

    def schedule_session_tasks(self, session_id: str, start: datetime) -> None:
        """Replace the timers of a session; past instants are skipped."""
        self.cancel_session_tasks(session_id)

        start = ensure_utc(start)
        now = self.clock()
        targets = {
            TaskSlot.REMINDER: reminder_time(start),
            TaskSlot.FILL_DEADLINE: fill_deadline(start),
            TaskSlot.COMPLETION: completion_time(start),
        }
        task_set = ScheduledTaskSet(session_id=session_id)
        for slot, target in targets.items():
            if not is_future(target, now):
                logger.info(
                    "Skipping %s for session %s; %s already passed",
                    slot.value,
                    session_id,
                    target.isoformat(),
                )
                continue
            timer = _Timer(target=target)
            task_set.timers[slot] = timer
            timer.task = asyncio.create_task(
                self._run_timer(task_set, slot, timer),
                name=f"session-{session_id}-{slot.value}",
            )
            logger.info(
                "Scheduled %s for session %s at %s",
                slot.value,
                session_id,
                target.isoformat(),
            )

        if not task_set.timers:
            logger.info("No tasks scheduled for session %s; all times passed", session_id)
            return
        self._registry[session_id] = task_set

    def cancel_session_tasks(self, session_id: str) -> None:
        """Drop the timers of a session; a no-op when none are installed."""
        task_set = self._registry.pop(session_id, None)
        if task_set is None:
            return
        task_set.stop()
        logger.info("Canceled scheduled tasks for session %s", session_id)

    def get_scheduled_task_count(self) -> int:
        """Number of sessions with at least one pending timer."""
        return len(self._registry)

    def scheduled_slots(self, session_id: str) -> dict[TaskSlot, datetime]:
        """Pending timers of a session and their target instants."""
        task_set = self._registry.get(session_id)
        if task_set is None:
            return {}
        return {slot: timer.target for slot, timer in task_set.timers.items()}

    def snapshot(self) -> list[dict[str, object]]:
        """Registry contents for the admin API."""
        return [
            {
                "session_id": session_id,
                "timers": {
                    slot.value: timer.target.isoformat()
                    for slot, timer in task_set.timers.items()
                },
            }
            for session_id, task_set in self._registry.items()
        ]

    def shutdown(self) -> None:
        """Stop every timer and clear the registry."""
        logger.info(
            "Shutting down session scheduler with %d sessions", len(self._registry)
        )
        for session_id, task_set in list(self._registry.items()):
            try:
                task_set.stop()
            except Exception:
                logger.exception("Error stopping tasks for session %s", session_id)
        self._registry.clear()

    async def handle_reminder(self, session_id: str) -> None:
        """Send the one-hour reminder to every party member."""
        try:
            session = self.session_repository.get_session_with_party(session_id)
            if session is None or is_terminal(session.status):
                logger.info("Skipping reminder for session %s", session_id)
                return

            async def build_message(user_id: str) -> str:
                timezone_name = self.user_service.get_timezone(user_id)
                return reminder_message(session, timezone_name, self.capacity)

            delivered = await self.notification_service.notify_party(
                [member.user_id for member in session.party], build_message
            )
            logger.info(
                "Sent %d/%d reminders for session %s",
                delivered,
                session.party_size,
                session_id,
            )
        except Exception:
            logger.exception("Error handling reminder for session %s", session_id)

    async def handle_fill_deadline(self, session_id: str) -> None:
        """Activate a full party or cancel the session for lack of players."""
        try:
            actions = self._require_actions()
            session = self.session_repository.get_session_with_party(session_id)
            if session is None:
                logger.info("Session %s vanished before its fill deadline", session_id)
                return
            if session.status not in {SessionStatus.SCHEDULED, SessionStatus.FULL}:
                logger.info(
                    "Session %s is %s at fill deadline; nothing to do",
                    session_id,
                    session.status.value,
                )
                return

            outcome = fill_deadline_outcome(session.party_size, self.capacity)
            if outcome is SessionStatus.ACTIVE:
                await actions.activate_session(session_id)
            else:
                await actions.cancel_session(
                    session_id, shortfall_reason(session.party_size, self.capacity)
                )
        except Exception:
            logger.exception("Error handling fill deadline for session %s", session_id)

    async def handle_completion(self, session_id: str) -> None:
        """Complete a session still ACTIVE five hours after its start."""
        try:
            actions = self._require_actions()
            session = self.session_repository.get_session_with_party(session_id)
            if session is None or session.status is not SessionStatus.ACTIVE:
                logger.info(
                    "Session %s is not ACTIVE; skipping auto-completion", session_id
                )
                return
            await actions.end_session(session_id)
            logger.info("Session %s auto-completed", session_id)
        except Exception:
            logger.exception("Error handling completion for session %s", session_id)
        finally:
            self.cancel_session_tasks(session_id)

    def _require_actions(self) -> LifecycleActions:
        if self.actions is None:
            raise RuntimeError("SessionScheduler has no lifecycle actions bound")
        return self.actions

    def _handler_for(self, slot: TaskSlot) -> Callable[[str], Awaitable[None]]:
        return {
            TaskSlot.REMINDER: self.handle_reminder,
            TaskSlot.FILL_DEADLINE: self.handle_fill_deadline,
            TaskSlot.COMPLETION: self.handle_completion,
        }[slot]

    async def _sleep_until(self, target: datetime) -> None:
        # Re-check the wall clock periodically so long sleeps never fire early.
        while True:
            delay = (target - self.clock()).total_seconds()
            if delay <= 0:
                return
            await self.sleep(min(delay, _MAX_SLEEP_SECONDS))

    async def _run_timer(
        self, task_set: ScheduledTaskSet, slot: TaskSlot, timer: _Timer
    ) -> None:
        await self._sleep_until(timer.target)
        timer.fired = True
        try:
            await self._handler_for(slot)(task_set.session_id)
        finally:
            self._release_slot(task_set, slot, timer)

    def _release_slot(
        self, task_set: ScheduledTaskSet, slot: TaskSlot, timer: _Timer
    ) -> None:
        if task_set.timers.get(slot) is timer:
            del task_set.timers[slot]
        if task_set.timers:
            return
        if self._registry.get(task_set.session_id) is task_set:
            del self._registry[task_set.session_id]
            logger.debug("Session %s has no timers left", task_set.session_id)
