"""Session lifecycle: creation, modification and status transitions."""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from party_sessions.adapters.discord_client import DiscordClient
from party_sessions.config import DEFAULT_TIMEZONE
from party_sessions.domain.lifecycle import can_transition, is_terminal
from party_sessions.domain.sessions import (
    PARTY_CAPACITY,
    Campaign,
    PartyMember,
    RoleType,
    SessionRecord,
    SessionStatus,
    SessionWithParty,
    next_session_name,
)
from party_sessions.domain.timing import (
    completion_time,
    ensure_utc,
    is_future,
    utc_now,
)
from party_sessions.services.notifications import NotificationService
from party_sessions.services.presentation import (
    build_session_message,
    canceled_description,
    cancellation_message,
    session_link,
)
from party_sessions.services.roster import PartyRepository
from party_sessions.services.users import UserService

logger = logging.getLogger(__name__)


class SessionValidationError(ValueError):
    """Raised when a session request is rejected before touching the store."""


class SessionNotFoundError(LookupError):
    """Raised when an explicitly requested session does not exist."""


class SessionRepository(Protocol):
    """Persistence interface for sessions."""

    def create_session(self, session: SessionWithParty) -> SessionRecord:
        """Persist a session together with its initial party."""

    def get_session(self, session_id: str) -> SessionRecord | None:
        """Return a session by id, if present."""

    def get_session_with_party(self, session_id: str) -> SessionWithParty | None:
        """Return a session and its party, if present."""

    def list_sessions(
        self,
        campaign_id: str | None = None,
        statuses: Iterable[SessionStatus] | None = None,
    ) -> list[SessionRecord]:
        """Return sessions, optionally filtered by campaign and status."""

    def update_session_status(self, session_id: str, status: SessionStatus) -> None:
        """Persist a new status."""

    def update_session_fields(self, session_id: str, fields: dict[str, object]) -> None:
        """Persist name, date and/or event_id changes."""

    def get_last_completed_session(self, campaign_id: str) -> SessionRecord | None:
        """Return the most recent completed or canceled session in a campaign."""

    def upsert_campaign(self, campaign: Campaign) -> None:
        """Create or refresh a campaign row."""


class SessionTaskRegistry(Protocol):
    """Timer operations the lifecycle needs from the scheduler."""

    def schedule_session_tasks(self, session_id: str, start: datetime) -> None:
        """Install (or replace) the timers of a session."""

    def cancel_session_tasks(self, session_id: str) -> None:
        """Drop every timer of a session."""


@dataclass
class SessionService:
    """Creates sessions and drives their status transitions."""

    session_repository: SessionRepository
    party_repository: PartyRepository
    user_service: UserService
    discord_client: DiscordClient
    notification_service: NotificationService
    task_registry: SessionTaskRegistry
    default_timezone: str = DEFAULT_TIMEZONE
    capacity: int = PARTY_CAPACITY
    clock: Callable[[], datetime] = utc_now

    async def create_session(  # noqa: PLR0913
        self,
        *,
        guild_id: str,
        channel_id: str,
        channel_name: str,
        name: str,
        date: datetime,
        user_id: str,
        username: str,
        timezone: str | None = None,
        party: list[PartyMember] | None = None,
    ) -> SessionRecord:
        """Validate, post the session message, persist it and install its timers."""
        start = ensure_utc(date)
        timezone_name = timezone or self.user_service.get_timezone(user_id)
        self._validate_new_session(channel_id, start, user_id, timezone_name)

        self.user_service.ensure_user(user_id, username)
        self.session_repository.upsert_campaign(
            Campaign(id=channel_id, guild_id=guild_id, name=channel_name)
        )

        members = [PartyMember(user_id, username, RoleType.GAME_MASTER)]
        for member in party or []:
            if member.user_id == user_id or member.role.is_exclusive:
                continue
            if len(members) >= self.capacity:
                break
            members.append(member)

        pending = SessionWithParty(
            id="",
            name=name,
            date=start,
            timezone=timezone_name,
            campaign_id=channel_id,
            guild_id=guild_id,
            status=SessionStatus.SCHEDULED,
            party=members,
        )
        try:
            message_id = await self.discord_client.post_message(
                channel_id, build_session_message(pending, capacity=self.capacity)
            )
        except Exception as exc:
            logger.exception("Failed to post session message in %s", channel_id)
            raise RuntimeError("Failed to create session message") from exc

        session = self.session_repository.create_session(
            SessionWithParty(
                id=message_id,
                name=pending.name,
                date=pending.date,
                timezone=pending.timezone,
                campaign_id=pending.campaign_id,
                guild_id=pending.guild_id,
                status=pending.status,
                party=members,
            )
        )
        self.task_registry.schedule_session_tasks(session.id, session.date)
        logger.info(
            "Created session %s (%s) for %s with %d members",
            session.id,
            session.name,
            session.date.isoformat(),
            len(members),
        )
        return session

    async def continue_session(  # noqa: PLR0913
        self,
        *,
        guild_id: str,
        channel_id: str,
        channel_name: str,
        date: datetime,
        user_id: str,
        username: str,
        timezone: str | None = None,
    ) -> SessionWithParty:
        """Start the next session of a channel with the previous party carried over."""
        last = self.session_repository.get_last_completed_session(channel_id)
        if last is None:
            raise SessionValidationError(
                "No completed or canceled sessions found in this channel to continue."
            )
        previous = self.session_repository.get_session_with_party(last.id)
        if previous is None:
            raise SessionNotFoundError(last.id)

        carried = [
            member
            for member in previous.party
            if member.user_id != user_id and not member.role.is_exclusive
        ]
        session = await self.create_session(
            guild_id=guild_id,
            channel_id=channel_id,
            channel_name=channel_name,
            name=next_session_name(previous.name),
            date=date,
            user_id=user_id,
            username=username,
            timezone=timezone or previous.timezone or self.default_timezone,
            party=carried,
        )
        logger.info("Continued session %s as %s", previous.id, session.id)

        current = self.session_repository.get_session_with_party(session.id)
        if current is None:
            raise SessionNotFoundError(session.id)
        if current.party_size >= self.capacity and await self.mark_full(session.id):
            current = self.session_repository.get_session_with_party(session.id)
        return current

    async def modify_session(
        self,
        session_id: str,
        *,
        name: str | None = None,
        date: datetime | None = None,
    ) -> SessionRecord:
        """Rename and/or reschedule a pending session."""
        session = self.session_repository.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        if is_terminal(session.status):
            raise SessionValidationError(
                "Completed or canceled sessions cannot be modified."
            )

        fields: dict[str, object] = {}
        new_start = ensure_utc(date) if date is not None else None
        if new_start is not None and new_start != session.date:
            if not is_future(new_start, self.clock()):
                raise SessionValidationError("The session date must be in the future.")
            fields["date"] = new_start
        if name and name != session.name:
            fields["name"] = name
        if not fields:
            return session

        self.session_repository.update_session_fields(session_id, fields)
        if "date" in fields:
            self.task_registry.schedule_session_tasks(session_id, new_start)
            logger.info(
                "Rescheduled session %s tasks for %s", session_id, new_start.isoformat()
            )

        if session.event_id:
            try:
                await self.discord_client.update_scheduled_event(
                    session.guild_id,
                    session.event_id,
                    name=fields.get("name"),
                    start=new_start if "date" in fields else None,
                    end=completion_time(new_start) if "date" in fields else None,
                )
            except Exception:
                logger.exception("Failed to update scheduled event for %s", session_id)

        await self._regenerate_quietly(session_id)
        updated = self.session_repository.get_session(session_id)
        return updated or session

    async def mark_full(self, session_id: str) -> bool:
        """SCHEDULED -> FULL once the party reaches capacity."""
        session = self.session_repository.get_session(session_id)
        if not self._can_apply(session_id, session, SessionStatus.FULL):
            return False
        self._persist_status(session_id, SessionStatus.FULL)
        if session.event_id is None:
            await self._create_external_event(session)
        await self._regenerate_quietly(session_id)
        return True

    async def activate_session(self, session_id: str) -> bool:
        """SCHEDULED|FULL -> ACTIVE when the fill deadline finds a full party."""
        session = self.session_repository.get_session(session_id)
        if not self._can_apply(session_id, session, SessionStatus.ACTIVE):
            return False
        self._persist_status(session_id, SessionStatus.ACTIVE)
        await self._regenerate_quietly(session_id)
        return True

    async def cancel_session(self, session_id: str, reason: str) -> bool:
        """Cancel a pending session, drop its timers and tell the party why."""
        session = self.session_repository.get_session_with_party(session_id)
        if not self._can_apply(session_id, session, SessionStatus.CANCELED):
            return False
        logger.info("Canceling session %s: %s", session_id, reason)

        self.task_registry.cancel_session_tasks(session_id)
        await self._delete_external_event(session)
        self._persist_status(session_id, SessionStatus.CANCELED)
        await self._regenerate_quietly(
            session_id, canceled_description(session, reason)
        )

        async def build_message(user_id: str) -> str:
            timezone_name = self.user_service.get_timezone(user_id)
            return cancellation_message(session, reason, timezone_name)

        try:
            await self.notification_service.notify_party(
                [member.user_id for member in session.party], build_message
            )
        except Exception:
            logger.exception("Failed to notify party of canceled session %s", session_id)
        return True

    async def end_session(self, session_id: str) -> bool:
        """ACTIVE -> COMPLETED, either on schedule or manually."""
        session = self.session_repository.get_session(session_id)
        if not self._can_apply(session_id, session, SessionStatus.COMPLETED):
            return False
        logger.info("Ending session %s", session_id)

        self.task_registry.cancel_session_tasks(session_id)
        await self._delete_external_event(session)
        self._persist_status(session_id, SessionStatus.COMPLETED)
        await self._regenerate_quietly(session_id)
        return True

    async def regenerate_session_message(
        self, session_id: str, description_override: str | None = None
    ) -> None:
        """Rebuild the session post from persisted state."""
        session = self.session_repository.get_session_with_party(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        payload = build_session_message(
            session, description_override, capacity=self.capacity
        )
        await self.discord_client.edit_message(session.campaign_id, session.id, payload)
        logger.debug(
            "Regenerated session message %s (%s)", session_id, session.status.value
        )

    def get_session(self, session_id: str) -> SessionWithParty | None:
        return self.session_repository.get_session_with_party(session_id)

    def list_sessions(
        self,
        campaign_id: str | None = None,
        statuses: Iterable[SessionStatus] | None = None,
    ) -> list[SessionRecord]:
        return self.session_repository.list_sessions(campaign_id, statuses)

    def _validate_new_session(
        self, channel_id: str, start: datetime, user_id: str, timezone_name: str
    ) -> None:
        if not channel_id:
            raise SessionValidationError("Sessions must be created in a server channel.")
        if not user_id:
            raise SessionValidationError("A valid user is required to host a session.")
        if not is_future(start, self.clock()):
            raise SessionValidationError("The session date must be in the future.")
        if self.party_repository.is_user_hosting_on_date(
            user_id, start, channel_id, timezone_name
        ):
            raise SessionValidationError(
                "You are already hosting a session on this day in this channel."
            )
        if self.party_repository.is_user_member_on_date(
            user_id, start, channel_id, timezone_name
        ):
            raise SessionValidationError(
                "You are already playing in a session on this day in this channel."
            )

    def _can_apply(
        self,
        session_id: str,
        session: SessionRecord | None,
        target: SessionStatus,
    ) -> bool:
        if session is None:
            logger.info("Session %s not found; skipping %s", session_id, target.value)
            return False
        if is_terminal(session.status):
            logger.info(
                "Session %s already %s; skipping %s",
                session_id,
                session.status.value,
                target.value,
            )
            return False
        if not can_transition(session.status, target):
            logger.warning(
                "Rejected transition %s -> %s for session %s",
                session.status.value,
                target.value,
                session_id,
            )
            return False
        return True

    def _persist_status(self, session_id: str, status: SessionStatus) -> None:
        try:
            self.session_repository.update_session_status(session_id, status)
        except Exception:
            logger.exception(
                "Failed to update session %s status to %s", session_id, status.value
            )
            raise
        logger.info("Session %s is now %s", session_id, status.value)

    async def _regenerate_quietly(
        self, session_id: str, description_override: str | None = None
    ) -> None:
        try:
            await self.regenerate_session_message(session_id, description_override)
        except Exception:
            logger.exception("Failed to regenerate session message for %s", session_id)

    async def _create_external_event(self, session: SessionRecord) -> None:
        try:
            event_id = await self.discord_client.create_scheduled_event(
                session.guild_id,
                session.name,
                session.date,
                completion_time(session.date),
                session_link(session),
            )
            if event_id:
                self.session_repository.update_session_fields(
                    session.id, {"event_id": event_id}
                )
                logger.info(
                    "Created scheduled event %s for session %s", event_id, session.id
                )
        except Exception:
            logger.exception("Failed to create scheduled event for %s", session.id)

    async def _delete_external_event(self, session: SessionRecord) -> None:
        if not session.event_id:
            return
        try:
            await self.discord_client.delete_scheduled_event(
                session.guild_id, session.event_id
            )
        except Exception:
            logger.exception(
                "Failed to delete scheduled event %s for %s",
                session.event_id,
                session.id,
            )
