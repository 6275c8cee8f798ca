"""Supabase-backed session repository."""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime

from supabase import Client

from party_sessions.config import DEFAULT_TIMEZONE
from party_sessions.domain.sessions import (
    TERMINAL_STATUSES,
    Campaign,
    PartyMember,
    RoleType,
    SessionRecord,
    SessionStatus,
    SessionWithParty,
)
from party_sessions.domain.timing import ensure_utc
from party_sessions.services.sessions import SessionRepository

_SESSION_COLUMNS = "id, name, date, timezone, campaign_id, guild_id, status, event_id"
_PARTY_EMBED = "party_members(user_id, username, role)"


def parse_timestamp(value: str) -> datetime:
    """Parse a timestamptz column into an aware UTC datetime."""
    return ensure_utc(datetime.fromisoformat(value))


def _session_from_row(row: dict[str, object]) -> SessionRecord:
    return SessionRecord(
        id=str(row["id"]),
        name=str(row["name"]),
        date=parse_timestamp(str(row["date"])),
        timezone=str(row.get("timezone") or DEFAULT_TIMEZONE),
        campaign_id=str(row["campaign_id"]),
        guild_id=str(row["guild_id"]),
        status=SessionStatus(row["status"]),
        event_id=str(row["event_id"]) if row.get("event_id") else None,
    )


def _member_from_row(row: dict[str, object]) -> PartyMember:
    return PartyMember(
        user_id=str(row["user_id"]),
        username=str(row.get("username") or ""),
        role=RoleType(row["role"]),
    )


@dataclass
class SupabaseSessionRepository(SessionRepository):
    """Supabase implementation for sessions and campaigns."""

    client: Client

    def create_session(self, session: SessionWithParty) -> SessionRecord:
        """Insert the session row and its initial party."""
        response = (
            self.client.table("sessions")
            .insert(
                {
                    "id": session.id,
                    "name": session.name,
                    "date": session.date.isoformat(),
                    "timezone": session.timezone,
                    "campaign_id": session.campaign_id,
                    "guild_id": session.guild_id,
                    "status": session.status.value,
                    "event_id": session.event_id,
                }
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to create session")
        if session.party:
            self.client.table("party_members").insert(
                [
                    {
                        "session_id": session.id,
                        "user_id": member.user_id,
                        "username": member.username,
                        "role": member.role.value,
                    }
                    for member in session.party
                ]
            ).execute()
        return _session_from_row(response.data[0])

    def get_session(self, session_id: str) -> SessionRecord | None:
        """Return a session by id, if present."""
        response = (
            self.client.table("sessions")
            .select(_SESSION_COLUMNS)
            .eq("id", session_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _session_from_row(response.data[0])

    def get_session_with_party(self, session_id: str) -> SessionWithParty | None:
        """Return a session with its party members embedded."""
        response = (
            self.client.table("sessions")
            .select(f"{_SESSION_COLUMNS}, {_PARTY_EMBED}")
            .eq("id", session_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        row = response.data[0]
        record = _session_from_row(row)
        party = [_member_from_row(member) for member in row.get("party_members") or []]
        return SessionWithParty(
            id=record.id,
            name=record.name,
            date=record.date,
            timezone=record.timezone,
            campaign_id=record.campaign_id,
            guild_id=record.guild_id,
            status=record.status,
            event_id=record.event_id,
            party=party,
        )

    def list_sessions(
        self,
        campaign_id: str | None = None,
        statuses: Iterable[SessionStatus] | None = None,
    ) -> list[SessionRecord]:
        """Return sessions ordered by start time."""
        query = self.client.table("sessions").select(_SESSION_COLUMNS)
        if campaign_id is not None:
            query = query.eq("campaign_id", campaign_id)
        if statuses is not None:
            query = query.in_("status", sorted(status.value for status in statuses))
        response = query.order("date").execute()
        return [_session_from_row(row) for row in response.data or []]

    def update_session_status(self, session_id: str, status: SessionStatus) -> None:
        """Persist a new status."""
        self.client.table("sessions").update(
            {"status": status.value, "updated_at": datetime.now(tz=UTC).isoformat()}
        ).eq("id", session_id).execute()

    def update_session_fields(self, session_id: str, fields: dict[str, object]) -> None:
        """Persist name, date and/or event id."""
        payload: dict[str, object] = {
            key: value.isoformat() if isinstance(value, datetime) else value
            for key, value in fields.items()
        }
        payload["updated_at"] = datetime.now(tz=UTC).isoformat()
        self.client.table("sessions").update(payload).eq("id", session_id).execute()

    def get_last_completed_session(self, campaign_id: str) -> SessionRecord | None:
        """Return the latest completed or canceled session of a channel."""
        response = (
            self.client.table("sessions")
            .select(_SESSION_COLUMNS)
            .eq("campaign_id", campaign_id)
            .in_("status", sorted(status.value for status in TERMINAL_STATUSES))
            .order("date", desc=True)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _session_from_row(response.data[0])

    def upsert_campaign(self, campaign: Campaign) -> None:
        """Create or refresh a campaign row."""
        self.client.table("campaigns").upsert(
            {"id": campaign.id, "guild_id": campaign.guild_id, "name": campaign.name}
        ).execute()
