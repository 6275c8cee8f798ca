"""Supabase-backed party membership repository."""

from dataclasses import dataclass
from datetime import datetime

from supabase import Client

from party_sessions.adapters.supabase_session_repository import parse_timestamp
from party_sessions.domain.sessions import PENDING_STATUSES, PartyMember, RoleType
from party_sessions.domain.timing import same_calendar_day
from party_sessions.services.roster import PartyRepository

_PENDING = sorted(status.value for status in PENDING_STATUSES)


@dataclass
class SupabasePartyRepository(PartyRepository):
    """Supabase implementation for party members.

    Admission goes through the ``add_party_member_if_not_full`` Postgres
    function, which locks the session row before counting so concurrent
    joins can never push a party over capacity.
    """

    client: Client

    def add_party_member_if_not_full(
        self, session_id: str, member: PartyMember, capacity: int
    ) -> bool:
        response = self.client.rpc(
            "add_party_member_if_not_full",
            {
                "p_session_id": session_id,
                "p_user_id": member.user_id,
                "p_username": member.username,
                "p_role": member.role.value,
                "p_capacity": capacity,
            },
        ).execute()
        data = response.data
        if isinstance(data, list):
            data = data[0] if data else False
        return bool(data)

    def update_party_member_role(
        self, session_id: str, user_id: str, role: RoleType
    ) -> None:
        self.client.table("party_members").update({"role": role.value}).eq(
            "session_id", session_id
        ).eq("user_id", user_id).execute()

    def remove_party_member(self, session_id: str, user_id: str) -> None:
        self.client.table("party_members").delete().eq("session_id", session_id).eq(
            "user_id", user_id
        ).execute()

    def is_user_in_active_session(
        self, user_id: str, exclude_session_id: str, campaign_id: str
    ) -> bool:
        """Return True if the user is in another pending session of the channel."""
        return any(
            row["session_id"] != exclude_session_id
            for row in self._pending_memberships(user_id, campaign_id)
        )

    def is_user_hosting_on_date(
        self, user_id: str, date: datetime, campaign_id: str, timezone: str
    ) -> bool:
        """Return True if the user leads a pending session that calendar day."""
        return any(
            row["role"] == RoleType.GAME_MASTER.value
            and self._same_day(row, date, timezone)
            for row in self._pending_memberships(user_id, campaign_id)
        )

    def is_user_member_on_date(
        self, user_id: str, date: datetime, campaign_id: str, timezone: str
    ) -> bool:
        """Return True if the user plays (not leads) a pending session that day."""
        return any(
            row["role"] != RoleType.GAME_MASTER.value
            and self._same_day(row, date, timezone)
            for row in self._pending_memberships(user_id, campaign_id)
        )

    def _pending_memberships(
        self, user_id: str, campaign_id: str
    ) -> list[dict[str, object]]:
        response = (
            self.client.table("party_members")
            .select("session_id, role, sessions!inner(date, status, campaign_id)")
            .eq("user_id", user_id)
            .eq("sessions.campaign_id", campaign_id)
            .in_("sessions.status", _PENDING)
            .execute()
        )
        rows = []
        for row in response.data or []:
            session = row.get("sessions") or {}
            if session.get("campaign_id") != campaign_id:
                continue
            if session.get("status") not in _PENDING:
                continue
            rows.append(row)
        return rows

    @staticmethod
    def _same_day(row: dict[str, object], date: datetime, timezone: str) -> bool:
        session = row["sessions"]
        return same_calendar_day(parse_timestamp(session["date"]), date, timezone)
