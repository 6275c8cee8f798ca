"""Supabase-backed user repository."""

from dataclasses import dataclass
from datetime import UTC, datetime

from supabase import Client

from party_sessions.services.users import UserRepository


@dataclass
class SupabaseUserRepository(UserRepository):
    """Supabase implementation for Discord users."""

    client: Client

    def upsert_user(self, user_id: str, username: str) -> None:
        """Create the user row or refresh its username."""
        self.client.table("users").upsert(
            {
                "id": user_id,
                "username": username,
                "last_active_at": datetime.now(tz=UTC).isoformat(),
            }
        ).execute()

    def get_timezone(self, user_id: str) -> str | None:
        """Return the stored timezone for a user, if any."""
        response = (
            self.client.table("users")
            .select("timezone")
            .eq("id", user_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        timezone = response.data[0].get("timezone")
        return str(timezone) if timezone else None

    def set_timezone(self, user_id: str, timezone: str) -> None:
        self.client.table("users").update({"timezone": timezone}).eq(
            "id", user_id
        ).execute()
