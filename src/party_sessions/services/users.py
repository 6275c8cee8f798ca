"""User-related business logic."""

from dataclasses import dataclass
from typing import Protocol

from party_sessions.config import DEFAULT_TIMEZONE


class UserRepository(Protocol):
    """Persistence interface for Discord users."""

    def upsert_user(self, user_id: str, username: str) -> None:
        """Create the user or refresh its cached username."""

    def get_timezone(self, user_id: str) -> str | None:
        """Return the user's preferred timezone, if set."""

    def set_timezone(self, user_id: str, timezone: str) -> None:
        """Store the user's preferred timezone."""


@dataclass
class UserService:
    """Application service for user records and preferences."""

    repository: UserRepository
    default_timezone: str = DEFAULT_TIMEZONE

    def ensure_user(self, user_id: str, username: str) -> None:
        """Make sure the user exists before it is referenced by a party."""
        self.repository.upsert_user(user_id, username)

    def get_timezone(self, user_id: str) -> str:
        """Return the user timezone or the default if unset."""
        return self.repository.get_timezone(user_id) or self.default_timezone

    def set_timezone(self, user_id: str, timezone: str) -> None:
        self.repository.set_timezone(user_id, timezone)
