"""Discord REST API client adapter."""

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

import httpx

API_BASE = "https://discord.com/api/v10"

_EVENT_PRIVACY_GUILD_ONLY = 2
_EVENT_ENTITY_EXTERNAL = 3


class DiscordClient(Protocol):
    """Interface for the Discord interactions this service needs."""

    async def post_message(self, channel_id: str, payload: dict) -> str:
        """Post a message to a channel and return the new message id."""

    async def edit_message(self, channel_id: str, message_id: str, payload: dict) -> None:
        """Replace the content of an existing message."""

    async def send_direct_message(self, user_id: str, text: str) -> None:
        """Send a direct message to a user."""

    async def create_scheduled_event(  # noqa: PLR0913
        self,
        guild_id: str,
        name: str,
        start: datetime,
        end: datetime,
        location: str,
    ) -> str | None:
        """Create a guild scheduled event and return its id."""

    async def update_scheduled_event(
        self,
        guild_id: str,
        event_id: str,
        name: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> None:
        """Update a guild scheduled event."""

    async def delete_scheduled_event(self, guild_id: str, event_id: str) -> None:
        """Delete a guild scheduled event."""


@dataclass
class HttpxDiscordClient:
    """Discord client implemented with httpx."""

    bot_token: str
    http_client: httpx.AsyncClient

    @classmethod
    def create(cls, bot_token: str) -> "HttpxDiscordClient":
        """Create a Discord client with a managed httpx session."""
        return cls(bot_token=bot_token, http_client=httpx.AsyncClient())

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bot {self.bot_token}"}

    async def _request(
        self, method: str, path: str, payload: dict | None = None
    ) -> httpx.Response:
        response = await self.http_client.request(
            method,
            f"{API_BASE}{path}",
            headers=self._headers(),
            json=payload,
            timeout=10,
        )
        response.raise_for_status()
        return response

    async def post_message(self, channel_id: str, payload: dict) -> str:
        """Post a message and return its id."""
        response = await self._request(
            "POST", f"/channels/{channel_id}/messages", payload
        )
        return str(response.json()["id"])

    async def edit_message(self, channel_id: str, message_id: str, payload: dict) -> None:
        """Edit a message in place."""
        await self._request(
            "PATCH", f"/channels/{channel_id}/messages/{message_id}", payload
        )

    async def send_direct_message(self, user_id: str, text: str) -> None:
        """Open (or reuse) the DM channel with a user and post to it."""
        response = await self._request(
            "POST", "/users/@me/channels", {"recipient_id": user_id}
        )
        dm_channel_id = str(response.json()["id"])
        await self._request(
            "POST", f"/channels/{dm_channel_id}/messages", {"content": text}
        )

    async def create_scheduled_event(  # noqa: PLR0913
        self,
        guild_id: str,
        name: str,
        start: datetime,
        end: datetime,
        location: str,
    ) -> str | None:
        """Create an external guild scheduled event."""
        payload = {
            "name": name,
            "privacy_level": _EVENT_PRIVACY_GUILD_ONLY,
            "entity_type": _EVENT_ENTITY_EXTERNAL,
            "scheduled_start_time": start.isoformat(),
            "scheduled_end_time": end.isoformat(),
            "entity_metadata": {"location": location},
        }
        response = await self._request(
            "POST", f"/guilds/{guild_id}/scheduled-events", payload
        )
        event_id = response.json().get("id")
        return str(event_id) if event_id else None

    async def update_scheduled_event(
        self,
        guild_id: str,
        event_id: str,
        name: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> None:
        """Patch the provided fields of a scheduled event."""
        payload: dict[str, object] = {}
        if name is not None:
            payload["name"] = name
        if start is not None:
            payload["scheduled_start_time"] = start.isoformat()
        if end is not None:
            payload["scheduled_end_time"] = end.isoformat()
        if not payload:
            return
        await self._request(
            "PATCH", f"/guilds/{guild_id}/scheduled-events/{event_id}", payload
        )

    async def delete_scheduled_event(self, guild_id: str, event_id: str) -> None:
        """Delete a scheduled event."""
        await self._request(
            "DELETE", f"/guilds/{guild_id}/scheduled-events/{event_id}"
        )

    async def close(self) -> None:
        """Close the underlying HTTP client session."""
        await self.http_client.aclose()
