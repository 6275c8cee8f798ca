"""Direct-message fan-out to party members."""

import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass

from party_sessions.adapters.discord_client import DiscordClient

logger = logging.getLogger(__name__)

MessageBuilder = Callable[[str], Awaitable[str]]


@dataclass
class NotificationService:
    """Sends one direct message per recipient; failures never propagate."""

    discord_client: DiscordClient

    async def notify_party(
        self, user_ids: Iterable[str], build_message: MessageBuilder
    ) -> int:
        """Message each user and return how many deliveries succeeded."""
        delivered = 0
        for user_id in user_ids:
            try:
                text = await build_message(user_id)
                await self.discord_client.send_direct_message(user_id, text)
            except Exception:
                logger.exception("Failed to notify user %s", user_id)
                continue
            delivered += 1
        return delivered
