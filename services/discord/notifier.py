from __future__ import annotations

from typing import Optional

import discord

from shared.logging.logger import get_logger

log = get_logger("discord.notifier")


class DirectNotifier:
    """
    Sends direct messages to users on behalf of the lobby.

    Never raises; a closed inbox or unknown user returns False.
    """

    def __init__(self, client: Optional[discord.Client] = None):
        self._client = client

    def bind_client(self, client: discord.Client) -> None:
        self._client = client

    async def send(self, user_id: str, content: str) -> bool:
        if self._client is None:
            log.warning("Direct notification skipped: Discord client not bound")
            return False

        try:
            user = self._client.get_user(int(user_id))
            if user is None:
                user = await self._client.fetch_user(int(user_id))
            await user.send(content)
        except discord.Forbidden:
            log.info(f"Couldn't DM user {user_id}; DMs may be disabled")
            return False
        except discord.HTTPException as e:
            log.warning(f"Failed to DM user {user_id}: {e}")
            return False

        return True
