"""
Discord LFG Command Handler

Declarative handler for the lobby surfaces (/lfg, notes modal, and the
Join / Leave / Cancel buttons on every lobby card).

IMPORTANT CONSTRAINTS:
- This module MUST NOT register commands on import
- This module MUST NOT perform Discord I/O; it returns reply text
- All lobby state changes go through LobbyCoordinator
"""

from __future__ import annotations

from typing import Optional

from shared.logging.logger import get_logger
from services.lobby.coordinator import LobbyCoordinator
from services.lobby.models import (
    LOBBY_CATEGORIES,
    LobbyReason,
    LobbyResult,
    category_display,
    category_emoji,
)

log = get_logger("discord.commands.lobby")

REJECTION_MESSAGES = {
    LobbyReason.ALREADY_JOINED: "You're already in this game!",
    LobbyReason.LOBBY_FULL: "This game is already full.",
    LobbyReason.NOT_IN_GAME: "You're not in this game.",
    LobbyReason.POST_NOT_FOUND: "This LFG post has expired or been cancelled.",
    LobbyReason.NOT_HOST: "Only the post creator can cancel this LFG.",
    LobbyReason.HOST_CANNOT_LEAVE: "As the host, you can't leave. Use **Cancel** to remove the post.",
    LobbyReason.LOBBY_LOCKED: "This game is full and locked in. Ask the host to cancel if plans changed.",
}


def outcome_message(action: str, result: LobbyResult) -> str:
    """
    Short, user-facing text for a lobby outcome.
    """
    if not result:
        return REJECTION_MESSAGES.get(result.reason, "Something went wrong. Please try again.")

    if action == "join":
        return f"🎮 You're in! ({result.seats}/{result.limit} players)"
    if action == "leave":
        return f"👋 You've left the lobby. ({result.seats}/{result.limit} players)"
    if action == "cancel":
        return "❌ LFG post cancelled and removed from all servers."
    return "✅ Done."


class LobbyCommandHandler:
    def __init__(self, *, coordinator: LobbyCoordinator):
        self._coordinator = coordinator

    @property
    def coordinator(self) -> LobbyCoordinator:
        return self._coordinator

    # --------------------------------------------------
    # Post creation
    # --------------------------------------------------

    async def cmd_create(
        self,
        *,
        user_id: int,
        user_name: str,
        category: str,
        note: str = "",
        avatar_url: Optional[str] = None,
    ) -> str:
        if category not in LOBBY_CATEGORIES:
            return "Unknown game type."

        post_id = await self._coordinator.create_post(
            creator_id=str(user_id),
            creator_name=user_name,
            category=category,
            note=note,
            creator_avatar=avatar_url,
        )
        log.info(f"{user_name} created LFG post #{post_id} ({category})")
        return (
            f"{category_emoji(category)} Your **{category_display(category)}** post "
            "has been broadcast to all PDH servers!"
        )

    # --------------------------------------------------
    # Card buttons
    # --------------------------------------------------

    async def cmd_button(
        self,
        *,
        action: str,
        post_id: int,
        user_id: int,
        user_name: str,
    ) -> str:
        if action == "join":
            result = await self._coordinator.join(post_id, str(user_id), user_name)
        elif action == "leave":
            result = await self._coordinator.leave(post_id, str(user_id))
        elif action == "cancel":
            result = await self._coordinator.cancel(post_id, str(user_id))
        else:
            log.warning(f"Unknown lobby action '{action}' for post #{post_id}")
            return "Unknown action."

        return outcome_message(action, result)
