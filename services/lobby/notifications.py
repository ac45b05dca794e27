"""
Fill notifications

Direct-message text sent to every participant when a lobby fills.
"""

from __future__ import annotations

from typing import Optional, Protocol, Sequence

from services.lobby.models import (
    CATEGORY_LEAGUE,
    LobbyParticipant,
    LobbyPost,
    category_display,
    category_emoji,
)

CONVOKE_SITE_URL = "https://convoke.games"
LEAGUE_LOG_URL = "https://app.cpdh.guide"


class DirectNotifier(Protocol):
    async def send(self, user_id: str, content: str) -> bool:
        ...


def player_list(participants: Sequence[LobbyParticipant]) -> str:
    return "\n".join(
        f"• **{player.username}**{' *(host)*' if i == 0 else ''}"
        for i, player in enumerate(participants)
    )


def build_fill_message(
    post: LobbyPost,
    participants: Sequence[LobbyParticipant],
    room_url: Optional[str],
) -> str:
    """
    Compose the fill DM: roster, notes, then either the room link or
    the manual fallback naming the host.
    """
    emoji = category_emoji(post.category)
    display = category_display(post.category)

    parts = [
        f"{emoji} **Your {display} game is ready!** (LFG #{post.post_id})\n\n",
        f"**Players:**\n{player_list(participants)}\n\n",
    ]

    if post.note:
        parts.append(f"📝 **Notes:** {post.note}\n\n")

    if room_url:
        parts.append(
            f"🎮 **Join your game on Convoke:**\n{room_url}\n\n"
            "Click the link above, log in to Convoke, and you'll be placed in your "
            "private 4-player PDH room with 30 starting life.\n"
        )
    else:
        host = participants[0].username if participants else post.creator_name
        parts.append(
            "⚠️ *Automatic room creation failed. Please create a room manually:*\n"
            f"1. Go to **[Convoke Games]({CONVOKE_SITE_URL})** and log in\n"
            f"2. **{host}** (host): Create a new room and share the link\n"
            "3. Everyone else: Join when the host shares the link\n"
        )

    if post.category == CATEGORY_LEAGUE:
        parts.append(
            "\n🏆 **Wanderer's League Reminder:**\n"
            f"Don't forget to log your game results at **[cPDH Guide]({LEAGUE_LOG_URL})**!\n"
        )

    parts.append("\n*Have a great game! 🎉*")
    return "".join(parts)
