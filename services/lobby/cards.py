"""
Lobby card rendering

Builds the public lobby card (embed + controls) that is broadcast to
every community's LFG channel and replayed on roster changes.
"""

from __future__ import annotations

from typing import Optional, Sequence, Tuple

import discord

from services.lobby.models import (
    LobbyParticipant,
    LobbyPost,
    category_color,
    category_display,
    category_emoji,
)

LOBBY_SENDER_LABEL = "PDH LFG"

JOIN_PREFIX = "lfg_join_"
LEAVE_PREFIX = "lfg_leave_"
CANCEL_PREFIX = "lfg_cancel_"
TYPE_PREFIX = "lfg_type_"
MODAL_PREFIX = "lfg_modal_"

LOBBY_ACTIONS = ("join", "leave", "cancel")


def roster_text(post: LobbyPost, participants: Sequence[LobbyParticipant]) -> str:
    lines = []
    if participants:
        for i, player in enumerate(participants):
            tag = " *(host)*" if i == 0 else ""
            lines.append(f"{i + 1}. {player.username}{tag}")
    else:
        lines.append(f"1. {post.creator_name} *(host)*")

    for i in range(len(lines), post.seat_limit):
        lines.append(f"{i + 1}. *(open)*")
    return "\n".join(lines)


def build_lobby_embed(
    post: LobbyPost,
    participants: Sequence[LobbyParticipant],
    *,
    thumbnail_url: Optional[str] = None,
) -> discord.Embed:
    embed = discord.Embed(
        title=f"{category_emoji(post.category)} {category_display(post.category)} — Looking for Players!",
        color=category_color(post.category),
        timestamp=post.expires_at_dt,
    )

    if post.note and post.note.strip():
        embed.description = f"📝 {post.note.strip()}"

    embed.add_field(name="Players", value=roster_text(post, participants), inline=False)
    embed.set_footer(text=f"LFG #{post.post_id} • Expires")

    if thumbnail_url:
        embed.set_thumbnail(url=thumbnail_url)

    return embed


def build_lobby_view(post: LobbyPost) -> Optional[discord.ui.View]:
    """
    Controls for a lobby card; a terminal post exposes none.

    Button clicks are routed by custom id in the client, so the view
    carries no callbacks and survives restarts.
    """
    if post.terminal:
        return None

    view = discord.ui.View(timeout=None)
    view.add_item(
        discord.ui.Button(
            label=f"Join ({post.seats}/{post.seat_limit})",
            style=discord.ButtonStyle.success,
            emoji="🎮",
            custom_id=f"{JOIN_PREFIX}{post.post_id}",
            disabled=post.is_full,
        )
    )
    view.add_item(
        discord.ui.Button(
            label="Leave",
            style=discord.ButtonStyle.secondary,
            custom_id=f"{LEAVE_PREFIX}{post.post_id}",
        )
    )
    view.add_item(
        discord.ui.Button(
            label="Cancel",
            style=discord.ButtonStyle.danger,
            custom_id=f"{CANCEL_PREFIX}{post.post_id}",
        )
    )
    return view


def parse_lobby_custom_id(custom_id: str) -> Optional[Tuple[str, int]]:
    """
    "lfg_join_42" -> ("join", 42); anything else -> None.
    """
    parts = (custom_id or "").split("_")
    if len(parts) != 3 or parts[0] != "lfg" or parts[1] not in LOBBY_ACTIONS:
        return None
    try:
        return parts[1], int(parts[2])
    except ValueError:
        return None
