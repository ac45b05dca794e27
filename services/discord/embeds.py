from __future__ import annotations

from typing import Iterable

import discord

from shared.config.bridge import PURPOSE_DISCUSSION, PURPOSE_LFG, PURPOSE_NEWS

PURPOSE_ICONS = {
    PURPOSE_NEWS: "📰",
    PURPOSE_LFG: "🎮",
    PURPOSE_DISCUSSION: "💬",
}


def info_embed(title: str, description: str | None = None) -> discord.Embed:
    return discord.Embed(
        title=title,
        description=description,
        color=discord.Color.blurple(),
    )


def status_embed(
    bindings: Iterable,
    *,
    filter_links: bool,
    lfg_expiry_minutes: int,
    open_posts: int,
    version: str | None = None,
) -> discord.Embed:
    bindings = list(bindings)
    embed = info_embed(
        "📊 PDH Bridge Status",
        f"Connected to **{len(bindings)}** server(s)",
    )
    embed.add_field(name="Link Filter", value="🔴 ON" if filter_links else "🟢 OFF", inline=True)
    embed.add_field(name="LFG Expiry", value=f"{lfg_expiry_minutes} min", inline=True)
    embed.add_field(name="Open LFG Posts", value=str(open_posts), inline=True)

    for binding in bindings:
        icons = [
            icon
            for purpose, icon in PURPOSE_ICONS.items()
            if binding.channel(purpose) is not None and binding.channel(purpose).channel_id
        ]
        embed.add_field(
            name=binding.name or binding.community_id,
            value=" ".join(icons) or "No channels",
            inline=True,
        )

    if version:
        embed.set_footer(text=version)
    return embed


def lfg_explanation_embed() -> discord.Embed:
    embed = info_embed(
        "🎮 PDH Looking For Game (LFG)",
        "**Welcome to the PDH LFG channel!**\n\n"
        "This channel connects you with players across all PDH community servers. "
        "When you find a game here, you're matching with the entire PDH network!\n\n"
        "**How it works:**\n"
        "1. Type `/lfg` to create a new game post\n"
        "2. Choose **Wanderer's League** (🏆) or **Non-League** (🎮)\n"
        "3. Add any notes (start time, house rules, etc.)\n"
        "4. Your post appears on every PDH server in the network\n"
        "5. When all 4 seats fill, everyone gets a DM with an "
        "**auto-generated Convoke Games room link**, just click and play!\n\n"
        "**Game Types:**\n"
        "🏆 **PDH — League**: Wanderer's League sanctioned games. When the lobby fills, "
        "you'll also get a reminder to log your game at [cPDH Guide](https://app.cpdh.guide)\n"
        "🎮 **PDH Games**: Casual, non-league games\n\n"
        "**Tips:**\n"
        "• Posts auto-expire if they don't fill\n"
        "• The host can cancel at any time with the Cancel button\n"
        "• You can't join the same game twice\n"
        "• Make sure your DMs are open so the bot can send you the game link!",
    )
    embed.set_footer(text="PDH Bridge Network • LFG System")
    return embed
