"""
Discord LFG Slash Command Registration

Thin registration layer for the lobby flow:

  /lfg -> game type buttons -> notes modal -> broadcast
  lobby card buttons (lfg_join_<id>, lfg_leave_<id>, lfg_cancel_<id>)

All logic is delegated to LobbyCommandHandler; Discord I/O happens
here only.
"""

from __future__ import annotations

import discord
from discord import app_commands
from discord.ext import commands

from shared.logging.logger import get_logger
from services.discord.commands.lobby import LobbyCommandHandler
from services.lobby.cards import MODAL_PREFIX, TYPE_PREFIX, parse_lobby_custom_id
from services.lobby.models import CATEGORY_CASUAL, CATEGORY_LEAGUE, category_display

log = get_logger("discord.commands.lobby.register")

NOTES_MAX_LENGTH = 500


# ==================================================
# UI components
# ==================================================

class LobbyNotesModal(discord.ui.Modal):
    notes = discord.ui.TextInput(
        label="Notes (start time, house rules, etc.)",
        style=discord.TextStyle.paragraph,
        placeholder="e.g., Starting in 15 minutes, no infinites, casual power level",
        max_length=NOTES_MAX_LENGTH,
        required=False,
    )

    def __init__(self, *, category: str, handler: LobbyCommandHandler):
        super().__init__(
            title=f"Create LFG — {category_display(category)}",
            custom_id=f"{MODAL_PREFIX}{category}",
        )
        self._category = category
        self._handler = handler

    async def on_submit(self, interaction: discord.Interaction):
        await interaction.response.defer(ephemeral=True, thinking=True)

        message = await self._handler.cmd_create(
            user_id=interaction.user.id,
            user_name=interaction.user.display_name,
            category=self._category,
            note=self.notes.value or "",
            avatar_url=str(interaction.user.display_avatar.url),
        )
        await interaction.followup.send(content=message, ephemeral=True)

    async def on_error(self, interaction: discord.Interaction, error: Exception):
        log.error(f"LFG modal failed for {interaction.user}: {error}")
        await send_error(interaction)


class LobbyTypeView(discord.ui.View):
    def __init__(self, *, handler: LobbyCommandHandler):
        super().__init__(timeout=300)
        self._handler = handler

    @discord.ui.button(
        label="Wanderer's League",
        style=discord.ButtonStyle.primary,
        emoji="🏆",
        custom_id=f"{TYPE_PREFIX}{CATEGORY_LEAGUE}",
    )
    async def league(self, interaction: discord.Interaction, button: discord.ui.Button):
        await interaction.response.send_modal(
            LobbyNotesModal(category=CATEGORY_LEAGUE, handler=self._handler)
        )

    @discord.ui.button(
        label="Non-League Game",
        style=discord.ButtonStyle.success,
        emoji="🎮",
        custom_id=f"{TYPE_PREFIX}{CATEGORY_CASUAL}",
    )
    async def casual(self, interaction: discord.Interaction, button: discord.ui.Button):
        await interaction.response.send_modal(
            LobbyNotesModal(category=CATEGORY_CASUAL, handler=self._handler)
        )


async def send_error(interaction: discord.Interaction) -> None:
    content = "Something went wrong. Please try again."
    try:
        if interaction.response.is_done():
            await interaction.followup.send(content=content, ephemeral=True)
        else:
            await interaction.response.send_message(content=content, ephemeral=True)
    except discord.HTTPException as e:
        log.warning(f"Failed to report interaction error: {e}")


# ==================================================
# Card button dispatch
# ==================================================

async def dispatch_lobby_button(
    interaction: discord.Interaction,
    handler: LobbyCommandHandler,
) -> bool:
    """
    Route a lobby card button click; returns False if it is not one.
    """
    if interaction.type != discord.InteractionType.component:
        return False

    custom_id = (interaction.data or {}).get("custom_id", "")
    parsed = parse_lobby_custom_id(custom_id)
    if parsed is None:
        return False

    action, post_id = parsed
    await interaction.response.defer(ephemeral=True, thinking=True)

    message = await handler.cmd_button(
        action=action,
        post_id=post_id,
        user_id=interaction.user.id,
        user_name=interaction.user.display_name,
    )
    await interaction.followup.send(content=message, ephemeral=True)
    return True


# ==================================================
# Registration Entry Point
# ==================================================

def setup(bot: commands.Bot, *, handler: LobbyCommandHandler):
    # --------------------------------------------------
    # /lfg
    # --------------------------------------------------

    @app_commands.command(
        name="lfg",
        description="Create a PDH Looking For Game post across all servers",
    )
    @app_commands.guild_only()
    async def lfg(interaction: discord.Interaction):
        await interaction.response.send_message(
            content="**What type of PDH game are you looking for?**",
            view=LobbyTypeView(handler=handler),
            ephemeral=True,
        )

    bot.tree.add_command(lfg)

    log.info("Discord LFG slash commands registered")
