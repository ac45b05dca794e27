"""
Discord Admin Slash Command Registration

This module is the thin registration layer that exposes administrator-only
slash commands to Discord and delegates ALL logic to AdminCommandHandler.

Responsibilities:
- Register admin-only slash commands
- Perform permission gating via decorators
- Delegate execution to handler methods
- Perform Discord I/O (responses) ONLY at the boundary
"""

from __future__ import annotations

from typing import Optional

import discord
from discord import app_commands
from discord.ext import commands

from shared.config.bridge import PURPOSE_DISCUSSION, PURPOSE_LFG, PURPOSE_NEWS
from shared.logging.logger import get_logger
from services.discord.commands.admin import (
    PIN_SCOPE_LFG,
    PIN_SCOPE_LFG_ALL,
    SETTING_LFG_EXPIRY,
    SETTING_LINKS,
    AdminCommandHandler,
)
from services.discord.permissions import DiscordPermissionResolver, require_admin, require_owner

log = get_logger("discord.commands.admin.register")


# ==================================================
# Registration Entry Point
# ==================================================

def setup(
    bot: commands.Bot,
    *,
    handler: AdminCommandHandler,
    permissions: DiscordPermissionResolver,
):
    """
    Register all admin-level Discord slash commands.
    """

    # --------------------------------------------------
    # /pdh-setup
    # --------------------------------------------------

    @app_commands.command(
        name="pdh-setup",
        description="Set up this server's bridge channels (Admin only)",
    )
    @app_commands.rename(
        news_channel="news-channel",
        lfg_channel="lfg-channel",
        discussion_channel="discussion-channel",
        news_role="news-role",
        lfg_role="lfg-role",
    )
    @app_commands.describe(
        news_channel="Channel for PDH News",
        lfg_channel="Channel for LFG posts",
        discussion_channel="Channel for cross-server discussion",
        news_role="Role to ping for news (e.g., @news)",
        lfg_role="Role to ping for LFG (e.g., @lfg)",
    )
    @app_commands.guild_only()
    @require_admin(permissions)
    async def pdh_setup(
        interaction: discord.Interaction,
        news_channel: Optional[discord.TextChannel] = None,
        lfg_channel: Optional[discord.TextChannel] = None,
        discussion_channel: Optional[discord.TextChannel] = None,
        news_role: Optional[discord.Role] = None,
        lfg_role: Optional[discord.Role] = None,
    ):
        await interaction.response.defer(ephemeral=True)

        content = await handler.cmd_setup(
            guild=interaction.guild,
            bot_user=interaction.client.user,
            channels={
                PURPOSE_NEWS: news_channel,
                PURPOSE_LFG: lfg_channel,
                PURPOSE_DISCUSSION: discussion_channel,
            },
            roles={
                PURPOSE_NEWS: news_role,
                PURPOSE_LFG: lfg_role,
            },
        )
        log.info(f"{interaction.user} ran /pdh-setup in {interaction.guild.name}")

        await interaction.followup.send(content=content, ephemeral=True)

    # --------------------------------------------------
    # /pdh-status
    # --------------------------------------------------

    @app_commands.command(
        name="pdh-status",
        description="View bridge status and connected servers (Admin only)",
    )
    @require_admin(permissions)
    async def pdh_status(interaction: discord.Interaction):
        await interaction.response.send_message(embed=handler.cmd_status(), ephemeral=True)

    # --------------------------------------------------
    # /pdh-config
    # --------------------------------------------------

    @app_commands.command(
        name="pdh-config",
        description="Change bridge settings (Admin only)",
    )
    @app_commands.describe(setting="Which setting to change", value="New value")
    @app_commands.choices(
        setting=[
            app_commands.Choice(name="Link filter (on/off)", value=SETTING_LINKS),
            app_commands.Choice(name="LFG expiry (minutes)", value=SETTING_LFG_EXPIRY),
        ]
    )
    @require_admin(permissions)
    async def pdh_config(
        interaction: discord.Interaction,
        setting: app_commands.Choice[str],
        value: str,
    ):
        content = handler.cmd_config(setting=setting.value, value=value)
        log.info(f"{interaction.user} ran /pdh-config {setting.value}={value}")
        await interaction.response.send_message(content=content, ephemeral=True)

    # --------------------------------------------------
    # /pdh-pin
    # --------------------------------------------------

    @app_commands.command(
        name="pdh-pin",
        description="Pin an explanation message in a bridge channel (Owner only)",
    )
    @app_commands.describe(channel="Which channel to pin in")
    @app_commands.choices(
        channel=[
            app_commands.Choice(name="LFG (this server)", value=PIN_SCOPE_LFG),
            app_commands.Choice(name="LFG (all servers)", value=PIN_SCOPE_LFG_ALL),
        ]
    )
    @app_commands.guild_only()
    @require_owner(permissions)
    async def pdh_pin(
        interaction: discord.Interaction,
        channel: app_commands.Choice[str],
    ):
        await interaction.response.defer(ephemeral=True)

        content = await handler.cmd_pin(
            bot=interaction.client,
            guild=interaction.guild,
            scope=channel.value,
        )
        await interaction.followup.send(content=content, ephemeral=True)

    # --------------------------------------------------
    # Register Commands
    # --------------------------------------------------

    bot.tree.add_command(pdh_setup)
    bot.tree.add_command(pdh_status)
    bot.tree.add_command(pdh_config)
    bot.tree.add_command(pdh_pin)

    log.info("Discord admin slash commands registered")
