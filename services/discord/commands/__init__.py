"""
Discord Command Package

This package centralizes registration for all Discord command surfaces.

Command categories:
- lobby  → /lfg and lobby card buttons
- admin  → administrator-only setup, status and settings

IMPORTANT DESIGN RULES:
- No command registration on import
- No Discord client ownership
- Explicit setup() calls only
"""

from __future__ import annotations

from discord.ext import commands

from shared.logging.logger import get_logger

# Sub-command modules (registration-only)
from services.discord.commands import admin_commands
from services.discord.commands import lobby_commands
from services.discord.commands.admin import AdminCommandHandler
from services.discord.commands.lobby import LobbyCommandHandler
from services.discord.permissions import DiscordPermissionResolver

log = get_logger("discord.commands")


def setup(
    bot: commands.Bot,
    *,
    lobby_handler: LobbyCommandHandler,
    admin_handler: AdminCommandHandler,
    permissions: DiscordPermissionResolver,
):
    """
    Register all Discord command surfaces.

    Called exactly once by the Discord client during startup.
    """

    # --------------------------------------------------
    # Lobby commands
    # --------------------------------------------------
    lobby_commands.setup(bot, handler=lobby_handler)

    # --------------------------------------------------
    # Admin-level commands
    # --------------------------------------------------
    admin_commands.setup(bot, handler=admin_handler, permissions=permissions)

    log.info("Discord command surfaces initialized")
