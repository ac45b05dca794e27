"""
Discord Permissions Module

Binary authorization for bridge administration.

Policy:
- owner          the configured OWNER_ID
- authorized     owner OR a guild member holding Administrator

IMPORTANT CONSTRAINTS:
- This module MUST NOT register Discord commands
- This module MUST NOT perform Discord API calls directly
- All Discord objects (Interaction, Member) must be passed in externally
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import discord
from discord import app_commands

from shared.logging.logger import get_logger

log = get_logger("discord.permissions")


class PermissionResult:
    """
    Structured permission check result.
    """

    def __init__(
        self,
        allowed: bool,
        *,
        reason: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        self.allowed = allowed
        self.reason = reason
        self.metadata = metadata or {}

    def __bool__(self) -> bool:
        return self.allowed


class NotAuthorized(app_commands.CheckFailure):
    """Raised by command checks; carries the user-facing reason."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class DiscordPermissionResolver:
    def __init__(self, owner_id: Optional[str] = None):
        self._owner_id = str(owner_id) if owner_id else None

    @property
    def owner_id(self) -> Optional[str]:
        return self._owner_id

    # --------------------------------------------------
    # Core checks
    # --------------------------------------------------

    def is_owner(self, user_id: int | str) -> PermissionResult:
        if self._owner_id is not None and str(user_id) == self._owner_id:
            return PermissionResult(True, metadata={"role": "owner"})
        return PermissionResult(False, reason="Only the bot owner can use this command.")

    def is_authorized(self, user: Any) -> PermissionResult:
        """
        Owner, or a guild member with the Administrator permission.
        """
        if self.is_owner(user.id):
            return PermissionResult(True, metadata={"role": "owner"})

        guild_permissions = getattr(user, "guild_permissions", None)
        if guild_permissions is not None and guild_permissions.administrator:
            return PermissionResult(True, metadata={"role": "administrator"})

        log.debug(f"Permission denied for user {user.id}")
        return PermissionResult(False, reason="You don't have permission to use this command.")


# ==================================================
# Command decorators
# ==================================================

def require_admin(permissions: DiscordPermissionResolver):
    """
    app_commands check: owner or guild Administrator.
    """

    async def predicate(interaction: discord.Interaction) -> bool:
        result = permissions.is_authorized(interaction.user)
        if not result:
            raise NotAuthorized(result.reason)
        return True

    return app_commands.check(predicate)


def require_owner(permissions: DiscordPermissionResolver):
    """
    app_commands check: bot owner only.
    """

    async def predicate(interaction: discord.Interaction) -> bool:
        result = permissions.is_owner(interaction.user.id)
        if not result:
            raise NotAuthorized(result.reason)
        return True

    return app_commands.check(predicate)
