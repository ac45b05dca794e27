"""
Discord Admin Commands

Administrator-only command handlers for the bridge.

Responsibilities:
- Bind this server's news / lfg / discussion channels (+ notify roles)
- Report bridge status
- Change runtime-tunable settings
- Pin the LFG explanation (owner only)

IMPORTANT CONSTRAINTS:
- This module MUST NOT register commands on import
- This module MUST NOT perform permission checks directly
- All Discord objects (Guild, Channel, Role) must be passed in externally
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

import discord

from shared.config.bridge import PURPOSE_LFG, PURPOSES, purpose_label
from shared.logging.logger import get_logger
from services.bridge.registry import ChannelBinding, CommunityBinding, DestinationRegistry
from services.bridge.webhooks import WebhookProvisioner
from services.discord.embeds import PURPOSE_ICONS, lfg_explanation_embed, status_embed
from services.lobby.coordinator import LobbyCoordinator

log = get_logger("discord.commands.admin")

SETTING_LINKS = "links"
SETTING_LFG_EXPIRY = "lfg-expiry"
PIN_SCOPE_LFG = "lfg"
PIN_SCOPE_LFG_ALL = "lfg-all"


class AdminCommandHandler:
    """
    Declarative handler for admin-level Discord commands.

    This class does NOT register commands.
    It provides callable handlers to be wired by the registration layer.
    """

    def __init__(
        self,
        *,
        registry: DestinationRegistry,
        provisioner: WebhookProvisioner,
        coordinator: Optional[LobbyCoordinator] = None,
        version: Optional[str] = None,
    ):
        self._registry = registry
        self._provisioner = provisioner
        self._coordinator = coordinator
        self._version = version

    # --------------------------------------------------
    # /pdh-setup
    # --------------------------------------------------

    async def cmd_setup(
        self,
        *,
        guild: Any,
        bot_user: Any,
        channels: Mapping[str, Any],
        roles: Optional[Mapping[str, Any]] = None,
    ) -> str:
        """
        Bind channels for this guild, provisioning a webhook on each.
        """
        roles = roles or {}
        bound: Dict[str, ChannelBinding] = {}
        lines = [f"✅ **{guild.name}** is now part of the PDH bridge!\n"]

        for purpose in PURPOSES:
            channel = channels.get(purpose)
            role = roles.get(purpose)
            if channel is None:
                continue

            webhook_url = await self._provisioner.ensure_endpoint(channel, bot_user)
            bound[purpose] = ChannelBinding(
                channel_id=str(channel.id),
                webhook_url=webhook_url,
                role_id=str(role.id) if role is not None else None,
            )
            status = "✅" if webhook_url else "❌ webhook failed"
            lines.append(f"{PURPOSE_ICONS[purpose]} {purpose_label(purpose)}: {channel.mention} {status}")

        self._registry.set_binding(
            CommunityBinding(
                community_id=str(guild.id),
                name=guild.name,
                channels=bound,
            )
        )

        for purpose in PURPOSES:
            role = roles.get(purpose)
            if role is not None and purpose in bound:
                lines.append(f"\n🔔 {purpose_label(purpose)} role: {role.mention}")

        log.info(f"Bridge set up for {guild.name} ({len(bound)} channel(s))")
        return "\n".join(lines)

    # --------------------------------------------------
    # /pdh-status
    # --------------------------------------------------

    def cmd_status(self) -> discord.Embed:
        open_posts = len(self._coordinator.live_posts()) if self._coordinator else 0
        return status_embed(
            self._registry.bindings(),
            filter_links=self._registry.filter_links,
            lfg_expiry_minutes=self._registry.lfg_expiry_minutes,
            open_posts=open_posts,
            version=self._version,
        )

    # --------------------------------------------------
    # /pdh-config
    # --------------------------------------------------

    def cmd_config(self, *, setting: str, value: str) -> str:
        value = (value or "").strip().lower()

        if setting == SETTING_LINKS:
            if value not in ("on", "off"):
                return "Value must be `on` or `off`."
            self._registry.set_filter_links(value == "on")
            return f"✅ Link filtering is now **{value}** in PDH Discussion."

        if setting == SETTING_LFG_EXPIRY:
            try:
                minutes = int(value)
                self._registry.set_lfg_expiry_minutes(minutes)
            except ValueError:
                return "Expiry must be between 5 and 1440 minutes."
            return f"✅ LFG posts now expire after **{minutes} minutes**."

        return "Unknown setting."

    # --------------------------------------------------
    # /pdh-pin
    # --------------------------------------------------

    async def cmd_pin(self, *, bot: discord.Client, guild: Any, scope: str) -> str:
        if scope == PIN_SCOPE_LFG:
            binding = self._registry.binding(guild.id)
            lfg = binding.channel(PURPOSE_LFG) if binding else None
            if lfg is None or not lfg.channel_id:
                return "❌ No LFG channel configured for this server. Run `/pdh-setup` first."
            channel = guild.get_channel(int(lfg.channel_id))
            if channel is None:
                return "❌ LFG channel not found. It may have been deleted."
            if not await self._pin_explanation(channel):
                return f"❌ Failed to pin the LFG explanation in {channel.mention}."
            return f"✅ Pinned LFG explanation in {channel.mention}."

        if scope == PIN_SCOPE_LFG_ALL:
            count = 0
            for binding in self._registry.bindings():
                lfg = binding.channel(PURPOSE_LFG)
                if lfg is None or not lfg.channel_id:
                    continue
                target_guild = bot.get_guild(int(binding.community_id))
                if target_guild is None:
                    continue
                channel = target_guild.get_channel(int(lfg.channel_id))
                if channel is None:
                    continue
                if await self._pin_explanation(channel):
                    count += 1
            return f"✅ Pinned LFG explanation in **{count}** server(s)."

        return "❌ Unknown channel type."

    async def _pin_explanation(self, channel: Any) -> bool:
        try:
            message = await channel.send(embed=lfg_explanation_embed())
            await message.pin()
        except discord.HTTPException as e:
            log.error(f"Failed to pin explanation in #{getattr(channel, 'name', channel)}: {e}")
            return False
        log.info(f"Pinned LFG explanation in #{channel.name} on {channel.guild.name}")
        return True
