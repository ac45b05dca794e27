"""
Discord Client (Bridge Runtime)

This module owns the Discord connection and the bridge components that
hang off it.

Responsibilities:
- connect to Discord
- build the registry, endpoint cache, fan-out, relay and lobby coordinator
- verify webhooks and sync slash commands on ready
- route inbound messages to the relay and card buttons to the lobby
- expose a clean async run() / shutdown() contract

IMPORTANT:
- This client MUST be controlled by BridgeSupervisor
- This client MUST NOT create its own event loop
- The expiry sweep is owned by the supervisor, not the client
"""

from __future__ import annotations

import asyncio
from typing import Optional

import discord
from discord import app_commands
from discord.ext import commands

from dotenv import load_dotenv

from shared.config.settings import BridgeSettings, load_settings
from shared.logging.logger import get_logger

from services.bridge.fanout import DeliveryFanOut
from services.bridge.ledger import MessageLedger
from services.bridge.registry import DestinationRegistry
from services.bridge.relay import BridgeRelay
from services.bridge.webhooks import EndpointCache, WebhookProvisioner
from services.convoke.client import ConvokeClient
from services.lobby.coordinator import LobbyCoordinator
from services.lobby.storage import LobbyStore
from services.discord.notifier import DirectNotifier
from services.discord.permissions import DiscordPermissionResolver, NotAuthorized

# Command surfaces (registration only)
from services.discord import commands as command_surfaces
from services.discord.commands.admin import AdminCommandHandler
from services.discord.commands.lobby import LobbyCommandHandler
from services.discord.commands.lobby_commands import dispatch_lobby_button, send_error

log = get_logger("discord.client")


class BridgeClient:
    """
    Thin wrapper around discord.py Bot.

    This class provides:
    - async run() entrypoint
    - async shutdown()
    - lifecycle event logging
    - command surface wiring
    """

    def __init__(self, settings: Optional[BridgeSettings] = None, *, version: Optional[str] = None):
        load_dotenv()

        self.settings = settings or load_settings()
        if not self.settings.discord_token:
            raise RuntimeError("DISCORD_TOKEN not found in environment")

        log.info(f"Discord bot token present: {bool(self.settings.discord_token)}")

        self._bot: Optional[commands.Bot] = None
        self._ready_event = asyncio.Event()
        self._version = version

        # --------------------------------------------------
        # Bridge components (constructed once, passed by reference)
        # --------------------------------------------------
        self.registry = DestinationRegistry(
            self.settings.config_path,
            defaults={
                "filter_links": self.settings.filter_links,
                "lfg_expiry_minutes": self.settings.lfg_expiry_minutes,
            },
        )
        self.cache = EndpointCache()
        self.provisioner = WebhookProvisioner(self.cache)
        self.fanout = DeliveryFanOut(self.cache, self.registry)
        self.relay = BridgeRelay(
            registry=self.registry,
            fanout=self.fanout,
            owner_id=self.settings.owner_id,
        )
        self.notifier = DirectNotifier()
        self.permissions = DiscordPermissionResolver(self.settings.owner_id)
        self.coordinator = LobbyCoordinator(
            store=LobbyStore(self.settings.db_path),
            ledger=MessageLedger(self.settings.db_path),
            fanout=self.fanout,
            registry=self.registry,
            rooms=ConvokeClient(api_key=self.settings.convoke_token),
            notifier=self.notifier,
            fill_grace_seconds=self.settings.fill_grace_seconds,
        )
        self.lobby_handler = LobbyCommandHandler(coordinator=self.coordinator)

    # --------------------------------------------------

    def _build_bot(self) -> commands.Bot:
        """
        Construct the discord.py Bot instance.
        """

        intents = discord.Intents.default()
        intents.guilds = True
        intents.messages = True
        intents.message_content = True  # relay needs message bodies

        bot = commands.Bot(
            command_prefix="!",
            intents=intents,
        )

        # Webhook sends carry interactive views only with client state
        self.cache.bind_client(bot)
        self.notifier.bind_client(bot)

        # --------------------------------------------------
        # Command Registration
        # --------------------------------------------------

        command_surfaces.setup(
            bot,
            lobby_handler=self.lobby_handler,
            admin_handler=AdminCommandHandler(
                registry=self.registry,
                provisioner=self.provisioner,
                coordinator=self.coordinator,
                version=self._version,
            ),
            permissions=self.permissions,
        )

        @bot.tree.error
        async def on_app_command_error(
            interaction: discord.Interaction,
            error: app_commands.AppCommandError,
        ):
            if isinstance(error, NotAuthorized):
                content = error.message
            elif isinstance(error, app_commands.CheckFailure):
                content = "You don't have permission to use this command."
            else:
                log.error(f"Slash command failed for {interaction.user}: {error}")
                await send_error(interaction)
                return

            if interaction.response.is_done():
                await interaction.followup.send(content=content, ephemeral=True)
            else:
                await interaction.response.send_message(content=content, ephemeral=True)

        # --------------------------------------------------
        # Lifecycle Events
        # --------------------------------------------------

        @bot.event
        async def on_ready():
            log.info(
                f"Discord connected as {bot.user} "
                f"(id={bot.user.id}) "
                f"guilds={len(bot.guilds)} "
                f"bridged={len(self.registry)}"
            )

            # Self-heal webhooks before any fan-out
            try:
                await self.provisioner.verify_all(bot, self.registry)
            except Exception as e:
                log.error(f"Webhook verification failed: {e}")

            # Sync slash commands
            try:
                await bot.tree.sync()
                log.info("Discord command tree synced")
            except Exception as e:
                log.error(f"Failed to sync Discord commands: {e}")

            self._ready_event.set()

        @bot.event
        async def on_resumed():
            log.info("Discord connection resumed")

        @bot.event
        async def on_disconnect():
            log.warning("Discord connection lost")

        @bot.event
        async def on_message(message: discord.Message):
            try:
                await self.relay.handle_message(message)
            except Exception as e:
                log.error(f"Relay failed for message {message.id}: {e}")

        @bot.event
        async def on_interaction(interaction: discord.Interaction):
            try:
                await dispatch_lobby_button(interaction, self.lobby_handler)
            except Exception as e:
                log.error(f"Lobby interaction failed for {interaction.user}: {e}")
                await send_error(interaction)

        @bot.event
        async def on_guild_join(guild: discord.Guild):
            log.info(
                f"Joined guild: {guild.name} "
                f"(id={guild.id}, members={guild.member_count})"
            )

        @bot.event
        async def on_guild_remove(guild: discord.Guild):
            log.info(
                f"Removed from guild: {guild.name} "
                f"(id={guild.id})"
            )

        return bot

    # --------------------------------------------------

    async def run(self):
        """
        Start the Discord client and block until shutdown.
        """
        if self._bot is not None:
            raise RuntimeError("Discord client already running")

        log.info("Initializing Discord client")

        self._bot = self._build_bot()

        try:
            await self._bot.start(self.settings.discord_token)
        except asyncio.CancelledError:
            log.info("Discord client task cancelled")
            raise
        except Exception as e:
            log.error(f"Discord client crashed: {e}")
            raise
        finally:
            log.info("Discord client stopped")

    async def wait_until_ready(self):
        await self._ready_event.wait()

    # --------------------------------------------------

    async def shutdown(self):
        """
        Gracefully close the Discord connection.
        """
        self.coordinator.shutdown()

        if not self._bot:
            return

        log.info("Closing Discord connection")

        try:
            await self._bot.close()
        except Exception as e:
            log.warning(f"Discord close error ignored: {e}")

        self._bot = None
        self._ready_event.clear()

    # --------------------------------------------------

    @property
    def bot(self) -> Optional[commands.Bot]:
        """
        Expose bot instance (read-only) for supervisor hooks.
        """
        return self._bot
