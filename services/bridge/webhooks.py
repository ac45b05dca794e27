"""
Webhook Endpoint Lifecycle (Self-Healing)

Responsibilities:
- cache webhook clients per webhook URL
- ensure a bridge-owned webhook exists on a bound channel
- health-check every binding and repair the registry when a
  webhook has changed

IMPORTANT:
- Provisioning never raises; failures return None and are logged
- Stale registry entries are left in place for the next pass
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional

import discord

from shared.config.bridge import PURPOSES
from shared.logging.logger import get_logger
from services.bridge.registry import DestinationRegistry

log = get_logger("bridge.webhooks")

WEBHOOK_NAME = "PDH Bridge"
WEBHOOK_REASON = "PDH Bridge Bot - cross-server relay webhook"


class EndpointCache:
    """
    Webhook clients keyed by webhook URL.

    Population for the same URL converges on a single instance;
    recreating a wrapper is cheap so a lost race is harmless.
    """

    def __init__(
        self,
        client: Optional[discord.Client] = None,
        *,
        factory: Optional[Callable[[str], Any]] = None,
    ):
        self._client = client
        self._factory = factory or self._default_factory
        self._webhooks: Dict[str, Any] = {}

    def _default_factory(self, url: str) -> discord.Webhook:
        if self._client is not None:
            return discord.Webhook.from_url(url, client=self._client)
        return discord.Webhook.from_url(url)

    def bind_client(self, client: discord.Client) -> None:
        """Attach the bot so webhook messages can carry interactive views."""
        self._client = client
        self._webhooks.clear()

    def get(self, url: str) -> Any:
        cached = self._webhooks.get(url)
        if cached is not None:
            return cached
        return self._webhooks.setdefault(url, self._factory(url))

    def forget(self, url: str) -> None:
        self._webhooks.pop(url, None)

    def __contains__(self, url: str) -> bool:
        return url in self._webhooks

    def __len__(self) -> int:
        return len(self._webhooks)


class WebhookProvisioner:
    """
    Ensures bridge-owned webhooks exist on bound channels.
    """

    def __init__(self, cache: Optional[EndpointCache] = None):
        self._cache = cache

    async def ensure_endpoint(self, channel: Any, owner: Any) -> Optional[str]:
        """
        Return the URL of a webhook owned by `owner` on `channel`,
        creating one when none exists. Returns None on failure.
        """
        channel_name = getattr(channel, "name", channel)
        try:
            webhooks = await channel.webhooks()
            for webhook in webhooks:
                user = getattr(webhook, "user", None)
                if user is not None and user.id == owner.id and webhook.token:
                    return webhook.url

            webhook = await channel.create_webhook(
                name=WEBHOOK_NAME,
                reason=WEBHOOK_REASON,
            )
        except discord.Forbidden:
            log.warning(f"Missing Manage Webhooks permission in #{channel_name}")
            return None
        except discord.HTTPException as e:
            log.error(f"Failed to ensure webhook in #{channel_name}: {e}")
            return None

        guild = getattr(channel, "guild", None)
        log.info(
            f"Created webhook in #{channel_name} "
            f"on {getattr(guild, 'name', 'unknown guild')}"
        )
        return webhook.url

    async def verify_all(self, bot: discord.Client, registry: DestinationRegistry) -> int:
        """
        Health-check every bound channel; returns the number of repairs.
        """
        log.info("Verifying bridge webhooks")
        fixed = 0

        for binding in registry.bindings():
            guild = bot.get_guild(int(binding.community_id))
            if guild is None:
                log.warning(f"Not in guild {binding.name or binding.community_id}")
                continue

            for purpose in PURPOSES:
                channel_binding = binding.channel(purpose)
                if channel_binding is None or not channel_binding.channel_id:
                    continue

                channel = guild.get_channel(int(channel_binding.channel_id))
                if channel is None:
                    log.warning(f"Channel for {purpose} not found in {guild.name}")
                    continue

                url = await self.ensure_endpoint(channel, bot.user)
                if url is None:
                    log.warning(
                        f"Webhook provisioning failed for {purpose} in {guild.name}; "
                        "keeping existing entry until the next pass"
                    )
                    continue

                previous = channel_binding.webhook_url
                if registry.update_endpoint(binding.community_id, purpose, url):
                    fixed += 1
                    if previous and self._cache is not None:
                        self._cache.forget(previous)
                    log.info(f"Fixed webhook for {purpose} in {guild.name}")

        if fixed:
            log.info(f"Repaired {fixed} webhook(s)")
        else:
            log.info("All webhooks verified")
        return fixed
