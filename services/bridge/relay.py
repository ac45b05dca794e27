"""
Bridge relay routing

Decides whether an inbound message in a bridged channel is relayed,
and to whom, then hands it to the fan-out.

Routing:
- news        owner only, with the channel's notify role pinged
- lfg         owner announcements only; players use /lfg
- discussion  everyone, after the content filter
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Protocol

import discord

from shared.config.bridge import PURPOSE_DISCUSSION, PURPOSE_LFG, PURPOSE_NEWS
from shared.logging.logger import get_logger
from services.bridge.fanout import (
    DeliveryFanOut,
    DeliveryOutcome,
    RelayPayload,
    SenderIdentity,
)
from services.bridge.registry import DestinationRegistry

log = get_logger("bridge.relay")

LINK_PATTERN = re.compile(r"https?://\S+", re.IGNORECASE)
LINK_PLACEHOLDER = "[link removed]"
SYSTEM_SENDER_LABEL = "PDH Bridge"


@dataclass
class FilterVerdict:
    allowed: bool
    content: Optional[str] = None


class ContentFilter(Protocol):
    def check(self, content: str) -> FilterVerdict:
        ...


class LinkFilter:
    """
    Replaces links with a placeholder while link filtering is enabled.
    """

    def __init__(self, enabled: Callable[[], bool]):
        self._enabled = enabled

    def check(self, content: str) -> FilterVerdict:
        if not content or not self._enabled():
            return FilterVerdict(allowed=True, content=content)
        if not LINK_PATTERN.search(content):
            return FilterVerdict(allowed=True, content=content)
        return FilterVerdict(allowed=True, content=LINK_PATTERN.sub(LINK_PLACEHOLDER, content))


class BridgeRelay:
    def __init__(
        self,
        *,
        registry: DestinationRegistry,
        fanout: DeliveryFanOut,
        owner_id: Optional[str] = None,
        content_filter: Optional[ContentFilter] = None,
    ):
        self._registry = registry
        self._fanout = fanout
        self._owner_id = str(owner_id) if owner_id else None
        self._filter = content_filter or LinkFilter(lambda: self._registry.filter_links)

    def _is_owner(self, user_id: int | str) -> bool:
        return self._owner_id is not None and str(user_id) == self._owner_id

    # ------------------------------------------------------------
    # Inbound messages
    # ------------------------------------------------------------

    async def handle_message(self, message: discord.Message) -> List[DeliveryOutcome]:
        if message.author.bot or message.webhook_id:
            return []
        if message.guild is None:
            return []

        purpose = self._registry.identify_channel(message.guild.id, message.channel.id)
        if purpose is None:
            return []

        content_override = None
        ping_role = False

        if purpose == PURPOSE_NEWS:
            if not self._is_owner(message.author.id):
                return []
            ping_role = True
        elif purpose == PURPOSE_LFG:
            if not self._is_owner(message.author.id):
                return []
        elif purpose == PURPOSE_DISCUSSION:
            verdict = self._filter.check(message.content)
            if not verdict.allowed:
                log.info(f"Message from {message.author} in guild {message.guild.id} blocked by filter")
                return []
            content_override = verdict.content

        payload = await RelayPayload.from_message(message, content_override=content_override)
        if payload.empty:
            return []

        identity = SenderIdentity(
            name=message.author.display_name,
            avatar_url=str(message.author.display_avatar.url),
        )
        return await self.relay(
            payload,
            purpose,
            identity,
            exclude=(message.guild.id,),
            ping_role=ping_role,
        )

    # ------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------

    async def relay(
        self,
        payload: RelayPayload,
        purpose: str,
        identity: SenderIdentity,
        *,
        exclude: Iterable[str | int] = (),
        ping_role: bool = False,
    ) -> List[DeliveryOutcome]:
        targets = self._registry.resolve_targets(purpose, exclude=exclude)
        if not targets:
            return []
        return await self._fanout.relay_as_user(payload, targets, identity, ping_role=ping_role)

    async def broadcast(
        self,
        payload: RelayPayload,
        purpose: str,
        *,
        sender_label: str = SYSTEM_SENDER_LABEL,
        exclude: Iterable[str | int] = (),
        ping_role: bool = False,
        view: Optional[discord.ui.View] = None,
    ) -> List[DeliveryOutcome]:
        targets = self._registry.resolve_targets(purpose, exclude=exclude)
        if not targets:
            return []
        return await self._fanout.broadcast_as_system(
            payload,
            targets,
            sender_label,
            ping_role=ping_role,
            view=view,
        )
