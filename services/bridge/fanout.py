"""
Delivery Fan-Out

Dispatches one logical payload to every delivery target concurrently
and independently, returning a tagged outcome per target.

Responsibilities:
- relay user-authored messages under the author's name + avatar
- broadcast system-authored content (lobby cards, announcements)
- replay edits / deletes over previously delivered copies

IMPORTANT:
- One target failing never blocks or aborts delivery to the others
- Failures are logged and never retried
- Mentions are suppressed unless a role ping is explicitly requested
"""

from __future__ import annotations

import asyncio
import io
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional, Sequence

import discord

from shared.logging.logger import get_logger
from services.bridge.registry import DeliveryTarget, DestinationRegistry
from services.bridge.webhooks import EndpointCache

log = get_logger("bridge.fanout")

DEFAULT_SEND_TIMEOUT = 15.0
RICH_EMBED_TYPE = "rich"


# ======================================================================
# VALUE TYPES
# ======================================================================

@dataclass(frozen=True)
class AttachmentBlob:
    filename: str
    data: bytes
    spoiler: bool = False

    def to_file(self) -> discord.File:
        # discord.File consumes its buffer, so every target needs its own
        return discord.File(io.BytesIO(self.data), filename=self.filename, spoiler=self.spoiler)


@dataclass
class RelayPayload:
    content: Optional[str] = None
    embeds: List[discord.Embed] = field(default_factory=list)
    attachments: List[AttachmentBlob] = field(default_factory=list)

    @classmethod
    async def from_message(
        cls,
        message: discord.Message,
        *,
        content_override: Optional[str] = None,
    ) -> "RelayPayload":
        """
        Build a relay payload from an inbound message.

        Link-preview embeds are dropped; only rich embeds are forwarded.
        Attachments are downloaded once and re-uploaded per target.
        """
        content = content_override if content_override is not None else message.content

        attachments: List[AttachmentBlob] = []
        for attachment in message.attachments:
            try:
                data = await attachment.read()
            except discord.HTTPException as e:
                log.warning(f"Failed to read attachment {attachment.filename}: {e}")
                continue
            attachments.append(
                AttachmentBlob(
                    filename=attachment.filename,
                    data=data,
                    spoiler=attachment.is_spoiler(),
                )
            )

        embeds = [embed for embed in message.embeds if embed.type == RICH_EMBED_TYPE]

        if message.stickers:
            note = " ".join(f"[Sticker: {sticker.name}]" for sticker in message.stickers)
            content = f"{content or ''}\n{note}".strip()

        return cls(content=content or None, embeds=embeds, attachments=attachments)

    def rich_embeds(self) -> List[discord.Embed]:
        return [embed for embed in self.embeds if embed.type == RICH_EMBED_TYPE]

    @property
    def empty(self) -> bool:
        return not self.content and not self.rich_embeds() and not self.attachments


@dataclass(frozen=True)
class SenderIdentity:
    name: str
    avatar_url: Optional[str] = None


@dataclass
class DeliveryOutcome:
    target: DeliveryTarget
    message_id: Optional[int] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.message_id is not None


def delivered(outcomes: Iterable[DeliveryOutcome]) -> List[DeliveryOutcome]:
    """Return only the successful outcomes."""
    return [outcome for outcome in outcomes if outcome.ok]


# ======================================================================
# FAN-OUT
# ======================================================================

class DeliveryFanOut:
    """
    Concurrent webhook delivery across every bridged community.
    """

    def __init__(
        self,
        cache: EndpointCache,
        registry: DestinationRegistry,
        *,
        send_timeout: float = DEFAULT_SEND_TIMEOUT,
    ):
        self._cache = cache
        self._registry = registry
        self._send_timeout = send_timeout

    # --------------------------------------------------
    # Outbound
    # --------------------------------------------------

    async def relay_as_user(
        self,
        payload: RelayPayload,
        targets: Sequence[DeliveryTarget],
        identity: SenderIdentity,
        *,
        ping_role: bool = False,
    ) -> List[DeliveryOutcome]:
        """
        Relay a user's message so it appears authored by that user.
        """
        return await self._fan_out(
            payload,
            targets,
            username=identity.name,
            avatar_url=identity.avatar_url,
            ping_role=ping_role,
        )

    async def broadcast_as_system(
        self,
        payload: RelayPayload,
        targets: Sequence[DeliveryTarget],
        sender_label: str,
        *,
        avatar_url: Optional[str] = None,
        ping_role: bool = False,
        view: Optional[discord.ui.View] = None,
    ) -> List[DeliveryOutcome]:
        """
        Broadcast system-authored content (lobby cards, announcements).
        """
        return await self._fan_out(
            payload,
            targets,
            username=sender_label,
            avatar_url=avatar_url,
            ping_role=ping_role,
            view=view,
        )

    async def _fan_out(
        self,
        payload: RelayPayload,
        targets: Sequence[DeliveryTarget],
        **options: Any,
    ) -> List[DeliveryOutcome]:
        if not targets:
            return []

        outcomes = await asyncio.gather(
            *(self._deliver(target, payload, **options) for target in targets)
        )

        ok = len(delivered(outcomes))
        log.debug(f"Fan-out to {len(targets)} target(s): {ok} delivered, {len(targets) - ok} failed")
        return list(outcomes)

    async def _deliver(
        self,
        target: DeliveryTarget,
        payload: RelayPayload,
        *,
        username: str,
        avatar_url: Optional[str] = None,
        ping_role: bool = False,
        view: Optional[discord.ui.View] = None,
    ) -> DeliveryOutcome:
        content = payload.content
        allowed_mentions = discord.AllowedMentions.none()

        if ping_role and target.role_id:
            content = f"<@&{target.role_id}> {content or ''}".strip()
            allowed_mentions = discord.AllowedMentions(
                everyone=False,
                users=False,
                roles=[discord.Object(id=int(target.role_id))],
            )

        kwargs: dict[str, Any] = {
            "username": username,
            "allowed_mentions": allowed_mentions,
            "wait": True,
        }
        if avatar_url:
            kwargs["avatar_url"] = avatar_url
        if content:
            kwargs["content"] = content
        embeds = payload.rich_embeds()
        if embeds:
            kwargs["embeds"] = embeds
        if payload.attachments:
            kwargs["files"] = [blob.to_file() for blob in payload.attachments]
        if view is not None:
            kwargs["view"] = view

        try:
            webhook = self._cache.get(target.webhook_url)
            sent = await asyncio.wait_for(webhook.send(**kwargs), timeout=self._send_timeout)
        except asyncio.TimeoutError:
            log.warning(f"Relay to guild {target.community_id} timed out")
            return DeliveryOutcome(target=target, error="timeout")
        except Exception as e:
            log.warning(f"Failed to relay to guild {target.community_id}: {e}")
            return DeliveryOutcome(target=target, error=str(e) or type(e).__name__)

        return DeliveryOutcome(target=target, message_id=sent.id)

    # --------------------------------------------------
    # Replay over delivered copies
    # --------------------------------------------------

    async def edit_remote(
        self,
        records: Sequence[Any],
        purpose: str,
        *,
        embed: Optional[discord.Embed] = None,
        view: Optional[discord.ui.View] = None,
        clear_view: bool = False,
    ) -> int:
        """
        Edit every remote copy; returns the number of successful edits.
        """
        kwargs: dict[str, Any] = {}
        if embed is not None:
            kwargs["embed"] = embed
        if view is not None:
            kwargs["view"] = view
        elif clear_view:
            kwargs["view"] = None

        results = await asyncio.gather(
            *(self._edit_one(record, purpose, kwargs) for record in records)
        )
        return sum(1 for result in results if result)

    async def _edit_one(self, record: Any, purpose: str, kwargs: dict[str, Any]) -> bool:
        url = self._registry.endpoint_for(record.community_id, purpose)
        if url is None:
            log.debug(f"No {purpose} webhook for guild {record.community_id}; edit skipped")
            return False
        try:
            webhook = self._cache.get(url)
            await asyncio.wait_for(
                webhook.edit_message(int(record.message_id), **kwargs),
                timeout=self._send_timeout,
            )
        except asyncio.TimeoutError:
            log.warning(f"Edit of message {record.message_id} in guild {record.community_id} timed out")
            return False
        except Exception as e:
            log.warning(f"Failed to edit message {record.message_id} in guild {record.community_id}: {e}")
            return False
        return True

    async def delete_remote(self, records: Sequence[Any], purpose: str) -> int:
        """
        Delete every remote copy; returns the number of copies gone.

        A copy that is already missing counts as deleted.
        """
        results = await asyncio.gather(
            *(self._delete_one(record, purpose) for record in records)
        )
        return sum(1 for result in results if result)

    async def _delete_one(self, record: Any, purpose: str) -> bool:
        url = self._registry.endpoint_for(record.community_id, purpose)
        if url is None:
            log.debug(f"No {purpose} webhook for guild {record.community_id}; delete skipped")
            return False
        try:
            webhook = self._cache.get(url)
            await asyncio.wait_for(
                webhook.delete_message(int(record.message_id)),
                timeout=self._send_timeout,
            )
        except discord.NotFound:
            return True
        except asyncio.TimeoutError:
            log.warning(f"Delete of message {record.message_id} in guild {record.community_id} timed out")
            return False
        except Exception as e:
            log.warning(f"Failed to delete message {record.message_id} in guild {record.community_id}: {e}")
            return False
        return True
