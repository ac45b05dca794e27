"""
Destination Registry

Maps each federated community to its bound channels, one webhook per
channel purpose, and an optional role to notify.

Responsibilities:
- resolve delivery targets for a purpose (fan-out input)
- identify which bridged purpose an inbound channel belongs to
- persist administrative setup and health-check repairs

IMPORTANT:
- Delivery targets are derived on every call, never stored
- Bindings are only removed by an explicit admin action
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from shared.config.bridge import (
    LFG_EXPIRY_MAX,
    LFG_EXPIRY_MIN,
    PURPOSES,
    load_bridge_config,
    save_bridge_config,
)
from shared.logging.logger import get_logger

log = get_logger("bridge.registry")


@dataclass
class ChannelBinding:
    channel_id: Optional[str] = None
    webhook_url: Optional[str] = None
    role_id: Optional[str] = None

    @property
    def usable(self) -> bool:
        return bool(self.channel_id) and bool(self.webhook_url)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "channel_id": self.channel_id,
            "webhook_url": self.webhook_url,
            "role_id": self.role_id,
        }


@dataclass
class CommunityBinding:
    community_id: str
    name: Optional[str] = None
    channels: Dict[str, ChannelBinding] = field(default_factory=dict)

    def channel(self, purpose: str) -> Optional[ChannelBinding]:
        return self.channels.get(purpose)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "channels": {
                purpose: binding.to_dict()
                for purpose, binding in self.channels.items()
            },
        }

    @classmethod
    def from_dict(cls, community_id: str, raw: Dict[str, Any]) -> "CommunityBinding":
        channels = {}
        for purpose, entry in (raw.get("channels") or {}).items():
            if purpose not in PURPOSES or not isinstance(entry, dict):
                continue
            channels[purpose] = ChannelBinding(
                channel_id=entry.get("channel_id"),
                webhook_url=entry.get("webhook_url"),
                role_id=entry.get("role_id"),
            )
        return cls(community_id=str(community_id), name=raw.get("name"), channels=channels)


@dataclass(frozen=True)
class DeliveryTarget:
    community_id: str
    channel_id: str
    webhook_url: str
    role_id: Optional[str] = None


class DestinationRegistry:
    """
    In-process owner of community bindings, backed by the bridge config file.

    Constructed once and passed to every dependent; tests build their own
    instance against a temporary path.
    """

    def __init__(
        self,
        path: Optional[Path] = None,
        *,
        defaults: Optional[Dict[str, Any]] = None,
    ):
        self._path = path
        self._lock = threading.Lock()
        config = load_bridge_config(path, defaults=defaults)
        root = config["bridge"]

        self._settings: Dict[str, Any] = dict(root["settings"])
        self._communities: Dict[str, CommunityBinding] = {
            community_id: CommunityBinding.from_dict(community_id, entry)
            for community_id, entry in root["communities"].items()
        }

        log.info(f"Destination registry loaded: {len(self._communities)} community binding(s)")

    # --------------------------------------------------
    # Persistence
    # --------------------------------------------------

    def _save(self) -> None:
        payload = {
            "bridge": {
                "communities": {
                    community_id: binding.to_dict()
                    for community_id, binding in self._communities.items()
                },
                "settings": dict(self._settings),
            }
        }
        try:
            save_bridge_config(payload, self._path)
        except OSError as e:
            log.error(f"Failed to persist bridge config: {e}")

    # --------------------------------------------------
    # Target resolution
    # --------------------------------------------------

    def resolve_targets(
        self,
        purpose: str,
        exclude: Iterable[str | int] = (),
    ) -> List[DeliveryTarget]:
        """
        Return every usable delivery target for a purpose, in binding order.

        Communities listed in `exclude` are skipped. A community is only
        included if both its channel and webhook are bound for the purpose.
        """
        excluded = {str(community_id) for community_id in exclude}
        targets: List[DeliveryTarget] = []

        for community_id, binding in list(self._communities.items()):
            if community_id in excluded:
                continue
            channel = binding.channel(purpose)
            if channel is None or not channel.usable:
                continue
            targets.append(
                DeliveryTarget(
                    community_id=community_id,
                    channel_id=channel.channel_id,
                    webhook_url=channel.webhook_url,
                    role_id=channel.role_id,
                )
            )

        return targets

    def identify_channel(self, community_id: str | int, channel_id: str | int) -> Optional[str]:
        """
        Return the purpose a channel is bridged for, or None.
        """
        binding = self._communities.get(str(community_id))
        if binding is None:
            return None
        for purpose, channel in binding.channels.items():
            if channel.channel_id and channel.channel_id == str(channel_id):
                return purpose
        return None

    def endpoint_for(self, community_id: str | int, purpose: str) -> Optional[str]:
        binding = self._communities.get(str(community_id))
        if binding is None:
            return None
        channel = binding.channel(purpose)
        if channel is None or not channel.usable:
            return None
        return channel.webhook_url

    # --------------------------------------------------
    # Read access
    # --------------------------------------------------

    def binding(self, community_id: str | int) -> Optional[CommunityBinding]:
        return self._communities.get(str(community_id))

    def bindings(self) -> List[CommunityBinding]:
        return list(self._communities.values())

    def __len__(self) -> int:
        return len(self._communities)

    # --------------------------------------------------
    # Administrative writes
    # --------------------------------------------------

    def set_binding(self, binding: CommunityBinding) -> None:
        with self._lock:
            self._communities[str(binding.community_id)] = binding
            self._save()
        log.info(f"Community binding stored for {binding.name or binding.community_id}")

    def remove_binding(self, community_id: str | int) -> bool:
        with self._lock:
            removed = self._communities.pop(str(community_id), None)
            if removed is not None:
                self._save()
        if removed is not None:
            log.info(f"Community binding removed for {removed.name or community_id}")
        return removed is not None

    def update_endpoint(self, community_id: str | int, purpose: str, webhook_url: str) -> bool:
        """
        Replace the webhook for a bound channel (health-check repair).
        """
        with self._lock:
            binding = self._communities.get(str(community_id))
            if binding is None:
                return False
            channel = binding.channel(purpose)
            if channel is None or not channel.channel_id:
                return False
            if channel.webhook_url == webhook_url:
                return False
            channel.webhook_url = webhook_url
            self._save()
        return True

    # --------------------------------------------------
    # Runtime-tunable settings
    # --------------------------------------------------

    @property
    def filter_links(self) -> bool:
        return bool(self._settings.get("filter_links", False))

    @property
    def lfg_expiry_minutes(self) -> int:
        return int(self._settings.get("lfg_expiry_minutes"))

    def set_filter_links(self, enabled: bool) -> None:
        with self._lock:
            self._settings["filter_links"] = bool(enabled)
            self._save()

    def set_lfg_expiry_minutes(self, minutes: int) -> None:
        if not LFG_EXPIRY_MIN <= minutes <= LFG_EXPIRY_MAX:
            raise ValueError(
                f"Expiry must be between {LFG_EXPIRY_MIN} and {LFG_EXPIRY_MAX} minutes"
            )
        with self._lock:
            self._settings["lfg_expiry_minutes"] = minutes
            self._save()
