"""
Bridge configuration loader for per-community bindings.

Design rules:
- Import-safe (no side effects)
- Normalize on load, never trust the file shape
"""

from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Any, Dict, Optional

from shared.logging.logger import get_logger
from shared.config.settings import DEFAULT_LFG_EXPIRY_MINUTES
from shared.storage.paths import DEFAULT_CONFIG_PATH

log = get_logger("shared.config.bridge")

PURPOSE_NEWS = "news"
PURPOSE_LFG = "lfg"
PURPOSE_DISCUSSION = "discussion"

PURPOSE_LABELS: Dict[str, str] = {
    PURPOSE_NEWS: "PDH News",
    PURPOSE_LFG: "PDH LFG",
    PURPOSE_DISCUSSION: "PDH Discussion",
}
PURPOSES = tuple(PURPOSE_LABELS.keys())

LFG_EXPIRY_MIN = 5
LFG_EXPIRY_MAX = 1440

_DEFAULT_SETTINGS: Dict[str, Any] = {
    "filter_links": False,
    "lfg_expiry_minutes": DEFAULT_LFG_EXPIRY_MINUTES,
}

_DEFAULT_CHANNEL: Dict[str, Any] = {
    "channel_id": None,
    "webhook_url": None,
    "role_id": None,
}


def _normalize_snowflake(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str):
        raw = value.strip()
        if raw and raw.isdigit():
            return raw
    return None


def _normalize_webhook_url(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    raw = value.strip()
    if raw.startswith("https://"):
        return raw
    return None


def _normalize_channel(raw: Any) -> Dict[str, Any]:
    data = dict(_DEFAULT_CHANNEL)
    if not isinstance(raw, dict):
        return data
    data["channel_id"] = _normalize_snowflake(raw.get("channel_id"))
    data["webhook_url"] = _normalize_webhook_url(raw.get("webhook_url"))
    data["role_id"] = _normalize_snowflake(raw.get("role_id"))
    return data


def _normalize_community(raw: Any) -> Dict[str, Any]:
    data: Dict[str, Any] = {"name": None, "channels": {}}
    if not isinstance(raw, dict):
        return data

    name = raw.get("name")
    if isinstance(name, str) and name.strip():
        data["name"] = name.strip()

    channels_raw = raw.get("channels")
    if isinstance(channels_raw, dict):
        for purpose in PURPOSES:
            if purpose in channels_raw:
                data["channels"][purpose] = _normalize_channel(channels_raw.get(purpose))

    return data


def _normalize_settings(raw: Any, defaults: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    data = dict(defaults or _DEFAULT_SETTINGS)
    if not isinstance(raw, dict):
        return data

    filter_links = raw.get("filter_links")
    if isinstance(filter_links, bool):
        data["filter_links"] = filter_links

    expiry = raw.get("lfg_expiry_minutes")
    if isinstance(expiry, int) and not isinstance(expiry, bool):
        if LFG_EXPIRY_MIN <= expiry <= LFG_EXPIRY_MAX:
            data["lfg_expiry_minutes"] = expiry

    return data


def default_bridge_config(settings: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return {
        "bridge": {
            "communities": {},
            "settings": _normalize_settings(settings),
        }
    }


def load_bridge_config(
    path: Optional[Path] = None,
    *,
    defaults: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    config_path = path or DEFAULT_CONFIG_PATH
    base_settings = _normalize_settings(defaults)

    if not config_path.exists():
        return default_bridge_config(base_settings)

    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except Exception as exc:
        log.warning(f"Failed to load bridge config ({exc}); using defaults")
        return default_bridge_config(base_settings)

    if not isinstance(data, dict):
        return default_bridge_config(base_settings)

    root = data.get("bridge", {})
    if not isinstance(root, dict):
        root = {}

    communities: Dict[str, Any] = {}
    communities_raw = root.get("communities", {})
    if isinstance(communities_raw, dict):
        for community_id, entry in communities_raw.items():
            normalized_id = _normalize_snowflake(community_id)
            if not normalized_id or not isinstance(entry, dict):
                continue
            communities[normalized_id] = _normalize_community(entry)

    return {
        "bridge": {
            "communities": communities,
            "settings": _normalize_settings(root.get("settings"), base_settings),
        }
    }


def save_bridge_config(config: Dict[str, Any], path: Optional[Path] = None) -> None:
    config_path = path or DEFAULT_CONFIG_PATH
    config_path.parent.mkdir(parents=True, exist_ok=True)

    root = config.get("bridge", {}) if isinstance(config, dict) else {}
    if not isinstance(root, dict):
        root = {}

    payload = {
        "bridge": {
            "communities": copy.deepcopy(root.get("communities", {})),
            "settings": _normalize_settings(root.get("settings")),
        }
    }
    config_path.write_text(
        json.dumps(payload, indent=2, sort_keys=False),
        encoding="utf-8",
    )


def validate_bridge_config(config: Dict[str, Any]) -> bool:
    if not isinstance(config, dict):
        return False

    root = config.get("bridge", {})
    if root is None:
        return True
    if not isinstance(root, dict):
        return False

    communities = root.get("communities", {})
    if communities is not None:
        if not isinstance(communities, dict):
            return False
        for community_id, entry in communities.items():
            if _normalize_snowflake(community_id) is None:
                return False
            if not isinstance(entry, dict):
                return False
            channels = entry.get("channels", {})
            if channels is None:
                continue
            if not isinstance(channels, dict):
                return False
            for purpose, channel in channels.items():
                if purpose not in PURPOSES:
                    return False
                if channel is None:
                    continue
                if not isinstance(channel, dict):
                    return False
                for key in ("channel_id", "role_id"):
                    value = channel.get(key)
                    if value is not None and _normalize_snowflake(value) is None:
                        return False
                webhook_url = channel.get("webhook_url")
                if webhook_url is not None and _normalize_webhook_url(webhook_url) is None:
                    return False

    settings = root.get("settings", {})
    if settings is not None:
        if not isinstance(settings, dict):
            return False
        filter_links = settings.get("filter_links")
        if filter_links is not None and not isinstance(filter_links, bool):
            return False
        expiry = settings.get("lfg_expiry_minutes")
        if expiry is not None:
            if not isinstance(expiry, int) or isinstance(expiry, bool):
                return False
            if not LFG_EXPIRY_MIN <= expiry <= LFG_EXPIRY_MAX:
                return False

    return True


def purpose_label(purpose: str) -> str:
    return PURPOSE_LABELS.get(purpose, purpose.replace("_", " ").title())
